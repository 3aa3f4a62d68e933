"""
Envelope codecs - reversible transforms applied to question/answer text
before it reaches the store.

SimulatedEnvelopeCodec offers no confidentiality; it matches the "FHE-" +
base64 tokens already present in ledger data. AesGcmEnvelopeCodec is a real
AES-256-GCM envelope and can be swapped in without touching ledger logic.
"""

import base64
import binascii
import os
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import DecodeError

# Placeholder answer stored with every new question (no inference step)
PLACEHOLDER_ANSWER = "Analyzing with FHE-NLP model..."

SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
KDF_ITERATIONS = 100000

# Keys derived for salts other than the codec's own (least recently used evicted)
MAX_CACHED_KEYS = 32


class EnvelopeCodec(ABC):
    """Abstract interface for envelope codecs."""

    prefix = ""

    @abstractmethod
    def encode(self, plaintext: str) -> str:
        """Turn plaintext into an opaque token."""
        pass

    @abstractmethod
    def decode(self, token: str) -> str:
        """Recover plaintext from a token. Raises DecodeError on malformed tokens."""
        pass

    def _strip_prefix(self, token: str) -> str:
        if not isinstance(token, str) or not token.startswith(self.prefix):
            raise DecodeError("envelope", f"token does not start with '{self.prefix}'")
        return token[len(self.prefix):]


class SimulatedEnvelopeCodec(EnvelopeCodec):
    """'FHE-' + base64 of the UTF-8 text."""

    prefix = "FHE-"

    def encode(self, plaintext: str) -> str:
        return self.prefix + base64.b64encode(plaintext.encode("utf-8")).decode("ascii")

    def decode(self, token: str) -> str:
        body = self._strip_prefix(token)
        try:
            return base64.b64decode(body, validate=True).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeError("envelope", f"invalid simulated envelope: {e}") from e


class AesGcmEnvelopeCodec(EnvelopeCodec):
    """AES-256-GCM with a PBKDF2-derived key.

    Token layout after the prefix (urlsafe base64):
    salt (16) + nonce (12) + tag (16) + ciphertext
    """

    prefix = "AESGCM-"

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret cannot be empty")
        self._secret = secret
        self._salt = os.urandom(SALT_SIZE)
        self._own_key: Optional[bytes] = None
        self._keys: "OrderedDict[bytes, bytes]" = OrderedDict()
        self._lock = threading.Lock()

    def _kdf(self, salt: bytes) -> bytes:
        """Derive encryption key from the secret using PBKDF2."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=KDF_ITERATIONS,
        )
        return kdf.derive(self._secret.encode("utf-8"))

    def _derive_key(self, salt: bytes) -> bytes:
        if salt == self._salt:
            if self._own_key is None:
                self._own_key = self._kdf(salt)
            return self._own_key

        with self._lock:
            key = self._keys.get(salt)
            if key is not None:
                self._keys.move_to_end(salt)
                return key

        key = self._kdf(salt)
        with self._lock:
            self._keys[salt] = key
            while len(self._keys) > MAX_CACHED_KEYS:
                self._keys.popitem(last=False)
        return key

    def encode(self, plaintext: str) -> str:
        key = self._derive_key(self._salt)
        nonce = os.urandom(NONCE_SIZE)
        encryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).encryptor()
        ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()

        blob = self._salt + nonce + encryptor.tag + ciphertext
        return self.prefix + base64.urlsafe_b64encode(blob).decode("ascii")

    def decode(self, token: str) -> str:
        body = self._strip_prefix(token)
        try:
            blob = base64.urlsafe_b64decode(body.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as e:
            raise DecodeError("envelope", f"invalid base64: {e}") from e

        header = SALT_SIZE + NONCE_SIZE + TAG_SIZE
        if len(blob) < header:
            raise DecodeError("envelope", "encrypted envelope too short")

        salt = blob[:SALT_SIZE]
        nonce = blob[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
        tag = blob[SALT_SIZE + NONCE_SIZE:header]
        ciphertext = blob[header:]

        decryptor = Cipher(algorithms.AES(self._derive_key(salt)), modes.GCM(nonce, tag)).decryptor()
        try:
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
        except InvalidTag as e:
            raise DecodeError("envelope", "authentication failed (wrong secret or tampered data)") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("envelope", f"invalid UTF-8: {e}") from e
