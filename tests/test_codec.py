"""
Envelope codec tests.
"""

import base64

import pytest

from advice_ledger.core import codec as codec_module
from advice_ledger.core.codec import (
    PLACEHOLDER_ANSWER,
    AesGcmEnvelopeCodec,
    SimulatedEnvelopeCodec
)
from advice_ledger.core.errors import DecodeError


class TestSimulatedCodec:
    """'FHE-' + base64 envelopes."""

    def test_matches_existing_tokens(self, codec):
        """Tokens already stored in the ledger decode unchanged."""
        assert codec.encode("Analyzing with FHE-NLP model...") == "FHE-QW5hbHl6aW5nIHdpdGggRkhFLU5MUCBtb2RlbC4uLg=="
        assert codec.decode("FHE-QW5hbHl6aW5nIHdpdGggRkhFLU5MUCBtb2RlbC4uLg==") == PLACEHOLDER_ANSWER

    def test_unicode(self, codec):
        text = "Négocier mon salaire — 給料"
        assert codec.decode(codec.encode(text)) == text

    @pytest.mark.parametrize("token", ["plain", "FHE-***", "AESGCM-abcd"])
    def test_rejects_foreign_tokens(self, codec, token):
        with pytest.raises(DecodeError):
            codec.decode(token)


class TestAesGcmCodec:
    """AES-256-GCM envelopes."""

    def test_round_trip(self):
        codec = AesGcmEnvelopeCodec("correct horse")
        token = codec.encode("How do I ask for a promotion?")
        assert token.startswith("AESGCM-")
        assert "promotion" not in token
        assert codec.decode(token) == "How do I ask for a promotion?"

    def test_nonce_differs_per_encode(self):
        codec = AesGcmEnvelopeCodec("correct horse")
        assert codec.encode("same") != codec.encode("same")

    def test_other_instance_same_secret_decodes(self):
        token = AesGcmEnvelopeCodec("correct horse").encode("portable")
        assert AesGcmEnvelopeCodec("correct horse").decode(token) == "portable"

    def test_wrong_secret_fails(self):
        token = AesGcmEnvelopeCodec("correct horse").encode("secret question")
        with pytest.raises(DecodeError):
            AesGcmEnvelopeCodec("battery staple").decode(token)

    def test_tampered_token_fails(self):
        codec = AesGcmEnvelopeCodec("correct horse")
        blob = bytearray(base64.urlsafe_b64decode(codec.encode("secret question")[len("AESGCM-"):]))
        blob[-1] ^= 0x01
        with pytest.raises(DecodeError):
            codec.decode("AESGCM-" + base64.urlsafe_b64encode(bytes(blob)).decode("ascii"))

    def test_short_token_fails(self):
        with pytest.raises(DecodeError):
            AesGcmEnvelopeCodec("x").decode("AESGCM-" + base64.urlsafe_b64encode(b"short").decode("ascii"))

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            AesGcmEnvelopeCodec("")

    def test_simulated_tokens_rejected(self):
        with pytest.raises(DecodeError):
            AesGcmEnvelopeCodec("x").decode(SimulatedEnvelopeCodec().encode("hi"))

    def test_key_cache_is_bounded(self, monkeypatch):
        monkeypatch.setattr(codec_module, "MAX_CACHED_KEYS", 3)
        reader = AesGcmEnvelopeCodec("correct horse")
        own = reader.encode("mine")

        for i in range(6):
            token = AesGcmEnvelopeCodec("correct horse").encode(f"foreign {i}")
            assert reader.decode(token) == f"foreign {i}"
            assert len(reader._keys) <= 3

        assert reader.decode(own) == "mine"
        assert len(reader._keys) == 3
