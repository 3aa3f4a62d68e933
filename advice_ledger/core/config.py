"""
Ledger configuration - backend, codec and validation settings from the environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Storage backend configuration
LEDGER_BACKEND = os.getenv("LEDGER_BACKEND", "sqlite")  # sqlite|memory
LEDGER_DB_PATH = os.getenv("LEDGER_DB_PATH", "./data/ledger.db")

# Debug flag is also exposed as a function to be dynamic
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Envelope codec configuration
LEDGER_CODEC = os.getenv("LEDGER_CODEC", "simulated")  # simulated|aesgcm
LEDGER_CODEC_SECRET = os.getenv("LEDGER_CODEC_SECRET", "default_ledger_secret_change_in_production")

# Reader/writer tuning
LEDGER_FETCH_WORKERS = int(os.getenv("LEDGER_FETCH_WORKERS", "1"))
LEDGER_INDEX_MAX_RETRIES = int(os.getenv("LEDGER_INDEX_MAX_RETRIES", "5"))
CATEGORY_VALIDATION_STRICT = os.getenv("CATEGORY_VALIDATION_STRICT", "true").lower() == "true"

# Identity used by the CLI and API when the caller does not supply one
LEDGER_OWNER_ADDRESS = os.getenv("LEDGER_OWNER_ADDRESS", "")

VALID_BACKENDS = ["sqlite", "memory"]
VALID_CODECS = ["simulated", "aesgcm"]

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def get_backend_name():
    """Get configured storage backend (sqlite|memory)."""
    return os.getenv("LEDGER_BACKEND", LEDGER_BACKEND).lower()


def get_db_path():
    """Get the SQLite file used by the sqlite backend."""
    return os.getenv("LEDGER_DB_PATH", LEDGER_DB_PATH)


def get_codec_name():
    """Get configured envelope codec (simulated|aesgcm)."""
    return os.getenv("LEDGER_CODEC", LEDGER_CODEC).lower()


def get_codec_secret():
    """Get the passphrase used to derive the aesgcm codec key."""
    return os.getenv("LEDGER_CODEC_SECRET", LEDGER_CODEC_SECRET)


def get_fetch_workers():
    """Number of threads used to fetch records during a refresh."""
    return max(1, int(os.getenv("LEDGER_FETCH_WORKERS", str(LEDGER_FETCH_WORKERS))))


def get_index_max_retries():
    """Attempts allowed for an optimistic index append."""
    return max(1, int(os.getenv("LEDGER_INDEX_MAX_RETRIES", str(LEDGER_INDEX_MAX_RETRIES))))


def is_category_validation_strict():
    """Check whether categories outside the fixed set are rejected on submit."""
    return os.getenv("CATEGORY_VALIDATION_STRICT", "true").lower() == "true"


def get_default_owner():
    """Get the owner address used when the caller does not supply one."""
    return os.getenv("LEDGER_OWNER_ADDRESS", LEDGER_OWNER_ADDRESS)


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def get_store():
    """Get configured key-value store implementation."""
    backend = get_backend_name()

    if backend == "memory":
        from .backend import InMemoryStore
        return InMemoryStore()
    else:
        # Default to the durable store for unknown backends
        from .backend import SqliteStore
        return SqliteStore(get_db_path())


def get_codec():
    """Get configured envelope codec implementation."""
    if get_codec_name() == "aesgcm":
        from .codec import AesGcmEnvelopeCodec
        return AesGcmEnvelopeCodec(get_codec_secret())

    from .codec import SimulatedEnvelopeCodec
    return SimulatedEnvelopeCodec()


def validate_config():
    """Validate ledger configuration and return any issues."""
    issues = []

    if get_backend_name() not in VALID_BACKENDS:
        issues.append(f"Invalid LEDGER_BACKEND: {get_backend_name()}")

    if get_codec_name() not in VALID_CODECS:
        issues.append(f"Invalid LEDGER_CODEC: {get_codec_name()}")

    for name in ("LEDGER_FETCH_WORKERS", "LEDGER_INDEX_MAX_RETRIES"):
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            if int(raw) < 1:
                issues.append(f"{name} must be >= 1")
        except ValueError:
            issues.append(f"{name} must be an integer")

    if get_codec_name() == "aesgcm" and get_codec_secret() == "default_ledger_secret_change_in_production":
        issues.append("LEDGER_CODEC_SECRET should be set when LEDGER_CODEC=aesgcm")

    return issues
