"""Security helpers for the app lock: KDF, DEK wrapping, keysets and session state.

This package provides:
- Argon2id KEK derivation and passphrase verification hashes
- AES-256-GCM wrapping of the random data-encryption key (DEK)
- The persisted keyset record and its codec
- The in-memory session key handed to the encrypted database

Persistence, the OS secret store and the lifecycle controller live in
``applock.security.persistence``, ``applock.security.keystore`` and
``applock.security.lifecycle``; they depend on configuration and are not
re-exported here.
"""

from .kdf import KdfParams, generate_salt, derive_kek, hash_password, verify_password
from .crypto import generate_dek, wrap_dek, unwrap_dek
from .keyset import Keyset, build_keyset, open_keyset
from .session import SessionKey, RuntimeState, get_session_key

__all__ = [
    "KdfParams",
    "generate_salt",
    "derive_kek",
    "hash_password",
    "verify_password",
    "generate_dek",
    "wrap_dek",
    "unwrap_dek",
    "Keyset",
    "build_keyset",
    "open_keyset",
    "SessionKey",
    "RuntimeState",
    "get_session_key",
]
