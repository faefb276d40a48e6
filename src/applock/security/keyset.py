"""Persisted key-wrapping record (keyset) and its JSON codec.

Serialized form (camelCase keys)::

    {
      "version": 1,
      "passwordHash": "$argon2id$v=19$...",
      "saltB64": "<16 bytes>",
      "memoryKib": 65536,
      "iterations": 3,
      "parallelism": 1,
      "wrappedDekB64": "<48 bytes>",
      "nonceB64": "<12 bytes>"
    }

Decoding validates every field so a damaged record is rejected as
:class:`CodecError` before any key derivation is attempted.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from applock.core.exceptions import (
    CodecError,
    InvalidPassphraseError,
    KdfError,
    WeakPassphraseError,
)

from .crypto import DEK_LENGTH, NONCE_LENGTH, generate_dek, unwrap_dek, wrap_dek
from .kdf import (
    SALT_LENGTH,
    KdfParams,
    derive_kek,
    generate_salt,
    hash_password,
    verify_password,
)

KEYSET_VERSION = 1
# AES-GCM appends a 16-byte tag
WRAPPED_DEK_LENGTH = DEK_LENGTH + 16


@dataclass(frozen=True)
class Keyset:
    version: int
    password_hash: str
    salt: bytes
    params: KdfParams
    wrapped_dek: bytes
    nonce: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "passwordHash": self.password_hash,
            "saltB64": base64.b64encode(self.salt).decode("ascii"),
            "memoryKib": self.params.memory_kib,
            "iterations": self.params.iterations,
            "parallelism": self.params.parallelism,
            "wrappedDekB64": base64.b64encode(self.wrapped_dek).decode("ascii"),
            "nonceB64": base64.b64encode(self.nonce).decode("ascii"),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "Keyset":
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid stored app lock keyset: {e}") from e
        if not isinstance(data, dict):
            raise CodecError("Invalid stored app lock keyset: expected a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keyset":
        version = _int_field(data, "version")
        if version != KEYSET_VERSION:
            raise CodecError(f"Unsupported keyset version: {version}")

        password_hash = data.get("passwordHash")
        if not isinstance(password_hash, str) or not password_hash:
            raise CodecError("Invalid keyset field: passwordHash")

        params = KdfParams(
            memory_kib=_int_field(data, "memoryKib"),
            iterations=_int_field(data, "iterations"),
            parallelism=_int_field(data, "parallelism"),
        )

        return cls(
            version=version,
            password_hash=password_hash,
            salt=_b64_field(data, "saltB64", SALT_LENGTH),
            params=params,
            wrapped_dek=_b64_field(data, "wrappedDekB64", WRAPPED_DEK_LENGTH),
            nonce=_b64_field(data, "nonceB64", NONCE_LENGTH),
        )


def _int_field(data: Dict[str, Any], name: str) -> int:
    value = data.get(name)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise CodecError(f"Invalid keyset field: {name}")
    return value


def _b64_field(data: Dict[str, Any], name: str, length: int) -> bytes:
    value = data.get(name)
    if not isinstance(value, str):
        raise CodecError(f"Invalid keyset field: {name}")
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"Invalid base64 for {name}: {e}") from e
    if len(decoded) != length:
        raise CodecError(
            f"Invalid decoded length for {name}: expected {length}, got {len(decoded)}"
        )
    return decoded


def check_passphrase_strength(passphrase: str, min_length: int) -> None:
    # length in code points, not bytes
    if len(passphrase) < min_length:
        raise WeakPassphraseError(f"Passphrase must be at least {min_length} characters")


def build_keyset(
    passphrase: str,
    params: KdfParams,
    existing_dek: Optional[bytes] = None,
    min_length: int = 8,
) -> Keyset:
    """
    Wrap ``existing_dek`` (or a fresh random DEK) under a KEK derived from
    ``passphrase`` with a new salt and nonce.

    This is CPU heavy (two Argon2id runs); run it off the interactive path.
    """
    check_passphrase_strength(passphrase, min_length)

    salt = generate_salt()
    password_hash = hash_password(passphrase, params)
    kek = derive_kek(passphrase, salt, params)

    dek = existing_dek if existing_dek is not None else generate_dek()
    wrapped, nonce = wrap_dek(dek, kek)

    return Keyset(
        version=KEYSET_VERSION,
        password_hash=password_hash,
        salt=salt,
        params=params,
        wrapped_dek=wrapped,
        nonce=nonce,
    )


def open_keyset(keyset: Keyset, passphrase: str) -> bytes:
    """Verify ``passphrase`` and return the unwrapped DEK.

    Uses the keyset's own KDF parameters. Raises InvalidPassphraseError for a
    wrong passphrase and for tampered material alike.
    """
    verify_password(keyset.password_hash, passphrase)
    try:
        kek = derive_kek(passphrase, keyset.salt, keyset.params)
    except KdfError as e:
        # stored params are part of the record; bad ones read as a bad passphrase
        raise InvalidPassphraseError("Invalid passphrase") from e
    return unwrap_dek(keyset.wrapped_dek, keyset.nonce, kek)
