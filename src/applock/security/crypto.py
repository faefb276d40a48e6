"""AES-256-GCM wrapping of the data-encryption key (DEK) under the KEK.

Wrapped layout: ``ciphertext || tag`` (48 bytes for a 32-byte DEK) with a
separate 96-bit nonce drawn fresh for every wrap. Every authentication
failure, whatever its cause, surfaces as :class:`InvalidPassphraseError`.
"""
import binascii
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from applock.core.exceptions import CipherError, CodecError, InvalidPassphraseError

DEK_LENGTH = 32
NONCE_LENGTH = 12


def generate_dek() -> bytes:
    return os.urandom(DEK_LENGTH)


def _cipher(kek: bytes) -> AESGCM:
    try:
        return AESGCM(kek)
    except (TypeError, ValueError) as e:
        raise CipherError(f"Failed to initialize cipher: {e}") from e


def wrap_dek(dek: bytes, kek: bytes) -> Tuple[bytes, bytes]:
    """Encrypt ``dek`` under ``kek``; returns ``(wrapped, nonce)``."""
    aead = _cipher(kek)
    nonce = os.urandom(NONCE_LENGTH)
    return aead.encrypt(nonce, dek, None), nonce


def unwrap_dek(wrapped: bytes, nonce: bytes, kek: bytes) -> bytes:
    """Decrypt and authenticate a wrapped DEK."""
    aead = _cipher(kek)
    try:
        dek = aead.decrypt(nonce, wrapped, None)
    except (InvalidTag, ValueError) as e:
        raise InvalidPassphraseError("Invalid passphrase") from e

    if len(dek) != DEK_LENGTH:
        raise InvalidPassphraseError("Invalid passphrase")
    return dek


def encode_hex_key(key: bytes) -> str:
    return key.hex()


def decode_hex_key(value: str) -> bytes:
    """Decode a hex-encoded 32-byte key, ignoring surrounding whitespace."""
    trimmed = value.strip()
    if len(trimmed) != DEK_LENGTH * 2:
        raise CodecError(
            f"Invalid hex key length: expected {DEK_LENGTH * 2}, got {len(trimmed)}"
        )
    try:
        return binascii.unhexlify(trimmed)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"Invalid hex key: {e}") from e
