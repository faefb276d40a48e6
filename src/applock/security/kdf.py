"""Argon2id key derivation and passphrase verification hashes."""
import os
from dataclasses import dataclass
from typing import Dict

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError, VerificationError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw

from applock.core.exceptions import InvalidPassphraseError, KdfError

KEY_LENGTH = 32
SALT_LENGTH = 16

DESKTOP_MEMORY_KIB = 64 * 1024
MOBILE_MEMORY_KIB = 32 * 1024
DEFAULT_ITERATIONS = 3
DEFAULT_PARALLELISM = 1


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters, frozen into every keyset at creation time."""

    memory_kib: int
    iterations: int
    parallelism: int

    def validate(self) -> None:
        """Raise KdfError if Argon2 would reject these parameters."""
        if self.parallelism < 1:
            raise KdfError(f"parallelism must be >= 1, got {self.parallelism}")
        if self.iterations < 1:
            raise KdfError(f"iterations must be >= 1, got {self.iterations}")
        if self.memory_kib < 8 * self.parallelism:
            raise KdfError(
                f"memory must be >= 8 * parallelism KiB, got {self.memory_kib} KiB"
            )


def platform_kdf_params(mobile: bool = False) -> KdfParams:
    """Return the cost policy for newly configured vaults on this platform."""
    return KdfParams(
        memory_kib=MOBILE_MEMORY_KIB if mobile else DESKTOP_MEMORY_KIB,
        iterations=DEFAULT_ITERATIONS,
        parallelism=DEFAULT_PARALLELISM,
    )


def generate_salt(length: int = SALT_LENGTH) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_kek(passphrase: str, salt: bytes, params: KdfParams) -> bytes:
    """
    Derive a 32-byte key-encryption key from a passphrase using Argon2id v0x13.

    ``params`` must come from the record being operated on, never from the
    platform default, or older vaults would stop opening.
    """
    params.validate()
    if isinstance(passphrase, str):
        passphrase = passphrase.encode("utf-8")

    try:
        return hash_secret_raw(
            secret=passphrase,
            salt=salt,
            time_cost=params.iterations,
            memory_cost=params.memory_kib,
            parallelism=params.parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
            version=ARGON2_VERSION,
        )
    except HashingError as e:
        raise KdfError(f"Failed to derive key with Argon2id: {e}") from e


def _hasher(params: KdfParams) -> PasswordHasher:
    return PasswordHasher(
        time_cost=params.iterations,
        memory_cost=params.memory_kib,
        parallelism=params.parallelism,
        hash_len=KEY_LENGTH,
        salt_len=SALT_LENGTH,
        type=Type.ID,
    )


def hash_password(passphrase: str, params: KdfParams) -> str:
    """Return a self-describing ($argon2id$...) hash used only for verification.

    The hash gets its own random salt so it never equals the derived KEK.
    """
    params.validate()
    try:
        return _hasher(params).hash(passphrase)
    except HashingError as e:
        raise KdfError(f"Failed to hash passphrase: {e}") from e


def verify_password(password_hash: str, passphrase: str) -> None:
    """Raise InvalidPassphraseError unless ``passphrase`` matches ``password_hash``.

    The cost parameters are read from the hash string itself. A malformed
    hash is reported exactly like a mismatch.
    """
    try:
        PasswordHasher().verify(password_hash, passphrase)
    except (VerificationError, InvalidHashError, ValueError) as e:
        raise InvalidPassphraseError("Invalid passphrase") from e


def kdf_params_to_dict(params: KdfParams) -> Dict:
    return {
        "algo": "argon2id",
        "memory": params.memory_kib,
        "time": params.iterations,
        "parallelism": params.parallelism,
    }
