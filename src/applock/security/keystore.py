"""OS credential vault integration using keyring, behind a small capability interface.

The app lock mirrors its records into the OS vault on a best-effort basis.
On unsigned desktop builds the vault can silently drop writes, and mobile
targets have no vault at all, so nothing here is treated as authoritative.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import keyring
from keyring.errors import PasswordDeleteError

from applock.core.config import AppLockConfig, is_mobile_platform
from applock.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class SecretStore(ABC):
    """Opaque string key/value storage selected once per process."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if there is no entry."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove an entry; deleting a missing entry is not an error."""

    @abstractmethod
    def is_available(self) -> bool:
        pass


class KeyringSecretStore(SecretStore):
    """Secret store backed by the active ``keyring`` backend."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    def get(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, key)
        except Exception as e:
            # backends raise their own (dbus, OS) errors besides KeyringError
            raise StorageError(f"Failed to read {key} from keyring: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service_name, key, value)
            stored = keyring.get_password(self.service_name, key)
        except Exception as e:
            raise StorageError(f"Failed to write {key} to keyring: {e}") from e

        # unsigned macOS builds accept the write and drop it
        if stored != value:
            raise StorageError("Keychain write verification failed - app may need code signing")

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # no such entry
            pass
        except Exception as e:
            raise StorageError(f"Failed to delete {key} from keyring: {e}") from e

    def is_available(self) -> bool:
        probe_service = f"{self.service_name}.test"
        try:
            keyring.set_password(probe_service, "availability_check", "test")
            keyring.delete_password(probe_service, "availability_check")
        except Exception:
            return False
        return True


class NullSecretStore(SecretStore):
    """Secret store for targets without an OS vault: every read misses."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def is_available(self) -> bool:
        return False


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms.
    """
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    # treat known platform backends as acceptable
    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


def select_secret_store(config: AppLockConfig) -> SecretStore:
    """Pick the secret store for this process. Called once at startup."""
    if is_mobile_platform():
        logger.debug("mobile target: OS secret store disabled")
        return NullSecretStore()

    secure, msg = assess_keyring_backend()
    if not secure:
        logger.warning("not mirroring key material into keyring: %s", msg)
        return NullSecretStore()

    logger.debug("using keyring secret store: %s", msg)
    return KeyringSecretStore(config.service_name)
