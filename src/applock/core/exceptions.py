"""
Exceptions for the applock core.
Everything raised on purpose derives from AppLockError so callers have one
general error catcher.
"""


class AppLockError(Exception):
    # general container for errors
    pass


class ConfigurationError(AppLockError):
    # raised when an operation does not match the configured/not-configured state
    pass


class AlreadyConfiguredError(ConfigurationError):
    # raised when configuring while a keyset already exists
    pass


class NotConfiguredError(ConfigurationError):
    # raised when an operation needs a keyset that does not exist
    pass


class WeakPassphraseError(AppLockError):
    # raised when a passphrase is below the minimum length
    pass


class InvalidPassphraseError(AppLockError):
    # wrong passphrase and corrupted key material are deliberately the same error
    pass


class StorageError(AppLockError):
    # raised on filesystem or secret store I/O failures
    pass


class DatabaseLockedError(StorageError):
    # raised when the database is opened without a session credential
    pass


class CodecError(AppLockError):
    # raised when a persisted record is malformed
    pass


class KdfError(AppLockError):
    # raised on invalid key derivation parameters
    pass


class CipherError(AppLockError):
    # raised when the AEAD cipher cannot be initialized
    pass
