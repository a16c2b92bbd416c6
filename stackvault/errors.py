from .constants import EXIT_CANCELLED, EXIT_CRYPTO, EXIT_FATAL, EXIT_IO, EXIT_VALIDATION


class VaultError(Exception):
    """Base class for StackVault errors."""

    exit_code = EXIT_IO


# Validation: the request cannot be honoured; nothing was changed
class ValidationError(VaultError):
    exit_code = EXIT_VALIDATION


class ItemNotFound(ValidationError):
    pass


class DuplicateEntry(ValidationError):
    pass


class EmptyVault(ValidationError):
    pass


class PasswordRequired(ValidationError):
    pass


class EntryNotFound(ValidationError):
    pass


class InvalidEntryName(ValidationError):
    pass


class DestinationExists(ValidationError):
    pass


class VaultExists(ValidationError):
    pass


class VaultMissing(ValidationError):
    pass


# Filesystem
class VaultIOError(VaultError):
    exit_code = EXIT_IO


class ConfigError(VaultError):
    exit_code = EXIT_IO


# Crypto
class CryptoError(VaultError):
    exit_code = EXIT_CRYPTO


class WrongPassphrase(CryptoError):
    pass


class PassphraseMismatch(CryptoError):
    pass


class EmptyPassphrase(CryptoError):
    pass


# Persisted state does not look the way the operation expects
class StateError(VaultError):
    exit_code = EXIT_IO


class NoArchive(StateError):
    pass


class NoCiphertext(StateError):
    pass


class NoPlaintext(StateError):
    pass


class EmptyLedger(StateError):
    pass


class FatalRecoveryError(VaultError):
    """Rollback itself failed; the vault may no longer be consistent."""

    exit_code = EXIT_FATAL


class OperationCancelled(VaultError):
    exit_code = EXIT_CANCELLED
