from pathlib import Path


# Vault directory contents
ARCHIVE_NAME = "archive.vault"
COMPRESSED_SUFFIX = ".gz"
ENCRYPTED_SUFFIX = ".enc"
LEDGER_NAME = "stack.vault"
BACKUP_SUFFIX = ".bak"
TEMP_SUFFIX = ".tmp"

# Defaults outside the vault
DEFAULT_CONFIG_PATH = Path.home() / "vault.conf"
DEFAULT_VAULT_DIR = Path.home() / "vault"

# Config record keys
CONFIG_KEY_DIR = "VAULT_DIR"
CONFIG_KEY_ENCRYPTED = "ENCRYPTED"

# Permissions
DIR_MODE = 0o700
FILE_MODE = 0o600

# Encrypted archive header
CIPHER_MAGIC = b"SVAULT\x00"  # 7 bytes, followed by a one-byte format version
CIPHER_VERSION = 1

GZIP_LEVEL = 9

# Exit codes
EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_IO = 2
EXIT_CRYPTO = 3
EXIT_FATAL = 4
EXIT_CANCELLED = 130
