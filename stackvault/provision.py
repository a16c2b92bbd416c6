"""Creating, relocating and removing a vault.

Plain directory bookkeeping around the transactional core: these helpers never
touch archive contents beyond creating the initial empty archive.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .archive import ArchiveStore
from .config import VaultConfig
from .constants import DEFAULT_CONFIG_PATH, DEFAULT_VAULT_DIR, DIR_MODE
from .errors import ConfigError, ValidationError, VaultExists, VaultIOError, VaultMissing
from .ledger import StackLedger


logger = logging.getLogger(__name__)


def install(config_path: Optional[Path] = None, vault_dir: Optional[Path] = None) -> VaultConfig:
    """Create a new, empty, unencrypted vault and write its config record.

    Args:
        config_path: Where to write the config record (default ``~/vault.conf``).
        vault_dir: Vault directory to create (default ``~/vault``). Must not exist.

    Returns:
        The freshly written config.
    """
    config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    root = Path(os.path.realpath(vault_dir if vault_dir is not None else DEFAULT_VAULT_DIR))
    if root.exists():
        raise VaultExists(f"Vault directory already exists: {root}")

    config = VaultConfig(vault_dir=root, encrypted=False, path=config_path)
    try:
        root.mkdir(parents=True, mode=DIR_MODE)
        os.chmod(root, DIR_MODE)
        ArchiveStore(config.layout).create_empty()
        StackLedger(config.layout.ledger).create()
        config.save()
    except OSError as exc:
        shutil.rmtree(root, ignore_errors=True)
        raise VaultIOError(f"Failed to create vault at {root}: {exc}") from exc
    logger.info("Installation complete. Vault directory: %s", root)
    return config


def setup(config: VaultConfig, new_dir: Path) -> VaultConfig:
    """Move the vault to ``new_dir`` and point the config record at it.

    The move is undone if the config record cannot be rewritten.
    """
    if not str(new_dir):
        raise ValidationError("No new directory specified for setup")
    target = Path(os.path.realpath(new_dir))
    if target.exists():
        raise VaultExists(f"The specified directory already exists: {target}")
    source = config.vault_dir
    if not source.is_dir():
        raise VaultMissing(f"Vault directory not found: {source}")

    try:
        shutil.move(str(source), str(target))
    except OSError as exc:
        raise VaultIOError(f"Failed to move vault to {target}: {exc}") from exc

    updated = config.replace(vault_dir=target)
    try:
        updated.save()
    except OSError as exc:
        shutil.move(str(target), str(source))
        raise ConfigError(f"Failed to update configuration file with new vault path: {exc}") from exc
    logger.info("Setup complete. Vault has been relocated to: %s", target)
    return updated


def uninstall(config_path: Optional[Path] = None) -> Path:
    """Delete the vault directory and its config record. Returns the removed directory."""
    config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise ConfigError("Configuration file not found. Uninstallation may have been completed already.")
    config = VaultConfig.load(config_path)
    try:
        if config.vault_dir.exists():
            shutil.rmtree(config.vault_dir)
        else:
            logger.warning("Vault directory %s was already gone.", config.vault_dir)
        config_path.unlink()
    except OSError as exc:
        raise VaultIOError(f"Failed to remove vault: {exc}") from exc
    logger.info("Uninstallation complete. Vault has been removed.")
    return config.vault_dir
