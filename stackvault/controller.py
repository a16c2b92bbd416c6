from __future__ import annotations

import enum
import getpass
import logging
import os
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .archive import ArchiveStore
from .backup import BackupManager
from .cancel import CancelToken
from .config import VaultConfig
from .errors import (
    EmptyVault,
    ItemNotFound,
    PasswordRequired,
    StateError,
    VaultIOError,
    VaultMissing,
)
from .fsutil import remove_path
from .gate import EncryptionGate
from .interfaces import Archiver, Cipher, Compressor, Prompt
from .ledger import StackLedger
from .pathutil import entry_name_for


logger = logging.getLogger(__name__)


class VaultState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BACKED_UP = "backed-up"
    DECRYPTING = "decrypting"
    DECOMPRESSED = "decompressed"
    MUTATING = "mutating"
    COMPRESSED = "compressed"
    ENCRYPTING = "encrypting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled-back"


@dataclass
class VaultStatus:
    vault_dir: Path
    encrypted: bool
    representation: Optional[str]
    items: List[str] = field(default_factory=list)
    pending_backup: bool = False

    @property
    def top(self) -> Optional[str]:
        return self.items[-1] if self.items else None


class VaultController:
    """Runs push and pop as all-or-nothing transactions over one vault.

    Every operation snapshots the archive, ledger and config record first, walks the state
    machine (decrypt, decompress, mutate, compress, encrypt) and either commits
    or restores the snapshot. ``config`` is the only source of vault location
    and encryption state; a successful first encryption writes it back.
    """

    def __init__(
        self,
        config: VaultConfig,
        *,
        archiver: Optional[Archiver] = None,
        compressor: Optional[Compressor] = None,
        cipher: Optional[Cipher] = None,
        prompt: Optional[Prompt] = None,
        token: Optional[CancelToken] = None,
    ):
        self.config = config
        layout = config.layout
        self.layout = layout
        self.archive = ArchiveStore(layout, archiver=archiver, compressor=compressor)
        self.ledger = StackLedger(layout.ledger)
        self.backups = BackupManager(layout, config.path)
        self.token = token or CancelToken()
        self.gate = EncryptionGate(layout, cipher=cipher, prompt=self._prompt(prompt))
        self.state = VaultState.IDLE

    def _prompt(self, prompt: Optional[Prompt]) -> Prompt:
        inner = prompt or getpass.getpass

        def _ask(message: str) -> str:
            with self.token.interruptible():
                return inner(message)

        return _ask

    def _advance(self, state: VaultState) -> None:
        self.token.check()
        logger.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    def _ensure_ready(self) -> None:
        if not self.layout.root.is_dir():
            raise VaultMissing(f"Vault directory not found: {self.layout.root}. Run 'stackvault install' first.")
        if self.backups.pending():
            raise StateError(
                "Backups from an interrupted operation are present in "
                f"{self.layout.root}. Run 'stackvault recover' to restore the last committed state."
            )

    def _check_consistency(self) -> None:
        names = self.ledger.names()
        entries = self.archive.list_entries()
        if names != entries:
            raise StateError(
                f"Stack file and archive disagree ({len(names)} stacked item(s), {len(entries)} archive entries)."
            )

    def _unlock(self, use_password: bool, action: str) -> None:
        if not self.config.encrypted:
            return
        if not use_password:
            raise PasswordRequired(f"A password flag is required to {action} an encrypted vault.")
        self._advance(VaultState.DECRYPTING)
        self.gate.decrypt(self.gate.ask_passphrase())

    def _run(self, operation, *args):
        try:
            with self.backups.guard():
                return operation(*args)
        except (OSError, tarfile.TarError) as exc:
            self.state = VaultState.ROLLED_BACK
            raise VaultIOError(str(exc)) from exc
        except BaseException:
            self.state = VaultState.ROLLED_BACK
            raise
        finally:
            self.gate.forget()

    # -------- push --------

    def push(self, item, use_password: bool = False) -> str:
        """Push a file or directory onto the vault and return its entry name."""
        self.state = VaultState.IDLE
        self._advance(VaultState.VALIDATING)
        source = Path(item)
        if not os.path.lexists(source):
            raise ItemNotFound(f"Item '{item}' does not exist")
        name = entry_name_for(source)
        self._ensure_ready()
        name = self._run(self._push, source, name, use_password)
        logger.info("Successfully pushed %s into the vault.", name)
        return name

    def _push(self, source: Path, name: str, use_password: bool) -> str:
        self._advance(VaultState.BACKED_UP)
        self._unlock(use_password, "push to")
        self.archive.decompress()
        self._advance(VaultState.DECOMPRESSED)
        self._check_consistency()

        self._advance(VaultState.MUTATING)
        self.archive.add_entry(name, source)
        self.token.check()
        self.ledger.append(name)

        self._advance(VaultState.COMPRESSED)
        self.archive.compress()

        if use_password:
            self._advance(VaultState.ENCRYPTING)
            self.gate.encrypt()
        self._advance(VaultState.COMMITTED)

        if use_password and not self.config.encrypted:
            # saved inside the transaction; the config record is part of the snapshot
            updated = self.config.replace(encrypted=True)
            updated.save()
            self.config = updated
            logger.info("Vault is now encrypted.")
        return name

    # -------- pop --------

    def pop(self, use_password: bool = False, dest_dir=None) -> Path:
        """Extract the most recently pushed item into ``dest_dir`` (default: cwd) and drop it."""
        self.state = VaultState.IDLE
        self._advance(VaultState.VALIDATING)
        dest = Path(dest_dir) if dest_dir is not None else Path.cwd()
        self._ensure_ready()
        target = self._run(self._pop, dest, use_password)
        logger.info("Successfully popped %s from the vault.", target.name)
        return target

    def _pop(self, dest: Path, use_password: bool) -> Path:
        self._advance(VaultState.BACKED_UP)
        self._unlock(use_password, "pop from")
        if not self.ledger:
            raise EmptyVault("Vault is empty")
        name = self.ledger.peek_last()
        self.archive.decompress()
        self._advance(VaultState.DECOMPRESSED)
        self._check_consistency()

        self._advance(VaultState.MUTATING)
        target = self.archive.extract_entry(name, dest)
        try:
            self.archive.remove_entry(name)
            self.token.check()
            self.ledger.pop_last()

            self._advance(VaultState.COMPRESSED)
            self.archive.compress()

            if self.config.encrypted:
                self._advance(VaultState.ENCRYPTING)
                self.gate.encrypt()
            self._advance(VaultState.COMMITTED)
        except BaseException:
            # The vault goes back to holding the item, so the extracted copy goes away.
            remove_path(target)
            raise
        return target

    # -------- maintenance --------

    def recover(self) -> bool:
        """Roll back leftovers of an interrupted operation. False if there were none."""
        if not self.backups.rollback():
            logger.info("No interrupted operation to recover.")
            return False
        self.state = VaultState.ROLLED_BACK
        # the encryption flag may have been restored along with the archive
        self.config = VaultConfig.load(self.config.path)
        return True

    def status(self) -> VaultStatus:
        if not self.layout.root.is_dir():
            raise VaultMissing(f"Vault directory not found: {self.layout.root}")
        present = self.layout.present()
        return VaultStatus(
            vault_dir=self.layout.root,
            encrypted=self.config.encrypted,
            representation=present[0] if len(present) == 1 else None,
            items=self.ledger.names(),
            pending_backup=self.backups.pending(),
        )
