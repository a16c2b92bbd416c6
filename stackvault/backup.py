from __future__ import annotations

import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import FatalRecoveryError, StateError, VaultIOError
from .fsutil import fsync_dir, temp_sibling
from .layout import COMPRESSED, ENCRYPTED, RAW, VaultLayout


logger = logging.getLogger(__name__)

# Restore preference when (abnormally) more than one archive backup exists
_RESTORE_ORDER = (ENCRYPTED, COMPRESSED, RAW)


class BackupManager:
    """Snapshot / commit / rollback of the persisted archive, ledger and config record.

    Backups are ``*.bak`` siblings of the live files and exist only while an
    operation is in flight. Each backup is written to a temp file and renamed, so
    a present ``.bak`` is always complete.

    The ledger backup marks an open transaction: ``snapshot`` writes it last,
    ``commit`` removes it first and ``rollback`` restores it last. Archive or
    config backups found without it are leftovers of a finished commit (or of a
    snapshot that never completed) and are simply discarded.
    """

    def __init__(self, layout: VaultLayout, config_path: Optional[Path] = None):
        self.layout = layout
        self.config_path = Path(config_path) if config_path is not None else None

    # -------- inspection --------

    def archive_backups(self) -> Dict[str, Path]:
        found: Dict[str, Path] = {}
        for rep, live in self.layout.archives().items():
            bak = self.layout.backup_of(live)
            if bak.exists():
                found[rep] = bak
        return found

    @property
    def ledger_backup(self) -> Path:
        return self.layout.backup_of(self.layout.ledger)

    @property
    def config_backup(self) -> Optional[Path]:
        if self.config_path is None:
            return None
        return self.layout.backup_of(self.config_path)

    def _covered_files(self) -> List[Path]:
        """Live files backed up alongside the ledger."""
        files = list(self.layout.archives().values())
        if self.config_path is not None:
            files.append(self.config_path)
        return files

    def pending(self) -> bool:
        """True when an operation was interrupted before it committed."""
        return self.ledger_backup.exists()

    # -------- lifecycle --------

    def _copy(self, live: Path) -> None:
        bak = self.layout.backup_of(live)
        tmp = temp_sibling(bak)
        shutil.copy2(live, tmp)
        with open(tmp, "rb+") as fh:
            os.fsync(fh.fileno())
        os.replace(tmp, bak)

    def _discard(self) -> None:
        # ledger backup first: once it is gone the transaction counts as closed
        for live in [self.layout.ledger] + self._covered_files():
            bak = self.layout.backup_of(live)
            temp_sibling(bak).unlink(missing_ok=True)
            bak.unlink(missing_ok=True)

    def _sync_dirs(self) -> None:
        fsync_dir(self.layout.root)
        if self.config_path is not None and self.config_path.parent != self.layout.root:
            fsync_dir(self.config_path.parent)

    def snapshot(self) -> None:
        """Back up the persisted archive representation, the config record and the ledger.

        Repeated calls overwrite the previous backup. On failure no backup is
        left behind and ``VaultIOError`` is raised; the caller must not mutate.
        """
        try:
            current = self.layout.current()
        except ValueError as exc:
            raise StateError(f"Cannot snapshot an unsettled vault: {exc}") from exc
        if not self.layout.ledger.exists():
            raise StateError(f"Stack file is missing: {self.layout.ledger}")
        try:
            self._discard()
            if current is not None:
                self._copy(self.layout.archive(current))
            else:
                logger.info("No archive present; nothing to back up besides the stack file.")
            if self.config_path is not None and self.config_path.exists():
                self._copy(self.config_path)
            self._sync_dirs()
            self._copy(self.layout.ledger)
            fsync_dir(self.layout.root)
        except OSError as exc:
            try:
                self._discard()
            except OSError as cleanup_exc:
                logger.error("Failed to remove partial backup: %s", cleanup_exc)
            raise VaultIOError(f"Failed to create backup before operation: {exc}") from exc
        logger.debug("snapshot taken (archive=%s)", current)

    def commit(self) -> None:
        """Close the transaction; the operation's result becomes the settled state.

        Only removing the ledger backup can fail the commit. Leftover archive or
        config backups are logged and discarded by the next snapshot.
        """
        try:
            self.ledger_backup.unlink(missing_ok=True)
            fsync_dir(self.layout.root)
        except OSError as exc:
            raise VaultIOError(
                f"Operation finished but could not be committed: {exc}. "
                "Run 'stackvault recover' to return the vault to its state before the operation."
            ) from exc
        try:
            self._discard()
            self._sync_dirs()
        except OSError as exc:
            logger.warning("Committed, but stale backups could not be removed (%s); the next operation removes them.", exc)
        logger.debug("backups committed")

    def rollback(self) -> bool:
        """Restore archive, config record and ledger from backup, then delete the backups.

        Returns False (and logs) when no open transaction was found; stale
        backups of a finished commit are discarded in that case.

        Raises:
            FatalRecoveryError: the restore itself failed; the vault may be inconsistent.
        """
        if not self.ledger_backup.exists():
            if self.archive_backups() or (self.config_backup is not None and self.config_backup.exists()):
                logger.info("Discarding backups left over by a finished commit.")
                try:
                    self._discard()
                except OSError as exc:
                    raise VaultIOError(f"Failed to remove stale backups: {exc}") from exc
            else:
                logger.info("No backup found to roll back.")
            return False
        archive_baks = self.archive_backups()
        try:
            # The ledger backup is restored last, so an interrupted rollback can be rerun.
            if archive_baks:
                rep = next(r for r in _RESTORE_ORDER if r in archive_baks)
                for live in self.layout.archives().values():
                    live.unlink(missing_ok=True)
                for tmp in self.layout.temp_files():
                    tmp.unlink()
                os.replace(archive_baks[rep], self.layout.archive(rep))
                logger.info("Restored %s archive from backup.", rep)
            else:
                logger.info("No backup archive found to roll back.")
            config_bak = self.config_backup
            if config_bak is not None and config_bak.exists():
                os.replace(config_bak, self.config_path)
                logger.info("Restored config record from backup.")
            self._sync_dirs()
            os.replace(self.ledger_backup, self.layout.ledger)
            logger.info("Restored stack file from backup.")
            self._discard()
            fsync_dir(self.layout.root)
        except OSError as exc:
            raise FatalRecoveryError(
                f"Rollback failed: unable to restore vault from backup: {exc}. "
                f"Vault integrity is no longer guaranteed; inspect {self.layout.root} manually."
            ) from exc
        return True

    @contextmanager
    def guard(self) -> Iterator[None]:
        """Run a block as one transaction: snapshot, then commit or roll back."""
        self.snapshot()
        try:
            yield
        except BaseException as exc:
            logger.warning("Operation failed (%s); rolling back.", str(exc) or type(exc).__name__)
            try:
                self.rollback()
            except FatalRecoveryError as fatal:
                raise fatal from exc
            raise
        self.commit()
