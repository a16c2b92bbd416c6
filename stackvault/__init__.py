"""
StackVault — a personal LIFO vault for files and directories.

Features:

- Push a file or directory onto the vault; pop the most recently pushed item back out.
- The vault is a single tar archive kept gzip-compressed at rest, optionally encrypted
  with XChaCha20-Poly1305 under an Argon2id-derived key.
- A ledger (``stack.vault``) records push order; it always mirrors the archive's entries.
- Every push/pop is transactional: the archive and ledger are backed up first and
  restored verbatim on any failure or interruption.

The programmatic API is ``stackvault.controller.VaultController``; the CLI lives in
``stackvault.cli``.
"""

__version__ = "0.1"

__all__ = [
    "archive",
    "backup",
    "config",
    "controller",
    "encryption",
    "errors",
    "gate",
    "ledger",
]
