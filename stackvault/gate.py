from __future__ import annotations

import getpass
import logging
from typing import Optional, Union

from .encryption import PassphraseCipher
from .errors import EmptyPassphrase, NoCiphertext, NoPlaintext, PassphraseMismatch
from .fsutil import atomic_write_bytes
from .interfaces import Cipher, Prompt
from .layout import VaultLayout


logger = logging.getLogger(__name__)

Secret = Union[str, bytes, bytearray]


def _to_secret(value: Secret) -> bytearray:
    # a bytearray is taken over as is, so wiping the cache wipes the caller's buffer too
    if isinstance(value, bytearray):
        return value
    if isinstance(value, str):
        return bytearray(value.encode("utf-8"))
    return bytearray(value)


def _wipe(buf: Optional[bytearray]) -> None:
    if buf is not None:
        buf[:] = b"\x00" * len(buf)


class EncryptionGate:
    """Moves the compressed archive between plaintext and ciphertext.

    The passphrase used by ``decrypt`` is cached so the closing ``encrypt`` of
    the same operation can reuse it. The cache is wiped when ``encrypt`` returns
    or raises, and by ``forget``.
    """

    def __init__(self, layout: VaultLayout, *, cipher: Optional[Cipher] = None, prompt: Optional[Prompt] = None):
        self.layout = layout
        self.cipher = cipher or PassphraseCipher()
        self.prompt = prompt or getpass.getpass
        self._passphrase: Optional[bytearray] = None

    @property
    def has_passphrase(self) -> bool:
        return self._passphrase is not None

    def forget(self) -> None:
        _wipe(self._passphrase)
        self._passphrase = None

    def _cache(self, secret: bytearray) -> None:
        if secret is not self._passphrase:
            self.forget()
            self._passphrase = secret

    def ask_passphrase(self) -> bytearray:
        return _to_secret(self.prompt("Enter the passphrase to decrypt the archive: "))

    def decrypt(self, passphrase: Secret) -> None:
        src, dst = self.layout.encrypted, self.layout.compressed
        if not src.exists():
            raise NoCiphertext("No encrypted archive file found to decrypt.")
        secret = _to_secret(passphrase)
        try:
            plaintext = self.cipher.decrypt(bytes(secret), src.read_bytes())
        except BaseException:
            _wipe(secret)
            raise
        atomic_write_bytes(dst, plaintext)
        self._cache(secret)
        src.unlink()
        logger.debug("decrypted %s -> %s", src.name, dst.name)

    def _new_passphrase(self) -> bytearray:
        first = _to_secret(self.prompt("Enter a new passphrase to encrypt the archive: "))
        confirm = _to_secret(self.prompt("Confirm the passphrase: "))
        try:
            if first != confirm:
                raise PassphraseMismatch("Passphrases do not match. Encryption aborted.")
            if not first:
                raise EmptyPassphrase("Passphrase must not be empty. Encryption aborted.")
        except BaseException:
            _wipe(first)
            raise
        finally:
            _wipe(confirm)
        return first

    def encrypt(self, passphrase: Optional[Secret] = None) -> None:
        try:
            src, dst = self.layout.compressed, self.layout.encrypted
            if not src.exists():
                raise NoPlaintext("No archive file found to encrypt.")
            if passphrase is not None:
                self._cache(_to_secret(passphrase))
            elif self._passphrase is None:
                logger.debug("no session passphrase; first-time encryption")
                self._passphrase = self._new_passphrase()
            blob = self.cipher.encrypt(bytes(self._passphrase), src.read_bytes())
            atomic_write_bytes(dst, blob)
            src.unlink()
            logger.debug("encrypted %s -> %s", src.name, dst.name)
        finally:
            self.forget()
