from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from stackvault.encryption import PassphraseCipher
from stackvault.errors import (
    EmptyPassphrase,
    NoCiphertext,
    NoPlaintext,
    PassphraseMismatch,
    StateError,
    WrongPassphrase,
)
from stackvault.gate import EncryptionGate
from stackvault.layout import COMPRESSED, ENCRYPTED, VaultLayout


# Small Argon2 costs keep the suite fast; the header records them for decryption.
FAST_CIPHER = PassphraseCipher(time_cost=1, memory_cost_kib=8 * 1024, parallelism=1)


def _scripted(*answers):
    it = iter(answers)

    def _prompt(_message: str) -> str:
        return next(it)

    return _prompt


class PassphraseCipherTests(unittest.TestCase):
    def test_roundtrip(self):
        data = os.urandom(5000)
        blob = FAST_CIPHER.encrypt(b"secret", data)
        self.assertNotIn(data[:64], blob)
        self.assertEqual(FAST_CIPHER.decrypt(b"secret", blob), data)

    def test_fresh_salt_and_nonce_each_time(self):
        self.assertNotEqual(FAST_CIPHER.encrypt(b"k", b"same"), FAST_CIPHER.encrypt(b"k", b"same"))

    def test_wrong_passphrase_is_rejected(self):
        blob = FAST_CIPHER.encrypt(b"secret", b"data")
        with self.assertRaises(WrongPassphrase):
            FAST_CIPHER.decrypt(b"Secret", blob)

    def test_tampered_header_is_rejected(self):
        blob = bytearray(FAST_CIPHER.encrypt(b"secret", b"data"))
        blob[10] ^= 0x01  # inside the salt
        with self.assertRaises(WrongPassphrase):
            FAST_CIPHER.decrypt(b"secret", bytes(blob))

    def test_foreign_or_truncated_input(self):
        with self.assertRaises(StateError):
            FAST_CIPHER.decrypt(b"secret", b"short")
        with self.assertRaises(StateError):
            FAST_CIPHER.decrypt(b"secret", b"X" * 200)


class EncryptionGateTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.layout = VaultLayout(Path(tmp.name))
        self.payload = os.urandom(1024)
        self.layout.compressed.write_bytes(self.payload)

    def _gate(self, *answers) -> EncryptionGate:
        return EncryptionGate(self.layout, cipher=FAST_CIPHER, prompt=_scripted(*answers))

    def test_first_time_encrypt_prompts_twice(self):
        gate = self._gate("pw", "pw")
        gate.encrypt()
        self.assertEqual(self.layout.present(), [ENCRYPTED])
        self.assertFalse(gate.has_passphrase)
        self.assertEqual(FAST_CIPHER.decrypt(b"pw", self.layout.encrypted.read_bytes()), self.payload)

    def test_mismatch_leaves_plaintext_untouched(self):
        gate = self._gate("pw", "other")
        with self.assertRaises(PassphraseMismatch):
            gate.encrypt()
        self.assertEqual(self.layout.present(), [COMPRESSED])
        self.assertEqual(self.layout.compressed.read_bytes(), self.payload)
        self.assertFalse(gate.has_passphrase)

    def test_empty_passphrase_refused(self):
        with self.assertRaises(EmptyPassphrase):
            self._gate("", "").encrypt()
        self.assertEqual(self.layout.present(), [COMPRESSED])

    def test_decrypt_caches_passphrase_for_reencrypt(self):
        self._gate("pw", "pw").encrypt()
        gate = self._gate()  # no prompt answers: encrypt must reuse the cached passphrase
        gate.decrypt("pw")
        self.assertEqual(self.layout.present(), [COMPRESSED])
        self.assertEqual(self.layout.compressed.read_bytes(), self.payload)
        self.assertTrue(gate.has_passphrase)
        gate.encrypt()
        self.assertFalse(gate.has_passphrase)
        self.assertEqual(FAST_CIPHER.decrypt(b"pw", self.layout.encrypted.read_bytes()), self.payload)

    def test_wrong_passphrase_keeps_ciphertext(self):
        self._gate("pw", "pw").encrypt()
        before = self.layout.encrypted.read_bytes()
        gate = self._gate()
        with self.assertRaises(WrongPassphrase):
            gate.decrypt("nope")
        self.assertEqual(self.layout.present(), [ENCRYPTED])
        self.assertEqual(self.layout.encrypted.read_bytes(), before)
        self.assertFalse(gate.has_passphrase)

    def test_missing_sources(self):
        gate = self._gate()
        with self.assertRaises(NoCiphertext):
            gate.decrypt("pw")
        self.layout.compressed.unlink()
        with self.assertRaises(NoPlaintext):
            gate.encrypt("pw")

    def test_cache_cleared_when_encrypt_fails(self):
        self._gate("pw", "pw").encrypt()
        gate = self._gate()
        gate.decrypt("pw")
        self.layout.compressed.unlink()
        with self.assertRaises(NoPlaintext):
            gate.encrypt()
        self.assertFalse(gate.has_passphrase)

    def test_caller_buffer_is_wiped_after_reencrypt(self):
        self._gate("pw", "pw").encrypt()
        gate = self._gate()
        secret = bytearray(b"pw")
        gate.decrypt(secret)
        gate.encrypt()
        self.assertEqual(secret, bytearray(2))
        self.assertEqual(FAST_CIPHER.decrypt(b"pw", self.layout.encrypted.read_bytes()), self.payload)

    def test_caller_buffer_is_wiped_on_wrong_passphrase(self):
        self._gate("pw", "pw").encrypt()
        secret = bytearray(b"nope")
        with self.assertRaises(WrongPassphrase):
            self._gate().decrypt(secret)
        self.assertEqual(secret, bytearray(4))

    def test_reencrypt_with_the_cached_buffer(self):
        self._gate("pw", "pw").encrypt()
        gate = self._gate()
        secret = bytearray(b"pw")
        gate.decrypt(secret)
        gate.encrypt(secret)
        self.assertEqual(FAST_CIPHER.decrypt(b"pw", self.layout.encrypted.read_bytes()), self.payload)

    def test_forget(self):
        self._gate("pw", "pw").encrypt()
        gate = self._gate()
        gate.decrypt(b"pw")
        gate.forget()
        self.assertFalse(gate.has_passphrase)


if __name__ == "__main__":
    unittest.main()
