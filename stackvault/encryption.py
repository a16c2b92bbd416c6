from __future__ import annotations

import os
import struct
from dataclasses import dataclass

from argon2.low_level import Type as _ArgonType, hash_secret_raw as _argon_hash
from Cryptodome.Cipher import ChaCha20_Poly1305

from .constants import CIPHER_MAGIC, CIPHER_VERSION
from .errors import StateError, WrongPassphrase


NONCE_SIZE = 24  # 24-byte nonce selects XChaCha20-Poly1305
TAG_SIZE = 16
KEY_SIZE = 32
SALT_SIZE = 16

# Argon2id defaults for the vault key
ARGON_TIME_COST = 3
ARGON_MEMORY_COST_KIB = 256 * 1024  # 256 MiB
ARGON_PARALLELISM = 4

# Bounds accepted when reading a header back
_MAX_TIME_COST = 64
_MAX_MEMORY_COST_KIB = 4 * 1024 * 1024  # 4 GiB
_MAX_PARALLELISM = 64

# magic[7], version u8, salt[16], time_cost u32, memory_cost_kib u32, parallelism u32, nonce[24]
_HEADER_STRUCT = struct.Struct("<7sB16sIII24s")


@dataclass(frozen=True)
class KdfParams:
    salt: bytes
    time_cost: int = ARGON_TIME_COST
    memory_cost_kib: int = ARGON_MEMORY_COST_KIB
    parallelism: int = ARGON_PARALLELISM

    def check(self) -> None:
        if len(self.salt) != SALT_SIZE:
            raise StateError("Encrypted archive header has a bad salt length")
        if not (1 <= self.time_cost <= _MAX_TIME_COST):
            raise StateError(f"Unsupported Argon2 time cost in archive header: {self.time_cost}")
        if not (1 <= self.parallelism <= _MAX_PARALLELISM):
            raise StateError(f"Unsupported Argon2 parallelism in archive header: {self.parallelism}")
        if not (8 * self.parallelism <= self.memory_cost_kib <= _MAX_MEMORY_COST_KIB):
            raise StateError(f"Unsupported Argon2 memory cost in archive header: {self.memory_cost_kib}")

    def derive_key(self, passphrase: bytes) -> bytes:
        return _argon_hash(
            bytes(passphrase),
            self.salt,
            time_cost=self.time_cost,
            memory_cost=self.memory_cost_kib,
            parallelism=self.parallelism,
            hash_len=KEY_SIZE,
            type=_ArgonType.ID,
        )


class PassphraseCipher:
    """Whole-file AEAD: Argon2id-derived key, XChaCha20-Poly1305.

    Layout of an encrypted archive:
        header (magic, version, KDF params, nonce) || ciphertext || tag

    The header is authenticated as associated data, so a wrong passphrase and a
    tampered header both fail the same deterministic tag check.
    """

    def __init__(
        self,
        *,
        time_cost: int = ARGON_TIME_COST,
        memory_cost_kib: int = ARGON_MEMORY_COST_KIB,
        parallelism: int = ARGON_PARALLELISM,
    ):
        self.time_cost = time_cost
        self.memory_cost_kib = memory_cost_kib
        self.parallelism = parallelism

    def _new_params(self) -> KdfParams:
        params = KdfParams(
            salt=os.urandom(SALT_SIZE),
            time_cost=self.time_cost,
            memory_cost_kib=self.memory_cost_kib,
            parallelism=self.parallelism,
        )
        params.check()
        return params

    def encrypt(self, passphrase: bytes, plaintext: bytes) -> bytes:
        params = self._new_params()
        nonce = os.urandom(NONCE_SIZE)
        header = _HEADER_STRUCT.pack(
            CIPHER_MAGIC,
            CIPHER_VERSION,
            params.salt,
            params.time_cost,
            params.memory_cost_kib,
            params.parallelism,
            nonce,
        )
        cipher = ChaCha20_Poly1305.new(key=params.derive_key(passphrase), nonce=nonce)
        cipher.update(header)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return header + ciphertext + tag

    def decrypt(self, passphrase: bytes, blob: bytes) -> bytes:
        if len(blob) < _HEADER_STRUCT.size + TAG_SIZE:
            raise StateError("Encrypted archive is truncated")
        header = blob[: _HEADER_STRUCT.size]
        magic, version, salt, time_cost, memory_cost_kib, parallelism, nonce = _HEADER_STRUCT.unpack(header)
        if magic != CIPHER_MAGIC:
            raise StateError("Not a StackVault encrypted archive")
        if version != CIPHER_VERSION:
            raise StateError(f"Unsupported encrypted archive version: {version}")
        params = KdfParams(salt=salt, time_cost=time_cost, memory_cost_kib=memory_cost_kib, parallelism=parallelism)
        params.check()
        ciphertext = blob[_HEADER_STRUCT.size : -TAG_SIZE]
        tag = blob[-TAG_SIZE:]
        cipher = ChaCha20_Poly1305.new(key=params.derive_key(passphrase), nonce=nonce)
        cipher.update(header)
        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as exc:
            raise WrongPassphrase("Failed to decrypt archive: wrong passphrase or corrupted data") from exc
