from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .constants import CONFIG_KEY_DIR, CONFIG_KEY_ENCRYPTED, DEFAULT_CONFIG_PATH, DEFAULT_VAULT_DIR
from .errors import ConfigError
from .fsutil import atomic_write_bytes
from .layout import VaultLayout


@dataclass(frozen=True)
class VaultConfig:
    """The persisted config record: where the vault lives and whether it is encrypted.

    Loaded once per invocation and passed explicitly into the controller.
    """

    vault_dir: Path
    encrypted: bool = False
    path: Path = DEFAULT_CONFIG_PATH

    @property
    def layout(self) -> VaultLayout:
        return VaultLayout(self.vault_dir)

    @classmethod
    def parse(cls, text: str, *, path: Path = DEFAULT_CONFIG_PATH) -> "VaultConfig":
        values: Dict[str, str] = {}
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                raise ConfigError(f"{path}:{lineno}: expected KEY=VALUE, got {raw!r}")
            values[key.strip()] = value.strip()

        flag = values.get(CONFIG_KEY_ENCRYPTED)
        if flag not in ("0", "1"):
            raise ConfigError(
                f"Invalid encryption state in config file: {flag if flag is not None else '<missing>'}. "
                "It must be 0 or 1."
            )
        vault_dir = values.get(CONFIG_KEY_DIR) or ""
        return cls(
            vault_dir=Path(vault_dir) if vault_dir else DEFAULT_VAULT_DIR,
            encrypted=(flag == "1"),
            path=path,
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "VaultConfig":
        path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigError(f"Configuration file not found: {path}. Run 'stackvault install' first.") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Could not read configuration file {path}: {exc}") from exc
        return cls.parse(text, path=path)

    def dumps(self) -> str:
        return f"{CONFIG_KEY_DIR}={self.vault_dir}\n{CONFIG_KEY_ENCRYPTED}={1 if self.encrypted else 0}\n"

    def save(self) -> None:
        atomic_write_bytes(self.path, self.dumps().encode("utf-8"))

    def replace(self, **changes) -> "VaultConfig":
        return dataclasses.replace(self, **changes)
