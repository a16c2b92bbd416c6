from __future__ import annotations

import io
import logging
import os
import signal
import subprocess
import sys
import tempfile
import time
import unittest
from pathlib import Path
from typing import Dict
from unittest import mock

from stackvault import cli
from stackvault.archive import ArchiveStore
from stackvault.controller import VaultController
from stackvault.encryption import PassphraseCipher
from stackvault.provision import install


def _build_fixture_tree(root: Path) -> Dict[str, bytes]:
    files: Dict[str, bytes] = {}
    (root / "docs" / "notes").mkdir(parents=True)
    content = b"hello world\n" * 20
    (root / "docs" / "readme.txt").write_bytes(content)
    files["docs/readme.txt"] = content

    bin_data = os.urandom(2048)
    (root / "docs" / "notes" / "binary.bin").write_bytes(bin_data)
    os.chmod(root / "docs" / "notes" / "binary.bin", 0o600)
    files["docs/notes/binary.bin"] = bin_data

    (root / "docs" / "notes" / "empty.txt").write_text("")
    files["docs/notes/empty.txt"] = b""

    (root / "single.txt").write_bytes(b"just one file\n")
    return files


def _snapshot(vault: Path) -> Dict[str, bytes]:
    return {p.name: p.read_bytes() for p in sorted(vault.iterdir()) if p.is_file()}


class CLIIntegrationTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.home = Path(tmp.name)
        self.config = self.home / "vault.conf"
        self.vault = self.home / "vault"
        self.src = self.home / "src"
        self.src.mkdir()
        self.files = _build_fixture_tree(self.src)

    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None):
        cmd = [sys.executable, "-m", "stackvault.cli", "--config", str(self.config)] + list(args)
        env = os.environ.copy()
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        env["HOME"] = str(self.home)
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def test_install_push_pop_uninstall(self):
        installed = self.run_cli(["install", str(self.vault)])
        self.assertIn("Installation complete", installed.stdout)
        self.assertTrue((self.vault / "archive.vault.gz").exists())
        self.assertEqual((self.vault / "stack.vault").read_bytes(), b"")
        pristine = _snapshot(self.vault)

        push_dir = self.run_cli(["push", "docs"], cwd=self.src)
        self.assertIn("Successfully pushed docs into the vault.", push_dir.stdout)
        self.run_cli(["push", str(self.src / "single.txt")])

        status = self.run_cli(["status"])
        self.assertIn("Items: 2", status.stdout)
        self.assertIn("Next to pop: single.txt", status.stdout)
        self.assertIn("Encrypted: no", status.stdout)

        out = self.home / "out"
        out.mkdir()
        first = self.run_cli(["pop"], cwd=out)
        self.assertIn("Successfully popped single.txt from the vault.", first.stdout)
        self.assertEqual((out / "single.txt").read_bytes(), b"just one file\n")

        self.run_cli(["pop", "--outdir", str(out)])
        for rel, data in self.files.items():
            self.assertEqual((out / rel).read_bytes(), data, rel)

        self.assertEqual(_snapshot(self.vault), pristine)

        uninstall = self.run_cli(["uninstall"])
        self.assertIn("Uninstallation complete", uninstall.stdout)
        self.assertFalse(self.vault.exists())
        self.assertFalse(self.config.exists())

    def test_validation_failures_exit_one_and_leave_vault_alone(self):
        self.run_cli(["install", str(self.vault)])
        before = _snapshot(self.vault)

        empty = self.run_cli(["pop"], expect=1, cwd=self.home)
        self.assertIn("Vault is empty", empty.stderr)

        missing = self.run_cli(["push", str(self.src / "nope.txt")], expect=1)
        self.assertIn("does not exist", missing.stderr)
        self.assertEqual(_snapshot(self.vault), before)

        self.run_cli(["push", str(self.src / "single.txt")])
        after_push = _snapshot(self.vault)
        dup = self.run_cli(["push", str(self.src / "single.txt")], expect=1)
        self.assertIn("already exists", dup.stderr)
        self.assertEqual(_snapshot(self.vault), after_push)

        clobber = self.run_cli(["pop"], expect=1, cwd=self.src)
        self.assertIn("Refusing to overwrite", clobber.stderr)
        self.assertEqual(_snapshot(self.vault), after_push)

    def test_encrypted_vault_requires_password_flag(self):
        self.run_cli(["install", str(self.vault)])
        self.run_cli(["push", str(self.src / "single.txt")])
        self.config.write_text(f"VAULT_DIR={self.vault}\nENCRYPTED=1\n", encoding="utf-8")
        before = _snapshot(self.vault)

        proc = self.run_cli(["pop"], expect=1, cwd=self.home)
        self.assertIn("password flag is required", proc.stderr)
        self.assertEqual(_snapshot(self.vault), before)
        self.assertFalse(any(p.suffix == ".bak" for p in self.vault.iterdir()))

    def test_install_refuses_existing_dir_and_setup_relocates(self):
        self.run_cli(["install", str(self.vault)])
        again = self.run_cli(["install", str(self.vault)], expect=1)
        self.assertIn("already exists", again.stderr)

        self.run_cli(["push", str(self.src / "single.txt")])
        moved = self.home / "moved"
        setup = self.run_cli(["setup", str(moved)])
        self.assertIn("relocated", setup.stdout)
        self.assertFalse(self.vault.exists())
        self.assertIn(f"VAULT_DIR={moved}", self.config.read_text(encoding="utf-8"))
        self.assertIn("Items: 1", self.run_cli(["status"]).stdout)

    def test_missing_config_is_reported(self):
        proc = self.run_cli(["push", str(self.src / "single.txt")], expect=2)
        self.assertIn("Configuration file not found", proc.stderr)

    def test_recover_reports_nothing_to_do(self):
        self.run_cli(["install", str(self.vault)])
        proc = self.run_cli(["recover"])
        self.assertIn("Nothing to recover.", proc.stdout)


@unittest.skipUnless(hasattr(signal, "SIGTERM") and os.name == "posix", "POSIX signals required")
class SignalRollbackTests(unittest.TestCase):
    """Signals delivered to a running command roll the vault back (run in-process)."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.home = Path(tmp.name)
        self.config = install(self.home / "vault.conf", self.home / "vault")
        self.item = self.home / "item.txt"
        self.item.write_bytes(b"payload\n")
        log = logging.getLogger("stackvault")
        self.addCleanup(setattr, log, "propagate", log.propagate)
        self.addCleanup(log.setLevel, log.level)
        self.addCleanup(setattr, log, "handlers", list(log.handlers))

    def run_main(self, args):
        stderr = io.StringIO()
        with mock.patch("sys.stderr", stderr), mock.patch("sys.stdout", io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["--config", str(self.config.path)] + list(args))
        return ctx.exception.code, stderr.getvalue()

    def test_sigint_at_passphrase_prompt(self):
        fast = PassphraseCipher(time_cost=1, memory_cost_kib=8 * 1024, parallelism=1)
        answers = iter(["pw", "pw"])
        VaultController(self.config, cipher=fast, prompt=lambda _m: next(answers)).push(self.item, use_password=True)
        before = _snapshot(self.config.vault_dir)
        config_before = self.config.path.read_text(encoding="utf-8")
        previous = signal.getsignal(signal.SIGINT)

        def _interrupted_prompt(_message=""):
            os.kill(os.getpid(), signal.SIGINT)
            time.sleep(5)
            return "never used"

        with mock.patch("getpass.getpass", _interrupted_prompt):
            code, err = self.run_main(["pop", "-p", "--outdir", str(self.home)])

        self.assertEqual(code, 130)
        self.assertIn("SIGINT", err)
        self.assertEqual(_snapshot(self.config.vault_dir), before)
        self.assertEqual(self.config.path.read_text(encoding="utf-8"), config_before)
        self.assertFalse((self.home / "vault.conf.bak").exists())
        self.assertIs(signal.getsignal(signal.SIGINT), previous)

    def test_sigterm_during_push(self):
        before = _snapshot(self.config.vault_dir)
        previous = signal.getsignal(signal.SIGTERM)
        real_add = ArchiveStore.add_entry

        def _add_then_terminate(store, name, source):
            real_add(store, name, source)
            os.kill(os.getpid(), signal.SIGTERM)

        with mock.patch.object(ArchiveStore, "add_entry", autospec=True, side_effect=_add_then_terminate):
            code, err = self.run_main(["push", str(self.item)])

        self.assertEqual(code, 130)
        self.assertIn("SIGTERM", err)
        self.assertIn("rolled back", err)
        self.assertEqual(_snapshot(self.config.vault_dir), before)
        self.assertIs(signal.getsignal(signal.SIGTERM), previous)


if __name__ == "__main__":
    unittest.main()
