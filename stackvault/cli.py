from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from stackvault import __version__
from stackvault.cancel import CancelToken, cancel_on_signals
from stackvault.config import VaultConfig
from stackvault.constants import DEFAULT_CONFIG_PATH, EXIT_CANCELLED
from stackvault.controller import VaultController
from stackvault.errors import FatalRecoveryError, OperationCancelled, VaultError
from stackvault.provision import install, setup, uninstall


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    log = logging.getLogger("stackvault")
    log.handlers[:] = [handler]
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)
    log.propagate = False


def _controller(config_path: Path, token: CancelToken) -> VaultController:
    return VaultController(VaultConfig.load(config_path), token=token)


def cmd_install(config_path: Path, vault_dir: Optional[str] = None) -> bool:
    """Create a new vault.

    Args:
        config_path: Config record to write.
        vault_dir: Directory for the vault; defaults to ~/vault.
    """
    config = install(config_path, Path(vault_dir) if vault_dir else None)
    print(f"Installation complete. Vault directory: {config.vault_dir}")
    return True


def cmd_setup(config_path: Path, new_dir: str) -> bool:
    """Relocate the vault to a directory that does not exist yet."""
    config = setup(VaultConfig.load(config_path), Path(new_dir))
    print(f"Setup complete. Vault has been relocated to: {config.vault_dir}")
    return True


def cmd_uninstall(config_path: Path) -> bool:
    removed = uninstall(config_path)
    print(f"Uninstallation complete. Vault has been removed: {removed}")
    return True


def cmd_push(config_path: Path, item: str, *, use_password: bool = False, token: Optional[CancelToken] = None) -> bool:
    """Push a file or directory onto the vault.

    Args:
        config_path: Config record locating the vault.
        item: Path of the file or directory to push; stored under its base name.
        use_password: Encrypt the vault (prompting for a new passphrase the first
            time), or unlock an already encrypted vault.
    """
    token = token or CancelToken()
    name = _controller(config_path, token).push(item, use_password=use_password)
    print(f"Successfully pushed {name} into the vault.")
    return True


def cmd_pop(config_path: Path, *, use_password: bool = False, outdir: str = ".", token: Optional[CancelToken] = None) -> bool:
    """Extract the most recently pushed item into ``outdir`` and remove it from the vault."""
    token = token or CancelToken()
    target = _controller(config_path, token).pop(use_password=use_password, dest_dir=Path(outdir))
    print(f"Successfully popped {target.name} from the vault.")
    return True


def cmd_status(config_path: Path) -> bool:
    config = VaultConfig.load(config_path)
    st = VaultController(config).status()
    print(f"Vault: {st.vault_dir}")
    print(f"  Encrypted: {'yes' if st.encrypted else 'no'}")
    print(f"  Archive: {st.representation or 'unsettled'}")
    print(f"  Items: {len(st.items)}")
    if st.top:
        print(f"  Next to pop: {st.top}")
    if st.pending_backup:
        print("  Warning: an interrupted operation left backups behind; run 'stackvault recover'.")
    return True


def cmd_recover(config_path: Path) -> bool:
    if _controller(config_path, CancelToken()).recover():
        print("Recovered vault from backup.")
    else:
        print("Nothing to recover.")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="stackvault",
        description="Personal LIFO vault: push files and directories in, pop the latest one out.",
        epilog="Every push/pop is transactional: on any failure or interruption the vault is rolled back.",
    )
    ap.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Config record path (default: ~/vault.conf)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Log each state transition")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_install = sub.add_parser("install", help="Create a new vault")
    ap_install.add_argument("dir", nargs="?", help="Vault directory (default: ~/vault)")

    ap_setup = sub.add_parser("setup", help="Relocate the vault")
    ap_setup.add_argument("new_dir", help="New vault directory (must not exist)")

    ap_push = sub.add_parser("push", help="Push a file or directory onto the vault")
    ap_push.add_argument("-p", "--password", action="store_true", help="Use a passphrase (encrypts the vault)")
    ap_push.add_argument("item", help="File or directory to push")

    ap_pop = sub.add_parser("pop", help="Pop the most recently pushed item into the current directory")
    ap_pop.add_argument("-p", "--password", action="store_true", help="Passphrase-protected vault")
    ap_pop.add_argument("--outdir", default=".", help="Extract into this directory instead of the current one")

    sub.add_parser("uninstall", help="Remove the vault and its config record")
    sub.add_parser("status", help="Show vault location, encryption and stack contents")
    sub.add_parser("recover", help="Roll back an interrupted operation")

    args = ap.parse_args(argv)
    _configure_logging(args.verbose)
    config_path = Path(args.config).expanduser()
    try:
        with cancel_on_signals(CancelToken()) as token:
            if args.cmd == "install":
                cmd_install(config_path, args.dir)
            elif args.cmd == "setup":
                cmd_setup(config_path, args.new_dir)
            elif args.cmd == "push":
                cmd_push(config_path, args.item, use_password=args.password, token=token)
            elif args.cmd == "pop":
                cmd_pop(config_path, use_password=args.password, outdir=args.outdir, token=token)
            elif args.cmd == "uninstall":
                cmd_uninstall(config_path)
            elif args.cmd == "status":
                cmd_status(config_path)
            elif args.cmd == "recover":
                cmd_recover(config_path)
            else:
                raise RuntimeError("Unknown command")
    except FatalRecoveryError as e:
        print("!" * 72, file=sys.stderr)
        print(f"FATAL: {e}", file=sys.stderr)
        print("The vault may be inconsistent. Do not push or pop until it has been inspected.", file=sys.stderr)
        print("!" * 72, file=sys.stderr)
        sys.exit(e.exit_code)
    except OperationCancelled as e:
        print(f"{e}. Vault rolled back to its last committed state.", file=sys.stderr)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print("Process interrupted. Vault rolled back to its last committed state.", file=sys.stderr)
        sys.exit(EXIT_CANCELLED)
    except VaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)


if __name__ == "__main__":
    main()
