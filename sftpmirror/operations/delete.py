"""
Remote (and optionally local) deletion
"""
from pathlib import Path

from ..exceptions import RemoteOperationError
from ..models import TransferOutcome
from ..utils.logging import log, warn
from .batch import remove_command


def confirm(prompt: str, default: bool = False) -> bool:
    """Ask a yes/no question on the terminal; EOF or ^C counts as the default."""
    suffix = "[Y/n]" if default else "[y/N]"
    while True:
        try:
            choice = input(f"{prompt} {suffix}: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return default
        if choice == "":
            return default
        if choice in ("y", "yes"):
            return True
        if choice in ("n", "no"):
            return False
        print("  Please enter y or n.")


def delete_remote(channel, rel_paths: list[str], local_root: Path,
                  also_local: bool = False, dry_run: bool = False) -> list[TransferOutcome]:
    """
    Remove each file on the remote; with also_local, unlink the local copy
    once the remote removal succeeded. One channel call per file; a channel
    that cannot start at all raises instead of failing file by file.
    """
    outcomes = []
    for rel in rel_paths:
        if dry_run:
            log(f"  [DEL-DRY] {rel}")
            outcomes.append(TransferOutcome(rel, True))
            continue
        try:
            result = channel.execute(remove_command(rel))
        except RemoteOperationError as exc:
            outcomes.append(TransferOutcome(rel, False, str(exc)))
            warn(f"  [DEL ✗] {rel}: {exc}")
            continue
        if not result.success:
            outcomes.append(TransferOutcome(rel, False, result.diagnostic))
            warn(f"  [DEL ✗] {rel}: {result.diagnostic}")
            continue

        if also_local:
            try:
                (Path(local_root) / rel).unlink(missing_ok=True)
            except OSError as exc:
                outcomes.append(TransferOutcome(rel, False, f"failed to delete local file: {exc}"))
                warn(f"  [DEL ✗] {rel}: local delete failed: {exc}")
                continue
            log(f"  [DEL ✓] {rel} (locally and remotely)")
        else:
            log(f"  [DEL ✓] {rel}")
        outcomes.append(TransferOutcome(rel, True))
    return outcomes
