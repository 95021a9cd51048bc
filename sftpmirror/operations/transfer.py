"""
Transfer execution: one channel call per decided file
"""
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import RemoteOperationError
from ..models import Direction, TransferDecision, TransferOutcome
from ..utils.file_utils import ensure_local_parent
from ..utils.logging import log, warn
from .batch import download_command, upload_command

# (relative_path, expected_size) -> "" or a diagnostic
Verifier = Callable[[str, int], str]


def _run_one(channel, decision: TransferDecision, local_root: Path,
             verifier: Optional[Verifier]) -> TransferOutcome:
    rel = decision.relative_path
    if decision.direction is Direction.UPLOAD:
        batch = upload_command(rel)
    else:
        ensure_local_parent(local_root, rel)
        batch = download_command(rel)

    result = channel.execute(batch)
    if not result.success:
        return TransferOutcome(rel, False, result.diagnostic or f"sftp exited {result.returncode}")

    if verifier is not None and decision.direction is Direction.UPLOAD:
        try:
            expected = (local_root / rel).stat().st_size
        except OSError as exc:
            return TransferOutcome(rel, False, f"local file vanished: {exc}")
        problem = verifier(rel, expected)
        if problem:
            return TransferOutcome(rel, False, problem)
    return TransferOutcome(rel, True)


def execute_transfers(decisions: list[TransferDecision], channel, local_root: Path,
                      dry_run: bool = False,
                      verifier: Optional[Verifier] = None) -> list[TransferOutcome]:
    """
    Run every upload/download decision exactly once, in order; SKIP entries
    are passed over. A failed transfer is recorded and the next file still runs;
    ConfigurationError and ChannelStartupError abort the whole run.
    """
    local_root = Path(local_root)
    outcomes: list[TransferOutcome] = []
    for decision in decisions:
        if not decision.is_transfer:
            continue
        tag = "UPLOAD" if decision.direction is Direction.UPLOAD else "DOWNLOAD"
        rel = decision.relative_path
        if dry_run:
            log(f"  [{tag}-DRY] {rel}")
            outcomes.append(TransferOutcome(rel, True))
            continue

        try:
            outcome = _run_one(channel, decision, local_root, verifier)
        except (RemoteOperationError, OSError) as exc:
            outcome = TransferOutcome(rel, False, str(exc))

        if outcome.success:
            log(f"  [{tag} ✓] {rel}")
        else:
            warn(f"  [{tag} ✗] {rel}: {outcome.diagnostic}")
        outcomes.append(outcome)
    return outcomes


def summarize(outcomes: list[TransferOutcome]) -> tuple[int, int]:
    """(succeeded, failed)"""
    ok = sum(1 for o in outcomes if o.success)
    return ok, len(outcomes) - ok
