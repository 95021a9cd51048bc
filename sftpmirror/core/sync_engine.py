"""
Reconciliation of local and remote state, and the orchestration of a run
"""
from pathlib import Path, PurePosixPath
from typing import Mapping, Optional

from ..config import ConnectionProfile
from ..exceptions import SftpMirrorError
from ..models import (Direction, LocalFileRecord, Reason, RemoteEntry,
                      TransferDecision, TransferOutcome)
from ..operations.delete import confirm
from ..operations.scanner import (local_list_all, local_list_dir, relative_remote_files,
                                  walk_remote_tree)
from ..operations.transfer import execute_transfers, summarize
from ..utils.file_utils import format_size, format_size_diff, format_timestamp, local_record
from ..utils.ignore_patterns import compile_patterns, is_ignored
from ..utils.logging import log, set_verbose, warn
from .channel import CommandChannel
from .ssh_manager import ConnectionPool, UploadVerifier


def _remote_meta(value) -> tuple[int, int, bool]:
    """(mtime, size, is_dir) from a RemoteEntry or a plain {mtime, size} mapping."""
    if isinstance(value, RemoteEntry):
        return value.mtime, value.size, value.is_dir
    return int(value.get("mtime") or 0), int(value.get("size") or 0), bool(value.get("is_dir", False))


def reconcile(local_files: list[LocalFileRecord],
              remote_tree: Mapping,
              remote_root: str,
              ignore_patterns: list,
              report_ignored: bool = False) -> list[TransferDecision]:
    """
    Decide, per path, whether to upload, download or skip.

    Local file, no remote counterpart      → UPLOAD / NEW
    local mtime > remote mtime             → UPLOAD / LOCAL_NEWER
    remote mtime > local mtime             → DOWNLOAD / REMOTE_NEWER
    equal mtimes                           → SKIP / IDENTICAL
    local file, remote directory           → SKIP / REMOTE_IS_DIR
    remote file, no readable local file    → DOWNLOAD / NEW

    Paths matching an ignore pattern produce no decision at all (or a
    SKIP / IGNORED one when report_ignored is set). Remote directories are
    never transferred, and a local file never replaces one. The result is
    sorted by relative path.
    """
    patterns = compile_patterns(p for p in ignore_patterns if isinstance(p, str))
    patterns += [p for p in ignore_patterns if not isinstance(p, str)]
    prefix = remote_root.rstrip("/") + "/"

    decisions: dict[str, TransferDecision] = {}
    present_locally: set[str] = set()

    def _ignored(rel: str) -> bool:
        if not is_ignored(rel, patterns):
            return False
        if report_ignored:
            decisions[rel] = TransferDecision(rel, Direction.SKIP, Reason.IGNORED)
        return True

    for rec in local_files:
        rel = rec.relative_path
        if _ignored(rel) or not rec.exists:
            continue
        present_locally.add(rel)
        remote = remote_tree.get(prefix + rel)
        r_mtime, r_size, r_is_dir = _remote_meta(remote) if remote is not None else (None, 0, False)

        if remote is None:
            decisions[rel] = TransferDecision(rel, Direction.UPLOAD, Reason.NEW,
                                              old_mtime=None, new_mtime=rec.mtime,
                                              old_size=0, new_size=rec.size)
        elif r_is_dir:
            decisions[rel] = TransferDecision(rel, Direction.SKIP, Reason.REMOTE_IS_DIR,
                                              old_mtime=r_mtime, new_mtime=rec.mtime,
                                              old_size=0, new_size=rec.size)
        elif rec.mtime > r_mtime:
            decisions[rel] = TransferDecision(rel, Direction.UPLOAD, Reason.LOCAL_NEWER,
                                              old_mtime=r_mtime, new_mtime=rec.mtime,
                                              old_size=r_size, new_size=rec.size)
        elif r_mtime > rec.mtime:
            decisions[rel] = TransferDecision(rel, Direction.DOWNLOAD, Reason.REMOTE_NEWER,
                                              old_mtime=rec.mtime, new_mtime=r_mtime,
                                              old_size=rec.size, new_size=r_size)
        else:
            decisions[rel] = TransferDecision(rel, Direction.SKIP, Reason.IDENTICAL,
                                              old_mtime=rec.mtime, new_mtime=r_mtime,
                                              old_size=rec.size, new_size=r_size)

    for path, value in remote_tree.items():
        if not path.startswith(prefix):
            continue
        rel = path[len(prefix):]
        if not rel or rel in present_locally or rel in decisions:
            continue
        r_mtime, r_size, r_is_dir = _remote_meta(value)
        if r_is_dir or _ignored(rel):
            continue
        decisions[rel] = TransferDecision(rel, Direction.DOWNLOAD, Reason.NEW,
                                          old_mtime=None, new_mtime=r_mtime,
                                          old_size=0, new_size=r_size)

    return [decisions[k] for k in sorted(decisions)]


def filter_direction(decisions: list[TransferDecision],
                     push_only: bool = False, pull_only: bool = False) -> list[TransferDecision]:
    """Drop downloads (push_only) or uploads (pull_only)."""
    if push_only:
        return [d for d in decisions if d.direction is not Direction.DOWNLOAD]
    if pull_only:
        return [d for d in decisions if d.direction is not Direction.UPLOAD]
    return decisions


def directory_downloads(remote_tree: Mapping, remote_root: str, rel_dir: str,
                        local_root: Path, ignore_patterns: list) -> list[TransferDecision]:
    """
    Remote files directly inside rel_dir that are missing locally or newer
    than the local copy.
    """
    rel_dir = "" if rel_dir in (".", "") else rel_dir.strip("/")
    wanted = {}
    for rel, entry in relative_remote_files(remote_tree, remote_root).items():
        parent = PurePosixPath(rel).parent.as_posix()
        if (parent if parent != "." else "") == rel_dir:
            wanted[rel] = entry
    local = [local_record(Path(local_root), rel) for rel in wanted]
    only_wanted = {remote_root.rstrip("/") + "/" + rel: e for rel, e in wanted.items()}
    decisions = reconcile(local, only_wanted, remote_root, ignore_patterns)
    return [d for d in decisions if d.direction is Direction.DOWNLOAD]


# ══════════════════════════════════════════════════════════════════════════════
#  REPORTING
# ══════════════════════════════════════════════════════════════════════════════

_ARROWS = {Direction.UPLOAD: "↑", Direction.DOWNLOAD: "↓", Direction.SKIP: "="}


def format_decision(d: TransferDecision) -> str:
    if d.reason is Reason.NEW:
        status = "(New File)"
    elif d.reason in (Reason.IDENTICAL, Reason.IGNORED, Reason.REMOTE_IS_DIR):
        status = f"({d.reason.value})"
    else:
        status = f"({d.reason.value}, Update: {format_size_diff(d.new_size, d.old_size)})"
    return (f" {_ARROWS[d.direction]} {d.relative_path:<50}  "
            f"{format_timestamp(d.new_mtime):<20}  {format_size(d.new_size):<12}  {status}")


def print_plan(decisions: list[TransferDecision], action: str = "process"):
    transfers = [d for d in decisions if d.is_transfer]
    total = sum(d.new_size for d in transfers)
    print()
    print(f" {len(transfers)} files to {action} (Total size: {format_size(total)})")
    print()
    print(f"   {'File Name':<50}  {'Modified Date':<20}  {'Size':<12}  Status")
    print(" " + "─" * 100)
    for d in decisions:
        print(format_decision(d))
    print()


def print_summary(outcomes: list[TransferOutcome]):
    ok, failed = summarize(outcomes)
    print()
    print(f"{'─' * 64}")
    print(" SUMMARY")
    print(f"  Succeeded : {ok}")
    print(f"  Failed    : {failed}")
    for o in outcomes:
        if not o.success:
            print(f"    ✗ {o.relative_path}: {o.diagnostic.splitlines()[0] if o.diagnostic else ''}")
    print(f"{'─' * 64}")


# ══════════════════════════════════════════════════════════════════════════════
#  ORCHESTRATION
# ══════════════════════════════════════════════════════════════════════════════

def _skip_dir_for(patterns):
    return lambda rel: is_ignored(rel, patterns)


def confirm_and_execute(decisions: list[TransferDecision], channel: CommandChannel,
                        profile: ConnectionProfile, action: str,
                        dry_run: bool = False, assume_yes: bool = False) -> Optional[list[TransferOutcome]]:
    """
    Show the plan, ask once, then transfer. Returns None when the user
    declined, otherwise one outcome per transfer.
    """
    transfers = [d for d in decisions if d.is_transfer]
    if not transfers:
        log(f"[{action}] Nothing to do, already in sync ✓")
        return []
    print_plan(decisions, action)
    if not dry_run and not assume_yes:
        if not confirm(f" Process {len(transfers)} files?"):
            log(f"[{action}] cancelled")
            return None

    with ConnectionPool() as pool:
        verifier = UploadVerifier(pool, profile) if profile.verify_uploads else None
        outcomes = execute_transfers(transfers, channel, profile.local_root,
                                     dry_run=dry_run, verifier=verifier)
    print_summary(outcomes)
    return outcomes


def run_sync(profile: ConnectionProfile, dry_run=False, verbose=False, assume_yes=False,
             push_only=False, pull_only=False,
             channel: Optional[CommandChannel] = None) -> Optional[list[TransferOutcome]]:
    """Full two-way reconciliation of the project against remote_path."""
    set_verbose(verbose or profile.debug)
    channel = channel or CommandChannel(profile)

    print(f"\n{'=' * 64}")
    print(f"  Sync  {profile.local_root}")
    print(f"   ↔   {profile.describe()}")
    print(f"{'=' * 64}")
    if dry_run:
        print("  *** DRY-RUN: no files will be changed ***")

    patterns = compile_patterns(profile.ignore)
    log(f"[ignore] {len(patterns)} pattern(s)")

    log("[scan] Walking remote tree …")
    remote_tree = walk_remote_tree(channel, profile.remote_root,
                                   workers=profile.walk_workers,
                                   skip_dir=_skip_dir_for(patterns))

    log("[scan] Scanning local files …")
    local_files = local_list_all(profile.local_root, patterns)
    log(f"[scan] {len(local_files)} local file(s) found")

    decisions = reconcile(local_files, remote_tree, profile.remote_root, patterns)
    for d in decisions:
        if d.reason is Reason.REMOTE_IS_DIR:
            warn(f"[plan] {d.relative_path}: a directory exists at this path on the remote; not uploading")
    decisions = filter_direction(decisions, push_only, pull_only)
    n_up = sum(1 for d in decisions if d.direction is Direction.UPLOAD)
    n_down = sum(1 for d in decisions if d.direction is Direction.DOWNLOAD)
    n_same = sum(1 for d in decisions if d.direction is Direction.SKIP)
    log(f"[plan] upload={n_up}  download={n_down}  unchanged={n_same}")

    return confirm_and_execute([d for d in decisions if d.is_transfer], channel, profile,
                               "sync", dry_run=dry_run, assume_yes=assume_yes)


def transfer_files(profile: ConnectionProfile, paths: list[str], direction: Direction,
                   channel: Optional[CommandChannel] = None,
                   dry_run: bool = False) -> list[TransferOutcome]:
    """Upload or download the named files without any listing or prompt."""
    channel = channel or CommandChannel(profile)
    decisions = []
    for rel in paths:
        size = local_record(profile.local_root, rel).size
        decisions.append(TransferDecision(rel, direction, Reason.NEW, new_size=size))
    verifier_pool = ConnectionPool()
    try:
        verifier = (UploadVerifier(verifier_pool, profile)
                    if profile.verify_uploads and direction is Direction.UPLOAD else None)
        return execute_transfers(decisions, channel, profile.local_root,
                                 dry_run=dry_run, verifier=verifier)
    finally:
        verifier_pool.close()


def upload_directory(profile: ConnectionProfile, rel_dir: str, dry_run=False, assume_yes=False,
                     channel: Optional[CommandChannel] = None):
    """
    Upload every regular file directly inside rel_dir (not recursive) after
    one confirmation. The remote side is not consulted.
    """
    channel = channel or CommandChannel(profile)
    patterns = compile_patterns(profile.ignore)
    local = local_list_dir(profile.local_root, rel_dir, patterns)
    if not local:
        log("[upload] No files found to upload")
        return []

    uploads = [
        TransferDecision(rec.relative_path, Direction.UPLOAD, Reason.NEW,
                         new_mtime=rec.mtime, new_size=rec.size)
        for rec in local
    ]
    return confirm_and_execute(uploads, channel, profile, "upload",
                               dry_run=dry_run, assume_yes=assume_yes)


def download_directory(profile: ConnectionProfile, rel_dir: str, dry_run=False, assume_yes=False,
                       channel: Optional[CommandChannel] = None):
    """Download remote files directly inside rel_dir that are missing or older locally."""
    channel = channel or CommandChannel(profile)
    patterns = compile_patterns(profile.ignore)
    remote_tree = walk_remote_tree(channel, profile.remote_root,
                                   workers=profile.walk_workers,
                                   skip_dir=_skip_dir_for(patterns))
    decisions = directory_downloads(remote_tree, profile.remote_root, rel_dir,
                                    profile.local_root, patterns)
    if not decisions:
        log("[download] No files to download in this directory")
        return []
    return confirm_and_execute(decisions, channel, profile, "download",
                               dry_run=dry_run, assume_yes=assume_yes)


def list_remote(profile: ConnectionProfile, rel_dir: str = "",
                channel: Optional[CommandChannel] = None) -> list[RemoteEntry]:
    """Walk the remote tree (optionally below rel_dir) and return it sorted."""
    channel = channel or CommandChannel(profile)
    tree = walk_remote_tree(channel, profile.remote_root, workers=profile.walk_workers)
    prefix = profile.remote_root.rstrip("/") + "/"
    if rel_dir not in ("", "."):
        prefix += rel_dir.strip("/") + "/"
    return [tree[k] for k in sorted(tree) if k.startswith(prefix)]


def check_connection(profile: ConnectionProfile,
                     channel: Optional[CommandChannel] = None) -> tuple[bool, str]:
    channel = channel or CommandChannel(profile)
    try:
        result = channel.test_connection()
    except SftpMirrorError as exc:
        return False, str(exc)
    if result.success:
        return True, "Connection successful"
    warn(result.diagnostic)
    return False, result.diagnostic
