"""
Remote tree walking (through the command channel) and local scanning
"""
import os
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import RemoteOperationError
from ..models import LocalFileRecord, RemoteEntry
from ..utils.ignore_patterns import is_ignored
from ..utils.logging import log, vlog, warn
from .batch import list_command
from .listing import parse_listing


def _join(root: str, rel: str) -> str:
    if rel in ("", "."):
        return root
    return f"{root.rstrip('/')}/{rel}"


def list_remote_dir(channel, root: str, rel_dir: str,
                    now: Optional[datetime] = None) -> Optional[list[RemoteEntry]]:
    """
    List one directory, given relative to the remote root (the channel's cwd).
    Returns None when the listing failed.
    """
    result = channel.execute(list_command(rel_dir or "."))
    if not result.success:
        vlog(f"[ls] {_join(root, rel_dir)} failed: {result.diagnostic}")
        return None
    base = _join(root, rel_dir)
    return [
        RemoteEntry(path=f"{base.rstrip('/')}/{line.name}", is_dir=line.is_dir,
                    mtime=line.mtime, size=line.size)
        for line in parse_listing(result.output, now=now)
    ]


def walk_remote_tree(channel, root: str, workers: int = 4,
                     skip_dir: Optional[Callable[[str], bool]] = None,
                     now: Optional[datetime] = None) -> dict[str, RemoteEntry]:
    """
    Map every file and directory under *root* to its RemoteEntry.

    Sub-directories are listed concurrently; the walk returns once every
    outstanding listing has finished. A failed sub-directory contributes no
    entries. Only a failed root listing raises RemoteOperationError;
    ConfigurationError and ChannelStartupError from any branch propagate.
    skip_dir(rel_dir) can stop the walk from descending into a directory
    (its own entry is still recorded).
    """
    root = root.rstrip("/") or "/"
    prefix = "" if root == "/" else root
    first = channel.execute(list_command("."))
    if not first.success:
        raise RemoteOperationError("Failed to retrieve remote file list", first.diagnostic)

    results: dict[str, RemoteEntry] = {}
    failed = 0

    def _rel(path: str) -> str:
        return path[len(prefix) + 1:] if prefix else path.lstrip("/")

    def _absorb(entries, pool, pending):
        for entry in entries:
            results[entry.path] = entry
            if not entry.is_dir:
                continue
            rel = _rel(entry.path)
            if skip_dir and skip_dir(rel):
                vlog(f"[ls] not descending into {rel}")
                continue
            pending.add(pool.submit(_list_branch, rel))

    def _list_branch(rel: str):
        try:
            return list_remote_dir(channel, root, rel, now=now)
        except RemoteOperationError as exc:
            vlog(f"[ls] {rel}: {exc}")
            return None

    root_entries = [
        RemoteEntry(path=f"{prefix}/{line.name}", is_dir=line.is_dir,
                    mtime=line.mtime, size=line.size)
        for line in parse_listing(first.output, now=now)
    ]

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        pending: set = set()
        _absorb(root_entries, pool, pending)
        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                entries = fut.result()
                if entries is None:
                    failed += 1
                    continue
                _absorb(entries, pool, pending)

    if failed:
        warn(f"[ls] {failed} remote director{'y' if failed == 1 else 'ies'} could not be listed")
    log(f"[scan] {len(results)} remote entr{'y' if len(results) == 1 else 'ies'} under {root}")
    return results


def relative_remote_files(tree: dict[str, RemoteEntry], root: str) -> dict[str, RemoteEntry]:
    """Files (not directories) of a walked tree, keyed by path relative to root."""
    prefix = root.rstrip("/") + "/"
    return {
        path[len(prefix):]: entry
        for path, entry in tree.items()
        if path.startswith(prefix) and not entry.is_dir
    }


def local_list_all(root: Path, patterns: list) -> list[LocalFileRecord]:
    """Every regular file under root not matched by an ignore pattern, sorted."""
    records: list[LocalFileRecord] = []
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        # prune ignored directories in place so os.walk skips them
        dirnames[:] = sorted(
            d for d in dirnames
            if not is_ignored(f"{rel_dir}/{d}" if rel_dir else d, patterns)
        )
        for name in filenames:
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if is_ignored(rel, patterns):
                continue
            p = Path(dirpath) / name
            if not p.is_file():
                continue
            st = p.stat()
            records.append(LocalFileRecord(rel, int(st.st_mtime), st.st_size))
    records.sort(key=lambda r: r.relative_path)
    return records


def local_list_dir(root: Path, rel_dir: str, patterns: list) -> list[LocalFileRecord]:
    """Regular files directly inside root/rel_dir (not recursive)."""
    base = Path(root) / rel_dir if rel_dir not in ("", ".") else Path(root)
    records = []
    if not base.is_dir():
        return records
    for p in sorted(base.iterdir()):
        if not p.is_file():
            continue
        rel = p.relative_to(root).as_posix()
        if is_ignored(rel, patterns):
            continue
        st = p.stat()
        records.append(LocalFileRecord(rel, int(st.st_mtime), st.st_size))
    return records
