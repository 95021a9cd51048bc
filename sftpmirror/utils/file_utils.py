"""
Local file state and display helpers
"""
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Optional

from ..models import LocalFileRecord

_UNITS = ("bytes", "KB", "MB", "GB")


def to_relative(path, root: Path) -> str:
    """Return *path* relative to *root* as a '/'-separated string."""
    p = Path(path)
    if not p.is_absolute():
        p = Path.cwd() / p
    rel = p.resolve().relative_to(root.resolve())
    return rel.as_posix()


def local_record(root: Path, rel: str) -> LocalFileRecord:
    """Stat root/rel; a missing or non-regular file gives the absent record."""
    lpath = root / rel
    try:
        st = lpath.stat()
    except OSError:
        return LocalFileRecord(rel, None, 0)
    if not lpath.is_file():
        return LocalFileRecord(rel, None, 0)
    return LocalFileRecord(rel, int(st.st_mtime), st.st_size)


def ensure_local_parent(root: Path, rel: str):
    """Create the local directory a download will write into."""
    parent = PurePosixPath(rel).parent
    if str(parent) not in (".", ""):
        (root / parent.as_posix()).mkdir(parents=True, exist_ok=True)


def format_size(size: int) -> str:
    if size == 0:
        return "0 bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{int(value)} {_UNITS[unit]}"
    return f"{value:.2f} {_UNITS[unit]}"


def format_size_diff(new_size: int, old_size: int) -> str:
    diff = new_size - old_size
    if diff == 0:
        return "±0 bytes"
    sign = "+" if diff > 0 else "-"
    return sign + format_size(abs(diff))


def format_timestamp(ts: Optional[int]) -> str:
    if not ts:
        return "Never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")
