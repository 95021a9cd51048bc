"""
Parsing of `ls -l` lines printed by the sftp batch session

Known approximations:
  - an HH:MM time field means "this calendar year" (ls drops the year for
    recent files); a file listed around New Year can get a date up to a year
    in the future. This is left as is, not guessed around.
  - an unknown month name maps to January.
  - the name is everything after the eighth field, so a name whose leading
    whitespace matters cannot be recovered exactly.
"""
import re
import time
from datetime import datetime
from typing import Optional

from ..models import ListingLine

MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}

PROMPT = "sftp>"

# permissions links owner group size month day time-or-year name
_LS_RE = re.compile(
    r"^(\S+)\s+([\d?]+)\s+(\S+)\s+(\S+)\s+(\d+)\s+([A-Za-z]+)\s+(\d+)\s+(\S+)\s+(.+)$"
)
_HHMM_RE = re.compile(r"^(\d+):(\d+)$")


def _resolve_mtime(month: str, day: str, time_or_year: str,
                   now: Optional[datetime]) -> Optional[int]:
    m = MONTHS.get(month[:1].upper() + month[1:3].lower(), 1)
    try:
        d = int(day)
    except ValueError:
        d = 1

    if ":" in time_or_year:
        year = (now or datetime.now()).year
        hm = _HHMM_RE.match(time_or_year)
        hour, minute = (int(hm.group(1)), int(hm.group(2))) if hm else (0, 0)
    else:
        try:
            year = int(time_or_year)
        except ValueError:
            return None
        hour, minute = 0, 0

    try:
        # local time, like the listing itself; mktime normalises overflowing days
        return int(time.mktime((year, m, d, hour, minute, 0, 0, 0, -1)))
    except (OverflowError, ValueError):
        return None


def parse_ls_line(line: str, now: Optional[datetime] = None) -> Optional[ListingLine]:
    """
    Parse one `ls -l` line.
    Returns None for prompt echoes, blank lines, "total N" summaries and
    anything else that is not a nine-field data line.
    """
    if line is None:
        return None
    line = line.rstrip("\r\n")
    stripped = line.strip()
    if not stripped or stripped.startswith(PROMPT) or stripped.startswith("total"):
        return None

    match = _LS_RE.match(stripped)
    if not match:
        return None
    perm, _links, _owner, _group, size, month, day, time_or_year, name = match.groups()

    mtime = _resolve_mtime(month, day, time_or_year, now)
    if mtime is None:
        return None

    return ListingLine(
        name=name,
        size=int(size),
        mtime=mtime,
        is_dir=perm.startswith("d"),
        permissions=perm,
    )


def parse_listing(lines, now: Optional[datetime] = None) -> list[ListingLine]:
    """Parse every data line of a listing, dropping the rest; '.' and '..' are skipped."""
    entries = []
    for line in lines:
        entry = parse_ls_line(line, now=now)
        if entry is None or entry.name in (".", ".."):
            continue
        entries.append(entry)
    return entries
