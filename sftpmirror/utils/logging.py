"""
Console logging for sftpmirror
"""
import sys
from datetime import datetime

_verbose = False


def set_verbose(verbose: bool):
    """Turn debug output (sftp args, batch text, raw stdout/stderr) on or off"""
    global _verbose
    _verbose = bool(verbose)


def log(msg: str, stream=None):
    """Print a message prefixed with the time of day"""
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", file=stream or sys.stdout, flush=True)


def vlog(msg: str):
    """Log only in verbose mode"""
    if _verbose:
        log(f"[debug] {msg}")


def warn(msg: str):
    log(f"⚠  {msg}", stream=sys.stderr)
