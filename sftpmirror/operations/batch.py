"""
Builders for sftp batch-script fragments

Every builder returns newline-terminated text (or "" when there is nothing
to do). Paths are relative to the remote root, which the command channel has
already cd'ed into, and to the local root, which is the sftp process's cwd.
A leading '-' on a command tells sftp to keep going if it fails.
"""
import shlex
from pathlib import PurePosixPath


def quote(path: str) -> str:
    """Quote one path so sftp reads it as a single argument."""
    return shlex.quote(path)


def _segments(rel: str) -> list[str]:
    return [p for p in rel.replace("\\", "/").split("/") if p not in ("", ".")]


def _parent(rel: str) -> str:
    parent = PurePosixPath("/".join(_segments(rel))).parent.as_posix()
    return "" if parent == "." else parent


def _name(rel: str) -> str:
    segs = _segments(rel)
    return segs[-1] if segs else ""


def mkdir_chain(rel_dir: str) -> str:
    """One tolerant mkdir per segment, shallowest first: a, a/b, a/b/c."""
    lines = []
    current = ""
    for part in _segments(rel_dir or ""):
        current = part if not current else f"{current}/{part}"
        lines.append(f"-mkdir {quote(current)}")
    return "".join(line + "\n" for line in lines)


def upload_command(rel_file: str) -> str:
    """mkdir chain for the parent directory, then put local → remote."""
    rel = "/".join(_segments(rel_file))
    cmd = mkdir_chain(_parent(rel))
    cmd += f"put {quote(rel)} {quote(rel)}\n"
    return cmd


def download_command(rel_file: str) -> str:
    """
    get remote → local. The local parent directory must exist before the
    batch runs; see file_utils.ensure_local_parent.
    """
    rel = "/".join(_segments(rel_file))
    return f"get {quote(rel)} {quote(rel)}\n"


def remove_command(rel_file: str) -> str:
    """cd into the file's parent, then rm the file by name."""
    rel = "/".join(_segments(rel_file))
    parent = _parent(rel) or "."
    return f"cd {quote(parent)}\nrm {quote(_name(rel))}\n"


def list_command(remote_dir: str) -> str:
    """cd into an absolute remote directory and long-list it."""
    return f"cd {quote(remote_dir)}\nls -la\n"
