"""
sftp command channel: one batch script, one `sftp -b` process, one result

Known fragilities, kept on purpose:
  - with password auth the password is written to the process's stdin right
    after it starts; whether sftp reads it depends on the client's askpass
    setup.
  - a run counts as successful when the exit code is 0 OR no real error
    lines were seen. sftp sometimes exits non-zero for cosmetic reasons, but
    a silently skipped file also looks like this; see verify_uploads.
"""
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .. import config as _cfg
from ..config import ConnectionProfile
from ..exceptions import ChannelStartupError, ConfigurationError
from ..models import ChannelResult
from ..operations.batch import quote
from ..utils.logging import vlog

# stderr noise produced by the tolerant mkdirs and existence probes
BENIGN_PATTERNS = [
    re.compile(r"Couldn't create directory"),
    re.compile(r"remote mkdir.*: Failure"),
    re.compile(r"stat.*: No such file or directory"),
]

KEY_AUTH_HINT = (
    "Possible issues:\n"
    "1. Check SSH key permissions (should be 600)\n"
    "2. Verify the key is added to the server\n"
    "3. Ensure remote user has write permissions"
)
PASSWORD_AUTH_HINT = (
    "Possible issues:\n"
    "1. Check username/password\n"
    "2. Ensure remote user has write permissions"
)


def is_benign(line: str) -> bool:
    return any(p.search(line) for p in BENIGN_PATTERNS)


def filter_benign(lines: list[str]) -> list[str]:
    """Drop blank lines and expected notices; what is left are real errors."""
    return [ln for ln in lines if ln.strip() and not is_benign(ln)]


def classify(returncode: int, stdout_lines: list[str], stderr_lines: list[str],
             uses_key: bool) -> ChannelResult:
    """Turn a finished sftp run into a ChannelResult."""
    errors = filter_benign(stderr_lines)
    if returncode == 0 or not errors:
        return ChannelResult(success=True, output=stdout_lines, errors=errors,
                             returncode=returncode)

    diagnostic = "\n".join(errors)
    if "permission denied" in diagnostic.lower():
        hint = KEY_AUTH_HINT if uses_key else PASSWORD_AUTH_HINT
        diagnostic = f"{diagnostic}\n{hint}"
    return ChannelResult(success=False, output=stdout_lines, errors=errors,
                         diagnostic=diagnostic, returncode=returncode)


class CommandChannel:
    """
    Runs batches of sftp commands against one connection profile.
    Each execute() call spawns exactly one sftp process, started in the local
    root so relative local paths in put/get resolve against the project.
    """

    def __init__(self, profile: ConnectionProfile, program: Optional[str] = None):
        self.profile = profile
        self.program = program or _cfg.SFTP_PROGRAM

    # ── arguments ───────────────────────────────────────────────────────────

    def _check_profile(self):
        p = self.profile
        missing = [name for name, value in (("host", p.host), ("username", p.username),
                                            ("remotePath", p.remote_path)) if not value]
        if missing:
            raise ConfigurationError(f"missing required field(s): {', '.join(missing)}")

    def connection_args(self) -> list[str]:
        """Auth flags and user@host; the key wins over the password."""
        self._check_profile()
        p = self.profile
        args: list[str] = []
        if p.private_key_path:
            key_path = os.path.expanduser(p.private_key_path)
            if not os.access(key_path, os.R_OK):
                raise ConfigurationError(f"SSH key file not found: {key_path}")
            args += ["-i", key_path, "-o", "StrictHostKeyChecking=no"]
        if p.port != _cfg.DEFAULT_PORT:
            args += ["-P", str(p.port)]
        args.append(f"{p.username}@{p.host}")
        return args

    def build_script(self, command_text: str) -> str:
        """Setup preamble + payload + quit."""
        root = quote(self.profile.remote_root)
        if command_text and not command_text.endswith("\n"):
            command_text += "\n"
        return f"-mkdir {root}\ncd {root}\n{command_text}quit\n"

    # ── execution ───────────────────────────────────────────────────────────

    def _write_script(self, text: str) -> str:
        try:
            fd, script = tempfile.mkstemp(prefix="sftpmirror-", suffix=".batch")
        except OSError as exc:
            raise ChannelStartupError(f"Failed to create temporary script file: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            _remove_quietly(script)
            raise ChannelStartupError(f"Failed to write temporary script file: {exc}") from exc
        return script

    def execute(self, command_text: str) -> ChannelResult:
        """Run one batch and classify the outcome."""
        args = self.connection_args()
        batch = self.build_script(command_text)
        script = self._write_script(batch)

        argv = [self.program, "-b", script, *args]
        vlog(f"sftp args: {argv}")
        vlog("batch commands:\n" + batch)

        send_password = bool(self.profile.password) and not self.profile.uses_key
        cwd = Path(self.profile.local_root)
        try:
            try:
                proc = subprocess.Popen(
                    argv,
                    stdin=subprocess.PIPE if send_password else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    cwd=str(cwd) if cwd.is_dir() else None,
                )
            except OSError as exc:
                raise ChannelStartupError(f"could not start {self.program}: {exc}") from exc

            stdin_data = self.profile.password + "\n" if send_password else None
            out, err = proc.communicate(input=stdin_data)
            returncode = proc.returncode
        finally:
            _remove_quietly(script)

        stdout_lines = (out or "").splitlines()
        stderr_lines = (err or "").splitlines()
        for line in stdout_lines:
            vlog(f"STDOUT: {line}")
        for line in stderr_lines:
            vlog(f"STDERR: {line}")

        return classify(returncode, stdout_lines, stderr_lines, self.profile.uses_key)

    def test_connection(self) -> ChannelResult:
        return self.execute("pwd\n")


def _remove_quietly(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
