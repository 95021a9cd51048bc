"""
paramiko connections used to double-check transfers, pooled per call
"""
import threading
from typing import Optional

import paramiko

from .. import config as _cfg
from ..config import ConnectionProfile
from ..utils.logging import log, vlog
from ..utils.retry import retried


class SSHManager:
    """
    Wraps paramiko SSHClient + SFTPClient for one profile.
    Reconnects when the transport has dropped.
    """

    def __init__(self, profile: ConnectionProfile):
        self.profile = profile
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self):
        p = self.profile
        log(f"[SSH] connecting to {p.username}@{p.host}:{p.port} …")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=p.host, port=p.port, username=p.username,
                        timeout=_cfg.SSH_CONNECT_TIMEOUT, banner_timeout=30, auth_timeout=30)
        if p.private_key_path:
            kw["key_filename"] = p.private_key_path
        elif p.password:
            kw["password"] = p.password

        client.connect(**kw)
        self._ssh = client
        self._sftp = client.open_sftp()
        log("[SSH] connected ✓")

    def close(self):
        for res in (self._sftp, self._ssh):
            if res is None:
                continue
            try:
                res.close()
            except (OSError, paramiko.SSHException) as exc:
                vlog(f"[SSH] close: {exc}")
        self._ssh = None
        self._sftp = None

    def ensure_connected(self):
        """Call before any remote operation."""
        transport = self._ssh.get_transport() if self._ssh else None
        if transport is not None and transport.is_active():
            return
        self.close()
        self.connect()

    # ── sftp ops ────────────────────────────────────────────────────────────

    @retried
    def stat(self, remote: str) -> paramiko.SFTPAttributes:
        self.ensure_connected()
        return self._sftp.stat(remote)

    def remote_size(self, remote: str) -> Optional[int]:
        """Size of a remote file, or None if it does not exist."""
        try:
            return self.stat(remote).st_size
        except FileNotFoundError:
            return None


class ConnectionPool:
    """
    SSHManagers keyed by host:port:username. Owned by one orchestrating
    call and closed when it ends; nothing here outlives that call.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._managers: dict[str, SSHManager] = {}

    def get(self, profile: ConnectionProfile) -> SSHManager:
        with self._lock:
            mgr = self._managers.get(profile.pool_key)
            if mgr is None:
                mgr = SSHManager(profile)
                self._managers[profile.pool_key] = mgr
            return mgr

    def __len__(self):
        with self._lock:
            return len(self._managers)

    def close(self):
        with self._lock:
            managers = list(self._managers.values())
            self._managers.clear()
        for mgr in managers:
            mgr.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class UploadVerifier:
    """Checks that an uploaded file exists remotely with the local size."""

    def __init__(self, pool: ConnectionPool, profile: ConnectionProfile):
        self.pool = pool
        self.profile = profile

    def __call__(self, rel: str, expected_size: int) -> str:
        """Return "" when the remote copy looks right, else a diagnostic."""
        remote = f"{self.profile.remote_root.rstrip('/')}/{rel}"
        try:
            size = self.pool.get(self.profile).remote_size(remote)
        except (OSError, paramiko.SSHException) as exc:
            return f"could not verify {remote}: {exc}"
        if size is None:
            return f"{remote} is missing after upload"
        if size != expected_size:
            return f"{remote} has {size} bytes, expected {expected_size}"
        return ""
