"""
Configuration for sftpmirror: constants, profile discovery and validation
"""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

# ══════════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ══════════════════════════════════════════════════════════════════════════════

SFTP_PROGRAM = "sftp"

CONFIG_DIR = ".vscode"
CONFIG_FILE = "sftp.json"

DEFAULT_PORT = 22
# regexes, anchored to whole path segments
DEFAULT_IGNORE = [r"(^|/)\.vscode(/|$)", r"(^|/)\.git(/|$)", r"(^|/)\.DS_Store$"]
DEFAULT_WALK_WORKERS = 4

# Retry settings (paramiko round-trips only; sftp batches are never retried)
RETRY_MAX = 3
RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt

SSH_CONNECT_TIMEOUT = 20


# ══════════════════════════════════════════════════════════════════════════════
#  PROFILE
# ══════════════════════════════════════════════════════════════════════════════

@dataclass
class ConnectionProfile:
    host: str
    username: str
    remote_path: str
    port: int = DEFAULT_PORT
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    name: str = ""
    protocol: str = "sftp"
    upload_on_save: bool = True
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    debug: bool = False
    verify_uploads: bool = False
    walk_workers: int = DEFAULT_WALK_WORKERS
    # directory holding .vscode/, i.e. the local mirror root
    local_root: Path = field(default_factory=lambda: Path("."))

    @property
    def uses_key(self) -> bool:
        return bool(self.private_key_path)

    @property
    def pool_key(self) -> str:
        return f"{self.host}:{self.port}:{self.username}"

    @property
    def remote_root(self) -> str:
        """remote_path without a trailing slash (except for '/')."""
        rp = self.remote_path.rstrip("/")
        return rp or "/"

    def describe(self) -> str:
        return f"{self.username}@{self.host}:{self.port}:{self.remote_root}"


@dataclass
class ProfileResult:
    """Either a valid profile or the reason the data was rejected."""
    profile: Optional[ConnectionProfile] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.profile is not None

    def unwrap(self) -> ConnectionProfile:
        if self.profile is None:
            raise ConfigurationError(f"Invalid {CONFIG_FILE} configuration: {self.error}")
        return self.profile


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def validate_profile(data: dict, local_root: Optional[Path] = None) -> ProfileResult:
    """
    Fill defaults and validate a raw sftp.json mapping (camelCase keys).
    """
    if not isinstance(data, dict):
        return ProfileResult(error="configuration must be a JSON object")

    for key, label in (("host", "Host"), ("username", "Username"), ("remotePath", "Remote path")):
        if _blank(data.get(key)):
            return ProfileResult(error=f"{label} is required")

    password = None if _blank(data.get("password")) else str(data["password"])
    key_path = None if _blank(data.get("privateKeyPath")) else str(data["privateKeyPath"])
    if password is None and key_path is None:
        return ProfileResult(error="Either password or privateKeyPath must be provided")

    try:
        port = int(data.get("port", DEFAULT_PORT))
    except (TypeError, ValueError):
        return ProfileResult(error=f"port must be a number, got {data.get('port')!r}")
    if not 1 <= port <= 65535:
        return ProfileResult(error=f"port out of range: {port}")

    ignore = data.get("ignore", DEFAULT_IGNORE)
    if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
        return ProfileResult(error="ignore must be a list of strings")

    try:
        workers = int(data.get("walkWorkers", DEFAULT_WALK_WORKERS))
    except (TypeError, ValueError):
        return ProfileResult(error="walkWorkers must be a number")

    protocol = str(data.get("protocol", "sftp"))
    if protocol != "sftp":
        return ProfileResult(error=f"unsupported protocol {protocol!r} (only sftp)")

    profile = ConnectionProfile(
        host=str(data["host"]),
        username=str(data["username"]),
        remote_path=str(data["remotePath"]),
        port=port,
        password=password,
        private_key_path=os.path.expanduser(key_path) if key_path else None,
        name=str(data.get("name", "")),
        protocol=protocol,
        upload_on_save=bool(data.get("uploadOnSave", True)),
        ignore=list(ignore),
        debug=bool(data.get("debug", False)),
        verify_uploads=bool(data.get("verifyUploads", False)),
        walk_workers=max(1, workers),
        local_root=(local_root or Path.cwd()).resolve(),
    )
    return ProfileResult(profile=profile)


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL DEFAULTS  ── $XDG_CONFIG_HOME/sftpmirror/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for sftpmirror."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "sftpmirror"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "sftpmirror"
    return Path.home() / ".config" / "sftpmirror"


def load_global_defaults() -> dict:
    """
    Return the `defaults:` mapping of the global config.yaml, or {} when the
    file does not exist. A malformed file is a ConfigurationError.
    """
    import yaml

    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read {cfg_path}: {exc}") from exc
    defaults = data.get("defaults", {}) if isinstance(data, dict) else {}
    return defaults if isinstance(defaults, dict) else {}


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT CONFIG  ── .vscode/sftp.json (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_config(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for .vscode/sftp.json.
    Returns the Path if found, or None.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while True:
        candidate = current / CONFIG_DIR / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def read_config_file(path: Path) -> dict:
    """Parse sftp.json and return its contents as a dict."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Failed to parse {path}: {exc}") from exc


def load_profile(path: Path, defaults: Optional[dict] = None) -> ProfileResult:
    """
    Merge global defaults under the project file and validate once.
    The local root is the directory that contains .vscode/.
    """
    data = read_config_file(path)
    if not isinstance(data, dict):
        return ProfileResult(error="configuration must be a JSON object")
    merged = dict(defaults if defaults is not None else load_global_defaults())
    merged.update(data)
    return validate_profile(merged, local_root=path.parent.parent)


def discover_profile(start: Optional[Path] = None) -> ConnectionProfile:
    """find_config + load_profile; raises ConfigurationError on any failure."""
    path = find_config(start)
    if path is None:
        raise ConfigurationError(
            f"No SFTP configuration found ({CONFIG_DIR}/{CONFIG_FILE} in this "
            f"directory or any parent)"
        )
    return load_profile(path).unwrap()


def profile_template(host: str, username: str, remote_path: str, port: int = DEFAULT_PORT,
                     private_key_path: Optional[str] = None, name: str = "") -> dict:
    """The mapping `sftpmirror init` writes to sftp.json."""
    data = {
        "name": name,
        "host": host,
        "protocol": "sftp",
        "port": port,
        "username": username,
        "remotePath": remote_path,
        "uploadOnSave": True,
        "ignore": list(DEFAULT_IGNORE),
    }
    if private_key_path:
        data["privateKeyPath"] = private_key_path
    else:
        data["password"] = ""
    return data
