"""
Data records shared by the scanner, sync engine and transfer operations
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Direction(Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    SKIP = "skip"


class Reason(Enum):
    NEW = "new"
    REMOTE_NEWER = "remote newer"
    LOCAL_NEWER = "local newer"
    IDENTICAL = "identical"
    IGNORED = "ignored"
    REMOTE_IS_DIR = "remote is a directory"


@dataclass
class ListingLine:
    """One data line of `ls -l` output, before it is anchored to a directory."""
    name: str
    size: int
    mtime: int
    is_dir: bool
    permissions: str = ""


@dataclass
class RemoteEntry:
    """A file or directory found under the remote root."""
    path: str
    is_dir: bool
    mtime: int
    size: int = 0


@dataclass
class LocalFileRecord:
    """
    A file under the local project root.
    mtime is None when the file does not exist locally; size is 0 then.
    """
    relative_path: str
    mtime: Optional[int]
    size: int = 0

    @property
    def exists(self) -> bool:
        return self.mtime is not None


@dataclass
class TransferDecision:
    relative_path: str
    direction: Direction
    reason: Reason
    old_mtime: Optional[int] = None
    new_mtime: Optional[int] = None
    old_size: int = 0
    new_size: int = 0

    @property
    def size_delta(self) -> int:
        return self.new_size - self.old_size

    @property
    def is_transfer(self) -> bool:
        return self.direction is not Direction.SKIP


@dataclass
class TransferOutcome:
    relative_path: str
    success: bool
    diagnostic: str = ""


@dataclass
class ChannelResult:
    """
    Result of one sftp batch run.
    `errors` holds the stderr lines left after benign notices were filtered;
    `diagnostic` is the joined error text plus any hints (empty on success).
    """
    success: bool
    output: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    diagnostic: str = ""
    returncode: Optional[int] = None
