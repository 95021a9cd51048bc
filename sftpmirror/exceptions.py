"""
Exception hierarchy for sftpmirror
"""


class SftpMirrorError(Exception):
    """Base class for every error raised by sftpmirror."""


class ConfigurationError(SftpMirrorError):
    """The connection profile is missing, unreadable or incomplete."""


class ChannelStartupError(SftpMirrorError):
    """The sftp session could not be started (batch script or process)."""


class RemoteOperationError(SftpMirrorError):
    """A remote batch failed with real (non-benign) errors."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self):
        base = super().__str__()
        if self.diagnostic:
            return f"{base}: {self.diagnostic}"
        return base
