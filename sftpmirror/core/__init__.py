"""Core functionality"""
from .channel import CommandChannel
from .ssh_manager import SSHManager, ConnectionPool
from .sync_engine import reconcile, run_sync

__all__ = ["CommandChannel", "SSHManager", "ConnectionPool", "reconcile", "run_sync"]
