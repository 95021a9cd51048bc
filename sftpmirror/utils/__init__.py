"""Utilities (logging, retry, ignore patterns, local file helpers)"""
from .logging import log, vlog, warn, set_verbose
from .ignore_patterns import compile_patterns, is_ignored
from .file_utils import local_record, ensure_local_parent, format_size

__all__ = [
    "log", "vlog", "warn", "set_verbose",
    "compile_patterns", "is_ignored",
    "local_record", "ensure_local_parent", "format_size",
]
