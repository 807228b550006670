"""
Shellite DB Backends Package — pluggable database adapters.

Provides a common adapter interface and implementations for:
- sqlite3 shell (default, persistent child process)
- in-process SQLite (via aiosqlite)
"""

from .base import DatabaseAdapter, ResultMode
from .shell import ShellAdapter
from .native import NativeAdapter

__all__ = [
    "DatabaseAdapter",
    "ResultMode",
    "ShellAdapter",
    "NativeAdapter",
]
