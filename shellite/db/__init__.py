"""
Shellite Database — async SQL over a persistent sqlite3 shell process.

Provides:
- Database: Public API with batch and transaction support
- Pluggable backend adapters (shell, native)
- Execution primitives (Rope, ExecutionQueue, Autocloser, ShellSession)
- Value escaping (sql, raw)
"""

from .engine import Database

from .backends import (
    DatabaseAdapter,
    ResultMode,
    ShellAdapter,
    NativeAdapter,
)

from .autocloser import Autocloser
from .builder import Raw, build, escape, raw, sql
from .queue import ExecutionQueue
from .rope import Rope
from .session import ShellSession

__all__ = [
    "Database",
    # Backends
    "DatabaseAdapter",
    "ResultMode",
    "ShellAdapter",
    "NativeAdapter",
    # Primitives
    "Autocloser",
    "ExecutionQueue",
    "Rope",
    "ShellSession",
    # Builder
    "Raw",
    "build",
    "escape",
    "raw",
    "sql",
]
