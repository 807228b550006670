"""
Shellite - async SQLite through a persistent sqlite3 shell process.

Usage:
    from shellite import Database

    async with Database("app.db") as db:
        await db.execute("CREATE TABLE IF NOT EXISTS notes (id INTEGER PRIMARY KEY, body TEXT)")
        await db.sql("INSERT INTO notes (body) VALUES (?)", "hello")
        rows = await db.query("SELECT * FROM notes")
"""

__version__ = "0.1.0"

from .config import ConfigLoader, DatabaseOptions
from .db import Database, ResultMode, Raw, raw, sql
from .faults import (
    Fault,
    FaultDomain,
    ConfigFault,
    ShellNotFoundFault,
    QueryFault,
    ProcessExitedFault,
    DatabaseClosedFault,
    NestingFault,
    DecodeFault,
    EscapeFault,
    FilesystemFault,
)

__all__ = [
    "__version__",
    "Database",
    "DatabaseOptions",
    "ConfigLoader",
    "ResultMode",
    "Raw",
    "raw",
    "sql",
    # Faults
    "Fault",
    "FaultDomain",
    "ConfigFault",
    "ShellNotFoundFault",
    "QueryFault",
    "ProcessExitedFault",
    "DatabaseClosedFault",
    "NestingFault",
    "DecodeFault",
    "EscapeFault",
    "FilesystemFault",
]
