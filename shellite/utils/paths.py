"""
Path, binary and temp-file helpers.
"""

from __future__ import annotations

import contextlib
import os
import secrets
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..faults import FilesystemFault, ShellNotFoundFault

__all__ = [
    "MEMORY",
    "TEMPORARY",
    "get_temp_path",
    "ensure_file",
    "ensure_unlink",
    "get_database_path",
    "get_database_bin",
    "quote_path",
]

MEMORY = ":memory:"
TEMPORARY = ""

# Files SQLite may leave next to a database
_SIDECARS = ("-wal", "-shm", "-journal")


def get_temp_path() -> str:
    """Random, not yet existing database path in the system temp folder."""
    return os.path.join(tempfile.gettempdir(), f"shellite-{secrets.token_hex(8)}.db")


def ensure_file(path: str) -> None:
    """Create ``path`` (and its parent folders) if it does not exist."""
    try:
        file = Path(path)
        file.parent.mkdir(parents=True, exist_ok=True)
        file.touch(exist_ok=True)
    except OSError as exc:
        raise FilesystemFault("create", path, str(exc)) from exc


def ensure_unlink(path: str) -> None:
    """Remove ``path`` and its journal files; missing files are ignored."""
    for suffix in ("", *_SIDECARS):
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path + suffix)


def get_database_path(db: Union[str, bytes, bytearray, os.PathLike]) -> str:
    """
    Resolve the file a database lives in.

    Memory and temporary databases, and serialized bytes, are backed by a
    fresh temp file so they survive a respawn of the shell.
    """
    if isinstance(db, (bytes, bytearray, memoryview)):
        path = get_temp_path()
        try:
            with open(path, "wb") as f:
                f.write(db)
        except OSError as exc:
            raise FilesystemFault("write", path, str(exc)) from exc
        return path
    db = os.fspath(db)
    if db in (MEMORY, TEMPORARY):
        return get_temp_path()
    return os.path.abspath(os.path.expanduser(db))


def get_database_bin(bin: Optional[str] = None) -> str:
    """Explicit binary if given, else ``sqlite3`` from ``PATH``."""
    if bin:
        return bin
    found = shutil.which("sqlite3")
    if found is None:
        raise ShellNotFoundFault("sqlite3")
    return found


def quote_path(path: str) -> str:
    """Quote ``path`` as a dot-command argument."""
    escaped = path.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
