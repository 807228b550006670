"""
Shellite DB Backend — Base Adapter Interface.

All backends must implement this interface. ``Database`` delegates every
command to its adapter and layers the batch/transaction coordinator on
top, so the two backends differ only in how a single command travels to
the engine and back:

- ``shell``: a persistent ``sqlite3`` child process (the default)
- ``native``: an in-process connection through aiosqlite
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("shellite.db.backends")

__all__ = [
    "DatabaseAdapter",
    "ResultMode",
]


class ResultMode(str, Enum):
    """How a command's output is handed back to the caller."""

    DISCARD = "discard"  # None
    BYTES = "bytes"      # raw bytes as the engine printed them
    TEXT = "text"        # raw JSON text
    PARSED = "parsed"    # list of row dicts ([] when nothing was printed)


class DatabaseAdapter(ABC):
    """
    Abstract database adapter interface.

    ``exec`` must enqueue synchronously: the order of ``exec`` calls is the
    order in which commands reach the engine.
    """

    name: str = "base"

    @abstractmethod
    def exec(self, query: str, mode: ResultMode = ResultMode.PARSED) -> "asyncio.Future[Any]":
        """Enqueue ``query`` and return a future for its decoded result."""
        ...

    @abstractmethod
    async def backup(self, path: str) -> None:
        """Write a consistent copy of the database to ``path``."""
        ...

    @abstractmethod
    async def restore(self, path: str) -> None:
        """Replace the database contents with the database file at ``path``."""
        ...

    @abstractmethod
    async def dump(self) -> str:
        """SQL text that recreates the whole database."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection/process. Must never raise."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """Synchronous last-resort release, used at interpreter exit."""
        ...

    @property
    def pid(self) -> Optional[int]:
        """OS process id serving this adapter, if any."""
        return None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...
