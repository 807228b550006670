"""
Shellite DB Backend — in-process SQLite adapter via aiosqlite.

Runs the same commands as the shell adapter without a child process, so a
``Database`` keeps working where no ``sqlite3`` binary is installed. The
connection is opened in autocommit mode; ``BEGIN``/``COMMIT`` sent by the
transaction coordinator reach the engine verbatim.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...faults import QueryFault
from ..queue import ExecutionQueue
from .base import DatabaseAdapter, ResultMode

try:
    import aiosqlite
except ImportError:
    aiosqlite = None  # type: ignore[assignment]

logger = logging.getLogger("shellite.db.backends.native")

__all__ = ["NativeAdapter", "split_statements"]


def split_statements(script: str) -> List[str]:
    """
    Split ``script`` into complete SQL statements.

    Semicolons inside literals, comments and trigger bodies are handled by
    SQLite's own completeness check. A trailing incomplete fragment is kept
    so the engine reports it.
    """
    statements: List[str] = []
    buffer = ""
    pieces = script.split(";")
    for piece in pieces[:-1]:
        buffer += piece + ";"
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement.strip(";").strip():
                statements.append(statement)
            buffer = ""
    leftover = (buffer + pieces[-1]).strip()
    if leftover:
        statements.append(leftover)
    return statements


def _encode_blob(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class NativeAdapter(DatabaseAdapter):
    """
    SQLite adapter using aiosqlite.

    Features:
    - Lazy connection, reopened after ``close()``
    - Strict FIFO execution through an owned ``ExecutionQueue``
    - Multi-statement scripts
    - Online backup API for backup/restore
    """

    name = "native"

    def __init__(
        self,
        path: str,
        *,
        readonly: bool = False,
        timeout: Optional[int] = None,
        init_sql: str = "",
    ):
        self.path = path
        self.readonly = readonly
        self.timeout = timeout
        self._init_sql = init_sql
        self._connection: Any = None
        self._queue = ExecutionQueue()

    # ── Commands ─────────────────────────────────────────────────────

    def exec(self, query: str, mode: ResultMode = ResultMode.PARSED) -> "asyncio.Task[Any]":
        return self._queue.enqueue(lambda: self._run(query, mode))

    async def backup(self, path: str) -> None:
        await self._queue.enqueue(lambda: self._copy(path, restore=False))

    async def restore(self, path: str) -> None:
        await self._queue.enqueue(lambda: self._copy(path, restore=True))

    async def dump(self) -> str:
        return await self._queue.enqueue(self._dump)

    async def _dump(self) -> str:
        connection = await self._connect()
        lines = [line async for line in connection.iterdump()]
        return "\n".join(lines) + "\n"

    async def _connect(self) -> Any:
        if self._connection is not None:
            return self._connection
        if aiosqlite is None:
            raise ImportError(
                "aiosqlite is required for the native backend. "
                "Install: pip install aiosqlite"
            )
        timeout = self.timeout / 1000 if self.timeout else 5.0
        if self.readonly:
            uri = f"{Path(self.path).as_uri()}?mode=ro"
            connection = await aiosqlite.connect(uri, uri=True, timeout=timeout, isolation_level=None)
        else:
            connection = await aiosqlite.connect(self.path, timeout=timeout, isolation_level=None)
        connection.row_factory = aiosqlite.Row
        self._connection = connection
        logger.info(f"SQLite connected: {self.path}")
        if self._init_sql:
            try:
                await connection.executescript(self._init_sql)
            except sqlite3.Error as exc:
                logger.warning(f"Session initialization failed: {exc}")
        return connection

    async def _run(self, query: str, mode: ResultMode) -> Any:
        if query.lstrip().startswith("."):
            raise QueryFault(
                f"Dot-commands are not supported by the native backend: {query.split()[0]}",
                sql=query,
            )
        logger.debug(f"exec[{mode.value}] {query[:200]!r}")
        connection = await self._connect()

        rows: Optional[List[Dict[str, Any]]] = None
        try:
            for statement in split_statements(query):
                async with connection.execute(statement) as cursor:
                    if cursor.description:
                        rows = [dict(row) for row in await cursor.fetchall()]
        except sqlite3.Error as exc:
            raise QueryFault(str(exc), sql=query) from exc

        if mode is ResultMode.DISCARD:
            return None
        if mode is ResultMode.PARSED:
            return rows or []
        text = json.dumps(rows, separators=(",", ":"), default=_encode_blob) + "\n" if rows else ""
        if mode is ResultMode.TEXT:
            return text
        return text.encode("utf-8")

    async def _copy(self, path: str, *, restore: bool) -> None:
        connection = await self._connect()
        try:
            async with aiosqlite.connect(path) as other:
                if restore:
                    await other.backup(connection)
                else:
                    await connection.backup(other)
        except sqlite3.Error as exc:
            raise QueryFault(str(exc), sql=f"{'restore' if restore else 'backup'} {path}") from exc

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._queue.enqueue(self._disconnect)

    async def _disconnect(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
            logger.info("SQLite disconnected")
        except (sqlite3.Error, ValueError) as exc:
            logger.warning(f"SQLite close failed: {exc}")

    def kill(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            asyncio.get_running_loop().create_task(connection.close())
        except RuntimeError:
            logger.debug("No running loop, dropping native connection")

    @property
    def is_open(self) -> bool:
        return self._connection is not None
