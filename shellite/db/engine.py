"""
Shellite Database Engine — async SQL over a persistent sqlite3 shell.

Provides:
- Database: public API delegating to a backend adapter
- Batches: queries collected and flushed as a single script
- Transactions: BEGIN/COMMIT around a callable, rolled back on failure
- Backup, serialization and deserialization through temp files
- Interpreter-exit cleanup of processes and temp files
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import os
import weakref
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..config import DatabaseOptions
from ..faults import ConfigFault, DatabaseClosedFault, Fault, FilesystemFault, NestingFault
from ..utils.paths import (
    MEMORY,
    TEMPORARY,
    ensure_unlink,
    get_database_bin,
    get_database_path,
    get_temp_path,
)
from .backends.base import DatabaseAdapter, ResultMode
from .builder import sql as build_sql

logger = logging.getLogger("shellite.db")

__all__ = ["Database"]


def _create_adapter(path: str, options: DatabaseOptions) -> DatabaseAdapter:
    """Build the backend adapter selected by ``options.backend``."""
    init_sql = options.init_script()
    if options.backend == "native":
        from .backends.native import NativeAdapter
        return NativeAdapter(
            path,
            readonly=options.readonly,
            timeout=options.timeout,
            init_sql=init_sql,
        )

    from .backends.shell import ShellAdapter
    bin = get_database_bin(options.bin)
    args = [path]
    if options.readonly:
        args.append("-readonly")
    if options.timeout:
        args.extend(["-cmd", f".timeout {int(options.timeout)}"])
    args.extend(options.args)
    return ShellAdapter(
        bin,
        args,
        path=None if options.readonly else path,
        ttl=options.ttl,
        init_sql=init_sql,
        close_timeout=options.close_timeout,
    )


def _cleanup(adapter: DatabaseAdapter, path: Optional[str]) -> None:
    adapter.kill()
    if path:
        ensure_unlink(path)


class Database:
    """
    Async SQL interface backed by a single ``sqlite3`` shell process.

    Every query runs strictly one at a time, in the order the calls were
    made, whether or not the caller awaits them.

    Usage:
        async with Database(":memory:") as db:
            await db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
            await db.sql("INSERT INTO users (name) VALUES (?)", "Alice")
            rows = await db.query("SELECT * FROM users")
            # [{'id': 1, 'name': 'Alice'}]

        # Options
        db = Database("app.db", readonly=True, timeout=5000, ttl=60)
    """

    __slots__ = (
        "name",
        "path",
        "options",
        "memory",
        "temporary",
        "batching",
        "transacting",
        "_adapter",
        "_batched",
        "_issued",
        "_closed",
        "_finalizer",
        "__weakref__",
    )

    def __init__(
        self,
        db: Union[str, bytes, bytearray, os.PathLike] = MEMORY,
        options: Optional[DatabaseOptions] = None,
        **overrides: Any,
    ):
        """
        Initialize database.

        Args:
            db: ``":memory:"`` for an in-memory database, ``""`` for a
                temporary one, serialized bytes, or a file path.
            options: Database options (defaults apply when omitted)
            **overrides: Individual ``DatabaseOptions`` fields
        """
        try:
            options = dataclasses.replace(options or DatabaseOptions(), **overrides)
        except TypeError as exc:
            raise ConfigFault("options", str(exc)) from exc
        self.options = options.validate()

        is_bytes = isinstance(db, (bytes, bytearray, memoryview))
        self.memory = not is_bytes and db == MEMORY
        self.temporary = is_bytes or db == TEMPORARY
        if options.backend == "shell":
            # Fail on a missing binary before any temp file exists
            get_database_bin(options.bin)
        self.path = get_database_path(db)
        self.name = self.path if is_bytes or self.temporary else os.fspath(db)

        self.batching = False
        self.transacting = False
        self._batched: List[str] = []
        self._issued: List[Awaitable[Any]] = []
        self._closed = False
        self._adapter = _create_adapter(self.path, options)
        self._finalizer = weakref.finalize(
            self,
            _cleanup,
            self._adapter,
            self.path if self.memory or self.temporary else None,
        )

    # ── Lifecycle ────────────────────────────────────────────────────

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Close the database. Idempotent; never raises.

        Memory and temporary databases are deleted from disk.
        """
        if self._closed:
            return
        self._closed = True
        self._finalizer.detach()
        try:
            await self._adapter.close()
        except (Fault, OSError) as exc:
            logger.warning(f"Error while closing {self.name!r}: {exc}")
            self._adapter.kill()
        if self.memory or self.temporary:
            ensure_unlink(self.path)
        logger.debug(f"Database closed: {self.name!r}")

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseClosedFault(self.name)

    # ── Queries ──────────────────────────────────────────────────────

    def query(self, sql: str, mode: Union[ResultMode, str] = ResultMode.PARSED) -> Awaitable[Any]:
        """
        Submit a query.

        The query is enqueued before this method returns, so submission
        order is call order even when the result is awaited later. While
        batching, the query is collected instead and resolves to None.

        Args:
            sql: SQL text (may hold several statements) or a dot-command
            mode: How to decode the output

        Returns:
            Awaitable resolving to the decoded result
        """
        self._check_open()
        mode = ResultMode(mode)
        if self.batching:
            self._batched.append(sql)
            future = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        task = self._adapter.exec(sql, mode)
        if self.transacting:
            self._issued.append(task)
        return task

    def sql(self, template: str, *args: Any, **kwargs: Any) -> Awaitable[Any]:
        """
        Interpolate escaped values into ``template`` and submit it.

        Usage:
            await db.sql("SELECT * FROM users WHERE id = ?", 1)
            await db.sql("SELECT * FROM users WHERE name = :name", name="Alice")
        """
        return self.query(build_sql(template, *args, **kwargs))

    def execute(self, sql: str) -> Awaitable[None]:
        """Submit a script whose output is discarded."""
        return self.query(sql, ResultMode.DISCARD)

    # ── Batches & transactions ───────────────────────────────────────

    def batch(self, fn: Callable[[], Any]) -> Awaitable[None]:
        """
        Collect every query ``fn`` submits and send them as one script.

        ``fn`` may be a plain function or a coroutine function.

        Raises:
            NestingFault: Immediately, if a batch is already being collected
        """
        if self.batching:
            raise NestingFault("batches")
        self._check_open()
        self.batching = True
        self._batched = []
        return self._batch(fn)

    async def _batch(self, fn: Callable[[], Any]) -> None:
        try:
            result = fn()
            if inspect.isawaitable(result):
                await result
            if self._batched:
                script = ";\n".join(self._batched)
                logger.debug(f"Flushing batch of {len(self._batched)} queries")
                await self._adapter.exec(script, ResultMode.DISCARD)
        finally:
            self.batching = False
            self._batched = []

    def transaction(self, fn: Callable[[], Any]) -> Awaitable[bool]:
        """
        Run ``fn`` inside ``BEGIN TRANSACTION`` / ``COMMIT``.

        The transaction rolls back when ``fn`` raises or when any query it
        submitted fails, whether or not ``fn`` awaited that query.

        Returns:
            Awaitable resolving to True if committed, False if the
            transaction was rolled back

        Raises:
            NestingFault: Immediately, if a transaction is already running
        """
        if self.transacting:
            raise NestingFault("transactions")
        self._check_open()
        self.transacting = True
        return self._transaction(fn)

    async def _transaction(self, fn: Callable[[], Any]) -> bool:
        try:
            await self.query("BEGIN TRANSACTION", ResultMode.DISCARD)
            self._issued = []
            try:
                result = fn()
                if inspect.isawaitable(result):
                    await result
            finally:
                outcomes = await asyncio.gather(*self._issued, return_exceptions=True)
                self._issued = []
            for outcome in outcomes:
                if isinstance(outcome, Exception):
                    raise outcome
            await self.query("COMMIT", ResultMode.DISCARD)
            return True
        except Exception as exc:
            logger.warning(f"Transaction failed, rolling back: {exc}")
            try:
                await self.query("ROLLBACK TRANSACTION", ResultMode.DISCARD)
            except Fault as rollback_exc:
                logger.warning(f"Rollback failed: {rollback_exc}")
            return False
        finally:
            self.transacting = False
            self._issued = []

    # ── Maintenance ──────────────────────────────────────────────────

    async def backup(self, path: Union[str, os.PathLike]) -> None:
        """Write a consistent copy of the database to ``path``."""
        self._check_open()
        await self._adapter.backup(os.path.abspath(os.fspath(path)))

    async def serialize(self) -> bytes:
        """Return the whole database file as bytes."""
        self._check_open()
        temp = get_temp_path()
        try:
            await self._adapter.backup(temp)
            return await asyncio.to_thread(Path(temp).read_bytes)
        except OSError as exc:
            raise FilesystemFault("read", temp, str(exc)) from exc
        finally:
            ensure_unlink(temp)

    async def deserialize(self, data: bytes) -> "Database":
        """Replace the database contents with serialized ``data``."""
        self._check_open()
        temp = get_temp_path()
        try:
            await asyncio.to_thread(Path(temp).write_bytes, bytes(data))
            await self._adapter.restore(temp)
        except OSError as exc:
            raise FilesystemFault("write", temp, str(exc)) from exc
        finally:
            ensure_unlink(temp)
        return self

    async def dump(self) -> str:
        """SQL text that recreates the whole database."""
        self._check_open()
        return await self._adapter.dump()

    async def vacuum(self) -> None:
        """Rebuild the database file, releasing free pages."""
        await self.query("VACUUM", ResultMode.DISCARD)

    async def size(self) -> int:
        """Bytes used by the database file."""
        rows = await self.query(
            "SELECT page_count * page_size AS size FROM pragma_page_count(), pragma_page_size()"
        )
        return int(rows[0]["size"])

    # ── Properties ───────────────────────────────────────────────────

    @property
    def open(self) -> bool:
        """Whether a session (process or connection) is currently live."""
        return not self._closed and self._adapter.is_open

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def readonly(self) -> bool:
        return self.options.readonly

    @property
    def backend(self) -> str:
        return self._adapter.name

    @property
    def pid(self) -> Optional[int]:
        return self._adapter.pid

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Database {self.name!r} backend={self.backend} {state}>"
