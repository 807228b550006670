"""
Shellite DB Backend — sqlite3 shell adapter.

The shell speaks plain text with no framing, so the end of each command's
output is detected with a sentinel: after the caller's query we ask the
shell to print a JSON row holding a per-adapter token, once on stdout and
once, via ``.output stderr``, on stderr. The shell does not flush stderr
on its own after a successful statement; the second sentinel gives an
unambiguous end-of-errors signal. A command is finished when both
streams end with the marker, in whatever order they arrive.

Commands run strictly one at a time through an ``ExecutionQueue``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from enum import Enum
from typing import Any, List, Optional, Tuple

from ...faults import DecodeFault, ProcessExitedFault, QueryFault
from ...utils.paths import quote_path
from ..autocloser import Autocloser
from ..queue import ExecutionQueue
from ..rope import Rope
from ..session import ShellSession
from .base import DatabaseAdapter, ResultMode

logger = logging.getLogger("shellite.db.backends.shell")

__all__ = ["ShellAdapter", "QUIT"]

QUIT = ".quit"

# Bytes requested per stream read
_CHUNK_SIZE = 64 * 1024


class Stage(Enum):
    """Progress of one command's output framing."""

    AWAITING_BOTH = "awaiting_both"
    AWAITING_STDOUT = "awaiting_stdout"
    AWAITING_STDERR = "awaiting_stderr"
    COMPLETE = "complete"


class Frame:
    """
    Framing state machine for a single command.

    Transitions are driven by chunk arrival on either stream; a stream is
    done once its accumulator ends with the marker.
    """

    __slots__ = ("marker", "stdout", "stderr", "stage")

    def __init__(self, marker: bytes):
        self.marker = marker
        self.stdout = Rope()
        self.stderr = Rope()
        self.stage = Stage.AWAITING_BOTH

    @property
    def complete(self) -> bool:
        return self.stage is Stage.COMPLETE

    def stream_done(self, channel: str) -> bool:
        if self.stage is Stage.COMPLETE:
            return True
        if channel == "stdout":
            return self.stage is Stage.AWAITING_STDERR
        return self.stage is Stage.AWAITING_STDOUT

    def feed(self, channel: str, chunk: bytes) -> bool:
        """Record ``chunk``; return True once ``channel`` has seen its marker."""
        rope = self.stdout if channel == "stdout" else self.stderr
        rope.push(chunk)
        if not rope.endswith(self.marker):
            return False
        if channel == "stdout":
            if self.stage is Stage.AWAITING_BOTH:
                self.stage = Stage.AWAITING_STDERR
            elif self.stage is Stage.AWAITING_STDOUT:
                self.stage = Stage.COMPLETE
        else:
            if self.stage is Stage.AWAITING_BOTH:
                self.stage = Stage.AWAITING_STDOUT
            elif self.stage is Stage.AWAITING_STDERR:
                self.stage = Stage.COMPLETE
        return True

    def payload(self, channel: str) -> bytes:
        rope = self.stdout if channel == "stdout" else self.stderr
        return rope.concat()[:-len(self.marker)]


class ShellAdapter(DatabaseAdapter):
    """
    Adapter driving a persistent ``sqlite3`` shell process.

    Features:
    - One process, spawned lazily and respawned after it dies
    - Strict FIFO execution through an owned ``ExecutionQueue``
    - Optional idle autoclose after ``ttl`` seconds
    - Session initialization script run on every fresh spawn
    """

    name = "shell"

    def __init__(
        self,
        bin: str,
        args: List[str],
        *,
        path: Optional[str] = None,
        ttl: Optional[float] = None,
        init_sql: str = "",
        close_timeout: float = 5.0,
    ):
        self._token = secrets.token_hex(8)
        self._marker = f'[{{"_":"{self._token}"}}]\n'.encode("utf-8")
        self._session = ShellSession(bin, [*args, "-cmd", ".mode json"], path=path)
        self._queue = ExecutionQueue()
        self._autocloser = Autocloser(ttl, self.close)
        self._init_sql = init_sql
        self._close_timeout = close_timeout

    # ── Commands ─────────────────────────────────────────────────────

    def exec(self, query: str, mode: ResultMode = ResultMode.PARSED) -> "asyncio.Task[Any]":
        """
        Enqueue one command.

        Args:
            query: SQL or dot-command text
            mode: How to decode the output
        """
        return self._queue.enqueue(lambda: self._run(query, mode))

    async def backup(self, path: str) -> None:
        await self.exec(f".backup {quote_path(path)}", ResultMode.DISCARD)

    async def restore(self, path: str) -> None:
        await self.exec(f".restore {quote_path(path)}", ResultMode.DISCARD)

    async def dump(self) -> str:
        return await self.exec(".dump", ResultMode.TEXT)

    async def _run(self, query: str, mode: ResultMode) -> Any:
        self._autocloser.pause()
        try:
            process, fresh = await self._open()
            try:
                return await self._command(process, query, mode)
            except ProcessExitedFault as exc:
                # A reused process may have died between commands; it never
                # saw this one, so a fresh process can run it
                if fresh or not exc.retryable or self._session.stopped(process):
                    raise
                logger.info(f"Shell (pid={process.pid}) died before the command ran, respawning")
                if self._session.process is process:
                    self._session.detach()
                process, _ = await self._open()
                return await self._command(process, query, mode)
        finally:
            self._autocloser.resume()

    async def _open(self) -> Tuple[asyncio.subprocess.Process, bool]:
        process, fresh = await self._session.open()
        if fresh:
            self._autocloser.start()
            self._autocloser.pause()
            if self._init_sql:
                try:
                    await self._command(process, self._init_sql, ResultMode.DISCARD)
                except QueryFault as exc:
                    logger.warning(f"Session initialization failed: {exc.message.strip()}")
        return process, fresh

    async def _command(self, process: asyncio.subprocess.Process, query: str, mode: ResultMode) -> Any:
        frame = Frame(self._marker)
        logger.debug(f"exec[{mode.value}] {query[:200]!r}")

        # Output is read while stdin drains, or a large script with a large
        # result would block on both pipes at once
        readers = asyncio.gather(
            self._drain(process.stdout, frame, "stdout"),
            self._drain(process.stderr, frame, "stderr"),
        )
        write_error: Optional[OSError] = None
        try:
            process.stdin.write(f"{query}\n;\n".encode("utf-8"))
            process.stdin.write(f"SELECT '{self._token}' AS _;\n".encode("utf-8"))
            process.stdin.write(f".output stderr\nSELECT '{self._token}' AS _;\n.output\n".encode("utf-8"))
            await process.stdin.drain()
        except OSError as exc:
            write_error = exc
        await readers

        if not frame.complete:
            if query == QUIT:
                return None
            # Nothing came back, so the shell never ran any of it
            silent = not frame.stdout and not frame.stderr
            if write_error is not None:
                raise ProcessExitedFault(
                    f"could not write to process: {write_error}",
                    returncode=process.returncode,
                    retryable=silent,
                ) from write_error
            raise ProcessExitedFault(
                returncode=process.returncode,
                retryable=silent,
                metadata={"sql": query[:200]},
            )

        error = frame.payload("stderr")
        if error:
            raise QueryFault(error.decode("utf-8", errors="replace"), sql=query)

        return self._decode(frame.payload("stdout"), mode, query)

    async def _drain(self, stream: asyncio.StreamReader, frame: Frame, channel: str) -> None:
        while not frame.stream_done(channel):
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:  # EOF, the process is gone
                return
            frame.feed(channel, chunk)

    @staticmethod
    def _decode(payload: bytes, mode: ResultMode, query: str) -> Any:
        if mode is ResultMode.DISCARD:
            return None
        if mode is ResultMode.BYTES:
            return payload
        try:
            text = payload.decode("utf-8")
            if mode is ResultMode.TEXT:
                return text
            if not text.strip():
                return []
            return json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DecodeFault(str(exc), sql=query) from exc

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        """
        Close the current process, if any.

        Shutdown is queued behind every command already submitted, so
        those still complete; commands submitted afterwards spawn a fresh
        process. If the queue has not reached the shutdown within
        ``close_timeout`` seconds the process is killed, failing the
        command that holds it.
        """
        self._autocloser.stop()
        shutdown = self._queue.enqueue(self._shutdown)
        done, _ = await asyncio.wait((shutdown,), timeout=self._close_timeout)
        if not done:
            logger.warning(f"Shell (pid={self.pid}) unresponsive after {self._close_timeout}s, killing it")
            self._session.kill()
            done, _ = await asyncio.wait((shutdown,), timeout=self._close_timeout)
        if done:
            await shutdown

    async def _shutdown(self) -> None:
        process = self._session.detach()
        if process is None:
            return
        quitting = None
        if process.returncode is None:
            quitting = asyncio.ensure_future(self._command(process, QUIT, ResultMode.DISCARD))
        await self._session.close(process, quitting, self._close_timeout)

    def kill(self) -> None:
        """Kill the process without waiting and drop pending chaining."""
        # At interpreter exit the timer's loop may already be closed
        with contextlib.suppress(RuntimeError):
            self._autocloser.stop()
        self._session.kill()
        self._session.detach()
        self._queue.reset()

    @property
    def pid(self) -> Optional[int]:
        return self._session.pid

    @property
    def is_open(self) -> bool:
        return self._session.alive

    @property
    def idle_ttl(self) -> Optional[float]:
        return self._autocloser.ttl
