"""
Shellite DB — Process session.

Owns the single ``sqlite3`` child process behind an adapter. The process is
spawned lazily, reused while alive, and replaced transparently the next time
it is needed after it died. Closing asks the shell to quit first and only
then escalates to SIGKILL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import weakref
from typing import Awaitable, List, Optional, Set, Tuple

from ..faults import Fault, ShellNotFoundFault
from ..utils.paths import ensure_file

logger = logging.getLogger("shellite.db.session")

__all__ = ["ShellSession"]

# A single signal is not always delivered reliably, so kills are repeated
_KILL_ATTEMPTS = 3


class ShellSession:
    """
    Lazily spawned shell process.

    Attributes:
        bin: Path of the shell binary
        args: Arguments passed to every spawned process
        path: Database file to create before spawning (None for none)
    """

    __slots__ = ("bin", "args", "path", "process", "_watchers", "_stopped")

    def __init__(self, bin: str, args: List[str], *, path: Optional[str] = None):
        self.bin = bin
        self.args = list(args)
        self.path = path
        self.process: Optional[asyncio.subprocess.Process] = None
        self._watchers: Set[asyncio.Task] = set()
        self._stopped: "weakref.WeakSet[asyncio.subprocess.Process]" = weakref.WeakSet()

    @property
    def alive(self) -> bool:
        process = self.process
        if process is None or process.returncode is not None:
            return False
        # The exit status is reaped asynchronously; closed pipes show a
        # dead process earlier
        return not (process.stdin.is_closing() or process.stdout.at_eof())

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.alive else None

    async def open(self) -> Tuple[asyncio.subprocess.Process, bool]:
        """
        Return the running process, spawning one if needed.

        Returns:
            ``(process, fresh)`` where ``fresh`` is True for a new spawn
        """
        if self.alive:
            return self.process, False

        if self.path:
            ensure_file(self.path)

        try:
            process = await asyncio.create_subprocess_exec(
                self.bin,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise ShellNotFoundFault(self.bin, metadata={"reason": str(exc)}) from exc

        self.process = process
        watcher = asyncio.get_running_loop().create_task(self._watch(process))
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        logger.info(f"Shell spawned (pid={process.pid}): {self.bin} {' '.join(self.args)}")
        return process, True

    def detach(self) -> Optional[asyncio.subprocess.Process]:
        """Forget the current process so the next ``open()`` spawns fresh."""
        process, self.process = self.process, None
        return process

    async def close(
        self,
        process: asyncio.subprocess.Process,
        quitting: Optional[Awaitable[None]],
        timeout: float,
    ) -> None:
        """
        Shut ``process`` down, gracefully when possible.

        Args:
            process: The process to stop (already detached)
            quitting: Pending ``.quit`` command against ``process``
            timeout: Seconds to wait for the graceful path
        """
        if process.returncode is not None:
            return
        self._stopped.add(process)
        try:
            if quitting is not None:
                await asyncio.wait_for(quitting, timeout)
            await asyncio.wait_for(process.wait(), timeout)
            logger.info(f"Shell closed (pid={process.pid})")
        except (Fault, OSError, asyncio.TimeoutError) as exc:
            logger.warning(f"Shell did not quit (pid={process.pid}): {exc!r}, killing it")
            self.kill(process)

    def kill(self, process: Optional[asyncio.subprocess.Process] = None) -> None:
        """Forcefully terminate ``process`` (default: the current one)."""
        process = process or self.process
        if process is None or process.returncode is not None:
            return
        self._stopped.add(process)
        sig = getattr(signal, "SIGKILL", signal.SIGTERM)
        for _ in range(_KILL_ATTEMPTS):
            with contextlib.suppress(ProcessLookupError, OSError):
                os.kill(process.pid, sig)

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if process in self._stopped:
            logger.debug(f"Shell exited (pid={process.pid}, code={returncode})")
        else:
            logger.warning(f"Shell exited unexpectedly (pid={process.pid}, code={returncode})")
        if self.process is process:
            self.process = None

    def stopped(self, process: asyncio.subprocess.Process) -> bool:
        """Whether ``process`` was asked to quit or killed by this session."""
        return process in self._stopped
