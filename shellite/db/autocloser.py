"""
Shellite DB — Idle autocloser.

Closes an unused shell session after ``ttl`` seconds without commands.
This is only accurate within one TTL window: the check runs every ``ttl``
seconds, so a session may live up to twice as long as configured, and a
command arriving right as a tick fires may see its session closed and
immediately respawned.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import time
from typing import Any, Callable, Optional

logger = logging.getLogger("shellite.db.autocloser")

__all__ = ["Autocloser"]

# Tolerance for timer jitter
_SLACK = 0.001


class Autocloser:
    """
    Repeating idle check driven by the event loop's monotonic clock.

    States:
    - stopped: no timer task
    - running: timer armed, ``_started`` is the last resume time
    - paused: timer armed, ``_started`` is +inf so no tick can fire
    """

    __slots__ = ("ttl", "_on_close", "_task", "_started", "_closing")

    def __init__(self, ttl: Optional[float], on_close: Callable[[], Any]):
        self.ttl = ttl
        self._on_close = on_close
        self._task: Optional[asyncio.Task] = None
        self._started = 0.0
        self._closing: Optional[asyncio.Future] = None

    @property
    def enabled(self) -> bool:
        return self.ttl is not None and 0 < self.ttl < math.inf

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def paused(self) -> bool:
        return self._started == math.inf

    def start(self) -> None:
        if not self.enabled:
            return
        self.stop()
        self._started = time.monotonic()
        self._task = asyncio.get_running_loop().create_task(self._tick())

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._started = 0.0

    def pause(self) -> None:
        self._started = math.inf

    def resume(self) -> None:
        self._started = time.monotonic()

    def check(self) -> bool:
        """Fire the close callback if the idle window elapsed."""
        if time.monotonic() - self._started < self.ttl + _SLACK:
            return False
        logger.debug(f"Session idle for more than {self.ttl}s, closing")
        result = self._on_close()
        if inspect.isawaitable(result):
            self._closing = asyncio.ensure_future(result)
        return True

    async def _tick(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.ttl)
                if self.check():
                    break
            except asyncio.CancelledError:
                break
