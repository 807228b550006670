"""
Shellite DB — Execution queue.

The shell has one stdin and one undifferentiated pair of output streams,
so only one command may be in flight at a time. Every adapter owns one
``ExecutionQueue``; callers compose their work onto its tail and the tail
becomes their own task.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

__all__ = ["ExecutionQueue"]

T = TypeVar("T")


class ExecutionQueue:
    """
    Strict FIFO chain of asynchronous tasks.

    A task starts only once every previously enqueued task has settled,
    successfully or not. A failing task never prevents the next one from
    running.
    """

    __slots__ = ("_tail",)

    def __init__(self) -> None:
        self._tail: Optional[asyncio.Future] = None

    def enqueue(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """
        Schedule ``task`` after the current tail.

        Must be called from within a running event loop. The returned task
        resolves (or fails) with whatever ``task`` produced.
        """
        previous = self._tail

        async def run() -> T:
            if previous is not None and not previous.done():
                # asyncio.wait never raises on the awaited task's failure
                await asyncio.wait((previous,))
            return await task()

        current = asyncio.ensure_future(run())
        self._tail = current
        return current

    def reset(self) -> None:
        """Forget the chain; later tasks no longer wait for earlier ones."""
        self._tail = None

    @property
    def idle(self) -> bool:
        return self._tail is None or self._tail.done()

    async def drain(self) -> None:
        """Wait until everything enqueued so far has settled."""
        tail = self._tail
        if tail is not None and not tail.done():
            await asyncio.wait((tail,))
