"""
Shellite DB — Output accumulator.

Collects the chunks a shell stream emits for one command without
concatenating them on every arrival. Result payloads can be many
megabytes (blob round-trips), so the end-of-output check only ever looks
at as many trailing bytes as the marker is long.
"""

from __future__ import annotations

from typing import List

__all__ = ["Rope"]


class Rope:
    """Append-only list of byte chunks with a cheap suffix test."""

    __slots__ = ("_chunks", "_size")

    def __init__(self) -> None:
        self._chunks: List[bytes] = []
        self._size = 0

    def push(self, chunk: bytes) -> None:
        self._chunks.append(chunk)
        self._size += len(chunk)

    def clear(self) -> None:
        self._chunks.clear()
        self._size = 0

    def endswith(self, marker: bytes) -> bool:
        """
        Whether the concatenation of every pushed chunk ends with ``marker``.

        Walks the chunks from the most recent one backwards and stops at the
        first mismatching byte, so chunk boundaries never change the answer.
        """
        if not marker:
            return True
        mi = len(marker) - 1
        for chunk in reversed(self._chunks):
            for ci in range(len(chunk) - 1, -1, -1):
                if chunk[ci] != marker[mi]:
                    return False
                mi -= 1
                if mi < 0:
                    return True
        return False

    def concat(self) -> bytes:
        return b"".join(self._chunks)

    def to_text(self) -> str:
        return self.concat().decode("utf-8")

    def __len__(self) -> int:
        return self._size
