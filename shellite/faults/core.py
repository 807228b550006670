"""
Shellite Faults - Core types.

Defines:
- FaultDomain (functional area a fault belongs to)
- Fault base class
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class FaultDomain(str, Enum):
    """Functional area where a fault occurred."""

    CONFIG = "config"       # options, config files, binary lookup
    QUERY = "query"         # errors reported by the engine
    PROCESS = "process"     # shell process lifecycle
    PROTOCOL = "protocol"   # batch/transaction misuse
    CODEC = "codec"         # escaping and result decoding
    IO = "io"


class Fault(Exception):
    """
    Base fault class.

    Attributes:
        code: Stable machine-readable identifier (e.g., "QUERY_FAILED")
        message: Human-readable summary
        domain: Fault domain
        retryable: True when resending the same command cannot repeat
            any of its effects
        metadata: Additional context data
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        domain: FaultDomain,
        retryable: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.domain = domain
        self.retryable = retryable
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and ``--verbose`` CLI output."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }
