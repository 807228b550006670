"""
Shellite Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults
- QUERY faults
- PROCESS faults
- PROTOCOL faults
- CODEC faults
- IO faults
"""

from typing import Optional
from .core import Fault, FaultDomain


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Configuration could not be loaded or validated."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Invalid configuration for '{key}': {reason}",
            domain=FaultDomain.CONFIG,
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


class ShellNotFoundFault(Fault):
    """The sqlite3 shell binary could not be located."""

    def __init__(self, bin: str, **kwargs):
        super().__init__(
            code="SHELL_NOT_FOUND",
            message=f"Database shell binary not found: {bin}",
            domain=FaultDomain.CONFIG,
            metadata={"bin": bin, **kwargs.get("metadata", {})},
        )


# ============================================================================
# QUERY Faults
# ============================================================================

class QueryFault(Fault):
    """
    The engine reported an error for a command.

    ``message`` is the error text exactly as the engine produced it.
    """

    def __init__(self, reason: str, *, sql: str = "", **kwargs):
        super().__init__(
            code="QUERY_FAILED",
            message=reason,
            domain=FaultDomain.QUERY,
            metadata={"sql": sql[:200], **kwargs.get("metadata", {})},
        )


# ============================================================================
# PROCESS Faults
# ============================================================================

class ProcessExitedFault(Fault):
    """The shell process went away while a command was in flight."""

    def __init__(
        self,
        reason: str = "process exited unexpectedly",
        *,
        returncode: Optional[int] = None,
        retryable: bool = False,
        **kwargs,
    ):
        super().__init__(
            code="PROCESS_EXITED",
            message=reason,
            domain=FaultDomain.PROCESS,
            retryable=retryable,
            metadata={"returncode": returncode, **kwargs.get("metadata", {})},
        )


class DatabaseClosedFault(Fault):
    """The database was used after ``close()``."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            code="DATABASE_CLOSED",
            message=f"Database '{name}' is closed",
            domain=FaultDomain.PROCESS,
            metadata={"name": name, **kwargs.get("metadata", {})},
        )


# ============================================================================
# PROTOCOL Faults
# ============================================================================

class NestingFault(Fault):
    """A batch or transaction was started while one was already active."""

    def __init__(self, kind: str, **kwargs):
        super().__init__(
            code="NESTING_UNSUPPORTED",
            message=f"nested {kind} are not supported",
            domain=FaultDomain.PROTOCOL,
            metadata={"kind": kind, **kwargs.get("metadata", {})},
        )


# ============================================================================
# CODEC Faults
# ============================================================================

class DecodeFault(Fault):
    """Command output could not be decoded in the requested mode."""

    def __init__(self, reason: str, *, sql: str = "", **kwargs):
        super().__init__(
            code="DECODE_FAILED",
            message=f"Could not decode result: {reason}",
            domain=FaultDomain.CODEC,
            metadata={"reason": reason, "sql": sql[:200], **kwargs.get("metadata", {})},
        )


class EscapeFault(Fault):
    """A value could not be rendered as a SQL literal."""

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            code="ESCAPE_FAILED",
            message=reason,
            domain=FaultDomain.CODEC,
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# IO Faults
# ============================================================================

class FilesystemFault(Fault):
    """Filesystem operation failed."""

    def __init__(self, operation: str, path: str, reason: str, **kwargs):
        super().__init__(
            code="FILESYSTEM_FAULT",
            message=f"Filesystem {operation} on '{path}' failed: {reason}",
            domain=FaultDomain.IO,
            metadata={"operation": operation, "path": path, "reason": reason, **kwargs.get("metadata", {})},
        )
