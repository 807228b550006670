"""
Shellite Faults - typed fault signals for the shell-backed database.

Every failure the library raises is a ``Fault``: it carries a stable code,
a domain, a retry flag and metadata, so callers can branch on ``fault.code``
instead of parsing messages.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Domain faults (QueryFault, ProcessExitedFault, NestingFault, ...)
"""

from .core import (
    Fault,
    FaultDomain,
)

from .domains import (
    ConfigFault,
    ShellNotFoundFault,
    QueryFault,
    ProcessExitedFault,
    DatabaseClosedFault,
    NestingFault,
    DecodeFault,
    EscapeFault,
    FilesystemFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",

    # Domain faults
    "ConfigFault",
    "ShellNotFoundFault",
    "QueryFault",
    "ProcessExitedFault",
    "DatabaseClosedFault",
    "NestingFault",
    "DecodeFault",
    "EscapeFault",
    "FilesystemFault",
]
