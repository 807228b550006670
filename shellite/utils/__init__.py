"""Shellite utilities."""

from .paths import (
    MEMORY,
    TEMPORARY,
    ensure_file,
    ensure_unlink,
    get_database_bin,
    get_database_path,
    get_temp_path,
    quote_path,
)

__all__ = [
    "MEMORY",
    "TEMPORARY",
    "ensure_file",
    "ensure_unlink",
    "get_database_bin",
    "get_database_path",
    "get_temp_path",
    "quote_path",
]
