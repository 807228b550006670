"""
Shellite SQL Builder — value escaping and placeholder interpolation.

The shell only accepts literal SQL text, so values cannot be bound as
parameters. Instead every supported value is rendered as a SQL literal
and substituted into ``?`` or ``:name`` placeholders.

Usage:
    from shellite.db.builder import sql, raw

    sql("SELECT * FROM users WHERE name = ? AND age > ?", "O'Brien", 18)
    # "SELECT * FROM users WHERE name = 'O''Brien' AND age > 18"

    sql("INSERT INTO t VALUES (:blob, :at)", blob=b"\\x01", at=raw("CURRENT_TIMESTAMP"))
    # "INSERT INTO t VALUES (x'01', CURRENT_TIMESTAMP)"
"""

from __future__ import annotations

import datetime
import math
import re
from typing import Any, Mapping, Optional, Sequence, Union

from ..faults import EscapeFault

__all__ = [
    "Raw",
    "escape",
    "build",
    "sql",
    "raw",
]

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

# Quoted literals, quoted identifiers and comments are matched first so
# placeholders inside them are left alone.
_TOKEN_RE = re.compile(
    r"""
    '(?:[^']|'')*'
    | "(?:[^"]|"")*"
    | --[^\n]*
    | /\*.*?\*/
    | (?P<positional>\?)(?!\d)
    | :(?P<named>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE | re.DOTALL,
)


class Raw:
    """
    SQL fragment inserted verbatim, without escaping.

    Use with caution: the text is trusted.
    """

    __slots__ = ("value",)

    def __init__(self, value: str):
        self.value = value

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"Raw({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Raw) and other.value == self.value

    def __hash__(self) -> int:
        return hash(("Raw", self.value))


def escape(value: Any) -> str:
    """
    Render ``value`` as a SQL literal.

    Raises:
        EscapeFault: For values outside the supported set
    """
    if isinstance(value, Raw):
        return value.value
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise EscapeFault(f"integer {value} does not fit in 64 bits")
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise EscapeFault(f'unsupported "float" value: {value!r}')
        return repr(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"x'{bytes(value).hex()}'"
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            text = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
            return f"'{text.isoformat(timespec='milliseconds')}Z'"
        return f"'{value.isoformat(timespec='milliseconds')}'"
    if isinstance(value, datetime.date):
        return f"'{value.isoformat()}'"
    raise EscapeFault(f'unsupported "{type(value).__name__}" value')


def build(query: str, params: Optional[Union[Sequence[Any], Mapping[str, Any]]] = None) -> str:
    """
    Substitute escaped ``params`` into the placeholders of ``query``.

    A sequence fills ``?`` placeholders in order; a mapping fills ``:name``
    placeholders by name.

    Raises:
        EscapeFault: On a placeholder/value count mismatch or a missing name
    """
    if params is None:
        params = ()
    named = isinstance(params, Mapping)
    values = iter(()) if named else iter(params)
    used = 0

    def replace(match: "re.Match[str]") -> str:
        nonlocal used
        if match.group("positional"):
            if named:
                return match.group(0)
            try:
                value = next(values)
            except StopIteration:
                raise EscapeFault(f"not enough values for placeholders (got {used})") from None
            used += 1
            return escape(value)
        name = match.group("named")
        if name:
            if not named:
                return match.group(0)
            if name not in params:
                raise EscapeFault(f"missing value for placeholder ':{name}'")
            return escape(params[name])
        return match.group(0)

    result = _TOKEN_RE.sub(replace, query)

    if not named and used != len(params):
        raise EscapeFault(f"too many values for placeholders (expected {used}, got {len(params)})")
    return result


def sql(template: str, *args: Any, **kwargs: Any) -> str:
    """
    Interpolate positional or keyword values into ``template``.

    Usage:
        sql("SELECT ? + ?", 1, 2)
        sql("SELECT :a + :b", a=1, b=2)
    """
    if args and kwargs:
        raise EscapeFault("use either positional or named values, not both")
    return build(template, kwargs if kwargs else args)


def raw(text: str) -> Raw:
    """Mark ``text`` as trusted SQL."""
    return Raw(text)
