"""
Container Format Specification.

Layout:
    __magicNumber=Xyzzy0xfeedbeef1990   <- Magic line (format identification, instant)
    <name>=<value>                      <- User properties, ascending by name
    ...
    __encoding=JSON|XML                 <- Payload encoding tag
    __payloadClassname=<string>         <- Informational payload type
    __payload=<text>                    <- Payload, always last; may span lines

Property Grammar:
    - A line is split at its FIRST '=' only; values may contain '='
    - No '='             -> nameless value (name "", value = whole line)
    - Leading '='        -> nameless value (name "", value = whole line incl. '=')
    - Trailing '='       -> name with empty value
    - Names: printable US-ASCII ('!'..'~'), no '=', no "__" prefix
    - Values: anything without '\\n' or '\\r'

Line Splitting:
    - '\\n' and '\\r' each end a line independently; "\\r\\n" yields an
      extra empty line, which readers must tolerate
"""

from __future__ import annotations

from csb import (
    INTERNAL_PREFIX,
    MAGIC_NUMBER_NAME,
    MAGIC_NUMBER_VALUE,
    PROPERTY_NAME_PAYLOAD,
    PROPERTY_NAME_PAYLOAD_CLASSNAME,
    PROPERTY_NAME_PAYLOAD_ENCODING,
)

SEPARATOR = "="
LINE_TERMINATORS = ("\n", "\r")

# The exact prefix a serialized container must begin with
MAGIC_LITERAL = f"{MAGIC_NUMBER_NAME}{SEPARATOR}{MAGIC_NUMBER_VALUE}"

# Internal properties that user-facing snapshots never expose
RESERVED_NAMES = frozenset({
    MAGIC_NUMBER_NAME,
    PROPERTY_NAME_PAYLOAD,
    PROPERTY_NAME_PAYLOAD_CLASSNAME,
    PROPERTY_NAME_PAYLOAD_ENCODING,
})

# Inclusive printable range for property names (space excluded)
_NAME_MIN_CHAR = "!"
_NAME_MAX_CHAR = "~"


class FormatMismatchError(ValueError):
    """Data does not begin with the container magic number."""


def split_line(line: str) -> tuple[str, str]:
    """Split one logical line into (name, value).

    Only the first '=' is significant. A nameless value is returned with
    an empty name.
    """
    equals_at = line.find(SEPARATOR)
    if equals_at < 0:
        return "", line
    if equals_at == 0:
        # leading '=' is kept as part of a nameless value
        return "", line
    if equals_at == len(line) - 1:
        return line[:-1], ""
    return line[:equals_at], line[equals_at + 1:]


def is_internal_name(name: str | None) -> bool:
    return (name or "").startswith(INTERNAL_PREFIX)


def is_safe_name(name: str | None) -> bool:
    """Check whether a name may be set through the public property API."""
    if not name:
        return False
    if not name.isascii():
        return False
    if name.startswith(INTERNAL_PREFIX):
        return False
    for ch in name:
        if ch < _NAME_MIN_CHAR or ch > _NAME_MAX_CHAR or ch == SEPARATOR:
            return False
    return True


def is_safe_value(value: str | None) -> bool:
    """None is allowed (value-less property); line terminators are not."""
    if value is None:
        return True
    return not any(t in value for t in LINE_TERMINATORS)


def split_lines(text: str) -> list[str]:
    """Split text into logical lines; each '\\n' or '\\r' ends a line.

    A trailing terminator does not produce a final empty line.
    """
    lines: list[str] = []
    start = 0
    for i, ch in enumerate(text):
        if ch in LINE_TERMINATORS:
            lines.append(text[start:i])
            start = i + 1
    if start < len(text):
        lines.append(text[start:])
    return lines


def format_property(name: str, value: str | None) -> str:
    """Render a single property line, including its terminating newline."""
    return f"{name}{SEPARATOR}{value or ''}\n"
