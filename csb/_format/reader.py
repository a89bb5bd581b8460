"""
Reader — parser for serialized containers.

Speed features:
  - Magic-number prefix check before any parsing (instant identification)
  - Single-property extraction straight from the raw text, no model built

Parsing:
  - Lines end at every '\\n' or '\\r'; a "\\r\\n" pair leaves an empty
    line behind, which is ignored
  - Properties are stored as found (trusted: this format's writer
    produced them); only nameless lines are dropped
  - The "__payload" line switches to capture mode: it and every later
    line make up the payload, rejoined with '\\n'
  - A payload that is empty or all whitespace is read back as None
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from csb import MAX_INPUT_SIZE, PROPERTY_NAME_PAYLOAD
from csb._format.spec import (
    LINE_TERMINATORS,
    MAGIC_LITERAL,
    SEPARATOR,
    FormatMismatchError,
    split_line,
    split_lines,
)

if TYPE_CHECKING:
    from csb._format.document import MetaDomainObject

log = logging.getLogger(__name__)

# Parser states
READING_PROPERTIES = "READING_PROPERTIES"
CAPTURING_PAYLOAD = "CAPTURING_PAYLOAD"

_BYTE_TERMINATORS = tuple(t.encode("ascii") for t in LINE_TERMINATORS)


def _as_text(data: bytes | str) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8")
    return data


def is_mdo(data: bytes | str | None) -> bool:
    """Check whether data begins with the container magic number."""
    if data is None:
        return False
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).startswith(MAGIC_LITERAL.encode("utf-8"))
    return data.startswith(MAGIC_LITERAL)


def extract_property_from_raw_serialization(
    serialized: bytes | str | None, name: str | None,
) -> str | None:
    """Pull one property's value out of serialized text without parsing it.

    Looks for "\\n<name>=" so the match is anchored at a line start. The
    first line (the magic number) can never match, and the payload must
    not be extracted this way since its text may contain the pattern.

    Returns None if the name is empty or the property is not found.
    """
    if not name or serialized is None:
        return None

    tag = f"\n{name}{SEPARATOR}"
    if isinstance(serialized, (bytes, bytearray)):
        # scan the raw bytes; only the value is decoded, the payload never is
        return _find_value(bytes(serialized), tag.encode("utf-8"), _BYTE_TERMINATORS)
    return _find_value(serialized, tag, LINE_TERMINATORS)


def _find_value(data, tag, terminators):
    found = data.find(tag)
    if found < 0:
        return None

    start = found + len(tag)
    end = len(data)
    for terminator in terminators:
        at = data.find(terminator, start)
        if 0 <= at < end:
            end = at
    value = data[start:end]
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class MetaDomainObjectReader:
    """
    Container reader.

    Usage:
        # From bytes (e.g. a message value)
        mdo = MetaDomainObjectReader.parse(data)

        # From a file
        mdo = MetaDomainObjectReader.read("event.mdo")
    """

    @classmethod
    def read(
        cls,
        path: str | Path,
        support_old_xml_encoding: bool = True,
        max_size: int = MAX_INPUT_SIZE,
    ) -> MetaDomainObject:
        """Fully parse a file into a MetaDomainObject."""
        path = Path(path)
        file_size = path.stat().st_size
        if file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        with open(path, "rb") as f:
            data = f.read()
        return cls.parse(data, support_old_xml_encoding=support_old_xml_encoding, max_size=max_size)

    @classmethod
    def parse(
        cls,
        data: bytes | str,
        support_old_xml_encoding: bool = True,
        max_size: int = MAX_INPUT_SIZE,
    ) -> MetaDomainObject:
        """Parse serialized bytes or text into a new MetaDomainObject."""
        from csb._format.document import MetaDomainObject
        return MetaDomainObject.from_bytes(
            data, support_old_xml_encoding=support_old_xml_encoding, max_size=max_size,
        )

    @staticmethod
    def parse_into(
        doc: MetaDomainObject,
        data: bytes | str,
        support_old_xml_encoding: bool = True,
        max_size: int = MAX_INPUT_SIZE,
    ) -> MetaDomainObject:
        """Populate an empty container from serialized data and return it."""
        if data is None:
            raise FormatMismatchError(f"No data for a {type(doc).__name__}")
        if len(data) > max_size:
            raise ValueError(
                f"Input size {len(data)} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )
        if not is_mdo(data):
            raise FormatMismatchError(
                f"Serialized data does not define a {type(doc).__name__}"
            )

        text = _as_text(data)
        doc.support_old_xml_encoding = support_old_xml_encoding

        state = READING_PROPERTIES
        chunks: list[str] = []
        for line in split_lines(text):
            if state == CAPTURING_PAYLOAD:
                chunks.append(line)
                continue

            name, value = split_line(line)
            if name == PROPERTY_NAME_PAYLOAD:
                state = CAPTURING_PAYLOAD
                if doc.uses_old_xml_encoding() and not chunks and not value:
                    # historic XML producers put the document on the next line
                    log.debug("Skipping empty first payload line (legacy XML)")
                    continue
                chunks.append(value)
                continue

            if not name:
                if line:
                    log.debug("Ignoring nameless line %r", line[:40])
                continue

            doc._set_raw_property(name, value)

        payload = "\n".join(chunks)
        doc._payload = payload if payload.strip() else None
        return doc
