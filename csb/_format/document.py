"""
Container model — an ordered set of string properties plus one opaque payload.

Invariants:
    - Properties iterate in ascending lexicographic order of name
    - The public setter silently drops unsafe names/values (legacy producers
      depend on this tolerance); it never raises
    - Names with the "__" prefix are format-managed and only reachable
      through the internal raw setter
    - The payload is kept apart from the property map and mirrored as the
      "__payload" property on read
"""

from __future__ import annotations

import bisect
import logging
import re
from collections.abc import Iterator, Mapping, MutableMapping
from enum import Enum
from urllib.parse import quote_plus, unquote_plus

from csb import (
    MAGIC_NUMBER_NAME,
    MAX_INPUT_SIZE,
    PROPERTY_NAME_PAYLOAD,
    PROPERTY_NAME_PAYLOAD_CLASSNAME,
    PROPERTY_NAME_PAYLOAD_ENCODING,
)
from csb._format.spec import RESERVED_NAMES, is_internal_name, is_safe_name, is_safe_value

log = logging.getLogger(__name__)

# '%' not followed by two hex digits
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class PropertyDecodeError(ValueError):
    """A URL-encoded (XML) property value could not be decoded."""


class Encoding(Enum):
    """Payload encodings understood by producers on the bus."""

    XML = "XML"
    JSON = "JSON"

    @classmethod
    def parse(cls, name: str | None) -> Encoding:
        """Total parse: empty or unrecognised names give the default."""
        if not name:
            return DEFAULT_ENCODING
        try:
            return cls(name)
        except ValueError:
            log.debug("Unrecognised payload encoding %r, using %s", name, DEFAULT_ENCODING.value)
            return DEFAULT_ENCODING


DEFAULT_ENCODING = Encoding.JSON


class PropertyMap(MutableMapping):
    """str -> str mapping whose keys always iterate in sorted order."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = {}
        self._keys: list[str] = []
        if initial:
            self.update(initial)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        if key not in self._data:
            bisect.insort(self._keys, key)
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._keys.pop(bisect.bisect_left(self._keys, key))

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"PropertyMap({dict(self.items())!r})"

    def clear(self) -> None:
        self._data.clear()
        self._keys.clear()

    def copy(self) -> PropertyMap:
        return PropertyMap(self)


class MetaDomainObject:
    """
    Domain-object payload with associated metadata properties.

    Usage:
        mdo = MetaDomainObject('{"x":1}', {"fmeId": "AB12", "companyId": "500"})
        data = mdo.to_bytes()

        again = MetaDomainObject.from_bytes(data)
        assert again.get_property("fmeId") == "AB12"

    Property values that would break the line-oriented wire form
    (embedded CR/LF), or names that are not printable US-ASCII, contain
    '=', or look internal, are dropped without error.
    """

    def __init__(
        self,
        payload: str | None = None,
        properties: Mapping[str, str | None] | None = None,
    ) -> None:
        self._properties = PropertyMap()
        self._payload: str | None = None
        self.support_old_xml_encoding = True

        self.encoding = DEFAULT_ENCODING
        if payload is not None:
            self.payload = payload
        self.set_properties(properties)

    # --- Construction from serialized form ---

    @staticmethod
    def is_mdo(data: bytes | str | None) -> bool:
        """Fast check if data looks like a serialized container."""
        from csb._format.reader import is_mdo
        return is_mdo(data)

    @classmethod
    def from_bytes(
        cls,
        data: bytes | str,
        support_old_xml_encoding: bool = True,
        max_size: int = MAX_INPUT_SIZE,
    ) -> MetaDomainObject:
        """Parse a serialized container. Raises FormatMismatchError."""
        from csb._format.reader import MetaDomainObjectReader
        doc = cls.__new__(cls)
        doc._reset()
        return MetaDomainObjectReader.parse_into(
            doc, data, support_old_xml_encoding=support_old_xml_encoding, max_size=max_size,
        )

    @classmethod
    def from_string(cls, text: str, support_old_xml_encoding: bool = True) -> MetaDomainObject:
        return cls.from_bytes(text, support_old_xml_encoding=support_old_xml_encoding)

    def _reset(self) -> None:
        """Empty state used by the reader; no default encoding is set."""
        self._properties = PropertyMap()
        self._payload = None
        self.support_old_xml_encoding = True

    def copy(self) -> MetaDomainObject:
        """Independent copy carrying payload and every stored property."""
        dup = type(self)(self._payload, self.get_properties())
        for name, value in self.iter_raw_properties():
            if is_internal_name(name):
                dup._set_raw_property(name, value)
        dup.support_old_xml_encoding = self.support_old_xml_encoding
        return dup

    # --- Payload ---

    @property
    def payload(self) -> str | None:
        return self._payload

    @payload.setter
    def payload(self, payload: str | None) -> None:
        self._payload = payload
        if payload is None:
            self._properties.pop(PROPERTY_NAME_PAYLOAD_CLASSNAME, None)
        else:
            self._set_raw_property(PROPERTY_NAME_PAYLOAD_CLASSNAME, self.payload_classname())

    def payload_classname(self) -> str:
        """Python type name of the payload, or "" when there is none."""
        if self._payload is None:
            return ""
        kind = type(self._payload)
        return f"{kind.__module__}.{kind.__qualname__}"

    # --- Encoding ---

    @property
    def encoding(self) -> Encoding:
        return Encoding.parse(self._properties.get(PROPERTY_NAME_PAYLOAD_ENCODING))

    @encoding.setter
    def encoding(self, encoding: Encoding | str | None) -> None:
        if encoding is None:
            self._properties.pop(PROPERTY_NAME_PAYLOAD_ENCODING, None)
            return
        if isinstance(encoding, str):
            try:
                encoding = Encoding(encoding.strip().upper())
            except ValueError:
                raise ValueError(
                    f"Unknown payload encoding {encoding!r}, expected one of "
                    f"{', '.join(e.value for e in Encoding)}"
                ) from None
        self._set_raw_property(PROPERTY_NAME_PAYLOAD_ENCODING, encoding.value)

    def uses_old_xml_encoding(self) -> bool:
        """True when the legacy leading-blank-line skip applies."""
        return self.support_old_xml_encoding and self.encoding is Encoding.XML

    # --- Properties ---

    def get_property(self, name: str) -> str | None:
        """Value of a property, or None if absent."""
        if name == PROPERTY_NAME_PAYLOAD:
            return self._payload
        return self._properties.get(name)

    def has_property(self, name: str) -> bool:
        return self.get_property(name) is not None

    def get_properties(self, prefix: str | None = None) -> dict[str, str]:
        """Copy-safe snapshot of properties, sorted by name.

        With no prefix, the format's reserved properties are left out.
        With a prefix, every property whose name starts with it is
        returned; an empty prefix matches nothing.
        """
        if prefix is None:
            return {k: v for k, v in self._properties.items() if k not in RESERVED_NAMES}
        if not prefix:
            return {}
        return {k: v for k, v in self._properties.items() if k.startswith(prefix)}

    def property_names(self) -> list[str]:
        return list(self.get_properties())

    def set_property(self, name: str, value: str | None) -> bool:
        """Add or replace a property. Returns False if it was dropped."""
        if not is_safe_name(name):
            log.debug("Dropping property with unsafe name %r", name)
            return False
        if not is_safe_value(value):
            log.debug("Dropping property %r with unsafe value", name)
            return False
        self._set_raw_property(name, value)
        return True

    def set_properties(self, properties: Mapping[str, str | None] | None) -> None:
        """Set each property through set_property(). None is a no-op."""
        if properties is None:
            return
        for name, value in properties.items():
            self.set_property(name, value)

    def _set_raw_property(self, name: str, value: str | None) -> None:
        """Store without validation. Reserved for the format itself and the reader."""
        self._properties[name] = value or ""

    def remove_property(self, name: str) -> None:
        self._properties.pop(name, None)

    def remove_properties(self, prefix: str) -> None:
        """Remove every property whose name starts with prefix."""
        if not prefix:
            return
        for name in [n for n in self._properties if n.startswith(prefix)]:
            del self._properties[name]

    def clear_properties(self) -> None:
        """Drop every stored property, internal ones included."""
        self._properties.clear()

    def clear_user_properties(self) -> None:
        """Drop every property except the format's own reserved ones."""
        for name in [n for n in self._properties if not is_internal_name(n)]:
            del self._properties[name]

    def iter_raw_properties(self) -> Iterator[tuple[str, str]]:
        """All stored properties, internal ones included, in sorted order."""
        return iter(list(self._properties.items()))

    # --- XML-valued properties ---

    def get_xml_property(self, name: str) -> str:
        """Decode a URL-encoded XML property. Absent or empty gives ""."""
        raw = self.get_property(name)
        if not raw:
            return ""
        if _BAD_ESCAPE_RE.search(raw):
            raise PropertyDecodeError(f"Malformed percent-escape in property {name!r}")
        try:
            return unquote_plus(raw, encoding="utf-8", errors="strict")
        except UnicodeDecodeError as e:
            raise PropertyDecodeError(f"Property {name!r} is not valid UTF-8: {e}") from e

    def set_xml_property(self, name: str, value: str | None) -> bool:
        """Store an XML value URL-encoded so it fits on one line."""
        encoded = quote_plus(value, safe="*", encoding="utf-8") if value else ""
        return self.set_property(name, encoded)

    # --- Serialization ---

    def serialize(self) -> str:
        from csb._format.writer import MetaDomainObjectWriter
        return MetaDomainObjectWriter.serialize(self)

    def to_bytes(self) -> bytes:
        return self.serialize().encode("utf-8")

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(properties={len(self._properties)}, "
            f"payload={'set' if self._payload is not None else 'none'})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetaDomainObject):
            return NotImplemented
        return (
            self._payload == other._payload
            and self.encoding is other.encoding
            and self._comparable_properties() == other._comparable_properties()
        )

    def _comparable_properties(self) -> dict[str, str]:
        # only parsed containers store the magic number; encoding compares parsed
        return {
            name: value for name, value in self._properties.items()
            if name not in (MAGIC_NUMBER_NAME, PROPERTY_NAME_PAYLOAD_ENCODING)
        }

    __hash__ = None  # mutable
