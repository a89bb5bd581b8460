"""
Internal container format engine.

A container is a set of "name=value" metadata lines followed by one
opaque payload (XML, JSON, ...) that this engine never interprets.
The payload may span lines and is always serialized last.

Format: __magicNumber=Xyzzy0xfeedbeef1990 on the first line.
"""

from csb._format.spec import (
    MAGIC_LITERAL,
    FormatMismatchError,
    is_safe_name,
    is_safe_value,
    split_line,
)
from csb._format.document import (
    DEFAULT_ENCODING,
    Encoding,
    MetaDomainObject,
    PropertyDecodeError,
    PropertyMap,
)
from csb._format.reader import (
    MetaDomainObjectReader,
    extract_property_from_raw_serialization,
    is_mdo,
)
from csb._format.writer import MetaDomainObjectWriter
