"""
Writer — serializes containers to the line-oriented wire form.

Output order is fixed:
  1. magic number
  2. user properties, ascending by name
  3. __encoding, __payloadClassname
  4. __payload, verbatim (embedded newlines are not escaped)
"""

from __future__ import annotations

import io
import os
import tempfile
from typing import TYPE_CHECKING

from csb import (
    PROPERTY_NAME_PAYLOAD,
    PROPERTY_NAME_PAYLOAD_CLASSNAME,
    PROPERTY_NAME_PAYLOAD_ENCODING,
)
from csb._format.spec import MAGIC_LITERAL, format_property, is_internal_name

if TYPE_CHECKING:
    from csb._format.document import MetaDomainObject


class MetaDomainObjectWriter:

    @staticmethod
    def serialize(doc: MetaDomainObject) -> str:
        """Render a container as text. Pure: does not mutate the input."""
        out = io.StringIO()
        out.write(MAGIC_LITERAL)
        out.write("\n")

        for name, value in doc.iter_raw_properties():
            if is_internal_name(name):
                continue
            out.write(format_property(name, value))

        out.write(format_property(PROPERTY_NAME_PAYLOAD_ENCODING, doc.encoding.value))
        classname = doc.get_property(PROPERTY_NAME_PAYLOAD_CLASSNAME)
        if classname is None:
            classname = doc.payload_classname()
        out.write(format_property(PROPERTY_NAME_PAYLOAD_CLASSNAME, classname))

        # payload is last of all
        out.write(format_property(PROPERTY_NAME_PAYLOAD, doc.payload))
        return out.getvalue()

    @staticmethod
    def to_bytes(doc: MetaDomainObject) -> bytes:
        return MetaDomainObjectWriter.serialize(doc).encode("utf-8")

    @staticmethod
    def write(doc: MetaDomainObject, path: str, mode: int = 0o644) -> int:
        """Write a container to file atomically. Returns bytes written."""
        data = MetaDomainObjectWriter.to_bytes(doc)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".mdo.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)
