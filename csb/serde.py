"""
Serde — SyncEvent <-> bytes for message-bus key/value (de)serialization.

The topic argument mirrors the bus client's call signature and is ignored.
None passes through as None (tombstones).
"""

from __future__ import annotations

from typing import Any

from csb import MAX_INPUT_SIZE
from csb.sync_event import SyncEvent


class SyncEventSerializer:

    def configure(self, configs: dict[str, Any], is_key: bool) -> None:
        pass

    def serialize(self, topic: str | None, event: SyncEvent | None) -> bytes | None:
        if event is None:
            return None
        return event.to_bytes()

    def close(self) -> None:
        pass


class SyncEventDeserializer:
    """Builds a full SyncEvent; the property map is kept."""

    def __init__(self, support_old_xml_encoding: bool = True, max_size: int = MAX_INPUT_SIZE) -> None:
        self.support_old_xml_encoding = support_old_xml_encoding
        self.max_size = max_size

    def configure(self, configs: dict[str, Any], is_key: bool) -> None:
        if "support_old_xml_encoding" in configs:
            self.support_old_xml_encoding = bool(configs["support_old_xml_encoding"])
        if "max_input_size" in configs:
            self.max_size = int(configs["max_input_size"])

    def deserialize(self, topic: str | None, data: bytes | None) -> SyncEvent | None:
        if data is None:
            return None
        return SyncEvent.from_bytes(
            data,
            clear_properties=False,
            support_old_xml_encoding=self.support_old_xml_encoding,
            max_size=self.max_size,
        )

    def close(self) -> None:
        pass


class SyncEventSerde:
    """Serializer/deserializer pair for one value type."""

    def __init__(self, deserializer: SyncEventDeserializer | None = None) -> None:
        self._serializer = SyncEventSerializer()
        self._deserializer = deserializer or SyncEventDeserializer()

    def configure(self, configs: dict[str, Any], is_key: bool) -> None:
        self._serializer.configure(configs, is_key)
        self._deserializer.configure(configs, is_key)

    def serializer(self) -> SyncEventSerializer:
        return self._serializer

    def deserializer(self) -> SyncEventDeserializer:
        return self._deserializer

    def close(self) -> None:
        self._serializer.close()
        self._deserializer.close()
