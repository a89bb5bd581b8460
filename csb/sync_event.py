"""
SyncEvent — typed view over a container carrying an alarm, asset or search event.

Field extraction happens once, at construction. Parsing is total:
    - strings     absent -> ""
    - booleans    only a case-insensitive "true" is True
    - integers    absent/unparseable/out of 32-bit range -> NULL_INTEGER
    - action      anything outside Action -> Action.unknown

Anything the view needs must be extracted up front: compact() (or
clear_properties=True) drops the user properties afterwards, and
properties not captured into a field are gone for good. The payload,
its encoding and its classname survive.
"""

from __future__ import annotations

import re
import sys
import traceback
from enum import Enum
from typing import Any, Mapping

from csb import MAX_INPUT_SIZE
from csb._format.document import MetaDomainObject

# "Unknown" marker for integer fields; never a valid value
NULL_INTEGER = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")

DEFAULT_SITE_CODE = "?"


class DomainError(Exception):
    """A sync event cannot satisfy a domain request."""


class Action(Enum):
    """What a sync event asks the receiver to do."""

    insert = "insert"
    cancel = "cancel"
    update = "update"
    refresh = "refresh"
    delete = "delete"
    archive = "archive"
    sb2_export = "sb2_export"
    selectSearch = "selectSearch"
    syncStatus = "syncStatus"
    markMatchWorked = "markMatchWorked"
    takeMatch = "takeMatch"
    unknown = "unknown"
    associateAlarm = "associateAlarm"

    @classmethod
    def parse(cls, value: str | None) -> Action:
        """Exact, case-sensitive name match; never raises."""
        return cls.__members__.get(value or "", cls.unknown)


class AssetType(Enum):
    Shipment = "S"
    Equipment = "E"

    @property
    def abbreviation(self) -> str:
        return self.value


def safe_int(value: str | None) -> int:
    """Parse a signed 32-bit decimal integer, or return NULL_INTEGER."""
    if value is None or not _INT_RE.fullmatch(value):
        return NULL_INTEGER
    number = int(value)
    if number < NULL_INTEGER or number > _INT32_MAX:
        return NULL_INTEGER
    return number


def parse_bool(value: str | None) -> bool:
    return value is not None and value.lower() == "true"


class SyncEvent(MetaDomainObject):
    """
    Container with the sync-event properties pulled out into typed fields.

    Usage:
        event = SyncEvent.from_bytes(message_value, clear_properties=True)
        if event.action is Action.insert and event.company_id != NULL_INTEGER:
            ...
    """

    # field -> source property
    FIELD_PROPERTIES = {
        "action": "action",
        "fme_id": "fmeId",
        "environment": "environment",
        "source_application": "sourceApplication",
        "asset_type": "isEquipment",
        "company_id": "companyId",
        "office_id": "officeId",
        "owner_id": "ownerId",
        "group_id": "groupId",
        "site_code": "siteCode",
        "from_sb2": "fromSb2",
        "equipment_api_version": "eqTypeApiVersion",
        "has_truckstops": "hasTruckstops",
        "is_extended_network": "isExtendedNetwork",
        "do_not_forward_sync_event": "doNotForwardSyncEvent",
        "ignore_local_persistence": "ignoreLocalPersistence",
        "actual_business_days": "actualBusinessDays",
        "basis_asset_id": "basisAssetId",
    }

    def __init__(
        self,
        payload: str | None = None,
        properties: Mapping[str, str | None] | None = None,
        clear_properties: bool = False,
    ) -> None:
        super().__init__(payload, properties)
        self._extract(clear_properties)

    @classmethod
    def from_bytes(
        cls,
        data: bytes | str,
        clear_properties: bool = False,
        support_old_xml_encoding: bool = True,
        max_size: int = MAX_INPUT_SIZE,
    ) -> SyncEvent:
        event = super().from_bytes(
            data, support_old_xml_encoding=support_old_xml_encoding, max_size=max_size,
        )
        event._extract(clear_properties)
        return event

    @classmethod
    def from_string(
        cls,
        text: str,
        clear_properties: bool = False,
        support_old_xml_encoding: bool = True,
    ) -> SyncEvent:
        return cls.from_bytes(
            text, clear_properties=clear_properties,
            support_old_xml_encoding=support_old_xml_encoding,
        )

    @classmethod
    def from_container(cls, mdo: MetaDomainObject, clear_properties: bool = False) -> SyncEvent:
        """Build an event from an existing container. The source is not modified."""
        event = cls.__new__(cls)
        event._reset()
        event.support_old_xml_encoding = mdo.support_old_xml_encoding
        for name, value in mdo.iter_raw_properties():
            event._set_raw_property(name, value)
        event._payload = mdo.payload
        event._extract(clear_properties)
        return event

    def _extract(self, clear_properties: bool) -> None:
        raw = {field: self.get_property(name) for field, name in self.FIELD_PROPERTIES.items()}

        self.action = Action.parse(raw["action"])
        self.fme_id = raw["fme_id"] or ""

        # low cardinality; share one instance per distinct value
        self.environment = sys.intern(raw["environment"] or "")
        self.source_application = sys.intern(raw["source_application"] or "")

        self.asset_type = AssetType.Equipment if parse_bool(raw["asset_type"]) else AssetType.Shipment
        self.company_id = safe_int(raw["company_id"])
        self.office_id = safe_int(raw["office_id"])
        self.owner_id = safe_int(raw["owner_id"])
        self.group_id = safe_int(raw["group_id"])
        site_code = raw["site_code"]
        self.site_code = site_code[0] if site_code else DEFAULT_SITE_CODE
        self.from_sb2 = parse_bool(raw["from_sb2"])
        self.equipment_api_version = safe_int(raw["equipment_api_version"])
        self.has_truckstops = parse_bool(raw["has_truckstops"])
        self.is_extended_network = parse_bool(raw["is_extended_network"])
        self.do_not_forward_sync_event = parse_bool(raw["do_not_forward_sync_event"])
        self.ignore_local_persistence = parse_bool(raw["ignore_local_persistence"])
        self.actual_business_days = max(1, safe_int(raw["actual_business_days"]))
        self.basis_asset_id = raw["basis_asset_id"] or ""

        self.compacted = False
        if clear_properties:
            self.compact()

    def compact(self) -> None:
        """Drop the user properties. Irreversible; typed fields, payload
        encoding and classname are kept."""
        self.clear_user_properties()
        self.compacted = True

    def as_dict(self) -> dict[str, Any]:
        """Typed fields, enums rendered by name."""
        fields: dict[str, Any] = {}
        for name in self.FIELD_PROPERTIES:
            value = getattr(self, name)
            fields[name] = value.name if isinstance(value, Enum) else value
        return fields

    # --- Diagnostics ---

    def get_legacy_order_id(self) -> int:
        """Not carried by plain sync events."""
        raise DomainError(self.unsupported_action_message(self.action))

    def unsupported_action_message(self, action: Action) -> str:
        return self.action_message("Unsupported action", action)

    def non_fme_action_message(self, action: Action) -> str:
        return self.action_message("Actions of this type do not specify an FME", action)

    def missing_fme_message(self, action: Action) -> str:
        return self.action_message("Sync event does not specify an FME", action)

    def action_message(self, msg: str | None, action: Action, exc: BaseException | None = None) -> str:
        kind = type(self)
        text = f"{msg or ''} for action '{action.name}' in '{kind.__module__}.{kind.__qualname__}'"
        if exc is not None:
            trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            text += f": {exc}\n{trace}"
        return text
