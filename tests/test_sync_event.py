"""
Tests for the typed sync-event view and the bus serde.
"""

from __future__ import annotations

import pytest

from csb._format.document import Encoding, MetaDomainObject
from csb._format.spec import FormatMismatchError
from csb.serde import SyncEventDeserializer, SyncEventSerde, SyncEventSerializer
from csb.sync_event import (
    NULL_INTEGER,
    Action,
    AssetType,
    DomainError,
    SyncEvent,
    parse_bool,
    safe_int,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def event_properties():
    return {
        "action": "insert",
        "fmeId": "AB12",
        "environment": "prod",
        "sourceApplication": "tfs",
        "isEquipment": "TRUE",
        "companyId": "500",
        "officeId": "-7",
        "ownerId": "abc",
        "siteCode": "Xyz",
        "fromSb2": "true",
        "eqTypeApiVersion": "2",
        "hasTruckstops": "yes",
        "isExtendedNetwork": "True",
        "actualBusinessDays": "0",
        "basisAssetId": "B1",
        "unmapped": "kept until compaction",
    }


@pytest.fixture
def event_bytes(event_properties):
    return MetaDomainObject('{"@class":"SimpleAsset"}', event_properties).to_bytes()


# ---------------------------------------------------------------------------
# TestFieldParsing
# ---------------------------------------------------------------------------

class TestFieldParsing:
    """Tests for the total parsers behind the typed fields."""

    @pytest.mark.parametrize("value, expected", [
        ("500", 500),
        ("-7", -7),
        ("+5", 5),
        ("007", 7),
        ("2147483647", 2147483647),
        ("2147483648", NULL_INTEGER),
        ("-2147483649", NULL_INTEGER),
        ("", NULL_INTEGER),
        (" 5", NULL_INTEGER),
        ("5.0", NULL_INTEGER),
        ("0x10", NULL_INTEGER),
        (None, NULL_INTEGER),
    ])
    def test_safe_int(self, value, expected):
        assert safe_int(value) == expected

    def test_sentinel_is_not_zero(self):
        assert NULL_INTEGER != 0
        assert safe_int("0") == 0

    @pytest.mark.parametrize("value, expected", [
        ("true", True),
        ("TRUE", True),
        ("True", True),
        ("yes", False),
        ("1", False),
        ("", False),
        (None, False),
    ])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_action_parse_known(self):
        assert Action.parse("sb2_export") is Action.sb2_export
        assert Action.parse("markMatchWorked") is Action.markMatchWorked

    @pytest.mark.parametrize("value", [None, "", "INSERT", "explode", " insert"])
    def test_action_parse_unknown(self, value):
        assert Action.parse(value) is Action.unknown

    def test_asset_type_abbreviation(self):
        assert AssetType.Shipment.abbreviation == "S"
        assert AssetType.Equipment.abbreviation == "E"


# ---------------------------------------------------------------------------
# TestSyncEvent
# ---------------------------------------------------------------------------

class TestSyncEvent:

    def test_fields_extracted(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        assert event.action is Action.insert
        assert event.fme_id == "AB12"
        assert event.environment == "prod"
        assert event.source_application == "tfs"
        assert event.asset_type is AssetType.Equipment
        assert event.company_id == 500
        assert event.office_id == -7
        assert event.owner_id == NULL_INTEGER
        assert event.group_id == NULL_INTEGER
        assert event.site_code == "X"
        assert event.from_sb2 is True
        assert event.equipment_api_version == 2
        assert event.has_truckstops is False
        assert event.is_extended_network is True
        assert event.do_not_forward_sync_event is False
        assert event.ignore_local_persistence is False
        assert event.actual_business_days == 1
        assert event.basis_asset_id == "B1"
        assert event.payload == '{"@class":"SimpleAsset"}'

    def test_defaults_when_empty(self):
        event = SyncEvent()
        assert event.action is Action.unknown
        assert event.fme_id == ""
        assert event.environment == ""
        assert event.source_application == ""
        assert event.basis_asset_id == ""
        assert event.asset_type is AssetType.Shipment
        assert event.company_id == NULL_INTEGER
        assert event.site_code == "?"
        assert event.from_sb2 is False
        assert event.actual_business_days == 1

    def test_business_days_kept_when_positive(self):
        event = SyncEvent(None, {"actualBusinessDays": "3"})
        assert event.actual_business_days == 3

    def test_low_cardinality_strings_interned(self):
        env = "".join(["pr", "od"])
        a = SyncEvent(None, {"environment": env, "sourceApplication": "tfs"})
        b = SyncEvent.from_bytes(MetaDomainObject(None, {"environment": "prod"}).to_bytes())
        assert a.environment is b.environment

    def test_from_string(self, event_bytes):
        event = SyncEvent.from_string(event_bytes.decode("utf-8"))
        assert event.company_id == 500

    def test_format_mismatch(self):
        with pytest.raises(FormatMismatchError):
            SyncEvent.from_bytes(b"action=insert\n")

    def test_properties_retained_by_default(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        assert event.compacted is False
        assert event.get_property("unmapped") == "kept until compaction"

    def test_clear_properties_on_construction(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes, clear_properties=True)
        assert event.compacted is True
        assert event.get_properties() == {}
        assert event.get_property("companyId") is None
        assert event.get_property("unmapped") is None
        assert event.company_id == 500
        assert event.payload == '{"@class":"SimpleAsset"}'

    def test_compact_is_one_way(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        event.compact()
        assert event.get_properties() == {}
        again = SyncEvent.from_bytes(event.to_bytes())
        assert again.company_id == NULL_INTEGER
        assert again.action is Action.unknown
        assert again.payload == event.payload

    def test_compact_keeps_payload_encoding(self, event_properties):
        mdo = MetaDomainObject("<a/>", event_properties)
        mdo.encoding = Encoding.XML
        event = SyncEvent.from_bytes(mdo.to_bytes(), clear_properties=True)
        assert event.get_properties() == {}
        assert event.encoding is Encoding.XML
        text = event.serialize()
        assert "__encoding=XML\n" in text
        assert "__payloadClassname=builtins.str\n" in text
        assert text.endswith("__payload=<a/>\n")
        assert "companyId" not in text

    def test_fields_follow_property_names(self):
        properties = {name: "7" for name in SyncEvent.FIELD_PROPERTIES.values()}
        event = SyncEvent(None, properties)
        assert event.company_id == 7
        assert event.group_id == 7
        assert event.equipment_api_version == 7
        assert event.actual_business_days == 7
        assert event.fme_id == "7"
        assert event.site_code == "7"

    def test_serialization_roundtrip(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        assert event.to_bytes() == event_bytes

    def test_from_container_leaves_source_intact(self, event_properties):
        mdo = MetaDomainObject("<a/>", event_properties)
        mdo.encoding = Encoding.XML
        event = SyncEvent.from_container(mdo, clear_properties=True)
        assert event.fme_id == "AB12"
        assert event.get_properties() == {}
        assert mdo.get_property("fmeId") == "AB12"
        assert mdo.payload == "<a/>"

    def test_from_container_keeps_encoding(self, event_properties):
        mdo = MetaDomainObject("<a/>", event_properties)
        mdo.encoding = Encoding.XML
        event = SyncEvent.from_container(mdo)
        assert event.encoding is Encoding.XML
        assert event == mdo

    def test_copy_keeps_type(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        dup = event.copy()
        assert isinstance(dup, SyncEvent)
        assert dup.company_id == 500
        assert dup == event

    def test_as_dict(self, event_bytes):
        fields = SyncEvent.from_bytes(event_bytes).as_dict()
        assert fields["action"] == "insert"
        assert fields["asset_type"] == "Equipment"
        assert fields["company_id"] == 500
        assert list(fields) == list(SyncEvent.FIELD_PROPERTIES)


# ---------------------------------------------------------------------------
# TestDiagnostics
# ---------------------------------------------------------------------------

class TestDiagnostics:

    def test_legacy_order_id_unsupported(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        with pytest.raises(DomainError, match="Unsupported action for action 'insert'"):
            event.get_legacy_order_id()

    def test_message_names_class(self):
        event = SyncEvent()
        msg = event.missing_fme_message(Action.update)
        assert msg == (
            "Sync event does not specify an FME for action 'update' "
            "in 'csb.sync_event.SyncEvent'"
        )

    def test_non_fme_message(self):
        msg = SyncEvent().non_fme_action_message(Action.syncStatus)
        assert msg.startswith("Actions of this type do not specify an FME for action 'syncStatus'")

    def test_message_with_exception(self):
        event = SyncEvent()
        try:
            raise ValueError("boom")
        except ValueError as e:
            msg = event.action_message("Failed", Action.delete, e)
        assert msg.startswith("Failed for action 'delete'")
        assert ": boom\n" in msg
        assert "ValueError: boom" in msg

    def test_message_without_text(self):
        msg = SyncEvent().action_message(None, Action.unknown)
        assert msg.startswith(" for action 'unknown'")


# ---------------------------------------------------------------------------
# TestSerde
# ---------------------------------------------------------------------------

class TestSerde:

    def test_serializer(self, event_bytes):
        event = SyncEvent.from_bytes(event_bytes)
        assert SyncEventSerializer().serialize("events", event) == event_bytes

    def test_deserializer_keeps_properties(self, event_bytes):
        event = SyncEventDeserializer().deserialize("events", event_bytes)
        assert isinstance(event, SyncEvent)
        assert event.company_id == 500
        assert event.get_property("companyId") == "500"

    def test_none_passthrough(self):
        assert SyncEventSerializer().serialize("events", None) is None
        assert SyncEventDeserializer().deserialize("events", None) is None

    def test_bad_data_raises(self):
        with pytest.raises(FormatMismatchError):
            SyncEventDeserializer().deserialize("events", b"not a container")

    def test_serde_roundtrip(self, event_bytes):
        serde = SyncEventSerde()
        serde.configure({}, is_key=False)
        event = serde.deserializer().deserialize("t", event_bytes)
        assert serde.serializer().serialize("t", event) == event_bytes
        serde.close()

    def test_configure_legacy_xml(self):
        blob = MetaDomainObject(None, {"action": "refresh"})
        blob.encoding = Encoding.XML
        text = blob.serialize().replace("__payload=\n", "__payload=\n<a/>\n")

        legacy = SyncEventDeserializer().deserialize("t", text.encode("utf-8"))
        assert legacy.payload == "<a/>"

        serde = SyncEventSerde()
        serde.configure({"support_old_xml_encoding": False}, is_key=False)
        strict = serde.deserializer().deserialize("t", text.encode("utf-8"))
        assert strict.payload == "\n<a/>"
        assert strict.action is Action.refresh

    def test_configure_max_size(self, event_bytes):
        deserializer = SyncEventDeserializer()
        deserializer.configure({"max_input_size": 16}, is_key=False)
        with pytest.raises(ValueError, match="exceeds maximum"):
            deserializer.deserialize("t", event_bytes)
