"""
CSB — metadata container format for domain-object payloads on the sync bus.

Architecture:
    Wire:       __magicNumber line + sorted user properties + __encoding +
                __payloadClassname + __payload (multi-line, always last)
    Model:      csb._format.document.MetaDomainObject
    Typed view: csb.sync_event.SyncEvent
    Bridge:     csb.serde (bytes <-> SyncEvent for a message bus)
"""

__version__ = "0.1.0"

# Reserved property-name prefix for format-managed properties
INTERNAL_PREFIX = "__"

MAGIC_NUMBER_NAME = INTERNAL_PREFIX + "magicNumber"
MAGIC_NUMBER_VALUE = "Xyzzy0xfeedbeef1990"

PROPERTY_NAME_PAYLOAD = INTERNAL_PREFIX + "payload"
PROPERTY_NAME_PAYLOAD_CLASSNAME = INTERNAL_PREFIX + "payloadClassname"
PROPERTY_NAME_PAYLOAD_ENCODING = INTERNAL_PREFIX + "encoding"

# Reader limits
MAX_INPUT_SIZE = 16 * 1024 * 1024  # 16 MiB

# Config defaults
CONFIG_DIR_NAME = ".csb"
CONFIG_FILE_NAME = "csb.toml"
