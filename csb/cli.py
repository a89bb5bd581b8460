"""
CSB CLI — inspect and build metadata containers.

Commands:
  csb check   - Report whether a file is a serialized container
  csb get     - Print one property's value (fast scan, no full parse)
  csb props   - Print all user properties, sorted
  csb payload - Print the payload
  csb wrap    - Wrap a payload file and properties into a container
  csb event   - Print the typed sync-event fields of a container
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any


def _read_input(path: str) -> bytes:
    """Read a file or stdin ('-') as bytes."""
    if path == "-":
        return sys.stdin.buffer.read()
    p = Path(path)
    if not p.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    return p.read_bytes()


def _parse(args: argparse.Namespace, data: bytes):
    """Full parse with config-driven options; exits on bad input."""
    from csb._format.document import MetaDomainObject
    from csb._format.spec import FormatMismatchError

    config = args.config_values
    try:
        return MetaDomainObject.from_bytes(
            data,
            support_old_xml_encoding=config["support_old_xml_encoding"],
            max_size=config["max_input_size"],
        )
    except (FormatMismatchError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_check(args: argparse.Namespace) -> None:
    """Exit 0 if the file starts with the container magic number."""
    from csb._format.reader import is_mdo

    if is_mdo(_read_input(args.path)):
        print("yes")
        return
    print("no")
    sys.exit(1)


def cmd_get(args: argparse.Namespace) -> None:
    """Print a property value. The magic number and payload need a full parse."""
    from csb import MAGIC_NUMBER_NAME, PROPERTY_NAME_PAYLOAD
    from csb._format.reader import extract_property_from_raw_serialization, is_mdo

    data = _read_input(args.path)
    if not is_mdo(data):
        print(f"Error: Not a container: {args.path}", file=sys.stderr)
        sys.exit(1)

    if args.name in (MAGIC_NUMBER_NAME, PROPERTY_NAME_PAYLOAD):
        value = _parse(args, data).get_property(args.name)
    else:
        value = extract_property_from_raw_serialization(data, args.name)

    if value is None:
        print(f"Error: Property not present: {args.name}", file=sys.stderr)
        sys.exit(1)
    print(value)


def cmd_props(args: argparse.Namespace) -> None:
    doc = _parse(args, _read_input(args.path))
    for name, value in doc.get_properties().items():
        print(f"{name}={value}")


def cmd_payload(args: argparse.Namespace) -> None:
    doc = _parse(args, _read_input(args.path))
    if doc.payload is None:
        print("Error: Container has no payload", file=sys.stderr)
        sys.exit(1)
    sys.stdout.write(doc.payload)
    if not doc.payload.endswith("\n"):
        sys.stdout.write("\n")


def cmd_wrap(args: argparse.Namespace) -> None:
    """Build a container from a payload file and -p name=value pairs."""
    from csb._format.document import MetaDomainObject
    from csb._format.spec import split_line
    from csb._format.writer import MetaDomainObjectWriter

    payload = _read_input(args.payload_file).decode("utf-8")
    doc = MetaDomainObject(payload)
    doc.encoding = args.encoding or args.config_values["default_encoding"]

    for pair in args.property or []:
        name, value = split_line(pair)
        if not doc.set_property(name, value):
            print(f"Warning: dropped unsafe property {pair!r}", file=sys.stderr)

    if args.output:
        written = MetaDomainObjectWriter.write(doc, args.output)
        print(f"Wrote {written} bytes to {args.output}")
    else:
        sys.stdout.write(MetaDomainObjectWriter.serialize(doc))


def cmd_event(args: argparse.Namespace) -> None:
    from csb._format.spec import FormatMismatchError
    from csb.sync_event import SyncEvent

    config = args.config_values
    try:
        event = SyncEvent.from_bytes(
            _read_input(args.path),
            clear_properties=True,
            support_old_xml_encoding=config["support_old_xml_encoding"],
            max_size=config["max_input_size"],
        )
    except (FormatMismatchError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    fields = event.as_dict()
    width = max(len(name) for name in fields)
    for name, value in fields.items():
        print(f"  {name:<{width}}  {value}")


def _configure_logging(config: dict[str, Any], verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config["log_level"])
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="csb",
        description="CSB — inspect and build metadata containers.",
    )
    from csb import __version__
    parser.add_argument("--version", action="version", version=f"csb {__version__}")
    parser.add_argument("--config", help="Path to csb.toml (default: ~/.csb/csb.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    p_check = sub.add_parser("check", help="Is this file a container?")
    p_check.add_argument("path", help="File path, or - for stdin")

    p_get = sub.add_parser("get", help="Print one property value")
    p_get.add_argument("path", help="File path, or - for stdin")
    p_get.add_argument("name", help="Property name")

    p_props = sub.add_parser("props", help="Print user properties")
    p_props.add_argument("path", help="File path, or - for stdin")

    p_payload = sub.add_parser("payload", help="Print the payload")
    p_payload.add_argument("path", help="File path, or - for stdin")

    p_wrap = sub.add_parser("wrap", help="Wrap a payload into a container")
    p_wrap.add_argument("payload_file", help="Payload file, or - for stdin")
    p_wrap.add_argument(
        "-p", "--property", action="append", metavar="NAME=VALUE",
        help="Property to set (repeatable)",
    )
    p_wrap.add_argument("--encoding", choices=["JSON", "XML"], help="Payload encoding")
    p_wrap.add_argument("-o", "--output", help="Output file path")

    p_event = sub.add_parser("event", help="Print typed sync-event fields")
    p_event.add_argument("path", help="File path, or - for stdin")

    args = parser.parse_args(argv)

    if not args.command:
        print("CSB — metadata containers for the sync bus")
        print()
        print("Usage:")
        print("  csb check event.mdo")
        print("  csb get event.mdo companyId")
        print("  csb props event.mdo")
        print("  csb payload event.mdo")
        print("  csb wrap payload.json -p companyId=500 -p fmeId=AB12 -o event.mdo")
        print("  csb event event.mdo")
        print()
        print("Run 'csb <command> --help' for details on any command.")
        sys.exit(0)

    from csb.config import load_config
    args.config_values = load_config(Path(args.config) if args.config else None)
    _configure_logging(args.config_values, args.verbose)

    commands = {
        "check": cmd_check,
        "get": cmd_get,
        "props": cmd_props,
        "payload": cmd_payload,
        "wrap": cmd_wrap,
        "event": cmd_event,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
