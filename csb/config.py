"""
Configuration — TOML file merged over built-in defaults.

Default location: ~/.csb/csb.toml

    support_old_xml_encoding = true
    max_input_size = 16777216
    default_encoding = "JSON"
    log_level = "WARNING"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from csb import CONFIG_DIR_NAME, CONFIG_FILE_NAME, MAX_INPUT_SIZE

log = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "support_old_xml_encoding": True,
    "max_input_size": MAX_INPUT_SIZE,
    "default_encoding": "JSON",
    "log_level": "WARNING",
}

_VALID_ENCODINGS = frozenset({"JSON", "XML"})


def default_config_path() -> Path:
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load config from a TOML file, falling back to defaults."""
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else default_config_path()
    if path.is_file():
        try:
            import tomllib
        except ImportError:
            try:
                import tomli as tomllib
            except ImportError:
                log.warning("tomllib/tomli not available, using default config")
                return config

        try:
            with open(path, "rb") as f:
                file_config = tomllib.load(f)
            config.update({k: v for k, v in file_config.items() if k in DEFAULT_CONFIG})
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Failed to load config from %s: %s", path, e)

    return _validated(config)


def _validated(config: dict[str, Any]) -> dict[str, Any]:
    """Replace ill-typed values with their defaults."""
    if not isinstance(config["support_old_xml_encoding"], bool):
        log.warning("support_old_xml_encoding must be a boolean, using default")
        config["support_old_xml_encoding"] = DEFAULT_CONFIG["support_old_xml_encoding"]

    size = config["max_input_size"]
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        log.warning("max_input_size must be a positive integer, using default")
        config["max_input_size"] = DEFAULT_CONFIG["max_input_size"]

    encoding = str(config["default_encoding"]).upper()
    if encoding not in _VALID_ENCODINGS:
        log.warning("Unknown default_encoding %r, using JSON", config["default_encoding"])
        encoding = DEFAULT_CONFIG["default_encoding"]
    config["default_encoding"] = encoding

    if not isinstance(logging.getLevelName(str(config["log_level"]).upper()), int):
        log.warning("Unknown log_level %r, using WARNING", config["log_level"])
        config["log_level"] = DEFAULT_CONFIG["log_level"]
    config["log_level"] = str(config["log_level"]).upper()

    return config
