"""
User configuration file support.

Reads/writes ``~/.speedstream/config.json``.  Command-line flags always win
over values found here.

Supported keys::

    host = "0.0.0.0"         # serve: bind address
    port = 8080              # serve: bind port
    min_mb = 10              # serve: smallest accepted size (MiB)
    max_mb = 1000            # serve: largest accepted size (MiB)
    default_mb = 100         # serve: size for /download and the page
    chunk_size = 65536       # serve: bytes per write
    locations_url = "..."    # serve: upstream for /locations
    url = "http://..."       # run: server base URL
    size_mb = 100            # run: payload size to download
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from server.constants import (
    CHUNK_SIZE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SIZE_MB as SERVER_DEFAULT_MB,
    LOCATIONS_URL,
    MAX_SIZE_MB,
    MIN_SIZE_MB,
)

from .constants import DEFAULT_SIZE_MB, DEFAULT_URL

_CONFIG_DIR = os.path.join(Path.home(), ".speedstream")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "min_mb": MIN_SIZE_MB,
    "max_mb": MAX_SIZE_MB,
    "default_mb": SERVER_DEFAULT_MB,
    "chunk_size": CHUNK_SIZE,
    "locations_url": LOCATIONS_URL,
    "url": DEFAULT_URL,
    "size_mb": DEFAULT_SIZE_MB,
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def coerce_value(key: str, raw: str) -> Any:
    """Convert a command-line string to the type of the default for *key*."""
    if key not in DEFAULTS:
        raise ValueError(f"Unknown config key: {key}")
    default = DEFAULTS[key]
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
