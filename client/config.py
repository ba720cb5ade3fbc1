"""
Deployment configuration support.

Reads ``~/.warpspeed/config.json`` (or the file named by ``WARPSPEED_CONFIG``)
and layers the ``WARPSPEED_BASE_URL`` environment variable on top.  The base
URL is fixed per deployment; there is deliberately no command-line flag.

Supported keys::

    base_url = "http://localhost:5000/api"
    settle_seconds = 2.0
    request_timeout = 120.0
    fps = 30
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from .constants import (
    BASE_URL_ENV,
    CONFIG_ENV,
    DEFAULT_BASE_URL,
    DEFAULT_FPS,
    REQUEST_TIMEOUT,
    SETTLE_SECONDS,
)

_CONFIG_DIR = os.path.join(Path.home(), ".warpspeed")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return override
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "base_url": DEFAULT_BASE_URL,
    "settle_seconds": SETTLE_SECONDS,
    "request_timeout": REQUEST_TIMEOUT,
    "fps": DEFAULT_FPS,
}


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

def _coerce(key: str, value: Any) -> Any:
    """Convert *value* to the type of the key's default, or fall back to the default."""
    default = DEFAULTS[key]
    if isinstance(default, str):
        return value if isinstance(value, str) and value else default
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    if isinstance(default, int):
        return int(number) if number.is_integer() else default
    return number

def load_config() -> Dict[str, Any]:
    """Load config from disk and environment, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if os.path.isfile(path):
        try:
            with open(path, encoding="utf-8") as fh:
                user = json.load(fh)
            if isinstance(user, dict):
                for key, value in user.items():
                    if key in DEFAULTS:
                        config[key] = _coerce(key, value)
        except (json.JSONDecodeError, IOError):
            pass  # corrupt file; use defaults

    env_url = os.environ.get(BASE_URL_ENV)
    if env_url:
        config["base_url"] = env_url

    config["base_url"] = str(config["base_url"]).rstrip("/")
    return config


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
