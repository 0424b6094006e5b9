"""
Configuration for the Art-Net checker service.

Process-level settings are loaded from environment variables; CLI flags in
`artnet_checker.app.main` override them. Lighting settings (channel range,
network defaults, log file) live in the YAML documents managed by
`artnet_checker.settings`.
"""

import os
from pathlib import Path
from typing import List

# --- Application Configuration ---
APP_NAME = "DMX Art-Net Checker"
APP_VERSION = "1.0.0"
SERVICE_NAME = os.environ.get("SERVICE_NAME", "artnet-checker")

# --- HTTP Configuration ---
DEFAULT_HOST = os.environ.get("HOST", "0.0.0.0")
DEFAULT_PORT_RAW = os.environ.get("PORT", "3001")
CORS_ORIGINS: List[str] = [
    origin.strip() for origin in os.environ.get("CORS_ORIGINS", "*").split(",") if origin.strip()
]

# --- Logging Configuration ---
# When set, wins over the level stored in the active configuration document.
LOG_LEVEL_OVERRIDE = os.environ.get("LOG_LEVEL", "")


def default_settings_root() -> Path:
    """
    Root directory holding `settings.yaml` and the `config/` subdirectory.

    Defaults to `settings/` in the current working directory, overridable with:
    - ARTNET_CHECKER_SETTINGS_ROOT=/some/path
    """
    return Path(os.getenv("ARTNET_CHECKER_SETTINGS_ROOT") or "settings")


def default_port() -> int:
    try:
        return int(DEFAULT_PORT_RAW)
    except ValueError:
        return 3001


def validate_config() -> List[str]:
    """
    Validate process configuration.
    Returns list of error messages (empty if valid).
    """
    errors = []

    try:
        port = int(DEFAULT_PORT_RAW)
        if not (0 < port < 65536):
            errors.append(f"PORT out of range: {port}")
    except ValueError:
        errors.append(f"PORT is not an integer: {DEFAULT_PORT_RAW!r}")

    if not CORS_ORIGINS:
        errors.append("CORS_ORIGINS is empty (no browser origin allowed)")

    root = default_settings_root()
    if root.exists() and not root.is_dir():
        errors.append(f"settings root is not a directory: {root}")

    return errors
