"""
Layered configuration store (YAML, multi-file, default-merged).

`SettingsRegistry` owns the active-file pointer in `settings.yaml`;
`ConfigStore` serves and persists the active document.
"""

from .models import (
    ConfigDocument,
    DMX_UNIVERSE_SIZE,
    RegistryEntry,
    RegistryState,
    default_document,
    default_registry_state,
    merge_with_defaults,
    validate_display_range,
)
from .registry import SettingsRegistry
from .store import ConfigStore, SaveAsResult, sanitize_config_name

__all__ = [
    "ConfigDocument",
    "ConfigStore",
    "DMX_UNIVERSE_SIZE",
    "RegistryEntry",
    "RegistryState",
    "SaveAsResult",
    "SettingsRegistry",
    "default_document",
    "default_registry_state",
    "merge_with_defaults",
    "sanitize_config_name",
    "validate_display_range",
]
