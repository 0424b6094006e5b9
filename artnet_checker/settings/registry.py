from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from artnet_checker.config import default_settings_root
from artnet_checker.errors import UnknownConfigFile
from artnet_checker.logging import log_event

from .models import RegistryEntry, RegistryState, default_registry_state

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "settings.yaml"
CONFIG_DIRNAME = "config"
CONFIG_SUFFIXES = {".yaml", ".yml"}


def write_yaml(path: Path, data: Any) -> None:
    """
    Serialize `data` to `path` via a sibling temp file + rename.

    Raises OSError / yaml.YAMLError; callers decide how to report.
    """
    text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def read_yaml(path: Path) -> Any:
    raw = path.read_text(encoding="utf-8")
    return yaml.safe_load(raw) if raw.strip() else {}


def _state_from_mapping(raw: Mapping[str, Any]) -> RegistryState:
    """
    Shallow merge of a parsed registry file over the defaults.

    Keys that parse cleanly win; a key with the wrong shape keeps its default.
    """
    state = default_registry_state()

    if "config" in raw:
        cfg = raw.get("config")
        active = cfg.get("default_file") if isinstance(cfg, Mapping) else None
        if isinstance(active, str) and active.strip():
            state.active_file = active.strip()
        else:
            log_event(logger, "registry.key_fallback", severity="WARNING", key="config.default_file")

    if "available_configs" in raw:
        rows = raw.get("available_configs")
        try:
            if not isinstance(rows, list):
                raise TypeError("available_configs must be a list")
            state.entries = [RegistryEntry.model_validate(r) for r in rows]
        except (TypeError, ValidationError) as e:
            log_event(
                logger,
                "registry.key_fallback",
                severity="WARNING",
                key="available_configs",
                error=str(e)[:500],
            )

    return state


class SettingsRegistry:
    """
    Tracks which configuration file is active and which ones exist.

    Layout under the settings root:
      settings.yaml           active pointer + named entries
      config/<name>.yaml      configuration documents
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root is not None else default_settings_root()
        self._state: Optional[RegistryState] = None

    @property
    def registry_path(self) -> Path:
        return self.root / REGISTRY_FILENAME

    @property
    def config_dir(self) -> Path:
        return self.root / CONFIG_DIRNAME

    def load(self) -> RegistryState:
        path = self.registry_path
        if not path.exists():
            log_event(logger, "registry.created", path=str(path))
            state = default_registry_state()
            self.save(state)
            self._state = state
            return state.model_copy(deep=True)

        try:
            raw = read_yaml(path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            log_event(
                logger,
                "registry.parse_failure",
                severity="ERROR",
                path=str(path),
                error=f"{type(e).__name__}: {e}",
            )
            state = default_registry_state()
        else:
            if isinstance(raw, Mapping):
                state = _state_from_mapping(raw)
            else:
                log_event(logger, "registry.parse_failure", severity="ERROR", path=str(path), error="not a mapping")
                state = default_registry_state()

        self._state = state
        return state.model_copy(deep=True)

    def get(self) -> RegistryState:
        if self._state is None:
            return self.load()
        return self._state.model_copy(deep=True)

    def save(self, state: RegistryState) -> bool:
        try:
            write_yaml(self.registry_path, state.to_file_dict())
        except (OSError, yaml.YAMLError) as e:
            log_event(
                logger,
                "registry.write_failure",
                severity="ERROR",
                path=str(self.registry_path),
                error=f"{type(e).__name__}: {e}",
            )
            return False
        self._state = state.model_copy(deep=True)
        return True

    def invalidate(self) -> None:
        self._state = None

    def list_config_files(self) -> list[str]:
        config_dir = self.config_dir
        if not config_dir.is_dir():
            return []
        try:
            names = sorted(
                p.name for p in config_dir.iterdir() if p.is_file() and p.suffix.lower() in CONFIG_SUFFIXES
            )
        except OSError as e:
            log_event(logger, "registry.list_failure", severity="ERROR", path=str(config_dir), error=str(e))
            return []
        return [f"{CONFIG_DIRNAME}/{n}" for n in names]

    def resolve_active_path(self) -> Path:
        return self.root / self.get().active_file

    def resolve_path(self, relative: str) -> Path:
        """
        Join a registry-relative path with the settings root.

        Raises UnknownConfigFile if the result escapes the root.
        """
        rel = (relative or "").strip()
        if not rel:
            raise UnknownConfigFile("config file is required")
        candidate = (self.root / rel).resolve()
        root = self.root.resolve()
        if root not in candidate.parents:
            raise UnknownConfigFile(f"config file outside settings root: {rel}")
        return self.root / rel

    def set_active_file(self, file: str) -> bool:
        state = self.get()
        state.active_file = file
        return self.save(state)

    def add_entry(self, entry: RegistryEntry) -> bool:
        state = self.get()
        state.entries.append(entry)
        return self.save(state)
