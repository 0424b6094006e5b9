from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from artnet_checker.errors import (
    AlreadyExists,
    InvalidName,
    UnknownConfigFile,
    ValidationFailure,
    WriteFailure,
)
from artnet_checker.logging import log_event

from .models import ConfigDocument, RegistryEntry, coerce_document, default_document, merge_with_defaults
from .registry import CONFIG_DIRNAME, CONFIG_SUFFIXES, SettingsRegistry, read_yaml, write_yaml

logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_config_name(name: str) -> str:
    """
    Strip every character outside `[A-Za-z0-9_-]`.

    Examples:
    - 'my-config' -> 'my-config'
    - 'bad name!@#' -> 'badname'
    - '../etc' -> 'etc'
    """
    return _UNSAFE_NAME_RE.sub("", name or "")


@dataclass(frozen=True)
class SaveAsResult:
    file: str
    path: Path
    document: ConfigDocument


class ConfigStore:
    """
    Serves the active configuration document and persists edits.

    Storage faults never escape: reads degrade to the default document and
    writes return False. Callers only see input-validation errors.
    """

    def __init__(self, registry: SettingsRegistry) -> None:
        self.registry = registry
        self._document: Optional[ConfigDocument] = None
        # Served by get() while the active file is missing or unreadable; cleared by reload().
        self._fallback: Optional[ConfigDocument] = None

    def load(self) -> ConfigDocument:
        path = self.registry.resolve_active_path()
        if not path.exists():
            log_event(logger, "settings.not_found", severity="WARNING", path=str(path))
            return self._use_fallback()

        try:
            raw = read_yaml(path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            log_event(
                logger,
                "settings.parse_failure",
                severity="ERROR",
                path=str(path),
                error=f"{type(e).__name__}: {e}",
            )
            return self._use_fallback()

        if not isinstance(raw, Mapping):
            log_event(logger, "settings.parse_failure", severity="ERROR", path=str(path), error="not a mapping")
            return self._use_fallback()

        doc = merge_with_defaults(raw)
        self._document = doc
        self._fallback = None
        log_event(logger, "settings.loaded", path=str(path))
        return doc.model_copy(deep=True)

    def get(self) -> ConfigDocument:
        if self._document is not None:
            return self._document.model_copy(deep=True)
        if self._fallback is not None:
            return self._fallback.model_copy(deep=True)
        return self.load()

    def _use_fallback(self) -> ConfigDocument:
        self._fallback = default_document()
        return self._fallback.model_copy(deep=True)

    def save(self, doc: ConfigDocument | Mapping[str, Any]) -> bool:
        document = coerce_document(doc)
        if not self._write(self.registry.resolve_active_path(), document):
            return False
        self._document = document
        self._fallback = None
        return True

    def update_section(self, section: str, data: Mapping[str, Any]) -> bool:
        return self.update_sections({section: data})

    def update_sections(self, updates: Mapping[str, Mapping[str, Any]]) -> bool:
        """
        Shallow-merge each partial mapping into its top-level section, then
        save once. Unknown sections are created.
        """
        current = self.get().model_dump()
        for section, data in updates.items():
            key = str(section or "").strip()
            if not key:
                raise ValidationFailure("section name is required")
            if not isinstance(data, Mapping):
                raise ValidationFailure(f"section {key!r} update must be a mapping")
            existing = current.get(key)
            current[key] = {**existing, **data} if isinstance(existing, Mapping) else dict(data)
        return self.save(current)

    def channel_count(self) -> int:
        return self.get().channels.display_range.count

    def reload(self) -> ConfigDocument:
        self.registry.invalidate()
        self._document = None
        self._fallback = None
        return self.load()

    def switch_active_file(self, file: str) -> ConfigDocument:
        target = self.registry.resolve_path(file)
        if not target.is_file():
            raise UnknownConfigFile(f"config file not found: {file}")
        # Only the files list_config_files() offers; never the registry itself.
        if (
            target.resolve().parent != self.registry.config_dir.resolve()
            or target.suffix.lower() not in CONFIG_SUFFIXES
        ):
            raise UnknownConfigFile(f"not a config file: {file}")
        if not self.registry.set_active_file(file.strip()):
            raise WriteFailure("could not persist the active config pointer")
        log_event(logger, "settings.switched", file=file)
        return self.reload()

    def save_as(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SaveAsResult:
        sanitized = sanitize_config_name(name)
        if not sanitized:
            raise InvalidName("name must contain at least one of A-Z, a-z, 0-9, '_' or '-'")

        file = f"{CONFIG_DIRNAME}/{sanitized}.yaml"
        path = self.registry.resolve_path(file)
        if path.exists():
            raise AlreadyExists(f"config file already exists: {file}")

        document = self.get()
        if not self._write(path, document):
            raise WriteFailure(f"could not write {file}")

        entry = RegistryEntry(
            name=(display_name or "").strip() or sanitized,
            file=file,
            description=(description or "").strip() or f"Saved configuration: {sanitized}",
        )
        if not self.registry.add_entry(entry):
            # The file itself is on disk and still shows up in list_config_files().
            log_event(logger, "settings.registry_entry_not_saved", severity="WARNING", file=file)

        log_event(logger, "settings.saved_as", file=file)
        return SaveAsResult(file=file, path=path, document=document)

    def overwrite_active(self) -> bool:
        return self._write(self.registry.resolve_active_path(), self.get())

    def _write(self, path: Path, document: ConfigDocument) -> bool:
        try:
            write_yaml(path, document.model_dump(mode="json"))
        except (OSError, yaml.YAMLError) as e:
            log_event(
                logger,
                "settings.write_failure",
                severity="ERROR",
                path=str(path),
                error=f"{type(e).__name__}: {e}",
            )
            return False
        log_event(logger, "settings.saved", path=str(path))
        return True
