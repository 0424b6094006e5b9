from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from artnet_checker.errors import ValidationFailure
from artnet_checker.logging import log_event

logger = logging.getLogger(__name__)

DMX_UNIVERSE_SIZE = 512

DEFAULT_CONFIG_FILE = "config/config.yaml"


def validate_display_range(start: int, end: int) -> None:
    """
    Enforce `1 <= start <= end <= 512`.

    Raises ValidationFailure on violation.
    """
    if start < 1 or end > DMX_UNIVERSE_SIZE or start > end:
        raise ValidationFailure(
            f"invalid channel range {start}..{end} (1-{DMX_UNIVERSE_SIZE}, start <= end)"
        )


class AppSection(BaseModel):
    name: str = Field(default="DMX Art-Net Checker", description="Display name.")


class WindowSection(BaseModel):
    width: int = Field(default=1200, gt=0)
    height: int = Field(default=800, gt=0)


class NetworkSection(BaseModel):
    default_address: str = Field(default="192.168.1.255", description="Hostname or IPv4.")
    default_port: int = Field(default=6454, ge=0, le=65535)
    default_universe: int = Field(default=0, ge=0)


class DisplayRange(BaseModel):
    start: int = Field(default=1)
    end: int = Field(default=16)

    @model_validator(mode="after")
    def _check_bounds(self) -> "DisplayRange":
        validate_display_range(self.start, self.end)
        return self

    @property
    def count(self) -> int:
        return self.end - self.start + 1


class ChannelsSection(BaseModel):
    display_range: DisplayRange = Field(default_factory=DisplayRange)


class LoggingSection(BaseModel):
    level: str = Field(default="info")
    file_logging: bool = Field(default=True)
    log_file: str = Field(default="dmx-artnet.log")
    max_file_size: str = Field(default="10MB", description='e.g. "10MB", "512KB".')
    max_files: int = Field(default=5, ge=0)


class ConfigDocument(BaseModel):
    """
    One configuration file.

    Unknown top-level sections are kept as-is so that `update_section` can
    create them.
    """

    model_config = ConfigDict(extra="allow")

    app: AppSection = Field(default_factory=AppSection)
    window: WindowSection = Field(default_factory=WindowSection)
    network: NetworkSection = Field(default_factory=NetworkSection)
    channels: ChannelsSection = Field(default_factory=ChannelsSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)


SECTION_MODELS: dict[str, type[BaseModel]] = {
    "app": AppSection,
    "window": WindowSection,
    "network": NetworkSection,
    "channels": ChannelsSection,
    "logging": LoggingSection,
}


class RegistryEntry(BaseModel):
    name: str
    file: str
    description: str = ""


class RegistryState(BaseModel):
    active_file: str = Field(default=DEFAULT_CONFIG_FILE)
    entries: list[RegistryEntry] = Field(default_factory=list)

    def to_file_dict(self) -> dict[str, Any]:
        """On-disk shape of `settings.yaml`."""
        return {
            "config": {"default_file": self.active_file},
            "available_configs": [e.model_dump() for e in self.entries],
        }


def default_document() -> ConfigDocument:
    return ConfigDocument()


def default_registry_state() -> RegistryState:
    return RegistryState(
        active_file=DEFAULT_CONFIG_FILE,
        entries=[
            RegistryEntry(
                name="Default Configuration",
                file=DEFAULT_CONFIG_FILE,
                description="Standard DMX Art-Net configuration",
            )
        ],
    )


def deep_merge(
    base: Mapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
    dropped: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    Recursively merge `override` over `base`.

    Where `base` holds a mapping and `override` does not, the base value is
    kept and the dotted key is appended to `dropped`.
    """
    out = copy.deepcopy(dict(base))
    for key, value in override.items():
        k = str(key)
        dotted = f"{path}.{k}" if path else k
        current = out.get(k)
        if isinstance(current, Mapping):
            if isinstance(value, Mapping):
                out[k] = deep_merge(current, value, path=dotted, dropped=dropped)
            elif dropped is not None:
                dropped.append(dotted)
            continue
        out[k] = copy.deepcopy(value)
    return out


def merge_with_defaults(source: Mapping[str, Any]) -> ConfigDocument:
    """
    Merge a parsed document over the default document, section by section.

    A known section that is missing, is not a mapping, or fails validation
    after merging falls back to its default. Unknown sections pass through.
    """
    defaults = default_document().model_dump()
    merged: dict[str, Any] = {}

    for name, model in SECTION_MODELS.items():
        if name not in source:
            merged[name] = defaults[name]
            continue
        raw = source[name]
        if not isinstance(raw, Mapping):
            log_event(
                logger,
                "settings.section_fallback",
                severity="WARNING",
                section=name,
                reason="not_a_mapping",
            )
            merged[name] = defaults[name]
            continue

        dropped: list[str] = []
        candidate = deep_merge(defaults[name], raw, path=name, dropped=dropped)
        for key in dropped:
            log_event(
                logger,
                "settings.key_fallback",
                severity="WARNING",
                key=key,
                reason="not_a_mapping",
            )
        try:
            merged[name] = model.model_validate(candidate).model_dump()
        except ValidationError as e:
            log_event(
                logger,
                "settings.section_fallback",
                severity="WARNING",
                section=name,
                reason="invalid",
                errors=e.error_count(),
            )
            merged[name] = defaults[name]

    for key, value in source.items():
        k = str(key)
        if k not in SECTION_MODELS:
            merged[k] = copy.deepcopy(value)

    return ConfigDocument.model_validate(merged)


def coerce_document(doc: ConfigDocument | Mapping[str, Any]) -> ConfigDocument:
    """
    Validate a caller-supplied document (model or mapping).

    Missing fields take their defaults; anything else invalid raises
    ValidationFailure.
    """
    data = doc.model_dump() if isinstance(doc, ConfigDocument) else doc
    if not isinstance(data, Mapping):
        raise ValidationFailure("configuration document must be a mapping")
    try:
        return ConfigDocument.model_validate(dict(data))
    except ValidationError as e:
        raise ValidationFailure(_summarize(e)) from e


def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid"))
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid configuration"
