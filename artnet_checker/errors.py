"""
Error taxonomy for the settings store and the Art-Net controller.

Storage faults (missing or unparsable files, failed writes on the plain save
paths) never surface as exceptions; they degrade to defaults or a `False`
result. Only input-validation faults reach callers as the types below.
"""

from __future__ import annotations


class SettingsError(RuntimeError):
    """Base error for configuration store violations."""


class InvalidName(SettingsError, ValueError):
    """Raised when a save-as name is empty after sanitizing."""


class AlreadyExists(SettingsError):
    """Raised when a save-as target file is already present."""


class ValidationFailure(SettingsError, ValueError):
    """Raised when a document or section fails schema or range checks."""


class UnknownConfigFile(SettingsError, LookupError):
    """Raised when switching to a file that is missing or outside the settings root."""


class WriteFailure(SettingsError):
    """Raised by save-as when the new file cannot be written."""


class ArtNetError(RuntimeError):
    """Base error for Art-Net controller failures."""


class NotConnected(ArtNetError):
    """Raised when sending without an open Art-Net session."""


class InvalidChannelData(ArtNetError, ValueError):
    """Raised for channel indexes, values or arrays outside the DMX512 limits."""


class TransportError(ArtNetError):
    """Raised when the underlying Art-Net library fails."""
