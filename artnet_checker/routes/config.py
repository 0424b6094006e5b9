"""
Configuration API routes.

GET  /api/config            - Read the active document (+ channel count)
POST /api/config            - Replace the active document
PUT  /api/config            - Shallow-update one or more sections
GET  /api/configs           - List config files and registry entries
POST /api/config/reload     - Re-read registry and document from disk
POST /api/config/switch     - Point the registry at another file
POST /api/config/save-as    - Write the current document to a new file
POST /api/config/overwrite  - Write the current document to the active file
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from artnet_checker.errors import (
    AlreadyExists,
    InvalidName,
    SettingsError,
    UnknownConfigFile,
    ValidationFailure,
)
from artnet_checker.settings import ConfigDocument, ConfigStore

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request Models ---

class SwitchConfigRequest(BaseModel):
    """Request to switch the active config file."""
    model_config = ConfigDict(populate_by_name=True)

    config_file: str = Field(..., alias="configFile", description='e.g. "config/stage.yaml"')


class SaveAsRequest(BaseModel):
    """Request to save the current document under a new name."""
    filename: str = Field(..., description="Sanitized to [A-Za-z0-9_-] before use.")
    name: Optional[str] = Field(default=None, description="Display name for the registry entry.")
    description: Optional[str] = Field(default=None)


# --- Helper Functions ---

def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def envelope(status_code: int, success: bool, message: str, **payload: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": success, "message": message, **payload},
    )


def _config_payload(doc: ConfigDocument) -> Dict[str, Any]:
    return {
        "config": doc.model_dump(mode="json"),
        "channelCount": doc.channels.display_range.count,
    }


def _error_response(e: SettingsError) -> JSONResponse:
    if isinstance(e, AlreadyExists):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, UnknownConfigFile):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (InvalidName, ValidationFailure)):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.warning(f"Config request rejected ({code}): {e}")
    return envelope(code, False, str(e), error=type(e).__name__)


def _apply_document(request: Optional[Request], doc: ConfigDocument) -> None:
    """Push a changed document into the controller defaults and the logging setup."""
    if request is None:
        return
    controller = getattr(request.app.state, "artnet_controller", None)
    if controller is not None:
        controller.apply_defaults(doc.network)
    configure_logging = getattr(request.app.state, "configure_logging", None)
    if configure_logging is not None:
        configure_logging(doc)


# --- API Routes ---

@router.get("/config")
async def get_config(store: ConfigStore = Depends(get_config_store)):
    """Get the active configuration document."""
    return envelope(200, True, "Configuration loaded", **_config_payload(store.get()))


@router.post("/config")
async def replace_config(
    request: Request,
    body: Dict[str, Any] = Body(...),
    store: ConfigStore = Depends(get_config_store),
):
    """
    Replace the active configuration document.

    Missing fields take their default values.
    """
    try:
        saved = store.save(body)
    except SettingsError as e:
        return _error_response(e)
    if not saved:
        return envelope(500, False, "Failed to save configuration")
    doc = store.get()
    _apply_document(request, doc)
    return envelope(200, True, "Configuration saved", **_config_payload(doc))


@router.put("/config")
async def update_config(
    request: Request,
    body: Dict[str, Any] = Body(...),
    store: ConfigStore = Depends(get_config_store),
):
    """
    Update sections of the active configuration.

    Body maps section name to a partial mapping, e.g.
    {"channels": {"display_range": {"start": 1, "end": 32}}}.
    """
    if not body:
        return envelope(400, False, "No sections to update")
    try:
        saved = store.update_sections(body)
    except SettingsError as e:
        return _error_response(e)
    if not saved:
        return envelope(500, False, "Failed to update configuration")
    doc = store.get()
    _apply_document(request, doc)
    logger.info(f"Configuration sections updated: {', '.join(sorted(body))}")
    return envelope(200, True, "Configuration updated", **_config_payload(doc))


@router.get("/configs")
async def list_configs(store: ConfigStore = Depends(get_config_store)):
    """List config files on disk plus the registry's named entries."""
    state = store.registry.get()
    return envelope(
        200,
        True,
        "Config files listed",
        configs=store.registry.list_config_files(),
        entries=[e.model_dump() for e in state.entries],
        current=state.active_file,
    )


@router.post("/config/reload")
async def reload_config(request: Request, store: ConfigStore = Depends(get_config_store)):
    """Drop caches and re-read the registry and the active document."""
    doc = store.reload()
    _apply_document(request, doc)
    return envelope(200, True, "Configuration reloaded", **_config_payload(doc))


@router.post("/config/switch")
async def switch_config(
    req: SwitchConfigRequest,
    request: Request,
    store: ConfigStore = Depends(get_config_store),
):
    """Switch the active configuration file and return the new document."""
    try:
        doc = store.switch_active_file(req.config_file)
    except SettingsError as e:
        return _error_response(e)
    _apply_document(request, doc)
    logger.info(f"Switched active config to {req.config_file}")
    return envelope(
        200,
        True,
        f"Switched to config file: {req.config_file}",
        file=req.config_file,
        **_config_payload(doc),
    )


@router.post("/config/save-as")
async def save_config_as(req: SaveAsRequest, store: ConfigStore = Depends(get_config_store)):
    """Save the current document as a new file (does not switch to it)."""
    try:
        result = store.save_as(req.filename, display_name=req.name, description=req.description)
    except SettingsError as e:
        return _error_response(e)
    return envelope(200, True, f"Configuration saved as {result.file}", file=result.file)


@router.post("/config/overwrite")
async def overwrite_config(store: ConfigStore = Depends(get_config_store)):
    """Write the current document back to the active file."""
    file = store.registry.get().active_file
    if not store.overwrite_active():
        return envelope(500, False, f"Failed to overwrite {file}", file=file)
    return envelope(200, True, f"Configuration overwritten to {file}", file=file)
