"""
Art-Net API routes.

POST /api/artnet/connect    - Open a session (defaults from the active config)
POST /api/artnet/disconnect - Close the session
GET  /api/artnet/status     - Connection state + target
POST /api/artnet/send       - Send a channel array
POST /api/artnet/channel    - Set a single channel
POST /api/artnet/blackout   - Zero every channel of a universe
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from artnet_checker.controller import ArtNetController
from artnet_checker.errors import ArtNetError, InvalidChannelData, NotConnected
from artnet_checker.routes.config import envelope

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request Models ---

class ConnectRequest(BaseModel):
    """Request to open an Art-Net session."""
    ip: Optional[str] = Field(default=None, description="Target host; broadcast addresses allowed.")
    port: Optional[int] = Field(default=None, ge=0, le=65535)
    universe: Optional[int] = Field(default=None, ge=0)


class SendRequest(BaseModel):
    """Full channel array, starting at DMX address 1."""
    channels: List[int]
    universe: Optional[int] = Field(default=None, ge=0)


class ChannelRequest(BaseModel):
    """Single channel update (0-based channel index)."""
    channel: int
    value: int
    universe: Optional[int] = Field(default=None, ge=0)


class BlackoutRequest(BaseModel):
    universe: Optional[int] = Field(default=None, ge=0)


# --- Helper Functions ---

def get_controller(request: Request) -> ArtNetController:
    return request.app.state.artnet_controller


def _error_response(e: ArtNetError, action: str):
    if isinstance(e, (NotConnected, InvalidChannelData)):
        logger.warning(f"{action} rejected: {e}")
        return envelope(status.HTTP_400_BAD_REQUEST, False, str(e), error=type(e).__name__)
    logger.error(f"{action} failed: {e}", exc_info=True)
    return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, False, f"{action} failed", error=str(e))


# --- API Routes ---

@router.post("/connect")
async def connect(req: ConnectRequest, controller: ArtNetController = Depends(get_controller)):
    """Open (or reopen) the Art-Net session."""
    try:
        cfg = controller.connect(req.ip, req.port, req.universe)
    except ArtNetError as e:
        return _error_response(e, "Art-Net connect")
    return envelope(200, True, "Art-Net connection established", config=cfg.to_dict())


@router.post("/disconnect")
async def disconnect(controller: ArtNetController = Depends(get_controller)):
    try:
        controller.disconnect()
    except ArtNetError as e:
        return _error_response(e, "Art-Net disconnect")
    return envelope(200, True, "Art-Net connection closed")


@router.get("/status")
async def get_status(controller: ArtNetController = Depends(get_controller)):
    return envelope(200, True, "Art-Net status", **controller.status())


@router.post("/send")
async def send_channels(req: SendRequest, controller: ArtNetController = Depends(get_controller)):
    """Send DMX data for a whole universe."""
    try:
        universe = controller.send(req.channels, req.universe)
    except ArtNetError as e:
        return _error_response(e, "DMX send")
    return envelope(
        200,
        True,
        "DMX data sent",
        universe=universe,
        channelCount=len(req.channels),
    )


@router.post("/channel")
async def set_channel(req: ChannelRequest, controller: ArtNetController = Depends(get_controller)):
    """Set one channel value."""
    try:
        universe = controller.set_channel(req.channel, req.value, req.universe)
    except ArtNetError as e:
        return _error_response(e, "Channel send")
    return envelope(
        200,
        True,
        f"Channel {req.channel + 1} set to {req.value}",
        channel=req.channel,
        value=req.value,
        universe=universe,
    )


@router.post("/blackout")
async def blackout(
    req: Optional[BlackoutRequest] = None,
    controller: ArtNetController = Depends(get_controller),
):
    try:
        universe = controller.blackout(req.universe if req else None)
    except ArtNetError as e:
        return _error_response(e, "Blackout")
    return envelope(200, True, f"Universe {universe} blacked out", universe=universe)
