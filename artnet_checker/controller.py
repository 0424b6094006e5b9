"""
Art-Net session wrapper.

Packet framing and the UDP send loop belong to `pyartnet`; this module only
keeps the `{address, port, universe}` triple, one 512-wide channel block per
universe, and a local mirror of the values last sent.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from collections.abc import Sequence
from typing import Any, Callable, Optional

from pyartnet import ArtNetNode

from artnet_checker.errors import InvalidChannelData, NotConnected, TransportError
from artnet_checker.logging import log_event
from artnet_checker.settings.models import DMX_UNIVERSE_SIZE, NetworkSection

logger = logging.getLogger(__name__)

DMX_MAX_VALUE = 255

NodeFactory = Callable[[str, int], Any]


def _default_node_factory(address: str, port: int) -> Any:
    # pyartnet 2.x: builds the UDP target itself; start_refresh needs a running loop.
    return ArtNetNode.create(address, port)


@dataclass
class ControllerConfig:
    address: str = "192.168.1.255"
    port: int = 6454
    universe: int = 0

    @classmethod
    def from_network(cls, network: NetworkSection) -> "ControllerConfig":
        return cls(
            address=network.default_address,
            port=network.default_port,
            universe=network.default_universe,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class _Session:
    def __init__(self, node: Any) -> None:
        self.node = node
        self._blocks: dict[int, Any] = {}
        self.values: dict[int, list[int]] = {}

    def block(self, universe: int) -> Any:
        if universe not in self._blocks:
            u = self.node.add_universe(universe)
            self._blocks[universe] = u.add_channel(start=1, width=DMX_UNIVERSE_SIZE)
            self.values[universe] = [0] * DMX_UNIVERSE_SIZE
        return self._blocks[universe]


def _check_value(value: Any, *, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidChannelData(f"{what} must be an integer")
    if value < 0 or value > DMX_MAX_VALUE:
        raise InvalidChannelData(f"{what} out of range (0-{DMX_MAX_VALUE}): {value}")
    return value


class ArtNetController:
    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        *,
        node_factory: Optional[NodeFactory] = None,
    ) -> None:
        self.config = config or ControllerConfig()
        self._node_factory = node_factory or _default_node_factory
        self._session: Optional[_Session] = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    def apply_defaults(self, network: NetworkSection) -> None:
        """Reseed the session defaults from a configuration document (no-op while connected)."""
        if not self.is_connected:
            self.config = ControllerConfig.from_network(network)

    def connect(
        self,
        address: Optional[str] = None,
        port: Optional[int] = None,
        universe: Optional[int] = None,
    ) -> ControllerConfig:
        if self._session is not None:
            self.disconnect()

        cfg = ControllerConfig(
            address=address or self.config.address,
            port=port if port else self.config.port,
            universe=universe if universe is not None else self.config.universe,
        )
        if cfg.universe < 0:
            raise InvalidChannelData(f"universe must be >= 0: {cfg.universe}")

        try:
            node = self._node_factory(cfg.address, cfg.port)
            start = getattr(node, "start_refresh", None)
            if callable(start):
                start()
        except Exception as e:
            log_event(logger, "artnet.connect_failed", severity="ERROR", error=f"{type(e).__name__}: {e}", **cfg.to_dict())
            raise TransportError(f"Art-Net connection failed: {e}") from e

        self._session = _Session(node)
        self.config = cfg
        log_event(logger, "artnet.connected", **cfg.to_dict())
        return cfg

    def disconnect(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        stop = getattr(session.node, "stop_refresh", None)
        try:
            if callable(stop):
                stop()
        except Exception as e:
            log_event(logger, "artnet.disconnect_failed", severity="WARNING", error=f"{type(e).__name__}: {e}")
            raise TransportError(f"Art-Net disconnect failed: {e}") from e
        log_event(logger, "artnet.disconnected")

    def status(self) -> dict[str, Any]:
        return {"is_connected": self.is_connected, "config": self.config.to_dict()}

    def values(self, universe: Optional[int] = None) -> list[int]:
        u = self._target(universe)
        if self._session is None:
            return [0] * DMX_UNIVERSE_SIZE
        return list(self._session.values.get(u, [0] * DMX_UNIVERSE_SIZE))

    def send(self, channels: Sequence[int], universe: Optional[int] = None) -> int:
        """Send a channel array starting at DMX address 1. Returns the universe used."""
        session = self._require_session()
        if isinstance(channels, (str, bytes)) or not isinstance(channels, Sequence):
            raise InvalidChannelData("channels must be an array")
        if len(channels) > DMX_UNIVERSE_SIZE:
            raise InvalidChannelData(f"at most {DMX_UNIVERSE_SIZE} channels per universe, got {len(channels)}")
        checked = [_check_value(v, what=f"channel {i + 1} value") for i, v in enumerate(channels)]

        u = self._target(universe)
        block = self._block(session, u)
        mirror = session.values[u]
        mirror[: len(checked)] = checked
        self._push(block, mirror, universe=u)
        return u

    def set_channel(self, channel: int, value: int, universe: Optional[int] = None) -> int:
        """Set one 0-based channel. Returns the universe used."""
        session = self._require_session()
        if isinstance(channel, bool) or not isinstance(channel, int) or not (0 <= channel < DMX_UNIVERSE_SIZE):
            raise InvalidChannelData(f"channel out of range (0-{DMX_UNIVERSE_SIZE - 1}): {channel}")
        v = _check_value(value, what="value")

        u = self._target(universe)
        block = self._block(session, u)
        mirror = session.values[u]
        mirror[channel] = v
        self._push(block, mirror, universe=u)
        return u

    def blackout(self, universe: Optional[int] = None) -> int:
        return self.send([0] * DMX_UNIVERSE_SIZE, universe=universe)

    def _require_session(self) -> _Session:
        if self._session is None:
            raise NotConnected("Art-Net is not connected")
        return self._session

    def _target(self, universe: Optional[int]) -> int:
        u = self.config.universe if universe is None else universe
        if isinstance(u, bool) or not isinstance(u, int) or u < 0:
            raise InvalidChannelData(f"universe must be a non-negative integer: {u}")
        return u

    def _block(self, session: _Session, universe: int) -> Any:
        try:
            return session.block(universe)
        except Exception as e:
            raise TransportError(f"could not open universe {universe}: {e}") from e

    def _push(self, block: Any, values: list[int], *, universe: int) -> None:
        try:
            block.set_values(list(values))
        except Exception as e:
            log_event(logger, "artnet.send_failed", severity="ERROR", universe=universe, error=f"{type(e).__name__}: {e}")
            raise TransportError(f"DMX send failed: {e}") from e
