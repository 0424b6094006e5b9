from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from artnet_checker.controller import ArtNetController
from artnet_checker.settings import ConfigStore, SettingsRegistry


class FakeChannel:
    def __init__(self, start: int, width: int) -> None:
        self.start = start
        self.width = width
        self.sent: list[list[int]] = []

    def set_values(self, values) -> None:
        if len(values) != self.width:
            raise ValueError("width mismatch")
        self.sent.append(list(values))


class FakeUniverse:
    def __init__(self, number: int) -> None:
        self.number = number
        self.channels: list[FakeChannel] = []

    def add_channel(self, start: int, width: int) -> FakeChannel:
        ch = FakeChannel(start, width)
        self.channels.append(ch)
        return ch


class FakeNode:
    """Stand-in for pyartnet.ArtNetNode; records what the controller does."""

    def __init__(self, address: str, port: int) -> None:
        self.address = address
        self.port = port
        self.universes: dict[int, FakeUniverse] = {}
        self.refreshing = False

    def add_universe(self, number: int) -> FakeUniverse:
        u = FakeUniverse(number)
        self.universes[number] = u
        return u

    def start_refresh(self) -> None:
        self.refreshing = True

    def stop_refresh(self) -> None:
        self.refreshing = False


def write_text(p: Path, text: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def body(resp: Any) -> dict[str, Any]:
    return json.loads(resp.body)


def fake_request(**state: Any) -> SimpleNamespace:
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(**state)))


@pytest.fixture()
def settings_root(tmp_path: Path) -> Path:
    return tmp_path / "settings"


@pytest.fixture()
def registry(settings_root: Path) -> SettingsRegistry:
    return SettingsRegistry(settings_root)


@pytest.fixture()
def store(registry: SettingsRegistry) -> ConfigStore:
    return ConfigStore(registry)


@pytest.fixture()
def nodes() -> list[FakeNode]:
    return []


@pytest.fixture()
def controller(nodes: list[FakeNode]) -> ArtNetController:
    def _factory(address: str, port: int) -> FakeNode:
        node = FakeNode(address, port)
        nodes.append(node)
        return node

    return ArtNetController(node_factory=_factory)


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield root
    for h in list(root.handlers):
        if h not in saved_handlers:
            root.removeHandler(h)
            h.close()
    for h in saved_handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(saved_level)
    logging.captureWarnings(False)
