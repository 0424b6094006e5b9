import asyncio
import logging
from logging.handlers import RotatingFileHandler

from artnet_checker.app import build_parser, create_app, logging_configurer
from artnet_checker.controller import ArtNetController
from artnet_checker.settings import ConfigStore, default_document


def _get_route_endpoint(app, path: str, method: str = "GET"):
    for r in getattr(app, "routes", []):
        if getattr(r, "path", None) == path and method in (getattr(r, "methods", None) or set()):
            return getattr(r, "endpoint", None)
    raise AssertionError(f"Route not found: {method} {path}")


def test_app_holds_explicit_services(store: ConfigStore, controller: ArtNetController):
    app = create_app(store, controller)
    assert app.state.config_store is store
    assert app.state.artnet_controller is controller


def test_app_registers_all_routes(store: ConfigStore, controller: ArtNetController):
    app = create_app(store, controller)
    expected = [
        ("GET", "/health"),
        ("GET", "/api/config"),
        ("POST", "/api/config"),
        ("PUT", "/api/config"),
        ("GET", "/api/configs"),
        ("POST", "/api/config/reload"),
        ("POST", "/api/config/switch"),
        ("POST", "/api/config/save-as"),
        ("POST", "/api/config/overwrite"),
        ("POST", "/api/artnet/connect"),
        ("POST", "/api/artnet/disconnect"),
        ("GET", "/api/artnet/status"),
        ("POST", "/api/artnet/send"),
        ("POST", "/api/artnet/channel"),
        ("POST", "/api/artnet/blackout"),
    ]
    for method, path in expected:
        assert _get_route_endpoint(app, path, method) is not None


def test_health(store: ConfigStore, controller: ArtNetController):
    app = create_app(store, controller)
    payload = asyncio.run(_get_route_endpoint(app, "/health")())
    assert payload["status"] == "healthy"


def test_default_controller_follows_active_document(store: ConfigStore):
    store.update_section("network", {"default_address": "2.0.0.3", "default_universe": 7})
    app = create_app(store)
    assert app.state.artnet_controller.config.to_dict() == {"address": "2.0.0.3", "port": 6454, "universe": 7}


def test_lifespan_closes_session(store: ConfigStore, controller: ArtNetController, nodes):
    app = create_app(store, controller)
    controller.connect()

    async def _run():
        async with app.router.lifespan_context(app):
            assert controller.is_connected

    asyncio.run(_run())
    assert controller.is_connected is False
    assert nodes[-1].refreshing is False


def test_parser_accepts_port_and_root(tmp_path):
    args = build_parser().parse_args(["--port", "3003", "--settings-root", str(tmp_path)])
    assert args.port == 3003
    assert args.settings_root == tmp_path


def test_logging_configurer_applies_each_document(tmp_path, restore_root_logging):
    configure = logging_configurer()

    first = default_document()
    first.logging = first.logging.model_copy(update={"log_file": str(tmp_path / "a.log"), "max_files": 2})
    configure(first)
    handlers = [h for h in restore_root_logging.handlers if isinstance(h, RotatingFileHandler)]
    assert [h.backupCount for h in handlers] == [2]

    second = default_document()
    second.logging = second.logging.model_copy(update={"level": "debug", "file_logging": False})
    configure(second)
    assert not any(isinstance(h, RotatingFileHandler) for h in restore_root_logging.handlers)
    assert restore_root_logging.level == logging.DEBUG


def test_logging_configurer_level_override_wins(restore_root_logging):
    doc = default_document()
    doc.logging = doc.logging.model_copy(update={"level": "debug", "file_logging": False})
    logging_configurer("error")(doc)
    assert restore_root_logging.level == logging.ERROR
