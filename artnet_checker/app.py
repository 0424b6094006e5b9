"""
FastAPI application for the DMX Art-Net Checker.

One service, parameterized by host/port, exposing the configuration store and
the Art-Net controller to the browser UI.
"""

import argparse
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from artnet_checker.config import (
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEFAULT_HOST,
    LOG_LEVEL_OVERRIDE,
    SERVICE_NAME,
    default_port,
    default_settings_root,
    validate_config,
)
from artnet_checker.controller import ArtNetController, ControllerConfig
from artnet_checker.errors import ArtNetError
from artnet_checker.logging import init_structured_logging, install_fastapi_request_id_middleware
from artnet_checker.routes import artnet as artnet_routes
from artnet_checker.routes import config as config_routes
from artnet_checker.settings import ConfigDocument, ConfigStore, SettingsRegistry

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[ConfigStore] = None,
    controller: Optional[ArtNetController] = None,
) -> FastAPI:
    """
    Build the app around explicitly owned service instances.

    The store defaults to one rooted at `default_settings_root()`; the
    controller defaults to the active document's network settings.
    """
    if store is None:
        store = ConfigStore(SettingsRegistry())
    if controller is None:
        controller = ArtNetController(ControllerConfig.from_network(store.get().network))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown events."""
        logger.info(f"Starting {APP_NAME} v{APP_VERSION} (settings root: {store.registry.root})")

        config_errors = validate_config()
        if config_errors:
            logger.error("Configuration errors detected:")
            for error in config_errors:
                logger.error(f"  - {error}")
        else:
            logger.info("Configuration validated successfully")

        yield

        try:
            controller.disconnect()
        except ArtNetError as e:
            logger.warning(f"Art-Net session did not close cleanly: {e}")
        logger.info(f"Shutting down {APP_NAME}")

    app = FastAPI(
        title=APP_NAME,
        version=APP_VERSION,
        description="Drive DMX512 channels over Art-Net and manage named YAML configurations",
        lifespan=lifespan,
    )
    app.state.config_store = store
    app.state.artnet_controller = controller

    app.include_router(config_routes.router, prefix="/api", tags=["config"])
    app.include_router(artnet_routes.router, prefix="/api/artnet", tags=["artnet"])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )
    install_fastapi_request_id_middleware(app, service=SERVICE_NAME)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": APP_NAME, "version": APP_VERSION}

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="artnet-checker", description=APP_NAME)
    parser.add_argument("--host", default=DEFAULT_HOST, help="Listen address (env: HOST)")
    parser.add_argument("--port", type=int, default=default_port(), help="Listen port (env: PORT)")
    parser.add_argument(
        "--settings-root",
        type=Path,
        default=None,
        help="Directory holding settings.yaml and config/ (env: ARTNET_CHECKER_SETTINGS_ROOT)",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL_OVERRIDE or None, help="Override the configured log level")
    return parser


def logging_configurer(level: Optional[str] = None) -> Callable[[ConfigDocument], None]:
    """
    Apply a document's `logging` section to the process.

    `level` (from --log-level / LOG_LEVEL) wins over the document's own level.
    The app calls this again whenever the active document changes.
    """

    def _configure(doc: ConfigDocument) -> None:
        init_structured_logging(
            service=SERVICE_NAME,
            version=APP_VERSION,
            level=level,
            file_settings=doc.logging,
        )

    return _configure


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    args = build_parser().parse_args(argv)
    root = args.settings_root or default_settings_root()

    store = ConfigStore(SettingsRegistry(root))
    configure_logging = logging_configurer(args.log_level)
    configure_logging(store.get())

    app = create_app(store)
    app.state.configure_logging = configure_logging
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
