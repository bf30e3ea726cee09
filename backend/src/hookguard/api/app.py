"""FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from hookguard.api.endpoints import create_admin_router
from hookguard.logging_setup import configure_logging
from hookguard.system import HookSystem

logger = logging.getLogger(__name__)


def _system_from_env() -> HookSystem:
    config_path = os.environ.get("HOOKGUARD_CONFIG_FILE")
    if config_path:
        logger.info("Loading hook configuration from %s", config_path)
        return HookSystem.from_config_file(Path(config_path))
    return HookSystem()


def create_app(system: HookSystem | None = None) -> FastAPI:
    """Create the admin API.

    Args:
        system: HookSystem to expose; built from the environment
            (HOOKGUARD_CONFIG_FILE) on startup when omitted
    """
    state: dict[str, HookSystem | None] = {"system": system}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize on startup, cleanup on shutdown."""
        if state["system"] is None:
            state["system"] = _system_from_env()
        current = state["system"]
        current.cache.start_sweeper()

        yield

        current.cache.stop_sweeper()

    app = FastAPI(title="hookguard admin API", lifespan=lifespan)
    app.include_router(create_admin_router(lambda: state["system"]))

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


def build_app() -> FastAPI:
    """Factory for `uvicorn --factory`."""
    configure_logging(os.environ.get("HOOKGUARD_API_LOG_LEVEL", "info"))
    return create_app()
