from hookguard.api.app import build_app, create_app
from hookguard.api.endpoints import create_admin_router

__all__ = ["build_app", "create_app", "create_admin_router"]
