"""FastAPI server components for stylewatch."""

from .app import create_app
from .websocket import ConnectionManager, websocket_endpoint

__all__ = ["create_app", "ConnectionManager", "websocket_endpoint"]
