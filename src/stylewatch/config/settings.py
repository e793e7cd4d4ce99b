"""Application settings and configuration."""

import os
from pathlib import Path

from stylewatch.config.models import VALID_OUTPUT_STYLES, ServerConfig

# Default settings
DEFAULT_HOST = os.getenv("STYLEWATCH_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("STYLEWATCH_PORT", "8000"))
DEFAULT_OUTPUT_STYLE = os.getenv("STYLEWATCH_OUTPUT_STYLE", "expanded")
DEFAULT_LOG_LEVEL = os.getenv("STYLEWATCH_LOG_LEVEL", "INFO")


# Server defaults
def get_default_server_config(entry_path: Path) -> ServerConfig:
    """Get default server configuration."""
    return ServerConfig(
        entry_path=entry_path,
        host=DEFAULT_HOST,
        port=DEFAULT_PORT,
        output_style=DEFAULT_OUTPUT_STYLE,
        open_browser=False,
        log_level=DEFAULT_LOG_LEVEL,
    )


# Seconds to wait for the watchdog observer thread on close
OBSERVER_JOIN_TIMEOUT = 2.0


__all__ = [
    "VALID_OUTPUT_STYLES",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_OUTPUT_STYLE",
    "DEFAULT_LOG_LEVEL",
    "get_default_server_config",
    "OBSERVER_JOIN_TIMEOUT",
]
