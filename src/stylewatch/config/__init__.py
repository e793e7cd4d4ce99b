"""Configuration models and defaults for stylewatch."""

from stylewatch.config.models import (
    BuildState,
    CompileResult,
    ServerConfig,
    WatchConfig,
    WatcherEvent,
)

__all__ = ["BuildState", "CompileResult", "ServerConfig", "WatchConfig", "WatcherEvent"]
