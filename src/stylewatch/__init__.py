"""stylewatch: live recompilation of Sass stylesheets and their imports."""

__version__ = "0.1.0"
__author__ = "stylewatch contributors"
__license__ = "MIT"

from stylewatch.config.models import CompileResult, ServerConfig, WatchConfig
from stylewatch.errors import CompileError, ReadError, StylewatchError, WatcherError
from stylewatch.session import Session, start_session

__all__ = [
    "CompileError",
    "CompileResult",
    "ReadError",
    "ServerConfig",
    "Session",
    "StylewatchError",
    "WatchConfig",
    "WatcherError",
    "start_session",
    "__version__",
]
