"""File system watching components for stylewatch."""

from .observer import FileObserver, PathEventHandler

__all__ = ["FileObserver", "PathEventHandler"]
