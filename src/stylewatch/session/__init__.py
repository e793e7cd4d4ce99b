"""Watch sessions and their compile pipeline."""

from stylewatch.session.notifier import Notifier
from stylewatch.session.pipeline import CompileFailed, CompilePipeline, CompileSucceeded, Stage
from stylewatch.session.session import Session, start_session
from stylewatch.session.watch_set import WatchDelta, WatchSet

__all__ = [
    "CompileFailed",
    "CompilePipeline",
    "CompileSucceeded",
    "Notifier",
    "Session",
    "Stage",
    "WatchDelta",
    "WatchSet",
    "start_session",
]
