"""Watchdog-based observation of individual files.

watchdog schedules directories, not files, so each watched file's parent
directory is scheduled once (non-recursively) and events are filtered down to
the registered files. Events arrive on watchdog's observer thread and are
handed to the asyncio loop before any callback runs.
"""

import asyncio
import logging
import os
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from stylewatch.config.models import WatcherEvent
from stylewatch.config.settings import OBSERVER_JOIN_TIMEOUT
from stylewatch.errors import WatcherError

logger = logging.getLogger(__name__)


def normalize_path(path: str | bytes | Path) -> Path:
    """Canonical absolute form used for every watched path."""
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    return Path(path).resolve()


FileSignature = tuple[int, int, int] | None


def file_signature(path: Path) -> FileSignature:
    """(inode, mtime_ns, size) of ``path``, or None if it does not exist."""
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_ino, st.st_mtime_ns, st.st_size)


class PathEventHandler(FileSystemEventHandler):
    """Turns raw watchdog events into WatcherEvents for a FileObserver."""

    def __init__(self, callback: Callable[[WatcherEvent], None]) -> None:
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Forward file content changes, including both ends of a move."""
        if event.is_directory:
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", None)
        if event.event_type == "moved" and dest_path:
            # Editors save atomically by renaming a temp file over the target
            paths.append(dest_path)

        for raw in paths:
            watcher_event = WatcherEvent(event_type=event.event_type, file_path=normalize_path(raw))
            if watcher_event.triggers_compile():
                self.callback(watcher_event)


class FileObserver:
    """Watches a changing set of files and reports changes on the event loop.

    Callbacks:
        on_change(path): a watched file was modified, created, deleted or moved
        on_ready(): initial paths passed to observe() are being watched
        on_error(err): a WatcherError occurred while setting up observation
    """

    def __init__(
        self,
        on_change: Callable[[Path], None],
        on_ready: Callable[[], None] | None = None,
        on_error: Callable[[WatcherError], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Initialize the observer.

        Args:
            on_change: Called with the path of each changed file
            on_ready: Called once after observe() has set up its paths
            on_error: Called with observation failures
            loop: Loop callbacks run on (defaults to the running loop)
        """
        self._loop = loop or asyncio.get_running_loop()
        self._on_change = on_change
        self._on_ready = on_ready
        self._on_error = on_error

        # Files currently watched, read from the watchdog thread
        self._paths: set[Path] = set()
        # Files with a change already queued on the loop
        self._pending: set[Path] = set()
        self._lock = threading.Lock()

        # Stat signature of each file as of its last reported change
        self._signatures: dict[Path, FileSignature] = {}

        # Directory -> watchdog watch; only touched from the loop thread
        self._watches: dict[Path, ObservedWatch] = {}

        self._handler = PathEventHandler(self._relay)
        self._observer = Observer()
        self._started = False
        self._closed = False

    @property
    def paths(self) -> frozenset[Path]:
        """Files currently watched."""
        with self._lock:
            return frozenset(self._paths)

    @property
    def closed(self) -> bool:
        return self._closed

    def observe(self, paths: Iterable[Path]) -> None:
        """Start watching the initial paths and schedule the ready callback."""
        if self._closed:
            return

        # Start first so that each schedule() sets up its watch immediately
        # and reports failures for the directory it was asked about.
        first_start = not self._started
        if first_start:
            self._observer.start()
            self._started = True

        for path in paths:
            self.add(path)

        if first_start:
            logger.debug(f"Observer started for {len(self._watches)} director(ies)")
            self._loop.call_soon(self._emit_ready)

    def add(self, path: Path) -> None:
        """Watch a file. Adding an already watched file is a no-op."""
        path = normalize_path(path)
        directory = path.parent

        with self._lock:
            if self._closed or path in self._paths:
                return
            self._paths.add(path)

        if directory in self._watches:
            logger.debug(f"Watching {path}")
            return

        # Never hold self._lock here: watchdog holds its own lock while
        # dispatching events into _relay.
        try:
            watch = self._observer.schedule(self._handler, str(directory), recursive=False)
        except OSError as e:
            # Forget the path so that a later add() retries
            with self._lock:
                self._paths.discard(path)
            logger.warning(f"Cannot watch {directory}: {e}")
            error = WatcherError(f"Cannot watch {directory}: {e}", filename=path)
            self._loop.call_soon(self._emit_error, error)
            return

        self._watches[directory] = watch
        logger.debug(f"Watching {path} (scheduled {directory})")

    def remove(self, path: Path) -> None:
        """Stop watching a file. Removing an unwatched file is a no-op."""
        path = normalize_path(path)
        directory = path.parent

        with self._lock:
            if self._closed or path not in self._paths:
                return
            self._paths.discard(path)
            self._pending.discard(path)
            still_needed = any(p.parent == directory for p in self._paths)

        self._signatures.pop(path, None)
        logger.debug(f"Unwatched {path}")
        if still_needed:
            return

        watch = self._watches.pop(directory, None)
        if watch is None:
            return
        try:
            self._observer.unschedule(watch)
        except (KeyError, OSError) as e:
            # The directory may already be gone, taking its watch with it
            logger.debug(f"Unschedule of {directory} failed: {e}")

    def close(self) -> None:
        """Stop all observation. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._paths.clear()
            self._pending.clear()
        self._watches.clear()
        self._signatures.clear()

        if self._started:
            self._observer.stop()
            self._observer.join(timeout=OBSERVER_JOIN_TIMEOUT)
        logger.debug("Observer closed")

    def _relay(self, event: WatcherEvent) -> None:
        """Hand a matching event to the loop. Runs on the watchdog thread."""
        path = event.file_path
        with self._lock:
            if self._closed or path not in self._paths:
                return
            if path in self._pending:
                # A queued dispatch will pick this event up
                return
            self._pending.add(path)
        logger.debug(f"{event.event_type}: {path}")
        try:
            self._loop.call_soon_threadsafe(self._dispatch_change, path)
        except RuntimeError:
            # Loop already closed; nothing is listening any more
            logger.debug(f"Dropped change for {path}: event loop closed")

    def _dispatch_change(self, path: Path) -> None:
        # The path may have been removed while the event was in flight
        with self._lock:
            self._pending.discard(path)
            if self._closed or path not in self._paths:
                return

        # One write often yields several events (truncate, then write)
        signature = file_signature(path)
        if path in self._signatures and self._signatures[path] == signature:
            logger.debug(f"Unchanged since last report: {path}")
            return
        self._signatures[path] = signature
        self._on_change(path)

    def _emit_ready(self) -> None:
        if self._closed or self._on_ready is None:
            return
        self._on_ready()

    def _emit_error(self, error: WatcherError) -> None:
        if self._closed or self._on_error is None:
            return
        self._on_error(error)
