"""Tests for the watchdog-backed FileObserver.

These use the real file system, so they wait for events with timeouts and
only assert what is stable across platforms.
"""

from __future__ import annotations

import asyncio
import os
import sys

import pytest

from stylewatch.config.models import WatcherEvent
from stylewatch.errors import WatcherError
from stylewatch.watcher.observer import FileObserver, PathEventHandler, normalize_path

SETTLE = 0.3


class ObserverHarness:
    """FileObserver plus queues for everything it reports."""

    def __init__(self) -> None:
        self.changes: asyncio.Queue = asyncio.Queue()
        self.errors: list[WatcherError] = []
        self.ready_count = 0
        self.ready = asyncio.Event()
        self.observer = FileObserver(
            on_change=self.changes.put_nowait,
            on_ready=self._on_ready,
            on_error=self.errors.append,
        )

    def _on_ready(self) -> None:
        self.ready_count += 1
        self.ready.set()

    async def observe(self, *paths) -> None:
        self.observer.observe(paths)
        await asyncio.wait_for(self.ready.wait(), 5.0)

    async def next_change(self, timeout: float = 5.0):
        return await asyncio.wait_for(self.changes.get(), timeout)

    def drain(self) -> list:
        seen = []
        while not self.changes.empty():
            seen.append(self.changes.get_nowait())
        return seen


@pytest.fixture
async def harness():
    h = ObserverHarness()
    yield h
    h.observer.close()


# =============================================================================
# Event translation
# =============================================================================


class FakeEvent:
    def __init__(self, event_type, src_path, dest_path="", is_directory=False):
        self.event_type = event_type
        self.src_path = src_path
        self.dest_path = dest_path
        self.is_directory = is_directory


class TestPathEventHandler:
    """Tests for raw event filtering."""

    def test_modified_file_is_forwarded(self, tmp_path):
        received: list[WatcherEvent] = []
        handler = PathEventHandler(received.append)

        handler.on_any_event(FakeEvent("modified", str(tmp_path / "a.scss")))

        assert [e.file_path for e in received] == [normalize_path(tmp_path / "a.scss")]

    def test_directories_are_ignored(self, tmp_path):
        received: list[WatcherEvent] = []
        handler = PathEventHandler(received.append)

        handler.on_any_event(FakeEvent("modified", str(tmp_path), is_directory=True))

        assert received == []

    def test_move_reports_both_ends(self, tmp_path):
        """Atomic saves rename a temp file over the target."""
        received: list[WatcherEvent] = []
        handler = PathEventHandler(received.append)

        handler.on_any_event(FakeEvent("moved", str(tmp_path / "a.tmp"), str(tmp_path / "a.scss")))

        assert [e.file_path.name for e in received] == ["a.tmp", "a.scss"]

    def test_access_events_are_dropped(self, tmp_path):
        received: list[WatcherEvent] = []
        handler = PathEventHandler(received.append)

        handler.on_any_event(FakeEvent("opened", str(tmp_path / "a.scss")))
        handler.on_any_event(FakeEvent("closed_no_write", str(tmp_path / "a.scss")))

        assert received == []


# =============================================================================
# FileObserver
# =============================================================================


class TestFileObserver:
    """Tests for FileObserver against the real file system."""

    @pytest.mark.asyncio
    async def test_ready_fires_once(self, harness, main_file):
        await harness.observe(main_file)
        harness.observer.observe([main_file])
        await asyncio.sleep(SETTLE)

        assert harness.ready_count == 1

    @pytest.mark.asyncio
    async def test_no_event_without_change(self, harness, main_file):
        """Starting to watch a file does not report it as changed."""
        await harness.observe(main_file)
        await asyncio.sleep(SETTLE)

        assert harness.drain() == []

    @pytest.mark.asyncio
    async def test_change_is_reported(self, harness, main_file):
        await harness.observe(main_file)

        main_file.write_text("#a { color: #abc }")

        assert await harness.next_change() == main_file

    @pytest.mark.asyncio
    async def test_single_write_reports_once(self, harness, main_file):
        """Truncate and write events of one save collapse into one change."""
        await harness.observe(main_file)

        main_file.write_text("#a { color: #abcdef }")
        first = await harness.next_change()
        await asyncio.sleep(SETTLE)

        assert first == main_file
        assert harness.drain() == []

    @pytest.mark.asyncio
    async def test_duplicate_events_collapse(self, main_file):
        """Queued and unchanged-on-disk events are not reported again."""
        changes = []
        observer = FileObserver(on_change=changes.append)
        observer._paths.add(main_file)
        event = WatcherEvent("modified", main_file)

        observer._relay(event)
        observer._relay(event)
        await asyncio.sleep(0.05)
        assert changes == [main_file]

        observer._relay(event)
        await asyncio.sleep(0.05)
        assert changes == [main_file]

        main_file.write_text("#a { color: #abcdef }")
        observer._relay(event)
        await asyncio.sleep(0.05)
        assert changes == [main_file, main_file]
        observer.close()

    @pytest.mark.asyncio
    async def test_successive_writes_each_report(self, harness, main_file):
        await harness.observe(main_file)

        main_file.write_text("#a { color: #abcdef }")
        await harness.next_change()
        await asyncio.sleep(SETTLE)
        main_file.write_text("#a { color: #fff }")

        assert await harness.next_change() == main_file

    @pytest.mark.asyncio
    async def test_atomic_save_is_reported(self, harness, main_file):
        """Replacing the file by rename counts as a change."""
        await harness.observe(main_file)

        temp = main_file.with_name("main.scss.tmp")
        temp.write_text("#a { color: #abc }")
        os.replace(temp, main_file)

        assert await harness.next_change() == main_file

    @pytest.mark.asyncio
    async def test_sibling_files_are_filtered(self, harness, main_file, tmp_path):
        """Only registered files are reported, not their whole directory."""
        await harness.observe(main_file)

        (tmp_path / "unrelated.scss").write_text("#u { color: #000 }")
        await asyncio.sleep(SETTLE)
        main_file.write_text("#a { color: #abc }")
        await harness.next_change()
        await asyncio.sleep(SETTLE)

        assert set(harness.drain()) <= {main_file}

    @pytest.mark.asyncio
    async def test_add_and_remove_are_idempotent(self, harness, main_file, dep_file):
        await harness.observe(main_file)

        harness.observer.add(dep_file)
        harness.observer.add(dep_file)
        assert harness.observer.paths == {main_file, dep_file}

        harness.observer.remove(dep_file)
        harness.observer.remove(dep_file)
        assert harness.observer.paths == {main_file}

    @pytest.mark.asyncio
    async def test_added_file_is_reported(self, harness, main_file, tmp_path):
        """Files added later in another directory are watched too."""
        await harness.observe(main_file)
        sub = tmp_path / "partials"
        sub.mkdir()
        partial = (sub / "_colors.scss").resolve()
        partial.write_text("$c: red;")

        harness.observer.add(partial)
        await asyncio.sleep(SETTLE)
        harness.drain()
        partial.write_text("$c: blue;")

        assert await harness.next_change() == partial

    @pytest.mark.asyncio
    async def test_removed_file_is_silent(self, harness, main_file, dep_file):
        """A removed path no longer reports, while its sibling still does."""
        await harness.observe(main_file, dep_file)

        harness.observer.remove(dep_file)
        dep_file.write_text("#b { color: #000 }")
        await asyncio.sleep(SETTLE)
        main_file.write_text("#a { color: #abc }")
        await harness.next_change()
        await asyncio.sleep(SETTLE)

        assert dep_file not in harness.drain()

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_silences(self, harness, main_file):
        await harness.observe(main_file)

        harness.observer.close()
        harness.observer.close()
        main_file.write_text("#a { color: #abc }")
        await asyncio.sleep(SETTLE)

        assert harness.observer.closed
        assert harness.observer.paths == frozenset()
        assert harness.drain() == []

    @pytest.mark.asyncio
    async def test_close_before_observe(self):
        observer = FileObserver(on_change=lambda path: None)

        observer.close()
        observer.observe([])

        assert observer.closed

    @pytest.mark.asyncio
    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify reports missing directories eagerly")
    async def test_missing_directory_reports_error(self, harness, main_file, tmp_path):
        await harness.observe(main_file)

        harness.observer.add(tmp_path / "missing" / "ghost.scss")
        await asyncio.sleep(0)

        assert len(harness.errors) == 1
        assert isinstance(harness.errors[0], WatcherError)
        assert "missing" in harness.errors[0].message

    @pytest.mark.asyncio
    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify reports missing directories eagerly")
    async def test_failed_add_can_be_retried(self, harness, main_file, tmp_path):
        """A path whose directory could not be watched is not kept as watched."""
        await harness.observe(main_file)
        ghost = (tmp_path / "missing" / "ghost.scss").resolve()

        harness.observer.add(ghost)
        assert ghost not in harness.observer.paths

        ghost.parent.mkdir()
        ghost.write_text("#g { color: #000 }")
        harness.observer.add(ghost)
        await asyncio.sleep(0)

        assert ghost in harness.observer.paths
        assert len(harness.errors) == 1

        ghost.write_text("#g { color: #fff }")
        assert await harness.next_change() == ghost
