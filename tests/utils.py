"""Shared test utilities for stylewatch tests."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

from stylewatch.config.models import CompileResult
from stylewatch.errors import CompileError, WatcherError
from stylewatch.session import Session

IMPORT_RE = re.compile(r'@import\s+"([^"]+)";')


class FakeObserver:
    """In-memory stand-in for FileObserver.

    Records add/remove calls and lets tests fire changes by hand with touch().
    """

    def __init__(self, on_change, on_ready=None, on_error=None, loop=None) -> None:
        self.loop = loop or asyncio.get_running_loop()
        self.on_change = on_change
        self.on_ready = on_ready
        self.on_error = on_error
        self.paths: set[Path] = set()
        self.added: list[Path] = []
        self.removed: list[Path] = []
        self.observed: list[Path] = []
        self.ready_fired = False
        self.closed = False

    def observe(self, paths) -> None:
        for path in paths:
            self.observed.append(path)
            self.add(path)
        self.loop.call_soon(self._ready)

    def add(self, path: Path) -> None:
        if self.closed or path in self.paths:
            return
        self.paths.add(path)
        self.added.append(path)

    def remove(self, path: Path) -> None:
        if self.closed or path not in self.paths:
            return
        self.paths.discard(path)
        self.removed.append(path)

    def close(self) -> None:
        self.closed = True
        self.paths.clear()

    def touch(self, path: Path, force: bool = False) -> bool:
        """Report a change to ``path`` the way the real watcher would.

        With ``force`` the event is delivered even if the path is not
        watched or the observer is closed, imitating a late event.
        """
        if not force and (self.closed or path not in self.paths):
            return False
        self.on_change(path)
        return True

    def fail(self, message: str = "observation failed") -> WatcherError:
        error = WatcherError(message)
        self.on_error(error)
        return error

    def _ready(self) -> None:
        if self.closed:
            return
        self.ready_fired = True
        self.on_ready()


class ObserverFactory:
    """observer_factory that remembers the observers it builds."""

    def __init__(self) -> None:
        self.instances: list[FakeObserver] = []

    def __call__(self, **kwargs: Any) -> FakeObserver:
        observer = FakeObserver(**kwargs)
        self.instances.append(observer)
        return observer

    @property
    def last(self) -> FakeObserver:
        return self.instances[-1]


def _expand(source: str, base: Path, imports: list[Path]) -> str:
    def replace(match: re.Match[str]) -> str:
        path = (base / match.group(1)).resolve()
        imports.append(path)
        return _expand(path.read_text(encoding="utf-8"), path.parent, imports)

    return IMPORT_RE.sub(replace, source)


class FakeCompiler:
    """Tiny compiler: inlines ``@import "file";`` and checks brace balance
    of the result.

    Set ``gate`` to an asyncio.Event to hold compiles until it is set.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    async def __call__(self, source: str, options: dict[str, Any]) -> CompileResult:
        self.calls.append((source, dict(options)))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            imports: list[Path] = []
            css = _expand(source, Path(options["filename"]).parent, imports)
            # Checked after inlining so that broken imports fail too
            if css.count("{") != css.count("}"):
                raise CompileError("Unbalanced braces", filename=options["filename"], line=1)
            return CompileResult(css=css, imports=imports)
        finally:
            self.active -= 1


class EventRecorder:
    """Collects every event a session emits, in order."""

    def __init__(self, session: Session) -> None:
        self.events: list[tuple[str, Any]] = []
        self._queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        for name in ("change", "compile", "error"):
            session.on(name, self._recorder(name))

    def _recorder(self, name: str):
        def record(payload: Any) -> None:
            self.events.append((name, payload))
            self._queue.put_nowait((name, payload))

        return record

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[Any]:
        return [payload for event, payload in self.events if event == name]

    async def next(self, timeout: float = 5.0) -> tuple[str, Any]:
        return await asyncio.wait_for(self._queue.get(), timeout)

    async def wait_for(self, name: str, timeout: float = 5.0) -> Any:
        """Wait for the next ``name`` event and return its payload."""

        async def _wait() -> Any:
            while True:
                event, payload = await self._queue.get()
                if event == name:
                    return payload

        return await asyncio.wait_for(_wait(), timeout)

    async def wait_for_css(self, pattern: str, timeout: float = 10.0) -> CompileResult:
        """Wait for a compile whose CSS matches ``pattern``."""
        regex = re.compile(pattern)

        async def _wait() -> CompileResult:
            while True:
                event, payload = await self._queue.get()
                if event == "compile" and regex.search(payload.css):
                    return payload

        return await asyncio.wait_for(_wait(), timeout)

    def clear(self) -> None:
        self.events.clear()
        while not self._queue.empty():
            self._queue.get_nowait()


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(interval)

    await asyncio.wait_for(_poll(), timeout)
