"""Watch sessions: live recompilation of one entry stylesheet."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from stylewatch.compiler.engine import compile_source
from stylewatch.errors import WatcherError
from stylewatch.session.notifier import Handler, Notifier
from stylewatch.session.pipeline import CompilePipeline, Compiler, Stage
from stylewatch.watcher.observer import FileObserver

logger = logging.getLogger(__name__)

ObserverFactory = Callable[..., Any]


class Session:
    """Recompiles an entry file whenever it or one of its imports changes.

    Events:
        change(path): a watched file changed; a run follows
        compile(result): a run succeeded, with its CompileResult
        error(err): a run failed, or the watcher reported a failure

    The first compile runs once the watcher reports that the entry file is
    being observed, so no edit made during setup goes unnoticed. Runs are
    serialized: a change arriving mid-run gets a run of its own afterwards.

    Example:
        session = start_session(Path("style.scss"))
        session.on("compile", lambda result: print(result.css))
        ...
        session.close()
    """

    def __init__(
        self,
        entry_path: str | Path,
        options: dict[str, Any] | None = None,
        *,
        compiler: Compiler | None = None,
        observer_factory: ObserverFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Create a session and start watching the entry file.

        Args:
            entry_path: Stylesheet to compile
            options: Passed verbatim to the compiler; ``filename`` defaults
                to the entry path and drives import resolution
            compiler: Async compile function (defaults to libsass)
            observer_factory: Builds the file watcher (defaults to FileObserver)
            loop: Event loop to run on (defaults to the running loop)
        """
        self._loop = loop or asyncio.get_running_loop()
        self.entry_path = Path(entry_path).resolve()
        self.options: dict[str, Any] = {"filename": str(self.entry_path), **(options or {})}

        self.notifier = Notifier(loop=self._loop)
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        factory = observer_factory or FileObserver
        self._watcher = factory(
            on_change=self._handle_change,
            on_ready=self._handle_ready,
            on_error=self._handle_watcher_error,
            loop=self._loop,
        )
        self.pipeline = CompilePipeline(
            self.entry_path,
            self.options,
            self._watcher,
            compiler or compile_source,
        )
        self._watcher.observe(self.pipeline.watch_set.paths)
        logger.info(f"Watching {self.entry_path}")

    @property
    def watched(self) -> frozenset[Path]:
        """Files the session currently keeps under observation."""
        return self.pipeline.watch_set.paths

    @property
    def stage(self) -> Stage:
        return self.pipeline.stage

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, handler: Handler) -> Handler:
        return self.notifier.on(event, handler)

    def once(self, event: str, handler: Handler) -> Handler:
        return self.notifier.once(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self.notifier.off(event, handler)

    def close(self) -> None:
        """Stop watching and silence all events. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        self._watcher.close()
        self.notifier.close()
        logger.info(f"Stopped watching {self.entry_path}")

    async def wait_idle(self) -> None:
        """Wait until every scheduled run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *args: object) -> None:
        self.close()
        await self.wait_idle()

    def _handle_ready(self) -> None:
        if self._closed:
            return
        logger.debug(f"Watcher ready for {self.entry_path}")
        self._schedule_run()

    def _handle_change(self, path: Path) -> None:
        if self._closed:
            return
        logger.info(f"Changed: {path}")
        self.notifier.emit("change", path)
        self._schedule_run()

    def _handle_watcher_error(self, error: WatcherError) -> None:
        if self._closed:
            return
        logger.error(f"Watcher error: {error}")
        self.notifier.emit("error", error)

    def _schedule_run(self) -> None:
        task = self._loop.create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        # asyncio.Lock wakes waiters in FIFO order, so runs finish in trigger order
        async with self._lock:
            if self._closed:
                return
            outcome = await self.pipeline.run()
            self.notifier.dispatch(outcome)


def start_session(
    entry_path: str | Path,
    options: dict[str, Any] | None = None,
    *,
    compiler: Compiler | None = None,
    observer_factory: ObserverFactory | None = None,
) -> Session:
    """Start a watch session on the running event loop."""
    return Session(entry_path, options, compiler=compiler, observer_factory=observer_factory)
