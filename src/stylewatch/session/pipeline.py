"""Read, compile and re-watch stages of a session.

A run reads the entry file, compiles it, and reconciles the watch set with
the imports the compile reported. Each run returns exactly one outcome;
emitting events for it is left to the caller.
"""

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from stylewatch.config.models import CompileResult
from stylewatch.errors import CompileError, ReadError, StylewatchError
from stylewatch.session.watch_set import WatchDelta, WatchSet

logger = logging.getLogger(__name__)

Compiler = Callable[[str, dict[str, Any]], Awaitable[CompileResult]]


class Watcher(Protocol):
    """What the pipeline needs from a file watcher."""

    def add(self, path: Path) -> None: ...

    def remove(self, path: Path) -> None: ...


class Stage(enum.Enum):
    """Where a pipeline is in its current run.

    FAILED is kept after a failed run until the next run starts.
    """

    IDLE = "idle"
    READING = "reading"
    COMPILING = "compiling"
    RECONCILING = "reconciling"
    FAILED = "failed"


@dataclass(frozen=True)
class CompileSucceeded:
    result: CompileResult


@dataclass(frozen=True)
class CompileFailed:
    error: StylewatchError


Outcome = CompileSucceeded | CompileFailed


class CompilePipeline:
    """Runs compiles for one entry file and owns its watch set.

    Runs must not overlap; the owning session serializes them.
    """

    def __init__(
        self,
        entry_path: Path,
        options: dict[str, Any],
        watcher: Watcher,
        compiler: Compiler,
    ) -> None:
        self.entry_path = entry_path
        self.options = options
        self.watch_set = WatchSet(entry_path)
        self.stage = Stage.IDLE
        self._watcher = watcher
        self._compiler = compiler

    async def run(self) -> Outcome:
        """Run the pipeline once and return its outcome."""
        try:
            self.stage = Stage.READING
            source = await self._read()
            self.stage = Stage.COMPILING
            result = await self._compile(source)
        except StylewatchError as e:
            self.stage = Stage.FAILED
            logger.debug(f"Compile of {self.entry_path} failed: {e}")
            return CompileFailed(e)

        self.stage = Stage.RECONCILING
        self._reconcile(result.imports)
        self.stage = Stage.IDLE
        return CompileSucceeded(result)

    async def _read(self) -> str:
        try:
            return await asyncio.to_thread(self.entry_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ReadError(f"Cannot read {self.entry_path}: {e}", filename=self.entry_path) from e

    async def _compile(self, source: str) -> CompileResult:
        try:
            return await self._compiler(source, self.options)
        except CompileError:
            raise
        except Exception as e:
            raise CompileError(str(e) or e.__class__.__name__, filename=self.entry_path) from e

    def _reconcile(self, imports: list[Path]) -> WatchDelta:
        """Point the watcher at the entry file plus ``imports``."""
        desired = WatchSet.from_compile(self.entry_path, (Path(p) for p in imports))
        delta = self.watch_set.delta(desired)
        for path in delta.added:
            self._watcher.add(path)
        for path in delta.removed:
            self._watcher.remove(path)
        self.watch_set = desired

        if not delta.is_empty():
            logger.info(
                f"Watching {len(desired)} file(s) for {self.entry_path.name} "
                f"(+{len(delta.added)} -{len(delta.removed)})"
            )
        return delta
