"""Event surface exposed to session subscribers."""

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from stylewatch.session.pipeline import CompileFailed, CompileSucceeded, Outcome

logger = logging.getLogger(__name__)

EVENTS = ("change", "compile", "error")

Handler = Callable[[Any], Any]


class Notifier:
    """Dispatches ``change``, ``compile`` and ``error`` events to handlers.

    Handlers run on the event loop in subscription order. A handler that
    returns an awaitable has it scheduled as a task. Once closed, the
    notifier drops every event.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handlers: dict[str, list[Handler]] = {event: [] for event in EVENTS}
        self._once: set[tuple[str, Handler]] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on(self, event: str, handler: Handler) -> Handler:
        """Subscribe ``handler`` to ``event``. Returns the handler."""
        self._check_event(event)
        if not self._closed:
            self._handlers[event].append(handler)
        return handler

    def once(self, event: str, handler: Handler) -> Handler:
        """Subscribe ``handler`` for the next ``event`` only."""
        self.on(event, handler)
        self._once.add((event, handler))
        return handler

    def off(self, event: str, handler: Handler) -> None:
        """Unsubscribe ``handler``. Unknown handlers are ignored."""
        self._check_event(event)
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            pass
        self._once.discard((event, handler))

    def listener_count(self, event: str) -> int:
        self._check_event(event)
        return len(self._handlers[event])

    def emit(self, event: str, payload: Any) -> None:
        """Call every handler subscribed to ``event`` with ``payload``."""
        self._check_event(event)
        if self._closed:
            return

        handlers = list(self._handlers[event])
        if event == "error" and not handlers:
            logger.warning(f"Unhandled session error: {payload}")
            return

        for handler in handlers:
            if (event, handler) in self._once:
                self.off(event, handler)
            try:
                result = handler(payload)
            except Exception:
                logger.exception(f"Error in {event} handler {handler!r}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def dispatch(self, outcome: Outcome) -> None:
        """Emit the terminal event for a pipeline outcome."""
        if isinstance(outcome, CompileSucceeded):
            self.emit("compile", outcome.result)
        elif isinstance(outcome, CompileFailed):
            self.emit("error", outcome.error)
        else:
            raise TypeError(f"Unknown pipeline outcome: {outcome!r}")

    def close(self) -> None:
        """Drop all handlers; later events are discarded."""
        if self._closed:
            return
        self._closed = True
        for handlers in self._handlers.values():
            handlers.clear()
        self._once.clear()

    def _schedule(self, event: str, awaitable: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._await_handler(event, awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _await_handler(self, event: str, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception(f"Error in async {event} handler")

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")
