"""Host side of the side channel: console entries in, typed events out."""

import asyncio
import inspect
from collections import defaultdict
from typing import Any, AsyncIterator, Callable, Optional, Union

from .events import EVENT_KINDS, PatchMessage
from .protocol import decode_console_event

import logging
logger = logging.getLogger(__name__)

ALL = "*"

_END_OF_STREAM = object()


class EventRelay:
    """
    Decodes intercepted console entries and dispatches one event per message.

    Callbacks registered with on() run in arrival order; async callbacks are
    scheduled as tasks. With a channel opened, every event is also queued for
    the events() iterator, which ends when the attached session stops.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix
        self._callbacks: dict[str, list[Callable]] = defaultdict(list)
        self._channel: Optional[asyncio.Queue] = None
        self._channel_closed = False
        self._tasks: set[asyncio.Task] = set()
        self._detach: list[Callable[[], None]] = []

    def attach(self, session) -> None:
        """Start listening to a session's intercepted console entries."""
        if not self._detach:
            if self._channel_closed:
                self._channel, self._channel_closed = asyncio.Queue(), False
            self._detach = [
                session.on_console(self.handle_console_event),
                session.on_stop(self._on_session_stopped),
            ]

    def detach(self) -> None:
        for remove in self._detach:
            remove()
        self._detach = []

    def _on_session_stopped(self, _error) -> None:
        self.close_channel()

    def on(self, kind: Union[str, type], callback: Callable[[Any], Any]) -> Callable[[], None]:
        """
        Register `callback` for one message kind ("init", "message", ... or the
        class itself), or for everything with "*".
        """
        if isinstance(kind, type):
            kind = kind.kind
        if kind != ALL and kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind {kind!r}")
        callbacks = self._callbacks[kind]
        callbacks.append(callback)

        def remove() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return remove

    def handle_console_event(self, params: dict) -> Optional[PatchMessage]:
        message = decode_console_event(params, self.prefix)
        if message is not None:
            self.dispatch(message)
        return message

    def dispatch(self, event: Any) -> None:
        for callback in self._callbacks.get(event.kind, []) + self._callbacks.get(ALL, []):
            try:
                result = callback(event)
            except Exception:
                logger.exception(f"Callback for {event.kind!r} failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)
        if self._channel is not None and not self._channel_closed:
            self._channel.put_nowait(event)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Event callback task failed", exc_info=task.exception())

    def open_channel(self) -> asyncio.Queue:
        if self._channel is None:
            self._channel = asyncio.Queue()
        return self._channel

    def close_channel(self) -> None:
        """End every events() iterator, including ones started later, until the next attach()."""
        if self._channel is not None and not self._channel_closed:
            self._channel.put_nowait(_END_OF_STREAM)
            self._channel_closed = True

    async def events(self) -> AsyncIterator[Any]:
        """Yield every dispatched event from now on, in order."""
        channel = self.open_channel()
        while True:
            event = await channel.get()
            if event is _END_OF_STREAM:
                # leave the marker for any other iterator on this channel
                channel.put_nowait(_END_OF_STREAM)
                return
            yield event


__all__ = [
    "ALL",
    "EventRelay",
]
