"""
RoomWatcher: one session, instrumented, with its events exposed.

    async with RoomWatcher(get_env_config()) as watcher:
        watcher.on("message", print)
        await watcher.watch("some_room")
        async for event in watcher.events():
            ...

Leaving the block with an exception stops the session with the error logged.
events() ends once the session stops, including when the browser goes away.
"""

from typing import Any, AsyncIterator, Callable, Optional, Union

from .constants import RETRY_UNIT_SECS
from .dom_observer import DomObserver
from .instrumentation import Instrumentation
from .relay import EventRelay
from .session import BrowserSession

import logging
logger = logging.getLogger(__name__)


class RoomWatcher:
    def __init__(
        self,
        config: Optional[dict] = None,
        session: Optional[BrowserSession] = None,
        observe_dom: bool = False,
    ):
        config = config or {}
        self.session = session or BrowserSession.from_config(config)
        self.instrumentation = Instrumentation(
            self.session, retry_unit=config.get("retry_unit", RETRY_UNIT_SECS)
        )
        self.relay = EventRelay(self.instrumentation.prefix)
        self.dom_observer: Optional[DomObserver] = None
        if observe_dom:
            self.dom_observer = DomObserver(self.session, self.relay.dispatch)

    async def start(self) -> None:
        await self.session.start()
        try:
            self.relay.attach(self.session)
            self.instrumentation.attach()
            if self.dom_observer is not None:
                await self.dom_observer.attach()
        except BaseException as e:
            await self.stop(error=e)
            raise

    async def stop(self, error: Optional[BaseException] = None) -> None:
        self.instrumentation.detach()
        self.relay.detach()
        if self.dom_observer is not None:
            self.dom_observer.detach()
        await self.session.stop(error=error)
        self.relay.close_channel()

    async def watch(self, room: str, timeout: Optional[float] = None) -> None:
        """Open a room's page and wait for it to load; instrumentation follows."""
        await self.session.navigate(f"{room.strip('/')}/", timeout=timeout)

    def on(self, kind: Union[str, type], callback: Callable[[Any], Any]) -> Callable[[], None]:
        return self.relay.on(kind, callback)

    def events(self) -> AsyncIterator[Any]:
        return self.relay.events()

    async def __aenter__(self) -> "RoomWatcher":
        self.relay.open_channel()
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        fatal = exc if isinstance(exc, Exception) else None
        await self.stop(error=fatal)


__all__ = [
    "RoomWatcher",
]
