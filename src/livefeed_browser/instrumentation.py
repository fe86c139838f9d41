"""
Injection of the page instrumentation.

After every page load the patch script is evaluated once. It registers the
in-page routines under a per-instrumentation namespace, logs the "init"
snapshot and returns the room identifier. When there is a room, socket
hooking and player disposal are then retried from here with linear backoff
until the page objects exist; a page without a room is left alone.
"""

import asyncio
import json
from typing import Callable, Awaitable, Optional

from .constants import MAX_HOOK_ATTEMPTS, RETRY_UNIT_SECS
from .protocol import make_prefix
from .session import EVALUATION_FAILED, BrowserSession
from .templating import ScriptTemplate, load_template
from .utils.retry import RetryState, retry_until

import logging
logger = logging.getLogger(__name__)


class Instrumentation:
    """
    Pushes the patch script into each loaded page of a session.

    Args:
        session: The session to instrument (borrowed, not owned)
        prefix: Side-channel prefix; a fresh one is generated by default
        retry_unit: Seconds per backoff unit
        max_attempts: Attempts before hooking or disposal is abandoned
        template: Patch script template; the bundled patch.js by default
        sleep: Awaitable sleep used between attempts
    """

    def __init__(
        self,
        session: BrowserSession,
        prefix: Optional[str] = None,
        retry_unit: float = RETRY_UNIT_SECS,
        max_attempts: int = MAX_HOOK_ATTEMPTS,
        template: Optional[ScriptTemplate] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.prefix = prefix or make_prefix()
        self.namespace = "__livefeed_" + "".join(c for c in self.prefix if c.isalnum())
        self.retry_unit = retry_unit
        self.max_attempts = max_attempts
        self.template = template or load_template("patch.js")
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []
        self._detach: Optional[Callable[[], None]] = None
        self.room: Optional[str] = None

    def attach(self) -> None:
        """Inject after every page load of the session from now on."""
        if self._detach is None:
            self._detach = self.session.on_page_load(self.inject)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        self.cancel()

    def cancel(self) -> None:
        """Abandon retries still running for the previous page."""
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    def render(self) -> str:
        return self.template.render({"PATCH_PREFIX": self.prefix, "PATCH_NAMESPACE": self.namespace})

    async def inject(self, _event: Optional[dict] = None) -> Optional[str]:
        """
        Evaluate the patch in the current page and schedule hooking.

        Returns:
            The room identifier, or None when the page is not a live room
            or the patch could not be evaluated
        """
        self.cancel()
        self.room = None

        room = await self.session.evaluate(self.render())
        if room is EVALUATION_FAILED:
            logger.error("Patch script failed to evaluate; page is not instrumented")
            return None
        if not room:
            logger.info("No room on this page; skipping socket hook and player disposal")
            return None

        self.room = str(room)
        logger.debug(f"Instrumenting room {self.room}")
        self._tasks = [
            asyncio.ensure_future(self.install_hooks()),
            asyncio.ensure_future(self.dispose_player()),
        ]
        return self.room

    async def wait(self) -> list:
        """Wait for the current page's hooking and disposal to settle."""
        if not self._tasks:
            return []
        return await asyncio.gather(*self._tasks, return_exceptions=True)

    def _call(self, routine: str) -> str:
        ns = json.dumps(self.namespace)
        return f"(window[{ns}] ? window[{ns}].{routine}() : false)"

    async def _call_routine(self, routine: str) -> bool:
        return await self.session.evaluate(self._call(routine)) is True

    async def install_hooks(self) -> RetryState:
        """Wrap the live socket's callbacks, retrying until the socket exists."""
        return await retry_until(
            lambda: self._call_routine("hook"),
            name="websocket hook",
            max_attempts=self.max_attempts,
            unit=self.retry_unit,
            sleep=self._sleep,
        )

    async def dispose_player(self) -> RetryState:
        """Shut the media player down, retrying until the player exists."""
        return await retry_until(
            lambda: self._call_routine("disposePlayer"),
            name="player disposal",
            max_attempts=self.max_attempts,
            unit=self.retry_unit,
            sleep=self._sleep,
        )


__all__ = [
    "Instrumentation",
]
