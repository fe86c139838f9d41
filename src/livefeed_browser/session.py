"""
Lifecycle of one browser + DevTools connection pair.

A BrowserSession owns exactly two resources, the Chrome process handle and
the DevTools connection. They are acquired together by start() and released
together by stop(); either both are set or neither is.

Every other component (instrumentation, relay, DOM observer) only borrows
the session through its listener registries and never holds the connection
itself.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Sequence, Union
from urllib.parse import urljoin

from .browser.chrome_launcher import ChromeLauncher
from .browser.connection import DevToolsConnection
from .constants import CHROME_FLAGS, DEFAULT_DEBUG_PORT, SERVER_URL
from .decorators import ensure_session_started
from .errors import DevToolsConnectionError, DevToolsError, SessionNotStartedError
from .templating import ScriptTemplate, js_literal, load_template

import logging
logger = logging.getLogger(__name__)

Listener = Callable[[dict], Any]

REQUIRED_DOMAINS = ("Page", "Runtime", "Network")


class _EvaluationFailed:
    """Sentinel returned by evaluate() when the page raised."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EVALUATION_FAILED"


EVALUATION_FAILED = _EvaluationFailed()


class BrowserSession:
    """
    One debuggable browser and the connection that drives it.

    Args:
        base_url: Address of the watched application; navigate() joins paths onto it
        port: Preferred debug port (0 lets the launcher choose)
        launcher: Object with launch(port, flags) returning a process handle
            exposing `port` and `terminate()`
        connect: Coroutine function opening a DevToolsConnection for a port
        flags: Chrome flags handed to the launcher
    """

    def __init__(
        self,
        base_url: str = SERVER_URL,
        port: int = DEFAULT_DEBUG_PORT,
        launcher=None,
        connect: Optional[Callable[[int], Awaitable[DevToolsConnection]]] = None,
        flags: Optional[Sequence[str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.port = port
        self.flags = list(CHROME_FLAGS if flags is None else flags)
        self.chrome = None
        self.protocol: Optional[DevToolsConnection] = None

        self._launcher = launcher or ChromeLauncher()
        self._connect = connect or DevToolsConnection.open
        self._load_waiters: list[asyncio.Future] = []
        self._page_load_listeners: list[Listener] = []
        self._console_listeners: list[Listener] = []
        self._stop_listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._stopping: Optional[asyncio.Task] = None
        self._fetch_template: Optional[ScriptTemplate] = None

    @classmethod
    def from_config(cls, config: dict) -> "BrowserSession":
        return cls(
            base_url=config.get("base_url", SERVER_URL),
            port=config.get("port", DEFAULT_DEBUG_PORT),
            launcher=ChromeLauncher(config),
        )

    @property
    def started(self) -> bool:
        return self.protocol is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Launch Chrome, connect, enable domains and register the permanent listeners.

        Raises:
            DevToolsConnectionError: If the debugging connection cannot be opened
        """
        if self.started:
            return

        chrome = await asyncio.to_thread(self._launcher.launch, self.port, self.flags)
        protocol = None
        try:
            logger.debug("starting remote debugging...")
            protocol = await self._connect(chrome.port)

            logger.debug("enabling debugging domains...")
            await asyncio.gather(*(protocol.send(f"{domain}.enable") for domain in REQUIRED_DOMAINS))
        except BaseException as e:
            if protocol is not None:
                await protocol.close()
            chrome.terminate()
            if isinstance(e, DevToolsError) or not isinstance(e, Exception):
                raise
            raise DevToolsConnectionError(f"Failed to open debugging connection: {e}", method="start") from e

        logger.debug("adding event listeners...")
        protocol.on("Page.loadEventFired", self._on_page_load)
        protocol.on("Runtime.consoleAPICalled", self._on_console_api_called)
        protocol.on_close(self._on_connection_lost)
        self.chrome, self.protocol = chrome, protocol

    async def stop(self, error: Optional[BaseException] = None) -> None:
        """
        Close the connection and terminate Chrome. Safe to call at any time,
        any number of times. Also scheduled by the session itself when the
        browser drops the connection; stop listeners run once per teardown.

        Args:
            error: The fatal condition that triggered the stop, logged before teardown
        """
        if error is not None:
            logger.error(f"Stopping session after fatal error: {error!r}", exc_info=error)

        protocol, self.protocol = self.protocol, None
        chrome, self.chrome = self.chrome, None
        try:
            if protocol is not None:
                logger.debug("stopping remote debugging...")
                await protocol.close()
        finally:
            if chrome is not None:
                logger.debug("stopping chrome...")
                await asyncio.to_thread(chrome.terminate)

            waiters, self._load_waiters = self._load_waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(SessionNotStartedError("Session stopped while waiting for a page load."))
            for task in list(self._tasks):
                task.cancel()

            if protocol is not None or chrome is not None:
                self._notify(self._stop_listeners, error)

    def _on_connection_lost(self, reason: str) -> None:
        if not self.started or (self._stopping is not None and not self._stopping.done()):
            return
        error = DevToolsConnectionError(reason, method="listen")
        self._stopping = asyncio.ensure_future(self.stop(error=error))

    # ------------------------------------------------------------------
    # Listener registries
    # ------------------------------------------------------------------

    def on_page_load(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every completed page load."""
        return self._register(self._page_load_listeners, listener)

    def on_console(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with every intercepted console entry, in page order."""
        return self._register(self._console_listeners, listener)

    def on_stop(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(error)` after the session has been torn down."""
        return self._register(self._stop_listeners, listener)

    @ensure_session_started
    def on_event(self, method: str, listener: Listener) -> Callable[[], None]:
        """Subscribe to any other protocol event for the lifetime of the connection."""
        return self.protocol.on(method, listener)

    @staticmethod
    def _register(listeners: list, listener: Listener) -> Callable[[], None]:
        listeners.append(listener)

        def remove() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return remove

    def _notify(self, listeners: list, params: dict) -> None:
        for listener in list(listeners):
            try:
                result = listener(params)
            except Exception:
                logger.exception("Session listener failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Session listener task failed", exc_info=task.exception())

    def _on_page_load(self, params: dict) -> None:
        logger.debug("onPageLoad")
        waiters, self._load_waiters = self._load_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(params)
        self._notify(self._page_load_listeners, params)

    def _on_console_api_called(self, params: dict) -> None:
        self._notify(self._console_listeners, params)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @ensure_session_started
    async def send(self, method: str, params: Optional[dict] = None) -> dict:
        """Issue a raw protocol command."""
        return await self.protocol.send(method, params)

    @ensure_session_started
    async def wait_for(self, action: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        """
        Run `action`, then wait for the next page load that follows it.

        Each call owns a single-use load future created before `action` runs,
        so a load that completed earlier never satisfies it.

        Returns:
            Whatever `action` returned (awaited if it was awaitable)
        """
        loaded = asyncio.get_running_loop().create_future()
        self._load_waiters.append(loaded)
        try:
            result = action()
            if inspect.isawaitable(result):
                result = await result
            await asyncio.wait_for(loaded, timeout)
            return result
        finally:
            if loaded in self._load_waiters:
                self._load_waiters.remove(loaded)

    def resolve_url(self, path: str) -> str:
        return urljoin(self.base_url + "/", path.lstrip("/"))

    @ensure_session_started
    async def navigate(self, path: str, timeout: Optional[float] = None) -> dict:
        """Navigate to `path` under the base address and wait until it has loaded."""
        url = self.resolve_url(path)
        logger.debug(f"navigating to {url}...")
        return await self.wait_for(lambda: self.protocol.send("Page.navigate", {"url": url}), timeout=timeout)

    @ensure_session_started(default=EVALUATION_FAILED)
    async def evaluate(self, script: str, await_promise: bool = False, return_by_value: bool = True) -> Any:
        """
        Evaluate `script` in the current page.

        Returns:
            The value (or the remote object when return_by_value is False),
            None when the page produced no result, EVALUATION_FAILED when the
            page raised or the command failed. Never raises for page errors.
        """
        try:
            response = await self.protocol.send("Runtime.evaluate", {
                "expression": script,
                "awaitPromise": await_promise,
                "returnByValue": return_by_value,
            })
        except DevToolsError as e:
            logger.error(f"Runtime.evaluate failed: {e}")
            return EVALUATION_FAILED

        details = response.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            logger.error(
                f"Script raised {exception.get('description') or details.get('text')!r} "
                f"at line {details.get('lineNumber')}, column {details.get('columnNumber')}"
            )
            logger.debug(f"Failing script: {script[:500]}")
            return EVALUATION_FAILED

        result = response.get("result")
        if not result or result.get("type") == "undefined":
            return None
        if not return_by_value:
            return result
        return result.get("value")

    async def evaluate_template(
        self,
        template: Union[str, ScriptTemplate],
        params: Optional[dict] = None,
        await_promise: bool = False,
        return_by_value: bool = True,
    ) -> Any:
        """Render a template (a bundled script name or a ScriptTemplate) and evaluate it."""
        if isinstance(template, str):
            template = load_template(template)
        script = template.render(params or {})
        return await self.evaluate(script, await_promise=await_promise, return_by_value=return_by_value)

    async def fetch_text(self, url: str, include_credentials: bool = False) -> Optional[str]:
        """
        Request `url` from inside the page with a cache-busting parameter.

        Returns:
            The response text, or None if the request failed
        """
        if self._fetch_template is None:
            self._fetch_template = load_template("fetch.js")
        result = await self.evaluate_template(
            self._fetch_template,
            {"URL": js_literal(url), "INCLUDE_CREDENTIALS": js_literal(bool(include_credentials))},
            await_promise=True,
        )
        if result is EVALUATION_FAILED or not isinstance(result, str):
            return None
        return result

    @ensure_session_started
    async def get_cookies(self) -> list:
        """Cookies the browser would send to the base address."""
        result = await self.protocol.send("Network.getCookies", {"urls": [self.base_url + "/"]})
        return result.get("cookies") or []

    async def has_session_cookie(self, name: str = "sessionid") -> bool:
        """
        Whether the browser holds a session for the application.

        TODO: compare cookie names against `name` once the intended session
        cookie is confirmed; this currently reports True whenever any cookie
        for the base address exists.
        """
        cookies = await self.get_cookies()
        return next(iter(cookies), None) is not None


__all__ = [
    "EVALUATION_FAILED",
    "REQUIRED_DOMAINS",
    "BrowserSession",
]
