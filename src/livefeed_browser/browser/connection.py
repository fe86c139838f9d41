"""
DevTools protocol connection over a page target's websocket.

Commands are request/response pairs correlated by id. Everything else the
browser sends is an event, fanned out by method name to registered handlers
in the order it arrived.
"""

import asyncio
import inspect
import itertools
import json
from collections import defaultdict
from typing import Any, Callable, Dict, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from ..errors import DevToolsConnectionError, DevToolsProtocolError
from .devtools import get_page_ws_url

import logging
logger = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 64 * 1024 * 1024

EventHandler = Callable[[dict], Any]


class DevToolsConnection:
    """One websocket connection to a page target."""

    def __init__(self, ws):
        self.ws = ws
        self._ids = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._handlers: Dict[str, list[EventHandler]] = defaultdict(list)
        self._background: set[asyncio.Task] = set()
        self._listener: Optional[asyncio.Task] = None
        self._close_callbacks: list[Callable[[str], Any]] = []

    @classmethod
    async def open(cls, port: int, host: str = "127.0.0.1") -> "DevToolsConnection":
        """Connect to the first page target of the browser on host:port."""
        ws_url = await asyncio.to_thread(get_page_ws_url, host, port)
        logger.debug(f"Connecting to Chrome via WebSocket: {ws_url}")
        try:
            ws = await connect(ws_url, max_size=MAX_MESSAGE_SIZE)
        except Exception as e:
            raise DevToolsConnectionError(
                f"Failed to connect to Chrome WebSocket: {e}", method="connect"
            ) from e

        conn = cls(ws)
        conn._listener = asyncio.create_task(conn._listen())
        return conn

    @property
    def closed(self) -> bool:
        return self.ws is None

    def on(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """Register an event handler; returns a function that removes it."""
        self._handlers[event].append(handler)

        def remove() -> None:
            self.off(event, handler)

        return remove

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def on_close(self, callback: Callable[[str], Any]) -> Callable[[], None]:
        """
        Call `callback(reason)` once if the browser side drops the socket.
        Not called when close() is used.
        """
        self._close_callbacks.append(callback)

        def remove() -> None:
            if callback in self._close_callbacks:
                self._close_callbacks.remove(callback)

        return remove

    async def send(self, method: str, params: Optional[dict] = None) -> dict:
        """Send a command and wait for its result."""
        if self.ws is None:
            raise DevToolsConnectionError("WebSocket connection not established", method=method)

        msg_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await self.ws.send(json.dumps({"id": msg_id, "method": method, "params": params or {}}))
        except ConnectionClosed as e:
            self._pending.pop(msg_id, None)
            raise DevToolsConnectionError(f"CDP command {method} failed: {e}", method=method) from e
        try:
            return await future
        finally:
            self._pending.pop(msg_id, None)

    def _dispatch(self, method: str, params: dict) -> None:
        for handler in list(self._handlers.get(method, ())):
            try:
                result = handler(params)
            except Exception:
                logger.exception(f"Handler for {method} failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._background.add(task)
                task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Event handler task failed", exc_info=task.exception())

    def _resolve(self, data: dict) -> None:
        future = self._pending.pop(data["id"], None)
        if future is None or future.done():
            return
        if "error" in data:
            error = data["error"] or {}
            future.set_exception(DevToolsProtocolError(
                f"CDP Error: {error.get('message', 'Unknown CDP error')}",
                code=error.get("code"),
            ))
        else:
            future.set_result(data.get("result") or {})

    async def _listen(self) -> None:
        reason = "WebSocket connection closed"
        try:
            async for raw in self.ws:
                try:
                    data = json.loads(raw)
                except ValueError:
                    logger.debug("Ignoring non-JSON frame from DevTools")
                    continue
                if "id" in data:
                    self._resolve(data)
                elif "method" in data:
                    self._dispatch(data["method"], data.get("params") or {})
        except ConnectionClosed as e:
            reason = f"WebSocket connection closed: {e}"
        except asyncio.CancelledError:
            reason = "Connection closed by client"
            raise
        finally:
            self._fail_pending(reason)
            if self.ws is not None:
                self._notify_closed(reason)

    def _notify_closed(self, reason: str) -> None:
        logger.warning(f"DevTools connection lost: {reason}")
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback(reason)
            except Exception:
                logger.exception("Close callback failed")

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(DevToolsConnectionError(reason, method="listen"))
        self._pending.clear()

    async def close(self) -> None:
        """Close the websocket and stop dispatching events."""
        ws, self.ws = self.ws, None
        self._handlers.clear()
        self._close_callbacks = []
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        for task in list(self._background):
            task.cancel()


__all__ = [
    "DevToolsConnection",
]
