import asyncio
import json

import pytest

from livefeed_browser.browser.connection import DevToolsConnection
from livefeed_browser.errors import DevToolsConnectionError, DevToolsProtocolError

from _utils import settle


class FakeWebSocket:
    """Async-iterable socket whose incoming frames are fed by the test."""

    def __init__(self):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.closed = False

    async def send(self, data):
        self.sent.append(json.loads(data))

    def feed(self, message):
        self.incoming.put_nowait(json.dumps(message) if isinstance(message, dict) else message)

    async def close(self):
        self.closed = True
        self.incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item


async def connected():
    ws = FakeWebSocket()
    conn = DevToolsConnection(ws)
    conn._listener = asyncio.ensure_future(conn._listen())
    return conn, ws


def test_commands_are_correlated_by_id(event_loop):
    async def scenario():
        conn, ws = await connected()
        first = asyncio.ensure_future(conn.send("Page.enable"))
        second = asyncio.ensure_future(conn.send("Runtime.evaluate", {"expression": "1"}))
        await settle()

        assert [m["id"] for m in ws.sent] == [1, 2]
        assert ws.sent[1]["params"] == {"expression": "1"}

        ws.feed({"id": 2, "result": {"result": {"type": "number", "value": 1}}})
        ws.feed({"id": 1, "result": {}})
        results = await asyncio.gather(first, second)
        await conn.close()
        return results

    first, second = event_loop.run_until_complete(scenario())
    assert first == {}
    assert second == {"result": {"type": "number", "value": 1}}


def test_protocol_errors_raise(event_loop):
    async def scenario():
        conn, ws = await connected()
        pending = asyncio.ensure_future(conn.send("DOM.getOuterHTML", {"nodeId": 5}))
        await settle()
        ws.feed({"id": 1, "error": {"code": -32000, "message": "Could not find node"}})
        try:
            await pending
        finally:
            await conn.close()

    with pytest.raises(DevToolsProtocolError) as info:
        event_loop.run_until_complete(scenario())
    assert info.value.code == -32000
    assert "Could not find node" in str(info.value)


def test_events_reach_handlers_in_order(event_loop):
    seen = []

    async def scenario():
        conn, ws = await connected()
        conn.on("Page.loadEventFired", lambda p: seen.append(("load", p["timestamp"])))
        remove = conn.on("Runtime.consoleAPICalled", lambda p: seen.append(("console", p["type"])))

        ws.feed({"method": "Runtime.consoleAPICalled", "params": {"type": "debug"}})
        ws.feed("not json")
        ws.feed({"method": "Page.loadEventFired", "params": {"timestamp": 3}})
        ws.feed({"method": "Network.requestWillBeSent", "params": {}})
        await settle()

        remove()
        ws.feed({"method": "Runtime.consoleAPICalled", "params": {"type": "log"}})
        await settle()
        await conn.close()

    event_loop.run_until_complete(scenario())
    assert seen == [("console", "debug"), ("load", 3)]


def test_lost_socket_fails_pending_commands(event_loop):
    async def scenario():
        conn, ws = await connected()
        pending = asyncio.ensure_future(conn.send("Page.navigate", {"url": "about:blank"}))
        await settle()
        ws.incoming.put_nowait(None)
        try:
            await pending
        finally:
            await conn.close()

    with pytest.raises(DevToolsConnectionError):
        event_loop.run_until_complete(scenario())


def test_send_after_close_raises(event_loop):
    async def scenario():
        conn, ws = await connected()
        await conn.close()
        assert conn.closed and ws.closed
        await conn.send("Page.enable")

    with pytest.raises(DevToolsConnectionError):
        event_loop.run_until_complete(scenario())


def test_remote_close_is_reported_once(event_loop, caplog):
    reasons = []

    async def scenario():
        conn, ws = await connected()
        conn.on_close(reasons.append)
        ws.incoming.put_nowait(None)
        await settle()
        assert not conn.closed
        await conn.close()

    event_loop.run_until_complete(scenario())
    assert reasons == ["WebSocket connection closed"]
    assert "DevTools connection lost" in caplog.text


def test_client_close_is_not_reported(event_loop):
    reasons = []

    async def scenario():
        conn, ws = await connected()
        conn.on_close(reasons.append)
        removed = []
        remove = conn.on_close(removed.append)
        remove()
        await conn.close()
        await settle()
        return removed

    assert event_loop.run_until_complete(scenario()) == []
    assert reasons == []
