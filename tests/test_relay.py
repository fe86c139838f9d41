import asyncio

import pytest

from livefeed_browser.events import FeedMessage, InitMessage, OpenMessage, PageLoaded
from livefeed_browser.protocol import encode_line
from livefeed_browser.relay import EventRelay

from _utils import make_session, settle

PREFIX = "__livefeed_relay__:"


def line(type, payload=None, prefix=PREFIX, level="debug"):
    return {"type": level, "args": [{"type": "string", "value": encode_line(prefix, type, payload)}]}


FEED = {"type": "message", "timestamp": 1, "method": "onNotify", "args": ["5"]}


def test_dispatches_by_kind_and_wildcard():
    relay = EventRelay(PREFIX)
    by_kind, everything = [], []
    relay.on("message", by_kind.append)
    relay.on("*", everything.append)

    relay.handle_console_event(line("init", {"room": "r"}))
    relay.handle_console_event(line("websocket_message", FEED))
    relay.handle_console_event(line("websocket_open"))

    assert [type(e) for e in by_kind] == [FeedMessage]
    assert by_kind[0].event.args == [5]
    assert [type(e) for e in everything] == [InitMessage, FeedMessage, OpenMessage]


def test_register_by_class():
    relay = EventRelay(PREFIX)
    seen = []
    relay.on(OpenMessage, seen.append)
    relay.handle_console_event(line("websocket_open"))
    assert len(seen) == 1


def test_unknown_kind_is_rejected():
    relay = EventRelay(PREFIX)
    with pytest.raises(ValueError):
        relay.on("websocket_message", print)


def test_foreign_lines_produce_nothing():
    relay = EventRelay(PREFIX)
    seen = []
    relay.on("*", seen.append)

    assert relay.handle_console_event(line("open", prefix="__livefeed_other__:")) is None
    assert relay.handle_console_event(line("open", level="log")) is None
    assert relay.handle_console_event({"type": "debug", "args": [{"value": "hello"}]}) is None
    assert seen == []


def test_remove_and_failing_callbacks(caplog):
    relay = EventRelay(PREFIX)
    seen = []

    def broken(event):
        raise RuntimeError("consumer bug")

    relay.on("open", broken)
    remove = relay.on("open", seen.append)
    relay.handle_console_event(line("open"))
    remove()
    relay.handle_console_event(line("open"))

    assert len(seen) == 1
    assert "Callback for 'open' failed" in caplog.text


def test_async_callbacks_and_channel_through_session(event_loop):
    session, conn, _ = make_session()
    event_loop.run_until_complete(session.start())
    relay = EventRelay(PREFIX)
    relay.attach(session)
    awaited = []

    async def on_message(event):
        awaited.append(event)

    relay.on("message", on_message)

    async def scenario():
        relay.open_channel()
        stream = relay.events()
        conn.emit("Runtime.consoleAPICalled", line("init", {"room": "r"}))
        conn.emit("Runtime.consoleAPICalled", {"type": "log", "args": [{"value": "page noise"}]})
        conn.emit("Runtime.consoleAPICalled", line("websocket_message", FEED))
        relay.dispatch(PageLoaded(document_node_id=1))
        received = [await stream.__anext__() for _ in range(3)]
        await settle()
        await stream.aclose()
        return received

    received = event_loop.run_until_complete(scenario())
    assert [type(e) for e in received] == [InitMessage, FeedMessage, PageLoaded]
    assert len(awaited) == 1

    relay.detach()
    assert session._console_listeners == []
    assert session._stop_listeners == []


def test_events_end_when_session_stops(event_loop):
    session, conn, _ = make_session()
    event_loop.run_until_complete(session.start())
    relay = EventRelay(PREFIX)
    relay.attach(session)

    async def consume():
        return [event async for event in relay.events()]

    async def scenario():
        consuming = asyncio.ensure_future(consume())
        await settle()
        conn.emit("Runtime.consoleAPICalled", line("websocket_open"))
        conn.drop()
        await settle()
        received = await asyncio.wait_for(consuming, 1)
        # a stream started after the stop ends right away
        late = [event async for event in relay.events()]
        return received, late

    received, late = event_loop.run_until_complete(scenario())
    assert [type(e) for e in received] == [OpenMessage]
    assert late == []

    relay.dispatch(OpenMessage())
    assert relay._channel.qsize() == 1


def test_attach_after_stop_opens_a_fresh_stream(event_loop):
    relay = EventRelay(PREFIX)
    relay.open_channel()
    relay.close_channel()

    session, _, _ = make_session()
    relay.attach(session)

    async def scenario():
        stream = relay.events()
        relay.dispatch(OpenMessage())
        first = await stream.__anext__()
        await stream.aclose()
        return first

    assert event_loop.run_until_complete(scenario()) == OpenMessage()
