import json
import logging

import pytest

from livefeed_browser.events import (
    CloseMessage,
    ErrorMessage,
    FeedMessage,
    HookedMessage,
    InitMessage,
    OpenMessage,
)
from livefeed_browser.protocol import (
    decode_console_event,
    decode_message,
    encode_line,
    extract_line,
    make_prefix,
)

PREFIX = "__livefeed_test__:"


def console(*values, level="debug"):
    """A Runtime.consoleAPICalled event with string arguments."""
    return {"type": level, "args": [{"type": "string", "value": v} for v in values]}


def test_prefixes_are_unique():
    first, second = make_prefix(), make_prefix()
    assert first != second
    assert first.startswith("__livefeed_") and first.endswith(":")


@pytest.mark.parametrize("params", [
    console(PREFIX + '{"type":"open"}', level="log"),
    console(PREFIX + '{"type":"open"}', "extra"),
    console('{"type":"open"}'),
    console("__livefeed_other__:" + '{"type":"open"}'),
    {"type": "debug", "args": [{"type": "number", "value": 3}]},
    {"type": "debug", "args": []},
    {"type": "debug"},
])
def test_non_channel_entries_are_ignored(params):
    assert extract_line(params, PREFIX) is None
    assert decode_console_event(params, PREFIX) is None


def test_init_carries_decoded_settings():
    payload = {
        "settings": json.dumps({"initializer": {"a": 1}, "host": "chat"}),
        "chatSettings": json.dumps({"room": "some_room"}),
        "initializerSettings": json.dumps({"a": 1}),
        "csrftoken": "tok",
        "hasPlayer": True,
        "hasWebsocket": False,
        "room": "some_room",
    }
    message = decode_console_event(console(encode_line(PREFIX, "init", payload)), PREFIX)

    assert isinstance(message, InitMessage)
    settings = message.settings
    assert settings.handler_settings == {"initializer": {"a": 1}, "host": "chat"}
    assert settings.chat_settings == {"room": "some_room"}
    assert settings.initializer_settings == {"a": 1}
    assert settings.csrf_token == "tok"
    assert settings.has_player is True
    assert settings.has_websocket is False
    assert settings.room == "some_room"


def test_settings_tolerate_missing_and_broken_documents():
    message = decode_message(json.dumps({"type": "hooked", "payload": {"settings": "{broken", "room": ""}}))
    assert isinstance(message, HookedMessage)
    assert message.settings.handler_settings is None
    assert message.settings.chat_settings is None
    assert message.settings.room is None

    message = decode_message(json.dumps({"type": "init", "payload": None}))
    assert isinstance(message, InitMessage)
    assert message.settings.has_player is False


def test_feed_message_is_normalized():
    payload = {
        "type": "message",
        "timestamp": 1700000000.5,
        "method": "onRoomMsg",
        "callback": None,
        "args": ["some_room", '{"user":"a","m":"hi"}', "true", "5"],
    }
    message = decode_console_event(console(encode_line(PREFIX, "websocket_message", payload)), PREFIX)

    assert isinstance(message, FeedMessage)
    assert message.event.method == "onRoomMsg"
    assert message.event.timestamp == 1700000000.5
    assert message.event.args == ["some_room", {"user": "a", "m": "hi"}, True, 5]


def test_non_message_feed_frames_are_dropped():
    raw = {"type": "raw", "timestamp": 1, "data": "ping"}
    assert decode_message(json.dumps({"type": "websocket_message", "payload": raw})) is None
    assert decode_message(json.dumps({"type": "message", "payload": None})) is None


def test_socket_lifecycle_aliases():
    assert isinstance(decode_message('{"type":"websocket_open","payload":null}'), OpenMessage)
    assert isinstance(decode_message('{"type":"open","payload":null}'), OpenMessage)

    error = decode_message('{"type":"websocket_error","payload":{"type":"error"}}')
    assert isinstance(error, ErrorMessage) and error.payload == {"type": "error"}

    close = decode_message('{"type":"websocket_close","payload":{"code":1006}}')
    assert isinstance(close, CloseMessage) and close.payload == {"code": 1006}


def test_unknown_type_is_dropped_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="livefeed_browser.protocol"):
        assert decode_message('{"type":"telemetry","payload":{}}') is None
    assert "telemetry" in caplog.text


@pytest.mark.parametrize("text", ["not json", "[]", '{"payload":1}', '{"type":5}'])
def test_malformed_lines_are_dropped(text):
    assert decode_message(text) is None


def test_encode_line_matches_page_format():
    assert encode_line(PREFIX, "open") == PREFIX + '{"type":"open","payload":null}'
