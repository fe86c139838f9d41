"""Runs the rendered patch script under node against fake page globals.

Each test supplies `setup` (page globals declared before the patch runs) and
`scenario` (statements run afterwards with `room`, `api`, `calls` and
`lines` in scope). The harness prints the room, the side-channel lines and
the calls recorded by the page's own callbacks.
"""

import json
import shutil
import subprocess
from unittest.mock import Mock

import pytest

from livefeed_browser.events import CloseMessage, FeedMessage, HookedMessage, InitMessage
from livefeed_browser.instrumentation import Instrumentation
from livefeed_browser.protocol import decode_console_event

NODE = shutil.which("node")

pytestmark = pytest.mark.skipif(NODE is None, reason="node is not installed")

PREFIX = "__livefeed_page__:"

SOCKET = """
const socket = {
  onmessage(event) { calls.push('message:' + lines.length); },
  onclose(event) { calls.push('close'); },
  onerror(event) { calls.push('error'); },
  onopen() { calls.push('open'); },
};
"""

SETTINGS = """
window.defchat_settings = {
  room: 'some_room',
  handler: {host: 'chat', initializer: {a: 1}, nested: {x: 1}},
};
"""


def run_patch(tmp_path, setup="", scenario=""):
    inst = Instrumentation(Mock(), prefix=PREFIX)
    source = "\n".join([
        "const window = globalThis;",
        "const calls = [];",
        "const lines = [];",
        "console.debug = (line) => lines.push(line);",
        "globalThis.document = {cookie: 'other=1; csrftoken=tok123'};",
        SOCKET,
        setup,
        "const room = " + inst.render() + ";",
        f"const api = window[{json.dumps(inst.namespace)}];",
        scenario,
        "process.stdout.write(JSON.stringify({room: room === undefined ? null : room, calls, lines}));",
    ])
    script = tmp_path / "page.js"
    script.write_text(source, encoding="utf-8")
    completed = subprocess.run([NODE, str(script)], capture_output=True, text=True, timeout=30)
    assert completed.returncode == 0, completed.stderr
    result = json.loads(completed.stdout)
    result["messages"] = [
        decode_console_event({"type": "debug", "args": [{"type": "string", "value": line}]}, PREFIX)
        for line in result["lines"]
    ]
    return result


def test_init_snapshot_and_room(tmp_path):
    result = run_patch(tmp_path, setup=SETTINGS + "window.ws_handler = {ws_socket: socket};")

    assert result["room"] == "some_room"
    (init,) = result["messages"]
    assert isinstance(init, InitMessage)
    settings = init.settings
    # Only top-level scalar fields survive the encoding.
    assert settings.handler_settings == {"host": "chat"}
    assert settings.chat_settings == {"room": "some_room"}
    assert settings.initializer_settings == {"a": 1}
    assert settings.csrf_token == "tok123"
    assert settings.has_websocket is True
    assert settings.has_player is False
    assert settings.room == "some_room"


def test_page_without_room(tmp_path):
    result = run_patch(tmp_path, scenario="calls.push(String(api.hook()));")
    assert result["room"] is None
    assert result["calls"] == ["false"]
    assert isinstance(result["messages"][0], InitMessage)


def test_hook_observes_then_forwards(tmp_path):
    scenario = """
    calls.push(String(api.hook()));
    calls.push(String(api.hook()));
    socket.onmessage({data: JSON.stringify({method: 'onRoomMsg', args: ['some_room', '5', {m: 'hi'}]})});
    socket.onopen();
    socket.onclose({code: 1006, reason: 'gone', wasClean: false});
    """
    result = run_patch(tmp_path, setup=SETTINGS + "window.ws_handler = {ws_socket: socket};", scenario=scenario)

    # the feed line is logged before the page's own handler runs
    assert result["calls"] == ["true", "true", "message:3", "open", "close"]
    kinds = [type(m) for m in result["messages"] if m is not None]
    assert kinds[:2] == [InitMessage, HookedMessage]
    assert sum(1 for k in kinds if k is HookedMessage) == 1

    feed = next(m for m in result["messages"] if isinstance(m, FeedMessage))
    assert feed.event.method == "onRoomMsg"
    assert feed.event.args == ["some_room", 5, {"m": "hi"}]
    close = result["messages"][-1]
    assert isinstance(close, CloseMessage)
    assert close.payload == {"code": 1006, "reason": "gone", "wasClean": False}


def test_page_callbacks_run_when_observation_fails(tmp_path):
    scenario = """
    api.hook();
    socket.onmessage({data: JSON.stringify({method: 'onRoomMsg', args: {x: 1}})});
    socket.onclose();
    console.debug = () => { throw new Error('console unavailable'); };
    socket.onerror({type: 'error'});
    """
    result = run_patch(tmp_path, setup=SETTINGS + "window.ws_handler = {ws_socket: socket};", scenario=scenario)

    assert [c.split(":")[0] for c in result["calls"]] == ["message", "close", "error"]
    feed = next(m for m in result["messages"] if isinstance(m, FeedMessage))
    assert feed.event.args == []


def test_lexical_handler_is_found(tmp_path):
    result = run_patch(
        tmp_path,
        setup=SETTINGS + "let ws_handler = {ws_socket: socket};",
        scenario="calls.push(String(window.ws_handler === undefined), String(api.hook()));",
    )
    assert result["calls"] == ["true", "true"]


def test_player_is_disposed_once(tmp_path):
    setup = SETTINGS + """
    window.jsplayer = {
      src(value) { calls.push('src:' + value); },
      pause() { calls.push('pause'); },
      play() { calls.push('play'); },
      dispose() { calls.push('dispose'); },
    };
    """
    scenario = """
    calls.push(String(api.disposePlayer()));
    window.jsplayer.play();
    window.jsplayer.pause();
    calls.push(String(api.disposePlayer()));
    calls.push(Object.keys(api).sort().join(','));
    """
    result = run_patch(tmp_path, setup=setup, scenario=scenario)

    assert result["calls"] == ["src:", "pause", "dispose", "true", "true", "disposePlayer,hook"]
