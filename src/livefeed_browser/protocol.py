"""
Side-channel protocol between the instrumented page and the host.

The page has no direct way to return asynchronous events to us, so it logs
them: every message is one console entry at the reserved level whose single
string argument is

    <prefix>{"type": <string>, "payload": <any or null>}

The prefix is unique per instrumentation, so ordinary page logging never
decodes as a message. Decoding is strict about the envelope and lenient about
content: anything that does not fit is ignored, never raised.
"""

import json
import uuid
from typing import Any, Optional

from .constants import PATCH_LOG_LEVEL
from .events import (
    PATCH_MESSAGE_TYPES,
    CloseMessage,
    ErrorMessage,
    FeedEvent,
    FeedMessage,
    HookedMessage,
    InitMessage,
    OpenMessage,
    PatchMessage,
    SettingsSnapshot,
)

import logging
logger = logging.getLogger(__name__)

# The page reports socket callbacks under these names.
TYPE_ALIASES = {
    "websocket_open": "open",
    "websocket_message": "message",
    "websocket_error": "error",
    "websocket_close": "close",
}


def make_prefix() -> str:
    """Create a fresh prefix token for one instrumentation."""
    return f"__livefeed_{uuid.uuid4().hex}__:"


def encode_line(prefix: str, type: str, payload: Any = None) -> str:
    """Encode a message the way the page does."""
    return prefix + json.dumps({"type": type, "payload": payload}, separators=(",", ":"))


def extract_line(params: dict, prefix: str) -> Optional[str]:
    """
    Return the JSON text of a side-channel entry, or None for normal logging.

    `params` is a Runtime.consoleAPICalled event: the entry must be at the
    reserved level, carry exactly one argument, and that argument must be a
    string starting with `prefix`.
    """
    if params.get("type") != PATCH_LOG_LEVEL:
        return None
    args = params.get("args") or []
    if len(args) != 1:
        return None
    value = args[0].get("value") if isinstance(args[0], dict) else None
    if not isinstance(value, str) or not value.startswith(prefix):
        return None
    return value[len(prefix):]


def decode_message(text: str) -> Optional[PatchMessage]:
    """Decode the `{type, payload}` document into its PatchMessage variant."""
    try:
        envelope = json.loads(text)
    except ValueError:
        logger.debug(f"Dropping malformed side-channel line: {text[:80]!r}")
        return None
    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        logger.debug(f"Dropping side-channel line without a type: {text[:80]!r}")
        return None

    kind = TYPE_ALIASES.get(envelope["type"], envelope["type"])
    payload = envelope.get("payload")
    if kind not in PATCH_MESSAGE_TYPES:
        logger.warning(f"Dropping side-channel message of unknown type {envelope['type']!r}")
        return None

    if kind == "init":
        return InitMessage(settings=SettingsSnapshot.from_payload(payload))
    if kind == "hooked":
        return HookedMessage(settings=SettingsSnapshot.from_payload(payload))
    if kind == "open":
        return OpenMessage()
    if kind == "error":
        return ErrorMessage(payload=payload)
    if kind == "close":
        return CloseMessage(payload=payload)

    # Feed frames other than "message" (heartbeats, raw frames) are not events.
    if not isinstance(payload, dict) or payload.get("type") != "message":
        return None
    return FeedMessage(event=FeedEvent.from_payload(payload))


def decode_console_event(params: dict, prefix: str) -> Optional[PatchMessage]:
    """Decode one intercepted console entry, None if it is not a message."""
    text = extract_line(params, prefix)
    if text is None:
        return None
    return decode_message(text)


__all__ = [
    "TYPE_ALIASES",
    "make_prefix",
    "encode_line",
    "extract_line",
    "decode_message",
    "decode_console_event",
]
