"""
Typed events surfaced to callers.

Side-channel messages form a closed set of variants, one class per wire tag:

    init    -> InitMessage(settings)
    hooked  -> HookedMessage(settings)
    open    -> OpenMessage()
    message -> FeedMessage(event)
    error   -> ErrorMessage(payload)
    close   -> CloseMessage(payload)

The DOM observation variant adds PageLoaded and ChildInserted.
"""

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from .normalize import normalize_args

import logging
logger = logging.getLogger(__name__)


def _decode_document(raw: Any) -> Optional[Any]:
    """Decode one independently re-encoded settings sub-document."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug(f"Settings document is not valid JSON: {raw[:80]!r}")
        return None


@dataclass
class SettingsSnapshot:
    """Page configuration captured when the instrumentation ran."""

    handler_settings: Optional[dict] = None
    chat_settings: Optional[dict] = None
    initializer_settings: Optional[dict] = None
    csrf_token: Optional[str] = None
    has_player: bool = False
    has_websocket: bool = False
    room: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> "SettingsSnapshot":
        payload = payload if isinstance(payload, dict) else {}
        return cls(
            handler_settings=_decode_document(payload.get("settings")),
            chat_settings=_decode_document(payload.get("chatSettings")),
            initializer_settings=_decode_document(payload.get("initializerSettings")),
            csrf_token=payload.get("csrftoken"),
            has_player=bool(payload.get("hasPlayer")),
            has_websocket=bool(payload.get("hasWebsocket")),
            room=payload.get("room") or None,
        )


@dataclass
class FeedEvent:
    """One realtime event taken off the page's socket."""

    timestamp: Optional[float]
    method: str
    callback: Optional[str] = None
    args: list = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "FeedEvent":
        return cls(
            timestamp=payload.get("timestamp"),
            method=payload.get("method") or "",
            callback=payload.get("callback"),
            args=normalize_args(payload.get("args")),
        )


@dataclass
class PatchMessage:
    kind: ClassVar[str] = ""


@dataclass
class InitMessage(PatchMessage):
    kind: ClassVar[str] = "init"
    settings: SettingsSnapshot = field(default_factory=SettingsSnapshot)


@dataclass
class HookedMessage(PatchMessage):
    kind: ClassVar[str] = "hooked"
    settings: SettingsSnapshot = field(default_factory=SettingsSnapshot)


@dataclass
class OpenMessage(PatchMessage):
    kind: ClassVar[str] = "open"


@dataclass
class FeedMessage(PatchMessage):
    kind: ClassVar[str] = "message"
    event: Optional[FeedEvent] = None


@dataclass
class ErrorMessage(PatchMessage):
    kind: ClassVar[str] = "error"
    payload: Any = None


@dataclass
class CloseMessage(PatchMessage):
    kind: ClassVar[str] = "close"
    payload: Any = None


PATCH_MESSAGE_TYPES = {
    cls.kind: cls
    for cls in (InitMessage, HookedMessage, OpenMessage, FeedMessage, ErrorMessage, CloseMessage)
}


@dataclass
class PageLoaded:
    kind: ClassVar[str] = "page_load"
    document_node_id: Optional[int] = None


@dataclass
class ChildInserted:
    kind: ClassVar[str] = "child_inserted"
    node_id: int
    parent_node_id: Optional[int]
    previous_node_id: Optional[int]
    html: str
    text: str = ""


EVENT_KINDS = frozenset(PATCH_MESSAGE_TYPES) | {PageLoaded.kind, ChildInserted.kind}


__all__ = [
    "SettingsSnapshot",
    "FeedEvent",
    "PatchMessage",
    "InitMessage",
    "HookedMessage",
    "OpenMessage",
    "FeedMessage",
    "ErrorMessage",
    "CloseMessage",
    "PATCH_MESSAGE_TYPES",
    "EVENT_KINDS",
    "PageLoaded",
    "ChildInserted",
]
