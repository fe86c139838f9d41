"""
Realtime feed extraction from a live room page.

We drive one debuggable Chrome, load the room, and inject a small script
into the page that wraps the callbacks of the page's own socket. Every frame
the page receives is logged back to us through the console at a reserved
level with a per-run prefix; we decode those lines into typed events. The
page keeps working exactly as before: the hooks only observe.

## Pieces

* BrowserSession: launches Chrome, owns the DevTools connection, evaluates
  scripts, waits for page loads, tears everything down on stop().
* Instrumentation: evaluates the patch after every page load and retries the
  socket hook and player shutdown with linear backoff.
* EventRelay: filters console entries, decodes them, dispatches one typed
  event per message.
* DomObserver / OrderedDeliveryQueue: the alternative that watches inserted
  DOM nodes and delivers their HTML in insertion order.
* RoomWatcher: all of the above behind one object.

We manage exactly one browser and one session at a time.
"""

from .events import (
    ChildInserted,
    CloseMessage,
    ErrorMessage,
    FeedEvent,
    FeedMessage,
    HookedMessage,
    InitMessage,
    OpenMessage,
    PageLoaded,
    SettingsSnapshot,
)
from .session import EVALUATION_FAILED, BrowserSession
from .watcher import RoomWatcher

__all__ = [
    "BrowserSession",
    "EVALUATION_FAILED",
    "RoomWatcher",
    "SettingsSnapshot",
    "FeedEvent",
    "InitMessage",
    "HookedMessage",
    "OpenMessage",
    "FeedMessage",
    "ErrorMessage",
    "CloseMessage",
    "PageLoaded",
    "ChildInserted",
]
