# livefeed_browser/decorators/__init__.py

from .ensure import ensure_session_started

__all__ = [
    "ensure_session_started",
]
