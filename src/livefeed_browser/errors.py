"""Exception hierarchy for the DevTools session."""

from typing import Optional


class DevToolsError(RuntimeError):
    """Base class for failures talking to the browser over DevTools."""

    def __init__(self, message: str, method: Optional[str] = None):
        super().__init__(message)
        self.method = method


class DevToolsConnectionError(DevToolsError):
    """The debugging connection could not be opened or was lost."""


class DevToolsProtocolError(DevToolsError):
    """The browser answered a command with a protocol error."""

    def __init__(self, message: str, method: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, method=method)
        self.code = code


class SessionNotStartedError(RuntimeError):
    """An operation was attempted on a session that is not running."""


__all__ = [
    "DevToolsError",
    "DevToolsConnectionError",
    "DevToolsProtocolError",
    "SessionNotStartedError",
]
