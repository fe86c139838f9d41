"""DevTools HTTP endpoint helpers."""

import json
import urllib.request
from typing import Optional

from ..errors import DevToolsConnectionError

import logging
logger = logging.getLogger(__name__)


def is_debugger_listening(host: str, port: int, timeout: float = 3.0) -> bool:
    """Check if Chrome DevTools debugger is listening on a port."""
    try:
        with urllib.request.urlopen(f"http://{host}:{port}/json/version", timeout=timeout) as resp:
            return resp.status == 200
    except Exception:
        return False


def list_targets(host: str, port: int, timeout: float = 3.0) -> list:
    """Return the DevTools target list from the /json endpoint."""
    try:
        with urllib.request.urlopen(f"http://{host}:{port}/json", timeout=timeout) as resp:
            return json.load(resp)
    except Exception as e:
        raise DevToolsConnectionError(
            f"Failed to list DevTools targets at {host}:{port}: {e}",
            method="list_targets",
        ) from e


def get_page_ws_url(host: str, port: int, timeout: float = 3.0) -> str:
    """Get the WebSocket debugger URL of the first page target."""
    for target in list_targets(host, port, timeout=timeout):
        if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
            ws_url = target["webSocketDebuggerUrl"]
            logger.debug(f"Found page target, ws_url={ws_url}")
            return ws_url
    raise DevToolsConnectionError(f"No page target found at {host}:{port}", method="get_page_ws_url")


def browser_version(host: str, port: int, timeout: float = 3.0) -> Optional[dict]:
    """Return /json/version metadata, or None if the endpoint does not answer."""
    try:
        with urllib.request.urlopen(f"http://{host}:{port}/json/version", timeout=timeout) as resp:
            return json.load(resp)
    except Exception:
        return None


__all__ = [
    'is_debugger_listening',
    'list_targets',
    'get_page_ws_url',
    'browser_version',
]
