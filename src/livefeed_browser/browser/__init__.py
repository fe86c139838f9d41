"""Chrome process management and the DevTools connection."""

from .chrome_launcher import ChromeLauncher, build_chrome_command
from .chrome_process import ChromeProcess
from .connection import DevToolsConnection

__all__ = [
    "ChromeLauncher",
    "ChromeProcess",
    "DevToolsConnection",
    "build_chrome_command",
]
