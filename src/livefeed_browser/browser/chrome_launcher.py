"""Chrome launch orchestration and command building."""

import time
import platform
import subprocess
import tempfile
from typing import Optional, Sequence

from ..constants import CHROME_FLAGS, DEVTOOLS_TIMEOUT_SECS
from .chrome_executable import get_chrome_binary_for_platform
from .chrome_process import ChromeProcess, find_chrome_by_port, get_free_port
from .devtools import browser_version, is_debugger_listening

import logging
logger = logging.getLogger(__name__)

DEBUGGER_HOST = "127.0.0.1"


def build_chrome_command(
    binary: str,
    port: int,
    user_data_dir: str,
    flags: Sequence[str] = (),
    headless: bool = True,
) -> list[str]:
    """
    Build Chrome command-line arguments for remote debugging.

    Args:
        binary: Path to Chrome executable
        port: Remote debugging port
        user_data_dir: Chrome user data directory
        flags: Extra command-line flags
        headless: Whether to add --headless=new

    Returns:
        list[str]: Command-line arguments for Chrome
    """
    cmd = [
        binary,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={user_data_dir}",
    ]
    cmd.extend(f for f in flags if f not in cmd)
    if headless:
        cmd.append("--headless=new")
    cmd.append("about:blank")
    return cmd


def launch_chrome_process(cmd: list[str]) -> subprocess.Popen:
    """Start Chrome detached from our stdio."""
    kwargs = dict(stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    if platform.system() == "Windows":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    return subprocess.Popen(cmd, **kwargs)


def wait_for_devtools_ready(
    proc: subprocess.Popen,
    host: str,
    port: int,
    timeout: float = DEVTOOLS_TIMEOUT_SECS,
) -> None:
    """
    Wait for the DevTools endpoint of a freshly started Chrome.

    Raises:
        RuntimeError: If Chrome exits early or the endpoint never appears
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if proc.poll() is not None:
            raise RuntimeError(f"Chrome exited during startup with code {proc.returncode}.")
        if is_debugger_listening(host, port, timeout=0.5):
            return
        time.sleep(0.1)
    raise RuntimeError(f"Failed to start Chrome with remote debugging on {port}; endpoint never came up.")


class ChromeLauncher:
    """
    Launches a debuggable Chrome for one session.

    `launch(port, flags)` returns a ChromeProcess exposing the bound debug
    port and a terminate operation.
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = config or {}

    def launch(self, port: Optional[int] = None, flags: Optional[Sequence[str]] = None) -> ChromeProcess:
        host = DEBUGGER_HOST
        if not port:
            port = get_free_port()

        existing = find_chrome_by_port(port)
        if existing is not None or is_debugger_listening(host, port, timeout=0.5):
            owner = f"pid={existing.pid}" if existing is not None else "another process"
            raise RuntimeError(f"Debug port {port} is already in use by {owner}.")

        temp_profile_dir = None
        user_data_dir = self.config.get("user_data_dir")
        if not user_data_dir:
            temp_profile_dir = user_data_dir = tempfile.mkdtemp(prefix="livefeed_chrome_")

        binary = get_chrome_binary_for_platform(self.config)
        cmd = build_chrome_command(
            binary,
            port,
            user_data_dir,
            flags=CHROME_FLAGS if flags is None else flags,
            headless=self.config.get("headless", True),
        )

        logger.debug("starting chrome...")
        proc = launch_chrome_process(cmd)
        chrome = ChromeProcess(proc, port, temp_profile_dir=temp_profile_dir)
        try:
            wait_for_devtools_ready(
                proc, host, port, timeout=self.config.get("devtools_timeout", DEVTOOLS_TIMEOUT_SECS)
            )
        except Exception:
            chrome.terminate()
            raise

        version = (browser_version(host, port) or {}).get("Browser")
        logger.info(f"Launched Chrome on port {port}, pid={proc.pid}, version={version}")
        return chrome


__all__ = [
    'DEBUGGER_HOST',
    'build_chrome_command',
    'launch_chrome_process',
    'wait_for_devtools_ready',
    'ChromeLauncher',
]
