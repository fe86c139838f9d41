"""Chrome process handle, discovery and teardown."""

import shutil
import socket
import subprocess
from typing import Optional
import psutil

import logging
logger = logging.getLogger(__name__)


def get_free_port() -> int:
    """Get a free port by binding to port 0."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def find_chrome_by_port(port: int) -> Optional[psutil.Process]:
    """
    Find Chrome process listening on the specified debug port.

    Args:
        port: Remote debugging port number

    Returns:
        Optional[psutil.Process]: Chrome process if found, None otherwise
    """
    target = f"--remote-debugging-port={port}"
    for p in psutil.process_iter(["name", "cmdline"]):
        try:
            name = (p.info["name"] or "").lower()
            if "chrom" not in name:
                continue
            cmd = p.info.get("cmdline") or []
            if any(target in (arg or "") for arg in cmd):
                return p
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return None


def kill_process_tree(pid: int, timeout: float = 5.0) -> None:
    """Terminate a process and all of its children, killing whatever survives."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    procs = parent.children(recursive=True) + [parent]
    for p in procs:
        try:
            p.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for p in alive:
        try:
            p.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue


class ChromeProcess:
    """
    Handle on a launched Chrome.

    Exposes the debug port actually bound and a terminate operation. A
    temporary profile directory, when given, is removed on terminate.
    """

    def __init__(self, proc: subprocess.Popen, port: int, temp_profile_dir: Optional[str] = None):
        self.proc = proc
        self.port = port
        self.temp_profile_dir = temp_profile_dir

    @property
    def pid(self) -> int:
        return self.proc.pid

    def is_running(self) -> bool:
        return self.proc.poll() is None

    def terminate(self) -> None:
        if self.is_running():
            logger.debug(f"Terminating Chrome pid={self.pid} (port {self.port})")
            kill_process_tree(self.pid)
        try:
            self.proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self.proc.kill()

        if self.temp_profile_dir:
            shutil.rmtree(self.temp_profile_dir, ignore_errors=True)
            self.temp_profile_dir = None

    def __repr__(self) -> str:
        return f"ChromeProcess(pid={self.pid}, port={self.port})"


__all__ = [
    'get_free_port',
    'find_chrome_by_port',
    'kill_process_tree',
    'ChromeProcess',
]
