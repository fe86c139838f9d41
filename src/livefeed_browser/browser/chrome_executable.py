"""Locating a Chrome (or Chromium) binary to launch."""

import os
import shutil
import platform
from typing import Iterable, Optional

KNOWN_LOCATIONS = {
    "Windows": (
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        "chrome.exe",
    ),
    "Darwin": (
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ),
}

LINUX_NAMES = ("google-chrome", "google-chrome-stable", "chromium", "chromium-browser", "chrome")


def _first_existing(names: Iterable[str]) -> Optional[str]:
    for name in names:
        if os.path.isfile(name):
            return name
        on_path = shutil.which(name)
        if on_path:
            return on_path
    return None


def get_chrome_binary_for_platform(config: dict) -> str:
    """
    Path of the Chrome binary to launch.

    An explicit chrome_path in `config` must exist; otherwise the usual
    install locations of the current platform are searched, then PATH.

    Raises:
        FileNotFoundError: If no Chrome binary can be found
    """
    explicit = config.get("chrome_path")
    if explicit:
        found = _first_existing([explicit])
        if found is None:
            raise FileNotFoundError(f"CHROME_EXECUTABLE_PATH does not exist: {explicit}")
        return found

    found = _first_existing(KNOWN_LOCATIONS.get(platform.system(), LINUX_NAMES))
    if found is None:
        raise FileNotFoundError("No Chrome binary found; set CHROME_EXECUTABLE_PATH.")
    return found


__all__ = [
    'get_chrome_binary_for_platform',
]
