"""Environment configuration and validation."""

import os
from typing import Optional

from dotenv import load_dotenv

from ..constants import DEFAULT_DEBUG_PORT, DEVTOOLS_TIMEOUT_SECS, RETRY_UNIT_SECS, SERVER_URL

import logging
logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "True", "yes", "Yes")


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name) or "").strip() or None


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise EnvironmentError(f"{name} must be a number, got {raw!r}.")
    if value < 0:
        raise EnvironmentError(f"{name} must not be negative, got {raw!r}.")
    return value


def get_env_config() -> dict:
    """
    Read environment variables (and a local .env file) into a config dict.

    Optional:   LIVEFEED_BASE_URL (default https://chaturbate.com)
                CHROME_REMOTE_DEBUG_PORT (default 9222, 0 picks a free port)
                CHROME_EXECUTABLE_PATH
                LIVEFEED_USER_DATA_DIR (default: throwaway temporary profile)
                LIVEFEED_HEADLESS (default 1)
                LIVEFEED_RETRY_UNIT_SECS (default 1.0)
                LIVEFEED_DEVTOOLS_TIMEOUT_SECS (default 10)
    """
    load_dotenv()

    base_url = (_env_str("LIVEFEED_BASE_URL") or SERVER_URL).rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise EnvironmentError(f"LIVEFEED_BASE_URL must be an http(s) address, got {base_url!r}.")

    port_env = _env_str("CHROME_REMOTE_DEBUG_PORT")
    if port_env is None:
        port = DEFAULT_DEBUG_PORT
    elif port_env.isdigit():
        port = int(port_env)
    else:
        raise EnvironmentError(f"CHROME_REMOTE_DEBUG_PORT must be a port number, got {port_env!r}.")

    headless_env = _env_str("LIVEFEED_HEADLESS")
    headless = True if headless_env is None else headless_env in _TRUTHY

    return {
        "base_url": base_url,
        "port": port,
        "chrome_path": _env_str("CHROME_EXECUTABLE_PATH"),
        "user_data_dir": _env_str("LIVEFEED_USER_DATA_DIR"),
        "headless": headless,
        "retry_unit": _env_float("LIVEFEED_RETRY_UNIT_SECS", RETRY_UNIT_SECS),
        "devtools_timeout": _env_float("LIVEFEED_DEVTOOLS_TIMEOUT_SECS", DEVTOOLS_TIMEOUT_SECS),
    }
