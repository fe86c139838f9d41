"""
Global constants and configuration defaults.
No dependencies - safe to import from anywhere.
"""

import os

# ============================================================================
# Target Application
# ============================================================================

SERVER_URL = "https://chaturbate.com"
"""Default base address of the watched application."""

DEFAULT_DEBUG_PORT = 9222
"""Default Chrome remote debugging port."""


# ============================================================================
# Chrome Startup Configuration
# ============================================================================

DEVTOOLS_TIMEOUT_SECS = float(os.getenv("LIVEFEED_DEVTOOLS_TIMEOUT_SECS", "10"))
"""How long to wait for the DevTools endpoint after launching Chrome."""

CHROME_FLAGS = [
    "--no-first-run",
    "--no-default-browser-check",
    "--start-maximized",
    "--disable-save-password-bubble",
    "--disable-presentation-api",
    "--disable-translate",
    "--disable-background-mode",
    "--disable-plugins-discovery",
    "--disable-webgl",
    "--disable-speech-api",
    "--disable-print-preview",
    "--disable-default-apps",
    "--disable-sync",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-ipv6",
    "--incognito",
    "--mute-audio",
]
"""Flags passed to every launched Chrome in addition to port and profile."""


# ============================================================================
# Instrumentation
# ============================================================================

MAX_HOOK_ATTEMPTS = 10
"""Hook installation and player disposal give up after this many attempts."""

RETRY_UNIT_SECS = 1.0
"""One time unit of the linear retry backoff."""

PATCH_LOG_LEVEL = "debug"
"""Console level reserved for side-channel lines."""


__all__ = [
    "SERVER_URL",
    "DEFAULT_DEBUG_PORT",
    "DEVTOOLS_TIMEOUT_SECS",
    "CHROME_FLAGS",
    "MAX_HOOK_ATTEMPTS",
    "RETRY_UNIT_SECS",
    "PATCH_LOG_LEVEL",
]
