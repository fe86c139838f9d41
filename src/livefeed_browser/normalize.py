"""Conversion of feed arguments from their wire strings into typed values."""

import json
import math
import re
from typing import Any

import logging
logger = logging.getLogger(__name__)

# Decimal literal as the page's Number() accepts it; surrounding whitespace is
# stripped first.
_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$|^[+-]?Infinity$")
_INTEGER = re.compile(r"^[+-]?\d+$")


def _parse_number(text: str):
    s = text.strip()
    if not s or not _NUMBER.match(s):
        return None
    if _INTEGER.match(s):
        return int(s)
    if s.endswith("Infinity"):
        return -math.inf if s.startswith("-") else math.inf
    return float(s)


def normalize_arg(value: str) -> Any:
    """
    Convert one wire-format argument into a typed value.

    The first matching rule wins:
        1. "true" / "false"              -> bool
        2. a string that is a number     -> int or float
        3. a string starting with "{"    -> parsed JSON object
        4. anything else                 -> the string unchanged

    A "{..." string that is not valid JSON is returned unchanged.
    """
    if not isinstance(value, str):
        return value

    if value == "true":
        return True
    if value == "false":
        return False

    number = _parse_number(value)
    if number is not None:
        return number

    if value.startswith("{"):
        try:
            return json.loads(value)
        except ValueError:
            logger.debug(f"Argument looks like JSON but does not parse: {value[:80]!r}")
            return value

    return value


def normalize_args(values) -> list:
    """Normalize an argument list, preserving order."""
    return [normalize_arg(v) for v in values or ()]


__all__ = [
    "normalize_arg",
    "normalize_args",
]
