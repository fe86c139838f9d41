"""Utility helpers."""

from .retry import ABANDONED, PENDING, SUCCEEDED, RetryState, retry_until

__all__ = [
    "PENDING",
    "SUCCEEDED",
    "ABANDONED",
    "RetryState",
    "retry_until",
]
