"""Configuration management for the feed browser."""

from .environment import get_env_config

__all__ = [
    "get_env_config",
]
