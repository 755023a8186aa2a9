"""Core module for configuration and utilities."""

from reelforge.core.config import settings
from reelforge.core.logging import setup_logging, get_correlation_id

__all__ = [
    "settings",
    "setup_logging",
    "get_correlation_id",
]
