"""Utilities package."""

from .logger import get_app_logger, setup_logger, init_app_logger
from .retry import call_with_retry
from .clock import utcnow

__all__ = [
    "get_app_logger",
    "setup_logger",
    "init_app_logger",
    "call_with_retry",
    "utcnow",
]
