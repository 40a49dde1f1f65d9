"""Utility modules for mcporter."""

from mcporter.utils.config import Settings, get_settings
from mcporter.utils.logging import LogContext, get_logger, parse_log_level

__all__ = [
    "LogContext",
    "get_logger",
    "parse_log_level",
    "Settings",
    "get_settings",
]
