"""
Logging infrastructure for mcporter.

Log output goes to stderr through Rich so that stdout stays reserved for
command results. Instead of a module-level mutable log level, a
:class:`LogContext` is created once per invocation and handed to every
component that needs to log.
"""

import logging
import sys
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from mcporter.core.exceptions import UsageError

LOGGER_NAME = "mcporter"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

DEFAULT_LOG_LEVEL = "warn"

HTTP_LOGGERS = ["httpx", "httpcore", "aiohttp", "mcp", "h11"]


def parse_log_level(value: Optional[str], default: str = DEFAULT_LOG_LEVEL) -> str:
    """
    Normalize a user supplied log level.
    
    Args:
        value: Raw level from a flag or environment variable
        default: Level used when value is empty
        
    Returns:
        Canonical level name
        
    Raises:
        UsageError: If the level is not recognised
    """
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized not in LOG_LEVELS:
        raise UsageError(
            f"Invalid log level '{value}'. Use one of: debug, info, warn, error."
        )
    return "warn" if normalized == "warning" else normalized


class LogContext:
    """Explicitly constructed logging context shared by all components."""
    
    def __init__(self, logger: logging.Logger, level: str = DEFAULT_LOG_LEVEL):
        self._logger = logger
        self._level = DEFAULT_LOG_LEVEL
        self.set_level(level)
        
    @classmethod
    def create(
        cls,
        level: str = DEFAULT_LOG_LEVEL,
        enable_rich: bool = True,
        name: str = LOGGER_NAME,
    ) -> "LogContext":
        """
        Create a context with a stderr handler attached.
        
        Args:
            level: Initial log level
            enable_rich: Use RichHandler instead of a plain stream handler
            name: Logger name
        """
        logger = logging.getLogger(name)
        logger.propagate = False
        logger.handlers.clear()
        
        if enable_rich:
            handler: logging.Handler = RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                markup=False,
                show_path=False,
                show_time=False,
            )
        else:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter("%(levelname)s | %(message)s"))
        logger.addHandler(handler)
        
        for logger_name in HTTP_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
            
        return cls(logger, level)
    
    @classmethod
    def silent(cls) -> "LogContext":
        """Context that only reports errors, for library and test use."""
        logger = logging.getLogger(f"{LOGGER_NAME}.silent")
        return cls(logger, "error")
    
    @property
    def level(self) -> str:
        return self._level
    
    @property
    def logger(self) -> logging.Logger:
        return self._logger
    
    def set_level(self, level: Union[str, int]) -> None:
        """Update the verbosity; the only mutation this context allows."""
        if isinstance(level, int):
            names = {v: k for k, v in LOG_LEVELS.items() if k != "warning"}
            level = names.get(level, DEFAULT_LOG_LEVEL)
        self._level = parse_log_level(level)
        self._logger.setLevel(LOG_LEVELS[self._level])
        
    def is_enabled(self, level: str) -> bool:
        return self._logger.isEnabledFor(LOG_LEVELS[level])
    
    def debug(self, message: str) -> None:
        self._logger.debug(message)
        
    def info(self, message: str) -> None:
        self._logger.info(message)
        
    def warn(self, message: str) -> None:
        self._logger.warning(message)
        
    def error(self, message: str, error: Optional[BaseException] = None) -> None:
        if error is not None and self.is_enabled("debug"):
            self._logger.error(message, exc_info=error)
        else:
            self._logger.error(message)


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.
    
    Module loggers live under the ``mcporter`` namespace, so they share the
    handler and level configured by the active :class:`LogContext`.
    """
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
