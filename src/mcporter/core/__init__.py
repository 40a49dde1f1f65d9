"""Core mcporter functionality: definitions, transports and the runtime."""

from mcporter.core.exceptions import ConfigError, MCPorterError, UnknownServerError, UsageError
from mcporter.core.models import ServerDefinition, ToolInfo
from mcporter.core.registry import DefinitionRegistry
from mcporter.core.runtime import Runtime, create_runtime

__all__ = [
    "MCPorterError",
    "UsageError",
    "ConfigError",
    "UnknownServerError",
    "ServerDefinition",
    "ToolInfo",
    "DefinitionRegistry",
    "Runtime",
    "create_runtime",
]
