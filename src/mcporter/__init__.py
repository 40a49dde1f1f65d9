"""
mcporter - command-line client for MCP servers.

Lists and calls tools on configured or ad hoc MCP servers, manages OAuth
authorization and generates standalone CLIs bound to a single server.
"""

__version__ = "1.0.0"
__description__ = "Command-line client and CLI generator for MCP servers"

# Public API
from mcporter.core.exceptions import MCPorterError
from mcporter.core.models import ServerDefinition, ToolInfo
from mcporter.core.runtime import Runtime, create_runtime

__all__ = [
    "__version__",
    "__description__",
    "MCPorterError",
    "ServerDefinition",
    "ToolInfo",
    "Runtime",
    "create_runtime",
]
