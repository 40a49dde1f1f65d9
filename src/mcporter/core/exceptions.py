"""
Exception classes for mcporter.

Defines the exception hierarchy for the errors that can occur while
resolving server definitions, talking to MCP servers and generating CLIs.
"""

from typing import Any, Dict, Optional


class MCPorterError(Exception):
    """Base exception for all mcporter errors."""
    
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize MCPorterError.
        
        Args:
            message: Error message
            error_code: Optional error code for categorization
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        
    def __str__(self) -> str:
        """String representation of the error."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message
        
    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class UsageError(MCPorterError):
    """Malformed flags, missing values or mutually exclusive options."""
    pass


class ConfigError(MCPorterError):
    """Configuration-related errors."""
    pass


class UnknownServerError(MCPorterError):
    """Raised when a server name is not present in the registry."""
    
    def __init__(self, name: str):
        super().__init__(f"Unknown MCP server '{name}'.", details={"name": name})
        self.name = name


class DuplicateDefinitionError(MCPorterError):
    """Raised when registering a definition whose name is already taken."""
    
    def __init__(self, name: str):
        super().__init__(
            f"MCP server '{name}' is already registered.",
            details={"name": name},
        )
        self.name = name


class AuthorizationError(MCPorterError):
    """Terminal failure of the authorization flow for a server."""
    
    def __init__(self, name: str, cause: BaseException):
        super().__init__(
            f"Failed to authorize '{name}': {describe_error(cause)}",
            details={"name": name},
        )
        self.name = name
        self.cause = cause


class ArtifactMetadataError(MCPorterError):
    """Generated CLI metadata is missing, unreadable or malformed."""
    pass


class GenerationError(MCPorterError):
    """CLI generation failed after validation (template, bundle or compile)."""
    pass


class TransportError(MCPorterError):
    """Errors raised by the runtime itself around transports."""
    pass


def describe_error(error: BaseException) -> str:
    """Return a human readable message for an exception."""
    if isinstance(error, MCPorterError):
        return error.message
    message = str(error)
    return message or error.__class__.__name__
