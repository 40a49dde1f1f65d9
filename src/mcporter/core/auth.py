"""
Authorization coordinator.

Runs the interactive authorization flow for a server: one optimistic
attempt, and a single retry when the first failure looks like an
authorization rejection. The runtime promotes the server to OAuth between
the two attempts, so the retry goes through the browser consent flow.
"""

import asyncio
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import httpx

from mcporter.core.exceptions import AuthorizationError
from mcporter.core.models import ServerDefinition
from mcporter.utils.logging import LogContext

if TYPE_CHECKING:
    from mcporter.core.runtime import Runtime

AUTH_STATUS_CODES = {401, 403}

# Compatibility shim for transports that only report auth failures as text.
AUTH_ERROR_PATTERN = re.compile(r"unauthorized|invalid[_-]?token|\b(401|403)\b", re.IGNORECASE)


def _walk_errors(error: BaseException) -> Iterator[BaseException]:
    """Yield the error, members of exception groups and chained causes."""
    seen = set()
    stack = [error]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend(getattr(current, "exceptions", ()) or ())
        if current.__cause__ is not None:
            stack.append(current.__cause__)


def _status_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_authorization_error(error: BaseException) -> bool:
    """
    Decide whether an error means the server wants (re)authorization.
    
    HTTP status information is used when the transport exposes it; the
    message pattern is the fallback.
    """
    for candidate in _walk_errors(error):
        if _status_code(candidate) in AUTH_STATUS_CODES:
            return True
        if AUTH_ERROR_PATTERN.search(str(candidate)):
            return True
    return False


async def reset_token_cache(definition: ServerDefinition, log: LogContext) -> bool:
    """
    Delete a definition's cached credentials.
    
    Returns:
        True if a cache directory is configured (whether or not it existed)
    """
    if not definition.token_cache_dir:
        log.warn(f"Server '{definition.name}' does not expose a token cache path.")
        return False
    cache_dir = Path(definition.token_cache_dir).expanduser()
    await asyncio.to_thread(_remove_tree, cache_dir)
    log.info(f"Cleared cached credentials for '{definition.name}' at {cache_dir}")
    return True


def _remove_tree(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


@dataclass
class AuthorizationResult:
    """Outcome of a successful authorization."""
    
    name: str
    tool_count: int
    attempts: int


class AuthorizationCoordinator:
    """Drives the two-attempt authorization protocol for one runtime."""
    
    MAX_ATTEMPTS = 2
    
    def __init__(self, runtime: "Runtime", log: Optional[LogContext] = None):
        self.runtime = runtime
        self.log = log or runtime.log
        
    async def authorize(self, name: str, reset: bool = False) -> AuthorizationResult:
        """
        Authorize a server by listing its tools with OAuth promotion enabled.
        
        Args:
            name: Server name
            reset: Delete cached credentials first
            
        Raises:
            UnknownServerError: If the server is not registered
            AuthorizationError: After a non-retryable or second failure
        """
        definition = self.runtime.get_definition(name)
        if reset:
            await reset_token_cache(definition, self.log)
            
        attempt = 0
        while True:
            attempt += 1
            try:
                self.log.info(f"Initiating OAuth flow for '{name}'...")
                tools = await self.runtime.list_tools(name, auto_authorize=True)
            except Exception as error:
                if attempt < self.MAX_ATTEMPTS and is_authorization_error(error):
                    self.log.warn(
                        "Server signaled OAuth after the initial attempt. Retrying with browser flow..."
                    )
                    continue
                raise AuthorizationError(name, error) from error
            count = len(tools)
            self.log.info(
                f"Authorization complete. {count} tool{'' if count == 1 else 's'} available."
            )
            return AuthorizationResult(name=name, tool_count=count, attempts=attempt)
