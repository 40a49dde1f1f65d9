"""
Transport and client boundary over the official ``mcp`` SDK.

The SDK exposes transports as async context managers. These wrappers give
each one an explicit ``start()``/``close()`` lifecycle backed by an
``AsyncExitStack`` so the runtime can own and tear them down. A transport
must be closed from the task that started it.
"""

from contextlib import AsyncExitStack
from typing import Any, AsyncContextManager, Dict, Optional, Tuple

import httpx
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation

from mcporter import __version__
from mcporter.core.exceptions import TransportError
from mcporter.utils.logging import get_logger

logger = get_logger(__name__)

CLIENT_NAME = "mcporter"


class Transport:
    """Base class for a closeable MCP transport."""
    
    kind = "transport"
    
    def __init__(self) -> None:
        self._stack: Optional[AsyncExitStack] = None
        self._closed = False
        
    @property
    def closed(self) -> bool:
        return self._closed
    
    def _open(self) -> AsyncContextManager[Tuple[Any, ...]]:
        raise NotImplementedError
    
    def describe(self) -> str:
        return self.kind
    
    async def start(self) -> Tuple[Any, Any]:
        """
        Open the underlying SDK transport.
        
        Returns:
            The (read_stream, write_stream) pair
        """
        if self._closed:
            raise TransportError(f"{self.describe()} transport is closed")
        if self._stack is not None:
            raise TransportError(f"{self.describe()} transport already started")
        stack = AsyncExitStack()
        self._stack = stack
        logger.debug(f"Starting {self.describe()} transport")
        streams = await stack.enter_async_context(self._open())
        return streams[0], streams[1]
    
    async def enter_context(self, context: AsyncContextManager[Any]) -> Any:
        """Tie another async context (e.g. the client session) to this transport."""
        if self._stack is None:
            raise TransportError(f"{self.describe()} transport has not been started")
        return await self._stack.enter_async_context(context)
    
    async def close(self) -> None:
        """Close the transport; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        stack, self._stack = self._stack, None
        if stack is not None:
            logger.debug(f"Closing {self.describe()} transport")
            await stack.aclose()


class StdioTransport(Transport):
    """Child process transport."""
    
    kind = "stdio"
    
    def __init__(self, params: StdioServerParameters):
        super().__init__()
        self.params = params
        
    def describe(self) -> str:
        return f"stdio ({self.params.command})"
    
    def _open(self) -> AsyncContextManager[Tuple[Any, ...]]:
        return stdio_client(self.params)


class StreamableHttpTransport(Transport):
    """Streaming HTTP transport."""
    
    kind = "http"
    
    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
    ):
        super().__init__()
        self.url = url
        self.headers = dict(headers or {})
        self.auth = auth
        
    def describe(self) -> str:
        return f"http ({self.url})"
    
    def _open(self) -> AsyncContextManager[Tuple[Any, ...]]:
        return streamablehttp_client(self.url, headers=self.headers or None, auth=self.auth)


class SseTransport(Transport):
    """Event-stream transport used for legacy servers and as HTTP fallback."""
    
    kind = "sse"
    
    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
    ):
        super().__init__()
        self.url = url
        self.headers = dict(headers or {})
        self.auth = auth
        
    def describe(self) -> str:
        return f"sse ({self.url})"
    
    def _open(self) -> AsyncContextManager[Tuple[Any, ...]]:
        return sse_client(self.url, headers=self.headers or None, auth=self.auth)


class McpClient:
    """Thin client over ``mcp.ClientSession`` with a transport-agnostic API."""
    
    def __init__(self, name: str = CLIENT_NAME, version: str = __version__):
        self.client_info = Implementation(name=name, version=version)
        self._session: Optional[ClientSession] = None
        
    @property
    def connected(self) -> bool:
        return self._session is not None
    
    async def connect(self, transport: Transport) -> None:
        """Start the transport and perform the MCP handshake."""
        read_stream, write_stream = await transport.start()
        session = await transport.enter_context(
            ClientSession(read_stream, write_stream, client_info=self.client_info)
        )
        await session.initialize()
        self._session = session
        
    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise TransportError("MCP client is not connected")
        return self._session
    
    async def list_tools(self, params: Optional[Dict[str, Any]] = None) -> Any:
        params = params or {}
        return await self._require_session().list_tools(cursor=params.get("cursor"))
    
    async def call_tool(self, params: Dict[str, Any]) -> Any:
        return await self._require_session().call_tool(
            params["name"], arguments=params.get("arguments") or {}
        )
    
    async def list_resources(self, params: Optional[Dict[str, Any]] = None) -> Any:
        params = params or {}
        return await self._require_session().list_resources(cursor=params.get("cursor"))
