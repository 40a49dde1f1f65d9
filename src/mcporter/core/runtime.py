"""
Runtime: connection manager for MCP servers.

The runtime owns the definition registry and at most one live connection per
server name. Connections are established lazily on first use and shared by
every later call; concurrent first-use calls wait on the same pending
connection instead of racing to open a second one. Each connection lives in
an owner task that opens the transport, parks until ``close()`` and then
closes it from that same task.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from mcp import StdioServerParameters

from mcporter.core.auth import is_authorization_error
from mcporter.core.config import load_server_definitions
from mcporter.core.exceptions import TransportError, describe_error
from mcporter.core.models import (
    HttpCommand,
    ServerDefinition,
    SseCommand,
    StdioCommand,
    ToolInfo,
)
from mcporter.core.oauth import build_oauth_provider
from mcporter.core.registry import DefinitionRegistry
from mcporter.core.transports import (
    McpClient,
    SseTransport,
    StdioTransport,
    StreamableHttpTransport,
    Transport,
)
from mcporter.utils.logging import LogContext


@dataclass
class ConnectionHandle:
    """Live client/transport pair for one server."""
    
    client: McpClient
    transport: Transport
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ConnectionOwner:
    """Task that opened a connection and will close it once ``stop`` is set."""
    
    task: "asyncio.Task[None]"
    stop: asyncio.Event
    ready: "asyncio.Future[ConnectionHandle]"


def _fail(future: "asyncio.Future[Any]", error: BaseException) -> None:
    if not future.done():
        future.set_exception(error)
        # Mark retrieved; waiters still receive the error.
        future.exception()


def _field(item: Any, name: str) -> Any:
    """Read a field from an SDK model or a plain dict."""
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def normalize_tool(tool: Any) -> ToolInfo:
    """Reduce an SDK tool description to name, description and schemas."""
    return ToolInfo(
        name=_field(tool, "name"),
        description=_field(tool, "description"),
        input_schema=_field(tool, "inputSchema"),
        output_schema=_field(tool, "outputSchema"),
    )


class Runtime:
    """
    Connection manager and entry point for tool operations.
    
    Args:
        servers: Initial server definitions
        log: Logging context shared with the caller
        root_dir: Base directory for relative stdio working directories
        oauth_timeout: Seconds allowed for interactive OAuth consent
    """
    
    def __init__(
        self,
        servers: Optional[Iterable[ServerDefinition]] = None,
        log: Optional[LogContext] = None,
        root_dir: Optional[Union[str, Path]] = None,
        oauth_timeout: float = 300.0,
    ):
        self.log = log or LogContext.silent()
        self.root_dir = Path(root_dir).expanduser() if root_dir else None
        self.oauth_timeout = oauth_timeout
        self.registry = DefinitionRegistry(servers)
        self._connections: Dict[str, ConnectionHandle] = {}
        self._pending: Dict[str, "asyncio.Future[ConnectionHandle]"] = {}
        self._owners: Dict[str, ConnectionOwner] = {}
        self._closed = False
        
    # Definitions
    
    def get_definitions(self) -> List[ServerDefinition]:
        return self.registry.definitions()
    
    def get_definition(self, name: str) -> ServerDefinition:
        return self.registry.resolve_by_name(name)
    
    def register_definition(self, definition: ServerDefinition, overwrite: bool = False) -> None:
        """Register a definition (e.g. an ephemeral server) with this runtime."""
        self.registry.register(definition, overwrite=overwrite)
        
    def is_connected(self, name: str) -> bool:
        return name in self._connections
    
    # Tool operations
    
    async def list_tools(self, name: str, auto_authorize: bool = False) -> List[ToolInfo]:
        """
        List the tools a server exposes.
        
        Args:
            name: Server name
            auto_authorize: Promote the server to OAuth if it rejects the
                unauthenticated connection
                
        Returns:
            Normalized tool descriptions across all result pages
        """
        handle = await self.connect(name, auto_authorize=auto_authorize)
        tools: List[ToolInfo] = []
        cursor: Optional[str] = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            result = await handle.client.list_tools(params)
            tools.extend(normalize_tool(tool) for tool in (_field(result, "tools") or []))
            cursor = _field(result, "nextCursor")
            if not cursor:
                return tools
            
    async def call_tool(
        self,
        name: str,
        tool_name: str,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Invoke a tool and return the SDK result unchanged."""
        handle = await self.connect(name)
        self.log.debug(f"Calling {name}.{tool_name}")
        return await handle.client.call_tool({"name": tool_name, "arguments": args or {}})
    
    async def list_resources(self, name: str, cursor: Optional[str] = None) -> Any:
        handle = await self.connect(name)
        return await handle.client.list_resources({"cursor": cursor} if cursor else {})
    
    # Connections
    
    async def connect(self, name: str, auto_authorize: bool = False) -> ConnectionHandle:
        """
        Return the live connection for ``name``, opening it on first use.
        
        Each connection is opened, kept and closed by its own owner task, since
        SDK transports must exit in the task that entered them. Overlapping
        first-use calls all wait on the owner's pending future.
        """
        if self._closed:
            raise TransportError("Runtime is closed")
        handle = self._connections.get(name)
        if handle is not None:
            return handle
        pending = self._pending.get(name)
        if pending is None:
            definition = self.get_definition(name)
            pending = asyncio.get_running_loop().create_future()
            self._pending[name] = pending
            stop = asyncio.Event()
            task = asyncio.create_task(
                self._own_connection(definition, auto_authorize, pending, stop),
                name=f"mcporter-connection-{name}",
            )
            self._owners[name] = ConnectionOwner(task=task, stop=stop, ready=pending)
        # Shielded so a cancelled caller never cancels the shared future.
        return await asyncio.shield(pending)
    
    async def _own_connection(
        self,
        definition: ServerDefinition,
        auto_authorize: bool,
        ready: "asyncio.Future[ConnectionHandle]",
        stop: asyncio.Event,
    ) -> None:
        name = definition.name
        try:
            handle = await self._establish(definition, auto_authorize)
        except BaseException as error:
            self._pending.pop(name, None)
            self._owners.pop(name, None)
            if isinstance(error, Exception):
                _fail(ready, error)
                return
            _fail(ready, TransportError(f"Connection to '{name}' was interrupted"))
            raise
        
        self._pending.pop(name, None)
        try:
            if self._closed:
                _fail(ready, TransportError("Runtime is closed"))
            else:
                self._connections[name] = handle
                ready.set_result(handle)
                self.log.debug(f"Connected to '{name}' via {handle.transport.describe()}")
                await stop.wait()
        finally:
            try:
                await handle.transport.close()
            except Exception as error:
                self.log.warn(f"Failed to close {handle.transport.describe()}: {describe_error(error)}")
                
    async def _establish(self, definition: ServerDefinition, auto_authorize: bool) -> ConnectionHandle:
        try:
            return await self._open_for_definition(definition)
        except Exception as error:
            if (
                auto_authorize
                and definition.url is not None
                and not definition.uses_oauth
                and is_authorization_error(error)
            ):
                self.log.info(
                    f"Server '{definition.name}' requires authorization; enabling OAuth for the next attempt."
                )
                self.registry.register(definition.with_oauth(), overwrite=True)
            raise
        
    async def _open_for_definition(self, definition: ServerDefinition) -> ConnectionHandle:
        command = definition.command
        if isinstance(command, StdioCommand):
            return await self._open(StdioTransport(self._stdio_params(command)))
        
        auth = (
            build_oauth_provider(definition, self.log, timeout=self.oauth_timeout)
            if definition.uses_oauth
            else None
        )
        if isinstance(command, SseCommand):
            return await self._open(SseTransport(command.url, command.headers, auth))
        
        assert isinstance(command, HttpCommand)
        try:
            return await self._open(StreamableHttpTransport(command.url, command.headers, auth))
        except Exception as error:
            if is_authorization_error(error):
                raise
            self.log.debug(
                f"Streamable HTTP connection to '{definition.name}' failed "
                f"({describe_error(error)}); falling back to SSE"
            )
            return await self._open(SseTransport(command.url, command.headers, auth))
        
    def _stdio_params(self, command: StdioCommand) -> StdioServerParameters:
        cwd = command.cwd
        if cwd and self.root_dir and not Path(cwd).is_absolute():
            cwd = str(self.root_dir / cwd)
        elif not cwd and self.root_dir:
            cwd = str(self.root_dir)
        return StdioServerParameters(
            command=command.executable,
            args=list(command.args),
            env=dict(command.env) if command.env else None,
            cwd=cwd,
        )
    
    async def _open(self, transport: Transport) -> ConnectionHandle:
        client = McpClient()
        try:
            await client.connect(transport)
        except BaseException:
            await self._close_transport(transport)
            raise
        return ConnectionHandle(client=client, transport=transport)
    
    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as error:
            self.log.debug(f"Ignoring error while closing {transport.describe()}: {describe_error(error)}")
            
    async def close(self) -> None:
        """
        Close every connection opened by this runtime.
        
        Each owner task closes its own transport; failures are logged and do
        not stop the remaining teardown. Connections still being opened are
        cancelled.
        """
        self._closed = True
        owners, self._owners = self._owners, {}
        self._connections.clear()
        for owner in owners.values():
            if owner.ready.done():
                owner.stop.set()
            else:
                owner.task.cancel()
        if owners:
            await asyncio.wait([owner.task for owner in owners.values()])
            
    async def __aenter__(self) -> "Runtime":
        return self
    
    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def create_runtime(
    config_path: Optional[Union[str, Path]] = None,
    root_dir: Optional[Union[str, Path]] = None,
    servers: Optional[Iterable[ServerDefinition]] = None,
    log: Optional[LogContext] = None,
    load_config: bool = True,
    oauth_timeout: float = 300.0,
) -> Runtime:
    """
    Build a runtime from the resolved config file plus explicit servers.
    
    Explicit servers override config entries with the same name.
    """
    definitions: List[ServerDefinition] = []
    if load_config:
        definitions.extend(load_server_definitions(config_path, root_dir))
    definitions.extend(servers or [])
    return Runtime(definitions, log=log, root_dir=root_dir, oauth_timeout=oauth_timeout)
