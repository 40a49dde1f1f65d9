"""
Shared state for one CLI invocation.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import click

from mcporter.core.adhoc import looks_like_http_url, persist_ephemeral_server, resolve_ephemeral_server
from mcporter.core.config import load_server_definitions
from mcporter.core.models import EphemeralServerSpec, ServerDefinition
from mcporter.core.runtime import Runtime, create_runtime
from mcporter.utils.config import Settings, get_settings
from mcporter.utils.logging import LogContext, parse_log_level

T = TypeVar("T")


class CLIContext:
    """CLI context for passing state between commands."""
    
    def __init__(self, log: Optional[LogContext] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.log = log or LogContext.create(self.settings.log_level or "warn")
        self.config_path: Optional[str] = None
        self.root_dir: Optional[str] = None
        self.configured = False
        self._definitions: Optional[List[ServerDefinition]] = None
        
    def configure(
        self,
        config_path: Optional[str] = None,
        root_dir: Optional[str] = None,
        log_level: Optional[str] = None,
    ) -> None:
        """Apply the global flags."""
        self.config_path = config_path
        self.root_dir = root_dir
        self.log.set_level(parse_log_level(log_level, default=self.settings.log_level or "warn"))
        self.configured = True
        
    def load_definitions(self) -> List[ServerDefinition]:
        """Definitions from the resolved config file, loaded once."""
        if self._definitions is None:
            self._definitions = load_server_definitions(self.config_path, self.root_dir)
        return list(self._definitions)
    
    def create_runtime(self) -> Runtime:
        return create_runtime(
            root_dir=self.root_dir,
            servers=self.load_definitions(),
            log=self.log,
            load_config=False,
            oauth_timeout=self.settings.oauth_timeout_ms / 1000,
        )
    
    def run_with_runtime(self, work: Callable[[Runtime], Awaitable[T]]) -> T:
        """
        Run ``work`` inside one event loop with a fresh runtime.
        
        The runtime is closed in the same loop, whatever the outcome.
        """
        
        async def runner() -> T:
            runtime = self.create_runtime()
            try:
                return await work(runtime)
            finally:
                if self.settings.debug_hang:
                    self.log.info("[debug] beginning runtime.close()")
                await runtime.close()
                if self.settings.debug_hang:
                    self.log.info("[debug] runtime.close() completed")
                    
        return asyncio.run(runner())
    
    
def get_cli_context(ctx: click.Context) -> CLIContext:
    """Return the invocation's CLIContext, configuring it from the root params."""
    root = ctx.find_root()
    if not isinstance(root.obj, CLIContext):
        root.obj = CLIContext()
    cli_context: CLIContext = root.obj
    if not cli_context.configured:
        params: Dict[str, Any] = root.params
        cli_context.configure(
            config_path=params.get("config_path"),
            root_dir=params.get("root_dir"),
            log_level=params.get("log_level"),
        )
    return cli_context


async def resolve_target(
    runtime: Runtime,
    target: Optional[str],
    spec: Optional[EphemeralServerSpec],
    log: LogContext,
) -> Optional[str]:
    """
    Resolve a server name, URL or ad hoc spec to a registered server name.
    
    URLs reuse a configured definition with the same URL; otherwise they
    become ephemeral definitions registered with overwrite. A plain target
    given alongside ad hoc flags names the ad hoc server.
    """
    if target and looks_like_http_url(target):
        reused = runtime.registry.resolve_by_url(target)
        if reused:
            return reused
        if spec is None:
            spec = EphemeralServerSpec(http_url=target)
        target = None
        
    if spec is None:
        return target
    if target and not spec.name:
        spec = spec.model_copy(update={"name": target})
    resolution = resolve_ephemeral_server(spec)
    runtime.register_definition(resolution.definition, overwrite=True)
    if spec.persist_path:
        path = await persist_ephemeral_server(resolution, spec.persist_path)
        log.info(f"Saved '{resolution.name}' to {path}")
    return resolution.name
