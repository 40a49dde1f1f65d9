"""
Server commands: list, call and auth.
"""

import asyncio
from typing import List, Optional

import click

from mcporter.cli.context import get_cli_context, resolve_target
from mcporter.cli.helpers import (
    build_ephemeral_spec,
    ephemeral_options,
    handle_errors,
    parse_call_arguments,
    parse_selector,
    print_call_result,
    print_definitions,
    print_tools,
)
from mcporter.cli.helpers.arguments import is_argument_token
from mcporter.cli.helpers.display import OUTPUT_FORMATS, call_result_is_error, echo_json, tools_as_json
from mcporter.core.auth import AuthorizationCoordinator
from mcporter.core.exceptions import MCPorterError, UsageError
from mcporter.core.runtime import Runtime


def server_commands():
    """Return the list, call and auth commands."""
    
    @click.command("list")
    @click.argument("target", required=False)
    @click.option("--schema", is_flag=True, help="Show tool input schemas")
    @click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
    @ephemeral_options
    @click.pass_context
    @handle_errors
    def list_cmd(ctx: click.Context, target: Optional[str], schema: bool, as_json: bool, **ephemeral):
        """List configured MCP servers, or the tools of one server."""
        cli_context = get_cli_context(ctx)
        spec = build_ephemeral_spec(**ephemeral)
        
        if not target and spec is None:
            definitions = cli_context.load_definitions()
            if as_json:
                echo_json([definition.to_json_dict() for definition in definitions])
            else:
                print_definitions(definitions)
            return
        
        async def list_server_tools(runtime: Runtime):
            name = await resolve_target(runtime, target, spec, cli_context.log)
            tools = await runtime.list_tools(name, auto_authorize=True)
            return runtime.get_definition(name), tools
        
        definition, tools = cli_context.run_with_runtime(list_server_tools)
        if as_json:
            echo_json(tools_as_json(definition, tools))
        else:
            print_tools(definition, tools, show_schema=schema)
            
            
    @click.command("call")
    @click.argument("selector", required=False)
    @click.argument("tokens", nargs=-1)
    @click.option("--server", "server_option", help="Server name or URL")
    @click.option("--tool", "tool_option", help="Tool name")
    @click.option("--args", "args_json", help="Tool arguments as a JSON object")
    @click.option(
        "--output",
        type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
        default="auto",
        help="Output format",
    )
    @click.option("--raw", is_flag=True, help="Shortcut for --output raw")
    @click.option("--timeout", "timeout_ms", type=int, help="Call timeout in milliseconds")
    @ephemeral_options
    @click.pass_context
    @handle_errors
    def call_cmd(
        ctx: click.Context,
        selector: Optional[str],
        tokens: tuple,
        server_option: Optional[str],
        tool_option: Optional[str],
        args_json: Optional[str],
        output: str,
        raw: bool,
        timeout_ms: Optional[int],
        **ephemeral,
    ):
        """
        Call a tool.

        SELECTOR is server.tool or url.tool; remaining arguments are
        key=value or key:value pairs.
        """
        cli_context = get_cli_context(ctx)
        spec = build_ephemeral_spec(**ephemeral)
        
        positional: List[str] = list(tokens)
        if selector and is_argument_token(selector):
            positional.insert(0, selector)
            selector = None
        server_ref, tool_name = parse_selector(selector) if selector else (None, None)
        server_ref = server_option or server_ref
        tool_name = tool_option or tool_name
        arguments = parse_call_arguments(positional, args_json)
        
        if not server_ref and spec is None:
            raise UsageError("Usage: mcporter call <server.tool> [key=value ...]")
        if not tool_name:
            raise UsageError("Missing tool name. Use server.tool or --tool <name>.")
        timeout_ms = timeout_ms or cli_context.settings.call_timeout_ms
        if timeout_ms <= 0:
            raise UsageError("--timeout must be a positive number of milliseconds.")
        
        async def call_tool(runtime: Runtime):
            name = await resolve_target(runtime, server_ref, spec, cli_context.log)
            try:
                async with asyncio.timeout(timeout_ms / 1000):
                    return await runtime.call_tool(name, tool_name, arguments)
            except TimeoutError:
                raise MCPorterError(
                    f"Call to {name}.{tool_name} timed out after {timeout_ms}ms."
                ) from None
            
        result = cli_context.run_with_runtime(call_tool)
        print_call_result(result, "raw" if raw else output.lower())
        if call_result_is_error(result):
            ctx.exit(1)
            
            
    @click.command("auth")
    @click.argument("target", required=False)
    @click.option("--reset", is_flag=True, help="Clear cached credentials first")
    @ephemeral_options
    @click.pass_context
    @handle_errors
    def auth_cmd(ctx: click.Context, target: Optional[str], reset: bool, **ephemeral):
        """Complete the OAuth flow for a server without listing tools."""
        cli_context = get_cli_context(ctx)
        spec = build_ephemeral_spec(**ephemeral)
        
        async def authorize(runtime: Runtime):
            name = await resolve_target(runtime, target, spec, cli_context.log)
            if not name:
                raise UsageError(
                    "Usage: mcporter auth <server | url> [--http-url <url> | --stdio <command>]"
                )
            coordinator = AuthorizationCoordinator(runtime, cli_context.log)
            return await coordinator.authorize(name, reset=reset)
        
        result = cli_context.run_with_runtime(authorize)
        count = result.tool_count
        click.echo(f"Authorized '{result.name}' ({count} tool{'' if count == 1 else 's'} available).")
        
    return [list_cmd, call_cmd, auth_cmd]
