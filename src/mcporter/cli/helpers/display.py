"""
Display helper functions for CLI commands.

Tables and status lines go through Rich; tool results and JSON documents are
written with ``click.echo`` so they stay byte-exact for piping.
"""

import json
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from mcporter.core.models import HttpCommand, ServerDefinition, SseCommand, StdioCommand, ToolInfo

console = Console()

OUTPUT_FORMATS = ("auto", "text", "json", "raw")


def to_data(value: Any) -> Any:
    """Convert SDK models to plain JSON-compatible data."""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return value


def echo_json(value: Any) -> None:
    click.echo(json.dumps(to_data(value), indent=2, default=str))
    
    
def describe_target(definition: ServerDefinition) -> str:
    command = definition.command
    if isinstance(command, StdioCommand):
        return command.describe()
    if isinstance(command, (HttpCommand, SseCommand)):
        return command.url
    return ""


def describe_source(definition: ServerDefinition) -> str:
    source = definition.source
    if source is None:
        return ""
    if source.path:
        return f"{source.kind.value} ({source.path})"
    return source.kind.value


def print_definitions(definitions: List[ServerDefinition]) -> None:
    """Table of configured servers."""
    if not definitions:
        console.print("[yellow]No MCP servers configured[/yellow]")
        console.print("[dim]Add servers to config/mcporter.json or use --http-url / --stdio[/dim]")
        return
    
    table = Table(
        title=f"MCP Servers ({len(definitions)} total)",
        show_header=True,
        header_style="bold cyan",
        title_style="bold cyan",
    )
    table.add_column("Name", style="green")
    table.add_column("Transport", style="blue")
    table.add_column("Target", style="white", overflow="fold")
    table.add_column("Source", style="dim")
    
    for definition in definitions:
        transport = definition.kind.value
        if definition.uses_oauth:
            transport += " (oauth)"
        table.add_row(
            definition.name,
            transport,
            describe_target(definition),
            describe_source(definition),
        )
    console.print(table)
    
    
def print_tools(definition: ServerDefinition, tools: List[ToolInfo], show_schema: bool = False) -> None:
    """Tools of one server, optionally with their input schemas."""
    header = f"[bold cyan]{definition.name}[/bold cyan]"
    if definition.description:
        header += f" [dim]- {definition.description}[/dim]"
    console.print(header)
    if not tools:
        console.print("  [yellow]No tools exposed[/yellow]")
        return
    for tool in tools:
        console.print(f"  • [bold green]{tool.name}[/bold green]", highlight=False)
        if tool.description:
            console.print(f"    {tool.description}", markup=False, highlight=False)
        if show_schema:
            schema = tool.input_schema if tool.input_schema is not None else {}
            for line in json.dumps(schema, indent=2).splitlines():
                console.print(f"    {line}", markup=False, highlight=False, style="dim")
                
                
def tools_as_json(definition: ServerDefinition, tools: List[ToolInfo]) -> Dict[str, Any]:
    return {
        "server": definition.name,
        "tools": [tool.model_dump(by_alias=True) for tool in tools],
    }


def _text_parts(data: Dict[str, Any]) -> Optional[List[str]]:
    content = data.get("content")
    if not isinstance(content, list):
        return None
    parts = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(str(item.get("text", "")))
        else:
            parts.append(json.dumps(item, indent=2, default=str))
    return parts


def call_result_is_error(result: Any) -> bool:
    data = to_data(result)
    return isinstance(data, dict) and bool(data.get("isError"))


def print_call_result(result: Any, output: str = "auto") -> None:
    """
    Print a tool result.
    
    Args:
        result: Result returned by the server, unchanged
        output: ``raw`` dumps the full result; ``json`` prefers structured
            content then JSON embedded in text; ``text`` joins text content;
            ``auto`` picks structured content, then text, then raw
    """
    data = to_data(result)
    if output == "raw" or not isinstance(data, dict):
        echo_json(data)
        return
    
    structured = data.get("structuredContent")
    parts = _text_parts(data)
    if output == "json":
        if structured is not None:
            echo_json(structured)
            return
        if parts and len(parts) == 1:
            try:
                echo_json(json.loads(parts[0]))
                return
            except ValueError:
                pass
        echo_json(data)
        return
    
    if output == "text":
        click.echo("\n".join(parts or []))
        return
    
    if structured is not None:
        echo_json(structured)
    elif parts is not None:
        click.echo("\n".join(parts))
    else:
        echo_json(data)
