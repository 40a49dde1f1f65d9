"""
Template for generated standalone CLIs.

The generated script is data-driven: the server definition and tool list
are embedded as JSON and a click sub-command is built for every tool at
import time, with one option per input-schema property.
"""

import json
from string import Template
from typing import Any, Dict, List

from mcporter import __version__
from mcporter.core.models import CliArtifactMetadata, ServerDefinition, ToolInfo
from mcporter.generate.metadata import metadata_comment

PYTHON_SHEBANG = "#!/usr/bin/env python3"
UV_SHEBANG = "#!/usr/bin/env -S uv run --script"

UV_SCRIPT_BLOCK = """# /// script
# requires-python = ">=3.11"
# dependencies = ["mcporter>=$version", "click>=8.1"]
# ///"""

CLI_TEMPLATE = '''$shebang
$metadata_line
"""
$title

Generated by mcporter $version for the '$server_name' MCP server.
Regenerate with: mcporter generate-cli --from <this file>
"""

import asyncio
import json
import re
import sys

import click

from mcporter.cli.helpers.arguments import coerce_value
from mcporter.cli.helpers.display import print_call_result
from mcporter.core.exceptions import describe_error
from mcporter.core.models import ServerDefinition
from mcporter.core.runtime import Runtime

SERVER_DEFINITION = json.loads($definition_literal)
TOOLS = json.loads($tools_literal)
DEFAULT_TIMEOUT_MS = $timeout_ms

SCHEMA_TYPES = {"integer": click.INT, "number": click.FLOAT, "boolean": click.BOOL}


async def invoke_tool(tool_name, arguments, timeout_ms):
    definition = ServerDefinition.model_validate(SERVER_DEFINITION)
    runtime = Runtime([definition])
    try:
        async with asyncio.timeout(timeout_ms / 1000):
            return await runtime.call_tool(definition.name, tool_name, arguments)
    finally:
        await runtime.close()


def build_tool_command(tool):
    schema = tool.get("inputSchema") or {}
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    param_names = {}
    params = []
    for prop_name, prop_schema in properties.items():
        param_name = re.sub(r"\\W", "_", prop_name).lower()
        if not param_name or param_name[0].isdigit():
            param_name = "arg_" + param_name
        param_names[param_name] = prop_name
        prop_schema = prop_schema if isinstance(prop_schema, dict) else {}
        params.append(
            click.Option(
                ["--" + prop_name.replace("_", "-"), param_name],
                type=SCHEMA_TYPES.get(prop_schema.get("type"), click.STRING),
                required=prop_name in required,
                help=prop_schema.get("description"),
            )
        )

    @click.pass_context
    def callback(ctx, **options):
        arguments = {}
        for param_name, value in options.items():
            if value is None:
                continue
            if isinstance(value, str):
                value = coerce_value(value)
            arguments[param_names[param_name]] = value
        try:
            result = asyncio.run(invoke_tool(tool["name"], arguments, ctx.obj["timeout_ms"]))
        except Exception as error:
            click.echo(f"Error: {describe_error(error)}", err=True)
            sys.exit(1)
        print_call_result(result, ctx.obj["output"])

    return click.Command(
        name=tool["name"].replace("_", "-"),
        callback=callback,
        params=params,
        help=tool.get("description") or None,
    )


@click.group(help=$help_literal)
@click.option("--timeout", "timeout_ms", type=int, default=DEFAULT_TIMEOUT_MS, show_default=True,
              help="Tool call timeout in milliseconds")
@click.option("--output", type=click.Choice(["auto", "text", "json", "raw"]), default="auto",
              help="Output format")
@click.pass_context
def cli(ctx, timeout_ms, output):
    ctx.ensure_object(dict).update(timeout_ms=timeout_ms, output=output)


for _tool in TOOLS:
    cli.add_command(build_tool_command(_tool))


if __name__ == "__main__":
    cli()
'''


def _tool_payload(tool: ToolInfo) -> Dict[str, Any]:
    return tool.model_dump(by_alias=True, exclude_none=True)


def render_cli_template(
    definition: ServerDefinition,
    tools: List[ToolInfo],
    metadata: CliArtifactMetadata,
    runtime: str,
    timeout_ms: int,
) -> str:
    """
    Render the standalone CLI source.
    
    Args:
        definition: Server the CLI is bound to
        tools: Tools discovered during introspection
        metadata: Metadata embedded on the marker line
        runtime: ``python`` or ``uv`` (selects shebang and inline deps)
        timeout_ms: Default per-call timeout
    """
    shebang = PYTHON_SHEBANG
    if runtime == "uv":
        shebang = UV_SHEBANG + "\n" + Template(UV_SCRIPT_BLOCK).substitute(version=__version__)
    title = definition.description or f"Command-line interface for the {definition.name} MCP server."
    definition_json = json.dumps(definition.to_json_dict(), indent=2, sort_keys=True)
    tools_json = json.dumps([_tool_payload(tool) for tool in tools], indent=2, sort_keys=True)
    return Template(CLI_TEMPLATE).substitute(
        shebang=shebang,
        metadata_line=metadata_comment(metadata),
        title=title.replace("\\", "\\\\").replace('"""', "'''"),
        version=__version__,
        server_name=definition.name,
        definition_literal=repr(definition_json),
        tools_literal=repr(tools_json),
        timeout_ms=timeout_ms,
        help_literal=repr(title),
    )
