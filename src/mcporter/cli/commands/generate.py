"""
Generated CLI commands: generate-cli and inspect-cli.
"""

import asyncio
import json
from typing import Optional

import click

from mcporter.cli.context import get_cli_context
from mcporter.cli.helpers import handle_errors
from mcporter.core.models import ArtifactKind, FlagSetting
from mcporter.generate.generator import generate_cli
from mcporter.generate.metadata import describe_invocation, read_cli_metadata
from mcporter.generate.request import (
    RUNTIMES,
    GenerateFlags,
    build_generate_cli_command,
    resolve_generate_request,
    resolve_generate_request_from_artifact,
    shell_quote,
    validate_generate_flags,
)

# Value click stores when --bundle/--compile is given without a path.
FLAG_WITHOUT_PATH = "\0on"


def to_flag_setting(value: Optional[str]) -> Optional[FlagSetting]:
    """Map an optional-value option to a FlagSetting; None means not given."""
    if value is None:
        return None
    if value == FLAG_WITHOUT_PATH:
        return FlagSetting.on()
    return FlagSetting.custom(value)


def generate_commands():
    """Return the generate-cli and inspect-cli commands."""
    
    @click.command("generate-cli")
    @click.option("--server", help="Server name, URL or JSON definition")
    @click.option("--name", help="Friendly name (otherwise inferred)")
    @click.option("--command", "command_line", help="MCP command or URL (required without --server)")
    @click.option("--description", help="Server description")
    @click.option("--output", help="Override output file path")
    @click.option(
        "--bundle",
        is_flag=False,
        flag_value=FLAG_WITHOUT_PATH,
        default=None,
        metavar="[PATH]",
        help="Create a zipapp bundle (auto-named when PATH is omitted)",
    )
    @click.option(
        "--compile",
        "compile_",
        is_flag=False,
        flag_value=FLAG_WITHOUT_PATH,
        default=None,
        metavar="[PATH]",
        help="Compile with PyInstaller; requires PyInstaller",
    )
    @click.option("--minify/--no-minify", default=None, help="Compress the bundle")
    @click.option("--runtime", type=click.Choice(RUNTIMES), help="Force runtime selection")
    @click.option("--timeout", "timeout_ms", type=int, help="Introspection timeout in ms (default 30000)")
    @click.option("--from", "from_path", help="Reuse metadata from an existing CLI artifact")
    @click.option("--dry-run", is_flag=True, help="Print the resolved command without executing (requires --from)")
    @click.pass_context
    @handle_errors
    def generate_cli_cmd(
        ctx: click.Context,
        server: Optional[str],
        name: Optional[str],
        command_line: Optional[str],
        description: Optional[str],
        output: Optional[str],
        bundle: Optional[str],
        compile_: Optional[str],
        minify: Optional[bool],
        runtime: Optional[str],
        timeout_ms: Optional[int],
        from_path: Optional[str],
        dry_run: bool,
    ):
        """Generate a standalone CLI bound to one server."""
        cli_context = get_cli_context(ctx)
        flags = GenerateFlags(
            server=server,
            name=name,
            command=command_line,
            description=description,
            output=output,
            bundle=to_flag_setting(bundle),
            compile=to_flag_setting(compile_),
            runtime=runtime,
            timeout_ms=timeout_ms,
            minify=minify,
            from_path=from_path,
            dry_run=dry_run,
        )
        validate_generate_flags(flags)
        
        metadata = None
        if flags.from_path:
            metadata = asyncio.run(read_cli_metadata(flags.from_path))
            request = resolve_generate_request_from_artifact(
                flags, metadata, cli_context.config_path, cli_context.root_dir
            )
            if flags.dry_run:
                click.echo("Dry run — would execute:")
                click.echo(f"  {build_generate_cli_command(request)}")
                return
        else:
            request = resolve_generate_request(flags, cli_context.config_path, cli_context.root_dir)
            
        result = asyncio.run(generate_cli(request, cli_context.log))
        if metadata is not None:
            kind = metadata.artifact.kind
            if kind == ArtifactKind.BINARY and result.compile_path:
                click.echo(f"Regenerated compiled CLI at {result.compile_path}")
            elif kind == ArtifactKind.BUNDLE and result.bundle_path:
                click.echo(f"Regenerated bundled CLI at {result.bundle_path}")
            else:
                click.echo(f"Regenerated template at {result.output_path}")
            return
        click.echo(f"Generated CLI at {result.output_path}")
        if result.bundle_path:
            click.echo(f"Bundled executable created at {result.bundle_path}")
        if result.compile_path:
            click.echo(f"Compiled executable created at {result.compile_path}")
            
            
    @click.command("inspect-cli")
    @click.argument("artifact")
    @click.option("--json", "as_json", is_flag=True, help="Print the raw metadata as JSON")
    @click.option(
        "--format",
        "output_format",
        type=click.Choice(["text", "json"]),
        default="text",
        help="Output format",
    )
    @handle_errors
    def inspect_cli_cmd(artifact: str, as_json: bool, output_format: str):
        """Show metadata and regeneration info for a generated CLI artifact."""
        metadata = asyncio.run(read_cli_metadata(artifact))
        if as_json or output_format == "json":
            click.echo(json.dumps(metadata.to_json_dict(), indent=2))
            return
        
        generated = metadata.generated_at.isoformat().replace("+00:00", "Z")
        click.echo(f"Artifact: {metadata.artifact.path} ({metadata.artifact.kind.value})")
        click.echo(f"Server: {metadata.server.name or '(unnamed)'}")
        source = metadata.server.source
        if source is not None:
            click.echo(f"Source: {source.kind.value}" + (f" ({source.path})" if source.path else ""))
        click.echo(f"Generated: {generated} via {metadata.generator.name}@{metadata.generator.version}")
        if metadata.invocation.runtime:
            click.echo(f"Runtime: {metadata.invocation.runtime}")
        click.echo("Invocation flags:")
        for line in describe_invocation(metadata.invocation):
            click.echo(f"  {line}")
        request = resolve_generate_request_from_artifact(GenerateFlags(), metadata)
        click.echo("Regenerate with:")
        click.echo(f"  mcporter generate-cli --from {shell_quote(artifact)}")
        click.echo("Underlying generate-cli command:")
        click.echo(f"  {build_generate_cli_command(request)}")
        
    return [generate_cli_cmd, inspect_cli_cmd]
