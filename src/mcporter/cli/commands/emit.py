"""
TypeScript emission command.
"""

from pathlib import Path
from typing import Optional

import click

from mcporter.cli.context import get_cli_context, resolve_target
from mcporter.cli.helpers import handle_errors
from mcporter.core.runtime import Runtime
from mcporter.generate.typescript import EMIT_MODES, render_typescript


def emit_commands():
    """Return the emit-ts command."""
    
    @click.command("emit-ts")
    @click.argument("server")
    @click.option("--out", "out_path", help="Write to this file instead of stdout")
    @click.option("--mode", type=click.Choice(EMIT_MODES), default="types", help="Declarations or a client wrapper")
    @click.pass_context
    @handle_errors
    def emit_ts_cmd(ctx: click.Context, server: str, out_path: Optional[str], mode: str):
        """Emit TypeScript declarations for a server's tools."""
        cli_context = get_cli_context(ctx)
        
        async def load_tools(runtime: Runtime):
            name = await resolve_target(runtime, server, None, cli_context.log)
            return name, await runtime.list_tools(name, auto_authorize=True)
        
        name, tools = cli_context.run_with_runtime(load_tools)
        source = render_typescript(name, tools, mode)
        if not out_path:
            click.echo(source, nl=False)
            return
        target = Path(out_path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source, encoding="utf-8")
        cli_context.log.info(f"Wrote {mode} for '{name}' to {target}")
        click.echo(f"Wrote {target}")
        
    return [emit_ts_cmd]
