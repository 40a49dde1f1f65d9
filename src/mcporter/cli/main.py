"""
Main CLI interface for mcporter.

Explicit sub-commands are dispatched by click; any other first token is
routed by :func:`infer_command_routing`, so ``mcporter linear`` lists a
server's tools and ``mcporter linear.list_issues limit:5`` calls one.
"""

import sys
from typing import List, Optional

import click
from pydantic import ValidationError

from mcporter import __version__
from mcporter.cli.commands import emit_commands, generate_commands, server_commands
from mcporter.cli.context import CLIContext, get_cli_context
from mcporter.cli.helpers import report_error
from mcporter.cli.routing import infer_command_routing
from mcporter.utils.config import Settings, get_settings
from mcporter.utils.logging import LogContext
from mcporter.utils.process import ProcessScope, force_exit


class RoutingGroup(click.Group):
    """Group that infers ``list``/``call`` for unknown first tokens."""
    
    def resolve_command(self, ctx: click.Context, args: List[str]):
        token = args[0] if args else None
        if token is None or token in self.commands or ctx.resilient_parsing:
            return super().resolve_command(ctx, args)
        cli_context = get_cli_context(ctx)
        decision = infer_command_routing(
            token,
            args[1:],
            cli_context.load_definitions(),
            log=cli_context.log,
            commands=list(self.commands),
        )
        if decision.kind == "abort":
            ctx.exit(decision.exit_code)
        cli_context.log.debug(f"Routing '{token}' to '{decision.command}'")
        return super().resolve_command(ctx, [decision.command, *decision.args])
    
    
@click.group(cls=RoutingGroup)
@click.option(
    "--config",
    "config_path",
    help="Path to mcporter.json (defaults to ./config/mcporter.json)",
)
@click.option(
    "--root",
    "root_dir",
    help="Root directory for stdio command cwd",
)
@click.option(
    "--log-level",
    help="Log verbosity: debug, info, warn or error (default warn)",
)
@click.version_option(version=__version__, prog_name="mcporter")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], root_dir: Optional[str], log_level: Optional[str]):
    """
    Command-line client for MCP servers.

    List servers and tools, call tools, run OAuth flows and generate
    standalone CLIs. Servers come from ./config/mcporter.json,
    ~/.mcporter/mcporter.json or ad hoc --http-url/--stdio flags.

    \b
    Examples:
      mcporter list
      mcporter linear.list_issues limit:5 orderBy:updatedAt
      mcporter 'https://www.shadcn.io/api/mcp.getComponents()'
      mcporter generate-cli --from context7.py
    """
    get_cli_context(ctx)


def register_commands():
    """Register all command modules with the main CLI."""
    for cmd in server_commands():
        cli.add_command(cmd)
    for cmd in generate_commands():
        cli.add_command(cmd)
    for cmd in emit_commands():
        cli.add_command(cmd)
        
        
register_commands()


def run_cli(args: Optional[List[str]], log: LogContext, settings: Settings) -> int:
    """Run the click application and map every outcome to an exit code."""
    try:
        rv = cli.main(
            args=args,
            prog_name="mcporter",
            standalone_mode=False,
            obj=CLIContext(log=log, settings=settings),
        )
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        report_error(e, debug=log.is_enabled("debug"))
        return 1
    return rv if isinstance(rv, int) else 0


def main(args: Optional[List[str]] = None):
    """Main CLI entry point."""
    try:
        settings = get_settings()
    except ValidationError as e:
        report_error(e)
        sys.exit(1)
    log = LogContext.create(settings.log_level or "warn")
    
    with ProcessScope(log) as scope:
        exit_code = run_cli(args, log, settings)
        if settings.debug_hang:
            log.info(f"[debug] children left after cleanup:\n{scope.describe_children()}")
        
    if settings.should_force_exit:
        force_exit(exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
