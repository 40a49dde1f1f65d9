"""
Error handling utilities for CLI commands.
"""

import functools
import traceback

import click
from rich.console import Console

from mcporter.core.exceptions import UsageError, describe_error

error_console = Console(stderr=True)


def report_error(error: BaseException, debug: bool = False) -> None:
    """Print an error in red; tracebacks only at debug level and never for usage errors."""
    error_console.print(f"Error: {describe_error(error)}", style="red", markup=False, highlight=False)
    if debug and not isinstance(error, UsageError):
        error_console.print(
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            style="dim",
            markup=False,
            highlight=False,
        )
        
        
def _debug_enabled() -> bool:
    ctx = click.get_current_context(silent=True)
    log = getattr(ctx.find_root().obj, "log", None) if ctx is not None else None
    return bool(log is not None and log.is_enabled("debug"))


def handle_errors(func):
    """Decorator to handle common CLI errors."""
    
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.exceptions.Exit, click.ClickException, click.Abort):
            raise
        except KeyboardInterrupt:
            error_console.print("\nOperation cancelled by user", style="yellow")
            raise click.exceptions.Exit(1)
        except Exception as e:
            report_error(e, debug=_debug_enabled())
            raise click.exceptions.Exit(1)
    
    return wrapper
