"""
Command routing for implicit invocations.

``mcporter linear`` lists the tools of the ``linear`` server and
``mcporter linear.list_issues limit:5`` calls a tool, without spelling out
``list`` or ``call``. Unrecognised tokens abort with an exit code instead of
raising so the caller's scoped cleanup still runs.
"""

import difflib
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from mcporter.cli.helpers.arguments import split_url_selector
from mcporter.core.adhoc import looks_like_http_url
from mcporter.core.models import ServerDefinition
from mcporter.core.registry import find_server_by_http_url
from mcporter.utils.logging import LogContext

EXPLICIT_COMMANDS = ("list", "call", "auth", "inspect-cli", "generate-cli", "emit-ts")

ABORT_EXIT_CODE = 2


@dataclass
class RoutingDecision:
    """Either a command to dispatch to or an abort with an exit code."""
    
    kind: str
    command: Optional[str] = None
    args: List[str] = field(default_factory=list)
    exit_code: int = 0
    
    @classmethod
    def dispatch(cls, command: str, args: Sequence[str]) -> "RoutingDecision":
        return cls(kind="command", command=command, args=list(args))
    
    @classmethod
    def abort(cls, exit_code: int = ABORT_EXIT_CODE) -> "RoutingDecision":
        return cls(kind="abort", exit_code=exit_code)
    
    
def suggest_names(token: str, candidates: Iterable[str], limit: int = 3) -> List[str]:
    return difflib.get_close_matches(token, list(candidates), n=limit, cutoff=0.6)


def infer_command_routing(
    token: str,
    args: Sequence[str],
    definitions: Iterable[ServerDefinition],
    log: Optional[LogContext] = None,
    commands: Sequence[str] = EXPLICIT_COMMANDS,
) -> RoutingDecision:
    """
    Decide which command handles ``token``.
    
    Args:
        token: First positional token of the invocation
        args: Remaining tokens
        definitions: Known server definitions
        log: Where the unknown-command message goes
        commands: Explicit command names
        
    Returns:
        ``list`` for a server name or bare URL, ``call`` for a
        ``server.tool`` or ``url.tool`` selector, otherwise an abort
    """
    if token in commands:
        return RoutingDecision.dispatch(token, args)
    
    definitions = list(definitions)
    names = [definition.name for definition in definitions]
    if token in names:
        return RoutingDecision.dispatch("list", [token, *args])
    
    if looks_like_http_url(token):
        if find_server_by_http_url(definitions, token):
            return RoutingDecision.dispatch("list", [token, *args])
        selector = token[:-2] if token.endswith("()") else token
        _, tool = split_url_selector(selector)
        if tool:
            return RoutingDecision.dispatch("call", [token, *args])
        return RoutingDecision.dispatch("list", [token, *args])
    
    if "." in token.strip(".") and not token.startswith("-"):
        return RoutingDecision.dispatch("call", [token, *args])
    
    log = log or LogContext.silent()
    message = f"Unknown command '{token}'."
    suggestions = suggest_names(token, [*commands, *names])
    if suggestions:
        message += f" Did you mean: {', '.join(suggestions)}?"
    log.error(message)
    log.error("Run 'mcporter --help' for usage.")
    return RoutingDecision.abort()
