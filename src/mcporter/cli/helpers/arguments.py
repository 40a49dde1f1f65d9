"""
Argument parsing helpers shared by CLI commands.
"""

import json
import re
from typing import Any, Dict, Iterable, Optional, Tuple
from urllib.parse import urlparse, urlunparse

import click

from mcporter.core.adhoc import looks_like_http_url
from mcporter.core.exceptions import UsageError
from mcporter.core.models import EphemeralServerSpec

_NON_JSON_LITERALS = {"NaN", "Infinity", "-Infinity"}
_ARGUMENT_RE = re.compile(r"^([A-Za-z_][\w.-]*)\s*[=:](.*)$", re.DOTALL)


def coerce_value(raw: str) -> Any:
    """
    Interpret a command-line value.
    
    JSON literals (numbers, booleans, null, arrays, objects, quoted strings)
    are decoded; anything else is kept as the original string.
    """
    text = raw.strip()
    if not text or text in _NON_JSON_LITERALS:
        return raw
    try:
        return json.loads(text)
    except ValueError:
        return raw
    
    
def parse_key_values(pairs: Iterable[str], option: str) -> Dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options such as --env and --header."""
    result: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise UsageError(f"{option} expects KEY=VALUE, got '{pair}'.")
        result[key.strip()] = value
    return result


def parse_call_arguments(tokens: Iterable[str], args_json: Optional[str] = None) -> Dict[str, Any]:
    """
    Build tool arguments from ``--args`` JSON plus ``key=value``/``key:value`` tokens.
    
    Tokens override keys from ``--args``.
    
    Raises:
        UsageError: For malformed JSON or tokens without a separator
    """
    arguments: Dict[str, Any] = {}
    if args_json:
        try:
            parsed = json.loads(args_json)
        except json.JSONDecodeError as e:
            raise UsageError(f"--args must be a JSON object: {e}") from e
        if not isinstance(parsed, dict):
            raise UsageError("--args must be a JSON object.")
        arguments.update(parsed)
    for token in tokens:
        match = _ARGUMENT_RE.match(token)
        if not match:
            raise UsageError(f"Unable to parse argument '{token}'. Use key=value or key:value.")
        arguments[match.group(1)] = coerce_value(match.group(2))
    return arguments


def split_url_selector(value: str) -> Tuple[str, Optional[str]]:
    """Split ``https://host/path.tool`` into the URL and the tool name."""
    parsed = urlparse(value)
    head, _, last = parsed.path.rpartition("/")
    if "." not in last:
        return value, None
    segment, _, tool = last.rpartition(".")
    if not segment or not tool:
        return value, None
    url = urlunparse(parsed._replace(path=f"{head}/{segment}"))
    return url, tool


def parse_selector(selector: str) -> Tuple[str, Optional[str]]:
    """
    Split a call selector into its server part and tool name.
    
    Accepts ``server.tool``, ``server.tool()`` and URL forms; the server part
    of a URL selector is the URL itself.
    """
    value = selector.strip()
    if value.endswith("()"):
        value = value[:-2]
    if looks_like_http_url(value):
        return split_url_selector(value)
    server, sep, tool = value.partition(".")
    if not sep:
        return value, None
    return server, tool or None


def ephemeral_options(func):
    """Add the ad hoc server flags to a command."""
    options = [
        click.option("--http-url", help="Ad hoc HTTP server URL"),
        click.option("--stdio", "stdio_command", help="Ad hoc stdio server command line"),
        click.option("--env", "env_pairs", multiple=True, help="Environment for --stdio (KEY=VALUE)"),
        click.option("--header", "header_pairs", multiple=True, help="HTTP header for --http-url (KEY=VALUE)"),
        click.option("--cwd", help="Working directory for --stdio"),
        click.option("--name", "server_name", help="Name for the ad hoc server"),
        click.option("--description", help="Description for the ad hoc server"),
        click.option("--persist", "persist_path", help="Save the ad hoc server into this config file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_ephemeral_spec(
    http_url: Optional[str] = None,
    stdio_command: Optional[str] = None,
    env_pairs: Iterable[str] = (),
    header_pairs: Iterable[str] = (),
    cwd: Optional[str] = None,
    server_name: Optional[str] = None,
    description: Optional[str] = None,
    persist_path: Optional[str] = None,
) -> Optional[EphemeralServerSpec]:
    """Return an ephemeral spec when --http-url or --stdio was given."""
    if not http_url and not stdio_command:
        return None
    return EphemeralServerSpec(
        http_url=http_url,
        stdio_command=stdio_command,
        name=server_name,
        description=description,
        persist_path=persist_path,
        headers=parse_key_values(header_pairs, "--header"),
        env=parse_key_values(env_pairs, "--env"),
        cwd=cwd,
    )


def is_argument_token(token: str) -> bool:
    """Whether a positional token is a ``key=value``/``key:value`` argument."""
    return not looks_like_http_url(token) and bool(_ARGUMENT_RE.match(token))
