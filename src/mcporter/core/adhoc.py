"""
Ad hoc (ephemeral) server resolution.

Turns the minimal server description a user types on the command line
(``--http-url`` or ``--stdio``) into a full :class:`ServerDefinition`, and can
persist it into a config file for later runs.
"""

import asyncio
import json
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from mcporter.core.exceptions import ConfigError, UsageError
from mcporter.core.models import (
    EphemeralServerSpec,
    HttpCommand,
    ServerDefinition,
    ServerSource,
    SourceKind,
    StdioCommand,
    default_token_cache_dir,
)

STREAMING_ACCEPT_TYPES = ["application/json", "text/event-stream"]

GENERIC_HOST_LABELS = {"www", "api", "mcp", "service", "services", "app", "localhost"}
KNOWN_TLDS = {"com", "net", "org", "io", "ai", "app", "dev", "co", "cloud"}

_EXTENSION_RE = re.compile(r"\.[a-z0-9]+$", re.IGNORECASE)
_UNSAFE_SEGMENT_RE = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class EphemeralResolution:
    """Result of resolving an ephemeral server spec."""
    
    name: str
    definition: ServerDefinition
    persisted_entry: Dict[str, Any] = field(default_factory=dict)


def looks_like_http_url(value: str) -> bool:
    return bool(re.match(r"^https?://", value.strip(), re.IGNORECASE))


def infer_name_from_url(url: str) -> Optional[str]:
    """
    Derive a friendly name from a server URL.
    
    Generic subdomains, known TLDs and numeric labels are dropped and the
    last remaining host label is used; otherwise the first path segment.
    """
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    labels = [part for part in (parsed.hostname or "").split(".") if part]
    remaining = [
        label
        for label in labels
        if label.lower() not in GENERIC_HOST_LABELS
        and label.lower() not in KNOWN_TLDS
        and not label.isdigit()
    ]
    if remaining:
        return remaining[-1]
    segments = [segment for segment in parsed.path.split("/") if segment]
    if segments:
        return _UNSAFE_SEGMENT_RE.sub("-", segments[0])
    return None


def infer_name_from_command(command: str) -> Optional[str]:
    """
    Derive a friendly name from a command line or URL.
    
    For stdio commands the first token that looks like a script or package
    path (``./bin/server.js``, ``@scope/pkg``) wins, so ``node ./bin/my-server.js``
    becomes ``my-server``. Failing that, the last positional token after a
    launcher (``uvx mcp-server-git``) and finally the executable itself.
    """
    trimmed = command.strip()
    if not trimmed:
        return None
    if looks_like_http_url(trimmed):
        inferred = infer_name_from_url(trimmed)
        if inferred:
            return inferred
    try:
        tokens = shlex.split(trimmed)
    except ValueError:
        tokens = trimmed.split()
    if not tokens:
        return None
    candidate = tokens[0]
    rest = tokens[1:]
    pathish = [token for token in rest if not token.startswith("-") and _looks_like_path(token)]
    positional = [token for token in rest if not token.startswith("-")]
    if pathish:
        candidate = pathish[0]
    elif positional and not _looks_like_path(candidate):
        candidate = positional[-1]
    basename = re.split(r"[\\/]", candidate)[-1] or candidate
    return _EXTENSION_RE.sub("", basename) or None


def _looks_like_path(token: str) -> bool:
    return "/" in token or "\\" in token or bool(_EXTENSION_RE.search(token))


def merge_accept_header(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Ensure the Accept header advertises JSON and event streams.
    
    Existing values are kept (case-insensitive key match) and missing media
    types appended without duplicating any entry.
    """
    merged = dict(headers or {})
    key = next((k for k in merged if k.lower() == "accept"), "accept")
    existing = [part.strip() for part in merged.get(key, "").split(",") if part.strip()]
    lowered = {part.lower().split(";")[0].strip() for part in existing}
    for media_type in STREAMING_ACCEPT_TYPES:
        if media_type not in lowered:
            existing.append(media_type)
    merged[key] = ", ".join(existing)
    return merged


def resolve_ephemeral_server(spec: EphemeralServerSpec) -> EphemeralResolution:
    """
    Build a server definition from an ephemeral spec.
    
    Args:
        spec: Ad hoc server description
        
    Returns:
        Resolution holding the definition and its config-file entry
        
    Raises:
        UsageError: If neither (or both) of http_url and stdio_command is set,
            or no name can be inferred
    """
    if bool(spec.http_url) == bool(spec.stdio_command):
        raise UsageError("Provide exactly one of --http-url or --stdio for an ad hoc server.")
    source = ServerSource(kind=SourceKind.EPHEMERAL, path=spec.persist_path)
    
    if spec.http_url:
        url = spec.http_url.strip()
        if not looks_like_http_url(url):
            raise UsageError(f"--http-url must be an http(s) URL, got '{url}'.")
        name = spec.name or infer_name_from_url(url)
        if not name:
            raise UsageError(f"Unable to infer a server name from '{url}'; pass --name.")
        headers = merge_accept_header(spec.headers)
        definition = ServerDefinition(
            name=name,
            command=HttpCommand(url=url, headers=headers),
            description=spec.description,
            token_cache_dir=str(default_token_cache_dir(name)),
            source=source,
        )
        entry: Dict[str, Any] = {"baseUrl": url}
        if spec.headers:
            entry["headers"] = dict(spec.headers)
    else:
        command_line = (spec.stdio_command or "").strip()
        tokens = split_command_line(command_line)
        if not tokens:
            raise UsageError("--stdio requires a command.")
        name = spec.name or infer_name_from_command(command_line)
        if not name:
            raise UsageError(f"Unable to infer a server name from '{command_line}'; pass --name.")
        definition = ServerDefinition(
            name=name,
            command=StdioCommand(
                executable=tokens[0],
                args=tokens[1:],
                cwd=spec.cwd,
                env=dict(spec.env),
            ),
            description=spec.description,
            source=source,
        )
        entry = {"command": tokens[0], "args": tokens[1:]}
        if spec.env:
            entry["env"] = dict(spec.env)
        if spec.cwd:
            entry["cwd"] = spec.cwd
            
    if spec.description:
        entry["description"] = spec.description
    return EphemeralResolution(name=name, definition=definition, persisted_entry=entry)


async def persist_ephemeral_server(resolution: EphemeralResolution, path: str) -> Path:
    """
    Write the resolved server into a config file's ``mcpServers`` map.
    
    Existing entries are kept; an entry with the same name is replaced.
    """
    target = Path(path).expanduser()
    await asyncio.to_thread(_write_server_entry, target, resolution.name, resolution.persisted_entry)
    return target


def _write_server_entry(target: Path, name: str, entry: Dict[str, Any]) -> None:
    document: Dict[str, Any] = {}
    if target.exists():
        try:
            document = json.loads(target.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Cannot update {target}: invalid JSON ({e})") from e
        if not isinstance(document, dict):
            raise ConfigError(f"Cannot update {target}: expected a JSON object")
    servers = document.setdefault("mcpServers", {})
    servers[name] = entry
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")


def split_command_line(command_line: str) -> List[str]:
    """Shell-split a command line, raising UsageError on bad quoting."""
    try:
        return shlex.split(command_line)
    except ValueError as e:
        raise UsageError(f"Unable to parse command '{command_line}': {e}") from e
