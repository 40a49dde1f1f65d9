"""
Configuration loading for mcporter.

Resolves which ``mcporter.json`` to read and turns its ``mcpServers`` map
into validated :class:`ServerDefinition` objects.
"""

import json
import os
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from mcporter.core.exceptions import ConfigError
from mcporter.core.models import (
    HttpCommand,
    ServerCommand,
    ServerDefinition,
    ServerSource,
    SourceKind,
    SseCommand,
    StdioCommand,
    default_token_cache_dir,
)
from mcporter.utils.config import get_settings
from mcporter.utils.logging import get_logger

logger = get_logger(__name__)

CONFIG_FILENAMES = ("mcporter.json", "mcporter.jsonc")

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$env:([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class ResolvedConfigPath:
    """Config file location and whether the user asked for it explicitly."""
    
    path: Path
    explicit: bool


def resolve_config_path(
    config_path: Optional[Union[str, Path]] = None,
    root_dir: Optional[Union[str, Path]] = None,
) -> ResolvedConfigPath:
    """
    Decide which config file to use.
    
    Precedence: explicit argument, ``MCPORTER_CONFIG``, the project file
    under ``<root>/config/``, then ``~/.mcporter/``. Explicit tiers win even
    when the file is missing; for the file tiers the first existing one wins.
    
    Args:
        config_path: Path given on the command line
        root_dir: Project root (defaults to the working directory)
        
    Returns:
        Resolved path and whether it was explicitly requested
    """
    if config_path:
        return ResolvedConfigPath(Path(config_path).expanduser(), True)
    
    env_path = get_settings().config
    if env_path:
        return ResolvedConfigPath(Path(env_path).expanduser(), True)
    
    root = Path(root_dir).expanduser() if root_dir else Path.cwd()
    project_candidates = [root / "config" / filename for filename in CONFIG_FILENAMES]
    home_candidates = [Path.home() / ".mcporter" / filename for filename in CONFIG_FILENAMES]
    for candidate in project_candidates + home_candidates:
        if candidate.is_file():
            return ResolvedConfigPath(candidate, False)
    return ResolvedConfigPath(project_candidates[0], False)


class RawServerEntry(BaseModel):
    """One entry of the ``mcpServers`` map as written in config files."""
    
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    description: Optional[str] = None
    command: Optional[Union[str, List[str]]] = None
    args: List[str] = Field(default_factory=list)
    cwd: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)
    url: Optional[str] = None
    base_url: Optional[str] = Field(default=None, alias="baseUrl")
    transport: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    auth: Optional[str] = None
    token_cache_dir: Optional[str] = Field(default=None, alias="tokenCacheDir")
    
    @model_validator(mode="after")
    def check_target(self) -> "RawServerEntry":
        """A server needs either a command or a URL."""
        if not self.command and not (self.url or self.base_url):
            raise ValueError("server entry needs either 'command' or 'url'/'baseUrl'")
        return self
    
    def to_command(self, root_dir: Path) -> ServerCommand:
        """Convert to the tagged command variant."""
        url = self.base_url or self.url
        if url:
            headers = {key: expand_placeholders(value) for key, value in self.headers.items()}
            if (self.transport or "").lower() == "sse":
                return SseCommand(url=url, headers=headers)
            return HttpCommand(url=url, headers=headers)
        
        if isinstance(self.command, list):
            tokens = list(self.command)
        elif self.args:
            tokens = [self.command or ""]
        else:
            tokens = shlex.split(self.command or "")
        if not tokens:
            raise ValueError("server command cannot be empty")
        cwd = None
        if self.cwd:
            cwd_path = Path(self.cwd).expanduser()
            cwd = str(cwd_path if cwd_path.is_absolute() else root_dir / cwd_path)
        return StdioCommand(
            executable=tokens[0],
            args=tokens[1:] + list(self.args),
            cwd=cwd,
            env={key: expand_placeholders(value) for key, value in self.env.items()},
        )


def expand_placeholders(value: str) -> str:
    """Expand ``${VAR}`` and ``$env:VAR`` from the process environment."""
    return _PLACEHOLDER_RE.sub(
        lambda match: os.environ.get(match.group(1) or match.group(2), ""),
        value,
    )


def _strip_json_comments(text: str) -> str:
    """Remove // and /* */ comments outside of strings (for .jsonc files)."""
    result = []
    index = 0
    in_string = False
    while index < len(text):
        char = text[index]
        if in_string:
            result.append(char)
            if char == "\\" and index + 1 < len(text):
                result.append(text[index + 1])
                index += 1
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            result.append(char)
        elif text.startswith("//", index):
            newline = text.find("\n", index)
            index = len(text) if newline == -1 else newline
            continue
        elif text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = len(text) if end == -1 else end + 2
            continue
        else:
            result.append(char)
        index += 1
    return "".join(result)


def parse_config_document(text: str, path: Path) -> Dict[str, Any]:
    """Parse a config file body, tolerating comments in .jsonc files."""
    body = _strip_json_comments(text) if path.suffix == ".jsonc" else text
    try:
        document = json.loads(body or "{}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(document, dict):
        raise ConfigError(f"Expected a JSON object in {path}")
    return document


def load_server_definitions(
    config_path: Optional[Union[str, Path]] = None,
    root_dir: Optional[Union[str, Path]] = None,
) -> List[ServerDefinition]:
    """
    Load server definitions from the resolved config file.
    
    Args:
        config_path: Explicit config path (optional)
        root_dir: Root used for config discovery and relative cwd values
        
    Returns:
        Definitions in file order
        
    Raises:
        ConfigError: If an explicit file is missing or any file is malformed
    """
    resolved = resolve_config_path(config_path, root_dir)
    root = Path(root_dir).expanduser() if root_dir else Path.cwd()
    
    if not resolved.path.is_file():
        if resolved.explicit:
            raise ConfigError(f"Config file not found: {resolved.path}")
        logger.debug(f"No config file at {resolved.path}; starting with no servers")
        return []
    
    try:
        text = resolved.path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {resolved.path}: {e}") from e
    document = parse_config_document(text, resolved.path)
    servers = document.get("mcpServers", {})
    if not isinstance(servers, dict):
        raise ConfigError(f"'mcpServers' in {resolved.path} must be an object")
    
    source = ServerSource(kind=SourceKind.CONFIG, path=str(resolved.path))
    definitions = []
    for name, raw in servers.items():
        try:
            entry = RawServerEntry.model_validate(raw)
            definitions.append(
                ServerDefinition(
                    name=name,
                    command=entry.to_command(root),
                    description=entry.description,
                    auth=entry.auth,
                    token_cache_dir=_token_cache_dir(name, entry),
                    source=source,
                )
            )
        except (ValidationError, ValueError) as e:
            raise ConfigError(
                f"Invalid server '{name}' in {resolved.path}: {e}",
                details={"name": name},
            ) from e
    logger.debug(f"Loaded {len(definitions)} server(s) from {resolved.path}")
    return definitions


def _token_cache_dir(name: str, entry: RawServerEntry) -> Optional[str]:
    if entry.token_cache_dir:
        return str(Path(entry.token_cache_dir).expanduser())
    if (entry.auth or "").lower() == "oauth":
        return str(default_token_cache_dir(name))
    return None
