"""
Data models for mcporter.

Defines Pydantic models for server definitions, tool descriptions and the
metadata embedded into generated CLI artifacts. JSON payloads use camelCase
keys so that configuration files and artifacts stay interchangeable with
other MCP tooling.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


DEFAULT_CREDENTIALS_DIR = Path("~/.mcporter/credentials")


class _Model(BaseModel):
    """Base model with camelCase aliases."""
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CommandKind(str, Enum):
    """Transport shape used to reach a server."""
    
    STDIO = "stdio"
    HTTP = "http"
    SSE = "sse"


class SourceKind(str, Enum):
    """Where a server definition came from."""
    
    CONFIG = "config"
    IMPORT = "import"
    EPHEMERAL = "ephemeral"


class StdioCommand(_Model):
    """Child process speaking MCP over stdin/stdout."""
    
    kind: Literal["stdio"] = "stdio"
    executable: str = Field(description="Executable to spawn")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    cwd: Optional[str] = Field(default=None, description="Working directory")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment")
    
    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        """Validate executable."""
        if not v.strip():
            raise ValueError("Server command cannot be empty")
        return v.strip()
    
    def describe(self) -> str:
        """Return the command line as a single string."""
        return " ".join([self.executable, *self.args])


class HttpCommand(_Model):
    """Streaming HTTP endpoint."""
    
    kind: Literal["http"] = "http"
    url: str = Field(description="Server URL")
    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")
    
    def describe(self) -> str:
        return self.url


class SseCommand(_Model):
    """Legacy event-stream endpoint."""
    
    kind: Literal["sse"] = "sse"
    url: str = Field(description="Server URL")
    headers: Dict[str, str] = Field(default_factory=dict, description="Request headers")
    
    def describe(self) -> str:
        return self.url


ServerCommand = Annotated[
    Union[StdioCommand, HttpCommand, SseCommand],
    Field(discriminator="kind"),
]


class ServerSource(_Model):
    """Provenance of a server definition."""
    
    kind: SourceKind = Field(description="Source kind")
    path: Optional[str] = Field(default=None, description="Originating file")


class ServerDefinition(_Model):
    """
    Named, immutable description of how to reach one MCP server.
    
    Definitions are never mutated in place; helpers such as
    :meth:`with_oauth` return new instances.
    """
    
    name: str = Field(description="Unique server name")
    command: ServerCommand
    description: Optional[str] = Field(default=None, description="Server description")
    auth: Optional[str] = Field(default=None, description="Authorization mode ('oauth')")
    token_cache_dir: Optional[str] = Field(default=None, description="Credential cache directory")
    source: Optional[ServerSource] = Field(default=None, description="Definition provenance")
    
    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate server name."""
        if not v.strip():
            raise ValueError("Server name cannot be empty")
        return v.strip()
    
    @property
    def kind(self) -> CommandKind:
        return CommandKind(self.command.kind)
    
    @property
    def url(self) -> Optional[str]:
        """URL for http/sse definitions, None for stdio."""
        if isinstance(self.command, (HttpCommand, SseCommand)):
            return self.command.url
        return None
    
    @property
    def uses_oauth(self) -> bool:
        return (self.auth or "").lower() == "oauth"
    
    def with_oauth(self) -> "ServerDefinition":
        """Return a copy promoted to OAuth with a token cache directory."""
        cache_dir = self.token_cache_dir or str(default_token_cache_dir(self.name))
        return self.model_copy(update={"auth": "oauth", "token_cache_dir": cache_dir})
    
    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to a camelCase JSON-compatible dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def default_token_cache_dir(name: str) -> Path:
    """Default credential directory for a server."""
    return DEFAULT_CREDENTIALS_DIR.expanduser() / name


class ToolInfo(_Model):
    """Normalized description of a tool exposed by a server."""
    
    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None


class EphemeralServerSpec(BaseModel):
    """Ad hoc server described on the command line."""
    
    http_url: Optional[str] = None
    stdio_command: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    persist_path: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    env: Dict[str, str] = Field(default_factory=dict)
    cwd: Optional[str] = None


class FlagMode(str, Enum):
    """State of a boolean-or-path flag such as --bundle."""
    
    OFF = "off"
    ON = "on"
    PATH = "path"


class FlagSetting(_Model):
    """
    Tagged variant for flags that are either switches or carry a path.
    
    Serialized in artifact metadata as ``null`` (off), ``true`` (on) or the
    custom path string.
    """
    
    mode: FlagMode = FlagMode.OFF
    path: Optional[str] = None
    
    @classmethod
    def off(cls) -> "FlagSetting":
        return cls(mode=FlagMode.OFF)
    
    @classmethod
    def on(cls) -> "FlagSetting":
        return cls(mode=FlagMode.ON)
    
    @classmethod
    def custom(cls, path: str) -> "FlagSetting":
        return cls(mode=FlagMode.PATH, path=path)
    
    @classmethod
    def from_value(cls, value: Union[bool, str, None]) -> "FlagSetting":
        """Build from the metadata representation."""
        if value is None or value is False:
            return cls.off()
        if value is True:
            return cls.on()
        return cls.custom(str(value))
    
    def to_value(self) -> Union[bool, str, None]:
        """Convert back to the metadata representation."""
        if self.mode == FlagMode.PATH:
            return self.path
        if self.mode == FlagMode.ON:
            return True
        return None
    
    @property
    def enabled(self) -> bool:
        return self.mode != FlagMode.OFF


class ArtifactKind(str, Enum):
    """Kind of generated CLI artifact."""
    
    TEMPLATE = "template"
    BUNDLE = "bundle"
    BINARY = "binary"


class GeneratorInfo(_Model):
    name: str
    version: str


class ArtifactServerInfo(_Model):
    name: Optional[str] = None
    source: Optional[ServerSource] = None
    definition: Dict[str, Any] = Field(default_factory=dict)


class ArtifactInfo(_Model):
    path: str
    kind: ArtifactKind


class InvocationInfo(_Model):
    """Everything needed to rerun generate-cli for an artifact."""
    
    server_ref: Optional[str] = None
    config_path: Optional[str] = None
    root_dir: Optional[str] = None
    output_path: Optional[str] = None
    runtime: Optional[str] = None
    bundle: Optional[Union[bool, str]] = None
    compile: Optional[Union[bool, str]] = None
    timeout_ms: Optional[int] = None
    minify: Optional[bool] = None


class CliArtifactMetadata(_Model):
    """Metadata persisted inside every generated CLI artifact."""
    
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    generator: GeneratorInfo
    server: ArtifactServerInfo
    artifact: ArtifactInfo
    invocation: InvocationInfo
    
    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
