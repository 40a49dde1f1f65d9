"""
Test ad hoc server resolution, name inference and the registry.
"""

import json

import pytest

from mcporter.core.adhoc import (
    infer_name_from_command,
    infer_name_from_url,
    merge_accept_header,
    persist_ephemeral_server,
    resolve_ephemeral_server,
)
from mcporter.core.exceptions import DuplicateDefinitionError, UnknownServerError, UsageError
from mcporter.core.models import EphemeralServerSpec, HttpCommand, SourceKind, StdioCommand
from mcporter.core.registry import DefinitionRegistry


class TestNameInference:
    """Test friendly name inference."""
    
    @pytest.mark.parametrize("url, expected", [
        ("https://api.example.com/mcp", "example"),
        ("https://mcp.linear.app/sse", "linear"),
        ("https://www.shadcn.io/api/mcp", "shadcn"),
        ("http://localhost:3000/weather/mcp", "weather"),
        ("http://127.0.0.1:8080/tools", "tools"),
    ])
    def test_from_url(self, url, expected):
        assert infer_name_from_url(url) == expected
        
    @pytest.mark.parametrize("command, expected", [
        ("node ./bin/my-server.js", "my-server"),
        ("python servers/weather.py --verbose", "weather"),
        ("uvx mcp-server-git", "mcp-server-git"),
        ("./run-server.sh", "run-server"),
        ("https://api.example.com/mcp", "example"),
    ])
    def test_from_command(self, command, expected):
        assert infer_name_from_command(command) == expected
        
    def test_empty_command(self):
        assert infer_name_from_command("   ") is None


class TestAcceptHeader:
    """Test Accept header merging."""
    
    def test_added_when_missing(self):
        headers = merge_accept_header({})
        
        assert headers == {"accept": "application/json, text/event-stream"}
        
    def test_merged_without_duplicates(self):
        headers = merge_accept_header({"Accept": "text/event-stream", "X-Key": "1"})
        
        assert headers["Accept"] == "text/event-stream, application/json"
        assert headers["X-Key"] == "1"
        assert "accept" not in headers


class TestResolveEphemeralServer:
    """Test ad hoc server resolution."""
    
    def test_http_spec(self):
        resolution = resolve_ephemeral_server(
            EphemeralServerSpec(http_url="https://api.example.com/mcp", headers={"X-Key": "1"})
        )
        
        definition = resolution.definition
        assert resolution.name == "example"
        assert isinstance(definition.command, HttpCommand)
        accept = definition.command.headers["accept"]
        assert "application/json" in accept and "text/event-stream" in accept
        assert definition.source.kind == SourceKind.EPHEMERAL
        assert definition.token_cache_dir.endswith("example")
        assert resolution.persisted_entry == {
            "baseUrl": "https://api.example.com/mcp",
            "headers": {"X-Key": "1"},
        }
        
    def test_stdio_spec(self):
        resolution = resolve_ephemeral_server(
            EphemeralServerSpec(stdio_command="node ./bin/my-server.js --port 3", env={"A": "1"}, cwd="/srv")
        )
        
        command = resolution.definition.command
        assert resolution.name == "my-server"
        assert isinstance(command, StdioCommand)
        assert command.executable == "node"
        assert command.args == ["./bin/my-server.js", "--port", "3"]
        assert resolution.persisted_entry == {
            "command": "node",
            "args": ["./bin/my-server.js", "--port", "3"],
            "env": {"A": "1"},
            "cwd": "/srv",
        }
        
    def test_explicit_name_wins(self):
        resolution = resolve_ephemeral_server(
            EphemeralServerSpec(http_url="https://api.example.com/mcp", name="custom")
        )
        
        assert resolution.name == "custom"
        
    @pytest.mark.parametrize("spec", [
        EphemeralServerSpec(),
        EphemeralServerSpec(http_url="https://a.dev/mcp", stdio_command="node a.js"),
        EphemeralServerSpec(http_url="ftp://a.dev"),
    ])
    def test_invalid_specs(self, spec):
        with pytest.raises(UsageError):
            resolve_ephemeral_server(spec)
            
    @pytest.mark.asyncio
    async def test_persist_merges_into_existing_config(self, tmp_path):
        target = tmp_path / "config" / "mcporter.json"
        target.parent.mkdir()
        target.write_text(json.dumps({"mcpServers": {"existing": {"command": "node a.js"}}, "other": 1}))
        resolution = resolve_ephemeral_server(EphemeralServerSpec(http_url="https://api.example.com/mcp"))
        
        await persist_ephemeral_server(resolution, str(target))
        
        document = json.loads(target.read_text())
        assert document["other"] == 1
        assert set(document["mcpServers"]) == {"existing", "example"}
        assert document["mcpServers"]["example"] == {"baseUrl": "https://api.example.com/mcp"}


class TestDefinitionRegistry:
    """Test the definition registry."""
    
    def test_duplicate_registration(self, http_definition):
        registry = DefinitionRegistry([http_definition])
        
        with pytest.raises(DuplicateDefinitionError):
            registry.register(http_definition)
            
    def test_overwrite(self, http_definition):
        registry = DefinitionRegistry([http_definition])
        registry.register(http_definition.model_copy(update={"description": "new"}), overwrite=True)
        
        assert registry.resolve_by_name("example").description == "new"
        assert len(registry) == 1
        
    def test_resolve_by_url_is_exact(self, http_definition, stdio_definition):
        registry = DefinitionRegistry([http_definition, stdio_definition])
        
        assert registry.resolve_by_url("https://api.example.com/mcp") == "example"
        assert registry.resolve_by_url("https://api.example.com/mcp/") is None
        
    def test_unknown_name(self):
        with pytest.raises(UnknownServerError, match="Unknown MCP server 'nope'"):
            DefinitionRegistry().resolve_by_name("nope")
