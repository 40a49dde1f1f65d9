"""
Pytest configuration and fixtures for mcporter testing.

Every test runs with an isolated home directory and working directory so
that real ``~/.mcporter`` or ``./config`` files never leak in.
"""

import json
from pathlib import Path
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from mcporter.core.models import HttpCommand, ServerDefinition, ServerSource, SourceKind, StdioCommand
from mcporter.utils.logging import LogContext


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Provide an isolated home, working directory and environment."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.chdir(work)
    for name in (
        "MCPORTER_CONFIG",
        "MCPORTER_LOG_LEVEL",
        "MCPORTER_CALL_TIMEOUT_MS",
        "MCPORTER_OAUTH_TIMEOUT_MS",
        "MCPORTER_DEBUG_HANG",
        "MCPORTER_FORCE_EXIT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MCPORTER_NO_FORCE_EXIT", "1")
    return {"home": home, "work": work}


@pytest.fixture
def log():
    """Logging context that stays quiet during tests."""
    return LogContext.silent()


@pytest.fixture
def http_definition():
    return ServerDefinition(
        name="example",
        command=HttpCommand(url="https://api.example.com/mcp"),
        source=ServerSource(kind=SourceKind.CONFIG, path="/tmp/mcporter.json"),
    )


@pytest.fixture
def stdio_definition():
    return ServerDefinition(
        name="local",
        command=StdioCommand(executable="node", args=["./bin/local-server.js"]),
        description="Local test server",
    )


@pytest.fixture
def write_config(isolated_environment):
    """Write an mcporter config file and return its path."""
    
    def _write(servers: Dict[str, Any], path: Path = None) -> Path:
        target = path or isolated_environment["work"] / "config" / "mcporter.json"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"mcpServers": servers}), encoding="utf-8")
        return target
    
    return _write


@pytest.fixture
def mock_client():
    """MCP client double with awaitable operations."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.list_tools = AsyncMock(return_value={"tools": []})
    client.call_tool = AsyncMock(return_value={"content": []})
    client.list_resources = AsyncMock(return_value={"resources": []})
    return client


@pytest.fixture
def make_transport():
    """Factory for transport doubles with an awaitable close."""
    
    def _make(description: str = "http (mock)") -> MagicMock:
        transport = MagicMock()
        transport.close = AsyncMock()
        transport.describe.return_value = description
        return transport
    
    return _make


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
