"""
Test logging, settings, process scope and argument helpers.
"""

import logging
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from mcporter.cli.helpers.arguments import (
    build_ephemeral_spec,
    coerce_value,
    is_argument_token,
    parse_call_arguments,
    parse_key_values,
    parse_selector,
    split_url_selector,
)
from mcporter.core.exceptions import UsageError
from mcporter.utils.config import Settings
from mcporter.utils.logging import LogContext, get_logger, parse_log_level
from mcporter.utils.process import ProcessScope


class TestLogging:
    """Test log level parsing and the logging context."""
    
    @pytest.mark.parametrize("value, expected", [
        (None, "warn"),
        ("", "warn"),
        ("DEBUG", "debug"),
        (" info ", "info"),
        ("warning", "warn"),
        ("error", "error"),
    ])
    def test_parse_log_level(self, value, expected):
        assert parse_log_level(value) == expected
        
    def test_invalid_log_level(self):
        with pytest.raises(UsageError, match="Invalid log level 'loud'"):
            parse_log_level("loud")
            
    def test_context_level(self):
        log = LogContext(logging.getLogger("mcporter.test"), "info")
        
        assert log.level == "info"
        assert log.is_enabled("info")
        assert not log.is_enabled("debug")
        
        log.set_level(logging.DEBUG)
        
        assert log.level == "debug"
        assert log.is_enabled("debug")
        
    def test_create_replaces_handlers(self):
        log = LogContext.create("debug", enable_rich=False, name="mcporter.test.create")
        log = LogContext.create("error", enable_rich=False, name="mcporter.test.create")
        
        assert len(log.logger.handlers) == 1
        assert log.logger.propagate is False
        assert log.level == "error"
        
    def test_silent_only_reports_errors(self):
        log = LogContext.silent()
        
        assert log.is_enabled("error")
        assert not log.is_enabled("warn")
        
    def test_module_logger_namespace(self):
        assert get_logger("runtime").name == "mcporter.runtime"
        assert get_logger("mcporter.oauth").name == "mcporter.oauth"


class TestSettings:
    """Test environment-driven settings."""
    
    def test_defaults(self):
        settings = Settings()
        
        assert settings.config is None
        assert settings.call_timeout_ms == 60_000
        assert settings.oauth_timeout_ms == 300_000
        
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MCPORTER_CONFIG", "/tmp/other.json")
        monkeypatch.setenv("MCPORTER_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("MCPORTER_CALL_TIMEOUT_MS", "1500")
        
        settings = Settings()
        
        assert settings.config == "/tmp/other.json"
        assert settings.log_level == "warn"
        assert settings.call_timeout_ms == 1500
        
    def test_blank_config_is_unset(self, monkeypatch):
        monkeypatch.setenv("MCPORTER_CONFIG", "  ")
        
        assert Settings().config is None
        
    @pytest.mark.parametrize("name, value", [
        ("MCPORTER_LOG_LEVEL", "loud"),
        ("MCPORTER_CALL_TIMEOUT_MS", "0"),
    ])
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        
        with pytest.raises(ValidationError):
            Settings()
            
    def test_should_force_exit(self, monkeypatch):
        monkeypatch.delenv("MCPORTER_NO_FORCE_EXIT", raising=False)
        assert Settings().should_force_exit is True
        
        monkeypatch.setenv("MCPORTER_NO_FORCE_EXIT", "1")
        assert Settings().should_force_exit is False
        
        monkeypatch.setenv("MCPORTER_FORCE_EXIT", "1")
        assert Settings().should_force_exit is True


class TestProcessScope:
    """Test child process cleanup with psutil mocked out."""
    
    def make_child(self, pid):
        child = MagicMock()
        child.pid = pid
        child.cmdline.return_value = ["node", "server.js"]
        return child
    
    def test_release_terminates_new_children_only(self):
        existing = self.make_child(10)
        spawned = self.make_child(20)
        process = MagicMock()
        process.children.side_effect = [[existing], [existing, spawned]]
        
        with patch("mcporter.utils.process.psutil.Process", return_value=process), \
             patch("mcporter.utils.process.psutil.wait_procs", return_value=([spawned], [])):
            scope = ProcessScope()
            signalled = scope.release("test")
            
        assert signalled == [20]
        spawned.terminate.assert_called_once()
        existing.terminate.assert_not_called()
        spawned.kill.assert_not_called()
        assert scope.released
        
    def test_release_kills_stubborn_children(self):
        spawned = self.make_child(20)
        process = MagicMock()
        process.children.side_effect = [[], [spawned]]
        
        with patch("mcporter.utils.process.psutil.Process", return_value=process), \
             patch("mcporter.utils.process.psutil.wait_procs", return_value=([], [spawned])):
            with ProcessScope():
                pass
                
        spawned.kill.assert_called_once()
        
    def test_release_is_idempotent(self):
        process = MagicMock()
        process.children.return_value = []
        
        with patch("mcporter.utils.process.psutil.Process", return_value=process):
            scope = ProcessScope()
            assert scope.release() == []
            assert scope.release() == []
            
    def test_describe_children(self):
        spawned = self.make_child(20)
        process = MagicMock()
        process.children.side_effect = [[], [spawned]]
        
        with patch("mcporter.utils.process.psutil.Process", return_value=process):
            scope = ProcessScope()
            assert scope.describe_children() == "20 node server.js"


class TestArguments:
    """Test call argument and selector parsing."""
    
    @pytest.mark.parametrize("raw, expected", [
        ("5", 5),
        ("2.5", 2.5),
        ("true", True),
        ("null", None),
        ('["a", 1]', ["a", 1]),
        ('{"k": "v"}', {"k": "v"}),
        ('"quoted"', "quoted"),
        ("hello", "hello"),
        ("NaN", "NaN"),
        ("", ""),
    ])
    def test_coerce_value(self, raw, expected):
        assert coerce_value(raw) == expected
        
    def test_parse_call_arguments(self):
        arguments = parse_call_arguments(
            ["limit:5", "query=open bugs", "filter={\"state\": \"open\"}"],
            args_json='{"limit": 1, "team": "core"}',
        )
        
        assert arguments == {
            "limit": 5,
            "team": "core",
            "query": "open bugs",
            "filter": {"state": "open"},
        }
        
    @pytest.mark.parametrize("tokens, args_json", [
        (["novalue"], None),
        ([], "{bad"),
        ([], "[1, 2]"),
    ])
    def test_parse_call_arguments_errors(self, tokens, args_json):
        with pytest.raises(UsageError):
            parse_call_arguments(tokens, args_json)
            
    def test_parse_key_values(self):
        assert parse_key_values(["A=1", "B=x=y"], "--env") == {"A": "1", "B": "x=y"}
        with pytest.raises(UsageError, match="--env expects KEY=VALUE"):
            parse_key_values(["broken"], "--env")
            
    @pytest.mark.parametrize("selector, expected", [
        ("linear.list_issues", ("linear", "list_issues")),
        ("linear.list_issues()", ("linear", "list_issues")),
        ("linear", ("linear", None)),
        ("https://api.example.com/mcp.search", ("https://api.example.com/mcp", "search")),
        ("https://api.example.com/mcp", ("https://api.example.com/mcp", None)),
    ])
    def test_parse_selector(self, selector, expected):
        assert parse_selector(selector) == expected
        
    def test_split_url_selector_keeps_query(self):
        assert split_url_selector("https://host/v1/mcp.search?x=1") == ("https://host/v1/mcp?x=1", "search")
        
    def test_is_argument_token(self):
        assert is_argument_token("limit:5")
        assert is_argument_token("query=hi")
        assert not is_argument_token("linear.list_issues")
        assert not is_argument_token("https://api.example.com/mcp")
        
    def test_build_ephemeral_spec(self):
        assert build_ephemeral_spec() is None
        
        spec = build_ephemeral_spec(
            stdio_command="node server.js",
            env_pairs=["TOKEN=abc"],
            server_name="local",
        )
        
        assert spec.stdio_command == "node server.js"
        assert spec.env == {"TOKEN": "abc"}
        assert spec.name == "local"
