"""
Test implicit command routing.
"""

from unittest.mock import MagicMock

import pytest

from mcporter.cli.routing import ABORT_EXIT_CODE, infer_command_routing, suggest_names


class TestInferCommandRouting:
    """Test routing of the first positional token."""
    
    @pytest.fixture
    def definitions(self, http_definition, stdio_definition):
        return [http_definition, stdio_definition]
    
    @pytest.mark.parametrize("command", ["list", "call", "auth", "generate-cli", "inspect-cli", "emit-ts"])
    def test_explicit_command(self, command, definitions):
        decision = infer_command_routing(command, ["a", "b"], definitions)
        
        assert decision.kind == "command"
        assert decision.command == command
        assert decision.args == ["a", "b"]
        
    def test_server_name_lists_tools(self, definitions):
        decision = infer_command_routing("local", ["--schema"], definitions)
        
        assert decision.command == "list"
        assert decision.args == ["local", "--schema"]
        
    def test_dotted_selector_calls_tool(self, definitions):
        decision = infer_command_routing("example.search", ["query=hi"], definitions)
        
        assert decision.command == "call"
        assert decision.args == ["example.search", "query=hi"]
        
    def test_configured_url_lists_tools(self, definitions):
        decision = infer_command_routing("https://api.example.com/mcp", [], definitions)
        
        assert decision.command == "list"
        
    def test_url_with_tool_calls_tool(self, definitions):
        decision = infer_command_routing("https://api.example.com/mcp.search", ["q:1"], definitions)
        
        assert decision.command == "call"
        assert decision.args == ["https://api.example.com/mcp.search", "q:1"]
        
    def test_bare_url_lists_tools(self, definitions):
        decision = infer_command_routing("https://mcp.linear.app/mcp", [], definitions)
        
        assert decision.command == "list"
        assert decision.args == ["https://mcp.linear.app/mcp"]
        
    def test_unknown_token_aborts_with_suggestion(self, definitions):
        log = MagicMock()
        
        decision = infer_command_routing("examp1e", [], definitions, log=log)
        
        assert decision.kind == "abort"
        assert decision.exit_code == ABORT_EXIT_CODE
        first_message = log.error.call_args_list[0].args[0]
        assert "Unknown command 'examp1e'." in first_message
        assert "Did you mean: example?" in first_message
        
    def test_unknown_token_without_suggestion(self, definitions):
        log = MagicMock()
        
        decision = infer_command_routing("zzz", [], definitions, log=log)
        
        assert decision.kind == "abort"
        assert "Did you mean" not in log.error.call_args_list[0].args[0]


class TestSuggestNames:
    """Test close-match suggestions."""
    
    def test_close_matches(self):
        assert suggest_names("lnear", ["linear", "github", "list"]) == ["linear"]
        
    def test_no_matches(self):
        assert suggest_names("qqq", ["linear"]) == []
