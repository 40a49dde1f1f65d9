"""
Test TypeScript emission from tool schemas.
"""

import pytest

from mcporter.core.models import ToolInfo
from mcporter.generate.typescript import (
    args_interface_name,
    camel_case,
    pascal_case,
    property_key,
    render_typescript,
    schema_to_ts,
)


class TestNames:
    """Test identifier helpers."""
    
    @pytest.mark.parametrize("value, expected", [
        ("list_issues", "ListIssues"),
        ("get-user", "GetUser"),
        ("searchDocs", "SearchDocs"),
        ("2fa", "_2fa"),
        ("", "Tool"),
    ])
    def test_pascal_case(self, value, expected):
        assert pascal_case(value) == expected
        
    def test_camel_case(self):
        assert camel_case("list_issues") == "listIssues"
        
    def test_property_key(self):
        assert property_key("limit") == "limit"
        assert property_key("page-size") == '"page-size"'
        
    def test_args_interface_name(self):
        assert args_interface_name(ToolInfo(name="list_issues")) == "ListIssuesArgs"


class TestSchemaToTs:
    """Test JSON Schema to TypeScript conversion."""
    
    @pytest.mark.parametrize("schema, expected", [
        ({"type": "string"}, "string"),
        ({"type": "integer"}, "number"),
        ({"type": ["string", "null"]}, "string | null"),
        ({"enum": ["a", "b"]}, '"a" | "b"'),
        ({"const": 3}, "3"),
        ({"type": "array", "items": {"type": "string"}}, "string[]"),
        ({"type": "array", "items": {"enum": ["x", "y"]}}, 'Array<"x" | "y">'),
        ({"type": "array"}, "unknown[]"),
        ({"type": "object"}, "Record<string, unknown>"),
        ({"anyOf": [{"type": "number"}, {"type": "boolean"}]}, "number | boolean"),
        ({}, "unknown"),
        (None, "unknown"),
    ])
    def test_conversion(self, schema, expected):
        assert schema_to_ts(schema) == expected
        
    def test_nested_object(self):
        schema = {
            "type": "object",
            "properties": {"id": {"type": "string"}, "tags": {"type": "array", "items": {"type": "string"}}},
            "required": ["id"],
        }
        
        assert schema_to_ts(schema) == "{\n  id: string;\n  tags?: string[];\n}"


class TestRenderTypescript:
    """Test full declaration output."""
    
    def setup_method(self):
        """Setup test fixtures."""
        self.tools = [
            ToolInfo(
                name="list_issues",
                description="List issues */ safely",
                input_schema={
                    "type": "object",
                    "properties": {
                        "limit": {"type": "integer", "description": "Max results"},
                        "team-id": {"type": "string"},
                    },
                    "required": ["limit"],
                },
            ),
            ToolInfo(name="ping"),
        ]
        
    def test_types_mode(self):
        output = render_typescript("linear", self.tools, mode="types")
        
        assert "export interface ListIssuesArgs {" in output
        assert "  /** Max results */\n  limit: number;" in output
        assert '  "team-id"?: string;' in output
        assert "/** List issues *\\/ safely */" in output
        assert "export interface PingArgs {\n}" in output
        assert "export interface LinearTools {" in output
        assert "  listIssues(args: ListIssuesArgs): Promise<unknown>;" in output
        assert "createLinearClient" not in output
        
    def test_client_mode(self):
        output = render_typescript("linear", self.tools, mode="client")
        
        assert "export interface LinearTools {" in output
        assert "export type CallTool = (" in output
        assert "export function createLinearClient(callTool: CallTool): LinearTools {" in output
        assert 'ping: (args) => callTool("linear", "ping", args as unknown as Record<string, unknown>),' in output
        assert output.endswith("}\n")
