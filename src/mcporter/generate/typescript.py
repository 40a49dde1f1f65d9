"""
TypeScript declarations for a server's tools (``emit-ts``).

``types`` mode emits one argument interface per tool plus an interface
describing the server's tool methods; ``client`` mode additionally emits a
factory that implements those methods on top of a caller-supplied
``callTool`` function.
"""

import json
import re
from typing import Any, Dict, List, Optional

from mcporter.core.models import ToolInfo

EMIT_MODES = ("types", "client")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_WORD_RE = re.compile(r"[A-Za-z0-9]+")

PRIMITIVE_TYPES = {
    "string": "string",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "null": "null",
}


def pascal_case(value: str) -> str:
    words = _WORD_RE.findall(value)
    name = "".join(word[:1].upper() + word[1:] for word in words) or "Tool"
    return name if not name[0].isdigit() else "_" + name


def camel_case(value: str) -> str:
    name = pascal_case(value)
    return name[:1].lower() + name[1:]


def property_key(name: str) -> str:
    """Object key, quoted when it is not a valid identifier."""
    return name if _IDENTIFIER_RE.match(name) else json.dumps(name)


def schema_to_ts(schema: Optional[Dict[str, Any]], indent: int = 0) -> str:
    """
    Convert a JSON Schema fragment to a TypeScript type expression.
    
    Unknown or missing schemas map to ``unknown``.
    """
    if not isinstance(schema, dict):
        return "unknown"
    if "const" in schema:
        return json.dumps(schema["const"])
    if isinstance(schema.get("enum"), list) and schema["enum"]:
        return " | ".join(json.dumps(value) for value in schema["enum"])
    for key in ("anyOf", "oneOf"):
        if isinstance(schema.get(key), list) and schema[key]:
            return " | ".join(schema_to_ts(option, indent) for option in schema[key])
    if isinstance(schema.get("allOf"), list) and schema["allOf"]:
        return " & ".join(schema_to_ts(option, indent) for option in schema["allOf"])
    
    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return " | ".join(schema_to_ts({**schema, "type": t}, indent) for t in schema_type)
    if schema_type in PRIMITIVE_TYPES:
        return PRIMITIVE_TYPES[schema_type]
    if schema_type == "array":
        item_type = schema_to_ts(schema.get("items"), indent)
        if " " in item_type:
            return f"Array<{item_type}>"
        return f"{item_type}[]"
    if schema_type == "object" or "properties" in schema:
        return _object_type(schema, indent)
    return "unknown"


def _object_type(schema: Dict[str, Any], indent: int) -> str:
    properties = schema.get("properties") or {}
    if not properties:
        return "Record<string, unknown>"
    return "{\n" + "\n".join(_property_lines(schema, indent + 1)) + "\n" + "  " * indent + "}"


def _property_lines(schema: Dict[str, Any], indent: int) -> List[str]:
    required = set(schema.get("required") or [])
    pad = "  " * indent
    lines = []
    for name, prop in (schema.get("properties") or {}).items():
        if isinstance(prop, dict) and prop.get("description"):
            lines.append(f"{pad}/** {_comment_text(prop['description'])} */")
        optional = "" if name in required else "?"
        lines.append(f"{pad}{property_key(name)}{optional}: {schema_to_ts(prop, indent)};")
    return lines


def _comment_text(text: str) -> str:
    return " ".join(text.split()).replace("*/", "*\\/")


def args_interface_name(tool: ToolInfo) -> str:
    return pascal_case(tool.name) + "Args"


def render_args_interface(tool: ToolInfo) -> str:
    lines = []
    if tool.description:
        lines.append(f"/** {_comment_text(tool.description)} */")
    schema = tool.input_schema or {}
    lines.append(f"export interface {args_interface_name(tool)} {{")
    lines.extend(_property_lines(schema, 1))
    lines.append("}")
    return "\n".join(lines)


def _header(server_name: str) -> str:
    return f"// Generated by mcporter emit-ts for the '{server_name}' MCP server. Do not edit."


def _tools_interface(server_name: str, tools: List[ToolInfo]) -> str:
    lines = [f"export interface {pascal_case(server_name)}Tools {{"]
    for tool in tools:
        if tool.description:
            lines.append(f"  /** {_comment_text(tool.description)} */")
        lines.append(f"  {camel_case(tool.name)}(args: {args_interface_name(tool)}): Promise<unknown>;")
    lines.append("}")
    return "\n".join(lines)


def render_types(server_name: str, tools: List[ToolInfo]) -> str:
    """Declarations only: argument interfaces and the tools interface."""
    blocks = [_header(server_name)]
    blocks.extend(render_args_interface(tool) for tool in tools)
    blocks.append(_tools_interface(server_name, tools))
    return "\n\n".join(blocks) + "\n"


def render_client(server_name: str, tools: List[ToolInfo]) -> str:
    """Declarations plus a client factory over an injected ``callTool``."""
    type_name = pascal_case(server_name)
    lines = [
        "export type CallTool = (",
        "  server: string,",
        "  tool: string,",
        "  args: Record<string, unknown>",
        ") => Promise<unknown>;",
        "",
        f"export function create{type_name}Client(callTool: CallTool): {type_name}Tools {{",
        "  return {",
    ]
    for tool in tools:
        lines.append(
            f"    {camel_case(tool.name)}: (args) => "
            f"callTool({json.dumps(server_name)}, {json.dumps(tool.name)}, "
            "args as unknown as Record<string, unknown>),"
        )
    lines += ["  };", "}"]
    return render_types(server_name, tools) + "\n" + "\n".join(lines) + "\n"


def render_typescript(server_name: str, tools: List[ToolInfo], mode: str = "types") -> str:
    if mode == "client":
        return render_client(server_name, tools)
    return render_types(server_name, tools)
