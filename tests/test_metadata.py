"""
Test artifact metadata embedding and the generated template.
"""

import ast
import json
import zipfile

import pytest

from mcporter.core.exceptions import ArtifactMetadataError
from mcporter.core.models import ArtifactKind, InvocationInfo, ToolInfo
from mcporter.generate.metadata import (
    METADATA_MARKER,
    build_metadata,
    describe_invocation,
    extract_metadata,
    metadata_comment,
    metadata_sidecar_path,
    read_cli_metadata,
    write_metadata_sidecar,
)
from mcporter.generate.template import render_cli_template


@pytest.fixture
def tools():
    return [
        ToolInfo(
            name="resolve_library_id",
            description="Resolve a library name",
            input_schema={
                "type": "object",
                "properties": {
                    "libraryName": {"type": "string", "description": "Library to look up"},
                    "limit": {"type": "integer"},
                },
                "required": ["libraryName"],
            },
        ),
        ToolInfo(name="ping"),
    ]


@pytest.fixture
def metadata(http_definition, tmp_path):
    invocation = InvocationInfo(server_ref="example", runtime="python", timeout_ms=30_000, minify=False)
    return build_metadata(http_definition, tmp_path / "example.py", ArtifactKind.TEMPLATE, invocation)


class TestMetadataComment:
    """Test the marker line format."""
    
    def test_single_line_round_trip(self, metadata):
        line = metadata_comment(metadata)
        
        assert line.startswith(METADATA_MARKER)
        assert "\n" not in line
        assert extract_metadata(f"#!/usr/bin/env python3\n{line}\n") == metadata.to_json_dict()
        
    def test_missing_marker(self):
        with pytest.raises(ArtifactMetadataError, match="No mcporter metadata"):
            extract_metadata("print('hello')\n")
            
    def test_malformed_marker(self):
        with pytest.raises(ArtifactMetadataError, match="Malformed"):
            extract_metadata(METADATA_MARKER + "{oops\n")
            
    def test_build_metadata_records_server(self, metadata, http_definition):
        assert metadata.generator.name == "mcporter"
        assert metadata.server.name == "example"
        assert metadata.server.definition == http_definition.to_json_dict()
        assert metadata.artifact.kind == ArtifactKind.TEMPLATE
        
    def test_json_uses_camel_case(self, metadata):
        data = metadata.to_json_dict()
        
        assert "generatedAt" in data
        assert data["invocation"]["serverRef"] == "example"
        assert data["invocation"]["timeoutMs"] == 30_000


class TestReadCliMetadata:
    """Test reading metadata back from every artifact kind."""
    
    @pytest.mark.asyncio
    async def test_template_round_trip(self, http_definition, tools, metadata, tmp_path):
        path = tmp_path / "example.py"
        path.write_text(render_cli_template(http_definition, tools, metadata, "python", 30_000))
        
        loaded = await read_cli_metadata(path)
        
        assert loaded == metadata
        
    @pytest.mark.asyncio
    async def test_bundle_reads_main_module(self, http_definition, tools, metadata, tmp_path):
        bundle = tmp_path / "example.pyz"
        with zipfile.ZipFile(bundle, "w") as archive:
            archive.writestr("__main__.py", render_cli_template(http_definition, tools, metadata, "python", 30_000))
            
        loaded = await read_cli_metadata(bundle)
        
        assert loaded.server.name == "example"
        
    @pytest.mark.asyncio
    async def test_sidecar_wins(self, metadata, tmp_path):
        binary = tmp_path / "example"
        binary.write_bytes(b"\x7fELF")
        sidecar = await write_metadata_sidecar(binary, metadata)
        
        loaded = await read_cli_metadata(binary)
        
        assert sidecar == metadata_sidecar_path(binary)
        assert sidecar.name == "example.metadata.json"
        assert loaded == metadata
        
    @pytest.mark.asyncio
    async def test_missing_artifact(self, tmp_path):
        with pytest.raises(ArtifactMetadataError, match="not found"):
            await read_cli_metadata(tmp_path / "absent.py")
            
    @pytest.mark.asyncio
    async def test_invalid_metadata_shape(self, tmp_path):
        path = tmp_path / "bad.py"
        path.write_text(METADATA_MARKER + json.dumps({"generator": {}}) + "\n")
        
        with pytest.raises(ArtifactMetadataError, match="Invalid CLI metadata"):
            await read_cli_metadata(path)


class TestTemplate:
    """Test the generated CLI source."""
    
    def test_python_runtime(self, http_definition, tools, metadata):
        source = render_cli_template(http_definition, tools, metadata, "python", 30_000)
        
        assert source.startswith("#!/usr/bin/env python3\n")
        assert "DEFAULT_TIMEOUT_MS = 30000" in source
        ast.parse(source)
        
    def test_uv_runtime_has_inline_dependencies(self, http_definition, tools, metadata):
        source = render_cli_template(http_definition, tools, metadata, "uv", 30_000)
        
        assert source.startswith("#!/usr/bin/env -S uv run --script\n# /// script\n")
        assert '"click>=8.1"' in source
        ast.parse(source)
        
    def test_embedded_payloads_decode(self, http_definition, tools, metadata):
        source = render_cli_template(http_definition, tools, metadata, "python", 30_000)
        module = ast.parse(source)
        
        literals = {}
        for node in module.body:
            if isinstance(node, ast.Assign) and isinstance(node.value, ast.Call):
                target = node.targets[0].id
                literals[target] = json.loads(ast.literal_eval(node.value.args[0]))
                
        assert literals["SERVER_DEFINITION"] == http_definition.to_json_dict()
        assert [tool["name"] for tool in literals["TOOLS"]] == ["resolve_library_id", "ping"]
        assert literals["TOOLS"][0]["inputSchema"]["required"] == ["libraryName"]
        
    def test_description_with_quotes_stays_valid(self, http_definition, tools, metadata):
        definition = http_definition.model_copy(update={"description": 'Says """hi""" and \'bye\''})
        
        ast.parse(render_cli_template(definition, tools, metadata, "python", 30_000))


class TestDescribeInvocation:
    """Test the invocation summary used by inspect-cli."""
    
    def test_skips_runtime_and_unset(self):
        lines = describe_invocation(InvocationInfo(server_ref="x", runtime="uv", bundle=True, minify=False))
        
        assert lines == ["serverRef: x", "bundle: true", "minify: false"]
