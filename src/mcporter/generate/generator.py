"""
Standalone CLI generation.

Resolves a server reference, introspects its tools through a Runtime and
writes a Python CLI bound to that server, optionally packed into a zipapp
bundle and compiled with PyInstaller.
"""

import asyncio
import json
import shlex
import shutil
import tempfile
import zipapp
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from mcporter.core.adhoc import (
    infer_name_from_command,
    infer_name_from_url,
    looks_like_http_url,
    resolve_ephemeral_server,
)
from mcporter.core.exceptions import GenerationError, UsageError, describe_error
from mcporter.core.models import (
    ArtifactKind,
    CliArtifactMetadata,
    EphemeralServerSpec,
    ServerDefinition,
    ToolInfo,
)
from mcporter.core.registry import find_server_by_http_url
from mcporter.core.runtime import Runtime, create_runtime
from mcporter.generate.metadata import build_metadata, write_metadata_sidecar
from mcporter.generate.request import GenerateRequest, detect_runtime
from mcporter.generate.template import render_cli_template
from mcporter.utils.logging import LogContext

PACKAGE_DIR = Path(__file__).resolve().parent.parent

RuntimeFactory = Callable[[GenerateRequest, LogContext], Runtime]


@dataclass
class GenerateResult:
    """Paths written by a generation run."""
    
    output_path: Path
    metadata: CliArtifactMetadata
    bundle_path: Optional[Path] = None
    compile_path: Optional[Path] = None


def default_runtime_factory(request: GenerateRequest, log: LogContext) -> Runtime:
    return create_runtime(config_path=request.config_path, root_dir=request.root_dir, log=log)


def _infer_serialized_name(command: Dict[str, Any]) -> Optional[str]:
    url = command.get("url")
    if isinstance(url, str) and url:
        return infer_name_from_url(url)
    executable = command.get("executable")
    if not isinstance(executable, str) or not executable:
        return None
    return infer_name_from_command(shlex.join([executable, *(str(arg) for arg in command.get("args") or [])]))


def _serialized_definition(data: Dict[str, Any]) -> ServerDefinition:
    """Validate a serialized definition, inferring the name when it is missing."""
    if not data.get("name"):
        name = _infer_serialized_name(data["command"])
        if not name:
            raise UsageError("Unable to infer a server name from the serialized definition; pass --server <name>.")
        data = {**data, "name": name}
    try:
        return ServerDefinition.model_validate(data)
    except ValidationError as e:
        raise UsageError(f"Invalid server definition: {e}") from e


def resolve_server_ref(runtime: Runtime, server_ref: str) -> ServerDefinition:
    """
    Resolve a --server value to a definition registered with ``runtime``.
    
    Accepts a configured name, an HTTP URL, a JSON object
    ``{"name", "command", "description"}`` or a serialized definition.
    
    Raises:
        UsageError: For malformed JSON references
        UnknownServerError: For names missing from the config
    """
    ref = server_ref.strip()
    if ref.startswith("{"):
        try:
            data = json.loads(ref)
        except json.JSONDecodeError as e:
            raise UsageError(f"Invalid JSON server reference: {e}") from e
        if not isinstance(data, dict):
            raise UsageError("JSON server reference must be an object.")
        if isinstance(data.get("command"), dict):
            definition = _serialized_definition(data)
        else:
            command = data.get("command")
            if not isinstance(command, str) or not command.strip():
                raise UsageError("JSON server reference requires a 'command' string.")
            spec = EphemeralServerSpec(
                name=data.get("name"),
                description=data.get("description"),
                http_url=command if looks_like_http_url(command) else None,
                stdio_command=None if looks_like_http_url(command) else command,
            )
            definition = resolve_ephemeral_server(spec).definition
        runtime.register_definition(definition, overwrite=True)
        return definition
    
    if looks_like_http_url(ref):
        name = find_server_by_http_url(runtime.get_definitions(), ref)
        if name:
            return runtime.get_definition(name)
        definition = resolve_ephemeral_server(EphemeralServerSpec(http_url=ref)).definition
        runtime.register_definition(definition, overwrite=True)
        return definition
    
    return runtime.get_definition(ref)


def artifact_kind(request: GenerateRequest) -> ArtifactKind:
    if request.compile.enabled:
        return ArtifactKind.BINARY
    if request.bundle.enabled:
        return ArtifactKind.BUNDLE
    return ArtifactKind.TEMPLATE


def _bundle_path(request: GenerateRequest, output_path: Path) -> Path:
    if request.bundle.path:
        return Path(request.bundle.path).expanduser()
    return output_path.with_suffix(".pyz")


def _compile_path(request: GenerateRequest, output_path: Path) -> Path:
    if request.compile.path:
        return Path(request.compile.path).expanduser()
    return output_path.with_suffix("")


async def _introspect(
    runtime: Runtime, definition: ServerDefinition, timeout_ms: int
) -> List[ToolInfo]:
    try:
        async with asyncio.timeout(timeout_ms / 1000):
            return await runtime.list_tools(definition.name, auto_authorize=True)
    except TimeoutError:
        raise GenerationError(
            f"Timed out after {timeout_ms}ms listing tools for '{definition.name}'."
        ) from None


def _write_template(path: Path, source: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")
    path.chmod(0o755)


def _build_bundle(template_path: Path, bundle_path: Path, interpreter: str, compressed: bool) -> None:
    with tempfile.TemporaryDirectory(prefix="mcporter-bundle-") as staging:
        staging_dir = Path(staging)
        shutil.copyfile(template_path, staging_dir / "__main__.py")
        shutil.copytree(
            PACKAGE_DIR,
            staging_dir / PACKAGE_DIR.name,
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc"),
        )
        bundle_path.parent.mkdir(parents=True, exist_ok=True)
        zipapp.create_archive(
            staging_dir,
            target=bundle_path,
            interpreter=interpreter,
            compressed=compressed,
        )
        
        
async def _compile_binary(template_path: Path, binary_path: Path, log: LogContext) -> None:
    if shutil.which("pyinstaller") is None:
        raise GenerationError("--compile requires PyInstaller (pip install pyinstaller).")
    binary_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="mcporter-build-") as work:
        process = await asyncio.create_subprocess_exec(
            "pyinstaller",
            "--onefile",
            "--noconfirm",
            "--name", binary_path.name,
            "--distpath", str(binary_path.parent),
            "--workpath", work,
            "--specpath", work,
            "--collect-submodules", PACKAGE_DIR.name,
            str(template_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        output, _ = await process.communicate()
    if process.returncode != 0:
        log.debug(output.decode("utf-8", errors="replace"))
        raise GenerationError(f"PyInstaller exited with code {process.returncode}.")
    
    
async def generate_cli(
    request: GenerateRequest,
    log: LogContext,
    runtime_factory: Optional[RuntimeFactory] = None,
) -> GenerateResult:
    """
    Generate a standalone CLI for one server.
    
    Args:
        request: Resolved generation settings
        log: Logging context
        runtime_factory: Builds the runtime used for introspection
        
    Returns:
        The written paths and the embedded metadata
        
    Raises:
        GenerationError: If introspection times out or a build step fails
    """
    runtime_name = request.runtime or detect_runtime()
    runtime = (runtime_factory or default_runtime_factory)(request, log)
    try:
        definition = resolve_server_ref(runtime, request.server_ref)
        log.info(f"Introspecting '{definition.name}'")
        tools = await _introspect(runtime, definition, request.timeout_ms)
        # OAuth promotion during introspection replaces the definition.
        definition = runtime.get_definition(definition.name)
    finally:
        await runtime.close()
        
    output_path = Path(request.output_path or f"{definition.name}.py").expanduser().resolve()
    kind = artifact_kind(request)
    bundle_path = _bundle_path(request, output_path) if kind == ArtifactKind.BUNDLE else None
    compile_path = _compile_path(request, output_path) if kind == ArtifactKind.BINARY else None
    artifact_path = compile_path or bundle_path or output_path
    
    metadata = build_metadata(definition, artifact_path, kind, request.to_invocation(runtime_name))
    source = render_cli_template(definition, tools, metadata, runtime_name, request.timeout_ms)
    await asyncio.to_thread(_write_template, output_path, source)
    log.info(f"Wrote {output_path} ({len(tools)} tools)")
    
    if bundle_path is not None:
        interpreter = "/usr/bin/env python3"
        try:
            await asyncio.to_thread(
                _build_bundle, output_path, bundle_path, interpreter, request.minify
            )
        except OSError as e:
            raise GenerationError(f"Failed to create bundle {bundle_path}: {describe_error(e)}") from e
        log.info(f"Bundled {bundle_path}")
        
    if compile_path is not None:
        await _compile_binary(output_path, compile_path, log)
        await write_metadata_sidecar(compile_path, metadata)
        log.info(f"Compiled {compile_path}")
        
    return GenerateResult(
        output_path=output_path,
        metadata=metadata,
        bundle_path=bundle_path,
        compile_path=compile_path,
    )
