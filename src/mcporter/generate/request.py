"""
generate-cli request resolution.

Merges the three sources of generation settings in precedence order:
explicit flags on this invocation, the invocation recorded in an existing
artifact (``--from``), then built-in defaults. Also rebuilds the equivalent
command line for dry runs and ``inspect-cli``.
"""

import json
import re
import shutil
from dataclasses import dataclass, field
from typing import List, Optional

from mcporter.core.adhoc import infer_name_from_command
from mcporter.core.exceptions import UsageError
from mcporter.core.models import CliArtifactMetadata, FlagSetting, InvocationInfo

DEFAULT_TIMEOUT_MS = 30_000
RUNTIMES = ("python", "uv")

_SAFE_TOKEN_RE = re.compile(r"^[A-Za-z0-9_./@%-]+$")


@dataclass
class GenerateFlags:
    """Flags given to generate-cli; None means "not given"."""
    
    server: Optional[str] = None
    name: Optional[str] = None
    command: Optional[str] = None
    description: Optional[str] = None
    output: Optional[str] = None
    bundle: Optional[FlagSetting] = None
    compile: Optional[FlagSetting] = None
    runtime: Optional[str] = None
    timeout_ms: Optional[int] = None
    minify: Optional[bool] = None
    from_path: Optional[str] = None
    dry_run: bool = False


@dataclass
class GenerateRequest:
    """Fully resolved generation settings."""
    
    server_ref: str
    config_path: Optional[str] = None
    root_dir: Optional[str] = None
    output_path: Optional[str] = None
    runtime: Optional[str] = None
    bundle: FlagSetting = field(default_factory=FlagSetting.off)
    compile: FlagSetting = field(default_factory=FlagSetting.off)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    minify: bool = False
    
    def to_invocation(self, runtime: Optional[str] = None) -> InvocationInfo:
        """Invocation record stored in the generated artifact."""
        return InvocationInfo(
            server_ref=self.server_ref,
            config_path=self.config_path,
            root_dir=self.root_dir,
            output_path=self.output_path,
            runtime=runtime or self.runtime,
            bundle=self.bundle.to_value(),
            compile=self.compile.to_value(),
            timeout_ms=self.timeout_ms,
            minify=self.minify,
        )


def detect_runtime() -> str:
    """Prefer uv when it is installed, otherwise plain python."""
    return "uv" if shutil.which("uv") else "python"


def validate_generate_flags(flags: GenerateFlags) -> None:
    """
    Reject flag combinations before any side effect happens.
    
    Raises:
        UsageError: For mutually exclusive or incomplete flags
    """
    if flags.from_path and (flags.command or flags.description or flags.name):
        raise UsageError("--from cannot be combined with --command/--description/--name.")
    if flags.dry_run and not flags.from_path:
        raise UsageError("--dry-run currently requires --from <artifact>.")
    if flags.runtime and flags.runtime not in RUNTIMES:
        raise UsageError(f"--runtime must be one of: {', '.join(RUNTIMES)}.")
    if flags.timeout_ms is not None and flags.timeout_ms <= 0:
        raise UsageError("--timeout must be a positive number of milliseconds.")


def resolve_generate_request(
    flags: GenerateFlags,
    config_path: Optional[str] = None,
    root_dir: Optional[str] = None,
) -> GenerateRequest:
    """Build a request for a fresh generation (no ``--from``)."""
    inferred_name = flags.name or (infer_name_from_command(flags.command) if flags.command else None)
    server_ref = flags.server
    if not server_ref and flags.command and inferred_name:
        ref = {"name": inferred_name, "command": flags.command}
        if flags.description:
            ref["description"] = flags.description
        server_ref = json.dumps(ref)
    if not server_ref:
        raise UsageError(
            "Provide --server with a definition or a command we can infer a name from "
            "(use --name to override)."
        )
    return GenerateRequest(
        server_ref=server_ref,
        config_path=config_path,
        root_dir=root_dir,
        output_path=flags.output,
        runtime=flags.runtime,
        bundle=flags.bundle or FlagSetting.off(),
        compile=flags.compile or FlagSetting.off(),
        timeout_ms=flags.timeout_ms if flags.timeout_ms is not None else DEFAULT_TIMEOUT_MS,
        minify=flags.minify if flags.minify is not None else False,
    )


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_generate_request_from_artifact(
    flags: GenerateFlags,
    metadata: CliArtifactMetadata,
    config_path: Optional[str] = None,
    root_dir: Optional[str] = None,
) -> GenerateRequest:
    """
    Rebuild a request from artifact metadata, letting explicit flags win.
    
    The server reference falls back from ``--server`` to the recorded
    reference, then the recorded server name, then the JSON of the recorded
    definition, so even a minimal artifact regenerates deterministically.
    """
    invocation = metadata.invocation
    server_ref = (
        flags.server
        or invocation.server_ref
        or metadata.server.name
        or json.dumps(metadata.server.definition)
    )
    bundle = flags.bundle if flags.bundle is not None else FlagSetting.from_value(invocation.bundle)
    compile_setting = (
        flags.compile if flags.compile is not None else FlagSetting.from_value(invocation.compile)
    )
    return GenerateRequest(
        server_ref=server_ref,
        config_path=_first(config_path, invocation.config_path),
        root_dir=_first(root_dir, invocation.root_dir),
        output_path=_first(flags.output, invocation.output_path),
        runtime=_first(flags.runtime, invocation.runtime),
        bundle=bundle,
        compile=compile_setting,
        timeout_ms=_first(flags.timeout_ms, invocation.timeout_ms, DEFAULT_TIMEOUT_MS),
        minify=_first(flags.minify, invocation.minify, False),
    )


def shell_quote(value: str) -> str:
    """Quote a token for POSIX shells, leaving safe tokens bare."""
    if _SAFE_TOKEN_RE.match(value):
        return value
    return "'" + value.replace("'", "'\\''") + "'"


def _flag_tokens(flag: str, setting: FlagSetting) -> List[str]:
    if setting.path is not None and setting.enabled:
        return [flag, setting.path]
    if setting.enabled:
        return [flag]
    return []


def build_generate_cli_command(request: GenerateRequest, program: str = "mcporter") -> str:
    """Reconstruct the generate-cli command line for a request."""
    tokens = [program]
    if request.config_path:
        tokens += ["--config", request.config_path]
    if request.root_dir:
        tokens += ["--root", request.root_dir]
    tokens += ["generate-cli", "--server", request.server_ref]
    if request.output_path:
        tokens += ["--output", request.output_path]
    tokens += _flag_tokens("--bundle", request.bundle)
    tokens += _flag_tokens("--compile", request.compile)
    if request.runtime:
        tokens += ["--runtime", request.runtime]
    if request.timeout_ms and request.timeout_ms != DEFAULT_TIMEOUT_MS:
        tokens += ["--timeout", str(request.timeout_ms)]
    if request.minify:
        tokens.append("--minify")
    return " ".join(shell_quote(token) for token in tokens)
