"""
Generated CLI metadata.

Every artifact carries a :class:`CliArtifactMetadata` document. Templates
and bundles embed it on a marker comment line; compiled binaries get a
``<binary>.metadata.json`` sidecar next to them.
"""

import asyncio
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from mcporter import __version__
from mcporter.core.exceptions import ArtifactMetadataError
from mcporter.core.models import (
    ArtifactInfo,
    ArtifactKind,
    ArtifactServerInfo,
    CliArtifactMetadata,
    GeneratorInfo,
    InvocationInfo,
    ServerDefinition,
)

METADATA_MARKER = "# mcporter:metadata "
GENERATOR_NAME = "mcporter"
SIDECAR_SUFFIX = ".metadata.json"


def build_metadata(
    definition: ServerDefinition,
    artifact_path: Union[str, Path],
    kind: ArtifactKind,
    invocation: InvocationInfo,
) -> CliArtifactMetadata:
    """Assemble the metadata for a new artifact."""
    return CliArtifactMetadata(
        generator=GeneratorInfo(name=GENERATOR_NAME, version=__version__),
        server=ArtifactServerInfo(
            name=definition.name,
            source=definition.source,
            definition=definition.to_json_dict(),
        ),
        artifact=ArtifactInfo(path=str(artifact_path), kind=kind),
        invocation=invocation,
    )


def metadata_comment(metadata: CliArtifactMetadata) -> str:
    """Single comment line embedding the metadata as compact JSON."""
    return METADATA_MARKER + json.dumps(metadata.to_json_dict(), separators=(",", ":"))


def metadata_sidecar_path(artifact_path: Union[str, Path]) -> Path:
    path = Path(artifact_path)
    return path.with_name(path.name + SIDECAR_SUFFIX)


def extract_metadata(text: str, origin: str = "artifact") -> Dict[str, Any]:
    """Find and decode the marker line in a template's source."""
    for line in text.splitlines():
        if line.startswith(METADATA_MARKER):
            payload = line[len(METADATA_MARKER):]
            try:
                return json.loads(payload)
            except json.JSONDecodeError as e:
                raise ArtifactMetadataError(f"Malformed CLI metadata in {origin}: {e}") from e
    raise ArtifactMetadataError(f"No mcporter metadata found in {origin}.")


def parse_metadata(data: Any, origin: str = "artifact") -> CliArtifactMetadata:
    try:
        return CliArtifactMetadata.model_validate(data)
    except ValidationError as e:
        raise ArtifactMetadataError(f"Invalid CLI metadata in {origin}: {e}") from e


def _load_metadata(path: Path) -> CliArtifactMetadata:
    sidecar = metadata_sidecar_path(path)
    try:
        if sidecar.is_file():
            try:
                data = json.loads(sidecar.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ArtifactMetadataError(f"Malformed CLI metadata in {sidecar}: {e}") from e
            return parse_metadata(data, str(sidecar))
        if not path.is_file():
            raise ArtifactMetadataError(f"CLI artifact not found: {path}")
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                try:
                    text = archive.read("__main__.py").decode("utf-8")
                except KeyError:
                    raise ArtifactMetadataError(f"Bundle {path} has no __main__.py") from None
        else:
            text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ArtifactMetadataError(f"Cannot read CLI artifact {path}: {e}") from e
    return parse_metadata(extract_metadata(text, str(path)), str(path))


async def read_cli_metadata(path: Union[str, Path]) -> CliArtifactMetadata:
    """
    Read the metadata of a generated CLI.
    
    Raises:
        ArtifactMetadataError: If the artifact or its metadata is missing,
            unreadable or malformed
    """
    return await asyncio.to_thread(_load_metadata, Path(path).expanduser())


async def write_metadata_sidecar(artifact_path: Union[str, Path], metadata: CliArtifactMetadata) -> Path:
    sidecar = metadata_sidecar_path(artifact_path)
    payload = json.dumps(metadata.to_json_dict(), indent=2) + "\n"
    await asyncio.to_thread(sidecar.write_text, payload, encoding="utf-8")
    return sidecar


def describe_invocation(invocation: InvocationInfo) -> List[str]:
    """``key: value`` lines for the invocation flags that are set."""
    lines = []
    for key, value in invocation.model_dump(by_alias=True).items():
        if value is None or key == "runtime":
            continue
        lines.append(f"{key}: {json.dumps(value) if isinstance(value, (list, bool)) else value}")
    return lines
