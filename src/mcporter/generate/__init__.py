"""Standalone CLI generation and artifact metadata."""

from mcporter.generate.generator import GenerateResult, generate_cli
from mcporter.generate.metadata import read_cli_metadata
from mcporter.generate.request import GenerateFlags, GenerateRequest

__all__ = [
    "GenerateFlags",
    "GenerateRequest",
    "GenerateResult",
    "generate_cli",
    "read_cli_metadata",
]
