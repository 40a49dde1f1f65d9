"""
CLI command modules for mcporter.
"""

from .emit import emit_commands
from .generate import generate_commands
from .servers import server_commands

__all__ = [
    'emit_commands',
    'generate_commands',
    'server_commands',
]
