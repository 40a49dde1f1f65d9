"""
CLI helper functions and utilities.
"""

from .arguments import (
    build_ephemeral_spec,
    coerce_value,
    ephemeral_options,
    parse_call_arguments,
    parse_selector,
)
from .display import print_call_result, print_definitions, print_tools
from .errors import handle_errors, report_error

__all__ = [
    'build_ephemeral_spec',
    'coerce_value',
    'ephemeral_options',
    'parse_call_arguments',
    'parse_selector',
    'print_call_result',
    'print_definitions',
    'print_tools',
    'handle_errors',
    'report_error',
]
