"""
cpcli - Shared Utilities

This package contains constants and error helpers shared by the core and the CLI.
"""

from . import constants
from .error_handlers import ErrorResponse, ErrorSeverity, handle_command_error
from .error_sanitizer import ErrorMessageSanitizer, log_error_safely

__all__ = [
    "ErrorMessageSanitizer",
    "ErrorResponse",
    "ErrorSeverity",
    "constants",
    "handle_command_error",
    "log_error_safely",
]
