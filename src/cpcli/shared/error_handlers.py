"""
cpcli - Error Handling Helpers

This module turns exceptions into user-friendly messages and decides whether a
command can go on after a failure (e.g. the next NDJSON input line) or must stop.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from ..core.exceptions import (
    APIError,
    ConfigurationError,
    CPPMError,
    MalformedResponseError,
    NetworkError,
    NotAuthenticatedError,
    RestError,
    TimeoutError,
    ValidationError,
    WebSessionError,
)

logger = logging.getLogger("cpcli")


class ErrorSeverity(str, Enum):
    """Enumeration for error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorResponse:
    """Structured error response system with user-friendly messaging."""

    def __init__(self, error: Exception, operation: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        """Initialize error response.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            severity: Severity level of the error
        """
        self.error = error
        self.operation = operation
        self.severity = severity
        self.timestamp = datetime.utcnow()
        self.error_id = f"{operation}_{int(self.timestamp.timestamp())}"

    @property
    def cause(self) -> Exception:
        """The inner error of a RestError, or the error itself."""
        if isinstance(self.error, RestError):
            return self.error.err
        return self.error

    def get_user_message(self) -> str:
        """Get user-friendly error message.

        Returns:
            Human-readable error message
        """
        cause = self.cause
        if isinstance(cause, NotAuthenticatedError):
            return f"{cause.message}. Try 'cpcli login' (or 'cpcli web-login')."
        elif isinstance(cause, TimeoutError):
            return "Request timed out. The ClearPass server may be overloaded."
        elif isinstance(cause, NetworkError):
            return "Cannot connect to ClearPass. Please check the server address and network connectivity."
        elif isinstance(cause, ConfigurationError):
            return f"Configuration error: {cause.message}"
        elif isinstance(cause, ValidationError):
            return f"Invalid input: {cause.message}"
        elif isinstance(cause, APIError):
            if cause.status_code == 404:
                return "The requested resource was not found."
            return f"API error: {cause.message}"
        elif isinstance(cause, MalformedResponseError):
            return f"Unexpected reply from ClearPass: {cause.message}"
        elif isinstance(cause, WebSessionError):
            return f"Web session error: {cause.message}"
        else:
            return f"An unexpected error occurred during {self.operation}."

    def should_abort(self) -> bool:
        """Whether the failure makes any further request pointless."""
        return isinstance(self.cause, (NotAuthenticatedError, ConfigurationError, ValidationError))

    def get_technical_details(self) -> Dict[str, Any]:
        """Get technical error details for logging.

        Returns:
            Dictionary containing technical error information
        """
        details = {
            "error_id": self.error_id,
            "operation": self.operation,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "error_type": type(self.error).__name__,
            "message": str(self.cause)
        }

        if isinstance(self.error, CPPMError):
            details.update(self.error.to_dict())

        if isinstance(self.error, RestError):
            details["status_code"] = self.error.status_code
            details["url"] = self.error.url
            if self.error.step:
                details["step"] = self.error.step

        return details


def handle_command_error(
    operation: str,
    error: Exception,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
) -> ErrorResponse:
    """Centralized error handling for CLI commands.

    Logs the technical details and returns the classified error; the caller
    prints ``get_user_message()`` and checks ``should_abort()``.
    """
    error_response = ErrorResponse(error, operation, severity)
    technical_details = error_response.get_technical_details()
    logger.error(f"Command error in {operation}: {json.dumps(technical_details, default=str)}")
    return error_response
