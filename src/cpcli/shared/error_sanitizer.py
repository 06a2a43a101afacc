"""
cpcli - Error Message Sanitization

This module renders errors for display without leaking credentials: bearer
tokens, session cookies, passwords and client secrets are redacted.
"""

import json
import logging
import re
from typing import Any, Mapping

from ..core.exceptions import CPPMError, RestError
from .error_handlers import ErrorResponse

logger = logging.getLogger("cpcli")

REDACTED = "[REDACTED]"


class ErrorMessageSanitizer:
    """Sanitize error messages for safe user display."""

    # Sensitive patterns that should never appear in user-facing messages
    SENSITIVE_PATTERNS = [
        "password",
        "secret",
        "token",
        "credential",
        "authorization",
        "cookie",
    ]

    SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie")

    @staticmethod
    def sanitize_for_user(error: Exception, operation: str = "operation") -> str:
        """
        Return user-safe error message without sensitive details.

        Args:
            error: The exception to sanitize
            operation: Description of the operation that failed

        Returns:
            User-safe error message
        """
        message = ErrorResponse(error, operation).get_user_message()
        return ErrorMessageSanitizer._sanitize_text(message)

    @staticmethod
    def redact_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
        """Copy of ``headers`` with credential headers replaced."""
        return {
            key: REDACTED if key.lower() in ErrorMessageSanitizer.SENSITIVE_HEADERS else value
            for key, value in (headers or {}).items()
        }

    @staticmethod
    def _sanitize_body(body: str) -> str:
        try:
            document = json.loads(body)
        except json.JSONDecodeError:
            return ErrorMessageSanitizer._sanitize_text(body)
        if isinstance(document, dict):
            return json.dumps(ErrorMessageSanitizer._sanitize_context(document), sort_keys=True)
        return body

    @staticmethod
    def sanitize_rest_error(error: RestError) -> str:
        """
        Render a RestError like ``str(error)`` with secrets redacted.

        Credential headers, password/secret/token fields of JSON or form
        bodies, and cookies in the reply headers are all replaced.
        """
        safe = error.replace(
            headers=ErrorMessageSanitizer.redact_headers(error.headers),
            reply_headers=ErrorMessageSanitizer.redact_headers(error.reply_headers),
            body=ErrorMessageSanitizer._sanitize_body(error.body) if error.body else "",
        )
        return str(safe)

    @staticmethod
    def sanitize_for_logs(error: Exception) -> dict[str, Any]:
        """
        Return detailed error info for logging (never shown to users).

        Args:
            error: The exception to log

        Returns:
            Dictionary with error details for logging
        """
        error_info: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_module": error.__class__.__module__,
            "error_message": str(error) if not isinstance(error, RestError) else str(error.err),
        }

        if isinstance(error, CPPMError):
            error_info["error_code"] = error.error_code
            error_info["context"] = ErrorMessageSanitizer._sanitize_context(error.context)

        if isinstance(error, RestError):
            error_info["status_code"] = error.status_code
            error_info["url"] = error.url

        return error_info

    @staticmethod
    def _sanitize_text(text: str) -> str:
        """
        Remove sensitive values from text.

        e.g., "password=secret123" becomes "password=[REDACTED]"
        """
        sanitized = text
        for pattern in ErrorMessageSanitizer.SENSITIVE_PATTERNS:
            if pattern in sanitized.lower():
                sanitized = re.sub(
                    f"({pattern}\\w*)[=:]\\s*[^\\s&\"',;]+",
                    f"\\1={REDACTED}",
                    sanitized,
                    flags=re.IGNORECASE,
                )
        return sanitized

    @staticmethod
    def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any]:
        """
        Remove sensitive data from context dictionary.

        Args:
            context: Context dictionary to sanitize

        Returns:
            Sanitized context dictionary
        """
        if not context:
            return {}

        sanitized = {}
        for key, value in context.items():
            key_lower = str(key).lower()
            is_sensitive = any(
                pattern in key_lower for pattern in ErrorMessageSanitizer.SENSITIVE_PATTERNS
            )

            if is_sensitive:
                sanitized[key] = REDACTED
            elif isinstance(value, dict):
                sanitized[key] = ErrorMessageSanitizer._sanitize_context(value)
            elif isinstance(value, str):
                sanitized[key] = ErrorMessageSanitizer._sanitize_text(value)
            else:
                sanitized[key] = value

        return sanitized


def log_error_safely(
    logger: logging.Logger,
    error: Exception,
    operation: str = "operation",
    user_message: str | None = None,
) -> str:
    """
    Log error with full details and return sanitized user message.

    Args:
        logger: Logger instance
        error: Exception that occurred
        operation: Description of the operation
        user_message: Optional custom user message

    Returns:
        Sanitized user-facing error message
    """
    error_details = ErrorMessageSanitizer.sanitize_for_logs(error)
    logger.error(f"Error in {operation}: {json.dumps(error_details, default=str)}")
    if isinstance(error, RestError):
        logger.debug(ErrorMessageSanitizer.sanitize_rest_error(error))

    if user_message:
        return user_message
    return ErrorMessageSanitizer.sanitize_for_user(error, operation)
