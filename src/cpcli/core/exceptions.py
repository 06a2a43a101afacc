"""
cpcli - Exception Hierarchy

This module contains all custom exceptions used throughout cpcli, including the
RestError record that carries the full context of a failed HTTP exchange.
"""

import json
from datetime import datetime
from typing import Any, Mapping


class CPPMError(Exception):
    """Base exception for all ClearPass-related errors with enhanced context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(CPPMError):
    """Missing or invalid configuration."""


class NotAuthenticatedError(CPPMError):
    """Not logged in, or the credential was rejected (401/403)."""

    DEFAULT_MESSAGE = (
        "Not authorized. Make sure you log in and your account has the proper privileges"
    )

    def __init__(self, message: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message or self.DEFAULT_MESSAGE, context=context)


class NetworkError(CPPMError):
    """Network communication error (connection, DNS, TLS)."""


class TimeoutError(CPPMError):
    """Request timed out."""


class APIError(CPPMError):
    """The server answered with an unexpected status code."""

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        super().__init__(message, context={"status_code": status_code})
        self.status_code = status_code
        self.response_text = response_text


class MalformedResponseError(CPPMError):
    """The reply did not have the expected shape, header or field."""


class WebSessionError(CPPMError):
    """A step of the web (cookie based) session protocol failed."""


class ValidationError(CPPMError):
    """Caller supplied input failed validation."""


def _render(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return json.dumps(dict(value), sort_keys=True)
    return str(value)


class RestError(CPPMError):
    """Immutable record of a failed HTTP exchange.

    Holds everything needed to reproduce the request (method, URL, query,
    headers, body) and to diagnose the response (status, headers, body).
    The underlying cause is kept in ``err``.
    """

    _FIELDS = (
        "err",
        "method",
        "url",
        "query",
        "unsafe",
        "headers",
        "body",
        "status_code",
        "reply_headers",
        "reply",
        "step",
    )

    def __init__(
        self,
        err: Exception,
        method: str = "",
        url: str = "",
        query: str = "",
        unsafe: bool = False,
        headers: Mapping[str, str] | None = None,
        body: str | bytes = "",
        status_code: int = 0,
        reply_headers: Mapping[str, str] | None = None,
        reply: str | bytes = "",
        step: str = "",
    ):
        values = {
            "err": err,
            "method": method,
            "url": url,
            "query": query,
            "unsafe": unsafe,
            "headers": dict(headers or {}),
            "body": _render(body) if body else "",
            "status_code": status_code,
            "reply_headers": dict(reply_headers or {}),
            "reply": _render(reply) if reply else "",
            "step": step,
        }
        for name, value in values.items():
            object.__setattr__(self, name, value)
        super().__init__(
            str(err),
            error_code=getattr(err, "error_code", type(err).__name__),
            context={"method": method, "url": url, "status_code": status_code},
        )
        self._frozen = True

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"RestError is immutable, cannot set '{name}'")
        object.__setattr__(self, name, value)

    def replace(self, **changes: Any) -> "RestError":
        """A copy of this record with some fields changed."""
        values = {name: getattr(self, name) for name in self._FIELDS}
        values.update(changes)
        return RestError(**values)

    @property
    def not_authenticated(self) -> bool:
        """True when the server (or the session) reported missing credentials."""
        return isinstance(self.err, NotAuthenticatedError)

    def lines(self) -> list[str]:
        """Populated fields, one rendered line each."""
        lines = [str(self.err)]
        if self.step:
            lines.append(f"Step: {self.step}")
        if self.method:
            lines.append(f"Method: {self.method}")
        if self.url:
            lines.append(f"URL: {self.url}")
        if self.query:
            lines.append(f"Query: {self.query}")
        if self.unsafe:
            lines.append("Unsafe: True")
        if self.headers:
            lines.append(f"Header: {_render(self.headers)}")
        if self.body:
            lines.append(f"Body: {self.body}")
        if self.status_code:
            lines.append(f"StatusCode: {self.status_code}")
        if self.reply_headers:
            lines.append(f"ReplyHeader: {_render(self.reply_headers)}")
        if self.reply:
            lines.append(f"Reply: {self.reply}")
        return lines

    def __str__(self) -> str:
        return "\n  ".join(self.lines())

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["message"] = str(self.err)
        result["inner_error_type"] = type(self.err).__name__
        return result


def is_not_authenticated(error: BaseException | None) -> bool:
    """Check whether an error means re-authentication is required."""
    if isinstance(error, RestError):
        return error.not_authenticated
    return isinstance(error, NotAuthenticatedError)
