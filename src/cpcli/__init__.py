"""
cpcli

A client for the Aruba ClearPass Policy Manager REST API and legacy web
interface: OAuth2 and cookie sessions, transparent pagination, MAC-aware
filters, and configuration export/import.
"""

__version__ = "1.0.0"

from .core.exceptions import (
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
from .core.models import CPPMConfig
from .core.reply import Reply
from .core.session import Session

__all__ = [
    # Exceptions
    "CPPMError",
    "ConfigurationError",
    "NotAuthenticatedError",
    "NetworkError",
    "TimeoutError",
    "APIError",
    "MalformedResponseError",
    "WebSessionError",
    "ValidationError",
    "RestError",
    # Core classes
    "CPPMConfig",
    "Reply",
    "Session",
]
