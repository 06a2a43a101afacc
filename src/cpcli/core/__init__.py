"""
cpcli - Core

This package contains the ClearPass session, transport, pagination and filter
components.
"""

from .config_loader import ConfigLoader
from .exceptions import (
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
    is_not_authenticated,
)
from .filters import normalize, parse_filter_args
from .mac import MAC
from .models import AuthReply, CPPMConfig, StoredCookie
from .reply import CollectionPage, Reply, SingleItem, parse_page
from .session import ExportStream, Session, api_url, web_url
from .transport import RequestResponseLogger, Transport

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
    "is_not_authenticated",
    # Models
    "CPPMConfig",
    "AuthReply",
    "StoredCookie",
    # Configuration
    "ConfigLoader",
    # Transport
    "Transport",
    "RequestResponseLogger",
    # Filters
    "MAC",
    "normalize",
    "parse_filter_args",
    # Replies
    "Reply",
    "SingleItem",
    "CollectionPage",
    "parse_page",
    # Session
    "Session",
    "ExportStream",
    "api_url",
    "web_url",
]
