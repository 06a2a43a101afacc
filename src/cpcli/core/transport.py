"""
cpcli - HTTP Transport

This module executes single HTTP exchanges against ClearPass, both for the JSON
REST API (bearer token) and for the legacy web interface (cookie jar), and turns
every failure into a RestError with the full request/response context.
"""

import asyncio
import json
import logging
import ssl
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

import certifi
import httpx

from .exceptions import (
    APIError,
    MalformedResponseError,
    NetworkError,
    NotAuthenticatedError,
    RestError,
    TimeoutError as CPPMTimeoutError,
)
from .models import StoredCookie

logger = logging.getLogger("cpcli")

SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie")


class RequestResponseLogger:
    """Framework for logging API requests and responses with sensitive data protection."""

    def __init__(self, logger: logging.Logger):
        """Initialize request/response logger.

        Args:
            logger: Logger instance to use for logging
        """
        self.logger = logger

    def log_request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        has_data: bool = False,
    ):
        """Log request details, redacting credentials.

        Args:
            method: HTTP method
            url: Request URL
            headers: Request headers
            has_data: Whether a request body is sent
        """
        safe_headers = {}
        if headers:
            for key, value in headers.items():
                if key.lower() in SENSITIVE_HEADERS:
                    safe_headers[key] = '[REDACTED]'
                else:
                    safe_headers[key] = value

        log_data = {
            "request": {
                "method": method,
                "url": url,
                "headers": safe_headers,
                "has_data": has_data
            }
        }

        self.logger.info(f"API Request: {json.dumps(log_data)}")

    def log_response(
        self,
        status_code: int,
        response_size: Optional[int] = None,
        duration_ms: Optional[float] = None,
        error: Optional[Exception] = None
    ):
        """Log response details with performance metrics.

        Args:
            status_code: HTTP status code, 0 when no response was received
            response_size: Size of response in bytes
            duration_ms: Request duration in milliseconds
            error: Exception if request failed
        """
        log_data = {
            "response": {
                "status_code": status_code,
                "response_size": response_size,
                "duration_ms": duration_ms,
                "success": 200 <= status_code < 400,
                "has_error": bool(error)
            }
        }

        if error:
            log_data["error"] = str(error)

        level = logging.INFO if log_data["response"]["success"] and not error else logging.WARNING
        self.logger.log(level, f"API Response: {json.dumps(log_data)}")


request_logger = RequestResponseLogger(logger)


def _strip_query(url: httpx.URL) -> str:
    return str(url).split("?", 1)[0]


def _create_ssl_context(verify_ssl: bool) -> ssl.SSLContext:
    """
    Create SSL context with security hardening.

    Args:
        verify_ssl: Whether to verify SSL certificates

    Returns:
        Configured SSL context

    Notes:
        - When verify_ssl=False, logs prominent security warning
        - When verify_ssl=True, enforces TLS 1.2+ and certificate validation
        - Uses certifi for up-to-date CA bundle
    """
    if not verify_ssl:
        logger.warning(
            "SSL CERTIFICATE VERIFICATION IS DISABLED!\n"
            "Connection is vulnerable to Man-in-the-Middle (MITM) attacks.\n"
            "Only use this against appliances with self-signed certificates "
            "on a network you trust."
        )
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    context = ssl.create_default_context(cafile=certifi.where())
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    logger.debug("SSL verification enabled with TLS 1.2+ enforcement")
    return context


class Transport:
    """Executes HTTP exchanges over one shared client and cookie jar."""

    def __init__(
        self,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the transport.

        Args:
            verify_ssl: Whether to verify the server certificate
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network in tests)
        """
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        ssl_context = _create_ssl_context(verify_ssl)
        self.client = httpx.AsyncClient(
            verify=ssl_context,
            timeout=httpx.Timeout(timeout, pool=5.0),
            follow_redirects=False,
            transport=transport,
        )
        # Serializes sends (which read and update the jar) with explicit jar writes
        self._jar_lock = asyncio.Lock()

    async def aclose(self):
        """Close the httpx client."""
        await self.client.aclose()

    # ----- cookie jar -----

    def cookies_for(self, url: str) -> List[StoredCookie]:
        """Cookies in the jar that apply to the host of ``url``."""
        host = urlsplit(url).hostname or ""
        result = []
        for cookie in self.client.cookies.jar:
            domain = cookie.domain.lstrip(".")
            if not domain or domain == host or host.endswith("." + domain):
                result.append(StoredCookie(
                    name=cookie.name,
                    value=cookie.value or "",
                    domain=cookie.domain,
                    path=cookie.path or "/",
                ))
        return result

    async def set_cookie(self, name: str, value: str, domain: str, path: str = "/"):
        """Add a cookie to the jar that was not received through Set-Cookie."""
        async with self._jar_lock:
            self.client.cookies.set(name, value, domain=domain, path=path)

    def seed_cookies(self, cookies: List[StoredCookie], default_domain: str = ""):
        """Load previously persisted cookies, before any request is in flight."""
        for cookie in cookies:
            self.client.cookies.set(
                cookie.name,
                cookie.value,
                domain=cookie.domain or default_domain,
                path=cookie.path or "/",
            )

    async def clear_cookies(self):
        async with self._jar_lock:
            self.client.cookies.clear()

    # ----- exchanges -----

    def error_for(
        self,
        response: httpx.Response,
        err: Exception,
        request_body: Any = None,
        step: str = "",
    ) -> RestError:
        """Build a RestError from a response and the underlying cause.

        Args:
            response: The response that was received
            err: Underlying cause
            request_body: Body as sent, when it is not available from the request
            step: Web session step the response belongs to, if any

        Returns:
            RestError with full request/response context
        """
        request = response.request
        body = request_body
        if body is None:
            try:
                body = request.content
            except httpx.RequestNotRead:
                body = ""
        try:
            reply = response.text
        except httpx.ResponseNotRead:
            reply = ""
        return RestError(
            err,
            method=request.method,
            url=_strip_query(request.url),
            query=request.url.query.decode("ascii", errors="replace"),
            unsafe=not self.verify_ssl,
            headers=dict(request.headers),
            body=body or "",
            status_code=response.status_code,
            reply_headers=dict(response.headers),
            reply=reply,
            step=step,
        )

    def _network_error(self, request: httpx.Request, exc: httpx.HTTPError) -> RestError:
        if isinstance(exc, httpx.TimeoutException):
            err = CPPMTimeoutError(f"Request timed out after {self.timeout}s",
                                   context={"timeout": self.timeout})
        else:
            err = NetworkError(f"Network error: {exc}", context={"error": str(exc)})
        try:
            body = request.content
        except httpx.RequestNotRead:
            body = ""
        return RestError(
            err,
            method=request.method,
            url=_strip_query(request.url),
            query=request.url.query.decode("ascii", errors="replace"),
            unsafe=not self.verify_ssl,
            headers=dict(request.headers),
            body=body,
        )

    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[str | bytes] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send a raw request and return the response whatever its status.

        Args:
            method: HTTP method
            url: Full URL
            headers: Extra request headers
            params: Query parameters
            content: Raw body
            data: Form fields (urlencoded, or multipart when files are given)
            files: Multipart files
            stream: Leave the body unread; the caller must close the response

        Returns:
            The httpx response

        Raises:
            RestError: On an invalid URL, or network, TLS or timeout failures
        """
        try:
            request = self.client.build_request(
                method.upper(),
                url,
                headers=headers,
                params=params,
                content=content,
                data=data,
                files=files,
            )
        except httpx.InvalidURL as e:
            raise RestError(
                NetworkError(f"Invalid URL: {e}", context={"error": str(e)}),
                method=method.upper(),
                url=url,
                unsafe=not self.verify_ssl,
                headers=headers,
            ) from e
        request_logger.log_request(request.method, str(request.url), request.headers,
                                   has_data=bool(content or data or files))
        start_time = datetime.utcnow()
        try:
            async with self._jar_lock:
                response = await self.client.send(request, stream=stream)
        except httpx.HTTPError as e:
            duration_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
            request_logger.log_response(0, 0, duration_ms, e)
            raise self._network_error(request, e) from e

        duration_ms = (datetime.utcnow() - start_time).total_seconds() * 1000
        response_size = None if stream else len(response.content)
        request_logger.log_response(response.status_code, response_size, duration_ms)
        return response

    async def exchange(
        self,
        method: str,
        url: str,
        token: str = "",
        query: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """Run a JSON REST exchange.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Full URL
            token: Bearer token, if any
            query: Query parameters
            json_body: Request payload, serialized as JSON when not None

        Returns:
            The decoded JSON reply, or None for an empty body

        Raises:
            RestError: For network failures, non-2xx status codes (with a
                NotAuthenticatedError cause for 401/403) and undecodable replies
        """
        headers = {"Accept": "application/json"}
        content = None
        if json_body is not None:
            headers["Content-Type"] = "application/json"
            content = json.dumps(json_body)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await self.send(method, url, headers=headers, params=query or None,
                                   content=content)

        if response.status_code in (401, 403):
            raise self.error_for(response, NotAuthenticatedError(
                context={"status_code": response.status_code, "url": url}))
        if not (200 <= response.status_code < 300):
            raise self.error_for(response, APIError(
                f"Error: REST Status {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                response_text=response.text,
            ))

        if not response.content.strip():
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise self.error_for(response, MalformedResponseError(
                f"Invalid JSON response from ClearPass: {e}")) from e
