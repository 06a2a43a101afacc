"""
cpcli - ClearPass Session Manager

This module holds the state of a connection to ClearPass: the OAuth2 token used
by the REST API and the cookie session used by the legacy web interface (needed
for configuration export and import).
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import quote, urlsplit

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..shared.constants import (
    API_CLIENT_INFO,
    API_OAUTH,
    API_RESOURCE_ENDPOINT,
    API_RESOURCE_GUEST,
    DEFAULT_PAGE_SIZE,
    DWR_BEFORE_LOGIN_BODY,
    DWR_CALLBACK_PATTERN,
    DWR_DESTROY_SESSION_BODY,
    DWR_GENERATE_ID_BODY,
    DWR_SESSION_COOKIE,
    EXPORT_PASSWORD_FIELD,
    GRANT_CLIENT_CREDENTIALS,
    GRANT_PASSWORD,
    GRANT_REFRESH_TOKEN,
    HTML_ACCEPT,
    HTML_ACCEPT_ENCODING,
    IMPORT_TOKEN_MARKER,
    LOGIN_DISCRIMINATOR_FIELD,
    SESSION_COOKIE,
    WEB_CONTENT_PAGE,
    WEB_DWR_BEFORE_LOGIN,
    WEB_DWR_DESTROY_SESSION,
    WEB_DWR_GENERATE_ID,
    WEB_EXPORT,
    WEB_IMPORT_PAGE,
    WEB_IMPORT_UPLOAD,
    WEB_LOGIN_CHECK,
    WEB_LOGIN_PAGE,
    WEB_LOGIN_SUBMIT,
)
from .exceptions import (
    MalformedResponseError,
    NotAuthenticatedError,
    RestError,
    ValidationError,
    WebSessionError,
)
from .filters import normalize
from .models import AuthReply, StoredCookie
from .reply import Reply
from .transport import Transport

logger = logging.getLogger("cpcli")

_DWR_CALLBACK = re.compile(DWR_CALLBACK_PATTERN)

# Login submit answers with a redirect to the content page
_LOGIN_SUBMIT_STATUS = range(200, 400)


def _escape(address: str) -> str:
    return quote(address, safe=":[]")


def api_url(address: str) -> str:
    """Root of the REST API for a ClearPass address (host[:port])."""
    return f"https://{_escape(address)}/api"


def web_url(address: str) -> str:
    """Root of the web interface for a ClearPass address (host[:port])."""
    return f"https://{_escape(address)}/tips"


class ExportStream:
    """Body of an export download, read in chunks and never buffered whole."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def aiter_bytes(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes(chunk_size):
            yield chunk

    async def aclose(self):
        await self._response.aclose()

    async def __aenter__(self) -> "ExportStream":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class Session:
    """Connection to one ClearPass server.

    The session owns a single HTTP client, so the token track (REST API) and the
    web track (cookie jar) share connections. It must be closed with ``aclose()``
    or used as an async context manager.
    """

    def __init__(
        self,
        address: str = "",
        token: str = "",
        refresh: str = "",
        cookies: Optional[List[StoredCookie]] = None,
        verify_ssl: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the session, optionally from persisted credentials.

        Args:
            address: ClearPass address (host[:port]); empty means not connected
            token: Cached access token
            refresh: Cached refresh token
            cookies: Cached web session cookies
            verify_ssl: Whether to verify the server certificate
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network in tests)
        """
        self._transport = Transport(verify_ssl=verify_ssl, timeout=timeout,
                                    transport=transport)
        self._api_url = api_url(address) if address else ""
        self._web_url = web_url(address) if address else ""
        self._token = token
        self._refresh = refresh
        self._lock = asyncio.Lock()

        if cookies and address:
            host = urlsplit(self._web_url).hostname or ""
            self._transport.seed_cookies(
                [StoredCookie.model_validate(c) for c in cookies], default_domain=host)

    @property
    def token(self) -> str:
        return self._token

    @property
    def refresh(self) -> str:
        return self._refresh

    @property
    def api_url(self) -> str:
        return self._api_url

    @property
    def web_url(self) -> str:
        return self._web_url

    @property
    def cookies(self) -> List[StoredCookie]:
        """Web session cookies worth persisting, empty without a session cookie."""
        if not self._web_url:
            return []
        return self._session_cookies(self._web_url)

    def _session_cookies(self, base: str) -> List[StoredCookie]:
        cookies = self._transport.cookies_for(base)
        if not any(c.name == SESSION_COOKIE for c in cookies):
            return []
        return cookies

    async def aclose(self):
        await self._transport.aclose()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # ----- token track -----

    async def _auth(self, address: str, grant: Dict[str, str]) -> Tuple[str, str]:
        """Post a grant to the OAuth endpoint and adopt the resulting tokens."""
        url = api_url(address) + API_OAUTH
        document = await self._transport.exchange("POST", url, json_body=grant)
        try:
            reply = AuthReply.model_validate(document or {})
        except PydanticValidationError as e:
            raise RestError(
                MalformedResponseError(f"Unexpected OAuth reply: {e.error_count()} errors"),
                method="POST",
                url=url,
                unsafe=not self._transport.verify_ssl,
                reply=json.dumps(document) if document is not None else "",
            ) from e

        self._api_url, self._web_url = api_url(address), web_url(address)
        self._token, self._refresh = reply.access_token, reply.refresh_token
        logger.info(f"Logged in to {address} ({grant['grant_type']} grant)")
        return self._token, self._refresh

    async def login(
        self,
        address: str,
        client_id: str,
        secret: str = "",
        username: str = "",
        password: str = "",
    ) -> Tuple[str, str]:
        """Log in with the client credentials or password grant.

        The password grant is used when both username and password are given.

        Returns:
            Tuple of (access token, refresh token)

        Raises:
            RestError: If the server rejects the grant or the reply is malformed.
                The session state is left unchanged.
        """
        grant = {"grant_type": GRANT_CLIENT_CREDENTIALS, "client_id": client_id}
        if secret:
            grant["client_secret"] = secret
        if username and password:
            grant.update(grant_type=GRANT_PASSWORD, username=username, password=password)
        async with self._lock:
            return await self._auth(address, grant)

    async def validate(
        self,
        address: str,
        client_id: str,
        secret: str,
        token: str,
        refresh: str,
    ) -> Tuple[str, str]:
        """Check a cached token, refreshing it when a refresh token is available.

        Returns:
            Tuple of (access token, refresh token) now in use

        Raises:
            RestError: If neither refreshing nor the existing token works.
                ``not_authenticated`` tells whether a new login is needed.
        """
        async with self._lock:
            if refresh:
                grant = {
                    "grant_type": GRANT_REFRESH_TOKEN,
                    "client_id": client_id,
                    "refresh_token": refresh,
                }
                if secret:
                    grant["client_secret"] = secret
                try:
                    return await self._auth(address, grant)
                except RestError as e:
                    logger.info(f"Token refresh failed, checking current token: {e.err}")

            url = f"{api_url(address)}{API_CLIENT_INFO}/{quote(client_id, safe='')}"
            try:
                await self._transport.exchange("GET", url, token=token)
            except RestError as e:
                if e.not_authenticated:
                    self._token, self._refresh = "", ""
                raise

            self._api_url, self._web_url = api_url(address), web_url(address)
            self._token, self._refresh = token, ""
            return self._token, self._refresh

    # ----- web track -----

    async def _web_send(
        self,
        step: str,
        method: str,
        url: str,
        expected=(200,),
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one web request, tagging any failure with the step it belongs to."""
        try:
            response = await self._transport.send(method, url, **kwargs)
        except RestError as e:
            raise e.replace(step=step) from e.err
        if response.status_code not in expected:
            if kwargs.get("stream"):
                await response.aclose()
            raise self._transport.error_for(
                response,
                WebSessionError(f"Web request '{step}' failed with status {response.status_code}",
                                context={"step": step, "status_code": response.status_code}),
                step=step,
            )
        return response

    async def web_login(self, address: str, username: str, password: str) -> List[StoredCookie]:
        """Open a web interface session.

        Runs the login handshake in order: login page, DWR id generation, DWR
        pre-login call, form submit and session validation. The first failing
        step aborts the handshake.

        Returns:
            The session cookies, for persistence

        Raises:
            RestError: Naming the step that failed
        """
        base = web_url(address)
        host = urlsplit(base).hostname or ""
        async with self._lock:
            await self._transport.clear_cookies()

            await self._web_send("login page", "GET", base + WEB_LOGIN_PAGE)

            step = "generate id"
            response = await self._web_send(
                step, "POST", base + WEB_DWR_GENERATE_ID,
                headers={"Content-Type": "text/plain"},
                content=DWR_GENERATE_ID_BODY,
            )
            match = _DWR_CALLBACK.search(response.text)
            if not match or not match.group(1):
                raise self._transport.error_for(
                    response, MalformedResponseError("Failed to find DWR session id in reply"),
                    step=step)
            session_id = match.group(1)
            await self._transport.set_cookie(DWR_SESSION_COOKIE, session_id, domain=host)

            await self._web_send(
                "before login", "POST", base + WEB_DWR_BEFORE_LOGIN,
                headers={"Content-Type": "text/plain"},
                content=DWR_BEFORE_LOGIN_BODY.format(session_id=session_id),
            )

            await self._web_send(
                "login submit", "POST", base + WEB_LOGIN_SUBMIT,
                expected=_LOGIN_SUBMIT_STATUS,
                data={
                    LOGIN_DISCRIMINATOR_FIELD: "0",
                    "username": username,
                    "password": password,
                },
            )

            cookies = await self._web_validate(address)
            self._api_url, self._web_url = api_url(address), base
            logger.info(f"Web session opened on {address}")
            return cookies

    async def _web_validate(self, address: str) -> List[StoredCookie]:
        base = web_url(address)
        response = await self._web_send(
            "validate", "GET", base + WEB_CONTENT_PAGE,
            expected=range(100, 600),
            headers={
                "Referer": base + WEB_LOGIN_PAGE,
                "Accept": HTML_ACCEPT,
                "Accept-Encoding": HTML_ACCEPT_ENCODING,
                "Upgrade-Insecure-Requests": "1",
            },
        )
        cookies = self._session_cookies(base)
        if response.status_code != 200 or len(cookies) < 2:
            raise self._transport.error_for(
                response, NotAuthenticatedError("Web session is not valid"), step="validate")
        return cookies

    async def web_validate(self, address: str) -> List[StoredCookie]:
        """Check that the cookie jar holds a live web session.

        Raises:
            RestError: With a NotAuthenticatedError cause when the session is gone
        """
        async with self._lock:
            cookies = await self._web_validate(address)
            self._api_url, self._web_url = api_url(address), web_url(address)
            return cookies

    async def web_logout(self, address: str):
        """Close the web session. Best effort, callers usually just log failures."""
        base = web_url(address)
        async with self._lock:
            session_id = next(
                (c.value for c in self._transport.cookies_for(base)
                 if c.name == DWR_SESSION_COOKIE),
                "",
            )
            if not session_id:
                raise WebSessionError("Could not retrieve DWR session cookie",
                                      context={"step": "logout"})

            await self._web_send(
                "destroy session", "POST", base + WEB_DWR_DESTROY_SESSION,
                headers={"Content-Type": "text/plain"},
                content=DWR_DESTROY_SESSION_BODY.format(session_id=session_id),
            )
            await self._web_send("login check", "GET", base + WEB_LOGIN_CHECK,
                                 expected=(302,))
            logger.info(f"Web session closed on {address}")

    def _require_web(self) -> str:
        if not self._web_url:
            raise NotAuthenticatedError("Web login required")
        return self._web_url

    async def export(self, resource: str, password: str = "") -> Tuple[str, ExportStream]:
        """Start downloading a configuration export.

        Args:
            resource: Export type, as named by the web interface
            password: Optional encryption password for the archive

        Returns:
            Tuple of (suggested filename, stream of the archive body)
        """
        base = self._require_web()
        step = "export"
        response = await self._web_send(
            step, "POST", base + WEB_EXPORT,
            headers={"Accept": HTML_ACCEPT, "Accept-Encoding": HTML_ACCEPT_ENCODING},
            data={"type": resource, EXPORT_PASSWORD_FIELD: password},
            stream=True,
        )

        disposition = response.headers.get("content-disposition", "")
        if "filename=" not in disposition:
            await response.aclose()
            raise self._transport.error_for(
                response, MalformedResponseError("Missing filename in Content-Disposition"),
                step=step)
        filename = disposition.split("filename=")[-1].strip(" \"'")
        if not filename:
            await response.aclose()
            raise self._transport.error_for(
                response, MalformedResponseError("Empty filename in Content-Disposition"),
                step=step)

        logger.info(f"Exporting {resource} as {filename}")
        return filename, ExportStream(response)

    async def import_file(self, file_path: str, resource_type: str, password: str = ""):
        """Upload a configuration archive through the web interface.

        Raises:
            ValidationError: If the file cannot be opened (nothing is sent)
            RestError: If the import form or the upload fails
        """
        base = self._require_web()
        try:
            handle = open(file_path, "rb")
        except OSError as e:
            raise ValidationError(f"Failed to open import file {file_path}: {e}",
                                  context={"file": file_path}) from e

        with handle:
            step = "import page"
            page = await self._web_send(
                step, "GET", base + WEB_IMPORT_PAGE,
                headers={"Accept": HTML_ACCEPT, "Referer": base + WEB_CONTENT_PAGE},
            )
            _, marker, rest = page.text.partition(IMPORT_TOKEN_MARKER)
            if not marker:
                raise self._transport.error_for(
                    page, MalformedResponseError("Failed to find token in response"), step=step)
            token, end, _ = rest.partition('"')
            if not end:
                raise self._transport.error_for(
                    page, MalformedResponseError("Failed to find end of token in response"),
                    step=step)

            fields = {"struts.token.name": "token", "token": token, "type": resource_type}
            if password:
                fields["password"] = password
            files = {"upload": (os.path.basename(file_path), handle, "application/octet-stream")}
            await self._web_send(
                "upload", "POST", base + WEB_IMPORT_UPLOAD,
                headers={"Accept": HTML_ACCEPT, "Referer": base + WEB_IMPORT_PAGE},
                data=fields,
                files=files,
            )
        logger.info(f"Imported {file_path} as {resource_type}")

    # ----- data access -----

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Reply:
        """Build a lazy reply for an API call.

        Args:
            method: HTTP method
            path: Path relative to the API root, e.g. "endpoint"
            params: Query parameters; a "filter" entry is normalized for the path
            body: JSON body

        Returns:
            A Reply; nothing is sent until it is advanced
        """
        if not self._api_url or not self._token:
            return Reply.failed(NotAuthenticatedError())

        query = dict(params or {})
        if "limit" in query:
            query["calculate_count"] = "false"
        if "filter" in query:
            try:
                query["filter"] = self._encode_filter(query["filter"], path)
            except ValidationError as e:
                return Reply.failed(e)
            if query["filter"] is None:
                del query["filter"]

        url = f"{self._api_url}/{path.lstrip('/')}"
        return Reply(self._transport, method, url, token=self._token,
                     query=query or None, body=body)

    @staticmethod
    def _encode_filter(value: Any, path: str) -> Optional[str]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Wrong filter format: {e}", context={"filter": value})
        if not isinstance(value, dict):
            raise ValidationError("Filter must be a JSON object", context={"filter": value})
        normalized = normalize(value, path)
        if not normalized:
            return None
        return json.dumps(normalized)

    def do(
        self,
        method: str,
        path: str,
        filter: Optional[Dict[str, Any]] = None,
        body: Any = None,
        page_size: int = 0,
    ) -> Reply:
        """Run any API call; ``page_size > 0`` asks for paginated results."""
        if page_size < 0:
            return Reply.failed(ValidationError("Page size is too small",
                                                context={"page_size": page_size}))
        params: Dict[str, Any] = {}
        if filter:
            params["filter"] = filter
        if page_size > 0:
            params["limit"] = str(page_size)
            params["offset"] = "0"
        return self.request(method, path, params, body)

    def _by_mac(self, resource: str, field: str, mac: str,
                filter: Optional[Dict[str, Any]], page_size: int) -> Reply:
        if page_size <= 0:
            return Reply.failed(ValidationError("Page size is too small",
                                                context={"page_size": page_size}))
        query = dict(filter or {})
        if mac:
            query[field] = mac
        return self.do("GET", resource, query, page_size=page_size)

    def endpoints(self, mac: str = "", filter: Optional[Dict[str, Any]] = None,
                  page_size: int = DEFAULT_PAGE_SIZE) -> Reply:
        """List endpoints, optionally the one with a given MAC address."""
        return self._by_mac(API_RESOURCE_ENDPOINT, "mac_address", mac, filter, page_size)

    def guests(self, mac: str = "", filter: Optional[Dict[str, Any]] = None,
               page_size: int = DEFAULT_PAGE_SIZE) -> Reply:
        """List guest accounts, optionally the one with a given MAC address."""
        return self._by_mac(API_RESOURCE_GUEST, "mac", mac, filter, page_size)
