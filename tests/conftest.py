"""
Shared pytest configuration and fixtures for cpcli tests.

This module provides common fixtures used across all test modules including:
- A recording mock transport that plays scripted ClearPass replies
- Sessions bound to that transport, logged in or not
- Test data factories for HAL collection pages
"""

import logging
from typing import Any, Callable
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio
from typer.testing import CliRunner

from cpcli.core.models import CPPMConfig
from cpcli.core.session import Session

ADDRESS = "cppm.example.com"
API = f"https://{ADDRESS}/api"
WEB = f"https://{ADDRESS}/tips"


# ========== HTTP Mock Transport ==========


def reply(
    status_code: int = 200,
    json: Any = None,
    text: str | None = None,
    content: bytes | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Describe a scripted response; built fresh for every matching request."""
    return {
        "status_code": status_code,
        "json": json,
        "text": text,
        "content": content,
        "headers": headers or {},
    }


class MockTransport(httpx.MockTransport):
    """Mock transport that records requests and plays scripted responses.

    Responses are registered per (method, URL path). When several are
    registered for the same route they are used in order, the last one sticks.
    Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests_made: list[httpx.Request] = []
        super().__init__(self._handle_request)

    def add(self, method: str, path: str, *responses: dict[str, Any] | Callable) -> "MockTransport":
        self.routes.setdefault((method.upper(), path), []).extend(responses)
        return self

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests_made
            if (method is None or r.method == method.upper())
            and (path is None or r.url.path == path)
        ]

    def _handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests_made.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not found"})
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(scripted):
            return scripted(request)

        kwargs: dict[str, Any] = {"headers": scripted["headers"]}
        if scripted["json"] is not None:
            kwargs["json"] = scripted["json"]
        elif scripted["text"] is not None:
            kwargs["text"] = scripted["text"]
        elif scripted["content"] is not None:
            kwargs["content"] = scripted["content"]
        return httpx.Response(scripted["status_code"], **kwargs)


@pytest.fixture
def mock_transport() -> MockTransport:
    """Provide a fresh recording transport."""
    return MockTransport()


# ========== Session Fixtures ==========


@pytest_asyncio.fixture
async def session(mock_transport):
    """Session with no credentials."""
    s = Session(transport=mock_transport)
    yield s
    await s.aclose()


@pytest_asyncio.fixture
async def api_session(mock_transport):
    """Session with a cached access token."""
    s = Session(address=ADDRESS, token="test-token", refresh="test-refresh",
                transport=mock_transport)
    yield s
    await s.aclose()


@pytest.fixture
def cppm_config() -> CPPMConfig:
    """Provide a ClearPass configuration for testing."""
    return CPPMConfig(
        server=ADDRESS,
        client_id="cpcli",
        username="admin",
        verify_ssl=False,
        page_size=2,
        token="test-token",
        refresh="test-refresh",
    )


# ========== Helper Functions for Tests ==========


def collection(items: list[Any], self_href: str = "", next_href: str = "") -> dict[str, Any]:
    """Build a HAL collection page as returned by ClearPass."""
    links: dict[str, Any] = {}
    if self_href:
        links["self"] = {"href": self_href}
    if next_href:
        links["next"] = {"href": next_href}
    return {"_embedded": {"items": items}, "_links": links}


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ========== CLI Fixtures ==========


@pytest.fixture
def runner():
    """Typer CLI runner; restores the root logger the CLI reconfigures."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield CliRunner()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def session_factory(mock_transport):
    """Stand-in for open_session that builds sessions on the mock transport."""
    def factory(config, cookies=None):
        return Session(
            address=config.server,
            token=config.token,
            refresh=config.refresh,
            cookies=config.cookies if cookies is None else cookies,
            verify_ssl=config.verify_ssl,
            transport=mock_transport,
        )
    return factory


@pytest.fixture
def mock_loader(cppm_config):
    """ConfigLoader replaced in the CLI modules; ``load`` returns ``cppm_config``."""
    with patch("cpcli.cli.context.ConfigLoader") as loader:
        loader.load.return_value = cppm_config
        with patch("cpcli.cli.auth.ConfigLoader", loader):
            yield loader
