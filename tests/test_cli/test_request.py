"""
Tests for cpcli REST commands (get/post/put/patch/delete, endpoints, guests).
"""

import json
from unittest.mock import patch

import pytest

from conftest import API, collection, reply
from cpcli.cli import app
from cpcli.core.exceptions import ConfigurationError


@pytest.fixture
def cli(runner, mock_loader, session_factory):
    """Invoke the CLI with sessions bound to the mock transport."""
    with patch("cpcli.cli.request.open_session", side_effect=session_factory):
        yield lambda *args, **kwargs: runner.invoke(app, list(args), **kwargs)


class TestGet:
    """Test the get command."""

    def test_prints_ndjson(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection(
            [{"id": 1, "mac_address": "aabbccddeeff"}, {"id": 2, "mac_address": "001122334455"}])))

        result = cli("get", "endpoint")

        assert result.exit_code == 0
        assert json.dumps({"id": 1, "mac_address": "aabbccddeeff"}) in result.output
        assert json.dumps({"id": 2, "mac_address": "001122334455"}) in result.output

    def test_query_parameters(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        cli("get", "endpoint")

        params = mock_transport.requests_made[0].url.params
        assert params["limit"] == "2"
        assert params["offset"] == "0"
        assert params["calculate_count"] == "false"
        assert mock_transport.requests_made[0].headers["Authorization"] == "Bearer test-token"

    def test_follows_pages(self, cli, mock_transport):
        mock_transport.add(
            "GET", "/api/endpoint",
            reply(json=collection([{"id": 1}, {"id": 2}],
                                  next_href="/api/endpoint?offset=2&limit=2")),
            reply(json=collection([{"id": 3}])),
        )

        result = cli("get", "endpoint", "id", "--skip-headers")

        assert result.exit_code == 0
        assert len(mock_transport.calls("GET", "/api/endpoint")) == 2
        assert [line for line in result.output.splitlines() if line in ("1", "2", "3")] == [
            "1", "2", "3"]

    def test_selectors(self, cli, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([
            {"username": "bob", "attributes": {"sponsor": "alice"}},
        ])))

        result = cli("get", "guest", "username", "attributes.sponsor")

        assert "username;attributes.sponsor" in result.output
        assert "bob;alice" in result.output

    def test_filter_is_normalized(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        cli("get", "endpoint", "--filter", "mac_address=AA:BB:CC:DD:EE:FF", "-f", "status")

        sent = json.loads(mock_transport.requests_made[0].url.params["filter"])
        assert sent == {"mac_address": "aabbccddeeff", "status": {"$exists": True}}

    def test_bad_filter(self, cli, mock_transport):
        result = cli("get", "endpoint", "--filter", "{not json")

        assert result.exit_code == 1
        assert "Invalid input" in result.output
        assert mock_transport.requests_made == []

    def test_page_size_option(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        cli("get", "endpoint", "--page-size", "10")

        assert mock_transport.requests_made[0].url.params["limit"] == "10"

    def test_not_authenticated(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(401, json={"detail": "expired"}))

        result = cli("get", "endpoint")

        assert result.exit_code == 1
        assert "cpcli login" in result.output

    def test_not_logged_in(self, cli, cppm_config, mock_transport):
        cppm_config.token = ""

        result = cli("get", "endpoint")

        assert result.exit_code == 1
        assert mock_transport.requests_made == []

    def test_no_profile(self, cli, mock_loader):
        mock_loader.load.side_effect = ConfigurationError("No server configured")

        result = cli("get", "endpoint")

        assert result.exit_code == 1
        assert "No server configured" in result.output


class TestBodies:
    """Test request bodies from --body and stdin."""

    def test_body_option(self, cli, mock_transport):
        mock_transport.add("POST", "/api/endpoint", reply(json={"id": 7}))

        result = cli("post", "endpoint", "--body", '{"mac_address": "aabbccddeeff"}')

        assert result.exit_code == 0
        request = mock_transport.requests_made[0]
        assert json.loads(request.content) == {"mac_address": "aabbccddeeff"}
        assert "limit" not in request.url.params
        assert '{"id": 7}' in result.output

    def test_stdin_lines(self, cli, mock_transport):
        mock_transport.add("PATCH", "/api/endpoint/1", reply(json={"id": 1}))

        result = cli("patch", "endpoint/1", input='{"status": "Known"}\n\n{"status": "Unknown"}\n')

        assert result.exit_code == 0
        bodies = [json.loads(r.content) for r in mock_transport.calls("PATCH")]
        assert bodies == [{"status": "Known"}, {"status": "Unknown"}]

    def test_invalid_stdin_line_is_skipped(self, cli, mock_transport):
        mock_transport.add("POST", "/api/guest", reply(json={"id": 1}))

        result = cli("post", "guest", input='{"username": "a"}\nnot json\n')

        assert len(mock_transport.calls("POST")) == 1
        assert "Skipping invalid input line" in result.output

    def test_invalid_body_option(self, cli, mock_transport):
        result = cli("put", "endpoint/1", "--body", "{bad")

        assert result.exit_code == 1
        assert "Invalid JSON body" in result.output
        assert mock_transport.requests_made == []

    def test_delete_without_body(self, cli, mock_transport):
        mock_transport.add("DELETE", "/api/endpoint/1", reply(204))

        result = cli("delete", "endpoint/1")

        assert result.exit_code == 0
        assert mock_transport.requests_made[0].content == b""

    def test_server_error_continues(self, cli, mock_transport):
        mock_transport.add("POST", "/api/endpoint", reply(500, text="boom"), reply(json={"id": 2}))

        result = cli("post", "endpoint", input='{"a": 1}\n{"a": 2}\n')

        assert result.exit_code == 1
        assert len(mock_transport.calls("POST")) == 2
        assert '{"id": 2}' in result.output

    def test_auth_error_aborts(self, cli, mock_transport):
        mock_transport.add("POST", "/api/endpoint", reply(403))

        result = cli("post", "endpoint", input='{"a": 1}\n{"a": 2}\n')

        assert result.exit_code == 1
        assert len(mock_transport.calls("POST")) == 1


class TestListCommands:
    """Test endpoints and guests."""

    def test_endpoints_by_mac(self, cli, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([{"id": 1}])))

        result = cli("endpoints", "--mac", "AA-BB-CC-DD-EE-FF")

        assert result.exit_code == 0
        sent = json.loads(mock_transport.requests_made[0].url.params["filter"])
        assert sent == {"mac_address": "aabbccddeeff"}

    def test_guests_by_mac(self, cli, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([])))

        cli("guests", "-m", "aabb.ccdd.eeff", "--filter", "role_id=2")

        sent = json.loads(mock_transport.requests_made[0].url.params["filter"])
        assert sent == {"role_id": "2", "mac": "AA-BB-CC-DD-EE-FF"}

    def test_stdin_is_ignored(self, cli, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([])))

        cli("guests", input='{"a": 1}\n{"a": 2}\n')

        assert len(mock_transport.calls("GET", "/api/guest")) == 1

    def test_zero_page_size(self, cli, mock_transport):
        result = cli("endpoints", "--page-size", "0")

        assert result.exit_code == 1
        assert "Page size is too small" in result.output
        assert mock_transport.requests_made == []


def test_url_is_under_api(cli, mock_transport):
    mock_transport.add("GET", "/api/insight/endpoint/mac/aabbccddeeff", reply(json={"ok": True}))

    result = cli("get", "insight/endpoint/mac/aabbccddeeff")

    assert result.exit_code == 0
    assert str(mock_transport.requests_made[0].url).startswith(f"{API}/insight/")
