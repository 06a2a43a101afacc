"""
Tests for request construction: query parameters, filters, page sizes and
the endpoint/guest helpers.
"""

import json

import pytest

from conftest import API, collection, reply
from cpcli.core.exceptions import NotAuthenticatedError, ValidationError


def sent_filter(request):
    return json.loads(request.url.params["filter"])


@pytest.mark.asyncio
class TestRequest:
    """Test Session.request and Session.do."""

    async def test_not_logged_in(self, session, mock_transport):
        r = session.request("GET", "endpoint")

        assert not await r.advance()
        assert isinstance(r.error, NotAuthenticatedError)
        assert mock_transport.requests_made == []

    async def test_limit_adds_calculate_count(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        await api_session.request("GET", "endpoint", {"limit": "5"}).advance()

        params = mock_transport.requests_made[0].url.params
        assert params["limit"] == "5"
        assert params["calculate_count"] == "false"

    async def test_params_are_copied(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))
        params = {"limit": "5", "filter": {"mac_address": "86:DF:11:22:33:44"}}

        await api_session.request("GET", "endpoint", params).advance()

        assert params == {"limit": "5", "filter": {"mac_address": "86:DF:11:22:33:44"}}

    async def test_filter_is_normalized_and_encoded(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        await api_session.request(
            "GET", "endpoint", {"filter": {"mac_address": "86:DF:11:22:33:44"}}).advance()

        assert sent_filter(mock_transport.requests_made[0]) == {"mac_address": "86df11223344"}

    async def test_string_filter_is_decoded(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([])))

        await api_session.request("GET", "guest", {"filter": '{"mac": "86df11223344"}'}).advance()

        assert sent_filter(mock_transport.requests_made[0]) == {"mac": "86-DF-11-22-33-44"}

    async def test_bad_filter_never_sent(self, api_session, mock_transport):
        r = api_session.request("GET", "endpoint", {"filter": {"mac_address": 42}})

        assert not await r.advance()
        assert isinstance(r.error, ValidationError)
        assert mock_transport.requests_made == []

    async def test_empty_filter_is_dropped(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        await api_session.request("GET", "endpoint", {"filter": {}}).advance()

        assert "filter" not in mock_transport.requests_made[0].url.params

    async def test_body_and_token(self, api_session, mock_transport):
        mock_transport.add("POST", "/api/guest", reply(json={"id": 3}))

        r = api_session.request("POST", "/guest", body={"username": "x"})

        assert await r.advance()
        assert r.current() == {"id": 3}
        request = mock_transport.requests_made[0]
        assert str(request.url) == f"{API}/guest"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"username": "x"}

    async def test_do_with_page_size(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint", reply(json=collection([])))

        await api_session.do("GET", "endpoint", {"status": "Known"}, page_size=10).advance()

        params = mock_transport.requests_made[0].url.params
        assert params["limit"] == "10"
        assert params["offset"] == "0"
        assert params["calculate_count"] == "false"
        assert json.loads(params["filter"]) == {"status": "Known"}

    async def test_do_without_page_size(self, api_session, mock_transport):
        mock_transport.add("DELETE", "/api/endpoint/1", reply(204))

        await api_session.do("DELETE", "endpoint/1").advance()

        assert "limit" not in mock_transport.requests_made[0].url.params

    async def test_do_negative_page_size(self, api_session, mock_transport):
        r = api_session.do("GET", "endpoint", page_size=-1)

        assert not await r.advance()
        assert isinstance(r.error, ValidationError)
        assert mock_transport.requests_made == []


@pytest.mark.asyncio
class TestHelpers:
    """Test the endpoint and guest helpers."""

    async def test_endpoints_by_mac(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/endpoint",
                           reply(json=collection([{"mac_address": "86df11223344"}])))

        items = [i async for i in api_session.endpoints(mac="86-DF-11-22-33-44")]

        assert items == [{"mac_address": "86df11223344"}]
        request = mock_transport.requests_made[0]
        assert sent_filter(request) == {"mac_address": "86df11223344"}
        assert request.url.params["limit"] == "24"

    async def test_guests_by_mac(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([])))

        await api_session.guests(mac="86df11223344", page_size=5).advance()

        request = mock_transport.requests_made[0]
        assert sent_filter(request) == {"mac": "86-DF-11-22-33-44"}
        assert request.url.params["limit"] == "5"

    async def test_helpers_keep_other_filters(self, api_session, mock_transport):
        mock_transport.add("GET", "/api/guest", reply(json=collection([])))

        await api_session.guests(filter={"enabled": "true"}).advance()

        assert sent_filter(mock_transport.requests_made[0]) == {"enabled": "true"}

    @pytest.mark.parametrize("size", [0, -3])
    async def test_page_size_must_be_positive(self, api_session, mock_transport, size):
        r = api_session.endpoints(page_size=size)

        assert not await r.advance()
        assert isinstance(r.error, ValidationError)
        assert mock_transport.requests_made == []
