"""Unit tests for the REST client (HTTP mocked with respx)."""
from __future__ import annotations

import httpx
import pytest

from core.api_client import (
    ApiError,
    AuthExpiredError,
    extract_rows,
    extract_total,
    unwrap,
)


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

class TestEnvelopes:
    def test_unwrap(self):
        assert unwrap({"data": {"id": 1}}) == {"id": 1}
        assert unwrap({"id": 1}) == {"id": 1}
        assert unwrap({"data": None, "message": "ok"}) == {"data": None, "message": "ok"}

    @pytest.mark.parametrize(
        "payload",
        [
            [{"id": 1}],
            {"data": [{"id": 1}]},
            {"rows": [{"id": 1}], "total": 1},
            {"data": {"deliveries": [{"id": 1}]}},
            {"data": {"items": [{"id": 1}], "pagination": {"total": 9}}},
        ],
    )
    def test_extract_rows(self, payload):
        assert extract_rows(payload) == [{"id": 1}]

    def test_extract_rows_unknown_shape(self):
        assert extract_rows({"message": "ok"}) == []
        assert extract_rows(None) == []

    def test_extract_total(self):
        assert extract_total({"data": [{}, {}], "pagination": {"total": 40}}) == 40
        assert extract_total({"data": [{}], "pagination": {"totalItems": "12"}}) == 12
        assert extract_total({"rows": [{}], "count": 7}) == 7
        assert extract_total([{}, {}, {}]) == 3


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class TestRequests:
    def test_bearer_token_sent(self, api, mock_api):
        route = mock_api.get("/products/1").mock(return_value=httpx.Response(200, json={"data": {"id": 1}}))
        assert api.get("/products/1") == {"data": {"id": 1}}
        assert route.calls.last.request.headers["Authorization"] == "Bearer tok"

    def test_empty_params_dropped(self, api, mock_api):
        route = mock_api.get("/purchases").mock(return_value=httpx.Response(200, json=[]))
        api.get("/purchases", params={"page": 1, "search": "", "status": None})
        assert dict(route.calls.last.request.url.params) == {"page": "1"}

    def test_empty_body_returns_none(self, api, mock_api):
        mock_api.delete("/products/1").mock(return_value=httpx.Response(204))
        assert api.delete("/products/1") is None

    def test_error_message_from_body(self, api, mock_api):
        mock_api.post("/products").mock(
            return_value=httpx.Response(400, json={"message": "Name already exists"})
        )
        with pytest.raises(ApiError) as exc_info:
            api.post("/products", json={"name": "x"})
        assert exc_info.value.message == "Name already exists"
        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "Name already exists (HTTP 400)"

    def test_error_without_body_uses_reason(self, api, mock_api):
        mock_api.get("/warehouse").mock(return_value=httpx.Response(500))
        with pytest.raises(ApiError) as exc_info:
            api.get("/warehouse")
        assert exc_info.value.message == "Internal Server Error"

    def test_transport_error_wrapped(self, api, mock_api):
        mock_api.get("/warehouse").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(ApiError) as exc_info:
            api.get("/warehouse")
        assert exc_info.value.status_code is None

    def test_timeout_wrapped(self, api, mock_api):
        mock_api.get("/warehouse").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(ApiError, match="timed out"):
            api.get("/warehouse")


# ---------------------------------------------------------------------------
# Token refresh
# ---------------------------------------------------------------------------

class TestTokenRefresh:
    def test_401_refreshes_and_replays(self, api, mock_api):
        route = mock_api.get("/users").mock(
            side_effect=[httpx.Response(401), httpx.Response(200, json=[{"id": 1}])]
        )
        refresh = mock_api.post("/auth/refresh-token").mock(
            return_value=httpx.Response(200, json={"token": "new-tok"})
        )
        assert api.get("/users") == [{"id": 1}]
        assert refresh.called
        assert api.token == "new-tok"
        assert route.calls.last.request.headers["Authorization"] == "Bearer new-tok"

    def test_failed_refresh_expires_session(self, api, mock_api):
        mock_api.get("/users").mock(return_value=httpx.Response(401))
        mock_api.post("/auth/refresh-token").mock(return_value=httpx.Response(401))
        with pytest.raises(AuthExpiredError):
            api.get("/users")
        assert api.token is None and api.refresh_token is None

    def test_401_after_refresh_expires_session(self, api, mock_api):
        mock_api.get("/users").mock(return_value=httpx.Response(401))
        mock_api.post("/auth/refresh-token").mock(
            return_value=httpx.Response(200, json={"token": "new-tok"})
        )
        with pytest.raises(AuthExpiredError):
            api.get("/users")

    def test_no_refresh_token(self, api, mock_api):
        api.refresh_token = None
        mock_api.get("/users").mock(return_value=httpx.Response(401))
        with pytest.raises(AuthExpiredError):
            api.get("/users")

    def test_401_without_token_is_plain_error(self, api, mock_api):
        api.clear_tokens()
        mock_api.post("/auth/login").mock(
            return_value=httpx.Response(401, json={"message": "Invalid credentials"})
        )
        with pytest.raises(ApiError) as exc_info:
            api.post("/auth/login", json={})
        assert not isinstance(exc_info.value, AuthExpiredError)
        assert exc_info.value.message == "Invalid credentials"

    def test_auth_expired_is_an_api_error(self):
        assert issubclass(AuthExpiredError, ApiError)


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------

class TestPaging:
    def test_fetch_page(self, api, mock_api):
        mock_api.get("/purchases").mock(
            return_value=httpx.Response(200, json={"data": [{"id": 1}], "pagination": {"total": 31}})
        )
        rows, total = api.fetch_page("/purchases", {"page": 2, "pageSize": 1})
        assert rows == [{"id": 1}] and total == 31

    def test_fetch_all_walks_pages(self, api, mock_api):
        def respond(request):
            page = int(request.url.params["page"])
            rows = {1: [{"id": 1}, {"id": 2}], 2: [{"id": 3}, {"id": 4}], 3: [{"id": 5}]}[page]
            return httpx.Response(200, json={"data": rows, "pagination": {"total": 5}})

        route = mock_api.get("/disposal").mock(side_effect=respond)
        rows = api.fetch_all("/disposal", params={"includeDeleted": "false"}, page_size=2)
        assert [r["id"] for r in rows] == [1, 2, 3, 4, 5]
        assert route.call_count == 3
        assert route.calls.last.request.url.params["includeDeleted"] == "false"

    def test_fetch_all_stops_on_short_page_without_total(self, api, mock_api):
        route = mock_api.get("/returns").mock(return_value=httpx.Response(200, json=[{"id": 1}]))
        assert api.fetch_all("/returns", page_size=10) == [{"id": 1}]
        assert route.call_count == 1

    def test_fetch_all_respects_max_pages(self, api, mock_api):
        route = mock_api.get("/users").mock(
            return_value=httpx.Response(200, json={"data": [{"id": 1}], "total": 1000})
        )
        rows = api.fetch_all("/users", page_size=1, max_pages=3)
        assert len(rows) == 3
        assert route.call_count == 3
