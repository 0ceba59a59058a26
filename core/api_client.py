"""HTTP access to the inventory REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh-token"
# Keys under which list endpoints return their rows
ROW_KEYS = ("data", "rows", "deliveries", "items", "results")


class ApiError(Exception):
    """Failed API call: non-2xx answer or a transport error (status_code None)."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class AuthExpiredError(ApiError):
    """The session token is no longer accepted and could not be refreshed."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase or "An error occurred"


def unwrap(payload: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope some endpoints wrap results in."""
    if isinstance(payload, dict) and "data" in payload and payload["data"] is not None:
        return payload["data"]
    return payload


def extract_rows(payload: Any) -> List[Dict[str, Any]]:
    """Rows of a list response, whatever envelope the endpoint used."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ROW_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                nested = extract_rows(value)
                if nested:
                    return nested
    return []


def extract_total(payload: Any, rows: Optional[List[Any]] = None) -> int:
    """Total record count reported by a list response (falls back to the row count)."""
    rows = extract_rows(payload) if rows is None else rows
    if isinstance(payload, dict):
        pagination = payload.get("pagination")
        candidates = []
        if isinstance(pagination, dict):
            candidates += [pagination.get("total"), pagination.get("totalItems")]
        candidates += [payload.get("total"), payload.get("count")]
        for value in candidates:
            if value is None:
                continue
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
    return len(rows)


class ApiClient:
    """Synchronous API client holding the session tokens.

    A 401 triggers one token refresh (when a refresh token is known) and a
    single replay of the request. If that fails the tokens are dropped and
    ``AuthExpiredError`` is raised so the app can return to the login form.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.refresh_token = refresh_token
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def set_tokens(self, token: Optional[str], refresh_token: Optional[str] = None) -> None:
        self.token = token
        if refresh_token is not None:
            self.refresh_token = refresh_token

    def clear_tokens(self) -> None:
        self.token = None
        self.refresh_token = None

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            raise ApiError(f"Request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Could not reach the server: {exc}") from exc

    def _refresh(self) -> bool:
        if not self.refresh_token:
            return False
        try:
            response = self._client.post(REFRESH_PATH, json={"refreshToken": self.refresh_token})
        except httpx.HTTPError:
            logger.exception("Token refresh request failed")
            return False
        if response.status_code >= 400:
            return False
        try:
            body = response.json()
        except ValueError:
            return False
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            return False
        self.token = token
        logger.info("Session token refreshed")
        return True

    def request(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        """Send a request and return the decoded JSON body (None for empty bodies)."""
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        kwargs: Dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json

        sent_token = self.token
        response = self._send(method, path, **kwargs)
        # A 401 without a token (wrong login) is an ordinary error
        if response.status_code == 401 and sent_token and path != REFRESH_PATH:
            if self._refresh():
                response = self._send(method, path, **kwargs)
            else:
                self.clear_tokens()
                raise AuthExpiredError("Session expired, please log in again", 401)
            if response.status_code == 401:
                self.clear_tokens()
                raise AuthExpiredError("Session expired, please log in again", 401)

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise ApiError(_error_message(response), response.status_code, payload)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {method} {path}", response.status_code) from exc

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def delete(self, path: str, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        return self.request("DELETE", path, params=params, json=json)

    def fetch_page(self, path: str, params: Optional[Dict[str, Any]] = None) -> tuple:
        """One server page: ``(rows, total)``."""
        payload = self.get(path, params=params)
        rows = extract_rows(payload)
        return rows, extract_total(payload, rows)

    def fetch_all(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        page_size: int = 100,
        max_pages: int = 200,
    ) -> List[Dict[str, Any]]:
        """Walk the server pages of a list endpoint and return every row."""
        collected: List[Dict[str, Any]] = []
        page = 1
        while page <= max_pages:
            query = dict(params or {})
            query.update({"page": page, "pageSize": page_size})
            rows, total = self.fetch_page(path, query)
            collected.extend(rows)
            if not rows or len(rows) < page_size or len(collected) >= total:
                break
            page += 1
        else:
            logger.warning("Stopped paging %s after %s pages", path, max_pages)
        return collected
