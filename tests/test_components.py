"""Tests for the session-free parts of the UI kit."""
from __future__ import annotations

import pytest

from core.api_client import ApiError, AuthExpiredError
from core.list_state import CollectionHolder
from ui import components


@pytest.fixture
def holders(monkeypatch):
    """Collection holders kept in a dict instead of the Streamlit session."""
    store = {}

    def collection(key):
        return store.setdefault(key, CollectionHolder(loaded=True))

    monkeypatch.setattr(components, "collection", collection)
    monkeypatch.setattr(components, "flash", lambda message, icon="✅": None)
    return store


def test_collection_keys():
    assert components.collection_keys("users") == ("users", "users_all")


class TestRunWrite:
    def test_success_refreshes_every_listed_collection(self, holders):
        for key in ("users", "users_all", "products"):
            components.collection(key)
        assert components.run_write(lambda: None, "Saved", components.collection_keys("users"))
        assert not holders["users"].loaded
        assert not holders["users_all"].loaded
        assert holders["products"].loaded

    def test_single_key(self, holders):
        components.collection("returns")
        assert components.run_write(lambda: None, "Saved", "returns")
        assert not holders["returns"].loaded

    def test_failure_keeps_cached_rows(self, holders, monkeypatch):
        errors = []
        monkeypatch.setattr(components.st, "error", errors.append)
        components.collection("users")

        def fail():
            raise ApiError("Username taken", 409)

        assert not components.run_write(fail, "Saved", components.collection_keys("users"))
        assert holders["users"].loaded
        assert errors == ["❌ Username taken"]

    def test_expired_session_propagates(self, holders):
        def expire():
            raise AuthExpiredError("Session expired", 401)

        with pytest.raises(AuthExpiredError):
            components.run_write(expire, "Saved", "users")


class TestLatestRecord:
    def test_fresh_copy_wins(self):
        listed = {"id": 1, "status": "pending"}
        assert components.latest_record(lambda: {"id": 1, "status": "delivered"}, listed)["status"] == "delivered"

    def test_falls_back_to_listed_copy(self):
        listed = {"id": 1, "status": "pending"}

        def fail():
            raise ApiError("Not found", 404)

        assert components.latest_record(fail, listed) is listed
        assert components.latest_record(lambda: None, listed) is listed

    def test_expired_session_propagates(self):
        def expire():
            raise AuthExpiredError("Session expired", 401)

        with pytest.raises(AuthExpiredError):
            components.latest_record(expire, {"id": 1})
