"""Tests for page list state and the collection holder."""
from __future__ import annotations

import pytest

from core.list_pipeline import ASCENDING, DESCENDING
from core.list_state import CollectionHolder, ListViewState


class TestSortRequests:
    def test_first_request_sorts_ascending(self):
        state = ListViewState()
        state.request_sort("date")
        assert (state.sort_field, state.sort_direction) == ("date", ASCENDING)

    def test_same_field_toggles_to_descending(self):
        state = ListViewState()
        state.request_sort("date")
        state.request_sort("date")
        assert state.sort_direction == DESCENDING
        state.request_sort("date")
        assert state.sort_direction == ASCENDING

    def test_new_field_resets_to_ascending(self):
        state = ListViewState(sort_field="date", sort_direction=DESCENDING)
        state.request_sort("quantity")
        assert (state.sort_field, state.sort_direction) == ("quantity", ASCENDING)

    def test_sort_config(self):
        assert ListViewState().sort_config is None
        config = ListViewState(sort_field="date", sort_direction=DESCENDING).sort_config
        assert config.field == "date" and not config.ascending

    def test_set_sort_ignores_unknown_direction(self):
        state = ListViewState()
        state.set_sort("date", "up")
        assert state.sort_direction == ASCENDING


class TestInputsResetPage:
    def test_search_resets_page(self):
        state = ListViewState(page=3)
        state.set_search("maize")
        assert state.page == 1

    def test_same_search_keeps_page(self):
        state = ListViewState(search_term="maize", page=3)
        state.set_search("maize")
        assert state.page == 3

    def test_filter_set_and_removed(self):
        state = ListViewState(page=2)
        state.set_filter("method", "damaged")
        assert state.filters == {"method": "damaged"} and state.page == 1
        state.page = 2
        state.set_filter("method", "")
        assert state.filters == {} and state.page == 1

    def test_deleted_toggle_returns_to_first_page(self):
        state = ListViewState(page=4)
        state.set_filter("includeDeleted", True)
        assert state.page == 1
        state.page = 3
        state.set_filter("includeDeleted", True)
        assert state.page == 3
        state.set_filter("includeDeleted", None)
        assert state.page == 1 and "includeDeleted" not in state.filters

    def test_page_size(self):
        state = ListViewState(page=4)
        state.set_page_size(20)
        assert (state.page_size, state.page) == (20, 1)
        with pytest.raises(ValueError):
            state.set_page_size(0)

    def test_clear_filters(self):
        state = ListViewState(search_term="x", filters={"method": "damaged"}, page=2)
        state.clear_filters()
        assert (state.search_term, state.filters, state.page) == ("", {}, 1)


class TestNavigation:
    def test_go_to_valid_page(self):
        state = ListViewState()
        assert state.go_to(3, 25)
        assert state.page == 3

    @pytest.mark.parametrize("target", [0, 4, 1])
    def test_go_to_out_of_range_or_current_is_ignored(self, target):
        state = ListViewState()
        assert not state.go_to(target, 25)
        assert state.page == 1

    def test_clamp(self):
        state = ListViewState(page=7)
        assert state.clamp(25) == 3
        assert state.clamp(0) == 1


class TestRun:
    def test_run_applies_state(self, disposals):
        state = ListViewState(filters={"method": "damaged"}, sort_field="date", sort_direction=DESCENDING, page_size=2)
        page = state.run(disposals, ("referenceNumber",))
        assert [r["id"] for r in page.visible_rows] == [10, 7]

    def test_run_pulls_page_back_when_result_shrinks(self, numbered):
        state = ListViewState(page=3, page_size=10)
        page = state.run(numbered[:12], ("name",))
        assert state.page == 2
        assert [r["id"] for r in page.visible_rows] == [10, 11]

    def test_run_on_empty_result_stays_on_first_page(self, numbered):
        state = ListViewState(search_term="nothing", page=1)
        page = state.run(numbered, ("name",))
        assert page.visible_rows == [] and state.page == 1

    def test_run_on_emptied_collection_returns_to_first_page(self):
        state = ListViewState(page=3, page_size=10)
        page = state.run([], ("name",))
        assert state.page == 1
        assert page.page == 1 and not page.has_previous

    def test_run_after_filter_matches_nothing_from_late_page(self, numbered):
        state = ListViewState(page=3, page_size=10)
        state.filters = {"name": "missing"}
        page = state.run(numbered, ("name",))
        assert state.page == 1 and page.total_count == 0


class TestCollectionHolder:
    def test_apply_current_ticket(self):
        holder = CollectionHolder()
        ticket = holder.begin_fetch()
        assert holder.apply(ticket, [{"id": 1}])
        assert holder.loaded and holder.rows == [{"id": 1}] and holder.total == 1

    def test_stale_response_is_discarded(self):
        holder = CollectionHolder()
        old = holder.begin_fetch()
        new = holder.begin_fetch()
        assert holder.apply(new, [{"id": 2}])
        assert not holder.apply(old, [{"id": 1}])
        assert holder.rows == [{"id": 2}]

    def test_server_total(self):
        holder = CollectionHolder()
        holder.apply(holder.begin_fetch(), [{"id": 1}], total=40)
        assert holder.total == 40

    def test_fail_keeps_previous_rows(self):
        holder = CollectionHolder()
        holder.apply(holder.begin_fetch(), [{"id": 1}])
        assert holder.fail(holder.begin_fetch(), "boom")
        assert holder.error == "boom" and holder.rows == [{"id": 1}]

    def test_success_clears_error(self):
        holder = CollectionHolder()
        holder.fail(holder.begin_fetch(), "boom")
        holder.apply(holder.begin_fetch(), [])
        assert holder.error is None

    def test_invalidate(self):
        holder = CollectionHolder()
        holder.apply(holder.begin_fetch(), [])
        holder.invalidate()
        assert not holder.loaded
