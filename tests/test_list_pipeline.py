"""Tests for the search/filter/sort/paginate pipeline."""
from __future__ import annotations

import math

import pytest

from core.list_pipeline import (
    ASCENDING,
    DESCENDING,
    ListPage,
    SortConfig,
    clamp_page,
    get_field,
    run_pipeline,
    total_pages,
)

DISPOSAL_SEARCH = ("referenceNumber", "product.name", "warehouse.name", "method")


def ids(rows):
    return [r["id"] for r in rows]


class TestIdentity:
    def test_no_search_no_filters_keeps_everything_in_order(self, disposals):
        page = run_pipeline(disposals, page_size=100, search_fields=DISPOSAL_SEARCH)
        assert ids(page.visible_rows) == ids(disposals)
        assert page.total_count == len(disposals)

    def test_blank_filter_values_are_ignored(self, disposals):
        page = run_pipeline(disposals, filters={"method": "", "warehouse.name": None}, page_size=100)
        assert page.total_count == 12

    def test_empty_collection(self):
        page = run_pipeline([], search_term="x", page=3)
        assert page.visible_rows == []
        assert page.total_count == 0
        assert page.total_pages == 0

    def test_records_are_not_modified(self, disposals):
        before = [dict(r) for r in disposals]
        run_pipeline(
            disposals,
            search_term="mai",
            filters={"method": "damaged"},
            sort_config=SortConfig("date", DESCENDING),
            search_fields=DISPOSAL_SEARCH,
        )
        assert disposals == before


class TestSearch:
    def test_case_insensitive_substring(self, disposals):
        upper = run_pipeline(disposals, search_term="MAIZE", page_size=100, search_fields=DISPOSAL_SEARCH)
        lower = run_pipeline(disposals, search_term="maize", page_size=100, search_fields=DISPOSAL_SEARCH)
        assert ids(upper.visible_rows) == ids(lower.visible_rows)
        assert upper.total_count == 4
        assert all(r["product"]["name"] == "Maize" for r in upper.visible_rows)

    def test_any_field_can_match(self, disposals):
        page = run_pipeline(disposals, search_term="dsp-01", page_size=100, search_fields=DISPOSAL_SEARCH)
        assert ids(page.visible_rows) == [10, 11, 12]

    def test_only_listed_fields_are_searched(self, disposals):
        page = run_pipeline(disposals, search_term="maize", page_size=100, search_fields=("method",))
        assert page.total_count == 0

    def test_non_string_values_never_match(self):
        rows = [{"id": 1, "quantity": 12}, {"id": 2, "quantity": "12 bags"}]
        page = run_pipeline(rows, search_term="12", search_fields=("quantity",))
        assert ids(page.visible_rows) == [2]

    def test_missing_nested_object_does_not_raise(self, deliveries):
        page = run_pipeline(
            deliveries,
            search_term="wheels",
            search_fields=("driver.user.profile.names", "warehouse.name"),
        )
        assert ids(page.visible_rows) == [3]

    def test_callable_extractor(self, disposals):
        page = run_pipeline(
            disposals,
            search_term="dsp-002",
            search_fields=(lambda r: r["referenceNumber"],),
        )
        assert ids(page.visible_rows) == [2]


class TestFilter:
    def test_kept_records_equal_and_excluded_differ(self, disposals):
        page = run_pipeline(disposals, filters={"method": "damaged"}, page_size=100)
        kept = set(ids(page.visible_rows))
        assert all(r["method"] == "damaged" for r in page.visible_rows)
        assert all(r["method"] != "damaged" for r in disposals if r["id"] not in kept)

    def test_filters_are_and_combined(self, disposals):
        page = run_pipeline(disposals, filters={"method": "damaged", "warehouse.name": "Main"}, page_size=100)
        assert ids(page.visible_rows) == [1, 7]

    def test_missing_field_is_excluded(self, deliveries):
        page = run_pipeline(deliveries, filters={"warehouse.name": "Main"})
        assert ids(page.visible_rows) == [1]

    def test_unknown_field_excludes_everything(self, disposals):
        page = run_pipeline(disposals, filters={"colour": "red"})
        assert page.total_count == 0

    def test_exact_match_not_substring(self, disposals):
        page = run_pipeline(disposals, filters={"method": "damage"})
        assert page.total_count == 0

    def test_bool_filter_does_not_match_numbers(self):
        rows = [{"id": 1, "active": True}, {"id": 2, "active": 1}, {"id": 3, "active": False}]
        page = run_pipeline(rows, filters={"active": True})
        assert ids(page.visible_rows) == [1]

    def test_large_integers_match_exactly_when_field_is_sparse(self):
        big = 2**53 + 1
        rows = [{"id": 1, "ref": big}, {"id": 2}, {"id": 3, "ref": big - 1}]
        page = run_pipeline(rows, filters={"ref": big})
        assert ids(page.visible_rows) == [1]


class TestSort:
    def test_ascending_and_descending_reverse_for_distinct_keys(self, disposals):
        asc = run_pipeline(disposals, sort_config=SortConfig("date", ASCENDING), page_size=100)
        desc = run_pipeline(disposals, sort_config=SortConfig("date", DESCENDING), page_size=100)
        assert ids(asc.visible_rows) == list(reversed(ids(desc.visible_rows)))

    def test_stable_for_equal_keys(self, disposals):
        page = run_pipeline(disposals, sort_config=SortConfig("method"), page_size=100)
        assert ids(page.visible_rows) == [1, 4, 7, 10, 3, 6, 9, 12, 2, 5, 8, 11]

    def test_stable_descending_keeps_tie_order(self, disposals):
        page = run_pipeline(disposals, sort_config=SortConfig("method", DESCENDING), page_size=100)
        assert ids(page.visible_rows) == [2, 5, 8, 11, 3, 6, 9, 12, 1, 4, 7, 10]

    def test_idempotent(self, disposals):
        config = SortConfig("product.name")
        once = run_pipeline(disposals, sort_config=config, page_size=100).visible_rows
        twice = run_pipeline(once, sort_config=config, page_size=100).visible_rows
        assert ids(once) == ids(twice)

    def test_numeric_values_sort_numerically(self):
        rows = [{"id": i, "quantity": q} for i, q in enumerate([10, 9, 100, 1.5])]
        page = run_pipeline(rows, sort_config=SortConfig("quantity"))
        assert [r["quantity"] for r in page.visible_rows] == [1.5, 9, 10, 100]

    def test_large_integers_sort_exactly_when_field_is_sparse(self):
        big = 2**53
        rows = [{"id": 1, "ref": big + 2}, {"id": 2}, {"id": 3, "ref": big + 1}]
        page = run_pipeline(rows, sort_config=SortConfig("ref"))
        assert ids(page.visible_rows) == [2, 3, 1]

    def test_missing_values_rank_lowest(self, deliveries):
        asc = run_pipeline(deliveries, sort_config=SortConfig("warehouse.name", ASCENDING))
        desc = run_pipeline(deliveries, sort_config=SortConfig("warehouse.name", DESCENDING))
        assert ids(asc.visible_rows) == [3, 1, 2]
        assert ids(desc.visible_rows) == [2, 1, 3]

    def test_no_sort_config_keeps_fetch_order(self, disposals):
        shuffled = disposals[::-1]
        page = run_pipeline(shuffled, page_size=100)
        assert ids(page.visible_rows) == ids(shuffled)

    def test_invalid_direction_rejected(self):
        with pytest.raises(ValueError):
            SortConfig("date", "sideways")


class TestPagination:
    def test_first_and_last_page(self, numbered):
        first = run_pipeline(numbered, page=1, page_size=10)
        last = run_pipeline(numbered, page=3, page_size=10)
        assert ids(first.visible_rows) == list(range(10))
        assert ids(last.visible_rows) == list(range(20, 25))
        assert first.total_count == last.total_count == 25
        assert first.total_pages == 3

    def test_page_beyond_last_is_empty_but_counts(self, numbered):
        page = run_pipeline(numbered[:5], page=2, page_size=10)
        assert page.visible_rows == []
        assert page.total_count == 5

    def test_window_properties(self, numbered):
        page = run_pipeline(numbered, page=2, page_size=10)
        assert (page.first_index, page.last_index) == (11, 20)
        assert page.has_previous and page.has_next
        assert not run_pipeline(numbered, page=3, page_size=10).has_next

    def test_matched_rows_hold_whole_result(self, numbered):
        page = run_pipeline(numbered, search_term="item 1", page=1, page_size=3, search_fields=("name",))
        assert page.total_count == 10
        assert len(page.visible_rows) == 3
        assert ids(page.matched_rows) == list(range(10, 20))

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_window_raises(self, numbered, page, page_size):
        with pytest.raises(ValueError):
            run_pipeline(numbered, page=page, page_size=page_size)

    @pytest.mark.parametrize("count,size", [(0, 10), (1, 10), (10, 10), (11, 10), (25, 7)])
    def test_total_pages(self, count, size):
        assert total_pages(count, size) == math.ceil(count / size)

    def test_clamp_page(self):
        assert clamp_page(5, 25, 10) == 3
        assert clamp_page(0, 25, 10) == 1
        assert clamp_page(4, 0, 10) == 1

    def test_empty_page_has_zero_indexes(self):
        page = ListPage(visible_rows=[], total_count=0, page=1, page_size=10)
        assert (page.first_index, page.last_index) == (0, 0)


class TestEndToEnd:
    def test_recent_damaged_disposals(self, disposals):
        page = run_pipeline(
            disposals,
            filters={"method": "damaged"},
            sort_config=SortConfig("date", DESCENDING),
            page=1,
            page_size=2,
            search_fields=DISPOSAL_SEARCH,
        )
        assert page.total_count == 4
        assert ids(page.visible_rows) == [10, 7]
        assert page.total_pages == 2


class TestGetField:
    def test_dotted_path(self, deliveries):
        assert get_field(deliveries[0], "driver.user.profile.names") == "John Driver"

    def test_missing_hops_return_none(self, deliveries):
        assert get_field(deliveries[1], "driver.user.profile.names") is None
        assert get_field(deliveries[0], "nothing.here") is None
        assert get_field(deliveries[0], "product.name.first") is None
