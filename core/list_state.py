"""Page-owned list state and the raw collection holder behind each list page."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from core.list_pipeline import (
    ASCENDING,
    DESCENDING,
    FieldRef,
    ListPage,
    Record,
    SortConfig,
    clamp_page,
    run_pipeline,
    total_pages,
)

logger = logging.getLogger(__name__)


@dataclass
class ListViewState:
    """Search, filters, sort and page window chosen on one list page."""

    search_term: str = ""
    filters: Dict[str, Any] = field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_direction: str = ASCENDING
    page: int = 1
    page_size: int = 10

    @property
    def sort_config(self) -> Optional[SortConfig]:
        if not self.sort_field:
            return None
        return SortConfig(self.sort_field, self.sort_direction)

    def request_sort(self, field_name: str) -> None:
        """Sort by ``field_name``; asking again for the same field flips to descending."""
        if self.sort_field == field_name and self.sort_direction == ASCENDING:
            self.sort_direction = DESCENDING
        else:
            self.sort_direction = ASCENDING
        self.sort_field = field_name

    def set_sort(self, field_name: Optional[str], direction: str = ASCENDING) -> None:
        self.sort_field = field_name or None
        self.sort_direction = direction if direction in (ASCENDING, DESCENDING) else ASCENDING

    def set_search(self, term: str) -> None:
        term = term or ""
        if term != self.search_term:
            self.search_term = term
            self.page = 1

    def set_filter(self, name: str, value: Any) -> None:
        if value in (None, ""):
            changed = self.filters.pop(name, None) is not None
        else:
            changed = self.filters.get(name) != value
            self.filters[name] = value
        if changed:
            self.page = 1

    def clear_filters(self) -> None:
        self.search_term = ""
        self.filters = {}
        self.page = 1

    def set_page_size(self, size: int) -> None:
        size = int(size)
        if size < 1:
            raise ValueError("page size must be >= 1")
        if size != self.page_size:
            self.page_size = size
            self.page = 1

    def go_to(self, page: int, total_count: int) -> bool:
        """Move to ``page`` if it exists; returns whether the page changed."""
        last = total_pages(total_count, self.page_size)
        if page < 1 or page > last or page == self.page:
            return False
        self.page = page
        return True

    def clamp(self, total_count: int) -> int:
        self.page = clamp_page(self.page, total_count, self.page_size)
        return self.page

    def run(self, collection: List[Record], search_fields: Iterable[FieldRef]) -> ListPage:
        """Run the pipeline, pulling the page back when the result shrank under it."""
        search_fields = list(search_fields)
        result = run_pipeline(
            collection,
            search_term=self.search_term,
            filters=self.filters,
            sort_config=self.sort_config,
            page=self.page,
            page_size=self.page_size,
            search_fields=search_fields,
        )
        if not result.visible_rows and self.page > 1:
            self.clamp(result.total_count)
            logger.debug("Page moved back to %s of %s", self.page, result.total_pages)
            result = run_pipeline(
                collection,
                search_term=self.search_term,
                filters=self.filters,
                sort_config=self.sort_config,
                page=self.page,
                page_size=self.page_size,
                search_fields=search_fields,
            )
        return result


@dataclass
class CollectionHolder:
    """Latest raw collection fetched for a page.

    Each fetch takes a ticket from ``begin_fetch``. Only the newest ticket may
    store its rows, so a slow response that lands after a newer one is
    dropped instead of overwriting fresher data.
    """

    rows: List[Record] = field(default_factory=list)
    total: int = 0
    loaded: bool = False
    error: Optional[str] = None
    _issued: int = 0

    def begin_fetch(self) -> int:
        self._issued += 1
        return self._issued

    def is_current(self, ticket: int) -> bool:
        return ticket == self._issued

    def apply(self, ticket: int, rows: List[Record], total: Optional[int] = None) -> bool:
        if not self.is_current(ticket):
            logger.info("Discarding stale fetch %s (latest is %s)", ticket, self._issued)
            return False
        self.rows = list(rows)
        self.total = len(self.rows) if total is None else int(total)
        self.loaded = True
        self.error = None
        return True

    def fail(self, ticket: int, message: str) -> bool:
        if not self.is_current(ticket):
            return False
        self.error = message
        return True

    def invalidate(self) -> None:
        """Force the next render to refetch."""
        self.loaded = False
