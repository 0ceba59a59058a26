"""Search, filter, sort and paginate a fetched collection for a list page.

Every management page (returns, disposals, deliveries, products, users,
prices) renders the same way: the raw records from the API are searched,
filtered, sorted and sliced into the rows of the current page. This module
holds that pipeline once so pages only declare which fields are searchable.

Records are plain dicts as returned by the API. Field names may be dotted
paths into nested objects (``"product.name"``). The collection is flattened
with ``pandas.json_normalize`` to carry the row masks and the sort order;
field values themselves are always read from the records.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

logger = logging.getLogger(__name__)

ASCENDING = "ascending"
DESCENDING = "descending"
SORT_DIRECTIONS = (ASCENDING, DESCENDING)

Record = Mapping[str, Any]
# A searchable field is a dotted path or a callable pulling a value out of a record
FieldRef = Union[str, Callable[[Record], Any]]


@dataclass(frozen=True)
class SortConfig:
    """Sort key and direction."""

    field: str
    direction: str = ASCENDING

    def __post_init__(self) -> None:
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(f"Unknown sort direction: {self.direction}")

    @property
    def ascending(self) -> bool:
        return self.direction == ASCENDING


@dataclass
class ListPage:
    """Rows of the current page plus what pagination controls need."""

    visible_rows: List[Record]
    total_count: int
    page: int
    page_size: int
    matched_rows: List[Record] = field(default_factory=list, repr=False)

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def first_index(self) -> int:
        """1-based position of the first visible row (0 when nothing is shown)."""
        if not self.visible_rows:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def last_index(self) -> int:
        if not self.visible_rows:
            return 0
        return self.first_index + len(self.visible_rows) - 1


def total_pages(total_count: int, page_size: int) -> int:
    if page_size <= 0 or total_count <= 0:
        return 0
    return math.ceil(total_count / page_size)


def clamp_page(page: int, total_count: int, page_size: int) -> int:
    """Return the closest valid page number for a collection of ``total_count``."""
    last = max(total_pages(total_count, page_size), 1)
    return min(max(int(page), 1), last)


def get_field(record: Record, path: str) -> Any:
    """Read a dotted path from a nested record, ``None`` when any hop is missing."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
        if value is None:
            return None
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _value(record: Record, path: str) -> Any:
    if path in record:
        return record[path]
    return get_field(record, path)


def _column(frame: pd.DataFrame, records: Sequence[Record], ref: FieldRef) -> Optional[pd.Series]:
    """Values of ``ref`` for every row of ``frame`` (None when the path never occurs).

    Values come from the records, not the normalized frame: a column that is
    missing on some rows would be widened to float there and large integers
    would stop comparing equal.
    """
    if callable(ref):
        return pd.Series([ref(records[i]) for i in frame.index], index=frame.index, dtype=object)
    values = [_value(records[i], ref) for i in frame.index]
    if ref not in frame.columns and all(v is None for v in values):
        return None
    return pd.Series(values, index=frame.index, dtype=object)


def _contains(series: pd.Series, needle: str) -> pd.Series:
    return series.map(lambda v: isinstance(v, str) and needle in v.casefold()).astype(bool)


def _equals(series: pd.Series, expected: Any) -> pd.Series:
    def _match(value: Any) -> bool:
        if _is_blank(value):
            return False
        # True == 1 in Python; flags only match flags
        if isinstance(value, bool) or isinstance(expected, bool):
            return type(value) is type(expected) and value == expected
        return value == expected

    return series.map(_match).astype(bool)


def search_mask(
    frame: pd.DataFrame,
    records: Sequence[Record],
    search_term: str,
    search_fields: Iterable[FieldRef],
) -> pd.Series:
    """True where any searchable field contains ``search_term`` (case-insensitive)."""
    needle = (search_term or "").casefold()
    if not needle:
        return pd.Series(True, index=frame.index)
    mask = pd.Series(False, index=frame.index)
    for ref in search_fields:
        column = _column(frame, records, ref)
        if column is None:
            continue
        mask = mask | _contains(column, needle)
    return mask


def filter_mask(
    frame: pd.DataFrame,
    records: Sequence[Record],
    filters: Optional[Mapping[str, Any]],
) -> pd.Series:
    """True where every non-empty filter value equals the record's field exactly."""
    mask = pd.Series(True, index=frame.index)
    for name, expected in (filters or {}).items():
        if _is_blank(expected):
            continue
        column = _column(frame, records, name)
        if column is None:
            return pd.Series(False, index=frame.index)
        mask = mask & _equals(column, expected)
    return mask


def sort_frame(frame: pd.DataFrame, records: Sequence[Record], sort_config: Optional[SortConfig]) -> pd.DataFrame:
    """Stable sort on one field; missing values rank lowest."""
    if sort_config is None or frame.empty:
        return frame
    column = _column(frame, records, sort_config.field)
    if column is None:
        return frame
    keyed = pd.DataFrame({"_key": column.astype(object)}, index=frame.index)
    keyed["_missing"] = keyed["_key"].map(_is_blank).astype(bool)
    present = keyed[~keyed["_missing"]]
    missing = keyed[keyed["_missing"]]
    try:
        present = present.sort_values("_key", ascending=sort_config.ascending, kind="stable")
    except TypeError:
        logger.debug("Mixed value types under %s; comparing as text", sort_config.field)
        present = present.sort_values(
            "_key",
            ascending=sort_config.ascending,
            kind="stable",
            key=lambda s: s.map(str),
        )
    if sort_config.ascending:
        order = list(missing.index) + list(present.index)
    else:
        order = list(present.index) + list(missing.index)
    return frame.loc[order]


def run_pipeline(
    collection: Sequence[Record],
    search_term: str = "",
    filters: Optional[Mapping[str, Any]] = None,
    sort_config: Optional[SortConfig] = None,
    page: int = 1,
    page_size: int = 10,
    search_fields: Iterable[FieldRef] = (),
) -> ListPage:
    """Search, filter, sort and paginate ``collection``.

    The steps always run in that order over the full collection. The page is
    not clamped here: asking for a page past the end yields no rows while
    ``total_count`` still reports the matched size. Callers that own page
    state clamp first (see ``core.list_state.ListViewState``).
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    records = list(collection or [])
    if not records:
        return ListPage(visible_rows=[], total_count=0, page=page, page_size=page_size)

    frame = pd.json_normalize(records)
    frame.index = pd.RangeIndex(len(records))

    mask = search_mask(frame, records, search_term, search_fields) & filter_mask(frame, records, filters)
    matched = sort_frame(frame[mask], records, sort_config)

    ordered = [records[i] for i in matched.index]
    start = (page - 1) * page_size
    visible = ordered[start:start + page_size]
    return ListPage(
        visible_rows=visible,
        total_count=len(ordered),
        page=page,
        page_size=page_size,
        matched_rows=ordered,
    )
