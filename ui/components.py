"""Reusable UI components for the management pages."""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
import streamlit as st

from core.api_client import ApiError, AuthExpiredError
from core.constants import PAGE_SIZE_OPTIONS
from core.exporting import EXCEL_MIME, PDF_MIME, records_to_frame, to_excel_bytes, to_pdf_bytes
from core.list_pipeline import ASCENDING, DESCENDING, ListPage, get_field
from core.list_state import CollectionHolder, ListViewState

logger = logging.getLogger(__name__)

FLASH_KEY = "flash_messages"


# ----------------------------------------------------------------------------
# Session-held state
# ----------------------------------------------------------------------------

def list_state(key: str, default_sort: Optional[Tuple[str, str]] = None, page_size: int = 10) -> ListViewState:
    """The list state of page ``key``, created on first visit."""
    state_key = f"list_{key}"
    if state_key not in st.session_state:
        state = ListViewState(page_size=page_size)
        if default_sort:
            state.set_sort(*default_sort)
        st.session_state[state_key] = state
    return st.session_state[state_key]


def collection(key: str) -> CollectionHolder:
    holder_key = f"rows_{key}"
    if holder_key not in st.session_state:
        st.session_state[holder_key] = CollectionHolder()
    return st.session_state[holder_key]


def load_collection(key: str, fetch: Callable[[], Any], force: bool = False) -> CollectionHolder:
    """Fetch the page's records unless they are already loaded.

    ``fetch`` returns either the rows or a ``(rows, total)`` pair for
    server-paginated lists.
    """
    holder = collection(key)
    if holder.loaded and not force:
        return holder
    ticket = holder.begin_fetch()
    try:
        with st.spinner("Loading..."):
            result = fetch()
    except AuthExpiredError:
        raise
    except ApiError as e:
        logger.exception("Failed to load %s", key)
        holder.fail(ticket, e.message)
    else:
        rows, total = result if isinstance(result, tuple) else (result, None)
        holder.apply(ticket, rows, total)
    return holder


def refresh(key: str) -> None:
    """Drop the cached records of page ``key`` so the next run refetches them."""
    collection(key).invalidate()


def collection_keys(key: str) -> Tuple[str, str]:
    """Keys of a page's collection and of its "show deleted" variant."""
    return key, f"{key}_all"


def flash(message: str, icon: str = "✅") -> None:
    """Queue a toast for the next rerun."""
    st.session_state.setdefault(FLASH_KEY, []).append((message, icon))


def show_flash() -> None:
    for message, icon in st.session_state.pop(FLASH_KEY, []):
        st.toast(message, icon=icon)


# ----------------------------------------------------------------------------
# Formatting
# ----------------------------------------------------------------------------

def format_date(value: Any) -> str:
    dt = pd.to_datetime(value, errors="coerce")
    if pd.isna(dt):
        return "" if value is None else str(value)
    return dt.strftime("%d/%m/%Y")


def format_number(value: Any, digits: int = 2) -> str:
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return ""
    return f"{number:,.{digits}f}".rstrip("0").rstrip(".") if digits else f"{number:,.0f}"


def format_label(value: Any) -> str:
    """``returned_to_supplier`` -> ``Returned To Supplier``."""
    if value is None:
        return ""
    return str(value).replace("_", " ").title()


# ----------------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------------

def render_error_banner(holder: CollectionHolder, key: str) -> bool:
    """Show the fetch error with a Retry button; True when the page has nothing to show."""
    if not holder.error:
        return False
    st.error(f"⚠️ {holder.error}")
    if st.button("\U0001F501 Retry", key=f"retry_{key}"):
        holder.invalidate()
        st.rerun()
    return not holder.rows


def render_stat_cards(metrics: Sequence[Tuple[str, Any]]) -> None:
    cols = st.columns(len(metrics)) if metrics else []
    for col, (label, value) in zip(cols, metrics):
        col.metric(label, value)


def render_list_controls(
    state: ListViewState,
    key: str,
    search_label: str = "Search",
    filters: Optional[Dict[str, Tuple[str, Sequence[Any]]]] = None,
    sort_fields: Optional[Dict[str, str]] = None,
) -> str:
    """Search box, filter selects, sort select and view toggle; returns the view type."""
    filters = filters or {}
    sort_fields = sort_fields or {}

    search = st.text_input(search_label, value=state.search_term, key=f"{key}_search")
    state.set_search(search)

    if filters:
        cols = st.columns(len(filters))
        for col, (label, (field_name, options)) in zip(cols, filters.items()):
            choices = [""] + list(options)
            current = state.filters.get(field_name, "")
            index = choices.index(current) if current in choices else 0
            value = col.selectbox(
                label,
                choices,
                index=index,
                format_func=lambda v: "All" if v == "" else format_label(v),
                key=f"{key}_filter_{field_name}",
            )
            state.set_filter(field_name, value)

    # Seeded once; header clicks write these keys in their callback
    st.session_state.setdefault(f"{key}_sort", _sort_label(state, sort_fields))
    st.session_state.setdefault(f"{key}_direction", state.sort_direction)

    col1, col2, col3, col4 = st.columns([3, 2, 2, 2])
    with col1:
        chosen = st.selectbox("Sort by", ["Fetch order"] + list(sort_fields), key=f"{key}_sort")
    with col2:
        direction = st.radio(
            "Order",
            [ASCENDING, DESCENDING],
            format_func=lambda d: "↑ Asc" if d == ASCENDING else "↓ Desc",
            horizontal=True,
            key=f"{key}_direction",
        )
    state.set_sort(sort_fields.get(chosen), direction)
    with col3:
        view = st.radio("View", ["Table", "Cards"], horizontal=True, key=f"{key}_view")
    with col4:
        if st.button("\U0001F504 Refresh", key=f"{key}_refresh"):
            refresh(key)
            st.rerun()
        if st.button("Clear filters", key=f"{key}_clear"):
            state.clear_filters()
            for widget in [k for k in st.session_state.keys() if str(k).startswith(f"{key}_filter_")]:
                del st.session_state[widget]
            st.session_state.pop(f"{key}_search", None)
            st.rerun()
    render_sort_headers(state, key, sort_fields)
    return view


def _sort_label(state: ListViewState, sort_fields: Dict[str, str]) -> str:
    return next((label for label, f in sort_fields.items() if f == state.sort_field), "Fetch order")


def _header_clicked(state: ListViewState, key: str, field_name: str, sort_fields: Dict[str, str]) -> None:
    state.request_sort(field_name)
    st.session_state[f"{key}_sort"] = _sort_label(state, sort_fields)
    st.session_state[f"{key}_direction"] = state.sort_direction


def render_sort_headers(state: ListViewState, key: str, sort_fields: Dict[str, str]) -> None:
    """Clickable column headers: first click sorts ascending, the next flips it."""
    if not sort_fields:
        return
    cols = st.columns(len(sort_fields))
    for col, (label, field_name) in zip(cols, sort_fields.items()):
        arrow = ""
        if state.sort_field == field_name:
            arrow = " ↑" if state.sort_direction == ASCENDING else " ↓"
        col.button(
            f"{label}{arrow}",
            key=f"{key}_header_{field_name}",
            on_click=_header_clicked,
            args=(state, key, field_name, sort_fields),
            width="stretch",
        )


def _display_frame(
    rows: List[Dict[str, Any]],
    columns: Dict[str, str],
    formatters: Optional[Dict[str, Callable[[Any], Any]]] = None,
) -> pd.DataFrame:
    df = records_to_frame(rows, columns)
    for header, fmt in (formatters or {}).items():
        if header in df.columns:
            df[header] = df[header].map(fmt)
    return df


def render_records_table(
    rows: List[Dict[str, Any]],
    columns: Dict[str, str],
    key: str,
    formatters: Optional[Dict[str, Callable[[Any], Any]]] = None,
) -> Optional[Dict[str, Any]]:
    """Render rows as a table; returns the row the user selected, if any."""
    if not rows:
        st.info("No records to show")
        return None
    df = _display_frame(rows, columns, formatters)
    event = st.dataframe(
        df,
        width="stretch",
        hide_index=True,
        on_select="rerun",
        selection_mode="single-row",
        key=f"{key}_table",
    )
    selected = list(getattr(getattr(event, "selection", None), "rows", []) or [])
    if selected and selected[0] < len(rows):
        return rows[selected[0]]
    return None


def render_record_cards(
    rows: List[Dict[str, Any]],
    key: str,
    title_field: str,
    fields: Dict[str, str],
    formatters: Optional[Dict[str, Callable[[Any], Any]]] = None,
    per_row: int = 3,
) -> Optional[Dict[str, Any]]:
    """Render rows as a card grid; returns the card whose Open button was pressed."""
    if not rows:
        st.info("No records to show")
        return None
    formatters = formatters or {}
    chosen = None
    for start in range(0, len(rows), per_row):
        cols = st.columns(per_row)
        for col, record in zip(cols, rows[start:start + per_row]):
            with col.container(border=True):
                st.markdown(f"**{get_field(record, title_field) or '-'}**")
                for label, path in fields.items():
                    value = get_field(record, path)
                    if label in formatters:
                        value = formatters[label](value)
                    st.caption(f"{label}: {'' if value is None else value}")
                if st.button("Open", key=f"{key}_open_{record.get('id', start)}"):
                    chosen = record
    return chosen


def remember_selection(key: str, record: Optional[Dict[str, Any]], rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Keep the selected record across reruns while it is still in ``rows``."""
    sel_key = f"{key}_selected_id"
    if record is not None:
        st.session_state[sel_key] = record.get("id")
    selected_id = st.session_state.get(sel_key)
    if selected_id is None:
        return None
    for row in rows:
        if row.get("id") == selected_id:
            return row
    st.session_state.pop(sel_key, None)
    return None


def render_pagination(state: ListViewState, page: ListPage, key: str) -> None:
    """First/prev/next/last buttons, page size select and the "Showing x-y of z" line."""
    col1, col2, col3, col4, col5, col6 = st.columns([3, 1, 1, 1, 1, 2])
    with col1:
        if page.total_count:
            st.caption(f"Showing {page.first_index}-{page.last_index} of {page.total_count}")
        else:
            st.caption("Showing 0 of 0")
    last = max(page.total_pages, 1)
    moved = False
    with col2:
        if st.button("⏮", key=f"{key}_first", disabled=not page.has_previous):
            moved = state.go_to(1, page.total_count)
    with col3:
        if st.button("◀", key=f"{key}_prev", disabled=not page.has_previous):
            moved = state.go_to(page.page - 1, page.total_count)
    with col4:
        if st.button("▶", key=f"{key}_next", disabled=not page.has_next):
            moved = state.go_to(page.page + 1, page.total_count)
    with col5:
        if st.button("⏭", key=f"{key}_last", disabled=not page.has_next):
            moved = state.go_to(last, page.total_count)
    with col6:
        options = sorted(set(PAGE_SIZE_OPTIONS) | {state.page_size})
        size = st.selectbox(
            "Per page",
            options,
            index=options.index(state.page_size),
            key=f"{key}_page_size",
            label_visibility="collapsed",
        )
        if size != state.page_size:
            state.set_page_size(size)
            moved = True
    st.caption(f"Page {page.page} of {last}")
    if moved:
        st.rerun()


def render_export_buttons(rows: List[Dict[str, Any]], columns: Dict[str, str], name: str) -> None:
    """Excel/PDF downloads of every matched row (not only the visible page)."""
    if not rows:
        return
    df = records_to_frame(rows, columns)
    col1, col2 = st.columns(2)
    col1.download_button(
        "Export to Excel",
        data=to_excel_bytes(df, sheet_name=name),
        file_name=f"{name}_export.xlsx",
        mime=EXCEL_MIME,
        key=f"{name}_xlsx",
    )
    col2.download_button(
        "Export to PDF",
        data=to_pdf_bytes(df, title=format_label(name)),
        file_name=f"{name}_export.pdf",
        mime=PDF_MIME,
        key=f"{name}_pdf",
    )


def render_details(record: Dict[str, Any], fields: Dict[str, str], formatters: Optional[Dict[str, Callable]] = None) -> None:
    """Label/value pairs of one record, for view dialogs."""
    formatters = formatters or {}
    for label, path in fields.items():
        value = get_field(record, path)
        if label in formatters:
            value = formatters[label](value)
        col1, col2 = st.columns([1, 2])
        col1.markdown(f"**{label}**")
        col2.write("-" if value in (None, "") else value)


def render_action_bar(
    key: str,
    record: Optional[Dict[str, Any]],
    describe: Callable[[Dict[str, Any]], str],
    can_edit: bool,
) -> Optional[str]:
    """View/Edit/Delete buttons for the selected record; returns the chosen action."""
    if record is None:
        st.caption("Select a row to view, edit or delete it.")
        return None
    st.divider()
    col1, col2, col3, col4 = st.columns([6, 1, 1, 1])
    col1.text(describe(record))
    action = None
    if col2.button("\U0001F441️ View", key=f"{key}_view_{record.get('id')}"):
        action = "view"
    if can_edit:
        if col3.button("✏️ Edit", key=f"{key}_edit_{record.get('id')}"):
            action = "edit"
        if col4.button("\U0001F5D1️ Delete", key=f"{key}_delete_{record.get('id')}"):
            action = "delete"
    return action


def run_write(
    action: Callable[[], Any],
    success: str,
    key: Union[str, Sequence[str], None] = None,
) -> bool:
    """Run a create/update/delete call; flash on success, show the error otherwise.

    ``key`` names the collection (or collections) to refetch after a success.
    """
    try:
        action()
    except ValueError as e:
        st.error(f"❌ {e}")
        return False
    except AuthExpiredError:
        raise
    except ApiError as e:
        logger.exception("Write failed")
        st.error(f"❌ {e.message}")
        return False
    flash(success)
    keys = [key] if isinstance(key, str) else list(key or ())
    for name in keys:
        refresh(name)
    return True


def latest_record(fetch: Callable[[], Optional[Dict[str, Any]]], record: Dict[str, Any]) -> Dict[str, Any]:
    """Current copy of ``record`` from the API; the listed copy if that fails."""
    try:
        fresh = fetch()
    except AuthExpiredError:
        raise
    except ApiError as e:
        logger.warning("Showing listed copy of record %s: %s", record.get("id"), e)
        return record
    return fresh or record


def options_map(rows: Iterable[Dict[str, Any]], label_field: str = "name") -> Dict[Any, str]:
    """``{id: label}`` for select boxes."""
    return {r.get("id"): str(get_field(r, label_field) or f"#{r.get('id')}") for r in rows if r.get("id") is not None}


def lookup(name: str, fetch: Callable[[], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Dropdown options (products, warehouses, ...) loaded once per session."""
    holder = load_collection(f"lookup_{name}", fetch)
    if holder.error:
        st.warning(f"Could not load {name}: {holder.error}")
    return holder.rows


@st.dialog("Confirm delete")
def confirm_delete_dialog(
    label: str,
    action: Callable[[], Any],
    key: str,
    refresh_keys: Optional[Sequence[str]] = None,
) -> None:
    st.warning(f"Delete {label}? This cannot be undone.")
    col1, col2 = st.columns(2)
    if col1.button("\U0001F5D1️ Delete", type="primary", key=f"{key}_confirm_delete"):
        if run_write(action, f"Deleted {label}", refresh_keys or key):
            st.session_state.pop(f"{key}_selected_id", None)
            st.rerun()
    if col2.button("Cancel", key=f"{key}_cancel_delete"):
        st.rerun()


@st.dialog("Details", width="large")
def view_dialog(title: str, record: Dict[str, Any], fields: Dict[str, str], formatters: Optional[Dict[str, Callable]] = None) -> None:
    st.subheader(title)
    render_details(record, fields, formatters)
