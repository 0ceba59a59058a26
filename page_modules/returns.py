"""Returns page - goods sent back against a sale item."""
import streamlit as st

from core.constants import MENU_RETURNS, QUANTITY_UNIT, RETURN_STATUSES
from core.list_pipeline import DESCENDING
from core.services import (
    create_return,
    delete_return,
    get_return,
    get_returns,
    get_sales,
    sale_item_options,
    update_return,
)
from core.stats import return_stats
from ui.components import (
    confirm_delete_dialog,
    format_date,
    format_label,
    format_number,
    latest_record,
    list_state,
    load_collection,
    lookup,
    remember_selection,
    render_action_bar,
    render_error_banner,
    render_export_buttons,
    render_list_controls,
    render_pagination,
    render_record_cards,
    render_records_table,
    render_stat_cards,
    run_write,
    show_flash,
    view_dialog,
)

KEY = "returns"
SEARCH_FIELDS = ("referenceNumber", "note", "product.name")
COLUMNS = {
    "Reference": "referenceNumber",
    "Sale": "saleId",
    "Product": "product.name",
    f"Returned ({QUANTITY_UNIT})": "returnedQuantity",
    "Status": "status",
    "Note": "note",
    "Created": "createdAt",
}
SORT_FIELDS = {
    "Created": "createdAt",
    "Reference": "referenceNumber",
    "Quantity": "returnedQuantity",
    "Product": "product.name",
}
FORMATTERS = {"Status": format_label, "Created": format_date}


def _item_label(item):
    return f"{item['reference']} - {item['productName']} ({format_number(item['quantity'])} {QUANTITY_UNIT})"


@st.dialog("Return", width="large")
def return_form(api, record=None):
    """Create a return against a sale item, or edit an existing one."""
    items = sale_item_options(lookup("sales", lambda: get_sales(api)))
    by_key = {(i["saleId"], i["saleItemId"]): i for i in items}
    current = None
    if record is not None:
        current = (record.get("saleId"), record.get("saleItemId"))
    keys = list(by_key)
    chosen = st.selectbox(
        "Sale item",
        keys,
        index=keys.index(current) if current in keys else None,
        format_func=lambda k: _item_label(by_key[k]),
    )
    max_quantity = by_key[chosen]["quantity"] if chosen else None
    if max_quantity:
        st.caption(f"Sold quantity: {format_number(max_quantity)} {QUANTITY_UNIT}")

    with st.form("return_form"):
        quantity = st.number_input(
            f"Returned quantity ({QUANTITY_UNIT})",
            min_value=0.0,
            value=float((record or {}).get("returnedQuantity") or 0.0),
        )
        status = None
        if record is not None:
            current_status = record.get("status")
            status = st.selectbox(
                "Status",
                RETURN_STATUSES,
                index=RETURN_STATUSES.index(current_status) if current_status in RETURN_STATUSES else 0,
                format_func=format_label,
            )
        note = st.text_area("Note", value=(record or {}).get("note") or "")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {"returnedQuantity": quantity, "note": note, "status": status}
        if chosen:
            data["saleId"], data["saleItemId"] = chosen
        if record is None:
            ok = run_write(lambda: create_return(api, data, max_quantity), "Return recorded", KEY)
        else:
            ok = run_write(
                lambda: update_return(api, record["id"], data, max_quantity),
                f"Return {record.get('referenceNumber') or record['id']} updated",
                KEY,
            )
        if ok:
            st.rerun()


def render(api, settings):
    """Render the returns page."""
    st.header(MENU_RETURNS)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    holder = load_collection(KEY, lambda: get_returns(api, page_size=settings.fetch_page_size))
    if render_error_banner(holder, KEY):
        return
    rows = holder.rows

    stats = return_stats(rows)
    render_stat_cards(
        [
            ("Returns", stats["total"]),
            (f"Returned ({QUANTITY_UNIT})", format_number(stats["total_quantity"])),
            ("Average per return", format_number(stats["average_quantity"])),
        ]
    )

    if is_admin and st.button("➕ Record return", key=f"{KEY}_add"):
        return_form(api)

    state = list_state(KEY, default_sort=("createdAt", DESCENDING), page_size=settings.default_page_size)
    sale_ids = sorted({r["saleId"] for r in rows if r.get("saleId") is not None})
    view = render_list_controls(
        state,
        KEY,
        search_label="Search reference, note or product",
        filters={"Sale": ("saleId", sale_ids), "Status": ("status", RETURN_STATUSES)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "referenceNumber",
            {"Product": "product.name", "Returned": "returnedQuantity", "Status": "status"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{r.get('referenceNumber') or r.get('id')} - sale #{r.get('saleId')}",
        is_admin,
    )
    if action == "view":
        record = latest_record(lambda: get_return(api, selected["id"]), selected)
        view_dialog(f"Return {record.get('referenceNumber') or record['id']}", record, COLUMNS, FORMATTERS)
    elif action == "edit":
        return_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"return {selected.get('referenceNumber') or selected['id']}",
            lambda: delete_return(api, selected["id"]),
            KEY,
        )

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
