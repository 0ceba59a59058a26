"""Disposals page - stock written off as damaged, expired, donated and so on."""
import logging

import streamlit as st

from core.api_client import ApiError, AuthExpiredError
from core.constants import DISPOSAL_METHODS, MENU_DISPOSALS, QUANTITY_UNIT
from core.list_pipeline import DESCENDING
from core.services import (
    create_disposal,
    delete_disposal,
    get_average_price,
    get_disposal,
    get_disposals,
    get_products,
    get_warehouses,
    record_date,
    update_disposal,
)
from core.stats import disposal_stats
from ui.components import (
    confirm_delete_dialog,
    format_date,
    format_label,
    format_number,
    latest_record,
    list_state,
    load_collection,
    lookup,
    options_map,
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

logger = logging.getLogger(__name__)

KEY = "disposals"
SEARCH_FIELDS = ("referenceNumber", "product.name", "warehouse.name", "method")
COLUMNS = {
    "Reference": "referenceNumber",
    "Product": "product.name",
    "Warehouse": "warehouse.name",
    f"Quantity ({QUANTITY_UNIT})": "quantity",
    "Method": "method",
    "Unit Price": "price.buyingUnitPrice",
    "Date": "date",
    "Recorded By": "recordedBy.username",
    "Note": "note",
}
SORT_FIELDS = {
    "Date": "date",
    "Reference": "referenceNumber",
    "Product": "product.name",
    "Quantity": "quantity",
    "Method": "method",
}
FORMATTERS = {"Method": format_label, "Date": format_date}


@st.dialog("Disposal", width="large")
def disposal_form(api, record=None):
    """Create a disposal, or edit quantity/method/date/note of an existing one."""
    if record is None:
        products = options_map(lookup("products", lambda: get_products(api)))
        warehouses = options_map(lookup("warehouses", lambda: get_warehouses(api)))
        product_id = st.selectbox(
            "Product", list(products), format_func=lambda i: products[i], index=None
        )
        if product_id:
            try:
                avg = get_average_price(api, product_id)
            except AuthExpiredError:
                raise
            except (ApiError, ValueError) as e:
                logger.warning("No average price for product %s: %s", product_id, e)
                avg = None
            if avg:
                st.caption(f"Average buying price: {format_number(avg)}")
        warehouse_id = st.selectbox(
            "Warehouse", list(warehouses), format_func=lambda i: warehouses[i], index=None
        )
    with st.form("disposal_form"):
        quantity = st.number_input(
            f"Quantity ({QUANTITY_UNIT})",
            min_value=0.0,
            value=float((record or {}).get("quantity") or 0.0),
            step=1.0,
        )
        current_method = (record or {}).get("method")
        method = st.selectbox(
            "Method",
            DISPOSAL_METHODS,
            index=DISPOSAL_METHODS.index(current_method) if current_method in DISPOSAL_METHODS else 0,
            format_func=format_label,
        )
        when = st.date_input("Date", value=record_date((record or {}).get("date")) or "today")
        unit_price = None
        if record is None:
            unit_price = st.number_input("Unit price (optional)", min_value=0.0, value=0.0)
        note = st.text_area("Note", value=(record or {}).get("note") or "")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {"quantity": quantity, "method": method, "date": when, "note": note}
        if record is None:
            data.update(productId=product_id, warehouseId=warehouse_id, unitPrice=unit_price or None)
            ok = run_write(lambda: create_disposal(api, data), "Disposal recorded", KEY)
        else:
            ok = run_write(
                lambda: update_disposal(api, record["id"], data),
                f"Disposal {record.get('referenceNumber') or record['id']} updated",
                KEY,
            )
        if ok:
            st.rerun()


def render(api, settings):
    """Render the disposals page."""
    st.header(MENU_DISPOSALS)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    holder = load_collection(KEY, lambda: get_disposals(api, page_size=settings.fetch_page_size))
    if render_error_banner(holder, KEY):
        return
    rows = holder.rows

    stats = disposal_stats(rows)
    top_method = max(stats["by_method"], key=stats["by_method"].get) if stats["by_method"] else "-"
    render_stat_cards(
        [
            ("Disposals", stats["total"]),
            (f"Quantity ({QUANTITY_UNIT})", format_number(stats["total_quantity"])),
            ("Value lost", format_number(stats["total_value"])),
            ("Top method", format_label(top_method)),
        ]
    )

    if is_admin and st.button("➕ Record disposal", key=f"{KEY}_add"):
        disposal_form(api)

    state = list_state(KEY, default_sort=("date", DESCENDING), page_size=settings.default_page_size)
    warehouses = sorted({r["warehouse"]["name"] for r in rows if (r.get("warehouse") or {}).get("name")})
    view = render_list_controls(
        state,
        KEY,
        search_label="Search reference, product, warehouse or method",
        filters={"Method": ("method", DISPOSAL_METHODS), "Warehouse": ("warehouse.name", warehouses)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "referenceNumber",
            {"Product": "product.name", "Quantity": "quantity", "Method": "method", "Date": "date"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{r.get('referenceNumber') or r.get('id')} - {(r.get('product') or {}).get('name', '')}",
        is_admin,
    )
    if action == "view":
        record = latest_record(lambda: get_disposal(api, selected["id"]), selected)
        view_dialog(f"Disposal {record.get('referenceNumber') or record['id']}", record, COLUMNS, FORMATTERS)
    elif action == "edit":
        disposal_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"disposal {selected.get('referenceNumber') or selected['id']}",
            lambda: delete_disposal(api, selected["id"]),
            KEY,
        )

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
