"""Purchases page - supplier purchases, paginated and searched by the API."""
import streamlit as st

from core.constants import MENU_PURCHASES, PURCHASE_STATUSES, QUANTITY_UNIT
from core.list_pipeline import ListPage, run_pipeline
from core.services import (
    create_purchase,
    delete_purchase,
    get_products,
    get_purchase,
    get_purchases_page,
    get_suppliers,
    restore_purchase,
    update_purchase,
)
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
    refresh,
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

KEY = "purchases"
COLUMNS = {
    "Reference": "purchaseReference",
    "Supplier": "supplier.user.profile.names",
    "Product": "product.name",
    f"Weight ({QUANTITY_UNIT})": "weight",
    "Unit Price": "unitPrice",
    "Paid": "totalPaid",
    f"Delivered ({QUANTITY_UNIT})": "totalDelivered",
    "Status": "status",
    "Expected": "expectedDeliveryDate",
    "Created": "createdAt",
}
# Sorting only reorders the page the server returned
SORT_FIELDS = {
    "Created": "createdAt",
    "Reference": "purchaseReference",
    "Weight": "weight",
    "Status": "status",
}
FORMATTERS = {"Status": format_label, "Expected": format_date, "Created": format_date}


@st.dialog("New purchase", width="large")
def create_purchase_form(api):
    suppliers = options_map(lookup("suppliers", lambda: get_suppliers(api)), "user.profile.names")
    products = options_map(lookup("products", lambda: get_products(api)))
    with st.form("purchase_form"):
        supplier_id = st.selectbox(
            "Supplier", list(suppliers), format_func=lambda i: suppliers[i], index=None
        )
        product_id = st.selectbox(
            "Product", list(products), format_func=lambda i: products[i], index=None
        )
        weight = st.number_input(f"Weight ({QUANTITY_UNIT})", min_value=0.0)
        unit_price = st.number_input("Unit price", min_value=0.0)
        expected = st.date_input("Expected delivery date", value=None)
        description = st.text_area("Description")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {
            "userId": supplier_id,
            "productId": product_id,
            "weight": weight,
            "unitPrice": unit_price,
            "expectedDeliveryDate": expected,
            "description": description,
        }
        if run_write(lambda: create_purchase(api, data), "Purchase created", KEY):
            st.rerun()


@st.dialog("Edit purchase")
def edit_purchase_form(api, record):
    with st.form("edit_purchase_form"):
        current = record.get("status")
        status = st.selectbox(
            "Status",
            PURCHASE_STATUSES,
            index=PURCHASE_STATUSES.index(current) if current in PURCHASE_STATUSES else 0,
            format_func=format_label,
        )
        weight = st.number_input(
            f"Weight ({QUANTITY_UNIT})", min_value=0.0, value=float(record.get("weight") or 0.0)
        )
        description = st.text_area("Description", value=record.get("description") or "")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")
    if submitted:
        data = {"status": status, "weight": weight, "description": description}
        if run_write(
            lambda: update_purchase(api, record["id"], data),
            f"Purchase {record.get('purchaseReference') or record['id']} updated",
            KEY,
        ):
            st.rerun()


def render(api, settings):
    """Render the purchases page."""
    st.header(MENU_PURCHASES)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    if is_admin and st.button("➕ New purchase", key=f"{KEY}_add"):
        create_purchase_form(api)

    include_deleted = is_admin and st.toggle("Show deleted purchases", key=f"{KEY}_include_deleted")
    state = list_state(KEY, page_size=settings.default_page_size)
    # Held as a filter so switching it starts again from page 1
    state.set_filter("includeDeleted", include_deleted or None)
    view = render_list_controls(
        state,
        KEY,
        search_label="Search purchases",
        filters={"Status": ("status", PURCHASE_STATUSES)},
        sort_fields=SORT_FIELDS,
    )

    # The server owns search, status and paging; refetch whenever they change
    query = (state.page, state.page_size, state.search_term, state.filters.get("status", ""), include_deleted)
    if st.session_state.get(f"{KEY}_query") != query:
        st.session_state[f"{KEY}_query"] = query
        refresh(KEY)
    holder = load_collection(
        KEY,
        lambda: get_purchases_page(
            api,
            page=state.page,
            page_size=state.page_size,
            search=state.search_term,
            status=state.filters.get("status", ""),
            include_deleted=include_deleted,
        ),
    )
    if render_error_banner(holder, KEY):
        return

    if not holder.rows and holder.total and state.page > 1:
        state.clamp(holder.total)
        st.rerun()

    rows = run_pipeline(
        holder.rows, sort_config=state.sort_config, page_size=max(len(holder.rows), 1)
    ).visible_rows
    page = ListPage(
        visible_rows=rows,
        total_count=holder.total,
        page=state.page,
        page_size=state.page_size,
        matched_rows=rows,
    )

    render_stat_cards(
        [
            ("Purchases", holder.total),
            (f"Weight on page ({QUANTITY_UNIT})", format_number(sum(float(r.get("weight") or 0) for r in rows))),
            ("Awaiting delivery", sum(1 for r in rows if r.get("status") in ("approved", "payment_completed"))),
        ]
    )

    if view == "Cards":
        picked = render_record_cards(
            rows, KEY, "purchaseReference",
            {"Product": "product.name", "Weight": "weight", "Status": "status"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{r.get('purchaseReference') or r.get('id')} - {format_label(r.get('status'))}",
        is_admin,
    )
    if selected is not None and is_admin and selected.get("deletedAt"):
        if st.button("♻️ Restore", key=f"{KEY}_restore_{selected['id']}"):
            if run_write(lambda: restore_purchase(api, selected["id"]), "Purchase restored", KEY):
                st.rerun()
    if action == "view":
        record = latest_record(lambda: get_purchase(api, selected["id"]), selected)
        view_dialog(f"Purchase {record.get('purchaseReference') or record['id']}", record, COLUMNS, FORMATTERS)
    elif action == "edit":
        edit_purchase_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"purchase {selected.get('purchaseReference') or selected['id']}",
            lambda: delete_purchase(api, selected["id"]),
            KEY,
        )

    render_export_buttons(rows, COLUMNS, KEY)
