"""Deliveries page - inbound (purchase) and outbound (sale) stock transport."""
import streamlit as st

from core.constants import DELIVERY_DIRECTIONS, DELIVERY_STATUSES, MENU_DELIVERIES, QUANTITY_UNIT
from core.list_pipeline import DESCENDING
from core.services import (
    create_delivery,
    delete_delivery,
    get_deliveries,
    get_delivery,
    get_drivers,
    get_purchases_page,
    get_sales,
    get_warehouses,
    restore_delivery,
    sale_item_options,
    update_delivery,
)
from core.stats import delivery_stats
from ui.components import (
    collection_keys,
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

KEY = "deliveries"
SEARCH_FIELDS = (
    "deliveryReference",
    "driver.user.profile.names",
    "product.name",
    "warehouse.name",
    "direction",
    "status",
)
COLUMNS = {
    "Reference": "deliveryReference",
    "Direction": "direction",
    "Product": "product.name",
    "Warehouse": "warehouse.name",
    "Driver": "driver.user.profile.names",
    f"Quantity ({QUANTITY_UNIT})": "quantity",
    "Unit Price": "unitPrice",
    "Status": "status",
    "Created": "createdAt",
    "Notes": "notes",
    "Deleted": "deletedAt",
}
SORT_FIELDS = {
    "Created": "createdAt",
    "Reference": "deliveryReference",
    "Quantity": "quantity",
    "Status": "status",
    "Driver": "driver.user.profile.names",
}
FORMATTERS = {
    "Direction": lambda d: {"in": "⬇️ In", "out": "⬆️ Out"}.get(d, d),
    "Status": format_label,
    "Deleted": format_date,
    "Created": format_date,
}


@st.dialog("New delivery", width="large")
def create_delivery_form(api):
    """Inbound deliveries reference a purchase, outbound ones a sale item."""
    direction = st.radio(
        "Direction", DELIVERY_DIRECTIONS, horizontal=True,
        format_func=lambda d: "Inbound (purchase)" if d == "in" else "Outbound (sale)",
    )
    drivers = options_map(lookup("drivers", lambda: get_drivers(api)), "user.profile.names")
    warehouses = options_map(lookup("warehouses", lambda: get_warehouses(api)))

    data = {"direction": direction}
    if direction == "in":
        purchases = options_map(
            lookup("purchases", lambda: get_purchases_page(api, page_size=100)[0]), "purchaseReference"
        )
        data["purchaseId"] = st.selectbox(
            "Purchase", list(purchases), format_func=lambda i: purchases[i], index=None
        )
    else:
        items = sale_item_options(lookup("sales", lambda: get_sales(api)))
        by_key = {(i["saleId"], i["saleItemId"]): i for i in items}
        chosen = st.selectbox(
            "Sale item",
            list(by_key),
            index=None,
            format_func=lambda k: f"{by_key[k]['reference']} - {by_key[k]['productName']}",
        )
        if chosen:
            data["saleId"], data["saleItemId"] = chosen

    with st.form("delivery_form"):
        data["driverId"] = st.selectbox(
            "Driver", list(drivers), format_func=lambda i: drivers[i], index=None
        )
        data["warehouseId"] = st.selectbox(
            "Warehouse", list(warehouses), format_func=lambda i: warehouses[i], index=None
        )
        data["quantity"] = st.number_input(f"Quantity ({QUANTITY_UNIT})", min_value=0.0)
        data["notes"] = st.text_area("Notes")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted and run_write(lambda: create_delivery(api, data), "Delivery created", collection_keys(KEY)):
        st.rerun()


@st.dialog("Edit delivery")
def edit_delivery_form(api, record):
    st.caption(f"{record.get('deliveryReference') or record['id']} - only status and notes can change")
    with st.form("edit_delivery_form"):
        current = record.get("status")
        status = st.selectbox(
            "Status",
            DELIVERY_STATUSES,
            index=DELIVERY_STATUSES.index(current) if current in DELIVERY_STATUSES else 0,
            format_func=format_label,
        )
        notes = st.text_area("Notes", value=record.get("notes") or "")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")
    if submitted and run_write(
        lambda: update_delivery(api, record["id"], {"status": status, "notes": notes}),
        f"Delivery {record.get('deliveryReference') or record['id']} updated",
        collection_keys(KEY),
    ):
        st.rerun()


def render(api, settings):
    """Render the deliveries page."""
    st.header(MENU_DELIVERIES)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    include_deleted = False
    if is_admin:
        include_deleted = st.toggle("Show deleted deliveries", key=f"{KEY}_include_deleted")
    key = f"{KEY}_all" if include_deleted else KEY

    holder = load_collection(
        key, lambda: get_deliveries(api, include_deleted=include_deleted, page_size=settings.fetch_page_size)
    )
    if render_error_banner(holder, key):
        return
    rows = holder.rows

    stats = delivery_stats(rows)
    render_stat_cards(
        [
            ("Deliveries", stats["total"]),
            ("Inbound", f"{stats['inbound']} ({format_number(stats['inbound_quantity'])} {QUANTITY_UNIT})"),
            ("Outbound", f"{stats['outbound']} ({format_number(stats['outbound_quantity'])} {QUANTITY_UNIT})"),
            ("Pending", stats["pending"]),
        ]
    )

    if is_admin and st.button("➕ New delivery", key=f"{KEY}_add"):
        create_delivery_form(api)

    state = list_state(KEY, default_sort=("createdAt", DESCENDING), page_size=settings.default_page_size)
    view = render_list_controls(
        state,
        key,
        search_label="Search reference, driver, product, warehouse, direction or status",
        filters={"Status": ("status", DELIVERY_STATUSES), "Direction": ("direction", DELIVERY_DIRECTIONS)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "deliveryReference",
            {"Direction": "direction", "Product": "product.name", "Quantity": "quantity", "Status": "status"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{r.get('deliveryReference') or r.get('id')} - {format_label(r.get('status'))}",
        is_admin,
    )
    if selected is not None and is_admin and selected.get("deletedAt"):
        if st.button("♻️ Restore", key=f"{KEY}_restore_{selected['id']}"):
            label = selected.get("deliveryReference") or selected["id"]
            if run_write(lambda: restore_delivery(api, selected["id"]), f"Restored delivery {label}", collection_keys(KEY)):
                st.rerun()
    if action == "view":
        record = latest_record(lambda: get_delivery(api, selected["id"]), selected)
        view_dialog(f"Delivery {record.get('deliveryReference') or record['id']}", record, COLUMNS, FORMATTERS)
    elif action == "edit":
        edit_delivery_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"delivery {selected.get('deliveryReference') or selected['id']}",
            lambda: delete_delivery(api, selected["id"]),
            KEY,
            collection_keys(KEY),
        )

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
