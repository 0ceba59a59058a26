"""Products page - catalogue of raw materials and finished products."""
import streamlit as st

from core.api_client import ApiError, AuthExpiredError
from core.constants import MENU_PRODUCTS, PRODUCT_TYPES
from core.list_pipeline import ASCENDING
from core.services import (
    create_product,
    delete_product,
    get_product,
    get_product_stock,
    get_products,
    restore_product,
    update_product,
)
from core.stats import product_stats
from ui.components import (
    collection_keys,
    confirm_delete_dialog,
    format_date,
    format_label,
    latest_record,
    list_state,
    load_collection,
    remember_selection,
    render_action_bar,
    render_details,
    render_error_banner,
    render_export_buttons,
    render_list_controls,
    render_pagination,
    render_record_cards,
    render_records_table,
    render_stat_cards,
    run_write,
    show_flash,
)

KEY = "products"
SEARCH_FIELDS = ("name", "description")
COLUMNS = {
    "ID": "id",
    "Name": "name",
    "Type": "type",
    "Description": "description",
    "Created": "createdAt",
    "Deleted": "deletedAt",
}
SORT_FIELDS = {"Name": "name", "Type": "type", "Created": "createdAt"}
FORMATTERS = {"Type": format_label, "Created": format_date, "Deleted": format_date}


# Product writes also change the product pickers on other pages
REFRESH_KEYS = (*collection_keys(KEY), "lookup_products")


@st.dialog("Product", width="large")
def product_form(api, record=None):
    with st.form("product_form"):
        name = st.text_input("Name", value=(record or {}).get("name") or "")
        current = (record or {}).get("type")
        product_type = st.selectbox(
            "Type",
            PRODUCT_TYPES,
            index=PRODUCT_TYPES.index(current) if current in PRODUCT_TYPES else 0,
            format_func=format_label,
        )
        description = st.text_area("Description", value=(record or {}).get("description") or "")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {"name": name, "type": product_type, "description": description}
        if record is None:
            ok = run_write(lambda: create_product(api, data), f"Product '{name.strip()}' added", REFRESH_KEYS)
        else:
            ok = run_write(
                lambda: update_product(api, record["id"], data), f"Product '{name.strip()}' updated", REFRESH_KEYS
            )
        if ok:
            st.rerun()


@st.dialog("Product details", width="large")
def product_details(api, record):
    record = latest_record(lambda: get_product(api, record["id"]), record)
    st.subheader(record.get("name") or f"#{record['id']}")
    render_details(record, COLUMNS, FORMATTERS)
    try:
        stock = get_product_stock(api, record["id"])
    except AuthExpiredError:
        raise
    except (ApiError, ValueError) as e:
        st.caption(f"Stock unavailable: {e}")
        stock = None
    if isinstance(stock, dict):
        st.markdown("**Stock**")
        st.json(stock)
    elif stock is not None:
        st.metric("Stock", stock)


def render(api, settings):
    """Render the products page."""
    st.header(MENU_PRODUCTS)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    include_deleted = False
    if is_admin:
        include_deleted = st.toggle("Show deleted products", key=f"{KEY}_include_deleted")
    # Fetched collection depends on the toggle, so keep one holder per mode
    key = f"{KEY}_all" if include_deleted else KEY

    holder = load_collection(
        key, lambda: get_products(api, include_deleted=include_deleted, page_size=settings.fetch_page_size)
    )
    if render_error_banner(holder, key):
        return
    rows = holder.rows

    stats = product_stats(rows)
    metrics = [("Products", stats["total"])]
    metrics += [(format_label(t), stats["by_type"].get(t, 0)) for t in PRODUCT_TYPES]
    if include_deleted:
        metrics.append(("Deleted", stats["deleted"]))
    render_stat_cards(metrics)

    if is_admin and st.button("➕ Add product", key=f"{KEY}_add"):
        product_form(api)

    state = list_state(KEY, default_sort=("name", ASCENDING), page_size=settings.default_page_size)
    view = render_list_controls(
        state,
        key,
        search_label="Search name or description",
        filters={"Type": ("type", PRODUCT_TYPES)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "name", {"Type": "type", "Description": "description"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(KEY, selected, lambda r: r.get("name") or f"#{r.get('id')}", is_admin)
    if selected is not None and is_admin and selected.get("deletedAt"):
        if st.button("♻️ Restore", key=f"{KEY}_restore_{selected['id']}"):
            if run_write(lambda: restore_product(api, selected["id"]), f"Restored '{selected.get('name')}'", REFRESH_KEYS):
                st.rerun()
    if action == "view":
        product_details(api, selected)
    elif action == "edit":
        product_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"product '{selected.get('name')}'",
            lambda: delete_product(api, selected["id"]),
            KEY,
            REFRESH_KEYS,
        )

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
