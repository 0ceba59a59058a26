"""Daily prices page - unit price per product and date, with its trend."""
import plotly.express as px
import streamlit as st

from core.api_client import ApiError, AuthExpiredError
from core.constants import MENU_PRICES, QUANTITY_UNIT
from core.exporting import records_to_frame
from core.list_pipeline import DESCENDING, SortConfig, run_pipeline
from core.services import (
    create_price,
    delete_price,
    get_price_history,
    get_prices,
    get_prices_for_product,
    get_products,
    record_date,
    update_price,
)
from core.stats import price_stats, price_trend
from ui.components import (
    confirm_delete_dialog,
    format_date,
    format_number,
    list_state,
    load_collection,
    lookup,
    options_map,
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

KEY = "prices"
SEARCH_FIELDS = ("product.name",)
COLUMNS = {
    "Product": "product.name",
    f"Unit Price (per {QUANTITY_UNIT})": "unitPrice",
    "Date": "date",
    "Set By": "createdBy.username",
    "Updated": "updatedAt",
}
SORT_FIELDS = {"Date": "date", "Product": "product.name", "Unit Price": "unitPrice"}
FORMATTERS = {"Date": format_date, "Updated": format_date}


@st.dialog("Daily price")
def price_form(api, record=None):
    products = options_map(lookup("products", lambda: get_products(api)))
    current = (record or {}).get("productId") or ((record or {}).get("product") or {}).get("id")
    keys = list(products)
    with st.form("price_form"):
        product_id = st.selectbox(
            "Product",
            keys,
            index=keys.index(current) if current in keys else None,
            format_func=lambda i: products[i],
        )
        unit_price = st.number_input(
            f"Unit price (per {QUANTITY_UNIT})",
            min_value=0.0,
            value=float((record or {}).get("unitPrice") or 0.0),
        )
        when = st.date_input("Date", value=record_date((record or {}).get("date")) or "today")
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {"productId": product_id, "unitPrice": unit_price, "date": when}
        if record is None:
            ok = run_write(lambda: create_price(api, data), "Price recorded", KEY)
        else:
            ok = run_write(lambda: update_price(api, record["id"], data), "Price updated", KEY)
        if ok:
            st.rerun()


@st.dialog("Price details", width="large")
def price_details(api, record):
    st.subheader((record.get("product") or {}).get("name") or f"#{record['id']}")
    render_details(record, COLUMNS, FORMATTERS)
    try:
        history = get_price_history(api, record["id"])
    except AuthExpiredError:
        raise
    except ApiError as e:
        st.caption(f"History unavailable: {e.message}")
        history = []
    if history:
        st.markdown("**Change history**")
        st.dataframe(history, width="stretch", hide_index=True)

    product_id = record.get("productId") or (record.get("product") or {}).get("id")
    if not product_id:
        return
    try:
        others = get_prices_for_product(api, product_id)
    except AuthExpiredError:
        raise
    except ApiError as e:
        st.caption(f"Other dates unavailable: {e.message}")
        return
    if others:
        newest_first = run_pipeline(
            others, sort_config=SortConfig("date", DESCENDING), page_size=len(others)
        ).visible_rows
        df = records_to_frame(newest_first, {"Date": "date", f"Unit Price (per {QUANTITY_UNIT})": "unitPrice"})
        df["Date"] = df["Date"].map(format_date)
        st.markdown("**All dates for this product**")
        st.dataframe(df, width="stretch", hide_index=True)


def render_trend(rows):
    trend = price_trend(rows)
    if trend.empty:
        return
    fig = px.line(
        trend,
        x="date",
        y="unit_price",
        color="product",
        markers=True,
        labels={"date": "Date", "unit_price": f"Unit price (per {QUANTITY_UNIT})", "product": "Product"},
        title="Price trend",
    )
    st.plotly_chart(fig, width="stretch")


def render(api, settings):
    """Render the daily prices page."""
    st.header(MENU_PRICES)
    show_flash()
    is_admin = st.session_state.get("admin_mode", False)

    holder = load_collection(KEY, lambda: get_prices(api))
    if render_error_banner(holder, KEY):
        return
    rows = holder.rows

    stats = price_stats(rows)
    metrics = [("Price entries", stats["total"])]
    metrics += [(name, format_number(price)) for name, price in list(stats["latest_by_product"].items())[:3]]
    render_stat_cards(metrics)

    if is_admin and st.button("➕ Set price", key=f"{KEY}_add"):
        price_form(api)

    state = list_state(KEY, default_sort=("date", DESCENDING), page_size=settings.default_page_size)
    product_names = sorted({r["product"]["name"] for r in rows if (r.get("product") or {}).get("name")})
    view = render_list_controls(
        state,
        KEY,
        search_label="Search product",
        filters={"Product": ("product.name", product_names)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    # Chart follows the search and product filter
    render_trend(page.matched_rows)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "product.name", {"Unit price": "unitPrice", "Date": "date"},
            formatters={"Date": format_date},
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{(r.get('product') or {}).get('name', '')} - {format_date(r.get('date'))}",
        is_admin,
    )
    if action == "view":
        price_details(api, selected)
    elif action == "edit":
        price_form(api, selected)
    elif action == "delete":
        confirm_delete_dialog(
            f"price of {(selected.get('product') or {}).get('name', '')} on {format_date(selected.get('date'))}",
            lambda: delete_price(api, selected["id"]),
            KEY,
        )

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
