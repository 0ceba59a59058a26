"""Dashboard page with stock flow overview and statistics."""
import pandas as pd
import plotly.express as px
import streamlit as st

from core.constants import MENU_DASHBOARD, QUANTITY_UNIT
from core.list_pipeline import DESCENDING, SortConfig, run_pipeline
from core.services import get_deliveries, get_disposals, get_products
from core.stats import delivery_stats, disposal_stats, product_stats
from ui.components import (
    format_date,
    format_label,
    format_number,
    load_collection,
    render_records_table,
    render_stat_cards,
)

COLORS = [
    "#F54F52",
    "#93F03B",
    "#378AFF",
    "#FFEC21",
    "#9552EA",
    "#FFA32F",
    "#00CED1",
]


def _rows(key, fetch):
    # Same collections as the list pages, so visiting them reuses the fetch
    holder = load_collection(key, fetch)
    if holder.error:
        st.warning(f"⚠️ {format_label(key)}: {holder.error}")
    return holder.rows


def render(api, settings):
    """Render the dashboard page."""
    st.header(MENU_DASHBOARD)
    products = _rows("products", lambda: get_products(api, page_size=settings.fetch_page_size))
    deliveries = _rows("deliveries", lambda: get_deliveries(api, page_size=settings.fetch_page_size))
    disposals = _rows("disposals", lambda: get_disposals(api, page_size=settings.fetch_page_size))

    if not (products or deliveries or disposals):
        st.info("No data available yet")
        return

    p_stats = product_stats(products)
    d_stats = delivery_stats(deliveries)
    x_stats = disposal_stats(disposals)

    # Row 1: volumes
    render_stat_cards(
        [
            ("Products", p_stats["total"]),
            (f"Received ({QUANTITY_UNIT})", format_number(d_stats["inbound_quantity"])),
            (f"Dispatched ({QUANTITY_UNIT})", format_number(d_stats["outbound_quantity"])),
            (f"Disposed ({QUANTITY_UNIT})", format_number(x_stats["total_quantity"])),
        ]
    )
    # Row 2: values
    render_stat_cards(
        [
            ("Inbound value", format_number(d_stats["inbound_value"])),
            ("Outbound value", format_number(d_stats["outbound_value"])),
            ("Disposal losses", format_number(x_stats["total_value"])),
            ("Pending deliveries", d_stats["pending"]),
        ]
    )

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("\U0001F4E6 Products by Type")
        by_type = pd.DataFrame(
            {"type": [format_label(t) for t in p_stats["by_type"]], "count": list(p_stats["by_type"].values())}
        )
        if not by_type.empty:
            fig = px.pie(by_type, values="count", names="type", color_discrete_sequence=COLORS)
            st.plotly_chart(fig, width="stretch")
        else:
            st.info("No products to display")

    with col2:
        st.subheader("♻️ Disposals by Method")
        by_method = pd.DataFrame(
            {"method": [format_label(m) for m in x_stats["by_method"]], "count": list(x_stats["by_method"].values())}
        )
        if not by_method.empty:
            fig = px.pie(by_method, values="count", names="method", color_discrete_sequence=COLORS)
            st.plotly_chart(fig, width="stretch")
        else:
            st.info("No disposals recorded")

    st.subheader("\U0001F69A Delivered Quantity by Product")
    flow = pd.DataFrame(
        {
            "product": [(d.get("product") or {}).get("name") for d in deliveries],
            "direction": [d.get("direction") for d in deliveries],
            "quantity": [d.get("quantity") for d in deliveries],
        }
    )
    flow["quantity"] = pd.to_numeric(flow["quantity"], errors="coerce")
    flow = flow.dropna()
    if not flow.empty:
        flow = flow.groupby(["product", "direction"], as_index=False)["quantity"].sum()
        fig = px.bar(
            flow,
            x="product",
            y="quantity",
            color="direction",
            barmode="group",
            labels={"product": "Product", "quantity": f"Quantity ({QUANTITY_UNIT})", "direction": "Direction"},
        )
        st.plotly_chart(fig, width="stretch")
    else:
        st.info("No deliveries to display")

    st.subheader("\U0001F504 Recent Deliveries")
    recent = run_pipeline(deliveries, sort_config=SortConfig("createdAt", DESCENDING), page_size=5)
    render_records_table(
        recent.visible_rows,
        {
            "Reference": "deliveryReference",
            "Direction": "direction",
            "Product": "product.name",
            "Quantity": "quantity",
            "Status": "status",
            "Created": "createdAt",
        },
        "dashboard_recent",
        formatters={"Status": format_label, "Created": format_date},
    )
