"""Inventory Manager - Main Application Entry Point."""
import logging

import streamlit as st

from core.api_client import AuthExpiredError
from core.auth import change_password_dialog, get_api, login_form, logout, require_auth
from core.config import configure_logging, load_settings
from core.constants import (
    MENU_DASHBOARD,
    MENU_DELIVERIES,
    MENU_DISPOSALS,
    MENU_PRICES,
    MENU_PRODUCTS,
    MENU_PURCHASES,
    MENU_RETURNS,
    MENU_USERS,
)
from core.mobile_styles import apply_mobile_styles
from ui.sidebar import render_sidebar_menu

# Import page render functions
from page_modules import dashboard, deliveries, disposals, prices, products, purchases, returns, users

logger = logging.getLogger(__name__)

# Page configuration
st.set_page_config(
    page_title="Inventory Manager",
    page_icon="\U0001F4E6",
    layout="wide",
)

apply_mobile_styles()


# Settings are read once per server process
@st.cache_resource
def get_settings():
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("Using API at %s", settings.api_base_url)
    return settings


settings = get_settings()
api = get_api(settings)

# Check authentication
if not require_auth(api):
    login_form(api)
    st.stop()

if "admin_mode" not in st.session_state:
    st.session_state.admin_mode = False

# Accounts still on a default password change it before anything else
if st.session_state.get("default_password"):
    st.warning("⚠️ You are using a default password. Change it to continue.")
    col1, col2 = st.columns(2)
    if col1.button("\U0001F511 Change password", key="default_password_change"):
        change_password_dialog(api)
    if col2.button("\U0001F6AA Logout", key="default_password_logout"):
        logout()
        st.rerun()
    st.stop()

menu = render_sidebar_menu(api)

# Page routing
pages = {
    MENU_DASHBOARD: dashboard.render,
    MENU_PRODUCTS: products.render,
    MENU_PURCHASES: purchases.render,
    MENU_DELIVERIES: deliveries.render,
    MENU_RETURNS: returns.render,
    MENU_DISPOSALS: disposals.render,
    MENU_PRICES: prices.render,
}
if st.session_state.admin_mode:
    pages[MENU_USERS] = users.render

if menu not in pages:
    menu = MENU_DASHBOARD

try:
    pages[menu](api, settings)
except AuthExpiredError:
    logger.info("Session expired for %s", st.session_state.get("username"))
    logout()
    st.session_state.session_expired = True
    st.rerun()
