"""Sidebar menu and session controls."""
import streamlit as st

from core.auth import change_password_dialog, get_current_user, logout
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


def menu_for(is_admin: bool):
    """Pages visible to the current role."""
    menu = [
        MENU_DASHBOARD,
        MENU_PRODUCTS,
        MENU_PURCHASES,
        MENU_DELIVERIES,
        MENU_RETURNS,
        MENU_DISPOSALS,
        MENU_PRICES,
    ]
    if is_admin:
        menu.append(MENU_USERS)
    return menu


def render_sidebar_menu(api):
    """Render the navigation menu and the logged-in user's controls."""
    user = get_current_user()
    menu = menu_for(user["is_admin"])
    if (
        "menu_selection" not in st.session_state
        or st.session_state.menu_selection not in menu
    ):
        st.session_state.menu_selection = menu[0]
    selected = st.sidebar.radio("Select Page", menu, key="menu_selection")

    st.sidebar.markdown("---")
    st.sidebar.caption(f"Signed in as **{user['name'] or user['username']}** ({user['role'] or 'user'})")
    if user["is_admin"]:
        st.sidebar.success("Admin mode enabled.")
    if st.sidebar.button("\U0001F511 Change password", key="sidebar_change_password"):
        change_password_dialog(api)
    if st.sidebar.button("\U0001F6AA Logout", key="sidebar_logout"):
        logout()
        st.toast("Logged out.", icon="\U0001F512")
        st.rerun()

    return selected
