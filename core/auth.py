"""Session login against the inventory API."""
import logging

import streamlit as st

from core.api_client import ApiClient, ApiError, AuthExpiredError
from core.config import Settings
from core.constants import ADMIN_ROLES
from core.services import ValidationError, change_password, login, logout as api_logout

logger = logging.getLogger(__name__)

API_KEY = "api_client"


def get_api(settings: Settings) -> ApiClient:
    """API client for this browser session (created on first use)."""
    api = st.session_state.get(API_KEY)
    if api is None:
        api = ApiClient(settings.api_base_url, timeout=settings.request_timeout)
        st.session_state[API_KEY] = api
    return api


def _store_user(user: dict) -> None:
    role = (user.get("role") or "").lower()
    st.session_state.authenticated = True
    st.session_state.username = user.get("username")
    st.session_state.name = (user.get("profile") or {}).get("names") or user.get("username")
    st.session_state.role = role
    st.session_state.admin_mode = role in ADMIN_ROLES
    st.session_state.default_password = bool(user.get("isDefaultPassword"))


def login_form(api: ApiClient):
    """Display the login form."""
    st.markdown("### \U0001F510 Login")
    if st.session_state.pop("session_expired", False):
        st.warning("⚠️ Your session expired. Please log in again.")
    with st.form("login_form", clear_on_submit=False):
        username = st.text_input("Username or email")
        password = st.text_input("Password", type="password")
        submit = st.form_submit_button("Login", width="stretch")

        if submit:
            try:
                user = login(api, username.strip(), password)
            except ValidationError as e:
                st.warning(f"⚠️ {e}")
            except ApiError as e:
                logger.info("Login rejected for %s: %s", username, e)
                st.error(f"❌ {e.message or 'Invalid username or password'}")
            else:
                _store_user(user)
                st.rerun()


@st.dialog("Change password")
def change_password_dialog(api: ApiClient):
    """Change the signed-in user's password."""
    if st.session_state.get("default_password"):
        st.info("You are using a default password. Please change it to a secure one.")
    with st.form("change_password_form"):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm new password", type="password")
        submitted = st.form_submit_button("Change password", width="stretch")

    if submitted:
        try:
            change_password(api, current, new, confirm)
        except ValidationError as e:
            st.warning(f"⚠️ {e}")
        except AuthExpiredError:
            raise
        except ApiError as e:
            logger.warning("Password change rejected: %s", e)
            st.error(f"❌ {e.message or 'Failed to change password'}")
        else:
            st.session_state.default_password = False
            st.toast("Password changed successfully", icon="✅")
            st.rerun()


def logout():
    """Clear authentication session."""
    # The next get_api call opens a fresh client
    api = st.session_state.pop(API_KEY, None)
    if api is not None:
        api_logout(api)
    st.session_state.authenticated = False
    st.session_state.username = None
    st.session_state.name = None
    st.session_state.role = None
    st.session_state.admin_mode = False
    st.session_state.default_password = False
    # Page list states and collections belong to the old session
    for key in [k for k in st.session_state.keys() if str(k).startswith(("list_", "rows_"))]:
        del st.session_state[key]


def require_auth(api: ApiClient) -> bool:
    """True when this session holds a token and a logged-in user."""
    return bool(st.session_state.get("authenticated", False) and api.token)


def get_current_user():
    """Get current user info."""
    role = st.session_state.get('role')
    return {
        'username': st.session_state.get('username'),
        'name': st.session_state.get('name'),
        'role': role,
        'is_admin': role in ADMIN_ROLES,
        'is_owner': role == 'owner'
    }
