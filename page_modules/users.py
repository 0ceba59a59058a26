"""User Management Page - Admin/Owner only."""
import streamlit as st

from core.api_client import ApiError, AuthExpiredError
from core.auth import get_current_user
from core.constants import ASSIGNABLE_ROLES, MENU_USERS, ROLE_ENDPOINTS, USER_STATUSES
from core.list_pipeline import ASCENDING
from core.services import (
    assign_roles,
    create_user,
    delete_user,
    get_user,
    get_user_roles,
    get_users,
    remove_roles,
    reset_user_password,
    restore_user,
    update_user,
    update_user_status,
)
from core.stats import user_stats
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

KEY = "users"
SEARCH_FIELDS = ("username", "email", "profile.names")
COLUMNS = {
    "Username": "username",
    "Name": "profile.names",
    "Email": "email",
    "Phone": "profile.phoneNumber",
    "Role": "role",
    "Status": "status",
    "Created": "createdAt",
}
SORT_FIELDS = {"Username": "username", "Name": "profile.names", "Role": "role", "Created": "createdAt"}
FORMATTERS = {"Role": format_label, "Status": format_label, "Created": format_date}
STATUS_ICONS = {"active": "\U0001F7E2", "inactive": "⚪", "suspended": "\U0001F534", "pending": "\U0001F7E1"}


@st.dialog("User", width="large")
def user_form(api, record=None):
    profile = (record or {}).get("profile") or {}
    with st.form("user_form"):
        username = st.text_input("Username", value=(record or {}).get("username") or "")
        email = st.text_input("Email", value=(record or {}).get("email") or "")
        names = st.text_input("Full name", value=profile.get("names") or "")
        phone = st.text_input("Phone number", value=profile.get("phoneNumber") or "")
        address = st.text_input("Address", value=profile.get("address") or "")
        role = None
        if record is None:
            role = st.selectbox("Role", list(ROLE_ENDPOINTS), format_func=format_label)
        submitted = st.form_submit_button("\U0001F4BE Save", width="stretch")

    if submitted:
        data = {
            "username": username,
            "email": email,
            "names": names,
            "phoneNumber": phone,
            "address": address,
        }
        if record is None:
            data["role"] = role
            ok = run_write(lambda: create_user(api, data), f"User '{username.strip()}' created", collection_keys(KEY))
        else:
            ok = run_write(lambda: update_user(api, record["id"], data), f"User '{username}' updated", collection_keys(KEY))
        if ok:
            st.rerun()


@st.dialog("Account status")
def status_form(api, record):
    current = record.get("status")
    st.caption(f"@{record.get('username')}")
    status = st.selectbox(
        "Status",
        USER_STATUSES,
        index=USER_STATUSES.index(current) if current in USER_STATUSES else 0,
        format_func=lambda s: f"{STATUS_ICONS.get(s, '')} {format_label(s)}",
    )
    col1, col2 = st.columns(2)
    if col1.button("\U0001F4BE Save", key=f"{KEY}_status_save"):
        if run_write(lambda: update_user_status(api, record["id"], status), f"@{record.get('username')} is now {status}", collection_keys(KEY)):
            st.rerun()
    if col2.button("\U0001F511 Reset password", key=f"{KEY}_reset_pw"):
        if run_write(lambda: reset_user_password(api, record["id"]), f"Password reset for @{record.get('username')}"):
            st.rerun()


@st.dialog("User details", width="large")
def user_details(api, record, can_manage_roles):
    record = latest_record(lambda: get_user(api, record["id"]), record)
    st.subheader(f"{STATUS_ICONS.get(record.get('status'), '')} @{record.get('username')}")
    render_details(record, COLUMNS, FORMATTERS)

    st.markdown("**Roles**")
    try:
        roles = get_user_roles(api, record["id"])
    except AuthExpiredError:
        raise
    except ApiError as e:
        st.caption(f"Roles unavailable: {e.message}")
        return
    if not roles:
        st.caption("No roles assigned.")
    for role in roles:
        col1, col2 = st.columns([4, 1])
        col1.markdown(f"**{role.get('name')}**  \n{role.get('description') or ''}")
        if can_manage_roles and col2.button("\U0001F5D1️", key=f"{KEY}_role_remove_{role.get('id')}"):
            if run_write(
                lambda: remove_roles(api, record["id"], [role.get("id")]),
                f"Removed {role.get('name')} from @{record.get('username')}",
                collection_keys(KEY),
            ):
                st.rerun()

    if not can_manage_roles:
        return
    held = {str(r.get("name") or "").upper() for r in roles}
    choices = [r for r in ASSIGNABLE_ROLES if r not in held]
    col1, col2 = st.columns([4, 1])
    new_role = col1.selectbox("Add role", choices, index=None, key=f"{KEY}_role_add_choice")
    if col2.button("➕ Add", key=f"{KEY}_role_add", disabled=not new_role):
        if run_write(
            lambda: assign_roles(api, record["id"], [new_role]),
            f"Added {new_role} to @{record.get('username')}",
            collection_keys(KEY),
        ):
            st.rerun()


def render(api, settings):
    """Render user management page."""
    user = get_current_user()

    if not user["is_admin"]:
        st.error("⛔ Access denied. This page is for admins and owners only.")
        return

    st.header(MENU_USERS)
    show_flash()

    include_deleted = st.toggle("Show deleted users", key=f"{KEY}_include_deleted")
    key = f"{KEY}_all" if include_deleted else KEY
    holder = load_collection(
        key, lambda: get_users(api, include_deleted=include_deleted, page_size=settings.fetch_page_size)
    )
    if render_error_banner(holder, key):
        return
    rows = holder.rows

    stats = user_stats(rows)
    render_stat_cards(
        [
            ("Users", stats["total"]),
            ("Active", stats["active"]),
            ("Inactive", stats["inactive"]),
            ("Pending", stats["pending"]),
        ]
    )

    if st.button("➕ Add user", key=f"{KEY}_add"):
        user_form(api)

    state = list_state(KEY, default_sort=("username", ASCENDING), page_size=settings.default_page_size)
    roles = sorted({r["role"] for r in rows if r.get("role")})
    view = render_list_controls(
        state,
        key,
        search_label="Search username, email or name",
        filters={"Role": ("role", roles), "Status": ("status", USER_STATUSES)},
        sort_fields=SORT_FIELDS,
    )
    page = state.run(rows, SEARCH_FIELDS)

    if view == "Cards":
        picked = render_record_cards(
            page.visible_rows, KEY, "profile.names",
            {"Username": "username", "Role": "role", "Status": "status"},
            formatters=FORMATTERS,
        )
    else:
        picked = render_records_table(page.visible_rows, COLUMNS, KEY, formatters=FORMATTERS)
    render_pagination(state, page, KEY)

    selected = remember_selection(KEY, picked, page.visible_rows)
    action = render_action_bar(
        KEY,
        selected,
        lambda r: f"{STATUS_ICONS.get(r.get('status'), '')} @{r.get('username')} ({format_label(r.get('role'))})",
        True,
    )
    if selected is not None:
        col1, col2 = st.columns(2)
        if col1.button("\U0001F6E1️ Status / password", key=f"{KEY}_status_{selected['id']}"):
            status_form(api, selected)
        if selected.get("deletedAt") and col2.button("♻️ Restore", key=f"{KEY}_restore_{selected['id']}"):
            if run_write(lambda: restore_user(api, selected["id"]), f"Restored @{selected.get('username')}", collection_keys(KEY)):
                st.rerun()
    if action == "view":
        user_details(api, selected, user["is_admin"])
    elif action == "edit":
        user_form(api, selected)
    elif action == "delete":
        if selected.get("username") == user["username"]:
            st.error("You cannot delete your own account.")
        else:
            confirm_delete_dialog(f"user @{selected.get('username')}", lambda: delete_user(api, selected["id"]), KEY, collection_keys(KEY))

    render_export_buttons(page.matched_rows, COLUMNS, KEY)
