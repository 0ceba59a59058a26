# ---------- services.py ----------
"""API operations and record helpers used by the Streamlit pages.

Every function takes the session's ``ApiClient`` first. List functions used
by client-paginated pages return the full collection (``fetch_all``); the
purchases list is paginated by the server and returns ``(rows, total)``.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.api_client import ApiClient, ApiError, extract_rows, unwrap
from core.constants import (
    ASSIGNABLE_ROLES,
    DEFAULT_USER_ENDPOINT,
    DELIVERY_DIRECTIONS,
    DELIVERY_STATUSES,
    DISPOSAL_METHODS,
    PRODUCT_TYPES,
    PURCHASE_STATUSES,
    ROLE_ENDPOINTS,
    USER_STATUSES,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_PAGE_SIZE = 100


class ValidationError(ValueError):
    """Form input rejected before it is sent to the API."""


def _require_id(value: Any, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} is required")
    if number <= 0:
        raise ValidationError(f"{label} is required")
    return number


def _positive(value: Any, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number")
    if number <= 0:
        raise ValidationError(f"{label} must be greater than zero")
    return number


def _choice(value: Any, options: Iterable[str], label: str) -> str:
    options = list(options)
    if value not in options:
        raise ValidationError(f"{label} must be one of: {', '.join(options)}")
    return value


def _iso_date(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def record_date(value: Any) -> Optional[date]:
    """Calendar date of a stored API date or timestamp, None when unreadable."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Unreadable date value %r", value)
        return None


def _flag(value: bool) -> str:
    return "true" if value else "false"


def to_number(value: Any) -> Any:
    """Convert numeric strings from the API (``"12.50"``) to floats; leave others alone."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def normalize_numeric(records: List[Dict[str, Any]], fields: Iterable[str]) -> List[Dict[str, Any]]:
    """Copies of ``records`` with the named top-level fields converted to numbers."""
    fields = list(fields)
    normalized = []
    for record in records:
        item = dict(record)
        for name in fields:
            if name in item:
                item[name] = to_number(item[name])
        normalized.append(item)
    return normalized


def _record(payload: Any, fields: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    """The single record of a response body, numeric fields converted."""
    if isinstance(payload, dict) and "data" in payload and payload["data"] is None:
        return None
    record = unwrap(payload)
    if not isinstance(record, dict):
        return None
    return normalize_numeric([record], fields)[0]


# ============================================================================
# Lookups (form dropdowns)
# ============================================================================

def get_warehouses(api: ApiClient) -> List[Dict[str, Any]]:
    return extract_rows(api.get("/warehouse"))


def get_drivers(api: ApiClient) -> List[Dict[str, Any]]:
    return extract_rows(api.get("/drivers"))


def get_suppliers(api: ApiClient) -> List[Dict[str, Any]]:
    return extract_rows(api.get("/supplier"))


def get_sales(api: ApiClient, search: str = "", page_size: int = 100) -> List[Dict[str, Any]]:
    """Sales with their items, for the return and delivery forms."""
    payload = api.get(
        "/sales",
        params={"page": 1, "pageSize": page_size, "search": search, "include": "items,products"},
    )
    return extract_rows(payload)


def sale_item_options(sales: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten sales into one selectable entry per sale item."""
    options = []
    for sale in sales:
        for item in sale.get("items") or []:
            product = item.get("product") or {}
            options.append(
                {
                    "saleId": sale.get("id"),
                    "saleItemId": item.get("id"),
                    "reference": sale.get("referenceNumber") or sale.get("saleReference") or f"#{sale.get('id')}",
                    "productName": product.get("name", ""),
                    "quantity": to_number(item.get("quantity")) or 0,
                }
            )
    return options


# ============================================================================
# Products
# ============================================================================

def get_products(api: ApiClient, include_deleted: bool = False, page_size: int = DEFAULT_FETCH_PAGE_SIZE) -> List[Dict[str, Any]]:
    return api.fetch_all(
        "/products", params={"includeDeleted": _flag(include_deleted)}, page_size=page_size
    )


def get_product(api: ApiClient, product_id: int) -> Optional[Dict[str, Any]]:
    return _record(api.get(f"/products/{_require_id(product_id, 'Product')}"))


def _product_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Product name is required")
    return {
        "name": name,
        "description": (data.get("description") or "").strip(),
        "type": _choice(data.get("type"), PRODUCT_TYPES, "Product type"),
    }


def create_product(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = _product_payload(data)
    created = unwrap(api.post("/products", json=payload))
    logger.info("Created product %s", payload["name"])
    return created


def update_product(api: ApiClient, product_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = _product_payload(data)
    return unwrap(api.put(f"/products/{_require_id(product_id, 'Product')}", json=payload))


def delete_product(api: ApiClient, product_id: int) -> None:
    api.delete(f"/products/{_require_id(product_id, 'Product')}")
    logger.info("Deleted product %s", product_id)


def restore_product(api: ApiClient, product_id: int) -> None:
    api.post(f"/products/{_require_id(product_id, 'Product')}/restore")


def get_product_stock(api: ApiClient, product_id: int) -> Any:
    return unwrap(api.get(f"/products/{_require_id(product_id, 'Product')}/stock"))


# ============================================================================
# Purchases (paginated by the server)
# ============================================================================

def get_purchases_page(
    api: ApiClient,
    page: int = 1,
    page_size: int = 10,
    search: str = "",
    status: str = "",
    include_deleted: bool = False,
) -> Tuple[List[Dict[str, Any]], int]:
    """One server page of purchases and the total matching count."""
    rows, total = api.fetch_page(
        "/purchases",
        params={
            "page": max(int(page), 1),
            "pageSize": page_size,
            "search": search,
            "status": status,
            "includeDeleted": _flag(include_deleted),
        },
    )
    return normalize_numeric(rows, ("weight", "unitPrice", "totalPaid", "totalDelivered")), total


def get_purchase(api: ApiClient, purchase_id: int) -> Optional[Dict[str, Any]]:
    return _record(
        api.get(f"/purchases/{_require_id(purchase_id, 'Purchase')}"),
        ("weight", "unitPrice", "totalPaid", "totalDelivered"),
    )


def create_purchase(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = {
        "userId": _require_id(data.get("userId"), "Supplier"),
        "productId": _require_id(data.get("productId"), "Product"),
        "weight": _positive(data.get("weight"), "Weight"),
        "unitPrice": _positive(data.get("unitPrice"), "Unit price"),
        "description": (data.get("description") or "").strip() or None,
        "expectedDeliveryDate": _iso_date(data.get("expectedDeliveryDate")),
    }
    created = unwrap(api.post("/purchases", json={k: v for k, v in payload.items() if v is not None}))
    logger.info("Created purchase for product %s", payload["productId"])
    return created


def update_purchase(api: ApiClient, purchase_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if data.get("status"):
        payload["status"] = _choice(data["status"], PURCHASE_STATUSES, "Status")
    if data.get("weight") not in (None, ""):
        payload["weight"] = _positive(data["weight"], "Weight")
    if "description" in data:
        payload["description"] = (data.get("description") or "").strip()
    if data.get("expectedDeliveryDate"):
        payload["expectedDeliveryDate"] = _iso_date(data["expectedDeliveryDate"])
    return unwrap(api.put(f"/purchases/{_require_id(purchase_id, 'Purchase')}", json=payload))


def delete_purchase(api: ApiClient, purchase_id: int) -> None:
    api.delete(f"/purchases/{_require_id(purchase_id, 'Purchase')}")
    logger.info("Deleted purchase %s", purchase_id)


def restore_purchase(api: ApiClient, purchase_id: int) -> Dict[str, Any]:
    return unwrap(api.post(f"/purchases/{_require_id(purchase_id, 'Purchase')}/restore"))


# ============================================================================
# Deliveries
# ============================================================================

def get_deliveries(api: ApiClient, include_deleted: bool = False, page_size: int = DEFAULT_FETCH_PAGE_SIZE) -> List[Dict[str, Any]]:
    rows = api.fetch_all(
        "/deliveries", params={"includeDeleted": _flag(include_deleted)}, page_size=page_size
    )
    return normalize_numeric(rows, ("quantity", "unitPrice"))


def get_delivery(api: ApiClient, delivery_id: int) -> Optional[Dict[str, Any]]:
    return _record(api.get(f"/deliveries/{_require_id(delivery_id, 'Delivery')}"), ("quantity", "unitPrice"))


def create_delivery(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    direction = _choice(data.get("direction"), DELIVERY_DIRECTIONS, "Direction")
    payload: Dict[str, Any] = {
        "direction": direction,
        "quantity": _positive(data.get("quantity"), "Quantity"),
        "driverId": _require_id(data.get("driverId"), "Driver"),
        "warehouseId": _require_id(data.get("warehouseId"), "Warehouse"),
    }
    if direction == "in":
        payload["purchaseId"] = _require_id(data.get("purchaseId"), "Purchase")
    else:
        payload["saleId"] = _require_id(data.get("saleId"), "Sale")
        payload["saleItemId"] = _require_id(data.get("saleItemId"), "Sale item")
    if data.get("notes"):
        payload["notes"] = data["notes"].strip()
    created = unwrap(api.post("/deliveries", json=payload))
    logger.info("Created %s delivery", direction)
    return created


def update_delivery(api: ApiClient, delivery_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """Only notes and status can change once a delivery exists."""
    payload: Dict[str, Any] = {}
    if data.get("status"):
        payload["status"] = _choice(data["status"], DELIVERY_STATUSES, "Status")
    if "notes" in data:
        payload["notes"] = (data.get("notes") or "").strip()
    return unwrap(api.put(f"/deliveries/{_require_id(delivery_id, 'Delivery')}", json=payload))


def delete_delivery(api: ApiClient, delivery_id: int) -> None:
    api.delete(f"/deliveries/{_require_id(delivery_id, 'Delivery')}")
    logger.info("Deleted delivery %s", delivery_id)


def restore_delivery(api: ApiClient, delivery_id: int) -> None:
    api.post(f"/deliveries/{_require_id(delivery_id, 'Delivery')}/restore")


# ============================================================================
# Returns
# ============================================================================

def get_returns(api: ApiClient, include_deleted: bool = False, page_size: int = DEFAULT_FETCH_PAGE_SIZE) -> List[Dict[str, Any]]:
    rows = api.fetch_all(
        "/returns", params={"includeDeleted": _flag(include_deleted)}, page_size=page_size
    )
    return normalize_numeric(rows, ("returnedQuantity",))


def get_return(api: ApiClient, return_id: int) -> Optional[Dict[str, Any]]:
    return _record(api.get(f"/returns/{_require_id(return_id, 'Return')}"), ("returnedQuantity",))


def _return_payload(data: Dict[str, Any], max_quantity: Optional[float]) -> Dict[str, Any]:
    quantity = _positive(data.get("returnedQuantity"), "Returned quantity")
    if max_quantity is not None and quantity > float(max_quantity):
        raise ValidationError(
            f"Returned quantity cannot exceed original sale quantity ({float(max_quantity):g})"
        )
    payload: Dict[str, Any] = {
        "saleId": _require_id(data.get("saleId"), "Sale"),
        "saleItemId": _require_id(data.get("saleItemId"), "Sale item"),
        "returnedQuantity": quantity,
    }
    if data.get("note"):
        payload["note"] = data["note"].strip()
    if data.get("status"):
        payload["status"] = data["status"]
    if data.get("warehouseId"):
        payload["warehouseId"] = _require_id(data["warehouseId"], "Warehouse")
    return payload


def create_return(api: ApiClient, data: Dict[str, Any], max_quantity: Optional[float] = None) -> Dict[str, Any]:
    payload = _return_payload(data, max_quantity)
    created = unwrap(api.post("/returns", json=payload))
    logger.info("Created return for sale item %s", payload["saleItemId"])
    return created


def update_return(
    api: ApiClient, return_id: int, data: Dict[str, Any], max_quantity: Optional[float] = None
) -> Dict[str, Any]:
    payload = _return_payload(data, max_quantity)
    return unwrap(api.put(f"/returns/{_require_id(return_id, 'Return')}", json=payload))


def delete_return(api: ApiClient, return_id: int) -> None:
    api.delete(f"/returns/{_require_id(return_id, 'Return')}")
    logger.info("Deleted return %s", return_id)


# ============================================================================
# Disposals
# ============================================================================

def get_disposals(api: ApiClient, include_deleted: bool = False, page_size: int = DEFAULT_FETCH_PAGE_SIZE) -> List[Dict[str, Any]]:
    rows = api.fetch_all(
        "/disposal", params={"includeDeleted": _flag(include_deleted)}, page_size=page_size
    )
    return normalize_numeric(rows, ("quantity",))


def get_disposal(api: ApiClient, disposal_id: int) -> Optional[Dict[str, Any]]:
    return _record(api.get(f"/disposal/{_require_id(disposal_id, 'Disposal')}"), ("quantity",))


def create_disposal(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "productId": _require_id(data.get("productId"), "Product"),
        "warehouseId": _require_id(data.get("warehouseId"), "Warehouse"),
        "quantity": _positive(data.get("quantity"), "Quantity"),
        "method": _choice(data.get("method"), DISPOSAL_METHODS, "Method"),
        "date": _iso_date(data.get("date")) or date.today().isoformat(),
    }
    if data.get("note"):
        payload["note"] = data["note"].strip()
    if data.get("unitPrice") not in (None, ""):
        payload["unitPrice"] = _positive(data["unitPrice"], "Unit price")
    created = unwrap(api.post("/disposal", json=payload))
    logger.info("Created disposal (%s) for product %s", payload["method"], payload["productId"])
    return created


def update_disposal(api: ApiClient, disposal_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if data.get("quantity") not in (None, ""):
        payload["quantity"] = _positive(data["quantity"], "Quantity")
    if data.get("method"):
        payload["method"] = _choice(data["method"], DISPOSAL_METHODS, "Method")
    if "note" in data:
        payload["note"] = (data.get("note") or "").strip()
    if data.get("date"):
        payload["date"] = _iso_date(data["date"])
    return unwrap(api.put(f"/disposal/{_require_id(disposal_id, 'Disposal')}", json=payload))


def delete_disposal(api: ApiClient, disposal_id: int) -> None:
    api.delete(f"/disposal/{_require_id(disposal_id, 'Disposal')}")
    logger.info("Deleted disposal %s", disposal_id)


def get_average_price(api: ApiClient, product_id: int) -> Optional[float]:
    """Average buying price of a product from its stock movements."""
    payload = unwrap(api.get(f"/stoke-movements/average-price/{_require_id(product_id, 'Product')}"))
    if isinstance(payload, dict):
        return to_number(payload.get("averageUnitPrice"))
    return None


# ============================================================================
# Prices
# ============================================================================

def get_prices(api: ApiClient) -> List[Dict[str, Any]]:
    return normalize_numeric(extract_rows(api.get("/daily-price")), ("unitPrice",))


def get_prices_for_product(api: ApiClient, product_id: int) -> List[Dict[str, Any]]:
    rows = extract_rows(api.get(f"/daily-price/product/{_require_id(product_id, 'Product')}"))
    return normalize_numeric(rows, ("unitPrice",))


def _price_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "productId": _require_id(data.get("productId"), "Product"),
        "unitPrice": _positive(data.get("unitPrice"), "Unit price"),
        "date": _iso_date(data.get("date")) or date.today().isoformat(),
    }


def create_price(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = _price_payload(data)
    created = unwrap(api.post("/daily-price", json=payload))
    logger.info("Recorded price %s for product %s", payload["unitPrice"], payload["productId"])
    return created


def update_price(api: ApiClient, price_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    return unwrap(api.put(f"/daily-price/{_require_id(price_id, 'Price')}", json=_price_payload(data)))


def delete_price(api: ApiClient, price_id: int) -> None:
    api.delete(f"/daily-price/{_require_id(price_id, 'Price')}")


def get_price_history(api: ApiClient, price_id: int) -> List[Dict[str, Any]]:
    rows = extract_rows(api.get(f"/daily-price/{_require_id(price_id, 'Price')}/history"))
    return normalize_numeric(rows, ("oldPrice", "newPrice"))


# ============================================================================
# User Management Functions
# ============================================================================

def user_role(user: Dict[str, Any]) -> str:
    """Primary role name of a user record."""
    if user.get("role"):
        return str(user["role"])
    roles = user.get("roles") or []
    if roles and isinstance(roles[0], dict) and roles[0].get("name"):
        return str(roles[0]["name"])
    return ""


def _map_user(user: Dict[str, Any]) -> Dict[str, Any]:
    item = dict(user)
    item["status"] = user.get("accountStatus") or user.get("status") or ""
    item["role"] = user_role(user)
    return item


def get_users(api: ApiClient, include_deleted: bool = False, page_size: int = DEFAULT_FETCH_PAGE_SIZE) -> List[Dict[str, Any]]:
    rows = api.fetch_all(
        "/users", params={"includeDeleted": _flag(include_deleted)}, page_size=page_size
    )
    return [_map_user(u) for u in rows]


def get_user(api: ApiClient, user_id: int) -> Optional[Dict[str, Any]]:
    user = _record(api.get(f"/users/{_require_id(user_id, 'User')}"))
    return _map_user(user) if user else None


def create_user(api: ApiClient, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a user through the endpoint that matches its role."""
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip()
    names = (data.get("names") or "").strip()
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters")
    if "@" not in email:
        raise ValidationError("A valid email is required")
    if not names:
        raise ValidationError("Full name is required")
    role = (data.get("role") or "").strip()
    endpoint = ROLE_ENDPOINTS.get(role.lower().replace("_", ""), DEFAULT_USER_ENDPOINT)
    payload = {
        "username": username,
        "email": email,
        "names": names,
        "phoneNumber": (data.get("phoneNumber") or "").strip(),
        "address": (data.get("address") or "").strip(),
        "role": role,
    }
    created = unwrap(api.post(endpoint, json=payload))
    logger.info("Created user %s via %s", username, endpoint)
    return created


def update_user(api: ApiClient, user_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
    payload = {k: v for k, v in data.items() if k in ("username", "email") and v}
    profile = {k: v for k, v in data.items() if k in ("names", "phoneNumber", "address") and v is not None}
    if profile:
        payload["profile"] = profile
    return unwrap(api.put(f"/users/{_require_id(user_id, 'User')}", json=payload))


def delete_user(api: ApiClient, user_id: int) -> None:
    api.delete(f"/users/{_require_id(user_id, 'User')}")
    logger.info("Deleted user %s", user_id)


def restore_user(api: ApiClient, user_id: int) -> None:
    api.post(f"/users/{_require_id(user_id, 'User')}/restore")


def update_user_status(api: ApiClient, user_id: int, status: str) -> Any:
    status = _choice(status, USER_STATUSES, "Status")
    result = unwrap(api.post(f"/users/{_require_id(user_id, 'User')}/status", json={"status": status}))
    logger.info("User %s set to %s", user_id, status)
    return result


def reset_user_password(api: ApiClient, user_id: int) -> Any:
    return unwrap(api.post(f"/users/{_require_id(user_id, 'User')}/reset-password"))


def get_user_roles(api: ApiClient, user_id: int) -> List[Dict[str, Any]]:
    """Role records (``id``, ``name``, ``description``) held by a user."""
    payload = unwrap(api.get(f"/users/{_require_id(user_id, 'User')}/roles"))
    if isinstance(payload, dict) and isinstance(payload.get("roles"), list):
        return payload["roles"]
    return extract_rows(payload)


def assign_roles(api: ApiClient, user_id: int, roles: Iterable[str]) -> Any:
    """Grant roles by name."""
    roles = [str(r).strip().upper() for r in roles if str(r or "").strip()]
    if not roles:
        raise ValidationError("Select at least one role")
    for role in roles:
        _choice(role, ASSIGNABLE_ROLES, "Role")
    result = unwrap(api.post(f"/users/{_require_id(user_id, 'User')}/roles", json={"roles": roles}))
    logger.info("Assigned %s to user %s", ", ".join(roles), user_id)
    return result


def remove_roles(api: ApiClient, user_id: int, role_ids: Iterable[int]) -> Any:
    """Take roles away by role id."""
    role_ids = [_require_id(r, "Role") for r in role_ids]
    if not role_ids:
        raise ValidationError("Select at least one role")
    result = unwrap(api.delete(f"/users/{_require_id(user_id, 'User')}/roles", json={"roles": role_ids}))
    logger.info("Removed roles %s from user %s", role_ids, user_id)
    return result


# ============================================================================
# Authentication
# ============================================================================

def login(api: ApiClient, username_or_email: str, password: str) -> Dict[str, Any]:
    """Log in and store the returned tokens on the client."""
    if not username_or_email or not password:
        raise ValidationError("Please enter both username and password")
    body = api.post("/auth/login", json={"usernameOrEmail": username_or_email, "password": password})
    body = body if isinstance(body, dict) else {}
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    token = data.get("token") or body.get("token")
    if not token:
        raise ValidationError(body.get("message") or "Login failed")
    api.set_tokens(token, data.get("refreshToken") or body.get("refreshToken"))
    user = data.get("user") or body.get("user") or {"username": username_or_email}
    return _map_user(user)


def logout(api: ApiClient) -> None:
    """Tell the API the session ended, then drop the tokens and close the client."""
    try:
        api.post("/auth/logout")
    except ApiError:
        logger.exception("Logout request failed")
    finally:
        api.clear_tokens()
        api.close()


def change_password(
    api: ApiClient,
    current_password: str,
    new_password: str,
    confirm_password: Optional[str] = None,
) -> Any:
    if not current_password:
        raise ValidationError("Current password is required")
    if len(new_password or "") < 6:
        raise ValidationError("Password must be at least 6 characters")
    if confirm_password is not None and confirm_password != new_password:
        raise ValidationError("Passwords do not match")
    result = api.post(
        "/auth/change-password",
        json={"currentPassword": current_password, "newPassword": new_password},
    )
    logger.info("Password changed")
    return result
