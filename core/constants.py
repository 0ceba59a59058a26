# ---------- constants.py ----------
"""Project-wide constants: record enums, role endpoints and menu labels."""
from typing import Dict, List

PRODUCT_TYPES: List[str] = [
    "raw_material",
    "finished_product",
    "raw_and_finished",
]

PURCHASE_STATUSES: List[str] = [
    "draft",
    "approved",
    "payment_completed",
    "delivery_complete",
    "all_completed",
]

DELIVERY_STATUSES: List[str] = ["pending", "delivered", "completed", "cancelled"]
DELIVERY_DIRECTIONS: List[str] = [
    "in",   # Goods received against a purchase
    "out",  # Goods sent against a sale
]

DISPOSAL_METHODS: List[str] = [
    "damaged",
    "expired",
    "destroyed",
    "donated",
    "recycled",
    "returned_to_supplier",
    "other",
]

RETURN_STATUSES: List[str] = ["pending", "approved", "completed", "rejected"]

USER_STATUSES: List[str] = ["active", "inactive", "suspended", "pending"]

# Creating a user with one of these roles goes to the role's own endpoint
ROLE_ENDPOINTS: Dict[str, str] = {
    "admin": "/admins",
    "cashier": "/cashier",
    "blocker": "/blockers",
    "saler": "/saler",
    "driver": "/drivers",
    "client": "/clients",
    "scalemonitor": "/sm",
    "stockkeeper": "/stock-keepers",
    "supplier": "/supplier",
    "productionmanager": "/pm",
}
DEFAULT_USER_ENDPOINT = "/auth/register"
# Role names an admin can grant from the user details dialog
ASSIGNABLE_ROLES: List[str] = [
    "ADMIN", "USER", "CASHIER", "BLOCKER", "DRIVER", "CLIENT",
    "SALER", "STOCKKEEPER", "SCALEMONITOR", "SUPPLIER", "PRODUCTIONMANAGER", "MANAGER",
]
ADMIN_ROLES: List[str] = ["admin", "owner"]

PAGE_SIZE_OPTIONS: List[int] = [5, 10, 20, 50]
QUANTITY_UNIT = "Kg"

# Sidebar menu labels (keep in sync across app and sidebar)
MENU_DASHBOARD = "\U0001F4C8 Dashboard"
MENU_PRODUCTS = "\U0001F4E6 Products"
MENU_PURCHASES = "\U0001F6D2 Purchases"
MENU_DELIVERIES = "\U0001F69A Deliveries"
MENU_RETURNS = "\u21A9\ufe0f Returns"
MENU_DISPOSALS = "\u267B\ufe0f Disposals"
MENU_PRICES = "\U0001F4B2 Prices"
MENU_USERS = "\U0001F9D1\u200D\U0001F4BB User Management"
