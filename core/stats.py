"""Summary figures shown above each management list."""
from __future__ import annotations

from typing import Any, Dict, List

import pandas as pd

from core.list_pipeline import get_field


def _frame(rows: List[Dict[str, Any]], columns: Dict[str, str]) -> pd.DataFrame:
    """Frame with one column per dotted path in ``columns`` (name -> path)."""
    data = {name: [get_field(r, path) for r in rows] for name, path in columns.items()}
    return pd.DataFrame(data, columns=list(columns))


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0.0)


def disposal_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = _frame(rows, {"quantity": "quantity", "price": "price.buyingUnitPrice", "method": "method"})
    quantity = _numeric(df["quantity"])
    value = quantity * _numeric(df["price"])
    by_method = df["method"].dropna().value_counts().to_dict()
    return {
        "total": len(df),
        "total_quantity": float(quantity.sum()),
        "total_value": float(value.sum()),
        "by_method": {str(k): int(v) for k, v in by_method.items()},
    }


def delivery_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = _frame(rows, {"direction": "direction", "quantity": "quantity", "unit_price": "unitPrice", "status": "status"})
    df["quantity"] = _numeric(df["quantity"])
    df["value"] = df["quantity"] * _numeric(df["unit_price"])
    inbound = df[df["direction"] == "in"]
    outbound = df[df["direction"] == "out"]
    return {
        "total": len(df),
        "inbound": len(inbound),
        "outbound": len(outbound),
        "inbound_quantity": float(inbound["quantity"].sum()),
        "outbound_quantity": float(outbound["quantity"].sum()),
        "inbound_value": float(inbound["value"].sum()),
        "outbound_value": float(outbound["value"].sum()),
        "pending": int((df["status"] == "pending").sum()),
    }


def return_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = _frame(rows, {"quantity": "returnedQuantity"})
    quantity = _numeric(df["quantity"])
    total = len(df)
    return {
        "total": total,
        "total_quantity": float(quantity.sum()),
        "average_quantity": float(quantity.mean()) if total else 0.0,
    }


def user_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = _frame(rows, {"status": "status"})
    counts = df["status"].value_counts()
    return {
        "total": len(df),
        "active": int(counts.get("active", 0)),
        "inactive": int(counts.get("inactive", 0)),
        "pending": int(counts.get("pending", 0)),
    }


def product_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = _frame(rows, {"type": "type", "deleted_at": "deletedAt"})
    return {
        "total": len(df),
        "by_type": {str(k): int(v) for k, v in df["type"].dropna().value_counts().items()},
        "deleted": int(df["deleted_at"].notna().sum()),
    }


def price_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Count plus the most recent price of every product."""
    df = _frame(rows, {"product": "product.name", "unit_price": "unitPrice", "date": "date", "id": "id"})
    latest: Dict[str, float] = {}
    if not df.empty:
        df["unit_price"] = _numeric(df["unit_price"])
        df["date"] = pd.to_datetime(df["date"], errors="coerce")
        ordered = df.dropna(subset=["product"]).sort_values(["date", "id"], kind="stable")
        last = ordered.drop_duplicates("product", keep="last")
        latest = {str(r.product): float(r.unit_price) for r in last.itertuples(index=False)}
    return {"total": len(df), "latest_by_product": latest}


def price_trend(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """Date / product / unit price frame for the price trend chart."""
    df = _frame(rows, {"date": "date", "product": "product.name", "unit_price": "unitPrice"})
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["unit_price"] = pd.to_numeric(df["unit_price"], errors="coerce")
    return df.dropna().sort_values("date", kind="stable").reset_index(drop=True)
