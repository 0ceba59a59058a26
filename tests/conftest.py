"""
Pytest Configuration and Shared Fixtures.

Record fixtures mirror the shapes the inventory API returns.
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest
import respx

from core.api_client import ApiClient

BASE_URL = "http://api.test/api"

METHODS = ["damaged", "expired", "donated"]


def make_disposal(i: int, method: str, day: int) -> Dict[str, Any]:
    return {
        "id": i,
        "referenceNumber": f"DSP-{i:03d}",
        "method": method,
        "quantity": float(i),
        "date": f"2024-03-{day:02d}",
        "product": {"id": 100 + i % 3, "name": ["Maize", "Beans", "Rice"][i % 3]},
        "warehouse": {"id": 1, "name": "Main" if i % 2 else "North"},
        "price": {"buyingUnitPrice": 2.5},
    }


@pytest.fixture
def disposals() -> List[Dict[str, Any]]:
    """12 disposals, 4 of them damaged, one per day (ids 1..12)."""
    methods = [
        "damaged", "expired", "donated",
        "damaged", "expired", "donated",
        "damaged", "expired", "donated",
        "damaged", "expired", "donated",
    ]
    return [make_disposal(i + 1, method, i + 1) for i, method in enumerate(methods)]


@pytest.fixture
def numbered() -> List[Dict[str, Any]]:
    """25 plain records with ids 0..24."""
    return [{"id": i, "name": f"Item {i:02d}"} for i in range(25)]


@pytest.fixture
def deliveries() -> List[Dict[str, Any]]:
    return [
        {
            "id": 1,
            "deliveryReference": "DEL-001",
            "direction": "in",
            "status": "pending",
            "quantity": 10.0,
            "unitPrice": 3.0,
            "product": {"name": "Maize"},
            "warehouse": {"name": "Main"},
            "driver": {"user": {"profile": {"names": "John Driver"}}},
        },
        {
            "id": 2,
            "deliveryReference": "DEL-002",
            "direction": "out",
            "status": "delivered",
            "quantity": 4.0,
            "unitPrice": 5.0,
            "product": {"name": "Beans"},
            "warehouse": {"name": "North"},
            "driver": None,
        },
        {
            "id": 3,
            "deliveryReference": "DEL-003",
            "direction": "in",
            "status": "completed",
            "quantity": 6.0,
            "unitPrice": None,
            "product": {"name": "Rice"},
            "warehouse": None,
            "driver": {"user": {"profile": {"names": "Mary Wheels"}}},
        },
    ]


@pytest.fixture
def api():
    client = ApiClient(BASE_URL, timeout=2.0, token="tok", refresh_token="refresh")
    yield client
    client.close()


@pytest.fixture
def mock_api():
    """respx router scoped to the test API base URL."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router
