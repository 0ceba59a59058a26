"""Tests for the summary figures shown above the lists."""
from __future__ import annotations

import pytest

from core import stats


class TestDisposalStats:
    def test_totals(self, disposals):
        result = stats.disposal_stats(disposals)
        assert result["total"] == 12
        assert result["total_quantity"] == pytest.approx(sum(range(1, 13)))
        assert result["total_value"] == pytest.approx(sum(range(1, 13)) * 2.5)
        assert result["by_method"] == {"damaged": 4, "expired": 4, "donated": 4}

    def test_empty(self):
        assert stats.disposal_stats([]) == {
            "total": 0,
            "total_quantity": 0.0,
            "total_value": 0.0,
            "by_method": {},
        }


class TestDeliveryStats:
    def test_directions(self, deliveries):
        result = stats.delivery_stats(deliveries)
        assert (result["inbound"], result["outbound"]) == (2, 1)
        assert result["inbound_quantity"] == pytest.approx(16.0)
        assert result["outbound_quantity"] == pytest.approx(4.0)
        # Missing unit price counts as zero value
        assert result["inbound_value"] == pytest.approx(30.0)
        assert result["outbound_value"] == pytest.approx(20.0)
        assert result["pending"] == 1


class TestReturnStats:
    def test_average(self):
        rows = [{"returnedQuantity": 2}, {"returnedQuantity": "4"}, {"returnedQuantity": None}]
        result = stats.return_stats(rows)
        assert result["total"] == 3
        assert result["total_quantity"] == pytest.approx(6.0)
        assert result["average_quantity"] == pytest.approx(2.0)

    def test_empty(self):
        assert stats.return_stats([])["average_quantity"] == 0.0


class TestUserAndProductStats:
    def test_user_statuses(self):
        rows = [{"status": "active"}, {"status": "active"}, {"status": "pending"}, {"status": "suspended"}]
        assert stats.user_stats(rows) == {"total": 4, "active": 2, "inactive": 0, "pending": 1}

    def test_product_types(self):
        rows = [
            {"type": "raw_material", "deletedAt": None},
            {"type": "raw_material", "deletedAt": "2024-01-01"},
            {"type": "finished_product"},
        ]
        result = stats.product_stats(rows)
        assert result["by_type"] == {"raw_material": 2, "finished_product": 1}
        assert result["deleted"] == 1


class TestPrices:
    @pytest.fixture
    def prices(self):
        return [
            {"id": 1, "product": {"name": "Maize"}, "unitPrice": 2.0, "date": "2024-03-01"},
            {"id": 2, "product": {"name": "Maize"}, "unitPrice": 2.4, "date": "2024-03-03"},
            {"id": 3, "product": {"name": "Beans"}, "unitPrice": 5.0, "date": "2024-03-02"},
            {"id": 4, "product": None, "unitPrice": 9.0, "date": "2024-03-02"},
        ]

    def test_latest_by_product(self, prices):
        result = stats.price_stats(prices)
        assert result["total"] == 4
        assert result["latest_by_product"] == {"Maize": 2.4, "Beans": 5.0}

    def test_trend_is_date_ordered(self, prices):
        trend = stats.price_trend(prices)
        assert list(trend["product"]) == ["Maize", "Beans", "Maize"]
        assert list(trend["unit_price"]) == [2.0, 5.0, 2.4]
