"""Tests for BL balances, profitability and the dashboard."""

from datetime import datetime, timezone

import pytest

from transitflow.services import reports, store


@pytest.fixture
def march(db, freight):
    """Two BLs in March 2024 and one in April."""
    store.bills_of_lading.add(
        db,
        {
            "id": "bl-a",
            "bl_number": "A-001",
            "client_id": "client-1",
            "allocated_amount": 500.0,
            "created_at": datetime(2024, 3, 5, tzinfo=timezone.utc),
        },
    )
    store.bills_of_lading.add(
        db,
        {
            "id": "bl-b",
            "bl_number": "B-002",
            "client_id": "client-ghost",
            "allocated_amount": 300.0,
            "status": "terminé",
            "created_at": datetime(2024, 3, 20, tzinfo=timezone.utc),
        },
    )
    store.bills_of_lading.add(
        db,
        {
            "id": "bl-c",
            "bl_number": "C-003",
            "client_id": "client-1",
            "allocated_amount": 50.0,
            "created_at": datetime(2024, 4, 1, tzinfo=timezone.utc),
        },
    )
    store.expenses.add(db, {"bl_id": "bl-a", "label": "Douane", "amount": 400.0})
    store.expenses.add(db, {"bl_id": "bl-a", "label": "Camion", "amount": 200.0})


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

class TestParsePeriod:
    """YYYY-MM parsing"""

    def test_month_range(self):
        start, end = reports.parse_period("2024-03")
        assert start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 4, 1, tzinfo=timezone.utc)

    def test_december_rolls_over(self):
        _, end = reports.parse_period("2024-12")
        assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("period", ["2024-13", "2024-3", "24-03", "", "mars 2024"])
    def test_invalid(self, period):
        with pytest.raises(ValueError):
            reports.parse_period(period)


# ---------------------------------------------------------------------------
# Figures
# ---------------------------------------------------------------------------

class TestFigures:
    """Balances, profitability and dashboard totals"""

    def test_bl_balance(self, db, freight):
        balance = reports.bl_balance(db, store.bills_of_lading.require(db, "bl-1"))
        assert balance["total_expenses"] == 250.0
        assert balance["balance"] == 750.0
        assert balance["expense_count"] == 1

    def test_bl_balance_without_expenses(self, db, march):
        balance = reports.bl_balance(db, store.bills_of_lading.require(db, "bl-c"))
        assert balance == {
            "bl_id": "bl-c",
            "bl_number": "C-003",
            "allocated_amount": 50.0,
            "total_expenses": 0.0,
            "balance": 50.0,
            "expense_count": 0,
        }

    def test_profitability_for_month(self, db, march):
        rows = reports.profitability(db, "2024-03")

        assert [r["bl_id"] for r in rows] == ["bl-b", "bl-a"]
        assert rows[0]["client_name"] == "Client inconnu"
        assert rows[0]["profit"] == 300.0
        assert rows[1]["client_name"] == "Global Imports Inc."
        assert rows[1]["total_expenses"] == 600.0
        assert rows[1]["profit"] == -100.0

    def test_dashboard(self, db, march):
        data = reports.dashboard(db)

        assert data["total_clients"] == 1
        assert data["total_bls"] == 4
        assert data["bls_by_status"] == {"en cours": 3, "terminé": 1, "inactif": 0}
        assert data["total_allocated"] == 1850.0
        assert data["total_expenses"] == 850.0
        assert data["overall_profitability"] == 1000.0
        assert data["loss_making_bls"] == 1
        assert data["profitable_bls"] == 3
        assert data["clients_with_open_bls"] == 1


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

class TestReportRoutes:
    """/reports and /bls/{id}/balance"""

    def test_profitability_route(self, client, march, alice_headers):
        resp = client.get("/reports/profitability", params={"period": "2024-03"}, headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json()["period"] == "2024-03"
        assert len(resp.json()["results"]) == 2

    def test_bad_period_is_400(self, client, freight, alice_headers):
        resp = client.get("/reports/profitability", params={"period": "2024-13"}, headers=alice_headers)
        assert resp.status_code == 400

    def test_balance_route(self, client, freight, alice_headers):
        resp = client.get("/bls/bl-1/balance", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json()["balance"] == 750.0

    def test_balance_of_unknown_bl_is_404(self, client, freight, alice_headers):
        assert client.get("/bls/bl-404/balance", headers=alice_headers).status_code == 404

    def test_dashboard_route(self, client, freight, alice_headers):
        assert client.get("/reports/dashboard", headers=alice_headers).json()["total_bls"] == 1
