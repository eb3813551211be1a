"""
Tests for the HTTP API.

Exercises the routers end to end against the in-memory database:
authentication via the owner cookie, error mapping and the main
plan/transaction/rollover flow.
"""

import pytest
from typing import Dict

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from moneyplan.models.budget import Budget, Period
from moneyplan.models.category import Category
from moneyplan.main import STORE_ERROR_MESSAGE


@pytest.fixture
def budget_id(auth_client: TestClient, categories: Dict[str, Category]) -> str:
    response = auth_client.get("/api/budgets")
    assert response.status_code == 200
    return response.json()["budgets"][0]["id"]


@pytest.fixture
def current(auth_client: TestClient, budget_id: str) -> dict:
    response = auth_client.get(f"/api/budgets/{budget_id}/current-period")
    assert response.status_code == 200
    return response.json()


class TestAuthentication:
    """Test suite for the owner cookie."""

    def test_missing_cookie_is_rejected(self, client: TestClient):
        response = client.get("/api/budgets")
        assert response.status_code == 401
        assert response.json() == {"error": "Not authenticated"}

    def test_first_visit_creates_default_budget(self, auth_client: TestClient, db_session: Session):
        response = auth_client.get("/api/budgets")

        assert response.status_code == 200
        budgets = response.json()["budgets"]
        assert len(budgets) == 1
        assert db_session.query(Budget).filter(Budget.owner_id == "testuser").count() == 1

        # Second visit does not add another
        assert len(auth_client.get("/api/budgets").json()["budgets"]) == 1

    def test_other_owners_budget_is_not_found(self, auth_client: TestClient, db_session: Session):
        other = Budget(owner_id="someone-else", name="Private")
        db_session.add(other)
        db_session.commit()

        response = auth_client.get(f"/api/budgets/{other.id}/periods")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


class TestBudgets:
    """Test suite for budget management."""

    def test_create_update_delete(self, auth_client: TestClient, db_session: Session):
        created = auth_client.post("/api/budgets", json={"name": "Holiday", "currency_code": "usd"})
        assert created.status_code == 201
        budget_id = created.json()["id"]
        assert created.json()["currency_code"] == "USD"

        updated = auth_client.patch(f"/api/budgets/{budget_id}", json={"name": "Summer holiday"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Summer holiday"
        assert updated.json()["currency_code"] == "USD"

        auth_client.get(f"/api/budgets/{budget_id}/current-period")
        assert auth_client.delete(f"/api/budgets/{budget_id}").json() == {"success": True}
        assert db_session.get(Budget, budget_id) is None
        assert db_session.query(Period).filter(Period.budget_id == budget_id).count() == 0

    def test_activity_feed_lists_budget_changes(self, auth_client: TestClient):
        created = auth_client.post("/api/budgets", json={"name": "Holiday"}).json()
        auth_client.patch(f"/api/budgets/{created['id']}", json={"color": "#000000"})

        activities = auth_client.get("/api/activity").json()["activities"]

        assert {"budget_created", "budget_updated"} <= {a["action"] for a in activities}
        assert all(a["module"] == "Budget" for a in activities)

    def test_blank_name_is_rejected(self, auth_client: TestClient):
        response = auth_client.post("/api/budgets", json={"name": "  "})
        assert response.status_code == 422
        assert response.json()["field"] == "name"


class TestPlanningFlow:
    """Test suite for plans, transactions and the derived views."""

    def test_current_period_is_open(self, current: dict):
        assert current["status"] == "OPEN"
        assert current["period_type"] == "MONTHLY"

    def test_plan_transaction_summary(
        self, auth_client: TestClient, current: dict, categories: Dict[str, Category]
    ):
        period_id = current["id"]
        groceries = categories["Groceries"].id

        response = auth_client.put(f"/api/periods/{period_id}/plans", json={
            "category_id": groceries, "type": "EXPENSE", "amount": 500.00, "notes": "weekly shop",
        })
        assert response.status_code == 200
        assert response.json()["amount_cents"] == 50000

        response = auth_client.post(f"/api/periods/{period_id}/transactions", json={
            "category_id": groceries, "type": "EXPENSE", "amount": 120.00,
            "transaction_date": current["start_date"],
        })
        assert response.status_code == 201
        assert response.json()["date"] == current["start_date"]

        summary = auth_client.get(f"/api/periods/{period_id}/summary").json()
        assert summary["planned_expense"] == 50000
        assert summary["actual_expense"] == 12000
        assert summary["remaining_expense"] == 38000

        rows = auth_client.get(f"/api/periods/{period_id}/comparison").json()["rows"]
        assert len(rows) == 1
        assert rows[0]["remaining_amount"] == 38000
        assert rows[0]["percentage_used"] == pytest.approx(0.24)

    def test_put_twice_updates_the_same_plan(
        self, auth_client: TestClient, current: dict, categories: Dict[str, Category]
    ):
        url = f"/api/periods/{current['id']}/plans"
        body = {"category_id": categories["Rent"].id, "amount": 1800}
        first = auth_client.put(url, json=body).json()
        second = auth_client.put(url, json={**body, "amount": 1850}).json()

        assert first["id"] == second["id"]
        plans = auth_client.get(url).json()
        assert len(plans["plans"]) == 1
        assert plans["summary"]["planned_expense_cents"] == 185000

    def test_negative_amount_is_rejected(
        self, auth_client: TestClient, current: dict, categories: Dict[str, Category]
    ):
        response = auth_client.put(f"/api/periods/{current['id']}/plans", json={
            "category_id": categories["Rent"].id, "amount": -5,
        })

        assert response.status_code == 422
        assert response.json()["field"] == "amount"

    def test_transaction_update_and_closed_period(
        self, auth_client: TestClient, current: dict, categories: Dict[str, Category]
    ):
        period_id = current["id"]
        created = auth_client.post(f"/api/periods/{period_id}/transactions", json={
            "category_id": categories["Restaurant"].id, "amount": 45.5,
            "transaction_date": current["start_date"], "notes": "dinner",
        }).json()

        patched = auth_client.patch(f"/api/transactions/{created['id']}", json={"amount": 50})
        assert patched.status_code == 200
        assert patched.json()["amount_cents"] == 5000
        assert patched.json()["notes"] == "dinner"

        for field in ("transaction_date", "category_id"):
            cleared = auth_client.patch(f"/api/transactions/{created['id']}", json={field: None})
            assert cleared.status_code == 422
            assert cleared.json()["field"] == field

        assert auth_client.post(f"/api/periods/{period_id}/close").json()["status"] == "CLOSED"

        response = auth_client.post(f"/api/periods/{period_id}/transactions", json={
            "category_id": categories["Restaurant"].id, "amount": 10,
            "transaction_date": current["start_date"],
        })
        assert response.status_code == 422
        assert response.json()["error"] == "PERIOD_CLOSED"

        response = auth_client.delete(f"/api/transactions/{created['id']}")
        assert response.status_code == 422


class TestSectionsAndRollover:
    """Test suite for section routes, forward navigation and the copy."""

    def test_next_then_rollover(
        self, auth_client: TestClient, current: dict, categories: Dict[str, Category]
    ):
        period_id = current["id"]
        section = auth_client.post(f"/api/periods/{period_id}/sections", json={"name": "Essentials"})
        assert section.status_code == 201
        section_id = section.json()["id"]
        assigned = auth_client.post(f"/api/sections/{section_id}/categories", json={
            "category_id": categories["Groceries"].id,
        })
        assert assigned.status_code == 200
        auth_client.put(f"/api/periods/{period_id}/plans", json={
            "category_id": categories["Groceries"].id, "amount": 500,
        })

        nav = auth_client.post(f"/api/periods/{period_id}/next").json()
        assert nav["created"] is True
        assert nav["copy_available"] is True
        next_id = nav["period"]["id"]

        report = auth_client.post(f"/api/periods/{next_id}/rollover", json={"source_period_id": period_id})
        assert report.status_code == 200
        assert report.json()["state"] == "DONE"
        assert report.json()["plans_copied"] == 1

        sections = auth_client.get(f"/api/periods/{next_id}/sections").json()["sections"]
        assert [s["name"] for s in sections] == ["Essentials"]
        assert [m["category_name"] for m in sections[0]["categories"]] == ["Groceries"]

        back = auth_client.post(f"/api/periods/{next_id}/previous").json()
        assert back["period"]["id"] == period_id

    def test_rollover_into_itself_is_rejected(self, auth_client: TestClient, current: dict):
        response = auth_client.post(
            f"/api/periods/{current['id']}/rollover", json={"source_period_id": current["id"]},
        )
        assert response.status_code == 422

    def test_failed_save_returns_generic_message(
        self, auth_client: TestClient, db_session: Session, current: dict, monkeypatch
    ):
        next_id = auth_client.post(f"/api/periods/{current['id']}/next").json()["period"]["id"]

        def locked_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", locked_commit)
        response = auth_client.post(f"/api/periods/{next_id}/rollover", json={"source_period_id": current["id"]})

        assert response.status_code == 503
        assert response.json() == {"error": "STORE_ERROR", "message": STORE_ERROR_MESSAGE}
