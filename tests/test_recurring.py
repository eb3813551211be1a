"""
Tests for recurring series materialization and liabilities.
"""

import pytest
from datetime import date
from typing import Dict

from sqlalchemy.orm import Session

from moneyplan.exceptions import ValidationError
from moneyplan.models import EXPENSE, INCOME
from moneyplan.models.budget import Period, Transaction, OPEN, CLOSED
from moneyplan.models.category import Category
from moneyplan.services.recurring import RecurringService, advance_run_date


@pytest.fixture
def recurring_service(db_session: Session, collaborators: dict, today) -> RecurringService:
    return RecurringService(db_session, today=today, **collaborators)


class TestAdvanceRunDate:

    def test_frequencies(self):
        assert advance_run_date(date(2026, 1, 1), "DAILY", 3) == date(2026, 1, 4)
        assert advance_run_date(date(2026, 1, 1), "WEEKLY", 2) == date(2026, 1, 15)
        assert advance_run_date(date(2026, 1, 31), "MONTHLY", 1) == date(2026, 2, 28)
        assert advance_run_date(date(2028, 2, 29), "YEARLY", 1) == date(2029, 2, 28)

    def test_unknown_frequency(self):
        with pytest.raises(ValidationError):
            advance_run_date(date(2026, 1, 1), "HOURLY", 1)


class TestSeries:
    """Test suite for series CRUD."""

    def test_create_defaults_to_today(
        self, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        series = recurring_service.create_series(january.budget_id, categories["Rent"].id, EXPENSE, 180000)

        assert series.frequency == "MONTHLY"
        assert series.interval == 1
        assert series.next_run_date == date(2026, 1, 15)
        assert series.is_paused is False

    @pytest.mark.parametrize("interval", [0, -1, 1.5, True])
    def test_rejects_bad_interval(
        self, interval, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        with pytest.raises(ValidationError) as exc_info:
            recurring_service.create_series(
                january.budget_id, categories["Rent"].id, EXPENSE, 100, interval=interval,
            )
        assert exc_info.value.field == "interval"

    def test_rejects_bad_frequency(
        self, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        with pytest.raises(ValidationError):
            recurring_service.create_series(january.budget_id, categories["Rent"].id, EXPENSE, 100, frequency="HOURLY")

    def test_delete_keeps_transactions(
        self,
        db_session: Session,
        january: Period,
        categories: Dict[str, Category],
        recurring_service: RecurringService,
    ):
        series = recurring_service.create_series(
            january.budget_id, categories["Rent"].id, EXPENSE, 180000, next_run_date="2026-01-01",
        )
        created = recurring_service.materialize_due(january.budget_id)

        recurring_service.delete_series(series.id)
        db_session.expire_all()

        transaction = db_session.get(Transaction, created[0].id)
        assert transaction is not None
        assert transaction.recurring_series_id is None


class TestMaterializeDue:
    """Test suite for turning due occurrences into transactions."""

    def test_weekly_catches_up_to_today(
        self,
        db_session: Session,
        january: Period,
        categories: Dict[str, Category],
        recurring_service: RecurringService,
    ):
        series = recurring_service.create_series(
            january.budget_id, categories["Groceries"].id, EXPENSE, 9000,
            frequency="WEEKLY", next_run_date=date(2026, 1, 1), notes="veg box",
        )

        created = recurring_service.materialize_due(january.budget_id)

        assert [t.transaction_date for t in created] == [date(2026, 1, 1), date(2026, 1, 8), date(2026, 1, 15)]
        assert all(t.recurring_series_id == series.id for t in created)
        assert all(t.period_id == january.id for t in created)
        assert series.next_run_date == date(2026, 1, 22)

    def test_second_run_creates_nothing_new(
        self, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        recurring_service.create_series(
            january.budget_id, categories["Salary"].id, INCOME, 600000, next_run_date=date(2026, 1, 10),
        )
        assert len(recurring_service.materialize_due(january.budget_id)) == 1
        assert recurring_service.materialize_due(january.budget_id) == []

    def test_waits_when_no_open_period_covers_the_date(
        self, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        series = recurring_service.create_series(
            january.budget_id, categories["Rent"].id, EXPENSE, 180000, next_run_date=date(2026, 1, 20),
        )

        created = recurring_service.materialize_due(january.budget_id, today=date(2026, 3, 1))

        assert [t.transaction_date for t in created] == [date(2026, 1, 20)]
        assert series.next_run_date == date(2026, 2, 20)

    def test_paused_series_is_skipped(
        self, january: Period, categories: Dict[str, Category], recurring_service: RecurringService
    ):
        series = recurring_service.create_series(
            january.budget_id, categories["Rent"].id, EXPENSE, 180000, next_run_date=date(2026, 1, 1),
        )
        recurring_service.pause(series.id)

        assert recurring_service.materialize_due(january.budget_id) == []

        recurring_service.resume(series.id)
        assert len(recurring_service.materialize_due(january.budget_id)) == 1


class TestLiabilities:

    def test_create_list_and_settle(self, january: Period, recurring_service: RecurringService):
        card = recurring_service.create_liability(january.budget_id, "Credit card", 250000)
        recurring_service.create_liability(january.budget_id, "Car loan")

        assert [l.name for l in recurring_service.list_liabilities(january.budget_id)] == ["Credit card", "Car loan"]

        settled = recurring_service.settle_liability(card.id)

        assert settled.status == CLOSED
        assert [l.name for l in recurring_service.list_liabilities(january.budget_id, status=OPEN)] == ["Car loan"]

    def test_blank_name_rejected(self, january: Period, recurring_service: RecurringService):
        with pytest.raises(ValidationError):
            recurring_service.create_liability(january.budget_id, "  ")
