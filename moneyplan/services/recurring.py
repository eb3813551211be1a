"""
Recurring transaction series and liabilities.

A series is a template that materializes transactions on a schedule.
``materialize_due`` creates one transaction per due occurrence and moves
``next_run_date`` strictly forward each time. An occurrence whose date
falls in no OPEN period is left pending; the series waits there until
such a period exists.
"""

from datetime import date, timedelta
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from moneyplan.exceptions import ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import (
    Budget, Liability, RecurringTransactionSeries, Transaction, FREQUENCIES, OPEN, CLOSED,
)
from moneyplan.models.category import Category
from moneyplan.services.activity import amount_metadata
from moneyplan.services.base import BaseService, require_entry_type, require_text
from moneyplan.services.events import TRANSACTIONS
from moneyplan.services.periods import PeriodService
from moneyplan.services.transactions import TransactionService
from moneyplan.utils.dates import add_months, parse_stored_date
from moneyplan.utils.money import validate_cents

logger = get_logger(__name__)

# Guards against a runaway loop when a series is far behind
MAX_OCCURRENCES_PER_RUN = 366


def advance_run_date(day: date, frequency: str, interval: int) -> date:
    """Next occurrence after ``day``; always strictly later."""
    if frequency == "DAILY":
        return day + timedelta(days=interval)
    if frequency == "WEEKLY":
        return day + timedelta(weeks=interval)
    if frequency == "MONTHLY":
        return add_months(day, interval)
    if frequency == "YEARLY":
        return add_months(day, 12 * interval)
    raise ValidationError("frequency", f"frequency must be one of {', '.join(FREQUENCIES)}")


class RecurringService(BaseService):

    def __init__(self, db: Session, today: Optional[Callable[[], date]] = None, **collaborators):
        super().__init__(db, **collaborators)
        self.today = today or date.today

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def get_series(self, series_id: str) -> RecurringTransactionSeries:
        return self._get(RecurringTransactionSeries, series_id, "RecurringSeries")

    def list_series(self, budget_id: str) -> List[RecurringTransactionSeries]:
        return (
            self.db.query(RecurringTransactionSeries)
            .filter(RecurringTransactionSeries.budget_id == budget_id)
            .order_by(RecurringTransactionSeries.next_run_date)
            .all()
        )

    def create_series(
        self,
        budget_id: str,
        category_id: str,
        entry_type: str,
        amount_cents: int,
        frequency: str = "MONTHLY",
        interval: int = 1,
        next_run_date=None,
        notes: Optional[str] = None,
    ) -> RecurringTransactionSeries:
        require_entry_type(entry_type)
        validate_cents(amount_cents)
        if frequency not in FREQUENCIES:
            raise ValidationError("frequency", f"frequency must be one of {', '.join(FREQUENCIES)}")
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            raise ValidationError("interval", "interval must be a whole number of at least 1")
        run_date = parse_stored_date(next_run_date) if next_run_date is not None else self.today()
        budget = self._get(Budget, budget_id, "Budget")
        self._get(Category, category_id, "Category")

        with self.locks.writing(budget.id):
            series = RecurringTransactionSeries(
                budget_id=budget.id,
                category_id=category_id,
                type=entry_type,
                amount_cents=amount_cents,
                frequency=frequency,
                interval=interval,
                next_run_date=run_date,
                is_paused=False,
                notes=notes,
            )
            self.db.add(series)
            self._save("create recurring series")
        logger.info(f"Recurring series created: {series.id} {frequency}/{interval} from {run_date}")
        return series

    def _set_paused(self, series_id: str, paused: bool) -> RecurringTransactionSeries:
        series = self.get_series(series_id)
        with self.locks.writing(series.budget_id):
            series.is_paused = paused
            self._save("pause recurring series" if paused else "resume recurring series")
        logger.info(f"Recurring series {'paused' if paused else 'resumed'}: {series.id}")
        return series

    def pause(self, series_id: str) -> RecurringTransactionSeries:
        return self._set_paused(series_id, True)

    def resume(self, series_id: str) -> RecurringTransactionSeries:
        return self._set_paused(series_id, False)

    def delete_series(self, series_id: str) -> None:
        series = self.get_series(series_id)
        with self.locks.writing(series.budget_id):
            self.db.query(Transaction).filter(Transaction.recurring_series_id == series.id).update(
                {Transaction.recurring_series_id: None}, synchronize_session=False
            )
            self.db.delete(series)
            self._save("delete recurring series")
        logger.info(f"Recurring series deleted: {series_id}")

    def materialize_due(self, budget_id: str, today: Optional[date] = None) -> List[Transaction]:
        """
        Create the transactions of every unpaused series that has come due.

        Returns:
            The transactions created, in creation order
        """
        today = today or self.today()
        budget = self._get(Budget, budget_id, "Budget")
        periods = PeriodService(self.db, today=self.today, **self._collaborators())
        ledger = TransactionService(self.db, **self._collaborators())

        created: List[Transaction] = []
        with self.locks.writing(budget.id):
            for series in self.list_series(budget.id):
                if series.is_paused:
                    continue
                occurrences = 0
                while series.next_run_date <= today and occurrences < MAX_OCCURRENCES_PER_RUN:
                    period = periods.find_period_containing(budget.id, series.next_run_date, status=OPEN)
                    if period is None:
                        logger.debug(f"Series {series.id} waiting: no open period covers {series.next_run_date}")
                        break
                    created.append(ledger._add_transaction(
                        budget.id, period.id, series.category_id, series.type, series.amount_cents,
                        series.next_run_date, series.notes, recurring_series_id=series.id,
                    ))
                    series.next_run_date = advance_run_date(series.next_run_date, series.frequency, series.interval)
                    occurrences += 1
            if created:
                self._save("materialize recurring transactions")

        if created:
            logger.info(f"Materialized {len(created)} recurring transactions for budget {budget.id}")
            for transaction in created:
                self.activity.record(
                    "transaction_added",
                    "Recurring transaction",
                    description=transaction.notes,
                    metadata=amount_metadata(transaction.amount_cents),
                )
            for period_id in sorted({t.period_id for t in created}):
                self._publish(TRANSACTIONS, budget_id=budget.id, period_id=period_id, action="created", id=period_id)
        return created

    # ------------------------------------------------------------------
    # Liabilities
    # ------------------------------------------------------------------

    def create_liability(self, budget_id: str, name: str, amount_cents: int = 0) -> Liability:
        validate_cents(amount_cents)
        budget = self._get(Budget, budget_id, "Budget")
        with self.locks.writing(budget.id):
            liability = Liability(budget_id=budget.id, name=require_text(name, "name"),
                                  amount_cents=amount_cents, status=OPEN)
            self.db.add(liability)
            self._save("create liability")
        logger.info(f"Liability created: {liability.id} ({liability.name})")
        return liability

    def list_liabilities(self, budget_id: str, status: Optional[str] = None) -> List[Liability]:
        query = self.db.query(Liability).filter(Liability.budget_id == budget_id)
        if status is not None:
            query = query.filter(Liability.status == status)
        return query.order_by(Liability.created_at).all()

    def settle_liability(self, liability_id: str) -> Liability:
        liability = self._get(Liability, liability_id, "Liability")
        with self.locks.writing(liability.budget_id):
            liability.status = CLOSED
            self._save("settle liability")
        logger.info(f"Liability settled: {liability.id}")
        return liability
