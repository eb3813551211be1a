"""
Actual transactions recorded against categories in a period.

A transaction's date must fall inside its period. Transactions of a
CLOSED period are history: creating, editing or deleting them raises
``PeriodClosedError``.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func

from moneyplan.exceptions import PeriodClosedError, ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models import EXPENSE
from moneyplan.models.budget import Budget, Period, Transaction, CLOSED, Liability, RecurringTransactionSeries
from moneyplan.models.category import Category
from moneyplan.services.activity import amount_metadata
from moneyplan.services.base import BaseService, require_entry_type
from moneyplan.services.events import TRANSACTIONS
from moneyplan.services.periods import period_bounds
from moneyplan.utils.money import validate_cents
from moneyplan.utils.dates import parse_stored_date, format_date

logger = get_logger(__name__)

_UNSET = object()


def _require_open(period: Period) -> None:
    if period.status == CLOSED:
        raise PeriodClosedError(period.id)


def _require_within(period: Period, day: date) -> None:
    start, end = period_bounds(period)
    if not start <= day <= end:
        raise ValidationError(
            "transaction_date",
            f"transaction_date {format_date(day)} is outside period {period.start_date}..{period.end_date}",
        )


class TransactionService(BaseService):

    def get_transaction(self, transaction_id: str) -> Transaction:
        return self._get(Transaction, transaction_id, "Transaction")

    def get_transactions(
        self,
        period_id: str,
        category_id: Optional[str] = None,
        entry_type: Optional[str] = None,
    ) -> List[Transaction]:
        """Transactions of a period, newest date first."""
        query = self.db.query(Transaction).filter(Transaction.period_id == period_id)
        if category_id is not None:
            query = query.filter(Transaction.category_id == category_id)
        if entry_type is not None:
            query = query.filter(Transaction.type == require_entry_type(entry_type))
        return query.order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc()).all()

    def search_transactions(self, budget_id: str, query: str, limit: int = 50) -> List[Transaction]:
        """Match notes or category name, case-insensitive."""
        q = (
            self.db.query(Transaction)
            .join(Category, Transaction.category_id == Category.id)
            .filter(Transaction.budget_id == budget_id)
        )
        if query:
            pattern = f"%{query}%"
            q = q.filter((Transaction.notes.ilike(pattern)) | (Category.name.ilike(pattern)))
        return q.order_by(Transaction.transaction_date.desc()).limit(limit).all()

    def spending_by_category(self, period_id: str) -> Dict[str, int]:
        """Expense cents per category id for a period."""
        rows = (
            self.db.query(Transaction.category_id, func.sum(Transaction.amount_cents))
            .filter(Transaction.period_id == period_id, Transaction.type == EXPENSE)
            .group_by(Transaction.category_id)
            .all()
        )
        return {category_id: int(total or 0) for category_id, total in rows}

    def create_transaction(
        self,
        budget_id: str,
        period_id: str,
        category_id: str,
        entry_type: str,
        amount_cents: int,
        transaction_date,
        notes: Optional[str] = None,
        recurring_series_id: Optional[str] = None,
        liability_id: Optional[str] = None,
    ) -> Transaction:
        require_entry_type(entry_type)
        validate_cents(amount_cents)
        day = parse_stored_date(transaction_date)
        budget = self._get(Budget, budget_id, "Budget")
        period = self._get(Period, period_id, "Period")
        if period.budget_id != budget.id:
            raise ValidationError("period_id", f"Period {period.id} does not belong to budget {budget.id}")
        category = self._get(Category, category_id, "Category")
        if recurring_series_id is not None:
            self._get(RecurringTransactionSeries, recurring_series_id, "RecurringSeries")
        if liability_id is not None:
            self._get(Liability, liability_id, "Liability")
        _require_open(period)
        _require_within(period, day)

        with self.locks.writing(budget.id):
            transaction = self._add_transaction(
                budget.id, period.id, category.id, entry_type, amount_cents, day, notes,
                recurring_series_id=recurring_series_id, liability_id=liability_id,
            )
            self._save("add transaction")
        logger.info(f"Transaction added: {transaction.id} {category.name} {entry_type} {amount_cents} cents on {day}")

        self.activity.record(
            "transaction_added",
            f"{'Received' if entry_type != EXPENSE else 'Spent'} on {category.name}",
            description=notes,
            metadata=amount_metadata(amount_cents),
        )
        self._publish(TRANSACTIONS, budget_id=budget.id, period_id=period.id, action="created", id=transaction.id)
        return transaction

    def _add_transaction(self, budget_id, period_id, category_id, entry_type, amount_cents, day, notes,
                         recurring_series_id=None, liability_id=None) -> Transaction:
        transaction = Transaction(
            budget_id=budget_id,
            period_id=period_id,
            category_id=category_id,
            type=entry_type,
            amount_cents=amount_cents,
            transaction_date=day,
            notes=notes,
            recurring_series_id=recurring_series_id,
            liability_id=liability_id,
        )
        self.db.add(transaction)
        self._flush("add transaction")
        return transaction

    def update_transaction(
        self,
        transaction_id: str,
        category_id=_UNSET,
        entry_type=_UNSET,
        amount_cents=_UNSET,
        transaction_date=_UNSET,
        notes=_UNSET,
    ) -> Transaction:
        """Partial update; arguments left out keep their current value."""
        transaction = self.get_transaction(transaction_id)
        period = transaction.period
        _require_open(period)

        # Validate everything before touching the record
        for field, value in (("category_id", category_id), ("transaction_date", transaction_date)):
            if value is None:
                raise ValidationError(field, f"{field} cannot be cleared")
        if category_id is not _UNSET:
            self._get(Category, category_id, "Category")
        if entry_type is not _UNSET:
            require_entry_type(entry_type)
        if amount_cents is not _UNSET:
            validate_cents(amount_cents)
        if transaction_date is not _UNSET:
            transaction_date = parse_stored_date(transaction_date)
            _require_within(period, transaction_date)

        with self.locks.writing(transaction.budget_id):
            if category_id is not _UNSET:
                transaction.category_id = category_id
            if entry_type is not _UNSET:
                transaction.type = entry_type
            if amount_cents is not _UNSET:
                transaction.amount_cents = amount_cents
            if transaction_date is not _UNSET:
                transaction.transaction_date = transaction_date
            if notes is not _UNSET:
                transaction.notes = notes
            self._save("update transaction")
        logger.info(f"Transaction updated: {transaction.id}")

        category_name = transaction.category.name if transaction.category else transaction.category_id
        self.activity.record(
            "transaction_updated",
            f"Updated transaction for {category_name}",
            metadata=amount_metadata(transaction.amount_cents),
        )
        self._publish(TRANSACTIONS, budget_id=transaction.budget_id, period_id=period.id,
                      action="updated", id=transaction.id)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        transaction = self.get_transaction(transaction_id)
        period = transaction.period
        _require_open(period)
        budget_id = transaction.budget_id
        amount_cents = transaction.amount_cents
        category_name = transaction.category.name if transaction.category else transaction.category_id

        with self.locks.writing(budget_id):
            self.db.delete(transaction)
            self._save("delete transaction")
        logger.info(f"Transaction deleted: {transaction_id}")

        self.activity.record(
            "transaction_deleted",
            f"Deleted transaction for {category_name}",
            metadata=amount_metadata(amount_cents),
        )
        self._publish(TRANSACTIONS, budget_id=budget_id, period_id=period.id, action="deleted", id=transaction_id)
