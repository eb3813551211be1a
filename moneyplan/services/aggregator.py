"""
Derived budget views: period summary, planned-vs-actual comparison and
spending trends.

Everything here is recomputed from the current plans and transactions.
``SummaryCache`` only saves repeat work for the presentation layer and
drops a period's entry whenever a plan, transaction or section event for
that period is published.
"""

import threading
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from moneyplan.config import TREND_PERIODS
from moneyplan.exceptions import ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models import EXPENSE
from moneyplan.models.budget import Budget, Period, Plan, Transaction
from moneyplan.models.category import Category
from moneyplan.services.base import BaseService
from moneyplan.services.events import (
    Event, EventBus, BUDGETS, CURRENT_PERIOD, PLANS, SECTIONS, SUMMARY, TRANSACTIONS,
)
from moneyplan.services.periods import period_bounds
from moneyplan.services.planning import totals_by_type

logger = get_logger(__name__)

OVER_BUDGET = "over_budget"
UNDER_USED = "under_used"
NEAR_BUDGET = "near_budget"
ON_TRACK = "on_track"


@dataclass
class PlanningComparison:
    category_id: str
    category_name: str
    type: str
    planned_amount: int
    actual_amount: int
    remaining_amount: int
    percentage_used: float
    is_over_budget: bool
    transaction_count: int
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


def comparison_status(entry_type: str, planned: int, actual: int) -> str:
    if entry_type == EXPENSE and actual > planned:
        return OVER_BUDGET
    if planned <= 0:
        return ON_TRACK
    used = actual / planned
    if used >= 0.9:
        return NEAR_BUDGET
    if used < 0.5:
        return UNDER_USED
    return ON_TRACK


class SummaryCache:
    """Per-period summary cache kept fresh by bus events."""

    def __init__(self, bus: EventBus):
        self.bus = bus
        self._lock = threading.Lock()
        self._entries: Dict[str, dict] = {}
        for topic in (PLANS, TRANSACTIONS, SECTIONS):
            bus.subscribe(topic, self._on_change)
        for topic in (BUDGETS, CURRENT_PERIOD):
            bus.subscribe(topic, self._on_structure_change)

    def get(self, period_id: str) -> Optional[dict]:
        with self._lock:
            return self._entries.get(period_id)

    def put(self, period_id: str, summary: dict) -> None:
        with self._lock:
            self._entries[period_id] = summary

    def evict(self, period_id: Optional[str] = None) -> None:
        with self._lock:
            if period_id is None:
                self._entries.clear()
            else:
                self._entries.pop(period_id, None)

    def _on_change(self, event: Event) -> None:
        period_id = event.payload.get("period_id")
        self.evict(period_id)
        logger.debug(f"Summary cache evicted for {period_id or 'all periods'} on {event.name}")
        self.bus.publish(SUMMARY, {
            "budget_id": event.payload.get("budget_id"),
            "period_id": period_id,
            "action": "invalidated",
            "id": period_id,
        })

    def _on_structure_change(self, event: Event) -> None:
        if event.payload.get("action") == "deleted":
            self.evict()


class BudgetAggregator(BaseService):

    def __init__(self, db: Session, cache: Optional[SummaryCache] = None, **collaborators):
        super().__init__(db, **collaborators)
        self.cache = cache

    def _period_records(self, period_id: str):
        plans = self.db.query(Plan).filter(Plan.period_id == period_id).all()
        transactions = self.db.query(Transaction).filter(Transaction.period_id == period_id).all()
        return plans, transactions

    def summary(self, budget_id: str, period_id: str) -> dict:
        """Planned and actual totals of a period, split by type, in cents."""
        budget = self._get(Budget, budget_id, "Budget")
        period = self._get(Period, period_id, "Period")
        if period.budget_id != budget.id:
            raise ValidationError("period_id", f"Period {period.id} does not belong to budget {budget.id}")
        if self.cache is not None:
            cached = self.cache.get(period.id)
            if cached is not None:
                return cached

        plans, transactions = self._period_records(period.id)
        planned = totals_by_type(plans)
        actual = totals_by_type(transactions)
        result = {
            "budget_id": budget.id,
            "period_id": period.id,
            "currency_code": budget.currency_code,
            "planned_income": planned["income"],
            "planned_expense": planned["expense"],
            "actual_income": actual["income"],
            "actual_expense": actual["expense"],
            "remaining_expense": planned["expense"] - actual["expense"],
            "net_planned": planned["income"] - planned["expense"],
            "net_actual": actual["income"] - actual["expense"],
        }
        if self.cache is not None:
            self.cache.put(period.id, result)
        return result

    def comparison(self, period_id: str) -> List[PlanningComparison]:
        """
        One row per category that has a plan, transactions, or both.

        The row's type comes from the plan when there is one, otherwise from
        the category's transactions. Actuals only count transactions of the
        row's type. ``percentage_used`` is a fraction (0.24 for 24%) and is
        0 when nothing was planned.
        """
        period = self._get(Period, period_id, "Period")
        plans, transactions = self._period_records(period.id)

        plan_by_category = {plan.category_id: plan for plan in plans}
        txns_by_category: Dict[str, List[Transaction]] = {}
        for transaction in transactions:
            txns_by_category.setdefault(transaction.category_id, []).append(transaction)

        rows = []
        for category_id in set(plan_by_category) | set(txns_by_category):
            plan = plan_by_category.get(category_id)
            category_txns = txns_by_category.get(category_id, [])
            entry_type = plan.type if plan is not None else category_txns[0].type
            matching = [t for t in category_txns if t.type == entry_type]

            planned = plan.amount_cents if plan is not None else 0
            actual = sum(t.amount_cents for t in matching)
            category = self.db.get(Category, category_id)
            rows.append(PlanningComparison(
                category_id=category_id,
                category_name=category.name if category is not None else "Unknown",
                type=entry_type,
                planned_amount=planned,
                actual_amount=actual,
                remaining_amount=planned - actual,
                percentage_used=actual / planned if planned > 0 else 0.0,
                is_over_budget=entry_type == EXPENSE and actual > planned,
                transaction_count=len(matching),
                status=comparison_status(entry_type, planned, actual),
            ))
        rows.sort(key=lambda row: (row.category_name.lower(), row.category_id))
        return rows

    def spending_trends(self, budget_id: str, last: int = TREND_PERIODS) -> List[dict]:
        """Planned vs actual per period for the most recent ``last`` periods, oldest first."""
        self._get(Budget, budget_id, "Budget")
        periods = self.db.query(Period).filter(Period.budget_id == budget_id).all()
        periods.sort(key=lambda p: period_bounds(p)[0])

        trends = []
        for period in periods[-last:] if last > 0 else []:
            plans, transactions = self._period_records(period.id)
            planned = totals_by_type(plans)
            actual = totals_by_type(transactions)
            trends.append({
                "period_id": period.id,
                "name": period.name,
                "start_date": period.start_date,
                "planned_income": planned["income"],
                "planned_expense": planned["expense"],
                "actual_income": actual["income"],
                "actual_expense": actual["expense"],
            })
        return trends
