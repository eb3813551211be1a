"""
Planned amounts per category and period.

There is at most one plan per (period, category). ``create_or_update_plan``
looks the pair up first and overwrites the existing plan instead of
inserting a second one; the store's unique constraint backs that up.
"""

from typing import Dict, Iterable, List, Optional

from moneyplan.exceptions import NotFoundError
from moneyplan.logging_config import get_logger
from moneyplan.models import INCOME, EXPENSE, utcnow
from moneyplan.models.budget import Period, Plan
from moneyplan.models.category import Category, HeadCategory
from moneyplan.services.activity import amount_metadata
from moneyplan.services.base import BaseService, require_entry_type
from moneyplan.services.events import PLANS
from moneyplan.utils.money import validate_cents

logger = get_logger(__name__)


def totals_by_type(records: Iterable) -> Dict[str, int]:
    """
    Sum ``amount_cents`` of plans or transactions, partitioned by ``type``.

    The direction always comes from the record's type field, never from
    the sign of the amount.

    Returns:
        {"income": cents, "expense": cents}
    """
    totals = {"income": 0, "expense": 0}
    for record in records:
        if record.type == INCOME:
            totals["income"] += record.amount_cents
        elif record.type == EXPENSE:
            totals["expense"] += record.amount_cents
    return totals


class PlanningService(BaseService):

    def get_plan(self, plan_id: str) -> Plan:
        return self._get(Plan, plan_id, "Plan")

    def find_plan(self, period_id: str, category_id: str) -> Optional[Plan]:
        return (
            self.db.query(Plan)
            .filter(Plan.period_id == period_id, Plan.category_id == category_id)
            .first()
        )

    def get_plans(self, period_id: str, entry_type: Optional[str] = None) -> List[Plan]:
        """Plans of a period ordered by head category, then category display order."""
        query = (
            self.db.query(Plan)
            .join(Category, Plan.category_id == Category.id)
            .join(HeadCategory, Category.head_category_id == HeadCategory.id)
            .filter(Plan.period_id == period_id)
        )
        if entry_type is not None:
            query = query.filter(Plan.type == require_entry_type(entry_type))
        return query.order_by(HeadCategory.display_order, Category.display_order, Category.name).all()

    def create_or_update_plan(
        self,
        period_id: str,
        category_id: str,
        entry_type: str,
        amount_cents: int,
        notes: Optional[str] = None,
    ) -> Plan:
        """
        Set the planned amount of a category for a period.

        An existing plan for the pair is overwritten (type, amount, notes)
        and its ``updated_at`` bumped; otherwise a new plan is created.
        """
        require_entry_type(entry_type)
        validate_cents(amount_cents)
        period = self._get(Period, period_id, "Period")
        category = self._get(Category, category_id, "Category")

        with self.locks.writing(period.budget_id):
            plan, created = self._upsert_plan(period.id, category.id, entry_type, amount_cents, notes)
            self._save("save plan")

        verb = "created" if created else "updated"
        logger.info(f"Plan {verb}: {plan.id} {category.name} {entry_type} {amount_cents} cents in {period.id}")
        self.activity.record(
            f"plan_{verb}",
            f"{'Planned' if created else 'Updated plan for'} {category.name}",
            metadata=amount_metadata(amount_cents),
        )
        self._publish(PLANS, budget_id=period.budget_id, period_id=period.id, action=verb, id=plan.id)
        return plan

    def _upsert_plan(self, period_id: str, category_id: str, entry_type: str, amount_cents: int, notes: Optional[str]):
        """Insert-or-overwrite without committing; returns (plan, created)."""
        plan = self.find_plan(period_id, category_id)
        created = plan is None
        if created:
            plan = Plan(period_id=period_id, category_id=category_id)
            self.db.add(plan)
        plan.type = entry_type
        plan.amount_cents = amount_cents
        plan.notes = notes
        if not created:
            # onupdate only fires when a column value actually changes
            plan.updated_at = utcnow()
        self._flush("save plan")
        return plan, created

    def delete_plan(self, plan_id: str) -> None:
        plan = self.get_plan(plan_id)
        period = plan.period
        category_name = plan.category.name if plan.category else plan.category_id
        amount_cents = plan.amount_cents
        with self.locks.writing(period.budget_id):
            self.db.delete(plan)
            self._save("delete plan")
        logger.info(f"Plan deleted: {plan_id}")

        self.activity.record(
            "plan_deleted",
            f"Removed plan for {category_name}",
            metadata=amount_metadata(amount_cents),
        )
        self._publish(PLANS, budget_id=period.budget_id, period_id=period.id, action="deleted", id=plan_id)

    def planning_summary(self, period_id: str) -> dict:
        """Planned totals of a period, with net and savings rate (percent of income)."""
        self._get(Period, period_id, "Period")
        plans = self.get_plans(period_id)
        totals = totals_by_type(plans)
        income, expense = totals["income"], totals["expense"]
        net = income - expense
        return {
            "period_id": period_id,
            "planned_income_cents": income,
            "planned_expense_cents": expense,
            "net_cents": net,
            "income_plan_count": sum(1 for p in plans if p.type == INCOME),
            "expense_plan_count": sum(1 for p in plans if p.type == EXPENSE),
            "savings_rate": round(net / income * 100, 2) if income > 0 else 0.0,
        }

    def copy_plans(self, source_period_id: str, target_period_id: str) -> int:
        """
        Copy plans whose category has no plan in the target yet.

        Existing target plans are left as they are. Returns how many plans
        were created.
        """
        source = self._get(Period, source_period_id, "Period")
        target = self._get(Period, target_period_id, "Period")
        if source.budget_id != target.budget_id:
            raise NotFoundError("Period", f"{target_period_id} in budget {source.budget_id}")

        copied = 0
        with self.locks.writing(target.budget_id):
            for plan in self.get_plans(source.id):
                if self.find_plan(target.id, plan.category_id) is not None:
                    continue
                self._upsert_plan(target.id, plan.category_id, plan.type, plan.amount_cents, plan.notes)
                copied += 1
            if copied:
                self._save("copy plans")
        logger.info(f"Copied {copied} plans from {source.id} to {target.id}")

        if copied:
            self._publish(PLANS, budget_id=target.budget_id, period_id=target.id, action="copied", id=target.id)
        return copied
