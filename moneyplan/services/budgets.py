"""Budget CRUD and the default-budget guarantee for owners."""

from typing import List, Optional

from moneyplan.config import (
    DEFAULT_BUDGET_NAME, DEFAULT_BUDGET_ICON, DEFAULT_BUDGET_COLOR, DEFAULT_CURRENCY,
)
from moneyplan.exceptions import ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import Budget
from moneyplan.services.base import BaseService, require_text
from moneyplan.services.events import BUDGETS

logger = get_logger(__name__)


def _currency(code: str) -> str:
    code = require_text(code, "currency_code").upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError("currency_code", "currency_code must be a 3-letter ISO code")
    return code


class BudgetService(BaseService):

    def list_budgets(self, owner_id: str) -> List[Budget]:
        return (
            self.db.query(Budget)
            .filter(Budget.owner_id == owner_id)
            .order_by(Budget.created_at.desc())
            .all()
        )

    def get_budget(self, budget_id: str) -> Budget:
        return self._get(Budget, budget_id, "Budget")

    def create_budget(
        self,
        owner_id: str,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        currency_code: str = DEFAULT_CURRENCY,
    ) -> Budget:
        owner_id = require_text(owner_id, "owner_id")
        budget = Budget(
            owner_id=owner_id,
            name=require_text(name, "name"),
            icon=icon,
            color=color,
            currency_code=_currency(currency_code),
        )
        self.db.add(budget)
        self._save("create budget")
        logger.info(f"Budget created: {budget.id} ({budget.name}) for owner {owner_id}")

        self.activity.record("budget_created", f"Created budget {budget.name}")
        self._publish(BUDGETS, budget_id=budget.id, action="created", id=budget.id)
        return budget

    def ensure_default_budget(self, owner_id: str) -> List[Budget]:
        """Return the owner's budgets, creating the default one if there are none."""
        budgets = self.list_budgets(owner_id)
        if budgets:
            return budgets
        logger.info(f"Owner {owner_id} has no budget; creating default")
        self.create_budget(
            owner_id,
            DEFAULT_BUDGET_NAME,
            icon=DEFAULT_BUDGET_ICON,
            color=DEFAULT_BUDGET_COLOR,
        )
        return self.list_budgets(owner_id)

    def update_budget(
        self,
        budget_id: str,
        name: Optional[str] = None,
        icon: Optional[str] = None,
        color: Optional[str] = None,
        currency_code: Optional[str] = None,
    ) -> Budget:
        budget = self.get_budget(budget_id)
        with self.locks.writing(budget.id):
            if name is not None:
                budget.name = require_text(name, "name")
            if icon is not None:
                budget.icon = icon
            if color is not None:
                budget.color = color
            if currency_code is not None:
                budget.currency_code = _currency(currency_code)
            self._save("update budget")
        logger.info(f"Budget updated: {budget.id}")

        self.activity.record("budget_updated", f"Updated budget {budget.name}")
        self._publish(BUDGETS, budget_id=budget.id, action="updated", id=budget.id)
        return budget

    def delete_budget(self, budget_id: str) -> None:
        budget = self.get_budget(budget_id)
        name = budget.name
        with self.locks.writing(budget.id):
            self.db.delete(budget)
            self._save("delete budget")
        logger.info(f"Budget deleted: {budget_id}")

        self.activity.record("budget_deleted", f"Deleted budget {name}")
        self._publish(BUDGETS, budget_id=budget_id, action="deleted", id=budget_id)
