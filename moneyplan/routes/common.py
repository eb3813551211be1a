"""
Helpers shared by the API routers: owner lookup from the session cookie,
ownership checks and JSON serialization of the budget models.
"""

from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from moneyplan.exceptions import NotFoundError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import (
    Budget, Period, Section, CategoryMapping, Plan, Transaction, RecurringTransactionSeries, Liability,
)
from moneyplan.models.category import Category, HeadCategory
from moneyplan.utils.money import from_cents

logger = get_logger(__name__)

NOT_AUTHENTICATED = {"error": "Not authenticated"}


def get_owner_id(request: Request) -> Optional[str]:
    """Owner id from the ``username`` cookie; identity itself is provisioned elsewhere."""
    username = request.cookies.get("username")
    if not username:
        logger.debug("No username cookie found in request")
        return None
    return username


def owned_budget(db: Session, owner_id: str, budget_id: str) -> Budget:
    budget = db.get(Budget, budget_id)
    if budget is None or budget.owner_id != owner_id:
        raise NotFoundError("Budget", budget_id)
    return budget


def owned_period(db: Session, owner_id: str, period_id: str) -> Period:
    period = db.get(Period, period_id)
    if period is None or period.budget.owner_id != owner_id:
        raise NotFoundError("Period", period_id)
    return period


def owned_section(db: Session, owner_id: str, section_id: str) -> Section:
    section = db.get(Section, section_id)
    if section is None or section.period.budget.owner_id != owner_id:
        raise NotFoundError("Section", section_id)
    return section


# ============================================================================
# SERIALIZERS
# ============================================================================

def budget_json(budget: Budget) -> dict:
    return {
        "id": budget.id,
        "name": budget.name,
        "icon": budget.icon,
        "color": budget.color,
        "currency_code": budget.currency_code,
        "created_at": budget.created_at.isoformat() if budget.created_at else None,
    }


def period_json(period: Period) -> dict:
    return {
        "id": period.id,
        "budget_id": period.budget_id,
        "period_type": period.period_type,
        "name": period.name,
        "start_date": period.start_date,
        "end_date": period.end_date,
        "status": period.status,
        "sequence": period.sequence,
    }


def mapping_json(mapping: CategoryMapping) -> dict:
    return {
        "id": mapping.id,
        "section_id": mapping.section_id,
        "category_id": mapping.category_id,
        "category_name": mapping.category.name if mapping.category else None,
        "display_order": mapping.display_order,
    }


def section_json(section: Section, mappings=None) -> dict:
    mappings = section.mappings if mappings is None else mappings
    return {
        "id": section.id,
        "period_id": section.period_id,
        "name": section.name,
        "display_order": section.display_order,
        "categories": [mapping_json(m) for m in mappings],
    }


def plan_json(plan: Plan) -> dict:
    return {
        "id": plan.id,
        "period_id": plan.period_id,
        "category_id": plan.category_id,
        "category_name": plan.category.name if plan.category else None,
        "type": plan.type,
        "amount_cents": plan.amount_cents,
        "amount": from_cents(plan.amount_cents),
        "notes": plan.notes,
        "updated_at": plan.updated_at.isoformat() if plan.updated_at else None,
    }


def transaction_json(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "budget_id": transaction.budget_id,
        "period_id": transaction.period_id,
        "category_id": transaction.category_id,
        "category_name": transaction.category.name if transaction.category else None,
        "type": transaction.type,
        "amount_cents": transaction.amount_cents,
        "amount": from_cents(transaction.amount_cents),
        "date": transaction.transaction_date.isoformat(),
        "notes": transaction.notes,
        "recurring_series_id": transaction.recurring_series_id,
        "liability_id": transaction.liability_id,
    }


def series_json(series: RecurringTransactionSeries) -> dict:
    return {
        "id": series.id,
        "budget_id": series.budget_id,
        "category_id": series.category_id,
        "type": series.type,
        "amount_cents": series.amount_cents,
        "frequency": series.frequency,
        "interval": series.interval,
        "next_run_date": series.next_run_date.isoformat(),
        "is_paused": bool(series.is_paused),
        "notes": series.notes,
    }


def liability_json(liability: Liability) -> dict:
    return {
        "id": liability.id,
        "budget_id": liability.budget_id,
        "name": liability.name,
        "amount_cents": liability.amount_cents,
        "status": liability.status,
    }


def category_json(category: Category) -> dict:
    return {
        "id": category.id,
        "head_category_id": category.head_category_id,
        "name": category.name,
        "icon": category.icon,
        "color": category.color,
        "display_order": category.display_order,
        "type": category.preferred_type,
        "is_archived": bool(category.is_archived),
    }


def head_category_json(head: HeadCategory) -> dict:
    return {
        "id": head.id,
        "name": head.name,
        "prefer_type": head.prefer_type,
        "icon": head.icon,
        "color": head.color,
        "display_order": head.display_order,
        "is_system": bool(head.is_system),
        "categories": [category_json(c) for c in head.categories if not c.is_archived],
    }
