"""
Section, plan, transaction and recurring-series routes.

Amounts arrive in major units (``amount``: 12.5) and are converted to
integer cents here, at the boundary; responses carry both forms.

Routes:
    GET    /api/periods/{id}/sections                 - Sections with their ordered categories
    POST   /api/periods/{id}/sections                 - Create a section
    PATCH  /api/sections/{id}                         - Rename a section
    DELETE /api/sections/{id}                         - Delete a section and its mappings
    POST   /api/periods/{id}/sections/reorder         - Reorder sections
    POST   /api/sections/{id}/categories              - Assign a category to a section
    POST   /api/sections/{id}/categories/move         - Move a category to another section
    POST   /api/sections/{id}/categories/reorder      - Reorder categories within a section
    GET    /api/periods/{id}/plans                    - Plans of a period
    PUT    /api/periods/{id}/plans                    - Create or update the plan of a category
    DELETE /api/plans/{id}                            - Delete a plan
    GET    /api/periods/{id}/transactions             - Transactions of a period
    POST   /api/periods/{id}/transactions             - Add a transaction
    PATCH  /api/transactions/{id}                     - Partially update a transaction
    DELETE /api/transactions/{id}                     - Delete a transaction
    GET    /api/budgets/{id}/recurring                - Recurring series
    POST   /api/budgets/{id}/recurring                - Create a recurring series
    POST   /api/budgets/{id}/recurring/run            - Materialize due occurrences
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from moneyplan.db import get_db
from moneyplan.exceptions import NotFoundError
from moneyplan.logging_config import get_logger
from moneyplan.models import EXPENSE
from moneyplan.models.budget import Plan, Transaction
from moneyplan.routes.common import (
    NOT_AUTHENTICATED, get_owner_id, owned_budget, owned_period, owned_section,
    section_json, mapping_json, plan_json, transaction_json, series_json,
)
from moneyplan.services.planning import PlanningService
from moneyplan.services.recurring import RecurringService
from moneyplan.services.sections import SectionService
from moneyplan.services.transactions import TransactionService
from moneyplan.utils.money import to_cents

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


class SectionRequest(BaseModel):
    name: str


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class AssignRequest(BaseModel):
    category_id: str
    position: Optional[int] = None


class MoveRequest(BaseModel):
    category_id: str
    to_section_id: str
    position: int = 0


class PlanRequest(BaseModel):
    """Request model for setting a category's planned amount."""
    category_id: str
    type: str = EXPENSE
    amount: float
    notes: Optional[str] = None


class TransactionRequest(BaseModel):
    """Request model for adding a transaction."""
    category_id: str
    type: str = EXPENSE
    amount: float
    transaction_date: date
    notes: Optional[str] = None
    recurring_series_id: Optional[str] = None
    liability_id: Optional[str] = None


class TransactionUpdateRequest(BaseModel):
    """Request model for a partial transaction update; omitted fields are unchanged."""
    category_id: Optional[str] = None
    type: Optional[str] = None
    amount: Optional[float] = None
    transaction_date: Optional[date] = None
    notes: Optional[str] = None


class RecurringRequest(BaseModel):
    category_id: str
    type: str = EXPENSE
    amount: float
    frequency: str = "MONTHLY"
    interval: int = 1
    next_run_date: Optional[date] = None
    notes: Optional[str] = None


# ============================================================================
# SECTIONS
# ============================================================================

@router.get("/periods/{period_id}/sections")
def list_sections(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    service = SectionService(db)
    return JSONResponse({"sections": [
        section_json(s, service.mappings_in_section(s.id)) for s in service.list_sections(period_id)
    ]})


@router.post("/periods/{period_id}/sections")
def create_section(period_id: str, request: Request, data: SectionRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    section = SectionService(db).create_section(period_id, data.name)
    return JSONResponse(section_json(section, []), status_code=201)


@router.patch("/sections/{section_id}")
def rename_section(section_id: str, request: Request, data: SectionRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_section(db, owner_id, section_id)
    service = SectionService(db)
    section = service.rename_section(section_id, data.name)
    return JSONResponse(section_json(section, service.mappings_in_section(section.id)))


@router.delete("/sections/{section_id}")
def delete_section(section_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_section(db, owner_id, section_id)
    SectionService(db).delete_section(section_id)
    return JSONResponse({"success": True})


@router.post("/periods/{period_id}/sections/reorder")
def reorder_sections(period_id: str, request: Request, data: ReorderRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    sections = SectionService(db).reorder_sections(period_id, data.from_index, data.to_index)
    return JSONResponse({"sections": [{"id": s.id, "name": s.name, "display_order": s.display_order}
                                      for s in sections]})


@router.post("/sections/{section_id}/categories")
def assign_category(section_id: str, request: Request, data: AssignRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_section(db, owner_id, section_id)
    mapping = SectionService(db).assign(data.category_id, section_id, data.position)
    return JSONResponse(mapping_json(mapping))


@router.post("/sections/{section_id}/categories/move")
def move_category(section_id: str, request: Request, data: MoveRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_section(db, owner_id, section_id)
    owned_section(db, owner_id, data.to_section_id)
    mapping = SectionService(db).move(data.category_id, section_id, data.to_section_id, data.position)
    return JSONResponse(mapping_json(mapping))


@router.post("/sections/{section_id}/categories/reorder")
def reorder_categories(section_id: str, request: Request, data: ReorderRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_section(db, owner_id, section_id)
    mappings = SectionService(db).reorder(section_id, data.from_index, data.to_index)
    return JSONResponse({"categories": [mapping_json(m) for m in mappings]})


# ============================================================================
# PLANS
# ============================================================================

@router.get("/periods/{period_id}/plans")
def list_plans(period_id: str, request: Request, db: Session = Depends(get_db), type: Optional[str] = Query(None)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    service = PlanningService(db)
    plans = service.get_plans(period_id, entry_type=type)
    return JSONResponse({
        "plans": [plan_json(p) for p in plans],
        "summary": service.planning_summary(period_id),
    })


@router.put("/periods/{period_id}/plans")
def save_plan(period_id: str, request: Request, data: PlanRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    plan = PlanningService(db).create_or_update_plan(
        period_id, data.category_id, data.type, to_cents(data.amount), data.notes,
    )
    return JSONResponse(plan_json(plan))


@router.delete("/plans/{plan_id}")
def delete_plan(plan_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    plan = db.get(Plan, plan_id)
    if plan is None:
        raise NotFoundError("Plan", plan_id)
    owned_period(db, owner_id, plan.period_id)
    PlanningService(db).delete_plan(plan_id)
    return JSONResponse({"success": True})


# ============================================================================
# TRANSACTIONS
# ============================================================================

@router.get("/periods/{period_id}/transactions")
def list_transactions(
    period_id: str,
    request: Request,
    db: Session = Depends(get_db),
    category_id: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    transactions = TransactionService(db).get_transactions(period_id, category_id=category_id, entry_type=type)
    return JSONResponse({"transactions": [transaction_json(t) for t in transactions]})


@router.post("/periods/{period_id}/transactions")
def add_transaction(period_id: str, request: Request, data: TransactionRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    period = owned_period(db, owner_id, period_id)
    transaction = TransactionService(db).create_transaction(
        period.budget_id, period.id, data.category_id, data.type, to_cents(data.amount), data.transaction_date,
        notes=data.notes, recurring_series_id=data.recurring_series_id, liability_id=data.liability_id,
    )
    return JSONResponse(transaction_json(transaction), status_code=201)


@router.patch("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str, request: Request, data: TransactionUpdateRequest, db: Session = Depends(get_db),
):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    existing = db.get(Transaction, transaction_id)
    if existing is None:
        raise NotFoundError("Transaction", transaction_id)
    owned_period(db, owner_id, existing.period_id)

    changes = data.model_dump(exclude_unset=True)
    if "amount" in changes:
        changes["amount_cents"] = to_cents(changes.pop("amount"))
    if "type" in changes:
        changes["entry_type"] = changes.pop("type")
    transaction = TransactionService(db).update_transaction(transaction_id, **changes)
    return JSONResponse(transaction_json(transaction))


@router.delete("/transactions/{transaction_id}")
def delete_transaction(transaction_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    existing = db.get(Transaction, transaction_id)
    if existing is None:
        raise NotFoundError("Transaction", transaction_id)
    owned_period(db, owner_id, existing.period_id)
    TransactionService(db).delete_transaction(transaction_id)
    return JSONResponse({"success": True})


@router.get("/budgets/{budget_id}/transactions/search")
def search_transactions(
    budget_id: str,
    request: Request,
    db: Session = Depends(get_db),
    q: str = Query(""),
    limit: int = Query(50, ge=1, le=200),
):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    transactions = TransactionService(db).search_transactions(budget_id, q, limit=limit)
    return JSONResponse({"transactions": [transaction_json(t) for t in transactions]})


# ============================================================================
# RECURRING
# ============================================================================

@router.get("/budgets/{budget_id}/recurring")
def list_recurring(budget_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    return JSONResponse({"series": [series_json(s) for s in RecurringService(db).list_series(budget_id)]})


@router.post("/budgets/{budget_id}/recurring")
def create_recurring(budget_id: str, request: Request, data: RecurringRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    series = RecurringService(db).create_series(
        budget_id, data.category_id, data.type, to_cents(data.amount),
        frequency=data.frequency, interval=data.interval, next_run_date=data.next_run_date, notes=data.notes,
    )
    return JSONResponse(series_json(series), status_code=201)


@router.post("/budgets/{budget_id}/recurring/run")
def run_recurring(budget_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    created = RecurringService(db).materialize_due(budget_id)
    return JSONResponse({"created": [transaction_json(t) for t in created]})
