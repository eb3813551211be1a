"""
Budget, period and rollover routes.

Routes:
    GET    /api/budgets                          - List the owner's budgets (creates the default one)
    POST   /api/budgets                          - Create a budget
    PATCH  /api/budgets/{id}                     - Update a budget
    DELETE /api/budgets/{id}                     - Delete a budget and everything it owns
    GET    /api/budgets/{id}/periods             - Periods, latest first
    POST   /api/budgets/{id}/periods             - Create a period with explicit dates
    GET    /api/budgets/{id}/current-period      - Open period containing today (created if missing)
    GET    /api/budgets/{id}/trends              - Planned vs actual for recent periods
    POST   /api/periods/{id}/next                - Navigate forward (creates the successor)
    POST   /api/periods/{id}/previous            - Navigate back
    POST   /api/periods/{id}/close               - Close a period
    POST   /api/periods/{id}/rollover            - Copy sections and plans from a source period
    GET    /api/periods/{id}/summary             - Planned and actual totals
    GET    /api/periods/{id}/comparison          - Planned vs actual per category
    GET    /api/activity                         - Recent activity feed
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from moneyplan.config import ACTIVITY_FEED_LIMIT, DEFAULT_CURRENCY, TREND_PERIODS
from moneyplan.db import get_db
from moneyplan.logging_config import get_logger
from moneyplan.routes.common import (
    NOT_AUTHENTICATED, get_owner_id, owned_budget, owned_period, budget_json, period_json,
)
from moneyplan.services.activity import ActivityLog
from moneyplan.services.aggregator import BudgetAggregator, SummaryCache
from moneyplan.services.budgets import BudgetService
from moneyplan.services.events import event_bus
from moneyplan.services.periods import PeriodService
from moneyplan.services.rollover import RolloverEngine

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

# Shared across requests; entries are evicted by change events
summary_cache = SummaryCache(event_bus)


class BudgetRequest(BaseModel):
    """Request model for creating a budget."""
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY


class BudgetUpdateRequest(BaseModel):
    """Request model for a partial budget update."""
    name: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    currency_code: Optional[str] = None


class PeriodRequest(BaseModel):
    period_type: str = "MONTHLY"
    start_date: date
    end_date: date


class RolloverRequest(BaseModel):
    source_period_id: str


def _navigation_json(result) -> dict:
    return {
        "period": period_json(result.period),
        "created": result.created,
        "copy_available": result.copy_available,
        "source_period_id": result.source_period_id,
    }


# ============================================================================
# BUDGETS
# ============================================================================

@router.get("/budgets")
def list_budgets(request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    budgets = BudgetService(db).ensure_default_budget(owner_id)
    return JSONResponse({"budgets": [budget_json(b) for b in budgets]})


@router.post("/budgets")
def create_budget(request: Request, data: BudgetRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        logger.warning("Unauthenticated attempt to create budget")
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    budget = BudgetService(db).create_budget(
        owner_id, data.name, icon=data.icon, color=data.color, currency_code=data.currency_code,
    )
    return JSONResponse(budget_json(budget), status_code=201)


@router.patch("/budgets/{budget_id}")
def update_budget(budget_id: str, request: Request, data: BudgetUpdateRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    budget = BudgetService(db).update_budget(budget_id, **data.model_dump(exclude_unset=True))
    return JSONResponse(budget_json(budget))


@router.delete("/budgets/{budget_id}")
def delete_budget(budget_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    BudgetService(db).delete_budget(budget_id)
    return JSONResponse({"success": True})


# ============================================================================
# PERIODS
# ============================================================================

@router.get("/budgets/{budget_id}/periods")
def list_periods(budget_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    periods = PeriodService(db).list_periods(budget_id)
    return JSONResponse({"periods": [period_json(p) for p in periods]})


@router.post("/budgets/{budget_id}/periods")
def create_period(budget_id: str, request: Request, data: PeriodRequest, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    budget = owned_budget(db, owner_id, budget_id)
    period = PeriodService(db).create_period(budget, data.period_type, data.start_date, data.end_date)
    return JSONResponse(period_json(period), status_code=201)


@router.get("/budgets/{budget_id}/current-period")
def current_period(budget_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    budget = owned_budget(db, owner_id, budget_id)
    period = PeriodService(db).get_or_create_current_period(budget)
    return JSONResponse(period_json(period))


@router.post("/periods/{period_id}/next")
def next_period(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    period = owned_period(db, owner_id, period_id)
    result = RolloverEngine(db).navigate_forward(period.budget_id, period.id)
    return JSONResponse(_navigation_json(result))


@router.post("/periods/{period_id}/previous")
def previous_period(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    result = RolloverEngine(db).navigate_back(period_id)
    return JSONResponse(_navigation_json(result))


@router.post("/periods/{period_id}/close")
def close_period(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    period = PeriodService(db).close_period(period_id)
    return JSONResponse(period_json(period))


@router.post("/periods/{period_id}/rollover")
def rollover(period_id: str, request: Request, data: RolloverRequest, db: Session = Depends(get_db)):
    """Copy sections, category assignments and plans from ``source_period_id`` into this period."""
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    owned_period(db, owner_id, data.source_period_id)
    report = RolloverEngine(db).copy(data.source_period_id, period_id)
    return JSONResponse(report.to_dict())


# ============================================================================
# AGGREGATES
# ============================================================================

@router.get("/periods/{period_id}/summary")
def period_summary(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    period = owned_period(db, owner_id, period_id)
    return JSONResponse(BudgetAggregator(db, cache=summary_cache).summary(period.budget_id, period.id))


@router.get("/periods/{period_id}/comparison")
def period_comparison(period_id: str, request: Request, db: Session = Depends(get_db)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_period(db, owner_id, period_id)
    rows = BudgetAggregator(db).comparison(period_id)
    return JSONResponse({"rows": [row.to_dict() for row in rows]})


@router.get("/budgets/{budget_id}/trends")
def spending_trends(
    budget_id: str,
    request: Request,
    db: Session = Depends(get_db),
    last: int = Query(TREND_PERIODS, ge=1, le=36),
):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    owned_budget(db, owner_id, budget_id)
    return JSONResponse({"trends": BudgetAggregator(db).spending_trends(budget_id, last=last)})


@router.get("/activity")
def activity_feed(request: Request, db: Session = Depends(get_db),
                  limit: int = Query(ACTIVITY_FEED_LIMIT, ge=1, le=200)):
    owner_id = get_owner_id(request)
    if not owner_id:
        return JSONResponse(NOT_AUTHENTICATED, status_code=401)

    entries = ActivityLog(db).recent(limit)
    return JSONResponse({"activities": [
        {
            "id": a.id,
            "module": a.module,
            "action": a.action,
            "title": a.title,
            "description": a.description,
            "metadata": a.metadata_text,
            "timestamp": a.timestamp.isoformat() if a.timestamp else None,
        }
        for a in entries
    ]})
