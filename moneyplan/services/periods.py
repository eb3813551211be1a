"""
Period lifecycle: find or create the current period, compute successors,
create periods explicitly and close them.

Period boundaries are persisted as text and parsed fail-closed: a stored
date that matches no accepted format raises ``DateParseError`` and no
period is created.
"""

from datetime import date, timedelta
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from moneyplan.exceptions import InvalidPeriodTransitionError, ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import (
    Budget, Period, PERIOD_TYPES, MONTHLY, QUARTERLY, OPEN, CLOSED,
)
from moneyplan.services.base import BaseService
from moneyplan.services.events import CURRENT_PERIOD
from moneyplan.utils.dates import (
    parse_stored_date, format_date, month_bounds, quarter_bounds, period_name,
)

logger = get_logger(__name__)


def period_bounds(period: Period):
    """Parsed (start, end) of a period; raises DateParseError on bad text."""
    return parse_stored_date(period.start_date), parse_stored_date(period.end_date)


def compute_next_period(period: Period):
    """
    Date range of the period that follows ``period``.

    The successor starts the day after the source ends. MONTHLY successors
    end on the last day of that calendar month, QUARTERLY ones on the last
    day of that calendar quarter, and CUSTOM ones keep the source's length.

    Returns:
        (start_date, end_date) tuple of dates
    """
    start, end = period_bounds(period)
    next_start = end + timedelta(days=1)

    if period.period_type == MONTHLY:
        _, next_end = month_bounds(next_start)
    elif period.period_type == QUARTERLY:
        _, next_end = quarter_bounds(next_start)
    else:
        length = (end - start).days
        next_end = next_start + timedelta(days=length)
    return next_start, next_end


class PeriodService(BaseService):

    def __init__(self, db: Session, today: Optional[Callable[[], date]] = None, **collaborators):
        super().__init__(db, **collaborators)
        self.today = today or date.today

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_period(self, period_id: str) -> Period:
        return self._get(Period, period_id, "Period")

    def list_periods(self, budget_id: str) -> List[Period]:
        """All periods of a budget, latest start first."""
        periods = self.db.query(Period).filter(Period.budget_id == budget_id).all()
        return sorted(periods, key=lambda p: period_bounds(p)[0], reverse=True)

    def find_period_containing(self, budget_id: str, day: date, status: Optional[str] = None) -> Optional[Period]:
        query = self.db.query(Period).filter(Period.budget_id == budget_id)
        if status is not None:
            query = query.filter(Period.status == status)
        for period in query.order_by(Period.sequence).all():
            start, end = period_bounds(period)
            if start <= day <= end:
                return period
        return None

    def next_existing_period(self, period: Period) -> Optional[Period]:
        """The period starting right after ``period`` ends, if it exists."""
        _, end = period_bounds(period)
        later = [p for p in self.list_periods(period.budget_id) if period_bounds(p)[0] > end]
        return min(later, key=lambda p: period_bounds(p)[0]) if later else None

    def previous_period(self, period: Period) -> Optional[Period]:
        start, _ = period_bounds(period)
        earlier = [p for p in self.list_periods(period.budget_id) if period_bounds(p)[1] < start]
        return max(earlier, key=lambda p: period_bounds(p)[1]) if earlier else None

    def _next_sequence(self, budget_id: str) -> int:
        current = (
            self.db.query(func.max(Period.sequence))
            .filter(Period.budget_id == budget_id)
            .scalar()
        )
        return (current or 0) + 1

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def get_or_create_current_period(self, budget: Budget) -> Period:
        """
        The OPEN period containing today, created as a MONTHLY period
        spanning today's calendar month when none exists.
        """
        today = self.today()
        period = self.find_period_containing(budget.id, today, status=OPEN)
        if period is not None:
            return period

        with self.locks.writing(budget.id):
            # Re-check under the lock; another writer may have created it
            period = self.find_period_containing(budget.id, today, status=OPEN)
            if period is not None:
                return period
            # A closed period covering today is kept; periods never overlap
            period = self.find_period_containing(budget.id, today)
            if period is not None:
                return period
            start, end = month_bounds(today)
            logger.info(f"No open period covers {today} for budget {budget.id}; creating one")
            period = self.create_period(budget, MONTHLY, start, end)
        self._publish(CURRENT_PERIOD, budget_id=budget.id, period_id=period.id, action="created", id=period.id)
        return period

    def create_period(self, budget: Budget, period_type: str, start_date: date, end_date: date) -> Period:
        if period_type not in PERIOD_TYPES:
            raise ValidationError("period_type", f"period_type must be one of {', '.join(PERIOD_TYPES)}")
        if start_date > end_date:
            raise ValidationError("end_date", f"end_date ({end_date}) is before start_date ({start_date})")

        with self.locks.writing(budget.id):
            for existing in self.db.query(Period).filter(Period.budget_id == budget.id).all():
                existing_start, existing_end = period_bounds(existing)
                if start_date <= existing_end and existing_start <= end_date:
                    raise ValidationError(
                        "start_date",
                        f"{format_date(start_date)}..{format_date(end_date)} overlaps period {existing.name}",
                    )

            period = Period(
                budget_id=budget.id,
                period_type=period_type,
                name=period_name(period_type, start_date),
                start_date=format_date(start_date),
                end_date=format_date(end_date),
                status=OPEN,
                sequence=self._next_sequence(budget.id),
            )
            self.db.add(period)
            self._save("create period")
        logger.info(f"Period created: {period.id} {period.start_date}..{period.end_date} (seq {period.sequence})")

        self.activity.record("period_created", f"Started period {period.name}")
        return period

    def create_next_period(self, period: Period) -> Period:
        """Create the successor of ``period`` with the same period type."""
        start, end = compute_next_period(period)
        budget = self._get(Budget, period.budget_id, "Budget")
        return self.create_period(budget, period.period_type or MONTHLY, start, end)

    def close_period(self, period_id: str) -> Period:
        period = self.get_period(period_id)
        if period.status == CLOSED:
            raise InvalidPeriodTransitionError(period.id, CLOSED, CLOSED)
        with self.locks.writing(period.budget_id):
            period.status = CLOSED
            self._save("close period")
        logger.info(f"Period closed: {period.id}")

        self.activity.record("period_closed", f"Closed period {period.name}")
        self._publish(CURRENT_PERIOD, budget_id=period.budget_id, period_id=period.id, action="closed", id=period.id)
        return period

    def set_status(self, period_id: str, status: str) -> Period:
        period = self.get_period(period_id)
        if status == period.status:
            return period
        if status != CLOSED:
            raise InvalidPeriodTransitionError(period.id, period.status, status)
        return self.close_period(period_id)
