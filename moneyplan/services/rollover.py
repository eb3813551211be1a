"""
Period rollover: forward navigation and the optional structure copy.

Navigating forward past the last period creates its successor right away.
Copying the predecessor's sections, category assignments and plans into
it is a separate, user-confirmed step; declining leaves the new period
empty but usable. Transactions are never copied.

The copy walks a small state machine::

    IDLE -> SECTIONS_COPYING -> PLANS_COPYING -> DONE
                  |                  |
                  +------> FAILED <--+

Each copied record is written inside its own SAVEPOINT. A record that
fails (for example a plan whose category no longer exists) is logged and
skipped. A failure of a whole step keeps what was already copied, marks
the report FAILED and raises ``RolloverError`` carrying the report.
If the final save fails nothing is kept and ``StoreError`` is raised as is.
"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moneyplan.exceptions import BudgetEngineError, RolloverError, StoreError, ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models.budget import Budget, Period, Section
from moneyplan.models.category import Category
from moneyplan.services.base import BaseService
from moneyplan.services.events import CURRENT_PERIOD, SECTIONS, PLANS
from moneyplan.services.periods import PeriodService
from moneyplan.services.planning import PlanningService
from moneyplan.services.sections import SectionService

logger = get_logger(__name__)


def _reason(error: Exception) -> str:
    """Report text for a failed step; driver messages stay in the log."""
    if isinstance(error, StoreError):
        return f"could not {error.operation}"
    if isinstance(error, BudgetEngineError):
        return error.message
    return "the database rejected the change"


class RolloverState(str, enum.Enum):
    IDLE = "IDLE"
    SECTIONS_COPYING = "SECTIONS_COPYING"
    PLANS_COPYING = "PLANS_COPYING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class RolloverReport:
    """What one copy run did; returned on success, attached to RolloverError on failure."""

    source_period_id: str
    target_period_id: str
    state: RolloverState = RolloverState.IDLE
    sections_created: int = 0
    sections_reused: int = 0
    mappings_created: int = 0
    plans_copied: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def skip(self, message: str) -> None:
        self.skipped += 1
        self.errors.append(message)
        logger.warning(f"Rollover {self.source_period_id} -> {self.target_period_id}: {message}")

    def to_dict(self) -> dict:
        return {
            "source_period_id": self.source_period_id,
            "target_period_id": self.target_period_id,
            "state": self.state.value,
            "sections_created": self.sections_created,
            "sections_reused": self.sections_reused,
            "mappings_created": self.mappings_created,
            "plans_copied": self.plans_copied,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


@dataclass
class NavigationResult:
    period: Period
    created: bool = False
    copy_available: bool = False
    source_period_id: Optional[str] = None


class RolloverEngine(BaseService):

    def __init__(self, db: Session, today=None, **collaborators):
        super().__init__(db, **collaborators)
        self.periods = PeriodService(db, today=today, **self._collaborators())
        self.sections = SectionService(db, **self._collaborators())
        self.planning = PlanningService(db, **self._collaborators())

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate_forward(self, budget_id: str, period_id: str) -> NavigationResult:
        """
        Move to the period after ``period_id``.

        An existing successor is returned as is. Otherwise the successor is
        created (step 1) and the result offers the copy from the source.
        Any failure here, including an unparseable stored date, is raised
        before anything is copied.
        """
        budget = self._get(Budget, budget_id, "Budget")
        period = self.periods.get_period(period_id)
        if period.budget_id != budget.id:
            raise ValidationError("period_id", f"Period {period.id} does not belong to budget {budget.id}")

        with self.locks.writing(budget.id):
            successor = self.periods.next_existing_period(period)
            if successor is not None:
                return NavigationResult(period=successor)
            successor = self.periods.create_next_period(period)

        logger.info(f"Rolled forward {period.id} -> {successor.id}; copy offered")
        self._publish(CURRENT_PERIOD, budget_id=budget.id, period_id=successor.id, action="created", id=successor.id)
        return NavigationResult(period=successor, created=True, copy_available=True, source_period_id=period.id)

    def navigate_back(self, period_id: str) -> NavigationResult:
        """The previous period; stays on ``period_id`` when it is the oldest."""
        period = self.periods.get_period(period_id)
        previous = self.periods.previous_period(period)
        return NavigationResult(period=previous if previous is not None else period)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def copy(self, source_period_id: str, target_period_id: str) -> RolloverReport:
        source = self.periods.get_period(source_period_id)
        target = self.periods.get_period(target_period_id)
        if source.id == target.id:
            raise ValidationError("target_period_id", "Cannot copy a period into itself")
        if source.budget_id != target.budget_id:
            raise ValidationError("target_period_id", "Periods belong to different budgets")

        report = RolloverReport(source_period_id=source.id, target_period_id=target.id)
        with self.locks.writing(target.budget_id):
            try:
                report.state = RolloverState.SECTIONS_COPYING
                self._copy_sections(source, target, report)
                report.state = RolloverState.PLANS_COPYING
                self._copy_plans(source, target, report)
            except (BudgetEngineError, SQLAlchemyError) as e:
                step = report.state.value
                report.state = RolloverState.FAILED
                report.errors.append(f"{step} stopped: {_reason(e)}")
                logger.error(f"Rollover {source.id} -> {target.id} failed during copy: {e}")
                self._keep_partial_copy()
                raise RolloverError(f"Copying into {target.name} did not finish", report) from e
            self._save("save rollover copy")
            report.state = RolloverState.DONE

        logger.info(
            f"Rollover {source.id} -> {target.id} done: {report.sections_created} sections, "
            f"{report.mappings_created} mappings, {report.plans_copied} plans, {report.skipped} skipped"
        )
        self.activity.record(
            "rollover_completed",
            f"Copied plans into {target.name}",
            description=f"{report.plans_copied} plans from {source.name}",
        )
        self._publish(SECTIONS, budget_id=target.budget_id, period_id=target.id, action="copied", id=target.id)
        self._publish(PLANS, budget_id=target.budget_id, period_id=target.id, action="copied", id=target.id)
        return report

    def _keep_partial_copy(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not keep partial rollover copy: {e}")

    def _target_section(self, target: Period, source_section: Section, report: RolloverReport) -> Section:
        for existing in self.sections.list_sections(target.id):
            if existing.name == source_section.name:
                report.sections_reused += 1
                return existing
        section = self.sections._create_section(target, source_section.name)
        report.sections_created += 1
        return section

    def _copy_sections(self, source: Period, target: Period, report: RolloverReport) -> None:
        for source_section in self.sections.list_sections(source.id):
            try:
                with self.db.begin_nested():
                    target_section = self._target_section(target, source_section, report)
            except (BudgetEngineError, SQLAlchemyError) as e:
                report.skip(f"section {source_section.name!r} not copied: {_reason(e)}")
                continue

            for mapping in self.sections.mappings_in_section(source_section.id):
                category = self.db.get(Category, mapping.category_id)
                if category is None:
                    report.skip(f"mapping {mapping.id} skipped: category {mapping.category_id} no longer exists")
                    continue
                already = any(
                    m.category_id == category.id for m in self.sections.mappings_in_section(target_section.id)
                )
                try:
                    with self.db.begin_nested():
                        self.sections._assign(category, target_section)
                except (BudgetEngineError, SQLAlchemyError) as e:
                    report.skip(f"mapping for {category.name!r} not copied: {_reason(e)}")
                    continue
                if not already:
                    report.mappings_created += 1

    def _copy_plans(self, source: Period, target: Period, report: RolloverReport) -> None:
        for plan in self.planning.get_plans(source.id) + self._orphan_plans(source):
            if self.db.get(Category, plan.category_id) is None:
                report.skip(f"plan {plan.id} skipped: category {plan.category_id} no longer exists")
                continue
            try:
                with self.db.begin_nested():
                    self.planning._upsert_plan(target.id, plan.category_id, plan.type, plan.amount_cents, plan.notes)
            except (BudgetEngineError, SQLAlchemyError) as e:
                report.skip(f"plan {plan.id} not copied: {_reason(e)}")
                continue
            report.plans_copied += 1

    def _orphan_plans(self, period: Period):
        """Plans whose category row is gone; ``get_plans`` joins them away."""
        return [plan for plan in period.plans if self.db.get(Category, plan.category_id) is None]
