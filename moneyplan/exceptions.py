"""
Typed exceptions for the MoneyPlan budgeting engine.

Every error raised across the service boundary derives from
``BudgetEngineError`` and carries a machine-readable ``code`` so the API
layer (and tests) can catch by type instead of matching message text.

    BudgetEngineError
    +-- ValidationError
    |   +-- PeriodClosedError
    |   +-- InvalidPeriodTransitionError
    +-- NotFoundError
    +-- ConstraintViolation
    +-- StoreError
    +-- DateParseError
    +-- RolloverError
"""

from typing import Any, Optional


class BudgetEngineError(Exception):
    """Base class for all budgeting engine errors."""

    code: str = "BUDGET_ENGINE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class ValidationError(BudgetEngineError):
    """Input rejected before any store mutation (bad amount, missing field)."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class PeriodClosedError(ValidationError):
    """Transactions of a CLOSED period are immutable history."""

    code = "PERIOD_CLOSED"

    def __init__(self, period_id: str):
        self.period_id = period_id
        super().__init__(
            "period_id",
            f"Period {period_id} is closed; its transactions can no longer change",
        )


class InvalidPeriodTransitionError(ValidationError):
    """A period status change that is not OPEN -> CLOSED."""

    code = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_id: str, from_status: str, to_status: str):
        self.period_id = period_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            "status",
            f"Period {period_id} cannot move from {from_status} to {to_status}",
        )


class NotFoundError(BudgetEngineError):
    """A referenced record no longer exists."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["entity"] = self.entity
        return data


class ConstraintViolation(BudgetEngineError):
    """
    A write that would break a relational invariant.

    The engines resolve these internally (update instead of insert, delete
    stale mappings); it only escapes if a repair is impossible.
    """

    code = "CONSTRAINT_VIOLATION"


class StoreError(BudgetEngineError):
    """The underlying save failed; the unit of work was rolled back."""

    code = "STORE_ERROR"

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        self.operation = operation
        self.original = original
        detail = f": {original}" if original is not None else ""
        super().__init__(f"Failed to {operation}{detail}")


class DateParseError(BudgetEngineError):
    """A persisted date string matched none of the accepted formats."""

    code = "DATE_PARSE_ERROR"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unrecognized date value: {value!r}")


class RolloverError(BudgetEngineError):
    """A rollover copy step failed; ``report`` describes what was copied."""

    code = "ROLLOVER_FAILED"

    def __init__(self, message: str, report=None):
        self.report = report
        super().__init__(message)
