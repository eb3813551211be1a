"""
Shared plumbing for the budgeting services.

Each service receives its collaborators explicitly: the SQLAlchemy session
(the entity store for one unit of work), the event bus, the per-budget
lock registry and the activity sink. Nothing reaches for a global session,
which keeps every test on its own isolated database.
"""

from typing import Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moneyplan.exceptions import NotFoundError, StoreError, ValidationError
from moneyplan.logging_config import get_logger
from moneyplan.models import ENTRY_TYPES
from moneyplan.services.activity import ActivityLog
from moneyplan.services.events import EventBus, event_bus
from moneyplan.services.locks import BudgetLockRegistry, budget_locks

logger = get_logger(__name__)

ModelType = TypeVar("ModelType")


class BaseService:
    def __init__(
        self,
        db: Session,
        bus: Optional[EventBus] = None,
        locks: Optional[BudgetLockRegistry] = None,
        activity: Optional[ActivityLog] = None,
    ):
        self.db = db
        self.bus = bus if bus is not None else event_bus
        self.locks = locks if locks is not None else budget_locks
        self.activity = activity if activity is not None else ActivityLog(db)

    def _collaborators(self) -> dict:
        """Keyword arguments for constructing a sibling service on the same unit of work."""
        return {"bus": self.bus, "locks": self.locks, "activity": self.activity}

    def _get(self, model: Type[ModelType], entity_id: str, entity: str) -> ModelType:
        record = self.db.get(model, entity_id) if entity_id else None
        if record is None:
            logger.debug(f"{entity} lookup failed: {entity_id}")
            raise NotFoundError(entity, entity_id)
        return record

    def _save(self, operation: str) -> None:
        """Commit the unit of work, rolling back and raising StoreError on failure."""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure while trying to {operation}: {e}")
            raise StoreError(operation, e) from e

    def _flush(self, operation: str) -> None:
        """Flush pending changes; inside a SAVEPOINT the caller owns the rollback."""
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            if not self.db.in_nested_transaction():
                self.db.rollback()
            logger.error(f"Store failure while trying to {operation}: {e}")
            raise StoreError(operation, e) from e

    def _publish(self, topic: str, **payload) -> None:
        self.bus.publish(topic, payload)


def require_entry_type(value: str, field: str = "type") -> str:
    if value not in ENTRY_TYPES:
        raise ValidationError(field, f"{field} must be one of {', '.join(ENTRY_TYPES)}")
    return value


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, f"{field} is required")
    return str(value).strip()
