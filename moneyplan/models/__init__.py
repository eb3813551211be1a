import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Plan / transaction direction; never inferred from the sign of an amount
INCOME = "INCOME"
EXPENSE = "EXPENSE"
ENTRY_TYPES = (INCOME, EXPENSE)


def generate_id(prefix: str):
    """Column default producing ids like ``plan-<uuid4>``."""
    def _generate():
        return f"{prefix}-{uuid.uuid4()}"
    return _generate


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
