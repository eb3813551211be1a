"""
Activity log sink.

Budget mutations emit a short record for the app-wide activity feed.
Logging is fire-and-forget: it runs after the primary commit and a
failure here is logged, rolled back and never raised to the caller.
"""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moneyplan.config import ACTIVITY_MODULE, ACTIVITY_FEED_LIMIT
from moneyplan.logging_config import get_logger
from moneyplan.models.activity import Activity
from moneyplan.utils.money import from_cents

logger = get_logger(__name__)


def amount_metadata(amount_cents: int) -> str:
    return f"amount:{from_cents(amount_cents):.2f}"


class ActivityLog:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        title: str,
        description: Optional[str] = None,
        metadata: Optional[str] = None,
        module: str = ACTIVITY_MODULE,
    ) -> Optional[Activity]:
        activity = Activity(
            module=module,
            action=action,
            title=title,
            description=description,
            metadata_text=metadata,
        )
        try:
            self.db.add(activity)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Activity '{action}' not recorded: {e}")
            return None
        logger.debug(f"Activity recorded: {action} - {title}")
        return activity

    def recent(self, limit: int = ACTIVITY_FEED_LIMIT) -> List[Activity]:
        return (
            self.db.query(Activity)
            .order_by(Activity.timestamp.desc())
            .limit(limit)
            .all()
        )

    def by_module(self, module: str, limit: int = ACTIVITY_FEED_LIMIT) -> List[Activity]:
        return (
            self.db.query(Activity)
            .filter(Activity.module == module)
            .order_by(Activity.timestamp.desc())
            .limit(limit)
            .all()
        )
