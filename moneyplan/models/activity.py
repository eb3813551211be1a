from sqlalchemy import Column, String, Text, DateTime
from moneyplan.models import Base, generate_id, utcnow


class Activity(Base):
    """Entry in the cross-module activity feed (fire-and-forget sink)."""
    __tablename__ = "activities"

    id = Column(String(64), primary_key=True, default=generate_id("act"))
    module = Column(String(50), nullable=False, index=True)
    action = Column(String(50), nullable=False)  # plan_created, transaction_added, ...
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    metadata_text = Column(String(500), nullable=True)  # e.g. "amount:125.00"
    timestamp = Column(DateTime, default=utcnow, index=True)
