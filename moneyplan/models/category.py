from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime
from sqlalchemy.orm import relationship
from moneyplan.models import Base, EXPENSE, generate_id, utcnow


class HeadCategory(Base):
    """Top-level grouping (e.g. "Housing") that fixes the preferred type of its categories."""
    __tablename__ = "head_categories"

    id = Column(String(64), primary_key=True, default=generate_id("hc"))
    name = Column(String(100), nullable=False)
    prefer_type = Column(String(10), nullable=False, default=EXPENSE)  # INCOME or EXPENSE
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    display_order = Column(Integer, default=0)
    is_system = Column(Boolean, default=False)
    is_archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    categories = relationship("Category", back_populates="head_category", cascade="all, delete-orphan")


class Category(Base):
    """
    Category that plans and transactions are recorded against.

    Archived categories drop out of selection lists but stay resolvable so
    historical transactions keep their labels.
    """
    __tablename__ = "categories"

    id = Column(String(64), primary_key=True, default=generate_id("cat"))
    head_category_id = Column(String(64), ForeignKey("head_categories.id"), nullable=False)
    name = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    display_order = Column(Integer, default=0)
    is_system = Column(Boolean, default=False)
    is_archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    head_category = relationship("HeadCategory", back_populates="categories")

    @property
    def preferred_type(self) -> str:
        return self.head_category.prefer_type if self.head_category else EXPENSE
