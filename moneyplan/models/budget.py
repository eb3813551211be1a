from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, ForeignKey, Boolean, Date, DateTime,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from moneyplan.models import Base, EXPENSE, generate_id, utcnow

# Period types and lifecycle
MONTHLY = "MONTHLY"
QUARTERLY = "QUARTERLY"
CUSTOM = "CUSTOM"
PERIOD_TYPES = (MONTHLY, QUARTERLY, CUSTOM)

OPEN = "OPEN"
CLOSED = "CLOSED"

# Recurring series frequencies
FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")


class Budget(Base):
    """A user's budget; owns its periods, transactions and recurring series."""
    __tablename__ = "budgets"

    id = Column(String(64), primary_key=True, default=generate_id("bgt"))
    owner_id = Column(String(100), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    currency_code = Column(String(3), nullable=False, default="AUD")
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    periods = relationship("Period", back_populates="budget", cascade="all, delete-orphan")
    recurring_series = relationship("RecurringTransactionSeries", back_populates="budget", cascade="all, delete-orphan")
    liabilities = relationship("Liability", back_populates="budget", cascade="all, delete-orphan")


class Period(Base):
    """
    Date-bounded accounting interval within a budget.

    Boundaries are stored as text (YYYY-MM-DD), inclusive at both ends,
    and are always read back through ``parse_stored_date``. A period moves
    OPEN -> CLOSED and never back.
    """
    __tablename__ = "periods"

    id = Column(String(64), primary_key=True, default=generate_id("prd"))
    budget_id = Column(String(64), ForeignKey("budgets.id"), nullable=False, index=True)
    period_type = Column(String(20), nullable=False, default=MONTHLY)
    name = Column(String(100), nullable=True)
    start_date = Column(String(32), nullable=False)
    end_date = Column(String(32), nullable=False)
    status = Column(String(10), nullable=False, default=OPEN)
    sequence = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    budget = relationship("Budget", back_populates="periods")
    sections = relationship("Section", back_populates="period", cascade="all, delete-orphan",
                            order_by="Section.display_order")
    plans = relationship("Plan", back_populates="period", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="period", cascade="all, delete-orphan")


class Section(Base):
    """Display grouping of categories within one period."""
    __tablename__ = "sections"

    id = Column(String(64), primary_key=True, default=generate_id("section"))
    period_id = Column(String(64), ForeignKey("periods.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    period = relationship("Period", back_populates="sections")
    mappings = relationship("CategoryMapping", back_populates="section", cascade="all, delete-orphan",
                            order_by="CategoryMapping.display_order")


class CategoryMapping(Base):
    """
    Places a category inside a section.

    Within one period a category maps to at most one section; the
    assignment engine keeps that true with read-then-write sequences.
    """
    __tablename__ = "category_mappings"

    id = Column(String(64), primary_key=True, default=generate_id("map"))
    section_id = Column(String(64), ForeignKey("sections.id"), nullable=False, index=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    section = relationship("Section", back_populates="mappings")
    category = relationship("Category")


class Plan(Base):
    """Planned amount for one category in one period."""
    __tablename__ = "plans"
    __table_args__ = (
        UniqueConstraint("period_id", "category_id", name="uq_plan_period_category"),
    )

    id = Column(String(64), primary_key=True, default=generate_id("plan"))
    period_id = Column(String(64), ForeignKey("periods.id"), nullable=False, index=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False, default=EXPENSE)  # INCOME or EXPENSE
    amount_cents = Column(BigInteger, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    period = relationship("Period", back_populates="plans")
    category = relationship("Category")


class Transaction(Base):
    """Actual inflow or outflow recorded against a category in a period."""
    __tablename__ = "transactions"

    id = Column(String(64), primary_key=True, default=generate_id("txn"))
    budget_id = Column(String(64), ForeignKey("budgets.id"), nullable=False, index=True)
    period_id = Column(String(64), ForeignKey("periods.id"), nullable=False, index=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False, default=EXPENSE)
    amount_cents = Column(BigInteger, nullable=False)
    transaction_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)

    # Optional links
    recurring_series_id = Column(String(64), ForeignKey("recurring_series.id"), nullable=True)
    liability_id = Column(String(64), ForeignKey("liabilities.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    period = relationship("Period", back_populates="transactions")
    category = relationship("Category")


class RecurringTransactionSeries(Base):
    """Template that materializes transactions on a schedule."""
    __tablename__ = "recurring_series"

    id = Column(String(64), primary_key=True, default=generate_id("rts"))
    budget_id = Column(String(64), ForeignKey("budgets.id"), nullable=False, index=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=False)
    type = Column(String(10), nullable=False, default=EXPENSE)
    amount_cents = Column(BigInteger, nullable=False)
    frequency = Column(String(10), nullable=False, default="MONTHLY")  # DAILY, WEEKLY, MONTHLY, YEARLY
    interval = Column(Integer, nullable=False, default=1)
    next_run_date = Column(Date, nullable=False)
    is_paused = Column(Boolean, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    budget = relationship("Budget", back_populates="recurring_series")
    category = relationship("Category")


class Liability(Base):
    """Debt or obligation that transactions can be linked to."""
    __tablename__ = "liabilities"

    id = Column(String(64), primary_key=True, default=generate_id("liab"))
    budget_id = Column(String(64), ForeignKey("budgets.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    amount_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(10), nullable=False, default=OPEN)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    budget = relationship("Budget", back_populates="liabilities")
