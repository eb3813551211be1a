from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from moneyplan.config import DATABASE_URL
from moneyplan.models import Base
from moneyplan.models.activity import Activity
from moneyplan.models.category import HeadCategory, Category
from moneyplan.models.budget import (
    Budget, Period, Section, CategoryMapping, Plan, Transaction,
    RecurringTransactionSeries, Liability,
)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """
    Create tables if they don't exist.
    For schema changes, use Alembic migrations instead:
        alembic revision --autogenerate -m "Description of change"
        alembic upgrade head
    """
    Base.metadata.create_all(bind=engine)


# Only create tables on first run if database doesn't exist
# For schema changes, use: alembic upgrade head
init_db()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
