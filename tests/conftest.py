"""
Pytest fixtures and configuration for MoneyPlan tests.

This module provides common fixtures used across all test modules,
including database setup, test client, and budget data builders.
"""

import os
import tempfile

# Point the application at throwaway locations before it is imported
os.environ.setdefault(
    "MONEYPLAN_DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "moneyplan-test.db"),
)
os.environ.setdefault("MONEYPLAN_LOGS_DIR", os.path.join(tempfile.gettempdir(), "moneyplan-test-logs"))

import pytest
from datetime import date
from typing import Dict, Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from moneyplan.main import app
from moneyplan.db import get_db, Base
from moneyplan.models import EXPENSE, INCOME
from moneyplan.models.budget import Budget, Period, Section
from moneyplan.models.category import Category
from moneyplan.services.budgets import BudgetService
from moneyplan.services.categories import CategoryService
from moneyplan.services.events import EventBus
from moneyplan.services.locks import BudgetLockRegistry
from moneyplan.services.periods import PeriodService
from moneyplan.services.planning import PlanningService
from moneyplan.services.sections import SectionService
from moneyplan.services.transactions import TransactionService


# Create in-memory SQLite database for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Mid-January 2026 is "today" for the service-level tests
TODAY = date(2026, 1, 15)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with overridden database dependency.
    """
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client: TestClient) -> TestClient:
    """
    Test client carrying the owner cookie.
    """
    client.cookies.set("username", "testuser")
    return client


@pytest.fixture
def bus() -> EventBus:
    """Event bus private to one test."""
    return EventBus()


@pytest.fixture
def collaborators(bus: EventBus) -> dict:
    """Keyword arguments wiring services to the test's own bus and locks."""
    return {"bus": bus, "locks": BudgetLockRegistry()}


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def categories(db_session: Session) -> Dict[str, Category]:
    """
    Seed the system categories and return them by name.
    """
    CategoryService(db_session).seed_system_categories()
    return {c.name: c for c in db_session.query(Category).all()}


@pytest.fixture
def budget(db_session: Session, collaborators: dict) -> Budget:
    """
    Create the test owner's budget.
    """
    return BudgetService(db_session, **collaborators).create_budget("testuser", "My Budget")


@pytest.fixture
def period_service(db_session: Session, collaborators: dict, today) -> PeriodService:
    return PeriodService(db_session, today=today, **collaborators)


@pytest.fixture
def january(budget: Budget, period_service: PeriodService) -> Period:
    """
    The open monthly period covering 2026-01-01..2026-01-31.
    """
    return period_service.get_or_create_current_period(budget)


@pytest.fixture
def section_service(db_session: Session, collaborators: dict) -> SectionService:
    return SectionService(db_session, **collaborators)


@pytest.fixture
def planning_service(db_session: Session, collaborators: dict) -> PlanningService:
    return PlanningService(db_session, **collaborators)


@pytest.fixture
def transaction_service(db_session: Session, collaborators: dict) -> TransactionService:
    return TransactionService(db_session, **collaborators)


@pytest.fixture
def sections(section_service: SectionService, january: Period) -> Dict[str, Section]:
    """
    Two sections in January: "Essentials" (order 0) and "Lifestyle" (order 1).
    """
    return {
        "Essentials": section_service.create_section(january.id, "Essentials"),
        "Lifestyle": section_service.create_section(january.id, "Lifestyle"),
    }


@pytest.fixture
def planned_january(
    january: Period,
    categories: Dict[str, Category],
    sections: Dict[str, Section],
    section_service: SectionService,
    planning_service: PlanningService,
    transaction_service: TransactionService,
) -> Period:
    """
    January with 2 sections holding 3 categories, 3 plans and 2 transactions.

    Essentials: Groceries, Rent. Lifestyle: Restaurant.
    """
    section_service.assign(categories["Groceries"].id, sections["Essentials"].id)
    section_service.assign(categories["Rent"].id, sections["Essentials"].id)
    section_service.assign(categories["Restaurant"].id, sections["Lifestyle"].id)

    planning_service.create_or_update_plan(january.id, categories["Groceries"].id, EXPENSE, 50000, "weekly shop")
    planning_service.create_or_update_plan(january.id, categories["Rent"].id, EXPENSE, 180000)
    planning_service.create_or_update_plan(january.id, categories["Salary"].id, INCOME, 600000, "after tax")

    transaction_service.create_transaction(
        january.budget_id, january.id, categories["Groceries"].id, EXPENSE, 12000, date(2026, 1, 5),
    )
    transaction_service.create_transaction(
        january.budget_id, january.id, categories["Salary"].id, INCOME, 600000, date(2026, 1, 28),
    )
    return january
