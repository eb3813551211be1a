"""
MoneyPlan - Budget Planning Engine

Main FastAPI application entry point. Configures routes, error handlers
and application lifecycle events.

Version: 1.0.0
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

# Import logging configuration (initializes logging)
from moneyplan.logging_config import get_logger
from moneyplan.db import SessionLocal
from moneyplan.exceptions import (
    BudgetEngineError, ValidationError, NotFoundError, StoreError, RolloverError, DateParseError,
)
from moneyplan.routes import budgets, categories, planning
from moneyplan.services.categories import CategoryService

# Get logger for this module
logger = get_logger(__name__)

STORE_ERROR_MESSAGE = "Something went wrong saving your changes. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.

    Seeds the system categories on startup.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("MoneyPlan Application Starting")
    logger.info(f"Version: {app.version}")
    logger.info("=" * 60)

    db = SessionLocal()
    try:
        CategoryService(db).seed_system_categories()
    except (StoreError, SQLAlchemyError) as e:
        logger.error(f"Could not seed system categories: {e}")
    finally:
        db.close()

    yield  # Application runs here

    # Shutdown
    logger.info("MoneyPlan Application Shutting Down")
    logger.info("=" * 60)


# Create FastAPI application instance
app = FastAPI(
    title="MoneyPlan",
    description="Period-based budget planning: sections, plans, transactions and rollover.",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=422)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(exc.to_dict(), status_code=404)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse({"error": exc.code, "message": STORE_ERROR_MESSAGE}, status_code=503)


@app.exception_handler(RolloverError)
async def rollover_error_handler(request: Request, exc: RolloverError):
    body = exc.to_dict()
    if exc.report is not None:
        body["report"] = exc.report.to_dict()
    return JSONResponse(body, status_code=409)


@app.exception_handler(DateParseError)
async def date_parse_error_handler(request: Request, exc: DateParseError):
    logger.error(f"Unparseable stored date on {request.url.path}: {exc.value!r}")
    return JSONResponse(exc.to_dict(), status_code=409)


@app.exception_handler(BudgetEngineError)
async def engine_error_handler(request: Request, exc: BudgetEngineError):
    return JSONResponse(exc.to_dict(), status_code=409)


@app.get("/")
async def root():
    return RedirectResponse(url="/docs")


# Include route modules
app.include_router(budgets.router, tags=["Budgets"])
app.include_router(planning.router, tags=["Planning"])
app.include_router(categories.router, tags=["Categories"])

logger.info("All routes registered successfully")
