"""
Configuration for the MoneyPlan budgeting engine.

Centralizes database, logging and default-budget settings. Every value can
be overridden through an environment variable so test runs and local
installs do not need code changes.
"""

import os

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Database
DATABASE_URL = os.getenv("MONEYPLAN_DATABASE_URL", "sqlite:///./moneyplan.db")

# Logging
LOG_LEVEL = os.getenv("MONEYPLAN_LOG_LEVEL", "INFO")
LOGS_DIR = os.getenv("MONEYPLAN_LOGS_DIR", os.path.join(_PROJECT_ROOT, "logs"))

# Money: all persisted amounts are integer cents
CENTS_PER_UNIT = 100
DEFAULT_CURRENCY = os.getenv("MONEYPLAN_DEFAULT_CURRENCY", "AUD")

# Budget auto-created for an owner who has none
DEFAULT_BUDGET_NAME = "My Budget"
DEFAULT_BUDGET_ICON = "💰"
DEFAULT_BUDGET_COLOR = "#10B981"

# Activity feed
ACTIVITY_MODULE = "Budget"
ACTIVITY_FEED_LIMIT = 50

# Number of periods shown in trend views
TREND_PERIODS = 6
