"""Initial budget planning schema

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-10-19 09:12:41.508213

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema - Create categories, budgets, periods, sections, plans and transactions."""
    # Categories
    op.create_table(
        'head_categories',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('prefer_type', sa.String(10), nullable=False),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('display_order', sa.Integer(), default=0),
        sa.Column('is_system', sa.Boolean(), default=False),
        sa.Column('is_archived', sa.Boolean(), default=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'categories',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('head_category_id', sa.String(64), sa.ForeignKey('head_categories.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('display_order', sa.Integer(), default=0),
        sa.Column('is_system', sa.Boolean(), default=False),
        sa.Column('is_archived', sa.Boolean(), default=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    # Budgets and periods
    op.create_table(
        'budgets',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('owner_id', sa.String(100), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('currency_code', sa.String(3), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'periods',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('budget_id', sa.String(64), sa.ForeignKey('budgets.id'), nullable=False, index=True),
        sa.Column('period_type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('start_date', sa.String(32), nullable=False),
        sa.Column('end_date', sa.String(32), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    # Sections and category mappings
    op.create_table(
        'sections',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('period_id', sa.String(64), sa.ForeignKey('periods.id'), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'category_mappings',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('section_id', sa.String(64), sa.ForeignKey('sections.id'), nullable=False, index=True),
        sa.Column('category_id', sa.String(64), sa.ForeignKey('categories.id'), nullable=False, index=True),
        sa.Column('display_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    # Plans
    op.create_table(
        'plans',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('period_id', sa.String(64), sa.ForeignKey('periods.id'), nullable=False, index=True),
        sa.Column('category_id', sa.String(64), sa.ForeignKey('categories.id'), nullable=False, index=True),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('period_id', 'category_id', name='uq_plan_period_category'),
    )

    # Recurring series, liabilities and transactions
    op.create_table(
        'recurring_series',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('budget_id', sa.String(64), sa.ForeignKey('budgets.id'), nullable=False, index=True),
        sa.Column('category_id', sa.String(64), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('frequency', sa.String(10), nullable=False),
        sa.Column('interval', sa.Integer(), nullable=False),
        sa.Column('next_run_date', sa.Date(), nullable=False),
        sa.Column('is_paused', sa.Boolean(), default=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'liabilities',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('budget_id', sa.String(64), sa.ForeignKey('budgets.id'), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('budget_id', sa.String(64), sa.ForeignKey('budgets.id'), nullable=False, index=True),
        sa.Column('period_id', sa.String(64), sa.ForeignKey('periods.id'), nullable=False, index=True),
        sa.Column('category_id', sa.String(64), sa.ForeignKey('categories.id'), nullable=False, index=True),
        sa.Column('type', sa.String(10), nullable=False),
        sa.Column('amount_cents', sa.BigInteger(), nullable=False),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recurring_series_id', sa.String(64), sa.ForeignKey('recurring_series.id'), nullable=True),
        sa.Column('liability_id', sa.String(64), sa.ForeignKey('liabilities.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    # Activity feed
    op.create_table(
        'activities',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('module', sa.String(50), nullable=False, index=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata_text', sa.String(500), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=True, index=True),
    )


def downgrade() -> None:
    """Downgrade schema - Drop all budget planning tables."""
    op.drop_table('activities')
    op.drop_table('transactions')
    op.drop_table('liabilities')
    op.drop_table('recurring_series')
    op.drop_table('plans')
    op.drop_table('category_mappings')
    op.drop_table('sections')
    op.drop_table('periods')
    op.drop_table('budgets')
    op.drop_table('categories')
    op.drop_table('head_categories')
