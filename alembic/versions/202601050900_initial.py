"""initial schema

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202601050900"
down_revision = None
branch_labels = None
depends_on = None

EXPENSE_CATEGORIES = (
    "food",
    "transport",
    "shopping",
    "entertainment",
    "bills",
    "health",
    "education",
    "other",
)
INCOME_SOURCES = (
    "salary",
    "freelance",
    "business",
    "investment",
    "gift",
    "refund",
    "other",
)


def upgrade():
    op.create_table(
        "custom_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=40)),
        sa.Column("color", sa.String(length=9)),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "name", name="uq_custom_category_user_name"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("color", sa.String(length=9), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "name", name="uq_tag_user_name"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(*EXPENSE_CATEGORIES, name="expensecategory"),
            nullable=False,
        ),
        sa.Column(
            "custom_category_id",
            sa.Integer(),
            sa.ForeignKey("custom_categories.id", ondelete="SET NULL"),
        ),
        sa.Column("merchant", sa.String(length=120)),
        sa.Column("note", sa.Text()),
        sa.Column(
            "source",
            sa.Enum("manual", "sms", "recurring", name="expensesource"),
            nullable=False,
            server_default="manual",
        ),
        sa.Column("recurring_expense_id", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index(
        "ix_expenses_user_occurred", "expenses", ["user_id", "occurred_at"]
    )
    op.create_index(
        "ix_expenses_user_category_occurred",
        "expenses",
        ["user_id", "category", "occurred_at"],
    )

    op.create_table(
        "expense_tags",
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id"),
            primary_key=True,
        ),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id"), primary_key=True),
    )

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, default=1),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "source",
            sa.Enum(*INCOME_SOURCES, name="incomesource"),
            nullable=False,
        ),
        sa.Column("note", sa.Text()),
        sa.Column("recurring_income_id", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_incomes_amount_positive"),
    )
    op.create_index("ix_incomes_user_occurred", "incomes", ["user_id", "occurred_at"])


def downgrade():
    op.drop_index("ix_incomes_user_occurred", table_name="incomes")
    op.drop_table("incomes")
    op.drop_table("expense_tags")
    op.drop_index("ix_expenses_user_category_occurred", table_name="expenses")
    op.drop_index("ix_expenses_user_occurred", table_name="expenses")
    op.drop_table("expenses")
    op.drop_table("tags")
    op.drop_table("custom_categories")
