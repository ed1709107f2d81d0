"""initial schema

Revision ID: 202508030000
Revises:
Create Date: 2025-08-03 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202508030000"
down_revision = None
branch_labels = None
depends_on = None

FREQUENCY = sa.Enum(
    "ONE_TIME", "WEEKLY", "BIWEEKLY", "MONTHLY", "ANNUAL", name="frequency"
)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("name_lower", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("INCOME", "EXPENSE", name="categorytype"), nullable=False
        ),
        sa.Column("color", sa.String(length=7)),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
        ),
        sa.Column("depth", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "type", "name_lower", name="uq_category_user_type_name"
        ),
        sa.CheckConstraint("depth >= 0 AND depth <= 2", name="ck_category_depth"),
    )
    op.create_index("ix_categories_user_type", "categories", ["user_id", "type"])
    op.create_index("ix_categories_parent", "categories", ["parent_id"])

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("income_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_date", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_incomes_amount_positive"),
    )
    op.create_index("ix_incomes_user_date", "incomes", ["user_id", "income_date"])
    op.create_index(
        "ix_incomes_user_category", "incomes", ["user_id", "category_id"]
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("frequency", FREQUENCY, nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True)),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PAID", "OVERDUE", "PARTIAL", name="expensestatus"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_user_due", "expenses", ["user_id", "due_date"])
    op.create_index("ix_expenses_user_status", "expenses", ["user_id", "status"])
    op.create_index(
        "ix_expenses_user_category", "expenses", ["user_id", "category_id"]
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "CHECKING", "SAVINGS", "CREDIT", "INVESTMENT", name="accounttype"
            ),
            nullable=False,
        ),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table("accounts")
    op.drop_index("ix_expenses_user_category", table_name="expenses")
    op.drop_index("ix_expenses_user_status", table_name="expenses")
    op.drop_index("ix_expenses_user_due", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_incomes_user_category", table_name="incomes")
    op.drop_index("ix_incomes_user_date", table_name="incomes")
    op.drop_table("incomes")
    op.drop_index("ix_categories_parent", table_name="categories")
    op.drop_index("ix_categories_user_type", table_name="categories")
    op.drop_table("categories")
    op.drop_table("users")
