"""collectors and global category names

Revision ID: 202508150000
Revises: 202508030000
Create Date: 2025-08-15 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202508150000"
down_revision = "202508030000"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "collectors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "external_id", name="uq_collector_user_external"
        ),
    )
    op.create_index("ix_collectors_user", "collectors", ["user_id"])

    with op.batch_alter_table("expenses") as batch_op:
        batch_op.add_column(sa.Column("collector_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_expenses_collector_id",
            "collectors",
            ["collector_id"],
            ["id"],
            ondelete="SET NULL",
        )

    op.create_index(
        "uq_categories_global_type_name",
        "categories",
        ["type", "name_lower"],
        unique=True,
        sqlite_where=sa.text("user_id IS NULL"),
        postgresql_where=sa.text("user_id IS NULL"),
    )


def downgrade():
    op.drop_index("uq_categories_global_type_name", table_name="categories")
    with op.batch_alter_table("expenses") as batch_op:
        batch_op.drop_constraint("fk_expenses_collector_id", type_="foreignkey")
        batch_op.drop_column("collector_id")
    op.drop_index("ix_collectors_user", table_name="collectors")
    op.drop_table("collectors")
