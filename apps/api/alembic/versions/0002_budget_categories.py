"""budget categories

Revision ID: 0002_budget_categories
Revises: 0001_initial_schema
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_budget_categories"
down_revision: str | None = "0001_initial_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "budget_categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("family_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("monthly_limit", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("color", sa.String(length=16), server_default="#3b82f6", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["family_id"], ["families.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("family_id", "name", name="uq_budget_categories_family_name"),
    )
    op.create_index("ix_budget_categories_family_id", "budget_categories", ["family_id"])

    op.add_column("budget_transactions", sa.Column("category_id", sa.Integer(), nullable=True))
    # Existing free-text categories become category rows owned by the first poster.
    op.execute(
        """
        INSERT INTO budget_categories (family_id, user_id, name)
        SELECT family_id, MIN(user_id), category
        FROM budget_transactions
        GROUP BY family_id, category
        """
    )
    op.execute(
        """
        UPDATE budget_transactions AS t
        SET category_id = c.id
        FROM budget_categories AS c
        WHERE c.family_id = t.family_id AND c.name = t.category
        """
    )
    op.alter_column("budget_transactions", "category_id", nullable=False)
    op.create_foreign_key(
        "fk_budget_transactions_category_id",
        "budget_transactions",
        "budget_categories",
        ["category_id"],
        ["id"],
    )
    op.create_index("ix_budget_transactions_category_id", "budget_transactions", ["category_id"])
    op.drop_column("budget_transactions", "category")


def downgrade() -> None:
    op.add_column("budget_transactions", sa.Column("category", sa.String(length=100), nullable=True))
    op.execute(
        """
        UPDATE budget_transactions AS t
        SET category = c.name
        FROM budget_categories AS c
        WHERE c.id = t.category_id
        """
    )
    op.alter_column("budget_transactions", "category", nullable=False)
    op.drop_index("ix_budget_transactions_category_id", table_name="budget_transactions")
    op.drop_constraint("fk_budget_transactions_category_id", "budget_transactions", type_="foreignkey")
    op.drop_column("budget_transactions", "category_id")
    op.drop_index("ix_budget_categories_family_id", table_name="budget_categories")
    op.drop_table("budget_categories")
