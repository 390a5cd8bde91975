"""initial schema: users, revoked tokens, budget domain

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:12:44.104512
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ts = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("activation_token", sa.String(64)),
        sa.Column("reset_token", sa.String(64)),
        sa.Column("reset_token_expiry", _ts),
        sa.Column("new_email", sa.String(255)),
        sa.Column("email_change_token", sa.String(64)),
        sa.Column("email_change_token_expiry", _ts),
        sa.Column("last_login", _ts),
        sa.Column("created_at", _ts, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_users_activation_token", "users", ["activation_token"])
    op.create_index("ix_users_reset_token", "users", ["reset_token"])
    op.create_index("ix_users_email_change_token", "users", ["email_change_token"])

    op.create_table(
        "revoked_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(2048), nullable=False, unique=True),
        sa.Column("expiry_date", _ts, nullable=False),
    )
    op.create_index("ix_revoked_tokens_expiry_date", "revoked_tokens", ["expiry_date"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_categories_user_id", "categories", ["user_id"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("target_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("current_progress", sa.Numeric(18, 2), nullable=False),
        sa.Column("due_date", _ts),
        sa.Column("created_at", _ts, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_goals_user_id", "goals", ["user_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "category_id", sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column(
            "goal_id", sa.Integer(),
            sa.ForeignKey("goals.id", ondelete="SET NULL"),
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("description", sa.String(500)),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("date", _ts, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index("ix_transactions_category_id", "transactions", ["category_id"])
    op.create_index("ix_transactions_goal_id", "transactions", ["goal_id"])

    op.create_table(
        "monthly_budgets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "category_id", sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("month", sa.Date(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "category_id", "month", name="uq_monthly_budgets_user_cat_month"
        ),
    )
    op.create_index("ix_monthly_budgets_user_id", "monthly_budgets", ["user_id"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", _ts, nullable=False),
    )
    op.create_index("ix_alerts_user_id", "alerts", ["user_id"])


def downgrade() -> None:
    op.drop_table("alerts")
    op.drop_table("monthly_budgets")
    op.drop_table("transactions")
    op.drop_table("goals")
    op.drop_table("categories")
    op.drop_table("revoked_tokens")
    op.drop_table("users")
