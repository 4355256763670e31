"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    if "subscriptions" not in existing_tables:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Uuid(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("origin_id", sa.Integer(), nullable=False),
            sa.Column("origin_code", sa.String(), nullable=False),
            sa.Column("destination_id", sa.Integer(), nullable=False),
            sa.Column("destination_code", sa.String(), nullable=False),
            sa.Column("date_time", sa.DateTime(timezone=True), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)")),
            sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        )

    idxs = {idx["name"] for idx in _inspector().get_indexes("subscriptions")}
    if "ix_subscriptions_user_id" not in idxs:
        op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"])
    if "unique_active_subscription" not in idxs:
        # Uniqueness only binds active rows; deactivated history may repeat a tuple.
        op.create_index(
            "unique_active_subscription",
            "subscriptions",
            ["user_id", "origin_id", "destination_id", "date_time"],
            unique=True,
            postgresql_where=sa.text("is_active = true"),
            sqlite_where=sa.text("is_active = 1"),
        )


def downgrade() -> None:
    op.drop_index("unique_active_subscription", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_id", table_name="subscriptions")
    op.drop_table("subscriptions")
