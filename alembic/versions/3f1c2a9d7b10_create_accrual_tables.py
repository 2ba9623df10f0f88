"""create shop configs, shop sessions and processed events

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1c2a9d7b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "shop_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop", sa.String(), nullable=False),
        sa.Column("threshold", sa.Numeric(12, 2), nullable=False),
        sa.Column("credit_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_shop_configs_id", "shop_configs", ["id"])
    op.create_index("ix_shop_configs_shop", "shop_configs", ["shop"], unique=True)

    op.create_table(
        "shop_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop", sa.String(), nullable=False),
        sa.Column("access_token", sa.String(), nullable=False),
        sa.Column("scope", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_shop_sessions_id", "shop_sessions", ["id"])
    op.create_index("ix_shop_sessions_shop", "shop_sessions", ["shop"], unique=True)

    op.create_table(
        "processed_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("shop", sa.String(), nullable=False),
        sa.Column("topic", sa.String(), nullable=False),
        sa.Column("pro_id", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_processed_events_id", "processed_events", ["id"])
    op.create_index("ix_processed_events_event_id", "processed_events", ["event_id"], unique=True)
    op.create_index("ix_processed_events_shop_processed_at", "processed_events", ["shop", "processed_at"])


def downgrade() -> None:
    op.drop_index("ix_processed_events_shop_processed_at", table_name="processed_events")
    op.drop_index("ix_processed_events_event_id", table_name="processed_events")
    op.drop_index("ix_processed_events_id", table_name="processed_events")
    op.drop_table("processed_events")
    op.drop_index("ix_shop_sessions_shop", table_name="shop_sessions")
    op.drop_index("ix_shop_sessions_id", table_name="shop_sessions")
    op.drop_table("shop_sessions")
    op.drop_index("ix_shop_configs_shop", table_name="shop_configs")
    op.drop_index("ix_shop_configs_id", table_name="shop_configs")
    op.drop_table("shop_configs")
