"""add reorder_policies and reorder_settings tables

Revision ID: 20261001_0001
Revises:
Create Date: 2026-10-01 09:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reorder_policies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("scope_type", sa.String(length=20), nullable=False),
        sa.Column("scope_id", sa.Integer(), nullable=True),
        sa.Column("min_stock_multiplier", sa.Numeric(6, 3), nullable=False, server_default="1"),
        sa.Column("safety_stock_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("max_order_quantity", sa.Integer(), nullable=True),
        sa.Column("preferred_order_quantity", sa.Integer(), nullable=True),
        sa.Column("review_frequency_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("auto_approve_threshold", sa.Numeric(5, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "scope_type IN ('global', 'category', 'supplier', 'product')",
            name="ck_reorder_policies_scope_type",
        ),
        sa.CheckConstraint(
            "(scope_type = 'global' AND scope_id IS NULL) OR (scope_type <> 'global' AND scope_id IS NOT NULL)",
            name="ck_reorder_policies_scope_id_presence",
        ),
        sa.CheckConstraint("min_stock_multiplier >= 0", name="ck_reorder_policies_multiplier_non_negative"),
        sa.CheckConstraint("safety_stock_days >= 0", name="ck_reorder_policies_safety_days_non_negative"),
        sa.CheckConstraint("review_frequency_days >= 1", name="ck_reorder_policies_review_min_1"),
        sa.CheckConstraint(
            "max_order_quantity IS NULL OR max_order_quantity >= 1",
            name="ck_reorder_policies_max_qty_min_1",
        ),
        sa.CheckConstraint(
            "preferred_order_quantity IS NULL OR preferred_order_quantity >= 1",
            name="ck_reorder_policies_preferred_qty_min_1",
        ),
        sa.CheckConstraint(
            "auto_approve_threshold IS NULL OR (auto_approve_threshold >= 0 AND auto_approve_threshold <= 100)",
            name="ck_reorder_policies_auto_threshold_range",
        ),
    )
    op.create_index("ix_reorder_policies_id", "reorder_policies", ["id"], unique=False)

    op.create_table(
        "reorder_settings",
        sa.Column("id", sa.String(length=20), nullable=False),
        sa.Column("auto_reorder_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("analysis_frequency_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("default_confidence_threshold", sa.Numeric(5, 2), nullable=False, server_default="70"),
        sa.Column("max_auto_approve_amount", sa.Numeric(14, 2), nullable=False, server_default="1000"),
        sa.Column("notification_email", sa.String(length=255), nullable=True),
        sa.Column("slack_webhook_url", sa.String(length=500), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("id = 'global'", name="ck_reorder_settings_singleton"),
        sa.CheckConstraint("analysis_frequency_hours >= 1", name="ck_reorder_settings_frequency_min_1"),
        sa.CheckConstraint(
            "default_confidence_threshold >= 0 AND default_confidence_threshold <= 100",
            name="ck_reorder_settings_confidence_range",
        ),
        sa.CheckConstraint("max_auto_approve_amount >= 0", name="ck_reorder_settings_amount_non_negative"),
    )


def downgrade() -> None:
    op.drop_table("reorder_settings")
    op.drop_index("ix_reorder_policies_id", table_name="reorder_policies")
    op.drop_table("reorder_policies")
