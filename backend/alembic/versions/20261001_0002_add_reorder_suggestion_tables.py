"""add reorder_suggestions, reorder_history and purchase_orders tables

Revision ID: 20261001_0002
Revises: 20261001_0001
Create Date: 2026-10-01 09:30:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reorder_suggestions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("suggested_quantity", sa.Integer(), nullable=False),
        sa.Column("estimated_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("urgency", sa.String(length=10), nullable=False),
        sa.Column("confidence_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("lead_time_days", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_by_ai", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("ai_model_version", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'ordered')",
            name="ck_reorder_suggestions_status",
        ),
        sa.CheckConstraint(
            "urgency IN ('critical', 'high', 'medium', 'low')",
            name="ck_reorder_suggestions_urgency",
        ),
        sa.CheckConstraint("suggested_quantity >= 0", name="ck_reorder_suggestions_quantity_non_negative"),
        sa.CheckConstraint("estimated_cost >= 0", name="ck_reorder_suggestions_cost_non_negative"),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 100",
            name="ck_reorder_suggestions_confidence_range",
        ),
    )
    op.create_index("ix_reorder_suggestions_id", "reorder_suggestions", ["id"], unique=False)
    op.create_index("ix_reorder_suggestions_product_id", "reorder_suggestions", ["product_id"], unique=False)
    op.create_index("ix_reorder_suggestions_supplier_id", "reorder_suggestions", ["supplier_id"], unique=False)
    op.create_index(
        "ix_reorder_suggestions_product_status", "reorder_suggestions", ["product_id", "status"], unique=False
    )
    op.create_index(
        "ix_reorder_suggestions_status_expires", "reorder_suggestions", ["status", "expires_at"], unique=False
    )

    op.create_table(
        "reorder_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("suggestion_id", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("suggested_quantity", sa.Integer(), nullable=False),
        sa.Column("actual_quantity_ordered", sa.Integer(), nullable=True),
        sa.Column("suggested_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("actual_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("action_taken", sa.String(length=20), nullable=False),
        sa.Column("action_reason", sa.Text(), nullable=True),
        sa.Column("stockout_occurred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("overstock_occurred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("accuracy_score", sa.Numeric(5, 2), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("outcome_recorded_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["suggestion_id"], ["reorder_suggestions.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "action_taken IN ('approved', 'rejected', 'modified', 'auto_ordered')",
            name="ck_reorder_history_action",
        ),
        sa.CheckConstraint(
            "accuracy_score IS NULL OR (accuracy_score >= 0 AND accuracy_score <= 100)",
            name="ck_reorder_history_accuracy_range",
        ),
    )
    op.create_index("ix_reorder_history_id", "reorder_history", ["id"], unique=False)
    op.create_index("ix_reorder_history_suggestion_id", "reorder_history", ["suggestion_id"], unique=False)
    op.create_index(
        "ix_reorder_history_product_created", "reorder_history", ["product_id", "created_at"], unique=False
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=False),
        sa.Column("suggestion_id", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("auto_generated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["suggestion_id"], ["reorder_suggestions.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity >= 1", name="ck_purchase_orders_quantity_min_1"),
        sa.CheckConstraint("total >= 0", name="ck_purchase_orders_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'placed', 'received', 'cancelled')",
            name="ck_purchase_orders_status",
        ),
    )
    op.create_index("ix_purchase_orders_id", "purchase_orders", ["id"], unique=False)
    op.create_index("ix_purchase_orders_order_number", "purchase_orders", ["order_number"], unique=True)
    op.create_index("ix_purchase_orders_suggestion_id", "purchase_orders", ["suggestion_id"], unique=False)
    op.create_index("ix_purchase_orders_product_id", "purchase_orders", ["product_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_purchase_orders_product_id", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_suggestion_id", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_order_number", table_name="purchase_orders")
    op.drop_index("ix_purchase_orders_id", table_name="purchase_orders")
    op.drop_table("purchase_orders")

    op.drop_index("ix_reorder_history_product_created", table_name="reorder_history")
    op.drop_index("ix_reorder_history_suggestion_id", table_name="reorder_history")
    op.drop_index("ix_reorder_history_id", table_name="reorder_history")
    op.drop_table("reorder_history")

    op.drop_index("ix_reorder_suggestions_status_expires", table_name="reorder_suggestions")
    op.drop_index("ix_reorder_suggestions_product_status", table_name="reorder_suggestions")
    op.drop_index("ix_reorder_suggestions_supplier_id", table_name="reorder_suggestions")
    op.drop_index("ix_reorder_suggestions_product_id", table_name="reorder_suggestions")
    op.drop_index("ix_reorder_suggestions_id", table_name="reorder_suggestions")
    op.drop_table("reorder_suggestions")
