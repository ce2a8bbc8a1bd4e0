"""add analysis_jobs and demand_patterns tables

Revision ID: 20261002_0003
Revises: 20261001_0002
Create Date: 2026-10-02 10:15:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261002_0003"
down_revision = "20261001_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "analysis_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("target_key", sa.String(length=32), nullable=False),
        sa.Column("urgency_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("requested_by", sa.String(length=64), nullable=True),
        sa.Column("products_count", sa.Integer(), nullable=True),
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("suggestions_count", sa.Integer(), nullable=True),
        sa.Column("auto_approved_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_completion", sa.DateTime(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('started', 'running', 'completed', 'failed')",
            name="ck_analysis_jobs_status",
        ),
        sa.CheckConstraint(
            "scope IN ('all', 'category', 'supplier', 'product')",
            name="ck_analysis_jobs_scope",
        ),
    )
    op.create_index("ix_analysis_jobs_id", "analysis_jobs", ["id"], unique=False)
    op.create_index("ix_analysis_jobs_job_id", "analysis_jobs", ["job_id"], unique=True)
    op.create_index("ix_analysis_jobs_status", "analysis_jobs", ["status"], unique=False)
    op.create_index("ix_analysis_jobs_status_created_at", "analysis_jobs", ["status", "created_at"], unique=False)

    op.create_table(
        "demand_patterns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("avg_daily_demand", sa.Numeric(12, 4), nullable=False),
        sa.Column("peak_demand", sa.Integer(), nullable=False),
        sa.Column("demand_variance", sa.Numeric(14, 4), nullable=False),
        sa.Column("calculated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "period_start", "period_end", name="uq_demand_patterns_product_period"),
    )
    op.create_index("ix_demand_patterns_id", "demand_patterns", ["id"], unique=False)
    op.create_index("ix_demand_patterns_product_id", "demand_patterns", ["product_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_demand_patterns_product_id", table_name="demand_patterns")
    op.drop_index("ix_demand_patterns_id", table_name="demand_patterns")
    op.drop_table("demand_patterns")

    op.drop_index("ix_analysis_jobs_status_created_at", table_name="analysis_jobs")
    op.drop_index("ix_analysis_jobs_status", table_name="analysis_jobs")
    op.drop_index("ix_analysis_jobs_job_id", table_name="analysis_jobs")
    op.drop_index("ix_analysis_jobs_id", table_name="analysis_jobs")
    op.drop_table("analysis_jobs")
