"""single active policy per scope and single in-flight job per scope

Revision ID: 20261003_0004
Revises: 20261002_0003
Create Date: 2026-10-03 14:20:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261003_0004"
down_revision = "20261002_0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_reorder_policies_active_scope",
        "reorder_policies",
        ["scope_type", "scope_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "uq_analysis_jobs_inflight_scope",
        "analysis_jobs",
        ["scope", "target_key"],
        unique=True,
        sqlite_where=sa.text("status IN ('started', 'running')"),
        postgresql_where=sa.text("status IN ('started', 'running')"),
    )


def downgrade() -> None:
    op.drop_index("uq_analysis_jobs_inflight_scope", table_name="analysis_jobs")
    op.drop_index("uq_reorder_policies_active_scope", table_name="reorder_policies")
