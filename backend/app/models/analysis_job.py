from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    CheckConstraint,
    Index,
    func,
    text,
)
from app.database import Base


class AnalysisJob(Base):
    __tablename__ = "analysis_jobs"
    __table_args__ = (
        CheckConstraint(
            "status IN ('started', 'running', 'completed', 'failed')",
            name="ck_analysis_jobs_status",
        ),
        CheckConstraint(
            "scope IN ('all', 'category', 'supplier', 'product')",
            name="ck_analysis_jobs_scope",
        ),
        Index("ix_analysis_jobs_status_created_at", "status", "created_at"),
        Index(
            "uq_analysis_jobs_inflight_scope",
            "scope",
            "target_key",
            unique=True,
            sqlite_where=text("status IN ('started', 'running')"),
            postgresql_where=text("status IN ('started', 'running')"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(64), unique=True, index=True, nullable=False)
    scope = Column(String(20), nullable=False)
    target_id = Column(Integer, nullable=True)
    # target_id or "*" so the in-flight index also covers scope-wide jobs
    target_key = Column(String(32), nullable=False)
    urgency_only = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, index=True)
    requested_by = Column(String(64), nullable=True)

    products_count = Column(Integer, nullable=True)
    processed_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    suggestions_count = Column(Integer, nullable=True)
    auto_approved_count = Column(Integer, nullable=False, default=0)

    estimated_completion = Column(DateTime, nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
