"""
Analysis Job Repository
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from app.repositories.base import BaseRepository
from app.models.analysis_job import AnalysisJob

ACTIVE_STATUSES = ("started", "running")
TERMINAL_STATUSES = ("completed", "failed")


class AnalysisJobRepository(BaseRepository[AnalysisJob]):

    def __init__(self, db: Session):
        super().__init__(AnalysisJob, db)

    def get_by_job_id(self, job_id: str) -> Optional[AnalysisJob]:
        return self.db.query(AnalysisJob).filter(AnalysisJob.job_id == job_id).first()

    def get_active_for_scope(self, scope: str, target_key: str) -> Optional[AnalysisJob]:
        return (
            self.db.query(AnalysisJob)
            .filter(
                AnalysisJob.scope == scope,
                AnalysisJob.target_key == target_key,
                AnalysisJob.status.in_(ACTIVE_STATUSES),
            )
            .order_by(AnalysisJob.created_at.desc())
            .first()
        )

    def list_recent(self, limit: int = 50) -> List[AnalysisJob]:
        return (
            self.db.query(AnalysisJob)
            .order_by(AnalysisJob.created_at.desc(), AnalysisJob.id.desc())
            .limit(limit)
            .all()
        )

    def list_active_created_before(self, cutoff: datetime) -> List[AnalysisJob]:
        return (
            self.db.query(AnalysisJob)
            .filter(AnalysisJob.status.in_(ACTIVE_STATUSES), AnalysisJob.created_at < cutoff)
            .all()
        )

    def delete_terminal_completed_before(self, cutoff: datetime) -> int:
        query = (
            self.db.query(AnalysisJob)
            .filter(AnalysisJob.status.in_(TERMINAL_STATUSES))
            .filter(AnalysisJob.completed_at.isnot(None))
            .filter(AnalysisJob.completed_at < cutoff)
        )
        deleted = query.count()
        query.delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def get_latest_finished(self, scope: str, target_key: str) -> Optional[AnalysisJob]:
        return (
            self.db.query(AnalysisJob)
            .filter(
                AnalysisJob.scope == scope,
                AnalysisJob.target_key == target_key,
                AnalysisJob.status == "completed",
            )
            .order_by(AnalysisJob.completed_at.desc())
            .first()
        )
