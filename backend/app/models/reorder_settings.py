from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Numeric,
    CheckConstraint,
    func,
)
from app.database import Base


class ReorderSettingsRecord(Base):
    __tablename__ = "reorder_settings"
    __table_args__ = (
        CheckConstraint("id = 'global'", name="ck_reorder_settings_singleton"),
        CheckConstraint("analysis_frequency_hours >= 1", name="ck_reorder_settings_frequency_min_1"),
        CheckConstraint(
            "default_confidence_threshold >= 0 AND default_confidence_threshold <= 100",
            name="ck_reorder_settings_confidence_range",
        ),
        CheckConstraint("max_auto_approve_amount >= 0", name="ck_reorder_settings_amount_non_negative"),
    )

    id = Column(String(20), primary_key=True, default="global")
    auto_reorder_enabled = Column(Boolean, nullable=False, default=False)
    analysis_frequency_hours = Column(Integer, nullable=False, default=24)
    default_confidence_threshold = Column(Numeric(5, 2), nullable=False, default=70)
    max_auto_approve_amount = Column(Numeric(14, 2), nullable=False, default=1000)
    notification_email = Column(String(255), nullable=True)
    slack_webhook_url = Column(String(500), nullable=True)
    updated_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
