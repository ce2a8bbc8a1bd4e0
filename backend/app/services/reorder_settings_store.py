"""
Reorder Settings Store

Process-wide reorder settings held as an immutable snapshot. Readers take the
current reference and never see a half-applied update; writers validate,
persist, then swap the reference under a single writer lock.
"""
import logging
import threading
from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import BusinessRuleViolationException
from app.database import SessionLocal
from app.models.reorder_settings import ReorderSettingsRecord
from app.utils.events import get_event_bus, ReorderSettingsUpdatedEvent

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = "global"


@dataclass(frozen=True)
class ReorderSettingsSnapshot:
    auto_reorder_enabled: bool
    analysis_frequency_hours: int
    default_confidence_threshold: float
    max_auto_approve_amount: Decimal
    notification_email: Optional[str] = None
    slack_webhook_url: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def defaults(cls) -> "ReorderSettingsSnapshot":
        return cls(
            auto_reorder_enabled=settings.DEFAULT_SETTINGS_AUTO_REORDER_ENABLED,
            analysis_frequency_hours=settings.DEFAULT_SETTINGS_ANALYSIS_FREQUENCY_HOURS,
            default_confidence_threshold=float(settings.DEFAULT_SETTINGS_CONFIDENCE_THRESHOLD),
            max_auto_approve_amount=Decimal(str(settings.DEFAULT_SETTINGS_MAX_AUTO_APPROVE_AMOUNT)),
        )

    @classmethod
    def from_record(cls, record: ReorderSettingsRecord) -> "ReorderSettingsSnapshot":
        return cls(
            auto_reorder_enabled=bool(record.auto_reorder_enabled),
            analysis_frequency_hours=int(record.analysis_frequency_hours),
            default_confidence_threshold=float(record.default_confidence_threshold),
            max_auto_approve_amount=Decimal(str(record.max_auto_approve_amount)),
            notification_email=record.notification_email,
            slack_webhook_url=record.slack_webhook_url,
            updated_by=record.updated_by,
            updated_at=record.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


REQUIRED_FIELDS = (
    "auto_reorder_enabled",
    "analysis_frequency_hours",
    "default_confidence_threshold",
    "max_auto_approve_amount",
)


def validate_snapshot(snapshot: ReorderSettingsSnapshot) -> None:
    if not isinstance(snapshot.auto_reorder_enabled, bool):
        raise BusinessRuleViolationException("auto_reorder_enabled must be a boolean")
    if isinstance(snapshot.analysis_frequency_hours, bool) or not isinstance(snapshot.analysis_frequency_hours, int):
        raise BusinessRuleViolationException("analysis_frequency_hours must be an integer")
    if not isinstance(snapshot.default_confidence_threshold, float):
        raise BusinessRuleViolationException("default_confidence_threshold must be a number")
    if not isinstance(snapshot.max_auto_approve_amount, Decimal) or not snapshot.max_auto_approve_amount.is_finite():
        raise BusinessRuleViolationException("max_auto_approve_amount must be a finite amount")
    if snapshot.analysis_frequency_hours < 1:
        raise BusinessRuleViolationException("analysis_frequency_hours must be at least 1")
    if not 0 <= snapshot.default_confidence_threshold <= 100:
        raise BusinessRuleViolationException("default_confidence_threshold must be between 0 and 100")
    if snapshot.max_auto_approve_amount < 0:
        raise BusinessRuleViolationException("max_auto_approve_amount must not be negative")


class ReorderSettingsStore:

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._snapshot: Optional[ReorderSettingsSnapshot] = None
        self._write_lock = threading.Lock()
        self._bus = get_event_bus()

    def load(self) -> ReorderSettingsSnapshot:
        with self._write_lock:
            snapshot, persisted = self._read_persisted()
            self._snapshot = snapshot
        logger.info(
            "reorder_settings_loaded auto_reorder_enabled=%s persisted=%s",
            snapshot.auto_reorder_enabled,
            persisted,
        )
        return snapshot

    def _read_persisted(self) -> Tuple[ReorderSettingsSnapshot, bool]:
        db = self._session_factory()
        try:
            record = db.get(ReorderSettingsRecord, SETTINGS_ROW_ID)
            if record is None:
                return ReorderSettingsSnapshot.defaults(), False
            return ReorderSettingsSnapshot.from_record(record), True
        finally:
            db.close()

    def get(self) -> ReorderSettingsSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            snapshot = self.load()
        return snapshot

    def update(self, updates: Dict[str, Any], user_id: Optional[str] = None) -> ReorderSettingsSnapshot:
        allowed = {f.name for f in fields(ReorderSettingsSnapshot)} - {"updated_by", "updated_at"}
        unknown = set(updates) - allowed
        if unknown:
            raise BusinessRuleViolationException(f"Unknown settings fields: {', '.join(sorted(unknown))}")
        cleared = sorted(name for name in REQUIRED_FIELDS if name in updates and updates[name] is None)
        if cleared:
            raise BusinessRuleViolationException(f"Settings fields cannot be null: {', '.join(cleared)}")
        normalized = self._normalize(updates)

        with self._write_lock:
            # an unloaded store must build on the persisted row, not on defaults
            current = self._snapshot or self._read_persisted()[0]
            candidate = replace(current, **normalized, updated_by=user_id, updated_at=datetime.utcnow())
            validate_snapshot(candidate)

            db = self._session_factory()
            try:
                record = db.get(ReorderSettingsRecord, SETTINGS_ROW_ID)
                if record is None:
                    record = ReorderSettingsRecord(id=SETTINGS_ROW_ID)
                    db.add(record)
                for name, value in candidate.to_dict().items():
                    setattr(record, name, value)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

            self._snapshot = candidate

        self._bus.publish(ReorderSettingsUpdatedEvent(changed_fields=sorted(updates), user_id=user_id))
        logger.info("reorder_settings_updated fields=%s user_id=%s", ",".join(sorted(updates)), user_id)
        return candidate

    @staticmethod
    def _normalize(updates: Dict[str, Any]) -> Dict[str, Any]:
        normalized = dict(updates)
        try:
            if "max_auto_approve_amount" in normalized:
                normalized["max_auto_approve_amount"] = Decimal(str(normalized["max_auto_approve_amount"]))
            if "default_confidence_threshold" in normalized:
                normalized["default_confidence_threshold"] = float(normalized["default_confidence_threshold"])
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise BusinessRuleViolationException(f"Invalid settings value: {exc}") from exc
        return normalized

    def reset(self) -> None:
        with self._write_lock:
            self._snapshot = None


reorder_settings_store = ReorderSettingsStore()
