import dataclasses
import threading
from decimal import Decimal

import pytest

from app.core.exceptions import BusinessRuleViolationException
from app.database import SessionLocal
from app.models.reorder_settings import ReorderSettingsRecord
from app.services.reorder_settings_store import (
    ReorderSettingsSnapshot,
    ReorderSettingsStore,
    validate_snapshot,
)


@pytest.fixture
def store():
    return ReorderSettingsStore(session_factory=SessionLocal)


class TestReorderSettingsStore:

    def test_defaults_when_nothing_persisted(self, store):
        snapshot = store.get()

        assert snapshot.auto_reorder_enabled is False
        assert snapshot.analysis_frequency_hours == 24
        assert snapshot.default_confidence_threshold == 70.0
        assert snapshot.max_auto_approve_amount == Decimal("1000.0")
        assert snapshot.updated_by is None

    def test_update_persists_and_survives_reload(self, db, store):
        store.update(
            {"auto_reorder_enabled": True, "default_confidence_threshold": 85, "max_auto_approve_amount": "500"},
            user_id="planner-1",
        )

        record = db.get(ReorderSettingsRecord, "global")
        assert record.auto_reorder_enabled is True
        assert record.updated_by == "planner-1"

        reloaded = ReorderSettingsStore(session_factory=SessionLocal).load()
        assert reloaded.auto_reorder_enabled is True
        assert reloaded.default_confidence_threshold == 85.0
        assert reloaded.max_auto_approve_amount == Decimal("500")
        assert reloaded.analysis_frequency_hours == 24

    def test_partial_update_keeps_other_fields(self, store):
        store.update({"notification_email": "ops@example.com"})
        store.update({"analysis_frequency_hours": 6})

        snapshot = store.get()
        assert snapshot.notification_email == "ops@example.com"
        assert snapshot.analysis_frequency_hours == 6

    def test_invalid_update_leaves_snapshot_untouched(self, db, store):
        before = store.get()
        with pytest.raises(BusinessRuleViolationException):
            store.update({"default_confidence_threshold": 150})
        with pytest.raises(BusinessRuleViolationException):
            store.update({"analysis_frequency_hours": 0})

        assert store.get() is before
        assert db.get(ReorderSettingsRecord, "global") is None

    @pytest.mark.parametrize("field", [
        "auto_reorder_enabled",
        "analysis_frequency_hours",
        "default_confidence_threshold",
        "max_auto_approve_amount",
    ])
    def test_null_for_required_field_is_rejected(self, db, store, field):
        before = store.get()

        with pytest.raises(BusinessRuleViolationException):
            store.update({field: None})

        assert store.get() is before
        assert db.get(ReorderSettingsRecord, "global") is None

    def test_malformed_amount_is_rejected(self, store):
        with pytest.raises(BusinessRuleViolationException):
            store.update({"max_auto_approve_amount": "lots"})
        with pytest.raises(BusinessRuleViolationException):
            store.update({"max_auto_approve_amount": "NaN"})

    def test_snapshot_validation_checks_types(self):
        good = ReorderSettingsSnapshot.defaults()
        validate_snapshot(good)

        for bad in (
            dataclasses.replace(good, auto_reorder_enabled=None),
            dataclasses.replace(good, analysis_frequency_hours="6"),
            dataclasses.replace(good, analysis_frequency_hours=True),
            dataclasses.replace(good, default_confidence_threshold=None),
            dataclasses.replace(good, max_auto_approve_amount=500),
        ):
            with pytest.raises(BusinessRuleViolationException):
                validate_snapshot(bad)

    def test_optional_contacts_can_be_cleared(self, store):
        store.update({"notification_email": "ops@example.com"})

        snapshot = store.update({"notification_email": None})

        assert snapshot.notification_email is None

    def test_unloaded_store_updates_on_top_of_persisted_row(self, store):
        store.update({
            "auto_reorder_enabled": True,
            "analysis_frequency_hours": 6,
            "max_auto_approve_amount": "500",
        })
        other_worker = ReorderSettingsStore(session_factory=SessionLocal)

        other_worker.update({"notification_email": "ops@example.com"})

        reloaded = ReorderSettingsStore(session_factory=SessionLocal).load()
        assert reloaded.auto_reorder_enabled is True
        assert reloaded.analysis_frequency_hours == 6
        assert reloaded.max_auto_approve_amount == Decimal("500")
        assert reloaded.notification_email == "ops@example.com"

    def test_update_after_reset_keeps_persisted_fields(self, store):
        store.update({"auto_reorder_enabled": True})
        store.reset()

        snapshot = store.update({"analysis_frequency_hours": 12})

        assert snapshot.auto_reorder_enabled is True
        assert snapshot.analysis_frequency_hours == 12

    def test_unknown_fields_are_rejected(self, store):
        with pytest.raises(BusinessRuleViolationException):
            store.update({"auto_reorder": True})
        with pytest.raises(BusinessRuleViolationException):
            store.update({"updated_by": "someone-else"})

    def test_snapshots_are_immutable(self, store):
        with pytest.raises(dataclasses.FrozenInstanceError):
            store.get().auto_reorder_enabled = True

    def test_readers_never_see_half_applied_updates(self, store):
        store.update({"auto_reorder_enabled": False, "default_confidence_threshold": 10})
        consistent = {(False, 10.0), (True, 90.0)}
        seen = set()
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                snapshot = store.get()
                seen.add((snapshot.auto_reorder_enabled, snapshot.default_confidence_threshold))

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for i in range(10):
            if i % 2 == 0:
                store.update({"auto_reorder_enabled": True, "default_confidence_threshold": 90})
            else:
                store.update({"auto_reorder_enabled": False, "default_confidence_threshold": 10})
        stop.set()
        for t in threads:
            t.join()

        assert seen <= consistent
