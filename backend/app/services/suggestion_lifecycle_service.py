"""
Suggestion Lifecycle Service: Service Layer (SRP / DIP)

Owns the suggestion state machine:

    pending ──approve/modify/auto──▶ approved ──convert──▶ ordered
       └──────reject──────────────▶ rejected

A pending suggestion whose ``expires_at`` has passed is implicitly invalid:
it drops out of pending queries and can no longer be acted on, but the row
stays for audit. Every disposition writes exactly one ``ReorderHistory`` row
in the same transaction as the status change.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidStateTransitionException,
    NimbusException,
)
from app.models.purchase_order import PurchaseOrder
from app.models.reorder_history import ReorderHistory
from app.models.reorder_suggestion import ReorderSuggestion
from app.repositories.catalog_repository import CatalogReader
from app.repositories.purchase_order_repository import PurchaseOrderRepository
from app.repositories.reorder_history_repository import ReorderHistoryRepository
from app.repositories.reorder_suggestion_repository import ReorderSuggestionRepository
from app.services.reorder_settings_store import (
    ReorderSettingsSnapshot,
    ReorderSettingsStore,
    reorder_settings_store,
)
from app.services.suggestion_generator import URGENCY_LEVELS, SuggestionDraft
from app.utils.events import (
    get_event_bus,
    PurchaseOrderCreatedEvent,
    SuggestionActionEvent,
    SuggestionAutoApprovedEvent,
)

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "reject", "modify")
HISTORY_ACTION = {"approve": "approved", "reject": "rejected", "modify": "modified"}
OUTCOME_FIELDS = ("stockout_occurred", "overstock_occurred", "accuracy_score", "actual_quantity_ordered", "actual_cost")
SYSTEM_USER = "system"
CENTS = Decimal("0.01")


class SuggestionLifecycleService:

    def __init__(self, db: Session, settings_store: Optional[ReorderSettingsStore] = None):
        self._db = db
        self._repo = ReorderSuggestionRepository(db)
        self._history_repo = ReorderHistoryRepository(db)
        self._order_repo = PurchaseOrderRepository(db)
        self._catalog = CatalogReader(db)
        self._settings_store = settings_store or reorder_settings_store
        self._bus = get_event_bus()

    # ── Queries ─────────────────────────────────────────────────────────────

    def get_suggestion(self, suggestion_id: int) -> ReorderSuggestion:
        suggestion = self._repo.get_by_id(suggestion_id)
        if not suggestion:
            raise EntityNotFoundException("ReorderSuggestion", suggestion_id)
        return suggestion

    def list_suggestions(
        self,
        status: Optional[str] = "pending",
        urgency: Optional[str] = None,
        category_id: Optional[int] = None,
        supplier_id: Optional[int] = None,
        min_confidence: Optional[float] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        suggestions = self._repo.list_filtered(
            now=now or datetime.utcnow(),
            status=status,
            urgency=urgency,
            category_id=category_id,
            supplier_id=supplier_id,
            min_confidence=min_confidence,
            date_from=date_from,
            date_to=date_to,
        )
        return {"suggestions": suggestions, "summary": self.summarize(suggestions)}

    @staticmethod
    def summarize(suggestions: List[ReorderSuggestion]) -> Dict[str, Any]:
        counts = {level: 0 for level in URGENCY_LEVELS}
        total_cost = Decimal("0")
        confidence_total = Decimal("0")
        for s in suggestions:
            if s.urgency in counts:
                counts[s.urgency] += 1
            total_cost += Decimal(str(s.estimated_cost))
            confidence_total += Decimal(str(s.confidence_score))
        total = len(suggestions)
        return {
            "total": total,
            "critical_count": counts["critical"],
            "high_count": counts["high"],
            "medium_count": counts["medium"],
            "low_count": counts["low"],
            "total_estimated_cost": total_cost.quantize(CENTS),
            "avg_confidence": round(float(confidence_total / total), 2) if total else 0.0,
        }

    def list_history(
        self,
        product_id: Optional[int] = None,
        suggestion_id: Optional[int] = None,
        action_taken: Optional[str] = None,
        limit: int = 100,
    ) -> List[ReorderHistory]:
        return self._history_repo.list_filtered(
            product_id=product_id,
            suggestion_id=suggestion_id,
            action_taken=action_taken,
            limit=limit,
        )

    def list_auto_orders(
        self,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[PurchaseOrder]:
        return self._order_repo.list_auto_generated(status=status, date_from=date_from, date_to=date_to)

    # ── Analysis write path ─────────────────────────────────────────────────

    def upsert(self, draft: SuggestionDraft, policy, now: Optional[datetime] = None) -> ReorderSuggestion:
        """Refresh the product's live pending suggestion in place, or insert a new one."""
        now = now or datetime.utcnow()
        values = {
            "supplier_id": draft.supplier_id,
            "suggested_quantity": draft.suggested_quantity,
            "estimated_cost": draft.estimated_cost,
            "urgency": draft.urgency,
            "confidence_score": Decimal(str(round(draft.confidence_score, 2))),
            "reason": draft.reason,
            "lead_time_days": draft.lead_time_days,
            "created_by_ai": True,
            "ai_model_version": settings.SUGGESTION_MODEL_VERSION,
        }

        existing = self._repo.get_active_pending_by_product(draft.product_id, now)
        if existing:
            values["updated_at"] = now
            suggestion = self._repo.update(existing, values)
            logger.info("reorder_suggestion_refreshed suggestion_id=%s product_id=%s", suggestion.id, draft.product_id)
            return suggestion

        suggestion = self._repo.create(
            ReorderSuggestion(
                product_id=draft.product_id,
                status="pending",
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(days=int(policy.review_frequency_days)),
                **values,
            )
        )
        logger.info(
            "reorder_suggestion_created suggestion_id=%s product_id=%s urgency=%s quantity=%s",
            suggestion.id,
            suggestion.product_id,
            suggestion.urgency,
            suggestion.suggested_quantity,
        )
        return suggestion

    def auto_approve_check(
        self,
        suggestion: ReorderSuggestion,
        settings_snapshot: Optional[ReorderSettingsSnapshot] = None,
        policy=None,
        low_confidence: bool = False,
        now: Optional[datetime] = None,
    ) -> bool:
        snapshot = settings_snapshot or self._settings_store.get()
        if not snapshot.auto_reorder_enabled:
            return False
        if suggestion.status != "pending" or low_confidence:
            return False

        threshold = snapshot.default_confidence_threshold
        if policy is not None and policy.auto_approve_threshold is not None:
            threshold = policy.auto_approve_threshold
        if Decimal(str(suggestion.confidence_score)) < Decimal(str(threshold)):
            return False
        if Decimal(str(suggestion.estimated_cost)) > Decimal(str(snapshot.max_auto_approve_amount)):
            return False

        now = now or datetime.utcnow()
        self._history_repo.add(self._history_row(
            suggestion,
            action_taken="auto_ordered",
            reason=f"Auto-approved: confidence {suggestion.confidence_score} >= {threshold}",
            user_id=SYSTEM_USER,
            actual_quantity=suggestion.suggested_quantity,
            actual_cost=suggestion.estimated_cost,
            now=now,
        ))
        self._repo.update(suggestion, {"status": "approved", "updated_at": now}, commit=False)
        self._db.commit()
        self._db.refresh(suggestion)

        self._bus.publish(SuggestionAutoApprovedEvent(
            suggestion_id=suggestion.id,
            product_id=suggestion.product_id,
            estimated_cost=str(suggestion.estimated_cost),
            confidence_score=float(suggestion.confidence_score),
        ))
        logger.info(
            "reorder_suggestion_auto_approved suggestion_id=%s cost=%s confidence=%s",
            suggestion.id,
            suggestion.estimated_cost,
            suggestion.confidence_score,
        )
        return True

    # ── Manual dispositions ─────────────────────────────────────────────────

    def act(
        self,
        suggestion_id: int,
        action: str,
        reason: Optional[str] = None,
        modifications: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReorderSuggestion:
        if action not in ACTIONS:
            raise BusinessRuleViolationException(f"Unsupported action '{action}'", {"allowed": list(ACTIONS)})
        now = now or datetime.utcnow()
        suggestion = self.get_suggestion(suggestion_id)
        self._ensure_actionable(suggestion, action, now)

        if action == "reject":
            if not reason or not reason.strip():
                raise BusinessRuleViolationException("A reason is required to reject a suggestion")
            history = self._history_row(suggestion, "rejected", reason, user_id, now=now)
            updates: Dict[str, Any] = {"status": "rejected"}
        elif action == "modify":
            updates = self._modification_updates(suggestion, modifications or {})
            history = self._history_row(
                suggestion,
                "modified",
                reason,
                user_id,
                actual_quantity=updates.get("suggested_quantity", suggestion.suggested_quantity),
                actual_cost=updates.get("estimated_cost", suggestion.estimated_cost),
                now=now,
            )
            updates["status"] = "approved"
        else:
            history = self._history_row(
                suggestion,
                "approved",
                reason,
                user_id,
                actual_quantity=suggestion.suggested_quantity,
                actual_cost=suggestion.estimated_cost,
                now=now,
            )
            updates = {"status": "approved"}

        updates["updated_at"] = now
        try:
            self._history_repo.add(history)
            self._repo.update(suggestion, updates, commit=False)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        self._db.refresh(suggestion)

        self._bus.publish(SuggestionActionEvent(
            suggestion_id=suggestion.id,
            product_id=suggestion.product_id,
            action=action,
            new_status=suggestion.status,
            user_id=user_id,
        ))
        logger.info(
            "reorder_suggestion_actioned suggestion_id=%s action=%s status=%s user_id=%s",
            suggestion.id,
            action,
            suggestion.status,
            user_id,
        )
        return suggestion

    def bulk_act(
        self,
        ids: List[int],
        action: str,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        successful = 0
        errors: List[Dict[str, Any]] = []
        for suggestion_id in ids:
            try:
                self.act(suggestion_id, action, reason=reason, user_id=user_id)
                successful += 1
            except NimbusException as exc:
                self._db.rollback()
                errors.append({"id": suggestion_id, "code": exc.code, "message": exc.message})
                logger.warning(
                    "bulk_action_item_failed suggestion_id=%s action=%s code=%s",
                    suggestion_id,
                    action,
                    exc.code,
                )
        return {"successful": successful, "failed": len(errors), "total": len(ids), "errors": errors}

    def convert_to_order(self, suggestion_id: int, user_id: Optional[str] = None) -> PurchaseOrder:
        suggestion = self.get_suggestion(suggestion_id)
        if suggestion.status != "approved":
            raise InvalidStateTransitionException("ReorderSuggestion", suggestion_id, suggestion.status, "order")

        now = datetime.utcnow()
        order = PurchaseOrder(
            order_number=f"AUTO-{now:%Y%m%d%H%M%S}-{suggestion.id}",
            suggestion_id=suggestion.id,
            product_id=suggestion.product_id,
            supplier_id=suggestion.supplier_id,
            quantity=suggestion.suggested_quantity,
            total=suggestion.estimated_cost,
            status="pending",
            auto_generated=True,
            created_by=user_id,
            created_at=now,
        )
        try:
            self._order_repo.add(order)
            self._repo.update(suggestion, {"status": "ordered", "updated_at": now}, commit=False)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        self._db.refresh(order)

        self._bus.publish(PurchaseOrderCreatedEvent(
            order_number=order.order_number,
            suggestion_id=suggestion.id,
            product_id=suggestion.product_id,
            quantity=order.quantity,
            user_id=user_id,
        ))
        return order

    # ── Reconciliation ──────────────────────────────────────────────────────

    def record_outcome(self, history_id: int, outcome: Dict[str, Any]) -> ReorderHistory:
        history = self._history_repo.get_by_id(history_id)
        if not history:
            raise EntityNotFoundException("ReorderHistory", history_id)
        illegal = set(outcome) - set(OUTCOME_FIELDS)
        if illegal:
            raise BusinessRuleViolationException(
                "History records are append-only; only outcome fields may be updated",
                {"fields": sorted(illegal)},
            )
        updates = {k: v for k, v in outcome.items() if v is not None}
        updates["outcome_recorded_at"] = datetime.utcnow()
        return self._history_repo.update(history, updates)

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _ensure_actionable(self, suggestion: ReorderSuggestion, action: str, now: datetime) -> None:
        if suggestion.status != "pending":
            raise InvalidStateTransitionException("ReorderSuggestion", suggestion.id, suggestion.status, action)
        if suggestion.expires_at is not None and suggestion.expires_at <= now:
            raise InvalidStateTransitionException("ReorderSuggestion", suggestion.id, "expired", action)

    def _modification_updates(self, suggestion: ReorderSuggestion, modifications: Dict[str, Any]) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        quantity = modifications.get("suggested_quantity")
        if quantity is not None:
            if quantity <= 0:
                raise BusinessRuleViolationException("suggested_quantity must be positive")
            updates["suggested_quantity"] = int(quantity)
            updates["estimated_cost"] = (self._unit_price(suggestion) * int(quantity)).quantize(
                CENTS, rounding=ROUND_HALF_UP
            )

        supplier_id = modifications.get("supplier_id")
        if supplier_id is not None and supplier_id != suggestion.supplier_id:
            self._catalog.get_supplier(supplier_id)
            updates["supplier_id"] = supplier_id
            updates["lead_time_days"] = self._catalog.read_supplier_lead_time(supplier_id)

        if not updates:
            raise BusinessRuleViolationException("modify requires a new suggested_quantity or supplier_id")
        return updates

    def _unit_price(self, suggestion: ReorderSuggestion) -> Decimal:
        if suggestion.suggested_quantity:
            return Decimal(str(suggestion.estimated_cost)) / Decimal(suggestion.suggested_quantity)
        return self._catalog.read_unit_price(suggestion.product_id)

    @staticmethod
    def _history_row(
        suggestion: ReorderSuggestion,
        action_taken: str,
        reason: Optional[str],
        user_id: Optional[str],
        actual_quantity: Optional[int] = None,
        actual_cost: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> ReorderHistory:
        return ReorderHistory(
            suggestion_id=suggestion.id,
            product_id=suggestion.product_id,
            suggested_quantity=suggestion.suggested_quantity,
            suggested_cost=suggestion.estimated_cost,
            actual_quantity_ordered=actual_quantity,
            actual_cost=actual_cost,
            action_taken=action_taken,
            action_reason=reason,
            stockout_occurred=False,
            overstock_occurred=False,
            user_id=user_id,
            created_at=now or datetime.utcnow(),
        )
