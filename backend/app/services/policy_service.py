"""
Policy Service: Service Layer (SRP / DIP)

``resolve_policy`` picks the effective policy for a product by walking an
ordered list of scope matchers: product → category → supplier → global.
The first active match wins. The global policy must always exist; losing it
is a configuration error that fails loudly.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    PolicyResolutionFailure,
)
from app.models.reorder_policy import ReorderPolicy
from app.repositories.reorder_policy_repository import ReorderPolicyRepository
from app.schemas.reorder import ReorderPolicyCreate, ReorderPolicyUpdate
from app.utils.events import get_event_bus, ReorderPolicyChangedEvent

logger = logging.getLogger(__name__)

SCOPE_TYPES = ("product", "category", "supplier", "global")


@dataclass(frozen=True)
class PolicyScope:
    scope_type: str
    scope_id: Optional[int] = None

    def matches(self, policy) -> bool:
        if policy.scope_type != self.scope_type:
            return False
        return self.scope_type == "global" or policy.scope_id == self.scope_id


@dataclass(frozen=True)
class PolicySnapshot:
    """Detached copy of a policy row, safe to share across worker threads."""

    id: Optional[int]
    scope_type: str
    scope_id: Optional[int]
    min_stock_multiplier: Decimal
    safety_stock_days: int
    max_order_quantity: Optional[int]
    preferred_order_quantity: Optional[int]
    review_frequency_days: int
    auto_approve_threshold: Optional[Decimal]
    is_active: bool = True

    @classmethod
    def from_model(cls, policy: ReorderPolicy) -> "PolicySnapshot":
        return cls(
            id=policy.id,
            scope_type=policy.scope_type,
            scope_id=policy.scope_id,
            min_stock_multiplier=Decimal(str(policy.min_stock_multiplier)),
            safety_stock_days=int(policy.safety_stock_days),
            max_order_quantity=policy.max_order_quantity,
            preferred_order_quantity=policy.preferred_order_quantity,
            review_frequency_days=int(policy.review_frequency_days),
            auto_approve_threshold=(
                Decimal(str(policy.auto_approve_threshold)) if policy.auto_approve_threshold is not None else None
            ),
            is_active=bool(policy.is_active),
        )


def candidate_scopes(product_id: int, category_id: Optional[int], supplier_id: Optional[int]) -> List[PolicyScope]:
    scopes = [PolicyScope("product", product_id)]
    if category_id is not None:
        scopes.append(PolicyScope("category", category_id))
    if supplier_id is not None:
        scopes.append(PolicyScope("supplier", supplier_id))
    scopes.append(PolicyScope("global"))
    return scopes


def resolve_policy(
    policies: Iterable,
    product_id: int,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
):
    active = [p for p in policies if p.is_active]
    for scope in candidate_scopes(product_id, category_id, supplier_id):
        for policy in active:
            if scope.matches(policy):
                return policy
    raise PolicyResolutionFailure(
        "No active global reorder policy is configured; every product must resolve to a policy",
        {"product_id": product_id},
    )


class PolicyService:

    def __init__(self, db: Session):
        self._repo = ReorderPolicyRepository(db)
        self._db = db
        self._bus = get_event_bus()

    def list_policies(self, active_only: bool = True) -> List[ReorderPolicy]:
        return self._repo.list_filtered(active_only=active_only)

    def get_policy(self, policy_id: int) -> ReorderPolicy:
        policy = self._repo.get_by_id(policy_id)
        if not policy:
            raise EntityNotFoundException("ReorderPolicy", policy_id)
        return policy

    def resolve_for_product(self, product_id: int, category_id: Optional[int], supplier_id: Optional[int]):
        return resolve_policy(self._repo.list_filtered(active_only=True), product_id, category_id, supplier_id)

    def create_policy(self, data: ReorderPolicyCreate, user_id: Optional[str] = None) -> ReorderPolicy:
        # One active policy per scope: the new policy supersedes the old one.
        superseded = self._repo.get_active_for_scope(data.scope_type, data.scope_id)
        for previous in superseded:
            self._repo.update(previous, {"is_active": False}, commit=False)

        policy = ReorderPolicy(**data.model_dump(), is_active=True, created_by=user_id)
        self._repo.add(policy)
        self._db.commit()
        self._db.refresh(policy)

        self._publish(policy, "created", user_id)
        logger.info(
            "reorder_policy_created policy_id=%s scope_type=%s scope_id=%s superseded=%s",
            policy.id,
            policy.scope_type,
            policy.scope_id,
            len(superseded),
        )
        return policy

    def update_policy(self, policy_id: int, data: ReorderPolicyUpdate, user_id: Optional[str] = None) -> ReorderPolicy:
        policy = self.get_policy(policy_id)
        updates = data.model_dump(exclude_unset=True)

        preferred = updates.get("preferred_order_quantity", policy.preferred_order_quantity)
        maximum = updates.get("max_order_quantity", policy.max_order_quantity)
        if preferred is not None and maximum is not None and preferred > maximum:
            raise BusinessRuleViolationException("preferred_order_quantity cannot exceed max_order_quantity")

        if updates.get("is_active") and not policy.is_active:
            for previous in self._repo.get_active_for_scope(policy.scope_type, policy.scope_id):
                if previous.id != policy.id:
                    self._repo.update(previous, {"is_active": False}, commit=False)

        policy = self._repo.update(policy, updates)
        self._publish(policy, "updated", user_id)
        return policy

    def deactivate_policy(self, policy_id: int, user_id: Optional[str] = None) -> ReorderPolicy:
        policy = self.get_policy(policy_id)
        if not policy.is_active:
            return policy
        policy = self._repo.update(policy, {"is_active": False})
        if policy.scope_type == "global":
            logger.warning("global_reorder_policy_deactivated policy_id=%s user_id=%s", policy.id, user_id)
        self._publish(policy, "deactivated", user_id)
        return policy

    def ensure_global_policy(self) -> ReorderPolicy:
        existing = self._repo.get_active_for_scope("global", None)
        if existing:
            return existing[0]
        policy = self._repo.create(
            ReorderPolicy(
                scope_type="global",
                scope_id=None,
                min_stock_multiplier=Decimal(str(settings.DEFAULT_POLICY_MIN_STOCK_MULTIPLIER)),
                safety_stock_days=settings.DEFAULT_POLICY_SAFETY_STOCK_DAYS,
                review_frequency_days=settings.DEFAULT_POLICY_REVIEW_FREQUENCY_DAYS,
                is_active=True,
                created_by="system",
            )
        )
        logger.info("global_reorder_policy_seeded policy_id=%s", policy.id)
        return policy

    def _publish(self, policy: ReorderPolicy, change: str, user_id: Optional[str]) -> None:
        self._bus.publish(ReorderPolicyChangedEvent(
            policy_id=policy.id,
            scope_type=policy.scope_type,
            scope_id=policy.scope_id,
            change=change,
            user_id=user_id,
        ))
