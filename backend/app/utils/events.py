"""
Event Bus: Observer Pattern (GoF)

Services publish domain events; handlers subscribed at startup react to them
(today: structured logging). Handler failures are logged and never propagate
back into the publishing service.
"""
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    occurred_at: datetime = field(default_factory=datetime.utcnow, init=False)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


@dataclass
class SuggestionActionEvent(DomainEvent):
    suggestion_id: int = 0
    product_id: int = 0
    action: str = ""
    new_status: str = ""
    user_id: Optional[str] = None


@dataclass
class SuggestionAutoApprovedEvent(DomainEvent):
    suggestion_id: int = 0
    product_id: int = 0
    estimated_cost: str = "0"
    confidence_score: float = 0.0


@dataclass
class PurchaseOrderCreatedEvent(DomainEvent):
    order_number: str = ""
    suggestion_id: int = 0
    product_id: int = 0
    quantity: int = 0
    user_id: Optional[str] = None


@dataclass
class AnalysisJobFinishedEvent(DomainEvent):
    job_id: str = ""
    status: str = ""
    products_count: int = 0
    suggestions_count: int = 0
    failed_count: int = 0
    error: Optional[str] = None


@dataclass
class AnalysisJobsCleanedEvent(DomainEvent):
    retention_days: int = 0
    deleted_jobs: int = 0
    cutoff_iso: str = ""
    user_id: Optional[str] = None


@dataclass
class ReorderSettingsUpdatedEvent(DomainEvent):
    changed_fields: List[str] = field(default_factory=list)
    user_id: Optional[str] = None


@dataclass
class ReorderPolicyChangedEvent(DomainEvent):
    policy_id: int = 0
    scope_type: str = ""
    scope_id: Optional[int] = None
    change: str = ""
    user_id: Optional[str] = None


Handler = Callable[[DomainEvent], None]


class EventBus:

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[DomainEvent], handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers = {}

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            handlers = [
                h
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for h in registered
            ]
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("event_handler_failed event=%s handler=%s", event.name, handler)


class LoggingHandler:
    """Writes every published event to the application log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logging.getLogger("app.events")

    def __call__(self, event: DomainEvent) -> None:
        self._log.info("domain_event name=%s", event.name, extra={"event": event.to_dict()})


_event_bus = EventBus()


def get_event_bus() -> EventBus:
    return _event_bus


def configure_event_bus() -> EventBus:
    bus = get_event_bus()
    bus.clear()
    bus.subscribe(DomainEvent, LoggingHandler())
    return bus
