from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Tuple, Type

from erp_obras.domain.models import MaterialOrder, OrderQuote
from erp_obras.observability import observe_domain_event_emitted


EventHandler = Callable[["DomainEvent"], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=_utc_now)
    workspace_id: str = ""

    def __post_init__(self) -> None:
        normalized_event_id = str(self.event_id or "").strip() or uuid.uuid4().hex
        normalized_occurred_at = self.occurred_at if isinstance(self.occurred_at, datetime) else _utc_now()
        if normalized_occurred_at.tzinfo is None:
            normalized_occurred_at = normalized_occurred_at.replace(tzinfo=timezone.utc)

        object.__setattr__(self, "event_id", normalized_event_id)
        object.__setattr__(self, "occurred_at", normalized_occurred_at.astimezone(timezone.utc))
        object.__setattr__(self, "workspace_id", str(self.workspace_id or "").strip() or "unknown")


@dataclass(frozen=True, kw_only=True)
class OrderApproved(DomainEvent):
    order: MaterialOrder
    quote: OrderQuote


@dataclass(frozen=True, kw_only=True)
class OrderRejected(DomainEvent):
    order_id: str
    from_status: str


@dataclass(frozen=True, kw_only=True)
class OrderDelivered(DomainEvent):
    order_id: str


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DomainEvent], List[Tuple[EventHandler, bool]]] = {}
        self._logger = logging.getLogger("erp_obras")

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler, *, propagate: bool = False) -> None:
        """Register `handler`; with `propagate` its failure aborts the publisher."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append((handler, propagate))

    def publish(self, event: DomainEvent) -> None:
        observe_domain_event_emitted(type(event).__name__)
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler, propagate in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                self._logger.exception(
                    "event_handler_failed",
                    extra={"event_type": type(event).__name__, "event_id": event.event_id, "propagated": propagate},
                )
                if propagate:
                    raise

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
