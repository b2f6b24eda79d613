from erp_obras.core.event_bus import (
    DomainEvent,
    EventBus,
    OrderApproved,
    OrderDelivered,
    OrderRejected,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "OrderApproved",
    "OrderRejected",
    "OrderDelivered",
]
