from marketplace.core.event_bus import (
    DomainEvent,
    EventBus,
    QuotationResolved,
    QuotationSubmitted,
    ServiceRequestCreated,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "ServiceRequestCreated",
    "QuotationSubmitted",
    "QuotationResolved",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
