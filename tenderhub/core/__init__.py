from tenderhub.core.event_bus import (
    BidStatusChanged,
    BidSubmitted,
    BidWithdrawn,
    DomainEvent,
    EventBus,
    TenderCreated,
    TenderStatusChanged,
    TenderUpdated,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "TenderCreated",
    "TenderUpdated",
    "TenderStatusChanged",
    "BidSubmitted",
    "BidStatusChanged",
    "BidWithdrawn",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
