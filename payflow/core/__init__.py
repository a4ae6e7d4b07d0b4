from payflow.core.event_bus import (
    DomainEvent,
    EventBus,
    RequestStatusChanged,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "RequestStatusChanged",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
