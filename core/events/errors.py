"""
Ledgerline Events — Errors
==========================
Contract errors are programming errors and surface BEFORE a command
commits. Delivery failures are never raised at all: they are logged
and counted by the DeliveryMonitor.
"""


class EventError(Exception):
    """Base error for the event layer."""
    pass


class InvalidEventTypeFormat(EventError):
    """Event type does not follow entity.subject.action format."""

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            f"Event type '{event_type}' does not follow "
            f"entity.subject.action format."
        )


class UnknownEventType(EventError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Event type '{event_type}' has no declared contract.")


class DuplicateEventContract(EventError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Event type '{event_type}' already has a contract.")


class EventContractViolation(EventError):
    """Context carries keys the event type's contract does not declare."""

    def __init__(self, event_type: str, undeclared: frozenset):
        self.event_type = event_type
        self.undeclared = undeclared
        super().__init__(
            f"Event '{event_type}' context has undeclared keys: "
            f"{sorted(undeclared)}. Events stay lean: only declared, "
            f"stable keys are allowed."
        )


class EventDeliveryError(EventError):
    """Raised by sinks; always caught by the emitter."""
    pass
