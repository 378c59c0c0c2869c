"""
Event-specific error types.

All errors inherit from EventError for easy catching.
"""


class EventError(Exception):
    """Base exception for all event-related failures."""
    pass


class InvalidCauseError(EventError):
    """Raised when a cause cannot be attached to an event."""
    
    def __init__(self, message: str, event_id: str = ""):
        self.event_id = event_id
        super().__init__(message)


class CauseChainTooDeepError(InvalidCauseError):
    """Raised when a cause chain exceeds the maximum walk depth."""
    
    def __init__(self, event_id: str, max_depth: int):
        self.max_depth = max_depth
        super().__init__(
            f"Cause chain of event {event_id} exceeds maximum depth of {max_depth}",
            event_id=event_id,
        )


class RegistryFrozenError(EventError):
    """Raised when registering a handler after the registry was frozen."""
    
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            f"Cannot register handler for '{event_type}': "
            f"registry is frozen once dispatch has begun"
        )
