"""
Events, causes and handler dispatch.
"""

from .errors import CauseChainTooDeepError, EventError, InvalidCauseError, RegistryFrozenError
from .models import (
    EVENT_AFTER,
    EVENT_ERROR,
    MAX_CAUSE_DEPTH,
    TRIGGER_AFTER,
    TRIGGER_ERROR,
    TRIGGER_UNHANDLED_EXCEPTION,
    Cause,
    Event,
    new_cause,
    new_event,
    new_event_id,
    secondary_event,
)
from .registry import DispatchOutcome, HandlerRegistry

__all__ = [
    "CauseChainTooDeepError",
    "EventError",
    "InvalidCauseError",
    "RegistryFrozenError",
    "EVENT_AFTER",
    "EVENT_ERROR",
    "MAX_CAUSE_DEPTH",
    "TRIGGER_AFTER",
    "TRIGGER_ERROR",
    "TRIGGER_UNHANDLED_EXCEPTION",
    "Cause",
    "Event",
    "new_cause",
    "new_event",
    "new_event_id",
    "secondary_event",
    "DispatchOutcome",
    "HandlerRegistry",
]
