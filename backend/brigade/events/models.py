"""
Event and Cause models.

Events are immutable records of something that happened: a VCS push, a
registry push, a manual trigger, or a secondary event synthesized while a
build runs. Every secondary event carries a Cause pointing at the event
that produced it.

INVARIANT: The cause graph is a finite forward chain with no cycles.
Chains are walked by event id, never by object identity, so a copied event
(same id) is still recognised as the same node.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from .errors import CauseChainTooDeepError, InvalidCauseError


# Maximum number of causes walked before a chain is rejected as malformed
MAX_CAUSE_DEPTH = 64


# Triggers naming the mechanism that produced a secondary event
TRIGGER_AFTER = "after"
TRIGGER_ERROR = "error"
TRIGGER_UNHANDLED_EXCEPTION = "unhandled-exception"

# Event types synthesized by the core itself
EVENT_AFTER = "after"
EVENT_ERROR = "error"


@dataclass(frozen=True)
class Cause:
    """
    Link from one event to the event that produced it.

    The causing event is held read-only; ``event_id`` is the identity used
    for cycle detection.
    """
    event: "Event"
    reason: Any
    trigger: str

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True)
class Event:
    """
    Immutable event record dispatched to handler logic.

    ``payload`` is the raw provider body. The core never parses it;
    provider adapters extract whatever the Event needs (commit, ref)
    before construction.
    """
    id: str
    type: str
    provider: str
    payload: bytes = b""
    commit: Optional[str] = None
    ref: Optional[str] = None
    project_id: Optional[str] = None
    build_id: str = ""
    cause: Optional[Cause] = None
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def ancestry(self) -> Iterator["Event"]:
        """
        Yield the events in this event's cause chain, nearest first.

        Raises:
            InvalidCauseError: If the chain revisits an event id
            CauseChainTooDeepError: If the chain is longer than MAX_CAUSE_DEPTH
        """
        seen = {self.id}
        cause = self.cause
        depth = 0
        while cause is not None:
            depth += 1
            if depth > MAX_CAUSE_DEPTH:
                raise CauseChainTooDeepError(self.id, MAX_CAUSE_DEPTH)
            parent = cause.event
            if parent.id in seen:
                raise InvalidCauseError(
                    f"Cause chain of event {self.id} revisits event {parent.id}",
                    event_id=self.id,
                )
            seen.add(parent.id)
            yield parent
            cause = parent.cause

    def with_cause(self, cause: Cause) -> "Event":
        """
        Return a copy of this event carrying ``cause``.

        Raises:
            InvalidCauseError: If attaching the cause would close a cycle
        """
        _check_acyclic(cause.event, self.id)
        return replace(self, cause=cause)

    def to_dict(self) -> dict:
        """Serialize event metadata (payload excluded) to a dictionary."""
        data = {
            "id": self.id,
            "type": self.type,
            "provider": self.provider,
            "commit": self.commit,
            "ref": self.ref,
            "project_id": self.project_id,
            "build_id": self.build_id,
            "created_at": self.created_at,
            "cause": None,
        }
        if self.cause is not None:
            data["cause"] = {
                "event_id": self.cause.event_id,
                "reason": str(self.cause.reason),
                "trigger": self.cause.trigger,
            }
        return data


def _check_acyclic(cause_event: Event, target_id: str) -> None:
    """
    Verify that ``target_id`` does not appear in ``cause_event``'s chain.

    Raises:
        InvalidCauseError: On a cycle
        CauseChainTooDeepError: If the chain is longer than MAX_CAUSE_DEPTH
    """
    if cause_event.id == target_id:
        raise InvalidCauseError(
            f"Event {target_id} cannot cause itself", event_id=target_id
        )
    for ancestor in cause_event.ancestry():
        if ancestor.id == target_id:
            raise InvalidCauseError(
                f"Attaching cause {cause_event.id} to event {target_id} "
                f"would create a cycle",
                event_id=target_id,
            )


def new_event_id() -> str:
    """Generate a unique event (build) identifier."""
    return uuid.uuid4().hex


def new_cause(
    event: Optional[Event],
    reason: Any,
    trigger: str,
    target: Optional[Event] = None,
) -> Cause:
    """
    Create a cause pointing at ``event``.

    Args:
        event: The event that produced the new one
        reason: Diagnostic value, commonly an error description
        trigger: Mechanism name ("after", "error", "unhandled-exception")
        target: The event the cause will be attached to, if already known

    Returns:
        A new Cause

    Raises:
        InvalidCauseError: If event is None or attaching would close a cycle
        CauseChainTooDeepError: If event's chain is longer than MAX_CAUSE_DEPTH
    """
    if event is None:
        raise InvalidCauseError("Cause requires a causing event")

    if target is not None:
        _check_acyclic(event, target.id)
    else:
        # Walk the chain once so malformed chains are rejected up front
        for _ in event.ancestry():
            pass

    return Cause(event=event, reason=reason, trigger=trigger)


def new_event(
    type: str,
    provider: str,
    payload: bytes = b"",
    commit: Optional[str] = None,
    cause: Optional[Cause] = None,
    ref: Optional[str] = None,
    project_id: Optional[str] = None,
    event_id: Optional[str] = None,
    build_id: Optional[str] = None,
) -> Event:
    """
    Create a new immutable event.

    The payload is not validated; that is a provider concern.
    ``build_id`` defaults to the event id; secondary events inherit the
    build of the event that caused them.

    Raises:
        InvalidCauseError: If ``cause`` would make the event its own ancestor
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    event_id = event_id or new_event_id()
    if cause is not None:
        _check_acyclic(cause.event, event_id)

    return Event(
        id=event_id,
        type=type,
        provider=provider,
        payload=payload,
        commit=commit,
        ref=ref,
        project_id=project_id,
        build_id=build_id or event_id,
        cause=cause,
    )


def secondary_event(
    origin: Event,
    type: str,
    reason: Any,
    trigger: str,
) -> Event:
    """
    Synthesize a secondary event caused by ``origin``.

    Inherits provider, commit, ref, payload, project and build from the
    origin.
    """
    return new_event(
        type=type,
        provider=origin.provider,
        payload=origin.payload,
        commit=origin.commit,
        ref=origin.ref,
        project_id=origin.project_id,
        build_id=origin.build_id,
        cause=new_cause(origin, reason, trigger),
    )
