"""
Event and Cause model tests.

Invariants Tested:
------------------
- Events are immutable
- Cause chains are acyclic: closing a cycle fails loudly
- Chains are walked by event id, not object identity
- Chain walks are depth-bounded
- Secondary events inherit provider, commit and build from their origin
"""

import dataclasses

import pytest

from brigade.events.errors import CauseChainTooDeepError, InvalidCauseError
from brigade.events.models import (
    EVENT_ERROR,
    MAX_CAUSE_DEPTH,
    TRIGGER_AFTER,
    TRIGGER_UNHANDLED_EXCEPTION,
    Cause,
    Event,
    new_cause,
    new_event,
    secondary_event,
)


# =============================================================================
# Test Helpers
# =============================================================================

def make_chain(length: int) -> Event:
    """Build a chain of ``length`` events, returning the newest."""
    event = new_event("push", "github", event_id="e0")
    for i in range(1, length):
        cause = new_cause(event, "chained", TRIGGER_AFTER)
        event = new_event("after", "github", event_id=f"e{i}", cause=cause)
    return event


# =============================================================================
# Construction
# =============================================================================

def test_new_event_defaults():
    """A new event has a unique id, its own build id and no cause."""
    first = new_event("push", "github", payload=b"{}", commit="abc123")
    second = new_event("push", "github")

    assert first.id != second.id
    assert first.build_id == first.id
    assert first.cause is None
    assert first.commit == "abc123"
    assert first.payload == b"{}"


def test_new_event_encodes_text_payload():
    """Text payloads are stored as UTF-8 bytes, unparsed."""
    event = new_event("exec", "brigade-cli", payload="not json at all")
    assert event.payload == b"not json at all"


def test_event_is_immutable():
    """Events cannot be mutated after construction."""
    event = new_event("push", "github")
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.type = "pull_request"


def test_to_dict_excludes_payload():
    """Serialized metadata carries the cause id, never the raw payload."""
    origin = new_event("push", "github", payload=b"secret body")
    child = secondary_event(origin, EVENT_ERROR, "boom", TRIGGER_UNHANDLED_EXCEPTION)

    data = child.to_dict()

    assert "payload" not in data
    assert data["cause"] == {
        "event_id": origin.id,
        "reason": "boom",
        "trigger": TRIGGER_UNHANDLED_EXCEPTION,
    }


# =============================================================================
# Causes
# =============================================================================

def test_new_cause_requires_event():
    """A cause without a causing event is rejected."""
    with pytest.raises(InvalidCauseError):
        new_cause(None, "no origin", TRIGGER_AFTER)


def test_event_cannot_cause_itself():
    """Attaching an event as its own cause fails cycle detection."""
    event = new_event("push", "github")
    with pytest.raises(InvalidCauseError):
        event.with_cause(Cause(event=event, reason="self", trigger=TRIGGER_AFTER))


def test_cycle_detected_by_id():
    """
    CYCLE INVARIANT TEST: a cause pointing back into the chain is rejected.

    GIVEN:
        - Chain e0 <- e1 <- e2
    WHEN:
        - e0 is given a cause pointing at e2 (a copy with the same id
          as the chain member counts as the same node)
    THEN:
        - InvalidCauseError is raised
    """
    newest = make_chain(3)
    root = new_event("push", "github", event_id="e0")

    with pytest.raises(InvalidCauseError):
        root.with_cause(new_cause(newest, "loop", TRIGGER_AFTER))

    with pytest.raises(InvalidCauseError):
        new_cause(newest, "loop", TRIGGER_AFTER, target=root)


def test_new_event_with_cycling_cause_rejected():
    """new_event refuses a cause whose chain already holds the new id."""
    newest = make_chain(2)
    with pytest.raises(InvalidCauseError):
        new_event("after", "github", event_id="e0", cause=Cause(newest, "loop", TRIGGER_AFTER))


def test_ancestry_nearest_first():
    """Ancestry yields causes from nearest to oldest."""
    newest = make_chain(4)
    assert [e.id for e in newest.ancestry()] == ["e2", "e1", "e0"]


def test_ancestry_depth_bounded():
    """Chains longer than MAX_CAUSE_DEPTH are rejected as malformed."""
    deepest_allowed = make_chain(MAX_CAUSE_DEPTH + 1)
    assert len(list(deepest_allowed.ancestry())) == MAX_CAUSE_DEPTH

    too_deep = make_chain(MAX_CAUSE_DEPTH + 2)
    with pytest.raises(CauseChainTooDeepError):
        list(too_deep.ancestry())
    with pytest.raises(CauseChainTooDeepError):
        new_cause(too_deep, "one too many", TRIGGER_AFTER)


def test_too_deep_is_an_invalid_cause():
    """Depth failures can be caught as InvalidCauseError."""
    assert issubclass(CauseChainTooDeepError, InvalidCauseError)


# =============================================================================
# Secondary events
# =============================================================================

def test_secondary_event_inherits_origin():
    """Secondary events carry the origin's provider, commit, ref and build."""
    origin = new_event(
        "push",
        "github",
        payload=b"{}",
        commit="abc123",
        ref="refs/heads/main",
        project_id="brigade-1234",
    )

    error = secondary_event(origin, EVENT_ERROR, "boom", TRIGGER_UNHANDLED_EXCEPTION)

    assert error.id != origin.id
    assert error.type == EVENT_ERROR
    assert error.provider == "github"
    assert error.commit == "abc123"
    assert error.ref == "refs/heads/main"
    assert error.project_id == "brigade-1234"
    assert error.build_id == origin.build_id
    assert error.cause.event is origin
    assert error.cause.event_id == origin.id
    assert error.cause.trigger == TRIGGER_UNHANDLED_EXCEPTION
