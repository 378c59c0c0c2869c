"""
State transition validation for jobs.

Job lifecycle: CREATED → SUBMITTED → RUNNING → SUCCEEDED | FAILED | TIMED_OUT

INVARIANT: Terminal job states (SUCCEEDED, FAILED, TIMED_OUT) are
immutable. Once a job enters a terminal state, no state transition is
allowed. A late poll of the substrate must never regress a terminal job.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError
from .models import JobState, ResultStatus


TERMINAL_JOB_STATES: FrozenSet[JobState] = frozenset({
    JobState.SUCCEEDED,
    JobState.FAILED,
    JobState.TIMED_OUT,
})


def is_job_terminal(state: JobState) -> bool:
    """
    Check if a job state is terminal (immutable).

    Args:
        state: The job state to check

    Returns:
        True if the state is terminal, False otherwise
    """
    return state in TERMINAL_JOB_STATES


# Legal job state transitions
_JOB_TRANSITIONS: Set[Tuple[JobState, JobState]] = {
    # Submission
    (JobState.CREATED, JobState.SUBMITTED),

    # First liveness signal
    (JobState.SUBMITTED, JobState.RUNNING),

    # Unit never started (image pull failure, rejected by the scheduler)
    (JobState.SUBMITTED, JobState.FAILED),

    # Deadline passed while still pending
    (JobState.SUBMITTED, JobState.TIMED_OUT),

    # Terminal states
    (JobState.RUNNING, JobState.SUCCEEDED),
    (JobState.RUNNING, JobState.FAILED),
    (JobState.RUNNING, JobState.TIMED_OUT),
}


def can_transition_job(from_state: JobState, to_state: JobState) -> bool:
    """
    Check if a job state transition is legal.

    INVARIANT: Terminal states cannot transition to any other state.

    Args:
        from_state: Current job state
        to_state: Target job state

    Returns:
        True if the transition is allowed, False otherwise
    """
    # Allow staying in same state (repeated polls)
    if from_state == to_state:
        return True

    if is_job_terminal(from_state):
        return False

    return (from_state, to_state) in _JOB_TRANSITIONS


def validate_job_transition(job_name: str, from_state: JobState, to_state: JobState) -> None:
    """
    Validate a job state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_job(from_state, to_state):
        raise InvalidStateTransitionError(job_name, from_state.value, to_state.value)


def result_status_for(state: JobState) -> ResultStatus:
    """Map a terminal job state to its result status."""
    if not is_job_terminal(state):
        raise ValueError(f"Job state {state.value} is not terminal")
    return ResultStatus(state.value)
