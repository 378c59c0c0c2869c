"""
Job specification, policy resolution and lifecycle.

Handler logic declares JobSpecs; the JobController submits them to the
cluster substrate and waits for their terminal state, either one at a time
or through a Group.
"""

from .errors import (
    DuplicateJobNameError,
    GroupAlreadyRunningError,
    InvalidJobNameError,
    InvalidStateTransitionError,
    JobError,
    JobPolicyViolationError,
    JobValidationError,
    SubmissionError,
    UnknownHandleError,
)
from .models import (
    DEFAULT_POLICY,
    CachePolicy,
    HostPolicy,
    JobPolicy,
    JobSpec,
    JobState,
    ResolvedPolicy,
    Result,
    ResultStatus,
    StoragePolicy,
)
from .state import can_transition_job, is_job_terminal
from .policy import PolicyResolver, resolve_policy
from .controller import JobController, JobHandle
from .group import Group, any_failed, run_all, run_each

__all__ = [
    # Errors
    "DuplicateJobNameError",
    "GroupAlreadyRunningError",
    "InvalidJobNameError",
    "InvalidStateTransitionError",
    "JobError",
    "JobPolicyViolationError",
    "JobValidationError",
    "SubmissionError",
    "UnknownHandleError",
    # Models
    "DEFAULT_POLICY",
    "CachePolicy",
    "HostPolicy",
    "JobPolicy",
    "JobSpec",
    "JobState",
    "ResolvedPolicy",
    "Result",
    "ResultStatus",
    "StoragePolicy",
    # State validation
    "can_transition_job",
    "is_job_terminal",
    # Policy
    "PolicyResolver",
    "resolve_policy",
    # Controller
    "JobController",
    "JobHandle",
    # Groups
    "Group",
    "any_failed",
    "run_all",
    "run_each",
]
