"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.

Execution failures (non-zero exit, image pull failure, timeout) are NOT
errors: they are Results. Only validation mistakes and an unreachable
substrate raise.
"""

from typing import Optional


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class JobValidationError(JobError):
    """Raised when a job specification is rejected before submission."""
    pass


class InvalidJobNameError(JobValidationError):
    """Raised when a job name is not a valid DNS-1123 label."""
    
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Invalid job name '{name}': must be lowercase alphanumeric "
            f"characters or '-', start and end with an alphanumeric, "
            f"and be at most 63 characters"
        )


class DuplicateJobNameError(JobValidationError):
    """Raised when two jobs in one handler invocation share a name."""
    
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Duplicate job name '{name}': job names must be unique "
            f"within one handler invocation"
        )


class JobPolicyViolationError(JobValidationError):
    """Raised when a job requests something its project does not allow."""
    
    def __init__(self, job_name: str, reason: str):
        self.job_name = job_name
        self.reason = reason
        super().__init__(f"Job '{job_name}' violates project policy: {reason}")


class GroupAlreadyRunningError(JobError):
    """Raised when a group is modified or re-run after execution started."""
    
    def __init__(self, operation: str = "add"):
        self.operation = operation
        super().__init__(f"Cannot {operation}: group execution has already started")


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal state transition."""
    
    def __init__(self, job_name: str, current_state: str, target_state: str):
        self.job_name = job_name
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid job state transition for '{job_name}': "
            f"{current_state} -> {target_state}"
        )


class SubmissionError(JobError):
    """Raised when a job cannot be submitted to the cluster substrate."""
    
    def __init__(self, job_name: str, reason: str, unit_name: Optional[str] = None):
        self.job_name = job_name
        self.reason = reason
        self.unit_name = unit_name
        super().__init__(f"Submission failed for job '{job_name}': {reason}")


class UnknownHandleError(JobError):
    """Raised when a handle was not issued by this controller."""
    
    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Handle for job '{job_name}' was not issued by this controller")
