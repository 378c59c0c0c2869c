"""
Job specification, policy and result models.

A JobSpec describes one isolated execution unit: which image to run,
which shell commands to run in it, and the policy (timeout, cache,
storage, placement, privileges) it runs under.

Policies are declared partially by handler logic. Any field left as None
is filled in from defaults when the policy is resolved (see policy.py).

Results are immutable once created. Execution failures are Results with
status FAILED or TIMED_OUT, never exceptions.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidJobNameError


# DNS-1123 label: job names become part of unit and volume names
JOB_NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
JOB_NAME_MAX_LENGTH = 63

DEFAULT_IMAGE = "debian:jessie-slim"
DEFAULT_SHELL = "/bin/sh"


class JobState(str, Enum):
    """
    Job lifecycle state.

    Created → Submitted → Running → Succeeded | Failed | TimedOut
    """

    CREATED = "Created"  # Local only, no cluster interaction yet
    SUBMITTED = "Submitted"  # Unit requested from the substrate
    RUNNING = "Running"  # First liveness signal observed
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


class ResultStatus(str, Enum):
    """Terminal outcome of a job."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


# ============================================================================
# POLICY MODELS
# ============================================================================
# Every field is Optional: None means "not requested, use the default".
# ============================================================================

class CachePolicy(BaseModel):
    """
    Persistent per-job cache volume.

    INVARIANT: size is fixed the first time the cache is resolved for a
    job name. Later size requests are ignored until the volume is destroyed.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: Optional[bool] = None
    size: Optional[str] = None
    path: Optional[str] = None


class HostPolicy(BaseModel):
    """Placement preference. Advisory, not a scheduling guarantee."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    os: Optional[str] = None
    name: Optional[str] = None


class StoragePolicy(BaseModel):
    """Build-scoped shared volume, shared by every job of one build."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: Optional[bool] = None
    path: Optional[str] = None


class JobPolicy(BaseModel):
    """Resource, placement and security preferences of a job."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout_seconds: Optional[float] = None
    use_source: Optional[bool] = None
    privileged: Optional[bool] = None
    image_pull_secrets: Optional[List[str]] = None
    cache: CachePolicy = Field(default_factory=CachePolicy)
    host: HostPolicy = Field(default_factory=HostPolicy)
    storage: StoragePolicy = Field(default_factory=StoragePolicy)
    resource_requests: Optional[Dict[str, str]] = None
    resource_limits: Optional[Dict[str, str]] = None


class ResolvedPolicy(JobPolicy):
    """
    A fully populated JobPolicy.

    ``cache_size_ignored`` is True when the job asked for a cache size
    different from the size its existing cache volume was created with.
    The resolved ``cache.size`` is always the existing size in that case.
    """

    cache_size_ignored: bool = False
    requested_cache_size: Optional[str] = None


DEFAULT_POLICY = JobPolicy(
    timeout_seconds=900,
    use_source=True,
    privileged=False,
    image_pull_secrets=[],
    cache=CachePolicy(enabled=False, size="5Mi", path="/mnt/brigade/cache"),
    host=HostPolicy(),
    storage=StoragePolicy(enabled=False, path="/mnt/brigade/share"),
    resource_requests={},
    resource_limits={},
)


# ============================================================================
# JOB SPECIFICATION
# ============================================================================

@dataclass
class JobSpec:
    """
    Declarative description of one execution unit.

    ``tasks`` run in order in ``shell``; an empty list runs the image's
    default entrypoint (with ``args`` if given).
    """
    name: str
    image: Optional[str] = None
    tasks: List[str] = field(default_factory=list)
    shell: str = DEFAULT_SHELL
    env: Dict[str, str] = field(default_factory=dict)
    policy: JobPolicy = field(default_factory=JobPolicy)
    args: List[str] = field(default_factory=list)
    service_account: Optional[str] = None

    def validate(self) -> None:
        """
        Validate the specification.

        Raises:
            InvalidJobNameError: If the name is not a DNS-1123 label
        """
        if (
            not self.name
            or len(self.name) > JOB_NAME_MAX_LENGTH
            or not JOB_NAME_PATTERN.match(self.name)
        ):
            raise InvalidJobNameError(self.name)


# ============================================================================
# RESULT
# ============================================================================

class Result(BaseModel):
    """
    Terminal outcome of one job.

    Owned by the job controller and returned by value.
    Never mutated after creation.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    job_name: str
    status: ResultStatus
    output: str = ""
    unit_name: str = ""
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ResultStatus.SUCCEEDED

    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration in seconds."""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> str:
        """Human-readable summary of the result."""
        duration = self.duration_seconds()
        duration_str = f" ({duration:.1f}s)" if duration is not None else ""
        return f"{self.status.value.upper()}{duration_str}: {self.job_name} [{self.unit_name}]"
