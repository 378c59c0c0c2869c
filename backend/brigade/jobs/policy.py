"""
Job policy resolution.

Merges a job's requested policy with defaults, field by field. Nested
cache, host and storage policies are merged field by field as well, so a
job that only sets ``cache.enabled`` still inherits the default size and
path.

Cache sizing is the one piece of cross-build state. The first resolution
of an enabled cache for a (project, job name) pair records the size; every
later resolution returns that size whatever the job asks for, and flags
the discrepancy with ``cache_size_ignored`` instead of failing. This is a
hard invariant: the cache is only resized after it is explicitly
destroyed.
"""

import logging
from typing import Optional, TYPE_CHECKING

from pydantic import BaseModel

from .errors import JobPolicyViolationError
from .models import DEFAULT_POLICY, JobPolicy, JobSpec, ResolvedPolicy

if TYPE_CHECKING:
    from ..persistence.manager import PersistenceManager
    from ..projects.models import Project

logger = logging.getLogger(__name__)


def _merge(requested: BaseModel, defaults: BaseModel) -> dict:
    """Field-by-field merge of two models of the same type."""
    merged = {}
    for name in type(requested).model_fields:
        value = getattr(requested, name)
        default = getattr(defaults, name)
        if isinstance(value, BaseModel):
            merged[name] = type(value)(**_merge(value, default))
        elif value is None:
            merged[name] = default
        else:
            merged[name] = value
    return merged


def resolve_policy(
    requested: JobPolicy,
    defaults: JobPolicy = DEFAULT_POLICY,
    prior_cache_size: Optional[str] = None,
) -> ResolvedPolicy:
    """
    Resolve a requested policy against defaults.

    Args:
        requested: Policy declared by the job (unset fields are None)
        defaults: Policy supplying every unset field
        prior_cache_size: Size of the job's existing cache volume, if any

    Returns:
        ResolvedPolicy. When a cache volume already exists its size wins,
        and ``cache_size_ignored`` reports whether the request differed.
    """
    merged = _merge(requested, defaults)

    requested_size = requested.cache.size
    ignored = False
    if prior_cache_size is not None:
        ignored = requested_size is not None and requested_size != prior_cache_size
        merged["cache"] = merged["cache"].model_copy(update={"size": prior_cache_size})

    return ResolvedPolicy(
        **merged,
        cache_size_ignored=ignored,
        requested_cache_size=requested_size,
    )


class PolicyResolver:
    """
    Resolves job policies for one project.

    Binds the defaults, the project's security gates and the cache volume
    ledger. Concurrent resolutions for the same job name agree on the cache
    size through the ledger's insert-or-ignore claim; no lock is taken.
    """

    def __init__(
        self,
        project: "Project",
        persistence: "PersistenceManager",
        defaults: JobPolicy = DEFAULT_POLICY,
    ):
        self.project = project
        self.persistence = persistence
        self.defaults = defaults

    def check(self, spec: JobSpec) -> ResolvedPolicy:
        """
        Check a job against the project's security gates.

        Has no side effects; the returned policy ignores existing caches.

        Raises:
            JobPolicyViolationError: If the job asks for privileges the
                project does not allow
        """
        provisional = resolve_policy(spec.policy, self.defaults)
        if provisional.privileged and not self.project.allow_privileged_jobs:
            raise JobPolicyViolationError(
                spec.name, "privileged jobs are not allowed for this project"
            )
        return provisional

    def resolve(self, spec: JobSpec) -> ResolvedPolicy:
        """
        Resolve the policy of a job specification.

        Raises:
            JobPolicyViolationError: If the job asks for privileges the
                project does not allow
        """
        provisional = self.check(spec)

        if provisional.cache.enabled:
            prior = self.persistence.claim_cache_volume(
                self.project.id, spec.name, provisional.cache.size
            )
        else:
            record = self.persistence.get_cache_volume(self.project.id, spec.name)
            prior = record["size"] if record else None

        resolved = resolve_policy(spec.policy, self.defaults, prior_cache_size=prior)
        if resolved.cache_size_ignored:
            logger.warning(
                f"[POLICY] Job '{spec.name}': cache size {resolved.requested_cache_size} "
                f"ignored, existing cache volume is {resolved.cache.size}"
            )
        return resolved

    def destroy_cache(self, job_name: str) -> bool:
        """
        Forget a job's cache volume record so the next resolution resizes it.

        The volume itself is removed through the substrate by the caller.
        """
        removed = self.persistence.destroy_cache_volume(self.project.id, job_name)
        if removed:
            logger.info(f"[POLICY] Cache volume for job '{job_name}' released")
        return removed
