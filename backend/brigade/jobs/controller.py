"""
Job lifecycle controller.

Drives job specifications through submission, execution and completion
on the cluster substrate.

Job lifecycle: CREATED → SUBMITTED → RUNNING → SUCCEEDED | FAILED | TIMED_OUT

Design rules:
- Submission is always synchronous: the unit name is known, and an
  unreachable substrate raises SubmissionError, before run()/background()
  return control
- Waiting is the only blocking step; background() moves it onto a
  watcher thread of its own, so no job waits behind another's deadline
- The deadline starts at submission; on expiry the unit is cancelled
  exactly once and the job ends TIMED_OUT. Nothing is retried
- Execution failures are Results, never exceptions
- Job names are unique within one handler invocation (see invocation())
"""

import logging
import threading
import time
from concurrent.futures import Future
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set, TYPE_CHECKING

from ..persistence.manager import cache_volume_name
from ..substrate.base import (
    NODE_SELECTOR_HOSTNAME,
    NODE_SELECTOR_OS,
    ClusterSubstrate,
    UnitPhase,
    UnitRequest,
    VolumeMount,
    bounded_name,
)
from ..substrate.errors import SubstrateError, SubstrateUnavailableError, UnitNotFoundError
from .errors import DuplicateJobNameError, SubmissionError, UnknownHandleError
from .models import DEFAULT_IMAGE, JobSpec, JobState, ResolvedPolicy, Result
from .state import result_status_for, validate_job_transition

if TYPE_CHECKING:
    from .policy import PolicyResolver

logger = logging.getLogger(__name__)

# Seconds between substrate polls while waiting on a unit
DEFAULT_POLL_INTERVAL = 2.0

# Where the project source is mounted when use_source is set
SOURCE_MOUNT_PATH = "/src"


def unit_name_for(job_name: str, build_id: str) -> str:
    """
    Name of the execution unit for a job in a build.

    The build id is always kept whole, so one job name never maps to the
    same unit in two builds.
    """
    return bounded_name(job_name, build_id)


def build_storage_name(build_id: str) -> str:
    """Name of the shared storage volume of a build."""
    return bounded_name("build", build_id)


class JobHandle:
    """
    Reference to a submitted job.

    Issued by JobController.background() and run(). The cached Result
    makes repeated waits return the same object without resubmission.
    """

    def __init__(self, spec: JobSpec, controller: "JobController"):
        self.spec = spec
        self.unit_name = ""
        self.policy: Optional[ResolvedPolicy] = None
        self.deadline: Optional[float] = None
        self.started_at: Optional[datetime] = None
        self._controller = controller
        self._state = JobState.CREATED
        self._result: Optional[Result] = None
        self._future: Optional[Future] = None
        self._lock = threading.Lock()

    @property
    def job_name(self) -> str:
        return self.spec.name

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    @property
    def result(self) -> Optional[Result]:
        with self._lock:
            return self._result

    def _transition(self, target: JobState) -> None:
        with self._lock:
            old_state = self._state
            validate_job_transition(self.spec.name, old_state, target)
            self._state = target
        if old_state != target:
            logger.info(
                f"[LIFECYCLE] Job '{self.spec.name}' transitioned: "
                f"{old_state.value} -> {target.value}"
            )

    def __repr__(self) -> str:
        return f"JobHandle(job={self.spec.name!r}, unit={self.unit_name!r}, state={self.state.value})"


class JobController:
    """
    Submits jobs to the substrate and waits for their terminal state.

    One controller serves one build. Handles are only valid with the
    controller that issued them.
    """

    def __init__(
        self,
        substrate: ClusterSubstrate,
        resolver: "PolicyResolver",
        build_id: str,
        commit: Optional[str] = None,
        default_image: str = DEFAULT_IMAGE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Initialize the controller.

        Args:
            substrate: Cluster substrate driver
            resolver: Policy resolver bound to the build's project
            build_id: Build the jobs belong to
            commit: Commit being built, exported to jobs
            default_image: Image for jobs that do not name one
            poll_interval: Seconds between substrate polls
        """
        self.substrate = substrate
        self.resolver = resolver
        self.project = resolver.project
        self.build_id = build_id
        self.commit = commit
        self.default_image = default_image
        self.poll_interval = poll_interval
        self._watchers: List[threading.Thread] = []

        # job name -> id of the spec declared under it, per invocation
        self._declared: Dict[str, int] = {}
        self._launched: Set[str] = set()
        self._storage_ready = False
        self._lock = threading.Lock()

    # =========================================================================
    # Invocation scope and name validation
    # =========================================================================

    @contextmanager
    def invocation(self) -> Iterator[None]:
        """
        Scope job name uniqueness to one handler invocation.

        Nested scopes restore the outer scope on exit.
        """
        with self._lock:
            saved = (self._declared, self._launched)
            self._declared, self._launched = {}, set()
        try:
            yield
        finally:
            with self._lock:
                self._declared, self._launched = saved

    def declare(self, *specs: JobSpec) -> None:
        """
        Validate and reserve job names before any submission.

        Re-declaring a spec object that has not run yet is allowed; a
        different spec under a taken name, a name repeated within one call,
        or a name that already ran is not. Either every spec is declared or
        none is.

        Raises:
            InvalidJobNameError: If a name is not a DNS-1123 label
            DuplicateJobNameError: If a name is already taken
            JobPolicyViolationError: If a job breaks the project's policy
        """
        for spec in specs:
            spec.validate()
            self.resolver.check(spec)

        with self._lock:
            pending: Dict[str, int] = {}
            for spec in specs:
                if spec.name in pending or spec.name in self._launched:
                    raise DuplicateJobNameError(spec.name)
                owner = self._declared.get(spec.name)
                if owner is not None and owner != id(spec):
                    raise DuplicateJobNameError(spec.name)
                pending[spec.name] = id(spec)
            self._declared.update(pending)

    # =========================================================================
    # Public operations
    # =========================================================================

    def run(self, spec: JobSpec) -> Result:
        """
        Submit a job and block until it is terminal or its timeout elapses.

        Raises:
            JobValidationError: If the spec is rejected before submission
            SubmissionError: If the substrate cannot be reached
        """
        self.declare(spec)
        handle = self._launch(spec)
        return self._await(handle)

    def background(self, spec: JobSpec) -> JobHandle:
        """
        Submit a job without waiting for it.

        Returns:
            Handle to pass to wait()

        Raises:
            JobValidationError: If the spec is rejected before submission
            SubmissionError: If the substrate cannot be reached
        """
        self.declare(spec)
        handle = self._launch(spec)
        future: Future = Future()
        future.set_running_or_notify_cancel()
        handle._future = future

        watcher = threading.Thread(
            target=self._watch,
            args=(handle, future),
            name=f"brigade-job-{spec.name}",
            daemon=True,
        )
        with self._lock:
            self._watchers = [t for t in self._watchers if t.is_alive()]
            self._watchers.append(watcher)
        watcher.start()
        return handle

    def wait(self, handle: JobHandle) -> Result:
        """
        Block until the handle's job is terminal.

        Idempotent: later calls return the cached Result.

        Raises:
            UnknownHandleError: If the handle was issued by another controller
        """
        if handle._controller is not self:
            raise UnknownHandleError(handle.job_name)

        cached = handle.result
        if cached is not None:
            return cached
        if handle._future is None:
            # Synchronous handles always carry a result once run() returns
            raise UnknownHandleError(handle.job_name)
        return handle._future.result()

    def unit_name(self, handle: JobHandle) -> str:
        """Unit identifier of a handle; empty until submitted."""
        return handle.unit_name

    def state(self, handle: JobHandle) -> JobState:
        return handle.state

    def destroy_cache(self, job_name: str) -> bool:
        """
        Destroy a job's cache volume so the next run sizes it afresh.

        Returns:
            True if a cache volume was recorded for the job
        """
        self.substrate.destroy_volume(cache_volume_name(self.project.id, job_name))
        return self.resolver.destroy_cache(job_name)

    def shutdown(self, wait: bool = True) -> None:
        """Optionally block until every background job is terminal."""
        if not wait:
            return
        with self._lock:
            watchers = list(self._watchers)
        for watcher in watchers:
            watcher.join()

    # =========================================================================
    # Submission
    # =========================================================================

    def _launch(self, spec: JobSpec) -> JobHandle:
        """Resolve policy, prepare volumes and create the unit."""
        with self._lock:
            if spec.name in self._launched:
                raise DuplicateJobNameError(spec.name)
            self._launched.add(spec.name)

        try:
            handle = self._submit(spec)
        except Exception:
            # A job that never reached the substrate may be submitted again
            with self._lock:
                self._launched.discard(spec.name)
            raise
        logger.info(f"[LIFECYCLE] Job '{spec.name}' submitted as unit {handle.unit_name}")
        return handle

    def _submit(self, spec: JobSpec) -> JobHandle:
        handle = JobHandle(spec, self)
        handle.policy = self.resolver.resolve(spec)
        request = self._build_request(spec, handle.policy)

        try:
            self._prepare_volumes(spec, handle.policy)
            unit_name = self.substrate.create_unit(request)
        except SubstrateUnavailableError as e:
            logger.error(f"[LIFECYCLE] Submission of job '{spec.name}' failed: {e}")
            raise SubmissionError(spec.name, e.reason, unit_name=request.unit_name) from e

        handle.unit_name = unit_name
        handle.started_at = datetime.now()
        handle.deadline = time.monotonic() + handle.policy.timeout_seconds
        handle._transition(JobState.SUBMITTED)
        return handle

    def _prepare_volumes(self, spec: JobSpec, policy: ResolvedPolicy) -> None:
        config = self.project.kubernetes_config
        if policy.cache.enabled:
            # Existing volumes are left as they are, so the recorded size stands
            self.substrate.ensure_volume(
                cache_volume_name(self.project.id, spec.name),
                policy.cache.size,
                storage_class=config.cache_storage_class,
            )
        if policy.storage.enabled:
            with self._lock:
                ready = self._storage_ready
            if not ready:
                self.substrate.ensure_volume(
                    build_storage_name(self.build_id),
                    config.build_storage_size,
                    storage_class=config.build_storage_class,
                )
                with self._lock:
                    self._storage_ready = True

    def _build_request(self, spec: JobSpec, policy: ResolvedPolicy) -> UnitRequest:
        """Translate a spec and its resolved policy into a unit request."""
        env = {
            "CI": "true",
            "BRIGADE_BUILD_ID": self.build_id,
            "BRIGADE_PROJECT_ID": self.project.id,
        }
        if self.commit:
            env["BRIGADE_COMMIT_ID"] = self.commit
        if self.project.repository and self.project.repository.clone_url:
            env["BRIGADE_REMOTE_URL"] = self.project.repository.clone_url
        if policy.use_source:
            env["BRIGADE_WORKSPACE"] = SOURCE_MOUNT_PATH
        env.update(spec.env)

        mounts = []
        if policy.cache.enabled:
            mounts.append(VolumeMount(
                name=cache_volume_name(self.project.id, spec.name),
                path=policy.cache.path,
                size=policy.cache.size,
            ))
        if policy.storage.enabled:
            mounts.append(VolumeMount(
                name=build_storage_name(self.build_id),
                path=policy.storage.path,
                read_only=True,
            ))

        node_selector = {}
        if policy.host.os:
            node_selector[NODE_SELECTOR_OS] = policy.host.os
        if policy.host.name:
            node_selector[NODE_SELECTOR_HOSTNAME] = policy.host.name

        return UnitRequest(
            unit_name=unit_name_for(spec.name, self.build_id),
            image=spec.image or self.default_image,
            tasks=list(spec.tasks),
            shell=spec.shell,
            args=list(spec.args),
            env=env,
            privileged=policy.privileged,
            service_account=spec.service_account,
            image_pull_secrets=list(policy.image_pull_secrets),
            mounts=mounts,
            use_source=policy.use_source,
            node_selector=node_selector,
            resource_requests=dict(policy.resource_requests),
            resource_limits=dict(policy.resource_limits),
            labels={
                "heritage": "brigade",
                "component": "job",
                "jobname": spec.name,
                "project": self.project.id,
                "build": self.build_id,
            },
            namespace=self.project.kubernetes_config.namespace,
        )

    # =========================================================================
    # Waiting
    # =========================================================================

    def _watch(self, handle: JobHandle, future: Future) -> None:
        try:
            result = self._await(handle)
        except Exception as e:
            logger.error(f"[LIFECYCLE] Watcher for job '{handle.job_name}' failed: {e}")
            future.set_exception(e)
        else:
            future.set_result(result)

    def _await(self, handle: JobHandle) -> Result:
        """Poll the substrate until the unit is terminal or the deadline passes."""
        while True:
            try:
                phase = self.substrate.get_phase(handle.unit_name)
            except UnitNotFoundError as e:
                logger.error(f"[LIFECYCLE] Unit for job '{handle.job_name}' disappeared")
                return self._finish(handle, JobState.FAILED, output=str(e))
            except SubstrateUnavailableError as e:
                logger.warning(f"[LIFECYCLE] Poll for job '{handle.job_name}' failed: {e}")
                phase = UnitPhase.PENDING

            if phase == UnitPhase.RUNNING and handle.state == JobState.SUBMITTED:
                handle._transition(JobState.RUNNING)

            if phase.is_terminal:
                if phase == UnitPhase.SUCCEEDED:
                    # A finished unit was necessarily alive at some point
                    if handle.state == JobState.SUBMITTED:
                        handle._transition(JobState.RUNNING)
                    return self._finish(handle, JobState.SUCCEEDED)
                return self._finish(handle, JobState.FAILED)

            remaining = handle.deadline - time.monotonic()
            if remaining <= 0:
                return self._time_out(handle)

            time.sleep(min(self.poll_interval, remaining))

    def _time_out(self, handle: JobHandle) -> Result:
        timeout = handle.policy.timeout_seconds
        logger.warning(
            f"[LIFECYCLE] Job '{handle.job_name}' exceeded timeout of {timeout}s, "
            f"cancelling unit {handle.unit_name}"
        )
        try:
            self.substrate.cancel_unit(handle.unit_name)
        except SubstrateError as e:
            logger.error(f"[LIFECYCLE] Cancellation of unit {handle.unit_name} failed: {e}")
        output = self._collect_output(handle)
        output += f"\njob '{handle.job_name}' timed out after {timeout}s"
        return self._finish(handle, JobState.TIMED_OUT, output=output.lstrip("\n"))

    def _collect_output(self, handle: JobHandle) -> str:
        try:
            return self.substrate.logs(handle.unit_name)
        except SubstrateError as e:
            logger.warning(f"[LIFECYCLE] Could not read logs of unit {handle.unit_name}: {e}")
            return ""

    def _finish(self, handle: JobHandle, state: JobState, output: Optional[str] = None) -> Result:
        with handle._lock:
            if handle._result is not None:
                return handle._result

        if output is None:
            output = self._collect_output(handle)
        handle._transition(state)

        result = Result(
            job_name=handle.job_name,
            status=result_status_for(state),
            output=output,
            unit_name=handle.unit_name,
            started_at=handle.started_at,
            completed_at=datetime.now(),
        )
        with handle._lock:
            handle._result = result

        if result.succeeded:
            logger.info(f"[LIFECYCLE] {result.summary()}")
        else:
            logger.error(f"[LIFECYCLE] {result.summary()}")
        return result
