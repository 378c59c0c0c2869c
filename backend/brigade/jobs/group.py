"""
Job groups: run many job specifications in parallel or in sequence.

Parallel (run_all):
- Every member is submitted before any is waited on
- Results come back in submission order, whatever the completion order
- A failing member never cancels its siblings; group failure is read
  from the Results (see any_failed)

Sequential (run_each):
- Each member is submitted only after the previous one is terminal
- Only the last member's Result is returned
- An earlier failure does NOT stop later members. Callers that need
  fail-fast run members one by one with JobController.run()

Members may be added until execution starts. A group executes once.
"""

import logging
import threading
from typing import Iterable, List, Optional, Sequence, TYPE_CHECKING

from .errors import GroupAlreadyRunningError
from .models import JobSpec, Result

if TYPE_CHECKING:
    from .controller import JobController

logger = logging.getLogger(__name__)


class Group:
    """
    Ordered collection of job specifications run through one controller.
    """

    def __init__(self, controller: "JobController", specs: Iterable[JobSpec] = ()):
        self.controller = controller
        self._specs: List[JobSpec] = list(specs)
        self._running = False
        self._lock = threading.Lock()

    def add(self, *specs: JobSpec) -> None:
        """
        Append job specifications.

        Raises:
            GroupAlreadyRunningError: If execution has started
        """
        with self._lock:
            if self._running:
                raise GroupAlreadyRunningError("add")
            self._specs.extend(specs)

    def length(self) -> int:
        """Number of member specifications."""
        with self._lock:
            return len(self._specs)

    def __len__(self) -> int:
        return self.length()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def _start(self, operation: str) -> List[JobSpec]:
        with self._lock:
            if self._running:
                raise GroupAlreadyRunningError(operation)
            self._running = True
            return list(self._specs)

    def run_all(self) -> List[Result]:
        """
        Run every member concurrently.

        Names are validated for every member before the first submission.

        Returns:
            One Result per member, in submission order

        Raises:
            JobValidationError: If any member is rejected (nothing submitted)
            SubmissionError: If the substrate cannot be reached; members
                already submitted keep running
        """
        specs = self._start("run_all")
        self.controller.declare(*specs)

        logger.info(f"[GROUP] Running {len(specs)} job(s) in parallel")
        handles = [self.controller.background(spec) for spec in specs]

        # Fan-in follows submission order, not completion order
        results = [self.controller.wait(handle) for handle in handles]

        failed = [r.job_name for r in results if not r.succeeded]
        if failed:
            logger.warning(f"[GROUP] {len(failed)} of {len(results)} job(s) did not succeed: {failed}")
        return results

    def run_each(self) -> Optional[Result]:
        """
        Run members one at a time, each after the previous is terminal.

        Does not short-circuit on failure.

        Returns:
            The last member's Result, or None for an empty group

        Raises:
            JobValidationError: If any member is rejected (nothing submitted)
            SubmissionError: If the substrate cannot be reached
        """
        specs = self._start("run_each")
        self.controller.declare(*specs)

        logger.info(f"[GROUP] Running {len(specs)} job(s) in sequence")
        result = None
        for spec in specs:
            result = self.controller.run(spec)
            if not result.succeeded:
                logger.warning(
                    f"[GROUP] Job '{spec.name}' ended {result.status.value}, "
                    f"continuing with next job"
                )
        return result


def any_failed(results: Sequence[Result]) -> bool:
    """True if at least one Result did not succeed."""
    return any(not result.succeeded for result in results)


def run_all(controller: "JobController", specs: Iterable[JobSpec]) -> List[Result]:
    """Run specifications concurrently as a one-off group."""
    return Group(controller, specs).run_all()


def run_each(controller: "JobController", specs: Iterable[JobSpec]) -> Optional[Result]:
    """Run specifications sequentially as a one-off group."""
    return Group(controller, specs).run_each()
