"""
Shared fixtures for Brigade core tests.

FakeSubstrate plays scripted phase sequences instead of talking to a
cluster, and records every call so tests can assert on submission order
and cancellation counts.
"""

import threading
from typing import Dict, List, Optional

import pytest

from brigade.jobs.controller import JobController
from brigade.jobs.policy import PolicyResolver
from brigade.persistence.manager import PersistenceManager
from brigade.projects.models import Project, Repository
from brigade.substrate.base import ClusterSubstrate, UnitPhase, UnitRequest
from brigade.substrate.errors import SubstrateUnavailableError, UnitNotFoundError


class FakeSubstrate(ClusterSubstrate):
    """
    Scripted substrate.

    ``script(job_name, phases, output)`` sets the phases reported by
    successive polls of that job's unit; the last phase repeats. Jobs
    without a script succeed on the first poll.
    """

    def __init__(self):
        self.requests: List[UnitRequest] = []
        self.cancelled: List[str] = []
        self.volumes: Dict[str, str] = {}
        self.destroyed_volumes: List[str] = []
        # Ordered ("created" | "terminal", job_name) records
        self.timeline: List[tuple] = []
        self.unavailable = False

        self._scripts: Dict[str, List[UnitPhase]] = {}
        self._outputs: Dict[str, str] = {}
        self._units: Dict[str, dict] = {}
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def script(self, job_name: str, phases: List[str], output: str = "") -> None:
        self._scripts[job_name] = [UnitPhase(p) for p in phases]
        self._outputs[job_name] = output

    def create_unit(self, request: UnitRequest) -> str:
        if self.unavailable:
            raise SubstrateUnavailableError("connection refused")
        job_name = request.labels["jobname"]
        with self._lock:
            self.requests.append(request)
            self.timeline.append(("created", job_name))
            self._units[request.unit_name] = {
                "job": job_name,
                "phases": list(self._scripts.get(job_name, [UnitPhase.SUCCEEDED])),
                "terminal": False,
            }
        return request.unit_name

    def get_phase(self, unit_name: str) -> UnitPhase:
        with self._lock:
            unit = self._units.get(unit_name)
            if unit is None:
                raise UnitNotFoundError(unit_name)
            phases = unit["phases"]
            phase = phases.pop(0) if len(phases) > 1 else phases[0]
            if phase.is_terminal and not unit["terminal"]:
                unit["terminal"] = True
                self.timeline.append(("terminal", unit["job"]))
            return phase

    def cancel_unit(self, unit_name: str) -> None:
        with self._lock:
            self.cancelled.append(unit_name)
            unit = self._units.get(unit_name)
            if unit is not None:
                unit["phases"] = [UnitPhase.FAILED]

    def logs(self, unit_name: str) -> str:
        with self._lock:
            unit = self._units.get(unit_name)
            if unit is None:
                raise UnitNotFoundError(unit_name)
            return self._outputs.get(unit["job"], "")

    def ensure_volume(self, volume_name: str, size: str, storage_class: Optional[str] = None) -> None:
        with self._lock:
            self.volumes.setdefault(volume_name, size)

    def destroy_volume(self, volume_name: str) -> None:
        with self._lock:
            self.volumes.pop(volume_name, None)
            self.destroyed_volumes.append(volume_name)

    def request_for(self, job_name: str) -> UnitRequest:
        for request in self.requests:
            if request.labels["jobname"] == job_name:
                return request
        raise KeyError(job_name)

    def created_jobs(self) -> List[str]:
        return [job for kind, job in self.timeline if kind == "created"]


@pytest.fixture
def substrate():
    return FakeSubstrate()


@pytest.fixture
def persistence(tmp_path):
    return PersistenceManager(db_path=str(tmp_path / "brigade.db"))


@pytest.fixture
def project():
    return Project(
        name="deis/empty-testbed",
        repository=Repository(
            name="github.com/deis/empty-testbed",
            clone_url="https://github.com/deis/empty-testbed.git",
        ),
        secrets={"greeting": "hello"},
        shared_secret="MySecret",
    )


@pytest.fixture
def resolver(project, persistence):
    return PolicyResolver(project, persistence)


@pytest.fixture
def controller(substrate, resolver):
    controller = JobController(
        substrate,
        resolver,
        build_id="build-1",
        commit="589e15029e1e44dee48de4800daf1f78e64287c0",
        poll_interval=0.01,
    )
    yield controller
    controller.shutdown()
