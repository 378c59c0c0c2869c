"""
Local substrate driver.

Runs each execution unit's tasks as a shell subprocess on this host.
Intended for development and single-node setups: images are not pulled,
privileged mode and placement preferences are ignored, and volumes are
plain directories under the driver's work directory.

- Output (stdout + stderr) is captured to one log file per unit
- Volume mounts are exposed through BRIGADE_MOUNT_* environment variables
- SIGTERM → SIGKILL escalation for cancellation
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from .base import ClusterSubstrate, UnitPhase, UnitRequest
from .errors import SubstrateUnavailableError, UnitNotFoundError

logger = logging.getLogger(__name__)

# Seconds to wait after SIGTERM before escalating to SIGKILL
TERMINATE_GRACE_SECONDS = 5


class LocalSubstrate(ClusterSubstrate):
    """
    Subprocess-backed substrate.

    One subprocess per unit. Units are tracked until the driver is closed.
    """

    def __init__(self, work_dir: Optional[str] = None):
        """
        Initialize the driver.

        Args:
            work_dir: Directory for logs and volumes (defaults to a temp dir)
        """
        if work_dir is None:
            work_dir = tempfile.mkdtemp(prefix="brigade-local-")
        self.work_dir = Path(work_dir)
        self._logs_dir = self.work_dir / "logs"
        self._volumes_dir = self.work_dir / "volumes"

        # unit_name -> process
        self._processes: Dict[str, subprocess.Popen] = {}
        self._cancelled: set = set()
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "local"

    def _log_path(self, unit_name: str) -> Path:
        return self._logs_dir / f"{unit_name}.log"

    def volume_path(self, volume_name: str) -> Path:
        return self._volumes_dir / volume_name

    def create_unit(self, request: UnitRequest) -> str:
        """Launch the unit's script as a subprocess."""
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SubstrateUnavailableError(f"work directory not writable: {e}") from e

        if request.privileged:
            logger.warning(f"[Local] Unit {request.unit_name}: privileged mode ignored")

        env = dict(os.environ)
        env.update(request.env)
        for mount in request.mounts:
            volume_dir = self.volume_path(mount.name)
            volume_dir.mkdir(parents=True, exist_ok=True)
            key = "BRIGADE_MOUNT_" + mount.path.strip("/").replace("/", "_").upper()
            env[key] = str(volume_dir)

        script = request.script()
        if script:
            argv = [request.shell, "-c", script]
        elif request.args:
            argv = list(request.args)
        else:
            # No tasks and no args: the image entrypoint has nothing to run here
            argv = [request.shell, "-c", "true"]

        # The child keeps its own descriptor once started
        with open(self._log_path(request.unit_name), "wb") as log_file:
            try:
                process = subprocess.Popen(
                    argv,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    env=env,
                )
            except OSError as e:
                raise SubstrateUnavailableError(f"cannot start {argv[0]}: {e}") from e

        with self._lock:
            self._processes[request.unit_name] = process

        logger.info(f"[Local] Started unit {request.unit_name} (PID {process.pid})")
        return request.unit_name

    def get_phase(self, unit_name: str) -> UnitPhase:
        with self._lock:
            process = self._processes.get(unit_name)
            cancelled = unit_name in self._cancelled
        if process is None:
            raise UnitNotFoundError(unit_name)

        exit_code = process.poll()
        if exit_code is None:
            return UnitPhase.RUNNING
        if exit_code == 0 and not cancelled:
            return UnitPhase.SUCCEEDED
        return UnitPhase.FAILED

    def cancel_unit(self, unit_name: str) -> None:
        with self._lock:
            process = self._processes.get(unit_name)
            self._cancelled.add(unit_name)
        if process is None or process.poll() is not None:
            return

        logger.info(f"[Local] Sending SIGTERM to PID {process.pid} ({unit_name})")
        try:
            process.terminate()
            try:
                process.wait(timeout=TERMINATE_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                logger.warning(f"[Local] PID {process.pid} did not terminate, sending SIGKILL")
                process.kill()
                process.wait()
        except ProcessLookupError:
            pass  # Process already dead

    def logs(self, unit_name: str) -> str:
        path = self._log_path(unit_name)
        if not path.exists():
            raise UnitNotFoundError(unit_name)
        return path.read_text(encoding="utf-8", errors="replace")

    def ensure_volume(
        self,
        volume_name: str,
        size: str,
        storage_class: Optional[str] = None,
    ) -> None:
        # Sizes are not enforced on local directories
        self.volume_path(volume_name).mkdir(parents=True, exist_ok=True)

    def destroy_volume(self, volume_name: str) -> None:
        shutil.rmtree(self.volume_path(volume_name), ignore_errors=True)

    def close(self) -> None:
        """Cancel any units still running."""
        with self._lock:
            running = [name for name, p in self._processes.items() if p.poll() is None]
        for unit_name in running:
            self.cancel_unit(unit_name)
