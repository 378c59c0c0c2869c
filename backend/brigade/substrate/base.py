"""
Cluster substrate abstraction layer.

The substrate is the external system that creates, observes and destroys
execution units (pods) and volumes. The job controller talks to it only
through this interface.

Design rules:
- Substrates are stateless from the controller's point of view:
  every call names the unit or volume it concerns
- Host placement is a preference, never a guarantee
- Unreachable cluster raises SubstrateUnavailableError, never a phase
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class UnitPhase(str, Enum):
    """
    Observed phase of an execution unit.
    """
    
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    
    @property
    def is_terminal(self) -> bool:
        return self in (UnitPhase.SUCCEEDED, UnitPhase.FAILED)


# Node selector labels used for host placement preferences
NODE_SELECTOR_OS = "beta.kubernetes.io/os"
NODE_SELECTOR_HOSTNAME = "kubernetes.io/hostname"

# Kubernetes object names (pods, volume claims) are capped at 63 characters
MAX_NAME_LENGTH = 63
NAME_HASH_LENGTH = 10


def bounded_name(head: str, tail: str) -> str:
    """
    Join two name parts into a unique Kubernetes object name.
    
    Names that fit are returned as "{head}-{tail}". Longer names keep
    ``tail`` whole, shorten ``head`` and insert a hash of the full name,
    so joined names that differ anywhere stay different once shortened.
    If ``tail`` alone is too long, the hash replaces everything past the
    limit.
    """
    name = f"{head}-{tail}".lower()
    if len(name) <= MAX_NAME_LENGTH:
        return name
    
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:NAME_HASH_LENGTH]
    room = MAX_NAME_LENGTH - len(tail) - NAME_HASH_LENGTH - 2
    if room < 1:
        prefix = name[:MAX_NAME_LENGTH - NAME_HASH_LENGTH - 1].rstrip("-")
        return f"{prefix}-{digest}"
    prefix = head.lower()[:room].rstrip("-")
    return f"{prefix}-{digest}-{tail.lower()}"


@dataclass
class VolumeMount:
    """A named volume mounted into a unit at ``path``."""
    name: str
    path: str
    size: Optional[str] = None
    read_only: bool = False


@dataclass
class UnitRequest:
    """
    Everything the substrate needs to create one execution unit.
    
    Built by the job controller from a job specification and its
    resolved policy.
    """
    unit_name: str
    image: str
    tasks: List[str] = field(default_factory=list)
    shell: str = "/bin/sh"
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    privileged: bool = False
    service_account: Optional[str] = None
    image_pull_secrets: List[str] = field(default_factory=list)
    mounts: List[VolumeMount] = field(default_factory=list)
    use_source: bool = True
    node_selector: Dict[str, str] = field(default_factory=dict)
    resource_requests: Dict[str, str] = field(default_factory=dict)
    resource_limits: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    namespace: str = "default"
    
    def script(self) -> str:
        """Tasks joined into a single fail-fast shell script."""
        if not self.tasks:
            return ""
        return "set -e\n" + "\n".join(self.tasks) + "\n"


class ClusterSubstrate(ABC):
    """
    Abstract base class for cluster substrate drivers.
    
    All drivers must implement:
    - create_unit: Create an execution unit, return its name
    - get_phase: Observe the unit's current phase
    - cancel_unit: Stop a unit
    - logs: Captured output of a unit
    - ensure_volume / destroy_volume: Persistent volume management
    """
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable driver name for logs."""
        pass
    
    @abstractmethod
    def create_unit(self, request: UnitRequest) -> str:
        """
        Create an execution unit.
        
        Args:
            request: Unit description
            
        Returns:
            The unit identifier assigned by the substrate
            
        Raises:
            SubstrateUnavailableError: If the cluster cannot be reached
        """
        pass
    
    @abstractmethod
    def get_phase(self, unit_name: str) -> UnitPhase:
        """
        Observe the phase of a unit.
        
        Raises:
            UnitNotFoundError: If the unit does not exist
        """
        pass
    
    @abstractmethod
    def cancel_unit(self, unit_name: str) -> None:
        """Stop a unit. Cancelling a finished unit is a no-op."""
        pass
    
    @abstractmethod
    def logs(self, unit_name: str) -> str:
        """
        Captured output of a unit.
        
        For units that never started (image pull failure) this carries
        the substrate's diagnostic message.
        """
        pass
    
    @abstractmethod
    def ensure_volume(
        self,
        volume_name: str,
        size: str,
        storage_class: Optional[str] = None,
    ) -> None:
        """
        Create a persistent volume if it does not already exist.
        
        An existing volume is left untouched, whatever its size.
        """
        pass
    
    @abstractmethod
    def destroy_volume(self, volume_name: str) -> None:
        """Delete a persistent volume. Missing volumes are ignored."""
        pass
