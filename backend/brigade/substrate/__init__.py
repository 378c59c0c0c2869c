"""
Cluster substrate drivers.

The substrate creates, observes and destroys execution units and volumes.
Only the interface lives in the core; LocalSubstrate runs units as local
subprocesses for development.
"""

from .base import (
    NODE_SELECTOR_HOSTNAME,
    NODE_SELECTOR_OS,
    ClusterSubstrate,
    UnitPhase,
    UnitRequest,
    VolumeMount,
)
from .errors import SubstrateError, SubstrateUnavailableError, UnitNotFoundError
from .local import LocalSubstrate

__all__ = [
    "NODE_SELECTOR_HOSTNAME",
    "NODE_SELECTOR_OS",
    "ClusterSubstrate",
    "UnitPhase",
    "UnitRequest",
    "VolumeMount",
    "SubstrateError",
    "SubstrateUnavailableError",
    "UnitNotFoundError",
    "LocalSubstrate",
]
