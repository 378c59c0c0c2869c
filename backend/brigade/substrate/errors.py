"""
Cluster substrate errors.

Raised by substrate drivers when the cluster cannot be reached or refuses
a request. Execution failures inside a unit are NOT errors: they are
reported through the unit's phase and logs.
"""


class SubstrateError(Exception):
    """Base exception for substrate driver failures."""
    
    pass


class SubstrateUnavailableError(SubstrateError):
    """The cluster substrate could not be reached."""
    
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cluster substrate unavailable: {reason}")


class UnitNotFoundError(SubstrateError):
    """The substrate has no execution unit with the given name."""
    
    def __init__(self, unit_name: str):
        self.unit_name = unit_name
        super().__init__(f"Execution unit not found: {unit_name}")
