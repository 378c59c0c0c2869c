"""
Project-specific error types.
"""


class ProjectError(Exception):
    """Base exception for project lookup and loading failures."""
    pass


class ProjectNotFoundError(ProjectError):
    """Raised when a project cannot be found in the registry."""
    
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Project not found: {key}")


class ProjectLoadError(ProjectError):
    """Raised when a project definitions file cannot be read or parsed."""
    pass
