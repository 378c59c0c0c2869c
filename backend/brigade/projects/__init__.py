"""
Project definitions and lookup.
"""

from .errors import ProjectError, ProjectLoadError, ProjectNotFoundError
from .models import KubernetesConfig, Project, Repository, project_id_for
from .registry import ProjectRegistry

__all__ = [
    "ProjectError",
    "ProjectLoadError",
    "ProjectNotFoundError",
    "KubernetesConfig",
    "Project",
    "Repository",
    "project_id_for",
    "ProjectRegistry",
]
