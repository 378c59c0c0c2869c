"""
In-memory project registry.

Projects are looked up by id (job and event routing) or by name
(webhook admission, where the provider only knows "org/repo").
Definitions can be loaded explicitly from a JSON file.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ProjectLoadError, ProjectNotFoundError
from .models import Project

logger = logging.getLogger(__name__)


class ProjectRegistry:
    """
    Registry of known projects.
    
    Adding a project with an existing id replaces it.
    """
    
    def __init__(self, projects: Optional[List[Project]] = None):
        # project_id -> Project
        self._projects: Dict[str, Project] = {}
        for project in projects or []:
            self.add(project)
    
    def add(self, project: Project) -> None:
        """Add or replace a project."""
        self._projects[project.id] = project
        logger.debug(f"Registered project '{project.name}' as {project.id}")
    
    def get(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)
    
    def get_or_raise(self, project_id: str) -> Project:
        """
        Retrieve a project by id.
        
        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        project = self.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project
    
    def find_by_name(self, name: str) -> Project:
        """
        Retrieve a project by name (e.g. "org/repo").
        
        Raises:
            ProjectNotFoundError: If no project has that name
        """
        for project in self._projects.values():
            if project.name == name:
                return project
        raise ProjectNotFoundError(name)
    
    def list_projects(self) -> List[Project]:
        """List all projects, ordered by name."""
        return sorted(self._projects.values(), key=lambda p: p.name)
    
    def count(self) -> int:
        return len(self._projects)
    
    def load_file(self, path: Union[str, Path]) -> int:
        """
        Load project definitions from a JSON file.
        
        The file holds a list of project objects.
        
        Args:
            path: Path to the JSON file
            
        Returns:
            Number of projects loaded
            
        Raises:
            ProjectLoadError: If the file is unreadable or a definition is invalid
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ProjectLoadError(f"Cannot read projects file {path}: {e}") from e
        
        if not isinstance(raw, list):
            raise ProjectLoadError(f"Projects file {path} must contain a list")
        
        try:
            projects = [Project.model_validate(item) for item in raw]
        except ValidationError as e:
            raise ProjectLoadError(f"Invalid project definition in {path}: {e}") from e
        
        for project in projects:
            self.add(project)
        
        logger.info(f"Loaded {len(projects)} project(s) from {path}")
        return len(projects)
