"""
Brigade gateway service.

Application factory wiring settings, projects, persistence and the
cluster substrate into app.state, plus the uvicorn entry point.
"""

import importlib
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from . import __version__
from .config import Settings
from .gateway.routes import health_router, router as events_router
from .persistence.manager import PersistenceManager
from .projects.registry import ProjectRegistry
from .substrate.base import ClusterSubstrate
from .substrate.local import LocalSubstrate
from .worker.runtime import Setup

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the service."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def load_setup(path: str) -> Setup:
    """
    Resolve a "package.module:function" handler setup path.

    Raises:
        ValueError: If the path has no ":" separator
        ImportError: If the module cannot be imported
        AttributeError: If the module has no such attribute
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Handler setup must be 'module:function', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def create_app(
    settings: Optional[Settings] = None,
    projects: Optional[ProjectRegistry] = None,
    substrate: Optional[ClusterSubstrate] = None,
    persistence: Optional[PersistenceManager] = None,
    setup: Optional[Setup] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Anything not passed in is created from settings: projects from
    ``projects_file``, a LocalSubstrate in ``work_dir``, the SQLite ledger
    at ``db_path`` and the handler setup named by ``handlers``.
    """
    if settings is None:
        settings = Settings.from_env()

    if projects is None:
        projects = ProjectRegistry()
        if settings.projects_file:
            projects.load_file(settings.projects_file)
    if substrate is None:
        substrate = LocalSubstrate(work_dir=settings.work_dir)
    if persistence is None:
        persistence = PersistenceManager(db_path=settings.db_path)
    if setup is None and settings.handlers:
        setup = load_setup(settings.handlers)

    app = FastAPI(title="Brigade Gateway", version=__version__)

    app.state.settings = settings
    app.state.projects = projects
    app.state.substrate = substrate
    app.state.persistence = persistence
    app.state.setup = setup

    app.include_router(health_router)
    app.include_router(events_router)

    logger.info(
        f"[GATEWAY] Serving {projects.count()} project(s) on substrate '{substrate.name}'"
    )
    return app


def run_server(settings: Optional[Settings] = None) -> None:
    """Run the gateway with uvicorn."""
    if settings is None:
        settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
