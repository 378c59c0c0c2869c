"""
Build execution for admitted events.

Runs after the HTTP response is committed: the response status only
reports admission, never handler outcomes.
"""

import logging
from typing import List

from ..events.models import Event
from ..events.registry import DispatchOutcome
from ..projects.models import Project
from ..worker.runtime import BuildRuntime

logger = logging.getLogger(__name__)


def run_build(state, project: Project, event: Event) -> List[DispatchOutcome]:
    """
    Load the project's handlers into a fresh runtime and fire the event.

    Args:
        state: Application state carrying substrate, persistence, settings
            and the handler setup callable
        project: Project the event was admitted for
        event: The admitted event

    Returns:
        Dispatch outcomes, in order
    """
    runtime = BuildRuntime.for_event(
        event,
        project,
        state.substrate,
        state.persistence,
        settings=state.settings,
    )
    with runtime:
        runtime.load(state.setup)
        outcomes = runtime.fire(event)

    failed = [o for o in outcomes if o.failed]
    if failed:
        logger.warning(f"[GATEWAY] Build {event.build_id} finished with a handler failure")
    else:
        logger.info(f"[GATEWAY] Build {event.build_id} finished")
    return outcomes


def run_build_detached(state, project: Project, event: Event) -> None:
    """
    Background-task entry point for run_build.

    There is no caller left to raise to, so failures are logged with
    their traceback.
    """
    try:
        run_build(state, project, event)
    except Exception:
        logger.exception(f"[GATEWAY] Build {event.build_id} of '{project.name}' aborted")
