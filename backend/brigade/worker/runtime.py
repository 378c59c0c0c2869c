"""
Build runtime.

One BuildRuntime serves one build of one project. It owns the job
controller and the handler registry the project's logic registers into.

Phases:
1. load(setup): setup(runtime) registers handlers, then the registry is
   frozen
2. fire(event): the event is dispatched; when no handler failed, an
   "after" event caused by it is dispatched next. A failing handler
   produces the "error" event instead (see HandlerRegistry)
3. close(): the controller's worker pool is stopped
"""

import logging
from typing import Callable, List, Optional

from ..config import Settings
from ..events.models import (
    EVENT_AFTER,
    EVENT_ERROR,
    TRIGGER_AFTER,
    Event,
    secondary_event,
)
from ..events.registry import DispatchOutcome, Handler, HandlerRegistry
from ..jobs.controller import JobController
from ..jobs.group import Group
from ..jobs.models import JobSpec
from ..jobs.policy import PolicyResolver
from ..persistence.manager import PersistenceManager
from ..projects.models import Project
from ..substrate.base import ClusterSubstrate

logger = logging.getLogger(__name__)


# setup(runtime) registers the project's handlers
Setup = Callable[["BuildRuntime"], None]


class BuildRuntime:
    """
    Controller and registry for a single build.

    Handlers receive (event, project) and declare jobs through
    ``runtime.controller`` or ``runtime.group()``.
    """

    def __init__(
        self,
        project: Project,
        substrate: ClusterSubstrate,
        persistence: PersistenceManager,
        build_id: str,
        commit: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        if settings is None:
            settings = Settings()
        self.project = project
        self.settings = settings
        self.build_id = build_id

        self.resolver = PolicyResolver(project, persistence, defaults=settings.default_policy())
        self.controller = JobController(
            substrate,
            self.resolver,
            build_id=build_id,
            commit=commit,
            default_image=settings.default_image,
            poll_interval=settings.poll_interval,
        )
        self.registry = HandlerRegistry(controller=self.controller)

    @classmethod
    def for_event(
        cls,
        event: Event,
        project: Project,
        substrate: ClusterSubstrate,
        persistence: PersistenceManager,
        settings: Optional[Settings] = None,
    ) -> "BuildRuntime":
        """Create the runtime for the build an event starts."""
        return cls(
            project,
            substrate,
            persistence,
            build_id=event.build_id,
            commit=event.commit,
            settings=settings,
        )

    def on(self, event_type: str, handler: Handler) -> None:
        self.registry.on(event_type, handler)

    def group(self, *specs: JobSpec) -> Group:
        return Group(self.controller, specs)

    def load(self, setup: Optional[Setup]) -> None:
        """
        Run the logic-load phase and freeze the registry.

        Exceptions raised by setup propagate; nothing has been dispatched.
        """
        if setup is not None:
            setup(self)
        self.registry.freeze()
        logger.info(
            f"[DISPATCH] Build {self.build_id} of '{self.project.name}' loaded "
            f"handlers for {self.registry.types()}"
        )

    def fire(self, event: Event) -> List[DispatchOutcome]:
        """
        Dispatch an event and its "after" follow-up.

        Returns:
            Outcomes in dispatch order: the event's, then the "after"
            event's when one was fired
        """
        outcomes = [self.registry.dispatch(event, self.project)]
        if outcomes[0].failed or event.type in (EVENT_AFTER, EVENT_ERROR):
            return outcomes

        after = secondary_event(event, EVENT_AFTER, reason="build completed", trigger=TRIGGER_AFTER)
        outcomes.append(self.registry.dispatch(after, self.project))
        return outcomes

    def close(self) -> None:
        self.controller.shutdown(wait=True)

    def __enter__(self) -> "BuildRuntime":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
