"""
Handler registry and event dispatcher.

Handler logic registers one callable per event type during the load phase.
The registry is frozen before (or at) the first dispatch; registration
after that point raises RegistryFrozenError.

Failure propagation:
- A handler that raises is caught exactly once
- The failure becomes an "error" event (trigger "unhandled-exception")
  caused by the event that was being handled, dispatched through the same
  registry
- A failure while handling an "error" event is not converted again; it
  propagates to the caller
"""

import logging
import threading
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from .errors import RegistryFrozenError
from .models import EVENT_ERROR, TRIGGER_UNHANDLED_EXCEPTION, Event, secondary_event

if TYPE_CHECKING:
    from ..jobs.controller import JobController
    from ..projects.models import Project

logger = logging.getLogger(__name__)


# handler(event, project) -> anything; the return value is ignored
Handler = Callable[[Event, Optional["Project"]], Any]


@dataclass(frozen=True)
class DispatchOutcome:
    """
    What happened when an event was dispatched.

    ``handled`` is False when no handler was registered for the type.
    ``error_event`` is the synthesized "error" event if the handler failed.
    """
    event: Event
    handled: bool
    error_event: Optional[Event] = None
    error_outcome: Optional["DispatchOutcome"] = None

    @property
    def failed(self) -> bool:
        return self.error_event is not None


class HandlerRegistry:
    """
    Explicit per-project mapping of event type to handler.

    Args:
        controller: Job controller whose name scope wraps each handler call
    """

    def __init__(self, controller: Optional["JobController"] = None):
        self.controller = controller
        self._handlers: Dict[str, Handler] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def on(self, event_type: str, handler: Handler) -> None:
        """
        Register a handler, replacing any previous one for the type.

        Raises:
            RegistryFrozenError: If dispatch has begun
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(event_type)
            if event_type in self._handlers:
                logger.debug(f"[DISPATCH] Replacing handler for '{event_type}'")
            self._handlers[event_type] = handler

    def has(self, event_type: str) -> bool:
        with self._lock:
            return event_type in self._handlers

    def types(self) -> List[str]:
        """Registered event types, sorted."""
        with self._lock:
            return sorted(self._handlers)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        with self._lock:
            return self._frozen

    def dispatch(self, event: Event, project: Optional["Project"] = None) -> DispatchOutcome:
        """
        Invoke the handler registered for ``event.type``.

        Freezes the registry. A missing handler is a no-op.

        Returns:
            DispatchOutcome describing the invocation

        Raises:
            Exception: Whatever a handler of an "error" event raised
        """
        self.freeze()

        with self._lock:
            handler = self._handlers.get(event.type)

        if handler is None:
            if event.type == EVENT_ERROR:
                cause = event.cause
                logger.warning(
                    f"[DISPATCH] Unhandled error event {event.id}: "
                    f"{cause.reason if cause else 'no cause'}"
                )
            else:
                logger.info(f"[DISPATCH] No handler for '{event.type}' (event {event.id})")
            return DispatchOutcome(event=event, handled=False)

        logger.info(f"[DISPATCH] Handling '{event.type}' event {event.id} from {event.provider}")

        if event.type == EVENT_ERROR:
            # Errors raised while handling an error are the caller's problem
            self._invoke(handler, event, project)
            return DispatchOutcome(event=event, handled=True)

        try:
            self._invoke(handler, event, project)
        except Exception as e:
            detail = f"{type(e).__name__}: {e}"
            logger.error(f"[DISPATCH] Handler for '{event.type}' event {event.id} failed: {detail}")
            logger.debug(traceback.format_exc())

            error_event = secondary_event(
                event, EVENT_ERROR, reason=detail, trigger=TRIGGER_UNHANDLED_EXCEPTION
            )
            error_outcome = self.dispatch(error_event, project)
            return DispatchOutcome(
                event=event,
                handled=True,
                error_event=error_event,
                error_outcome=error_outcome,
            )

        return DispatchOutcome(event=event, handled=True)

    def _invoke(self, handler: Handler, event: Event, project: Optional["Project"]) -> None:
        if self.controller is None:
            handler(event, project)
            return
        with self.controller.invocation():
            handler(event, project)
