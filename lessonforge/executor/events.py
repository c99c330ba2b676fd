"""Per-workflow publish/subscribe channel for lifecycle events.

Events are delivered synchronously, in emission order, to the listeners
subscribed to that workflow id only. Every event is also appended to the
workflow's event log so pollers can read the full history.
"""

import logging
import threading
from typing import Callable

from lessonforge.executor.schemas import WorkflowEvent

logger = logging.getLogger(__name__)

EventListener = Callable[[WorkflowEvent], None]


class EventBus:
    """Typed event channel keyed by workflow id."""

    def __init__(self):
        self._listeners: dict[str, list[EventListener]] = {}
        self._log: dict[str, list[WorkflowEvent]] = {}
        self._lock = threading.Lock()

    def subscribe(self, workflow_id: str, listener: EventListener) -> None:
        with self._lock:
            self._listeners.setdefault(workflow_id, []).append(listener)

    def unsubscribe(self, workflow_id: str, listener: EventListener) -> bool:
        with self._lock:
            listeners = self._listeners.get(workflow_id, [])
            if listener not in listeners:
                return False
            listeners.remove(listener)
            return True

    def publish(self, event: WorkflowEvent) -> None:
        """Record the event and deliver it to that workflow's listeners.

        A listener that raises is logged; delivery to the rest continues.
        """
        with self._lock:
            self._log.setdefault(event.workflow_id, []).append(event)
            listeners = list(self._listeners.get(event.workflow_id, []))

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    f"Event listener for workflow {event.workflow_id} failed "
                    f"on {event.type.value}: {e}",
                    exc_info=True,
                )

    def events(self, workflow_id: str) -> list[WorkflowEvent]:
        with self._lock:
            return list(self._log.get(workflow_id, []))

    def listener_count(self, workflow_id: str) -> int:
        with self._lock:
            return len(self._listeners.get(workflow_id, []))

    def drop(self, workflow_id: str) -> None:
        """Forget listeners and event log for a workflow."""
        with self._lock:
            self._listeners.pop(workflow_id, None)
            self._log.pop(workflow_id, None)
