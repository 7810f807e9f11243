"""
Lifecycle events — subscribers for task mutations.

Maps event names → list of (handler_name, handler, filter_fn). The
orchestrator fires an event after every successful mutation; downstream
consumers (e.g. streak bookkeeping on task.completed) subscribe here.

Example:
    registry.register(TASK_COMPLETED, "streaks", record_completion)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from taskrank.domain.task import TaskSnapshot

logger = logging.getLogger("taskrank.lifecycle.events")

TASK_CREATED = "task.created"
TASK_UPDATED = "task.updated"
TASK_BUMPED = "task.bumped"
TASK_COMPLETED = "task.completed"
TASK_REOPENED = "task.reopened"

LIFECYCLE_EVENTS = (TASK_CREATED, TASK_UPDATED, TASK_BUMPED, TASK_COMPLETED, TASK_REOPENED)


@dataclass
class LifecycleEvent:
    name: str
    task: TaskSnapshot
    occurred_at: datetime
    previous: Optional[TaskSnapshot] = None
    fields_changed: List[str] = field(default_factory=list)


Handler = Callable[[LifecycleEvent], Any]
FilterFn = Callable[[LifecycleEvent], bool]


class LifecycleEventRegistry:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Tuple[str, Handler, Optional[FilterFn]]]] = {}

    def register(
        self,
        event_name: str,
        handler_name: str,
        handler: Handler,
        filter_fn: Optional[FilterFn] = None,
    ) -> None:
        """Register a handler for an event. Re-registering a name is a no-op."""
        if event_name not in LIFECYCLE_EVENTS:
            raise ValueError(f"Unknown lifecycle event '{event_name}'")
        handlers = self._handlers.setdefault(event_name, [])
        if handler_name not in {name for name, _, _ in handlers}:
            handlers.append((handler_name, handler, filter_fn))
            logger.debug(f"Registered lifecycle handler: {event_name} → {handler_name}")

    def unregister(self, event_name: str, handler_name: str) -> None:
        if event_name in self._handlers:
            self._handlers[event_name] = [
                h for h in self._handlers[event_name] if h[0] != handler_name
            ]

    def get_handlers(self, event_name: str) -> List[Tuple[str, Handler, Optional[FilterFn]]]:
        return self._handlers.get(event_name, [])

    def fire(self, event: LifecycleEvent) -> List[str]:
        """
        Deliver *event* to every matching handler.

        A failing handler is logged and skipped; the mutation that produced
        the event has already succeeded.

        Returns:
            Names of handlers that ran successfully.
        """
        delivered: List[str] = []
        for handler_name, handler, filter_fn in self.get_handlers(event.name):
            if filter_fn and not filter_fn(event):
                logger.debug(f"Filter blocked handler: {event.name} → {handler_name}")
                continue
            try:
                handler(event)
                delivered.append(handler_name)
            except Exception as e:
                logger.error(
                    f"Lifecycle handler '{handler_name}' failed for {event.name} "
                    f"(task {event.task.id}): {e}"
                )
        return delivered

    def clear(self) -> None:
        self._handlers.clear()

    @property
    def count(self) -> int:
        return sum(len(v) for v in self._handlers.values())


_event_registry = LifecycleEventRegistry()


def get_event_registry() -> LifecycleEventRegistry:
    """Get the global lifecycle event registry."""
    return _event_registry
