"""TaskRank lifecycle — orchestration of create / update / bump / complete."""

from taskrank.lifecycle.bump import BumpTracker  # noqa: F401
from taskrank.lifecycle.events import LifecycleEvent, LifecycleEventRegistry, get_event_registry  # noqa: F401
from taskrank.lifecycle.orchestrator import LifecycleOrchestrator  # noqa: F401
from taskrank.lifecycle.validation import load_snapshot, validate_snapshot  # noqa: F401

__all__ = [
    "BumpTracker",
    "LifecycleEvent",
    "LifecycleEventRegistry",
    "LifecycleOrchestrator",
    "get_event_registry",
    "load_snapshot",
    "validate_snapshot",
]
