"""Bump tracking — an explicit "I'm delaying this" action."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from taskrank.domain.task import TaskSnapshot
from taskrank.lifecycle.validation import validate_snapshot

logger = logging.getLogger("taskrank.lifecycle.bump")

Recalculate = Callable[[TaskSnapshot, datetime], TaskSnapshot]


class BumpTracker:
    """Increments bump_count by exactly one and requests a full recompute."""

    def bump(self, snapshot: TaskSnapshot, now: datetime, recalculate: Recalculate) -> TaskSnapshot:
        validate_snapshot(snapshot, operation="bump")
        bumped = snapshot.model_copy(update={"bump_count": snapshot.bump_count + 1})
        logger.debug(f"Task {snapshot.id} bumped: {snapshot.bump_count} -> {bumped.bump_count}")
        return recalculate(bumped, now)
