"""
Recalculation Sweep — re-scores tasks whose score went stale with time.

time_decay and deadline_urgency are functions of "now", so an untouched task
drifts in priority. A sweep run:

1. Selects active tasks scored before (now - interval), one page at a time
   (keyset on id, batch_size per page)
2. Recomputes score and risk for each task
3. Writes only priority_score, at_risk and score_calculated_at, conditional
   on the task still being active (a lost race is a skip, not an error)
4. Retries a failing item up to max_retries times, then logs and moves on

At most one run is in flight per sweep instance; an overlapping call returns
immediately. A set cancel event stops the run before the next page.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from taskrank.db.store import TaskStore
from taskrank.domain.task import TaskSnapshot, as_utc
from taskrank.engine.errors import TaskRankError, TaskRankSweepError
from taskrank.engine.logging import (
    log,
    log_sweep_item_failure,
    log_sweep_performance,
    log_sweep_run,
)
from taskrank.priority.calculator import PriorityCalculator
from taskrank.priority.risk import AtRiskClassifier

logger = logging.getLogger("taskrank.sweep.recalculation")

DEFAULT_INTERVAL = timedelta(hours=6)


@dataclass
class SweepResult:
    sweep_id: str
    started_at: datetime
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    batches: int = 0
    cancelled: bool = False
    skipped_overlap: bool = False
    aborted: bool = False
    duration_ms: float = 0.0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.updated + self.skipped + self.failed

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["started_at"] = self.started_at.isoformat()
        d["processed"] = self.processed
        return d


class RecalculationSweep:
    def __init__(
        self,
        store: TaskStore,
        calculator: Optional[PriorityCalculator] = None,
        classifier: Optional[AtRiskClassifier] = None,
        interval: timedelta = DEFAULT_INTERVAL,
        batch_size: int = 100,
        max_retries: int = 2,
        retry_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._store = store
        self._calculator = calculator or PriorityCalculator()
        self._classifier = classifier or AtRiskClassifier()
        self.interval = interval
        self.batch_size = batch_size
        self.max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, store: TaskStore, config: Any = None) -> "RecalculationSweep":
        if config is None:
            from taskrank.engine.config import get_config
            config = get_config()
        sweep = config.sweep
        return cls(
            store,
            interval=sweep.interval,
            batch_size=sweep.batch_size,
            max_retries=sweep.max_retries,
            retry_delay=sweep.retry_delay_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def cutoff(self, now: datetime) -> datetime:
        return as_utc(now) - self.interval

    def is_stale(self, snapshot: TaskSnapshot, now: datetime) -> bool:
        """Active and never scored, or scored before now - interval."""
        if not snapshot.is_active:
            return False
        if snapshot.score_calculated_at is None:
            return True
        return as_utc(snapshot.score_calculated_at) < self.cutoff(now)

    def run_once(self, now: datetime, cancel_event: Optional[threading.Event] = None) -> SweepResult:
        """Run one sweep at *now*; returns immediately if one is already running."""
        sweep_id = f"sweep_{uuid.uuid4().hex[:12]}"
        if not self._lock.acquire(blocking=False):
            logger.info(f"Sweep {sweep_id} skipped: previous sweep still running")
            return SweepResult(sweep_id=sweep_id, started_at=as_utc(now), skipped_overlap=True)
        try:
            return self._run(sweep_id, as_utc(now), cancel_event)
        finally:
            self._lock.release()

    def _run(self, sweep_id: str, now: datetime, cancel_event: Optional[threading.Event]) -> SweepResult:
        result = SweepResult(sweep_id=sweep_id, started_at=now)
        cutoff = self.cutoff(now)
        start = time.monotonic()
        after_id: Optional[int] = None

        logger.info(f"Sweep {sweep_id} started (cutoff {cutoff.isoformat()})")

        while True:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(f"Sweep {sweep_id} cancelled after {result.batches} batches")
                break

            try:
                batch = self._store.find_stale_active(cutoff, self.batch_size, after_id)
            except TaskRankError as e:
                result.aborted = True
                result.errors.append(e.to_dict())
                logger.error(f"Sweep {sweep_id} could not select tasks: {e}")
                break

            if not batch:
                break

            result.batches += 1
            batch_start = time.monotonic()
            for task in batch:
                self._process(sweep_id, task, now, result)
            log(log_sweep_performance(
                sweep_id, result.batches, len(batch), (time.monotonic() - batch_start) * 1000,
            ))

            after_id = batch[-1].id
            if len(batch) < self.batch_size:
                break

        result.duration_ms = (time.monotonic() - start) * 1000
        log(log_sweep_run(
            sweep_id=sweep_id,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            batches=result.batches,
            duration_ms=result.duration_ms,
            cancelled=result.cancelled,
        ))
        logger.info(
            f"Sweep {sweep_id} finished in {result.duration_ms:.1f}ms: "
            f"{result.updated} updated, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    def _process(self, sweep_id: str, task: TaskSnapshot, now: datetime, result: SweepResult) -> None:
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                score = self._calculator.calculate(task, now)
                at_risk = self._classifier.is_at_risk(task, now)
                if self._store.update_score_if_active(task.id, score, at_risk, now):
                    result.updated += 1
                else:
                    result.skipped += 1
                return
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        f"Sweep {sweep_id}: task {task.id} failed "
                        f"(attempt {attempt}/{attempts}): {e}. Retrying..."
                    )
                    if self._retry_delay:
                        self._sleep(self._retry_delay)

        err = TaskRankSweepError(
            f"Task {task.id} not re-scored after {attempts} attempts",
            task_id=task.id,
            operation="sweep",
            attempts=attempts,
            last_error=str(last_error),
            sweep_id=sweep_id,
        )
        result.failed += 1
        result.errors.append(err.to_dict())
        logger.error(f"Sweep {sweep_id}: {err.message}: {last_error}")
        log(log_sweep_item_failure(sweep_id, task.id, attempts, str(last_error)))
