"""
Sweep runner — one background thread that runs the sweep every interval.

stop() sets the shared stop event: the sweep finishes its in-flight page,
fetches no further pages, and the loop exits without another tick.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from taskrank.domain.task import utcnow
from taskrank.engine.logging import log, log_system_event
from taskrank.sweep.recalculation import RecalculationSweep, SweepResult

logger = logging.getLogger("taskrank.sweep.runner")


class SweepRunner:
    def __init__(
        self,
        sweep: RecalculationSweep,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
        run_on_start: bool = True,
    ):
        self._sweep = sweep
        self._interval = (
            interval_seconds if interval_seconds is not None
            else sweep.interval.total_seconds()
        )
        self._clock = clock
        self._run_on_start = run_on_start
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_result: Optional[SweepResult] = None
        self.runs = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background loop. Calling start() twice is a no-op."""
        if self.is_alive:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="taskrank-sweep",
            daemon=True,
        )
        self._thread.start()
        log(log_system_event("sweep_runner_started", details={"interval_seconds": self._interval}))
        logger.info(f"Sweep runner started (interval {self._interval:.0f}s)")

    def stop(self, timeout: Optional[float] = 30.0) -> None:
        """Signal the loop to stop and wait for the in-flight batch to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Sweep runner did not stop within timeout")
        log(log_system_event("sweep_runner_stopped", details={"runs": self.runs}))
        logger.info(f"Sweep runner stopped after {self.runs} runs")

    def tick(self) -> SweepResult:
        """Run one sweep now, honouring the stop event."""
        result = self._sweep.run_once(self._clock(), cancel_event=self._stop_event)
        if not result.skipped_overlap:
            self.runs += 1
            self.last_result = result
        return result

    def _loop(self) -> None:
        if not self._run_on_start:
            self._stop_event.wait(self._interval)
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Sweep run failed: {e}")
            self._stop_event.wait(self._interval)
