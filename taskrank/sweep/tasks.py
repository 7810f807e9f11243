"""
Celery integration — runs the recalculation sweep from Celery Beat.

Beat fires every `sweep.interval_hours`. Each tick takes a non-blocking
Redis lock first, so across all workers at most one sweep is in flight and
an overlapping tick is skipped rather than queued. A second Beat entry
prunes structured logs every `logging.cleanup_interval_hours`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import redis
from celery import Celery

from taskrank.domain.task import utcnow
from taskrank.engine.logging import LogRetentionManager, get_log_queue, init_logging_from_config
from taskrank.sweep.recalculation import RecalculationSweep

logger = logging.getLogger("taskrank.sweep.tasks")

SWEEP_TASK_NAME = "taskrank.sweep.recalculate_stale_scores"
SWEEP_SCHEDULE_NAME = "recalculate-stale-scores"
SWEEP_LOCK_NAME = "taskrank:sweep:lock"
LOG_CLEANUP_TASK_NAME = "taskrank.logging.cleanup_logs"
LOG_CLEANUP_SCHEDULE_NAME = "cleanup-logs"


# ---------------------------------------------------------------------------
# Celery app (configured from taskrank.yaml)
# ---------------------------------------------------------------------------

_celery_app: Optional[Celery] = None


def get_celery_app() -> Celery:
    """Get or create the Celery app singleton."""
    global _celery_app
    if _celery_app is None:
        _celery_app = create_celery_app()
    return _celery_app


def create_celery_app(config: Any = None) -> Celery:
    """Create and configure the Celery application, including its Beat schedule."""
    if config is None:
        from taskrank.engine.config import get_config
        config = get_config()

    app = Celery("taskrank", broker=config.celery.broker, backend=config.celery.result_backend)
    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_routes={
            SWEEP_TASK_NAME: {"queue": config.celery.queue},
            LOG_CLEANUP_TASK_NAME: {"queue": config.celery.queue},
        },
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        beat_schedule=build_beat_schedule(config),
    )
    return app


def build_beat_schedule(config: Any) -> Dict[str, Any]:
    """
    Beat schedule: log retention cleanup always, the sweep unless disabled.
    """
    schedule: Dict[str, Any] = {
        LOG_CLEANUP_SCHEDULE_NAME: {
            "task": LOG_CLEANUP_TASK_NAME,
            "schedule": timedelta(hours=config.logging.cleanup_interval_hours),
            "options": {"queue": config.celery.queue},
        },
    }
    if not config.sweep.enabled:
        logger.info("Recalculation sweep disabled, not scheduled")
        return schedule
    schedule[SWEEP_SCHEDULE_NAME] = {
        "task": SWEEP_TASK_NAME,
        "schedule": config.sweep.interval,
        "options": {"queue": config.celery.queue},
    }
    return schedule


def ensure_logging(config: Any) -> None:
    """Start the structured log queue in this worker process if needed."""
    if get_log_queue() is None:
        init_logging_from_config(config)


def run_log_cleanup(config: Any = None) -> Dict[str, int]:
    """Apply the configured log retention once; returns deleted and compressed counts."""
    return LogRetentionManager.from_config(config).cleanup()


# ---------------------------------------------------------------------------
# Single-flight execution
# ---------------------------------------------------------------------------

def run_scheduled_sweep(
    sweep: RecalculationSweep,
    redis_client: Any,
    now: datetime,
    lock_timeout: int = 3600,
) -> Dict[str, Any]:
    """
    Run one sweep under the cross-worker Redis lock.

    Returns:
        SweepResult as a dict, or {"skipped_overlap": True, ...} when another
        worker holds the lock.
    """
    lock = redis_client.lock(SWEEP_LOCK_NAME, timeout=lock_timeout)
    if not lock.acquire(blocking=False):
        logger.info("Sweep tick skipped: another worker holds the sweep lock")
        return {"skipped_overlap": True, "started_at": now.isoformat()}
    try:
        return sweep.run_once(now).to_dict()
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            logger.warning("Sweep lock expired before release — consider raising lock_timeout_seconds")


_sweep: Optional[RecalculationSweep] = None


def _get_default_sweep() -> RecalculationSweep:
    global _sweep
    if _sweep is None:
        from taskrank.db.session import init_task_db_from_config
        from taskrank.db.store import SqlTaskStore
        from taskrank.engine.config import get_config

        config = get_config()
        _sweep = RecalculationSweep.from_config(SqlTaskStore(init_task_db_from_config(config)), config)
    return _sweep


_sweep_task = None


def get_sweep_task():
    """Get or create the Celery task that Beat invokes."""
    global _sweep_task
    if _sweep_task is None:
        celery_app = get_celery_app()

        @celery_app.task(name=SWEEP_TASK_NAME)
        def recalculate_stale_scores() -> Dict[str, Any]:
            from taskrank.engine.config import get_config

            config = get_config()
            ensure_logging(config)
            client = redis.Redis.from_url(
                config.redis.url,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            return run_scheduled_sweep(
                _get_default_sweep(),
                client,
                utcnow(),
                lock_timeout=config.sweep.lock_timeout_seconds,
            )

        _sweep_task = recalculate_stale_scores
    return _sweep_task


_cleanup_task = None


def get_cleanup_task():
    """Get or create the Celery task that prunes old JSONL logs."""
    global _cleanup_task
    if _cleanup_task is None:
        celery_app = get_celery_app()

        @celery_app.task(name=LOG_CLEANUP_TASK_NAME)
        def cleanup_logs() -> Dict[str, int]:
            from taskrank.engine.config import get_config

            config = get_config()
            ensure_logging(config)
            return run_log_cleanup(config)

        _cleanup_task = cleanup_logs
    return _cleanup_task


def init_sweep_schedule() -> Celery:
    """Create the Celery app with its Beat schedule and register its tasks."""
    app = get_celery_app()
    get_sweep_task()
    get_cleanup_task()
    logger.info(f"Sweep schedule configured: {list(app.conf.beat_schedule or {})}")
    return app
