"""
TaskRank Logging — Structured JSON file-based logging with async queue.

Implements:
- FileLogger: Per-object-type, per-category log files (daily rotation)
- AsyncLogQueue: In-memory queue with background flush (100ms / 50 entries)
- Log entry builders for lifecycle, sweep and system events
- LogRetentionManager: retention-aware cleanup and gzip compression

Files: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl
"""

from __future__ import annotations

import gzip
import json
import logging
import shutil
import threading
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

logger = logging.getLogger("taskrank.engine.logging")

# Valid object types and their permitted categories
OBJECT_TYPE_CATEGORIES = {
    "tasks": ["execution"],
    "sweeps": ["execution", "performance"],
    "system": ["execution"],
}

# Retention defaults (days)
DEFAULT_RETENTION = {
    "execution": 90,
    "performance": 30,
}


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Appends entries to {log_dir}/{object_type}/{category}/{date}.jsonl and
    reads them back with query(). Directories are created on first write.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[Path, threading.Lock] = defaultdict(threading.Lock)

    def _path_for(self, entry: LogEntry, day: date) -> Path:
        return self._log_dir / entry.object_type / entry.category / f"{day.isoformat()}.jsonl"

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Append *entries*, opening each day file once."""
        today = date.today()
        by_path: Dict[Path, List[str]] = defaultdict(list)
        for entry in entries:
            by_path[self._path_for(entry, today)].append(entry.to_json())

        for path, lines in by_path.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_locks[path]:
                with open(path, "a", encoding="utf-8") as f:
                    f.write("\n".join(lines) + "\n")

    def query(
        self,
        object_type: str,
        category: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Read entries for one object_type/category, oldest day first.

        Args:
            start_date: Earliest day to include (defaults to 7 days before end_date).
            end_date: Latest day to include (defaults to today).
            filters: Keep only entries whose top-level keys equal all of these.
            limit: Max number of entries to return.
        """
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=7)
        base = self._log_dir / object_type / category

        results: List[Dict[str, Any]] = []
        day = start_date
        while day <= end_date and len(results) < limit:
            plain = base / f"{day.isoformat()}.jsonl"
            for path in (plain.with_suffix(".jsonl.gz"), plain):
                if path.exists() and len(results) < limit:
                    results.extend(self._read_jsonl(path, filters, limit - len(results)))
            day += timedelta(days=1)
        return results

    @staticmethod
    def _read_jsonl(
        path: Path,
        filters: Optional[Dict[str, Any]],
        remaining: int,
    ) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        opener = gzip.open if path.suffix == ".gz" else open
        try:
            with opener(path, "rt", encoding="utf-8") as f:
                for line in f:
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if filters and any(data.get(k) != v for k, v in filters.items()):
                        continue
                    entries.append(data)
                    if len(entries) >= remaining:
                        break
        except OSError as exc:
            logger.warning("Could not read log file %s: %s", path, exc)
        return entries


class AsyncLogQueue:
    """
    Non-blocking hand-off from the engine to FileLogger.

    push() never blocks; a full queue drops the entry and counts it. A daemon
    thread writes whatever has accumulated every flush_interval_ms, at most
    flush_batch_size entries per write. stop() drains the rest.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._file_logger = file_logger
        self._flush_interval = flush_interval_ms / 1000.0
        self._flush_batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.dropped_count = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="taskrank-log-flush", daemon=True)
        self._thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        while self._flush():
            pass
        logger.info(f"Async log queue stopped (dropped: {self.dropped_count})")

    def push(self, entry: LogEntry) -> bool:
        """Queue *entry*. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(entry)
            return True
        except Full:
            self.dropped_count += 1
            return False

    def _run(self) -> None:
        while not self._stop_event.wait(self._flush_interval):
            while self._flush():
                pass

    def _flush(self) -> int:
        batch: List[LogEntry] = []
        while len(batch) < self._flush_batch_size:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if batch:
            try:
                self._file_logger.write_batch(batch)
            except OSError as e:
                logger.error(f"Log flush error: {e}")
        return len(batch)


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(event: str, level: str, **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    entry.update(extra)
    return entry


def log_lifecycle_event(
    event: str,
    task_id: Optional[Any],
    status: str,
    priority_score: float,
    bump_count: int,
    at_risk: bool,
    fields_changed: Optional[List[str]] = None,
    risk_reasons: Optional[List[str]] = None,
) -> LogEntry:
    """Build a task lifecycle log entry (created/updated/bumped/completed/reopened)."""
    data = _base_entry(
        event=event,
        level="INFO",
        task_id=task_id,
        status=status,
        priority_score=priority_score,
        bump_count=bump_count,
        at_risk=at_risk,
    )
    if fields_changed:
        data["fields_changed"] = fields_changed
    if risk_reasons:
        data["risk_reasons"] = risk_reasons
    return LogEntry("tasks", "execution", data)


def log_sweep_run(
    sweep_id: str,
    updated: int,
    skipped: int,
    failed: int,
    batches: int,
    duration_ms: float,
    cancelled: bool = False,
) -> LogEntry:
    """Build a sweep completion log entry."""
    data = _base_entry(
        event="sweep_completed",
        level="WARNING" if failed else "INFO",
        sweep_id=sweep_id,
        updated=updated,
        skipped=skipped,
        failed=failed,
        batches=batches,
        duration_ms=duration_ms,
        cancelled=cancelled,
    )
    return LogEntry("sweeps", "execution", data)


def log_sweep_performance(sweep_id: str, batch: int, size: int, duration_ms: float) -> LogEntry:
    """Build a per-batch sweep timing entry."""
    data = _base_entry(
        event="sweep_batch",
        level="INFO",
        sweep_id=sweep_id,
        batch=batch,
        size=size,
        duration_ms=duration_ms,
    )
    return LogEntry("sweeps", "performance", data)


def log_sweep_item_failure(
    sweep_id: str,
    task_id: Any,
    attempts: int,
    error: str,
) -> LogEntry:
    """Build a sweep item failure entry (retries exhausted)."""
    data = _base_entry(
        event="sweep_item_failed",
        level="ERROR",
        sweep_id=sweep_id,
        task_id=task_id,
        attempts=attempts,
        error=error,
    )
    return LogEntry("sweeps", "execution", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event log entry (startup, shutdown, config changes)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)


# ---------------------------------------------------------------------------
# Log Cleanup / Retention
# ---------------------------------------------------------------------------

class LogRetentionManager:
    """Cleans up log files older than their retention and gzips old files."""

    def __init__(
        self,
        log_dir: str = "logs",
        retention_days: Optional[Dict[str, int]] = None,
        compress_after_days: int = 7,
    ):
        self._log_dir = Path(log_dir)
        self._retention = retention_days or DEFAULT_RETENTION.copy()
        self._compress_after = compress_after_days

    @classmethod
    def from_config(cls, config: Any = None) -> "LogRetentionManager":
        """Build from the `logging` section of taskrank.yaml."""
        if config is None:
            from taskrank.engine.config import get_config
            config = get_config()
        cfg = config.logging
        return cls(
            log_dir=cfg.directory,
            retention_days={
                "execution": cfg.retention.execution_days,
                "performance": cfg.retention.performance_days,
            },
            compress_after_days=cfg.compress_after_days,
        )

    def cleanup(self, today: Optional[date] = None) -> Dict[str, int]:
        """
        Run retention cleanup across all log directories.

        Returns:
            Dict with counts: {"deleted": N, "compressed": M}
        """
        deleted = 0
        compressed = 0
        today = today or date.today()

        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                cat_dir = self._log_dir / obj_type / cat
                if not cat_dir.exists():
                    continue

                retention = self._retention.get(cat, 90)

                for file_path in cat_dir.iterdir():
                    if not file_path.is_file():
                        continue

                    file_date = self._parse_file_date(file_path)
                    if file_date is None:
                        continue

                    age_days = (today - file_date).days

                    if age_days > retention:
                        file_path.unlink()
                        deleted += 1
                        continue

                    if age_days > self._compress_after and file_path.suffix == ".jsonl":
                        self._compress_file(file_path)
                        compressed += 1

        result = {"deleted": deleted, "compressed": compressed}
        logger.info(f"Log cleanup: {result}")
        return result

    def _parse_file_date(self, file_path: Path) -> Optional[date]:
        """Extract date from filename like 2026-02-12.jsonl or 2026-02-12.jsonl.gz."""
        date_str = file_path.name.split(".")[0]
        try:
            return date.fromisoformat(date_str)
        except ValueError:
            return None

    def _compress_file(self, file_path: Path) -> None:
        gz_path = file_path.with_suffix(file_path.suffix + ".gz")
        try:
            with open(file_path, "rb") as f_in:
                with gzip.open(gz_path, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
            file_path.unlink()
        except OSError as e:
            logger.error(f"Failed to compress {file_path}: {e}")
            if gz_path.exists():
                gz_path.unlink()


# ---------------------------------------------------------------------------
# Convenience: Global Log Queue Singleton
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
    level: str = "INFO",
) -> AsyncLogQueue:
    """Initialize the global async log queue and the stdlib logger level."""
    global _global_queue
    logging.getLogger("taskrank").setLevel(level)
    file_logger = FileLogger(log_dir=log_dir)
    _global_queue = AsyncLogQueue(
        file_logger=file_logger,
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def init_logging_from_config(config: Any = None) -> AsyncLogQueue:
    """Initialize logging from the `logging` section of taskrank.yaml."""
    if config is None:
        from taskrank.engine.config import get_config
        config = get_config()
    cfg = config.logging
    return init_logging(
        log_dir=cfg.directory,
        flush_interval_ms=cfg.async_queue.flush_interval_ms,
        flush_batch_size=cfg.async_queue.flush_batch_size,
        max_queue_size=cfg.async_queue.max_queue_size,
        level=cfg.level,
    )


def get_log_queue() -> Optional[AsyncLogQueue]:
    """Get the global async log queue."""
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push a log entry to the global queue. Non-blocking."""
    if _global_queue is None:
        logger.debug("Log queue not initialized — entry dropped")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global log queue."""
    global _global_queue
    if _global_queue:
        _global_queue.stop()
        _global_queue = None
