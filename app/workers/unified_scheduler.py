"""
Centralized scheduling service for the node's periodic drivers.

Every background task (heartbeat, sync, execution, tracking, clock re-sync)
is an independently schedulable job on this one scheduler.

Design Principles:
- Single scheduler loop thread (Pi-friendly)
- Bounded worker pool for job execution (prevents unbounded thread creation)
- Injected clock: due times are epoch seconds read from the node's clock,
  so tests can advance time without sleeping
- Per-job single flight: a due job whose previous run is still executing
  is skipped (and counted), never queued behind it
"""

from __future__ import annotations

import heapq
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from app.enums import HealthLevel
from app.utils.time import from_timestamp

logger = logging.getLogger(__name__)


class ScheduleType(Enum):
    """Types of schedules."""

    INTERVAL = "interval"  # Every N seconds
    ONCE = "once"  # One-time execution


@dataclass
class JobResult:
    """Result of a job execution."""

    job_id: str
    success: bool
    started_at: float
    completed_at: float
    result: Any = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return self.completed_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "success": self.success,
            "started_at": from_timestamp(self.started_at).isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


@dataclass
class ScheduledJob:
    """A scheduled job configuration."""

    job_id: str
    task_name: str
    namespace: str  # e.g. "chamber", "sync", "experiment", "clock"
    schedule_type: ScheduleType
    enabled: bool = True

    # Task execution
    func: Callable | None = None
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)

    # Schedule configuration (epoch seconds)
    interval_seconds: int | None = None
    run_at: float | None = None

    # Execution tracking
    next_run: float | None = None
    last_run: float | None = None
    running: bool = False
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for API responses)."""

        def _iso(ts: float | None) -> str | None:
            return from_timestamp(ts).isoformat() if ts is not None else None

        return {
            "job_id": self.job_id,
            "task_name": self.task_name,
            "namespace": self.namespace,
            "schedule_type": self.schedule_type.value,
            "enabled": self.enabled,
            "interval_seconds": self.interval_seconds,
            "next_run": _iso(self.next_run),
            "last_run": _iso(self.last_run),
            "running": self.running,
            "run_count": self.run_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "skipped_count": self.skipped_count,
            "last_error": self.last_error,
        }


class UnifiedScheduler:
    """
    Scheduler for all background tasks of the node.

    Implementation note on the heap:
    - We store heap entries as tuples: (run_at_ts, seq, job_id)
    - seq is a monotonic counter to ensure stable ordering when timestamps match
    - We do NOT try to delete heap entries in-place (expensive); instead, we skip stale items:
        - job disabled -> skip
        - job.next_run changed -> skip

    Interval jobs are fixed-rate: the next run advances from the scheduled
    time, not from completion.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        check_interval_seconds: float = 1.0,
        max_history: int = 500,
        max_workers: int = 4,
    ):
        """
        Initialize the scheduler.

        Args:
            clock: Returns "now" as epoch seconds
            check_interval_seconds: How often to check for due jobs (default 1s)
            max_history: Maximum job execution history to keep
            max_workers: Maximum number of concurrent job executions
        """
        self._clock = clock
        self._check_interval = float(check_interval_seconds)
        self._max_history = int(max_history)
        self._max_workers = int(max_workers)

        self._jobs: dict[str, ScheduledJob] = {}
        self._tasks: dict[str, Callable] = {}  # task_name -> function

        # Entries: (run_at_ts, seq, job_id)
        self._job_heap: list[tuple[float, int, str]] = []
        self._heap_seq = 0

        self._history: list[JobResult] = []

        self._running = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._job_lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None

        logger.info("UnifiedScheduler initialized")

    # ==================== Task Registration ====================

    def register_task(self, name: str, func: Callable) -> None:
        """Register a task function under a dotted name (e.g. ``sync.pull``)."""
        self._tasks[name] = func
        logger.debug(f"Registered task: {name}")

    def clear_jobs(self) -> None:
        """Remove all scheduled jobs and pending heap entries."""
        with self._job_lock:
            self._jobs.clear()
            self._job_heap.clear()
            self._heap_seq = 0

    # ==================== Heap Helpers ====================

    def _push_heap(self, job: ScheduledJob) -> None:
        if not job.enabled or job.next_run is None:
            return
        self._heap_seq += 1
        heapq.heappush(self._job_heap, (job.next_run, self._heap_seq, job.job_id))

    @staticmethod
    def _namespace_for(task_name: str) -> str:
        return task_name.split(".")[0] if "." in task_name else "default"

    # ==================== Job Scheduling ====================

    def schedule_interval(
        self,
        task_name: str,
        interval_seconds: int,
        *,
        job_id: str | None = None,
        namespace: str | None = None,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        enabled: bool = True,
        start_immediately: bool = False,
    ) -> ScheduledJob:
        """Schedule a task to run at regular intervals."""
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        now = self._clock()
        job = ScheduledJob(
            job_id=job_id or task_name,
            task_name=task_name,
            namespace=namespace or self._namespace_for(task_name),
            schedule_type=ScheduleType.INTERVAL,
            enabled=enabled,
            args=args,
            kwargs=kwargs or {},
            interval_seconds=int(interval_seconds),
            next_run=now if start_immediately else now + int(interval_seconds),
        )

        self._add_job(job)
        logger.info(f"Scheduled interval job: {job.job_id} (every {interval_seconds}s)")
        return job

    def schedule_once(
        self,
        task_name: str,
        run_at: float | None = None,
        *,
        job_id: str | None = None,
        namespace: str | None = None,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> ScheduledJob:
        """Schedule a task to run once at ``run_at`` (default: now)."""
        run_at = self._clock() if run_at is None else run_at
        job = ScheduledJob(
            job_id=job_id or f"{task_name}_once_{int(run_at)}",
            task_name=task_name,
            namespace=namespace or self._namespace_for(task_name),
            schedule_type=ScheduleType.ONCE,
            args=args,
            kwargs=kwargs or {},
            run_at=run_at,
            next_run=run_at,
        )

        self._add_job(job)
        logger.info(f"Scheduled one-time job: {job.job_id}")
        return job

    # ==================== Job Management ====================

    def _add_job(self, job: ScheduledJob) -> None:
        with self._job_lock:
            self._jobs[job.job_id] = job
            self._push_heap(job)

    def get_jobs(self, namespace: str | None = None, enabled_only: bool = False) -> list[ScheduledJob]:
        jobs = list(self._jobs.values())
        if namespace:
            jobs = [j for j in jobs if j.namespace == namespace]
        if enabled_only:
            jobs = [j for j in jobs if j.enabled]
        return jobs

    def get_namespaces(self) -> set[str]:
        return {job.namespace for job in self._jobs.values()}

    # ==================== Scheduler Control ====================

    def start(self) -> None:
        """Start the scheduler background thread."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="EdgeSchedulerJob",
            )

        self._stop_event.clear()
        self._running = True
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="EdgeScheduler")
        self._thread.start()
        logger.info("UnifiedScheduler started")

    def stop(self, wait: bool = True, timeout: float = 5.0) -> None:
        """
        Stop scheduling new runs; in-flight jobs finish or time out on their own calls.

        Args:
            wait: Wait for the loop thread and running jobs
            timeout: Maximum wait for the loop thread in seconds
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if wait and self._thread:
            self._thread.join(timeout=timeout)

        if self._executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None

        logger.info("UnifiedScheduler stopped")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Alias for stop(); matches other services' shutdown() convention."""
        self.stop(wait=wait, timeout=timeout)

    def _run_loop(self) -> None:
        logger.debug("Scheduler loop started")
        while not self._stop_event.is_set():
            try:
                self._dispatch_due_jobs()
            except Exception as e:
                logger.error(f"Error in scheduler loop: {e}", exc_info=True)
            self._stop_event.wait(self._check_interval)
        logger.debug("Scheduler loop ended")

    # ==================== Core Scheduling Logic ====================

    def _pop_due_jobs(self) -> list[tuple[str, float]]:
        """Pop every due heap entry, advance its job, and mark it running.

        Returns (job_id, scheduled_for) pairs that should execute now.
        """
        now_ts = self._clock()
        due: list[tuple[str, float]] = []

        with self._job_lock:
            while self._job_heap:
                run_at_ts, _seq, job_id = self._job_heap[0]
                if run_at_ts > now_ts:
                    break
                heapq.heappop(self._job_heap)

                job = self._jobs.get(job_id)
                if not job or not job.enabled or job.next_run is None:
                    continue
                if abs(job.next_run - run_at_ts) > 1e-6:
                    continue  # stale entry

                scheduled_for = job.next_run
                self._schedule_next_run(job, scheduled_for, now_ts)
                self._push_heap(job)

                if job.running:
                    job.skipped_count += 1
                    logger.info(f"Job {job.job_id} still running; skipped run due at {scheduled_for:.0f}")
                    continue

                job.running = True
                due.append((job_id, scheduled_for))
        return due

    def _dispatch_due_jobs(self) -> None:
        for job_id, scheduled_for in self._pop_due_jobs():
            if not self._executor:
                logger.warning("Executor unavailable; skipping job execution")
                self._mark_idle(job_id)
                continue
            try:
                self._executor.submit(self._execute_job, job_id, scheduled_for)
            except RuntimeError as e:
                logger.error(f"Failed to submit job {job_id} to executor: {e}")
                self._mark_idle(job_id)

    def run_pending(self) -> list[JobResult]:
        """Run every due job synchronously in the calling thread.

        Used by the startup sequence and by tests driving a fake clock.
        """
        results = []
        for job_id, scheduled_for in self._pop_due_jobs():
            result = self._execute_job(job_id, scheduled_for)
            if result is not None:
                results.append(result)
        return results

    def _mark_idle(self, job_id: str) -> None:
        with self._job_lock:
            job = self._jobs.get(job_id)
            if job:
                job.running = False

    def _execute_job(self, job_id: str, scheduled_for: float) -> JobResult | None:
        with self._job_lock:
            job = self._jobs.get(job_id)

        if not job or not job.enabled and job.schedule_type != ScheduleType.ONCE:
            self._mark_idle(job_id)
            return None

        started_at = self._clock()
        try:
            func = job.func or self._tasks.get(job.task_name)
            if func is None:
                raise ValueError(f"Task function not found: {job.task_name}")

            result = func(*job.args, **job.kwargs)
            job_result = JobResult(job.job_id, True, started_at, self._clock(), result=result)
            with self._job_lock:
                job.success_count += 1
                job.last_error = None
            logger.debug(f"Job {job.job_id} completed in {job_result.duration_seconds:.2f}s")

        except Exception as e:
            job_result = JobResult(job.job_id, False, started_at, self._clock(), error=str(e))
            with self._job_lock:
                job.failure_count += 1
                job.last_error = str(e)
            logger.error(f"Job {job.job_id} failed: {e}", exc_info=True)

        finally:
            with self._job_lock:
                job.last_run = started_at
                job.run_count += 1
                job.running = False

        self._record_history(job_result)
        return job_result

    def _schedule_next_run(self, job: ScheduledJob, scheduled_time: float, now_ts: float) -> None:
        if job.schedule_type == ScheduleType.INTERVAL:
            interval = int(job.interval_seconds or 60)
            next_run = scheduled_time + interval

            # Far behind (e.g. host slept): jump to the first future slot, no pile-up
            if next_run <= now_ts:
                skips = int((now_ts - next_run) // interval) + 1
                next_run += skips * interval

            job.next_run = next_run
            return

        # One-time jobs don't repeat
        job.next_run = None
        job.enabled = False

    def _record_history(self, result: JobResult) -> None:
        with self._job_lock:
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]

    # ==================== Status ====================

    def get_status(self) -> dict[str, Any]:
        with self._job_lock:
            enabled_jobs = [j for j in self._jobs.values() if j.enabled]
            return {
                "running": self._running,
                "total_jobs": len(self._jobs),
                "enabled_jobs": len(enabled_jobs),
                "namespaces": sorted(self.get_namespaces()),
                "jobs": [job.to_dict() for job in self._jobs.values()],
                "history_size": len(self._history),
                "recent_failures": sum(1 for r in self._history[-20:] if not r.success),
                "max_workers": self._max_workers,
            }

    def health_check(self) -> dict[str, Any]:
        """
        Summarise scheduler health.

        Returns a report with an overall level (healthy/degraded/unhealthy),
        the recent failure rate and interval jobs overdue by 3x their period.
        """
        with self._job_lock:
            now = self._clock()
            enabled_jobs = [j for j in self._jobs.values() if j.enabled]

            recent_history = self._history[-50:]
            recent_failures = [r for r in recent_history if not r.success]
            failure_rate = len(recent_failures) / len(recent_history) if recent_history else 0.0

            stale_jobs = []
            for job in enabled_jobs:
                if job.last_run is not None and job.schedule_type == ScheduleType.INTERVAL:
                    interval = job.interval_seconds or 60
                    since_last = now - job.last_run
                    if since_last > interval * 3:
                        stale_jobs.append(
                            {
                                "job_id": job.job_id,
                                "expected_interval_seconds": interval,
                                "overdue_seconds": round(since_last - interval, 1),
                            }
                        )

            if not self._running:
                health, reason = HealthLevel.UNHEALTHY, "Scheduler is not running"
            elif failure_rate > 0.5:
                health, reason = HealthLevel.UNHEALTHY, f"High failure rate: {failure_rate:.0%}"
            elif stale_jobs:
                health, reason = HealthLevel.DEGRADED, f"{len(stale_jobs)} stale job(s) detected"
            elif failure_rate > 0.2:
                health, reason = HealthLevel.DEGRADED, f"Elevated failure rate: {failure_rate:.0%}"
            else:
                health, reason = HealthLevel.HEALTHY, "All jobs on schedule"

            return {
                "health": health.value,
                "reason": reason,
                "timestamp": from_timestamp(now).isoformat(),
                "scheduler_running": self._running,
                "statistics": {
                    "total_jobs": len(self._jobs),
                    "enabled_jobs": len(enabled_jobs),
                    "recent_executions": len(recent_history),
                    "recent_failures": len(recent_failures),
                    "failure_rate": round(failure_rate, 3),
                    "skipped_runs": sum(j.skipped_count for j in self._jobs.values()),
                },
                "stale_jobs": stale_jobs,
            }

