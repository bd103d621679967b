"""Periodic job scheduler.

Each job runs on its own daemon thread with its own interval; all
threads share one stop event, so a single ``stop()`` cancels every
pending run at once. A run that raises is logged and the job keeps its
schedule.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from autonome.protocols import SchedulerError

logger = logging.getLogger(__name__)


@dataclass
class PeriodicJob:
    """A named callable and how often to run it."""

    name: str
    interval: float
    func: Callable[[], Any]
    runs: int = 0
    failures: int = 0
    last_result: Any = None
    last_error: Optional[str] = None
    last_run_at: Optional[float] = None
    _thread: Optional[threading.Thread] = field(default=None, repr=False)
    _running: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval": self.interval,
            "runs": self.runs,
            "failures": self.failures,
            "last_error": self.last_error,
            "last_run_at": self.last_run_at,
        }


class Scheduler:
    """Runs PeriodicJobs until stopped."""

    def __init__(self) -> None:
        self._jobs: Dict[str, PeriodicJob] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started and not self._stop.is_set()

    def add_job(self, name: str, interval: float, func: Callable[[], Any]) -> PeriodicJob:
        """Register a job. Jobs added after ``start()`` begin immediately."""
        if interval <= 0:
            raise SchedulerError(f"Job {name!r} needs a positive interval, got {interval}")
        job = PeriodicJob(name=name, interval=float(interval), func=func)
        with self._lock:
            if name in self._jobs:
                raise SchedulerError(f"Job {name!r} is already scheduled")
            self._jobs[name] = job
            if self.running:
                self._spawn(job)
        return job

    def jobs(self) -> List[PeriodicJob]:
        with self._lock:
            return list(self._jobs.values())

    def start(self) -> None:
        with self._lock:
            if self._stop.is_set():
                raise SchedulerError("Scheduler was stopped and cannot be restarted")
            if self._started:
                return
            self._started = True
            for job in self._jobs.values():
                self._spawn(job)
        logger.info(f"Scheduler started with {len(self._jobs)} jobs")

    def stop(self, grace: float = 5.0) -> bool:
        """Cancel all pending runs and wait up to ``grace`` seconds for in-flight ones.

        Returns True if every job thread finished within the grace period.
        """
        self._stop.set()
        deadline = time.monotonic() + grace
        clean = True
        for job in self.jobs():
            thread = job._thread
            if thread is None:
                continue
            thread.join(max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                clean = False
                logger.warning(f"Job {job.name} still running after {grace}s grace period")
        logger.info("Scheduler stopped")
        return clean

    def run_now(self, name: str) -> Any:
        """Run a job once on the caller's thread, with the same error isolation."""
        with self._lock:
            job = self._jobs.get(name)
        if job is None:
            raise SchedulerError(f"No job named {name!r}")
        return self._run_once(job)

    def _spawn(self, job: PeriodicJob) -> None:
        job._thread = threading.Thread(
            target=self._loop, args=(job,), name=f"autonome-job-{job.name}", daemon=True
        )
        job._thread.start()

    def _loop(self, job: PeriodicJob) -> None:
        while not self._stop.wait(job.interval):
            self._run_once(job)

    def _run_once(self, job: PeriodicJob) -> Any:
        with job._running:
            job.last_run_at = time.time()
            try:
                result = job.func()
            except Exception as e:
                job.failures += 1
                job.last_error = str(e)
                logger.exception(f"Job {job.name} failed")
                return None
            job.runs += 1
            job.last_result = result
            job.last_error = None
            return result
