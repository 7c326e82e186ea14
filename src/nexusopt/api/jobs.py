"""In-memory background jobs for long optimizations."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from nexusopt.optimizer import LineupOptimizer, OptimizationCancelled, OptimizationResult, OptimizerError


logger = logging.getLogger("uvicorn.error")

TERMINAL_STATES = {"completed", "failed", "canceled"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    job_id: str
    mode: str
    state: str = "queued"
    stage: str = "initializing"
    percent: float = 0.0
    message: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    cancel_requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[OptimizationResult] = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


class JobRegistry:
    """Runs each optimization on its own daemon thread and tracks its progress."""

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._optimizers: Dict[str, LineupOptimizer] = {}
        self._threads: Dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def _update(self, job: Job, **changes) -> None:
        with self._lock:
            for key, value in changes.items():
                setattr(job, key, value)
            job.updated_at = _now()
            if job.state in TERMINAL_STATES and job.completed_at is None:
                job.completed_at = job.updated_at

    def submit(
        self,
        mode: str,
        count: int,
        build: Callable[[Callable[[float, str], None], Callable[[str], None]], LineupOptimizer],
        prepare: Callable[[LineupOptimizer], None],
    ) -> Job:
        """Queue a job; ``build`` creates the optimizer, ``prepare`` initializes it."""

        job = Job(job_id=uuid4().hex, mode=mode)

        def on_progress(percent: float, stage: str) -> None:
            self._update(job, percent=percent, stage=stage)

        def on_status(message: str) -> None:
            self._update(job, message=message)

        optimizer = build(on_progress, on_status)

        def target() -> None:
            if job.cancel_requested_at is not None:
                self._update(job, state="canceled", message="Canceled before start")
                return
            self._update(job, state="running")
            try:
                prepare(optimizer)
                if mode == "genetic":
                    result = optimizer.run_genetic(count)
                else:
                    result = optimizer.run_simulation(count)
            except OptimizationCancelled as exc:
                logger.info("Job %s canceled at %s (%.0f%%)", job.job_id, exc.stage, exc.percent)
                self._update(job, state="canceled", message=str(exc))
                return
            except OptimizerError as exc:
                logger.warning("Job %s failed: %s", job.job_id, exc)
                self._update(job, state="failed", message=str(exc))
                return
            except Exception as exc:
                logger.exception("Job %s crashed", job.job_id)
                self._update(job, state="failed", message=str(exc))
                return
            self._update(
                job,
                state="completed",
                result=result,
                message=f"Generated {result.summary.generated} of {count} lineups",
            )

        thread = threading.Thread(target=target, name=f"nexusopt-job-{job.job_id[:8]}", daemon=True)
        with self._lock:
            self._jobs[job.job_id] = job
            self._optimizers[job.job_id] = optimizer
            self._threads[job.job_id] = thread
        thread.start()
        logger.info("Queued %s job %s for %s lineups", mode, job.job_id, count)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[Job]:
        with self._lock:
            return sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)

    def cancel(self, job_id: str) -> Optional[Job]:
        job = self.get(job_id)
        if job is None or job.finished:
            return job
        self._update(job, cancel_requested_at=_now(), message="Cancellation requested")
        self._optimizers[job_id].cancel()
        return job

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Job]:
        thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
        return self.get(job_id)
