"""Progress reporting and cooperative cancellation."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from nexusopt.optimizer.errors import OptimizationCancelled


logger = logging.getLogger(__name__)

STAGES = (
    "initializing",
    "population_created",
    "evolving",
    "final_selection",
    "final_simulation",
    "completed",
    "error",
)

ProgressCallback = Callable[[float, str], None]
StatusCallback = Callable[[str], None]


class ProgressReporter:
    """Forwards progress to caller callbacks and exposes the cancellation flag.

    ``checkpoint`` is called at every suspension point of the engine (between
    sampling batches, fitness batches, lineup scorings and generations). It
    raises :class:`OptimizationCancelled` once ``cancel`` has been requested and
    consumes the request, so a cancel issued between runs stops the next one
    and only that one. Reaching the ``completed`` stage drops a request that
    arrived too late to stop the run it was aimed at.
    Callback failures are logged and never interrupt a run.
    """

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self._on_progress = on_progress
        self._on_status = on_status
        self._cancel_event = threading.Event()
        self.stage = "initializing"
        self.percent = 0.0

    def cancel(self) -> None:
        self._cancel_event.set()

    def reset(self) -> None:
        self.stage = "initializing"
        self.percent = 0.0

    def update(self, percent: float, stage: str) -> None:
        if stage not in STAGES:
            raise ValueError(f"Unknown progress stage {stage!r}")
        self.percent = max(0.0, min(100.0, float(percent)))
        self.stage = stage
        if self._on_progress is not None:
            try:
                self._on_progress(self.percent, stage)
            except Exception:
                logger.exception("Progress callback failed at %s (%.1f%%)", stage, self.percent)
        if stage == "completed":
            self._cancel_event.clear()

    def status(self, message: str) -> None:
        logger.debug("Status: %s", message)
        if self._on_status is None:
            return
        try:
            self._on_status(message)
        except Exception:
            logger.exception("Status callback failed for message %r", message)

    def checkpoint(self) -> None:
        if self._cancel_event.is_set():
            self._cancel_event.clear()
            raise OptimizationCancelled(self.stage, self.percent)
