"""Exceptions raised by the optimizer engine."""

from __future__ import annotations


class OptimizerError(Exception):
    """Base class for engine failures surfaced to callers."""


class InvalidInputError(OptimizerError):
    """Player pool, exposure settings or seed lineups cannot be used."""


class EngineStateError(OptimizerError):
    """An operation was requested before the engine was initialized."""


class InvariantViolation(OptimizerError):
    """Internal bookkeeping disagrees with a recount; the run is aborted."""


class OptimizationCancelled(OptimizerError):
    def __init__(self, stage: str, percent: float, message: str = "Optimization cancelled"):
        super().__init__(message)
        self.stage = stage
        self.percent = percent
        self.message = message


class LineupBuildError(Exception):
    """A single greedy construction ran out of candidates; callers retry."""


class PoolExhaustedError(Exception):
    """The genetic driver could not produce an individual within its retry budget."""
