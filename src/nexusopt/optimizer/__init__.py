"""Lineup optimization engine for DraftKings LoL captain-mode slates."""

from .errors import (
    EngineStateError,
    InvalidInputError,
    InvariantViolation,
    OptimizationCancelled,
    OptimizerError,
)
from .progress import STAGES
from .results import LineupRecord, OptimizationResult, Summary
from .service import LineupOptimizer, optimize

__all__ = [
    "EngineStateError",
    "InvalidInputError",
    "InvariantViolation",
    "LineupOptimizer",
    "LineupRecord",
    "OptimizationCancelled",
    "OptimizationResult",
    "OptimizerError",
    "STAGES",
    "Summary",
    "optimize",
]
