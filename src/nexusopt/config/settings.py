"""Tunable engine settings with environment overrides."""

from __future__ import annotations

import logging
import os
from typing import Literal

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


logger = logging.getLogger(__name__)

_ENV_PREFIX = "NEXUSOPT_"


def _env_float(name: str, default: float, *, clamp_min: float | None = None, clamp_max: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s: %s; using default %.2f", name, raw, default)
        return default
    if clamp_min is not None:
        value = max(clamp_min, value)
    if clamp_max is not None:
        value = min(clamp_max, value)
    return value


def _env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; ignoring", name, raw)
        return None


class CorrelationConfig(BaseModel):
    same_team: float = Field(default=0.65, ge=-1.0, le=1.0)
    opposing_team: float = Field(default=-0.15, ge=-1.0, le=1.0)
    same_team_same_position: float = Field(default=0.2, ge=-1.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class GeneticConfig(BaseModel):
    population_size: int = Field(default=100, ge=4, le=2000)
    generations: int = Field(default=50, ge=1, le=1000)
    elite_fraction: float = Field(default=0.05, ge=0.05, le=0.20)
    crossover_rate: float = Field(default=0.4, ge=0.4, le=0.7)
    mutation_rate: float = Field(default=0.6, ge=0.15, le=0.6)
    tournament_size: int = Field(default=2, ge=2, le=5)
    max_stagnation: int = Field(default=3, ge=1)
    min_distance: float = Field(default=0.1, ge=0.0, le=1.0)
    diversity_fill: float = Field(default=0.7, ge=0.0, le=1.0)
    fitness_batch_size: int = Field(default=10, ge=1)
    restart_keep: float = Field(default=0.2, gt=0.0, le=1.0)
    individual_retries: int = Field(default=5, ge=1)

    model_config = ConfigDict(frozen=True)


class OptimizerConfig(BaseModel):
    """Engine-wide settings. Percent-like knobs are fractions in [0, 1]."""

    iterations: int = Field(default=10_000, ge=10, le=200_000)
    randomness: float = Field(default=0.3, ge=0.0, le=1.0)
    target_top: float = Field(default=0.2, gt=0.0, lt=1.0)
    leverage_multiplier: float = Field(default=1.0, ge=0.0, le=5.0)
    field_size: int = Field(default=1_000, ge=1)
    sample_batch_size: int = Field(default=1_000, ge=1)
    attempts_per_lineup: int = Field(default=50, ge=1)
    min_unique_players: int = Field(default=2, ge=1, le=7)
    randomness_step: float = Field(default=0.05, ge=0.0, le=0.5)
    max_randomness: float = Field(default=0.9, ge=0.0, le=1.0)
    roi_mode: Literal["self", "field"] = "self"
    verify_ledger: bool = True
    seed: int | None = None
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    genetic: GeneticConfig = Field(default_factory=GeneticConfig)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, **overrides) -> "OptimizerConfig":
        """Build a config from ``NEXUSOPT_*`` variables, then apply ``overrides``."""

        defaults = cls()
        genetic_defaults = defaults.genetic
        genetic = genetic_defaults.model_copy(
            update={
                "population_size": _env_int(
                    f"{_ENV_PREFIX}POPULATION", genetic_defaults.population_size, min_value=4, max_value=2000
                ),
                "generations": _env_int(
                    f"{_ENV_PREFIX}GENERATIONS", genetic_defaults.generations, min_value=1, max_value=1000
                ),
            }
        )
        values = {
            "iterations": _env_int(f"{_ENV_PREFIX}ITERATIONS", defaults.iterations, min_value=10, max_value=200_000),
            "randomness": _env_float(f"{_ENV_PREFIX}RANDOMNESS", defaults.randomness, clamp_min=0.0, clamp_max=1.0),
            "target_top": _env_float(f"{_ENV_PREFIX}TARGET_TOP", defaults.target_top, clamp_min=0.01, clamp_max=0.99),
            "leverage_multiplier": _env_float(
                f"{_ENV_PREFIX}LEVERAGE_MULTIPLIER", defaults.leverage_multiplier, clamp_min=0.0, clamp_max=5.0
            ),
            "field_size": _env_int(f"{_ENV_PREFIX}FIELD_SIZE", defaults.field_size, min_value=1),
            "sample_batch_size": _env_int(f"{_ENV_PREFIX}SAMPLE_BATCH", defaults.sample_batch_size, min_value=1),
            "seed": _env_optional_int(f"{_ENV_PREFIX}SEED"),
            "genetic": genetic,
        }
        nested = overrides.pop("genetic", None)
        if isinstance(nested, dict):
            values["genetic"] = {**genetic.model_dump(), **nested}
        elif nested is not None:
            values["genetic"] = nested
        values.update(overrides)
        return cls.model_validate(values)
