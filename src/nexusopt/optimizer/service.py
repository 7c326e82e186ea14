"""Engine facade: initialize once, then run simulation or genetic optimizations."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from nexusopt.config import OptimizerConfig, RosterRules, get_rules
from nexusopt.models import ExposureSettings, Lineup
from nexusopt.optimizer.builder import BuildParams, LineupBuilder
from nexusopt.optimizer.correlation import CorrelationModel
from nexusopt.optimizer.errors import (
    EngineStateError,
    InvalidInputError,
    InvariantViolation,
    LineupBuildError,
    OptimizationCancelled,
)
from nexusopt.optimizer.exposure import ExposureTracker
from nexusopt.optimizer.genetic import GeneticDriver
from nexusopt.optimizer.nexus import NexusResult, NexusScoreCalculator
from nexusopt.optimizer.preprocess import PlayerInput, PreparedInput, preprocess
from nexusopt.optimizer.progress import ProgressCallback, ProgressReporter, StatusCallback
from nexusopt.optimizer.results import (
    EvolutionRecord,
    LineupRecord,
    OptimizationResult,
    build_summary,
    make_lineup_record,
)
from nexusopt.optimizer.sampler import PerformanceGrid, sample_performance
from nexusopt.optimizer.scoring import MonteCarloScorer, SimulationStats, rescore_against_field
from nexusopt.optimizer.validator import LineupValidator


logger = logging.getLogger(__name__)

ScoredLineup = Tuple[Lineup, SimulationStats, NexusResult]
SeedInput = Union[Lineup, Mapping[str, Any]]


@dataclass(frozen=True)
class _Slate:
    """Everything ``initialize`` derives from one player pool."""

    prepared: PreparedInput
    correlation: CorrelationModel
    grid: PerformanceGrid
    validator: LineupValidator
    seed: int


class LineupOptimizer:
    """Owns the read-only pool, correlation table and performance grid for one slate.

    Each ``run_*`` call builds its own exposure ledger and RNG from the run
    seed, so repeated calls with the same inputs return identical results.
    """

    def __init__(
        self,
        config: Optional[OptimizerConfig] = None,
        rules: Optional[RosterRules] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self.config = config or OptimizerConfig()
        self.rules = rules or get_rules()
        self.reporter = ProgressReporter(on_progress, on_status)
        self._slate: Optional[_Slate] = None

    @property
    def is_initialized(self) -> bool:
        return self._slate is not None

    @property
    def seed(self) -> Optional[int]:
        return None if self._slate is None else self._slate.seed

    @property
    def prepared(self) -> PreparedInput:
        return self._require().prepared

    def _require(self) -> _Slate:
        if self._slate is None:
            raise EngineStateError("Optimizer has not been initialized")
        return self._slate

    def cancel(self) -> None:
        logger.info("Cancellation requested at %s (%.0f%%)", self.reporter.stage, self.reporter.percent)
        self.reporter.cancel()

    def initialize(
        self,
        players: Iterable[PlayerInput],
        exposure_settings: Union[ExposureSettings, Mapping[str, Any], None] = None,
        seed_lineups: Optional[Iterable[SeedInput]] = None,
    ) -> None:
        reporter = self.reporter
        reporter.reset()
        self._slate = None
        start = time.perf_counter()
        try:
            reporter.update(0.0, "initializing")
            prepared = preprocess(players, exposure_settings, seed_lineups, self.rules)
            validator = LineupValidator(prepared.pool, self.rules)
            for seed_lineup in prepared.seed_lineups:
                check = validator.validate(seed_lineup)
                if not check.valid:
                    message = f"Seed lineup {seed_lineup.lineup_id} breaks roster rules: {'; '.join(check.reasons)}"
                    logger.warning(message)
                    prepared.warnings.append(message)

            seed = self.config.seed if self.config.seed is not None else random.randint(1, 2**31 - 1)
            correlation = CorrelationModel(prepared.pool.players, self.config.correlation)
            reporter.status(f"Sampling {self.config.iterations} outcomes for {len(prepared.pool)} players")
            grid = sample_performance(
                prepared.pool.players,
                self.config.iterations,
                self.config.randomness,
                np.random.default_rng(seed),
                batch_size=self.config.sample_batch_size,
                checkpoint=reporter.checkpoint,
                on_batch=lambda done, total: reporter.update(5.0 * done / total, "initializing"),
            )
        except OptimizationCancelled:
            reporter.update(reporter.percent, "error")
            raise
        except InvalidInputError as exc:
            reporter.update(reporter.percent, "error")
            reporter.status(f"Invalid input: {exc}")
            raise

        self._slate = _Slate(prepared, correlation, grid, validator, seed)
        logger.info(
            "Initialized %s players across %s teams with %s seed lineups (%s iterations, seed %s) in %.2fs",
            len(prepared.pool),
            len(prepared.pool.teams),
            len(prepared.seed_lineups),
            self.config.iterations,
            seed,
            time.perf_counter() - start,
        )

    def _start_run(self, count: int) -> _Slate:
        if self._slate is None:
            raise EngineStateError("Call initialize() before running an optimization")
        if count < 1:
            raise InvalidInputError("Lineup count must be at least 1")
        self.reporter.reset()
        return self._slate

    def _tracker(self, prepared: PreparedInput, count: int) -> ExposureTracker:
        return ExposureTracker.recount(
            prepared.pool,
            prepared.constraints,
            prepared.seed_lineups,
            planned_total=len(prepared.seed_lineups) + count,
        )

    def _is_distinct(self, lineup: Lineup, accepted: Sequence[Lineup]) -> bool:
        ids = set(lineup.player_ids)
        needed = self.config.min_unique_players
        return all(len(ids - set(other.player_ids)) >= needed for other in accepted)

    def _generate(
        self,
        count: int,
        prepared: PreparedInput,
        tracker: ExposureTracker,
        rng: random.Random,
        warnings: List[str],
    ) -> Tuple[List[Lineup], int]:
        config = self.config
        reporter = self.reporter
        slate = self._require()
        validator = slate.validator
        builder = LineupBuilder(prepared.pool, self.rules, tracker, slate.correlation, rng)

        seeds = list(prepared.seed_lineups)
        lineups: List[Lineup] = []
        signatures = {lineup.signature() for lineup in seeds}
        max_attempts = count * config.attempts_per_lineup
        max_failures = max(100, 5 * count)
        randomness = config.randomness
        attempts = 0
        failures = 0
        start = time.perf_counter()

        while len(lineups) < count and attempts < max_attempts and failures < max_failures:
            reporter.checkpoint()
            attempts += 1
            number = len(lineups) + 1
            try:
                candidate = builder.build(
                    f"L{number:03}",
                    BuildParams(randomness=randomness, leverage_multiplier=config.leverage_multiplier),
                    name=f"Optimized Lineup {number}",
                )
            except LineupBuildError as exc:
                logger.debug("Build attempt %s failed: %s", attempts, exc)
                failures += 1
                continue

            result = validator.validate(candidate, signatures)
            if result.has_duplicates:
                repaired = validator.repair_duplicates(candidate, rng)
                if repaired is None:
                    failures += 1
                    continue
                candidate = repaired
                result = validator.validate(candidate, signatures)
            if not result.valid or not self._is_distinct(candidate, seeds + lineups):
                failures += 1
                continue
            violations = tracker.cap_violations(candidate)
            if violations:
                logger.debug("Lineup %s rejected: %s", candidate.lineup_id, "; ".join(violations))
                failures += 1
                continue

            tracker.record(candidate)
            lineups.append(candidate)
            signatures.add(candidate.signature())
            failures = 0
            if config.verify_ledger:
                tracker.verify(seeds + lineups)
            randomness = min(config.max_randomness, randomness + config.randomness_step)

            elapsed = time.perf_counter() - start
            logger.info(
                "Built lineup %s/%s - salary %s (elapsed %.2fs, avg %.3fs)",
                len(lineups),
                count,
                candidate.salary,
                elapsed,
                elapsed / len(lineups),
            )
            reporter.update(5.0 + 45.0 * len(lineups) / count, "final_selection")

        if len(lineups) < count:
            message = (
                f"Generated {len(lineups)} of {count} lineups after {attempts} attempts; "
                "constraints may be infeasible"
            )
            logger.warning(message)
            warnings.append(message)
        return lineups, attempts

    def _score(
        self,
        lineups: Sequence[Lineup],
        warnings: List[str],
        start_percent: float,
        end_percent: float,
    ) -> List[ScoredLineup]:
        slate = self._require()
        prepared = slate.prepared
        scorer = MonteCarloScorer(
            prepared.pool, slate.grid, slate.correlation, self.rules, target_top=self.config.target_top
        )
        nexus = NexusScoreCalculator(prepared.pool, self.rules)
        reporter = self.reporter

        kept: List[Lineup] = []
        stats: List[SimulationStats] = []
        totals: List[np.ndarray] = []
        scores: List[NexusResult] = []
        for idx, lineup in enumerate(lineups):
            reporter.checkpoint()
            try:
                lineup_stats, lineup_totals = scorer.score(lineup)
                lineup_nexus = nexus.score(lineup)
            except (ArithmeticError, IndexError, KeyError, ValueError) as exc:
                message = f"Dropped lineup {lineup.lineup_id}: scoring failed ({exc})"
                logger.warning(message)
                warnings.append(message)
                continue
            kept.append(lineup)
            stats.append(lineup_stats)
            totals.append(lineup_totals)
            scores.append(lineup_nexus)
            reporter.update(
                start_percent + (end_percent - start_percent) * (idx + 1) / len(lineups),
                "final_simulation",
            )

        if self.config.roi_mode == "field":
            stats = rescore_against_field(stats, totals, self.config.field_size)
        return list(zip(kept, stats, scores))

    def _fail(self, exc: Exception) -> None:
        self.reporter.update(self.reporter.percent, "error")
        self.reporter.status(f"Optimization stopped: {exc}")

    def run_simulation(self, count: int) -> OptimizationResult:
        """Build ``count`` lineups greedily, score them and rank by ROI."""

        slate = self._start_run(count)
        prepared = slate.prepared
        start = time.perf_counter()
        warnings = list(prepared.warnings)
        rng = random.Random(slate.seed)
        tracker = self._tracker(prepared, count)
        self.reporter.update(5.0, "final_selection")
        self.reporter.status(f"Building {count} lineups")
        try:
            lineups, attempts = self._generate(count, prepared, tracker, rng, warnings)
            self.reporter.status(f"Simulating {len(lineups)} lineups over {self.config.iterations} iterations")
            scored = self._score(lineups, warnings, 50.0, 95.0)
        except (OptimizationCancelled, InvariantViolation) as exc:
            self._fail(exc)
            raise

        scored.sort(key=lambda item: (-item[1].roi, -item[2].score, item[0].lineup_id))
        records = [make_lineup_record(lineup, prepared.pool, stats, nexus) for lineup, stats, nexus in scored]
        summary = build_summary(
            records,
            prepared.pool,
            mode="simulation",
            requested=count,
            attempts=attempts,
            seed=slate.seed,
            warnings=warnings,
            elapsed=time.perf_counter() - start,
        )
        self.reporter.update(100.0, "completed")
        self.reporter.status(f"Completed {len(records)} of {count} lineups")
        logger.info(
            "Simulation run finished: %s/%s lineups, top ROI %.2f, top NexusScore %.1f (%.2fs)",
            len(records),
            count,
            summary.top_roi,
            summary.top_nexus,
            summary.elapsed_seconds,
        )
        return OptimizationResult(records, summary)

    def run_genetic(self, count: int) -> OptimizationResult:
        """Evolve a lineup population, then score and rank the selected lineups."""

        slate = self._start_run(count)
        prepared = slate.prepared
        start = time.perf_counter()
        warnings = list(prepared.warnings)
        rng = random.Random(slate.seed)
        tracker = self._tracker(prepared, count)
        builder = LineupBuilder(prepared.pool, self.rules, tracker, slate.correlation, rng)
        driver = GeneticDriver(
            prepared.pool,
            self.rules,
            builder,
            slate.validator,
            tracker,
            self.config.genetic,
            rng,
            self.reporter,
            reserved_signatures=[lineup.signature() for lineup in prepared.seed_lineups],
        )
        self.reporter.status(
            f"Evolving {self.config.genetic.population_size} lineups for {self.config.genetic.generations} generations"
        )
        try:
            outcome = driver.run(count)
            warnings.extend(outcome.warnings)
            fitness_by_id = {individual.lineup.lineup_id: individual for individual in outcome.selected}
            scored = self._score([individual.lineup for individual in outcome.selected], warnings, 85.0, 98.0)
        except (OptimizationCancelled, InvariantViolation) as exc:
            self._fail(exc)
            raise

        scored.sort(
            key=lambda item: (
                -(0.7 * item[2].score + 0.3 * fitness_by_id[item[0].lineup_id].fitness),
                item[0].signature(),
            )
        )
        records: List[LineupRecord] = []
        for idx, (lineup, stats, nexus) in enumerate(scored):
            individual = fitness_by_id[lineup.lineup_id]
            ranked = lineup.renamed(f"L{idx + 1:03}", f"Genetic Lineup {idx + 1}")
            records.append(
                make_lineup_record(ranked, prepared.pool, stats, nexus, individual.fitness, individual.strategy)
            )

        summary = build_summary(
            records,
            prepared.pool,
            mode="genetic",
            requested=count,
            attempts=driver.attempts,
            seed=slate.seed,
            warnings=warnings,
            elapsed=time.perf_counter() - start,
        )
        summary.algorithm = "genetic"
        history = outcome.history
        if records:
            fitnesses = [record.genetic_fitness or 0.0 for record in records]
            summary.average_genetic_fitness = round(sum(fitnesses) / len(fitnesses), 1)
        if history:
            summary.final_best_fitness = history[-1].best_fitness
            summary.evolution_efficiency = round(
                (history[-1].best_fitness - history[0].best_fitness) / len(history), 2
            )
        summary.diversity_score = outcome.final_diversity

        self.reporter.update(100.0, "completed")
        self.reporter.status(f"Completed {len(records)} of {count} genetic lineups")
        logger.info(
            "Genetic run finished: %s/%s lineups after %s generations (%s restarts, %.2fs)",
            len(records),
            count,
            outcome.generations,
            outcome.restarts,
            summary.elapsed_seconds,
        )
        return OptimizationResult(
            records,
            summary,
            EvolutionRecord(
                generations=outcome.generations,
                fitness_history=history,
                final_diversity=outcome.final_diversity,
                restarts=outcome.restarts,
            ),
        )


def optimize(
    players: Iterable[PlayerInput],
    count: int,
    *,
    mode: str = "simulation",
    exposure_settings: Union[ExposureSettings, Mapping[str, Any], None] = None,
    seed_lineups: Optional[Iterable[SeedInput]] = None,
    config: Optional[OptimizerConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    on_status: Optional[StatusCallback] = None,
) -> OptimizationResult:
    """Initialize an optimizer and run it once."""

    if mode not in {"simulation", "genetic"}:
        raise InvalidInputError(f"Unknown optimization mode {mode!r}")
    optimizer = LineupOptimizer(config, on_progress=on_progress, on_status=on_status)
    optimizer.initialize(players, exposure_settings, seed_lineups)
    if mode == "genetic":
        return optimizer.run_genetic(count)
    return optimizer.run_simulation(count)
