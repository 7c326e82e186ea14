"""Population-based lineup search wrapping the greedy builder."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field, replace
from typing import Callable, Collection, Dict, List, Optional, Sequence, Tuple

from nexusopt.config import GeneticConfig, RosterRules
from nexusopt.models import CAPTAIN_ROLE, Lineup, LineupSlot
from nexusopt.optimizer.builder import BuildParams, LineupBuilder
from nexusopt.optimizer.errors import LineupBuildError, PoolExhaustedError
from nexusopt.optimizer.exposure import ExposureTracker
from nexusopt.optimizer.nexus import captain_impact
from nexusopt.optimizer.pool import PlayerPool
from nexusopt.optimizer.progress import ProgressReporter
from nexusopt.optimizer.validator import LineupValidator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy:
    name: str
    leverage_multiplier: float
    randomness: float
    stack_bias: Optional[str] = None

    def params(self, extra_randomness: float = 0.0) -> BuildParams:
        return BuildParams(
            randomness=min(0.9, self.randomness + extra_randomness),
            leverage_multiplier=self.leverage_multiplier,
            stack_bias=self.stack_bias,
        )


STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("projection_focused", leverage_multiplier=0.3, randomness=0.1),
    Strategy("leverage_focused", leverage_multiplier=1.2, randomness=0.2),
    Strategy("contrarian", leverage_multiplier=1.5, randomness=0.4),
    Strategy("balanced", leverage_multiplier=0.7, randomness=0.3),
    Strategy("stack_heavy", leverage_multiplier=0.8, randomness=0.2, stack_bias="large"),
    Strategy("stack_light", leverage_multiplier=0.6, randomness=0.3, stack_bias="small"),
)

RANDOM_BUILD_EXTRA_RANDOMNESS = 0.3
OVERSTACK_PENALTY = 100.0
MUTATIONS = ("swap_player", "swap_captain", "swap_team_stack")


@dataclass
class Individual:
    lineup: Lineup
    strategy: str
    fitness: float = 0.0
    evaluated: bool = False


@dataclass(frozen=True)
class GenerationRecord:
    generation: int
    best_fitness: float
    avg_fitness: float
    diversity: float


@dataclass
class EvolutionOutcome:
    selected: List[Individual]
    history: List[GenerationRecord]
    generations: int
    final_diversity: float
    restarts: int = 0
    warnings: List[str] = field(default_factory=list)


def jaccard_distance(first: Lineup, second: Lineup) -> float:
    a, b = set(first.player_ids), set(second.player_ids)
    union = a | b
    if not union:
        return 0.0
    return 1.0 - len(a & b) / len(union)


def population_diversity(lineups: Sequence[Lineup]) -> float:
    """Mean pairwise Jaccard distance; 0 for fewer than two lineups."""

    if len(lineups) < 2:
        return 0.0
    total = 0.0
    pairs = 0
    for idx, first in enumerate(lineups):
        for second in lineups[idx + 1:]:
            total += jaccard_distance(first, second)
            pairs += 1
    return total / pairs


class FitnessEvaluator:
    """Fast surrogate used to rank individuals between generations."""

    def __init__(self, pool: PlayerPool, rules: RosterRules, tracker: ExposureTracker) -> None:
        self.pool = pool
        self.rules = rules
        self.tracker = tracker

    def __call__(self, lineup: Lineup) -> float:
        pool = self.pool
        captain = pool.get(lineup.captain.player_id)
        others = [pool.get(slot.player_id) for slot in lineup.players]
        projection = captain.projection * self.rules.captain_multiplier + sum(p.projection for p in others)
        ownerships = [captain.ownership_pct] + [p.ownership_pct for p in others]
        avg_ownership = sum(ownerships) / len(ownerships)

        fitness = projection * 10.0
        fitness += max(0.0, 30.0 - avg_ownership) * 2.0
        for count in pool.team_counts(lineup).values():
            if count >= 3:
                fitness += (count - 2) ** 1.5 * 15.0
            if count > self.rules.team_max_players:
                fitness -= count * OVERSTACK_PENALTY
        fitness += captain_impact(captain.position) * 10.0

        for player in [captain, *others]:
            if player.min_exposure > 0:
                current = self.tracker.player_exposure(player.player_id)
                if current < player.min_exposure:
                    fitness += (player.min_exposure - current) * 50.0
        return round(fitness, 1)


class GeneticDriver:
    def __init__(
        self,
        pool: PlayerPool,
        rules: RosterRules,
        builder: LineupBuilder,
        validator: LineupValidator,
        tracker: ExposureTracker,
        config: GeneticConfig,
        rng: random.Random,
        reporter: ProgressReporter,
        reserved_signatures: Collection[Tuple[str, ...]] = (),
    ) -> None:
        self.pool = pool
        self.rules = rules
        self.builder = builder
        self.validator = validator
        self.tracker = tracker
        self.config = config
        self.rng = rng
        self.reporter = reporter
        self.reserved = set(reserved_signatures)
        self.fitness = FitnessEvaluator(pool, rules, tracker)
        self._serial = 0
        self.attempts = 0

    def _next_id(self) -> str:
        self._serial += 1
        return f"G{self._serial:05}"

    # -- population ---------------------------------------------------------
    def _accepts(self, lineup: Lineup, signatures: Collection[Tuple[str, ...]]) -> Optional[Lineup]:
        """Validate, repairing duplicate players once; ``None`` rejects the lineup."""

        taken = set(signatures) | self.reserved
        result = self.validator.validate(lineup, taken)
        if result.has_duplicates:
            repaired = self.validator.repair_duplicates(lineup, self.rng)
            if repaired is None:
                return None
            lineup = repaired
            result = self.validator.validate(lineup, taken)
        return lineup if result.valid else None

    def create_individual(self, strategy: Strategy, signatures: Collection[Tuple[str, ...]]) -> Individual:
        for _ in range(self.config.individual_retries):
            self.attempts += 1
            try:
                candidate = self.builder.build(self._next_id(), strategy.params())
            except LineupBuildError as exc:
                logger.debug("Strategy %s build failed: %s", strategy.name, exc)
                continue
            accepted = self._accepts(candidate, signatures)
            if accepted is not None:
                return Individual(accepted, strategy.name)
        raise PoolExhaustedError(f"Could not create a {strategy.name} individual")

    def fill_population(self, population: List[Individual], target: int, offset: int = 0) -> List[Individual]:
        signatures = {individual.lineup.signature() for individual in population}
        slot = offset
        while len(population) < target and slot < offset + target:
            self.reporter.checkpoint()
            strategy = STRATEGIES[slot % len(STRATEGIES)]
            slot += 1
            try:
                individual = self.create_individual(strategy, signatures)
            except PoolExhaustedError as exc:
                logger.info("Skipping individual: %s", exc)
                continue
            population.append(individual)
            signatures.add(individual.lineup.signature())
        return population

    def evaluate(self, population: Sequence[Individual]) -> None:
        batch = self.config.fitness_batch_size
        for start in range(0, len(population), batch):
            for individual in population[start:start + batch]:
                if not individual.evaluated:
                    individual.fitness = self.fitness(individual.lineup)
                    individual.evaluated = True
            self.reporter.checkpoint()

    # -- operators ----------------------------------------------------------
    def tournament(self, population: Sequence[Individual]) -> Individual:
        size = min(self.config.tournament_size, len(population))
        contenders = self.rng.sample(list(population), size)
        return max(contenders, key=lambda individual: individual.fitness)

    def crossover(self, first: Lineup, second: Lineup) -> Lineup:
        parents = (first, second)
        captain = self.rng.choice(parents).captain
        slots = []
        for position in self.validator.positions:
            donor = self.rng.choice(parents).slot_for(position) or first.slot_for(position)
            if donor is None:
                donor = second.slot_for(position)
            if donor is None:
                raise LineupBuildError(f"Neither parent fills {position}")
            slots.append(donor)
        return Lineup(lineup_id=self._next_id(), captain=captain, players=tuple(slots))

    def _remaining_salary(self, lineup: Lineup, dropping: LineupSlot) -> int:
        return self.rules.salary_cap - (lineup.salary - dropping.salary)

    def _swap_player(self, lineup: Lineup) -> Lineup:
        slot = self.rng.choice(lineup.players)
        budget = self._remaining_salary(lineup, slot)
        in_use = set(lineup.player_ids)
        options = [
            player
            for player in self.pool.by_position.get(slot.role, ())
            if player.player_id not in in_use and player.salary <= budget
        ]
        if not options:
            return lineup
        choice = self.rng.choice(options)
        return lineup.replace_slot(slot.role, LineupSlot(choice.player_id, slot.role, choice.salary))

    def _swap_captain(self, lineup: Lineup) -> Lineup:
        """Exchange the captain with the player in the captain's own position, repricing both."""

        captain = self.pool.get(lineup.captain.player_id)
        partner_slot = lineup.slot_for(captain.position)
        if partner_slot is None:
            return lineup
        partner = self.pool.get(partner_slot.player_id)
        if partner.position not in self.rules.captain_positions:
            return lineup
        new_captain = LineupSlot(partner.player_id, CAPTAIN_ROLE, self.rules.captain_salary(partner.salary))
        new_slot = LineupSlot(captain.player_id, captain.position, captain.salary)
        swapped = replace(lineup.replace_slot(captain.position, new_slot), captain=new_captain)
        if swapped.salary > self.rules.salary_cap:
            return lineup
        return swapped

    def _swap_team_stack(self, lineup: Lineup) -> Lineup:
        counts = self.pool.team_counts(lineup)
        stack_team, stacked = max(sorted(counts.items()), key=lambda item: item[1])
        if stacked >= self.rules.team_max_players:
            return lineup
        in_use = set(lineup.player_ids)
        squad = self.pool.teams[stack_team]
        options = []
        for slot in lineup.players:
            if self.pool.get(slot.player_id).team == stack_team:
                continue
            budget = self._remaining_salary(lineup, slot)
            for player in squad.by_position.get(slot.role, ()):
                if player.player_id not in in_use and player.salary <= budget:
                    options.append((slot.role, player))
        if not options:
            return lineup
        role, player = self.rng.choice(options)
        return lineup.replace_slot(role, LineupSlot(player.player_id, role, player.salary))

    def mutate(self, lineup: Lineup) -> Lineup:
        operators: Dict[str, Callable[[Lineup], Lineup]] = {
            "swap_player": self._swap_player,
            "swap_captain": self._swap_captain,
            "swap_team_stack": self._swap_team_stack,
        }
        for _ in range(self.rng.randint(1, 3)):
            lineup = operators[self.rng.choice(MUTATIONS)](lineup)
        return lineup

    # -- generations --------------------------------------------------------
    def evolve(self, population: List[Individual]) -> List[Individual]:
        config = self.config
        target = config.population_size
        ranked = sorted(population, key=lambda individual: individual.fitness, reverse=True)
        elite_count = max(1, int(round(target * config.elite_fraction)))
        next_population = [replace(individual) for individual in ranked[:elite_count]]
        signatures = {individual.lineup.signature() for individual in next_population}
        fill_threshold = target * config.diversity_fill

        attempts = 0
        while len(next_population) < target and attempts < target * 5:
            self.reporter.checkpoint()
            attempts += 1
            self.attempts += 1
            try:
                if self.rng.random() < config.crossover_rate and len(ranked) >= 2:
                    first = self.tournament(ranked)
                    second = self.tournament(ranked)
                    child = self.crossover(first.lineup, second.lineup)
                    if self.rng.random() < config.mutation_rate:
                        child = self.mutate(child)
                    strategy = first.strategy
                else:
                    chosen = self.rng.choice(STRATEGIES)
                    child = self.builder.build(self._next_id(), chosen.params(RANDOM_BUILD_EXTRA_RANDOMNESS))
                    strategy = chosen.name
            except (LineupBuildError, ValueError) as exc:
                logger.debug("Offspring skipped: %s", exc)
                continue

            accepted = self._accepts(child, signatures)
            if accepted is None:
                continue
            if len(next_population) >= fill_threshold and any(
                jaccard_distance(accepted, member.lineup) < config.min_distance for member in next_population
            ):
                continue
            next_population.append(Individual(accepted, strategy))
            signatures.add(accepted.signature())
        return next_population

    def restart(self, population: List[Individual]) -> List[Individual]:
        ranked = sorted(population, key=lambda individual: individual.fitness, reverse=True)
        keep = max(1, int(math.ceil(len(ranked) * self.config.restart_keep)))
        survivors = ranked[:keep]
        return self.fill_population(survivors, self.config.population_size, offset=len(survivors))

    def select_final(self, population: Sequence[Individual], count: int) -> List[Individual]:
        """Greedy 50/50 blend of normalized fitness and distance to the picks so far.

        Picks are charged to a copy of the run's exposure ledger, so seed
        lineups count toward every player max, team max and stack ceiling
        and no pick may push one of them past its limit.
        """

        if not population or count <= 0:
            return []
        ranked = sorted(population, key=lambda individual: (-individual.fitness, individual.lineup.signature()))
        low = min(individual.fitness for individual in ranked)
        high = max(individual.fitness for individual in ranked)
        spread = high - low

        def normalized(individual: Individual) -> float:
            return 100.0 if spread <= 0 else (individual.fitness - low) / spread * 100.0

        ledger = self.tracker.copy(self.tracker.planned_total or self.tracker.total + count)
        selected: List[Individual] = []
        remaining = list(ranked)
        while remaining and len(selected) < count:
            best_index = None
            best_value = -math.inf
            for idx, individual in enumerate(remaining):
                if ledger.cap_violations(individual.lineup):
                    continue
                if not selected:
                    best_index = idx
                    break
                distance = min(jaccard_distance(individual.lineup, pick.lineup) for pick in selected)
                value = 0.5 * normalized(individual) + 0.5 * distance * 100.0
                if value > best_value:
                    best_value = value
                    best_index = idx
            if best_index is None:
                break
            pick = remaining.pop(best_index)
            selected.append(pick)
            ledger.record(pick.lineup)
        return selected

    def run(self, count: int) -> EvolutionOutcome:
        config = self.config
        reporter = self.reporter
        warnings: List[str] = []

        population = self.fill_population([], config.population_size)
        if len(population) < config.population_size * 0.5:
            message = f"Initial population has {len(population)} of {config.population_size} individuals"
            logger.warning(message)
            warnings.append(message)
        reporter.update(20.0, "population_created")
        reporter.status(f"Created initial population of {len(population)} lineups")
        if not population:
            return EvolutionOutcome([], [], 0, 0.0, 0, warnings)

        history: List[GenerationRecord] = []
        best_so_far = -math.inf
        stagnation = 0
        restarts = 0
        for generation in range(config.generations):
            reporter.checkpoint()
            self.evaluate(population)
            fitnesses = [individual.fitness for individual in population]
            best = max(fitnesses)
            history.append(
                GenerationRecord(
                    generation=generation + 1,
                    best_fitness=best,
                    avg_fitness=round(sum(fitnesses) / len(fitnesses), 1),
                    diversity=round(population_diversity([individual.lineup for individual in population]), 4),
                )
            )
            if best > best_so_far:
                best_so_far = best
                stagnation = 0
            else:
                stagnation += 1
            if stagnation >= config.max_stagnation:
                logger.info("Fitness stagnated for %s generations; restarting population", stagnation)
                population = self.restart(population)
                self.evaluate(population)
                stagnation = 0
                restarts += 1

            population = self.evolve(population)
            reporter.update(20.0 + 60.0 * (generation + 1) / config.generations, "evolving")
            reporter.status(f"Generation {generation + 1}/{config.generations}: best fitness {best:.1f}")

        self.evaluate(population)
        reporter.update(80.0, "final_selection")
        selected = self.select_final(population, count)
        if len(selected) < count:
            if len(population) >= count:
                message = f"Exposure caps limited final selection to {len(selected)} of {count} requested lineups"
            else:
                message = f"Final population yielded {len(selected)} of {count} requested lineups"
            logger.warning(message)
            warnings.append(message)
        return EvolutionOutcome(
            selected=selected,
            history=history,
            generations=len(history),
            final_diversity=round(population_diversity([individual.lineup for individual in selected]), 4),
            restarts=restarts,
            warnings=warnings,
        )
