"""Result records returned by the engine and their JSON payloads."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from nexusopt.models import Lineup
from nexusopt.optimizer.genetic import GenerationRecord
from nexusopt.optimizer.nexus import NexusComponents, NexusResult, score_band
from nexusopt.optimizer.pool import PlayerPool
from nexusopt.optimizer.scoring import SimulationStats


@dataclass(frozen=True)
class SlotRecord:
    player_id: str
    name: str
    position: str
    team: str
    salary: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.player_id,
            "name": self.name,
            "position": self.position,
            "team": self.team,
            "salary": self.salary,
        }


@dataclass(frozen=True)
class LineupRecord:
    lineup_id: str
    name: str
    captain: SlotRecord
    players: Tuple[SlotRecord, ...]
    salary: int
    stats: SimulationStats
    nexus_score: float
    components: NexusComponents
    genetic_fitness: Optional[float] = None
    strategy: Optional[str] = None

    @property
    def player_ids(self) -> Tuple[str, ...]:
        return (self.captain.player_id, *(slot.player_id for slot in self.players))

    def to_payload(self) -> Dict[str, Any]:
        stats = self.stats
        payload: Dict[str, Any] = {
            "id": self.lineup_id,
            "name": self.name,
            "cpt": self.captain.to_payload(),
            "players": [slot.to_payload() for slot in self.players],
            "salary": self.salary,
            "projectedPoints": stats.projected_points,
            "min": stats.min,
            "p10": stats.p10,
            "p25": stats.p25,
            "median": stats.median,
            "p75": stats.p75,
            "p90": stats.p90,
            "max": stats.max,
            "cashRate": stats.cash_rate,
            "winRate": stats.win_rate,
            "firstPlace": stats.first_place,
            "top10": stats.top10,
            "roi": stats.roi,
            "nexusScore": self.nexus_score,
            "scoreBand": score_band(self.nexus_score),
            "scoreComponents": {
                "baseProjection": round(self.components.base_projection, 2),
                "avgOwnership": round(self.components.avg_ownership, 2),
                "leverageFactor": round(self.components.leverage_factor, 3),
                "stackBonus": self.components.stack_bonus,
                "positionBonus": self.components.position_bonus,
            },
        }
        if self.genetic_fitness is not None:
            payload["geneticFitness"] = self.genetic_fitness
            payload["strategy"] = self.strategy
        return payload


@dataclass(frozen=True)
class ExposureRow:
    key: str
    count: int
    exposure: float
    name: Optional[str] = None
    team: Optional[str] = None
    position: Optional[str] = None


@dataclass
class Summary:
    mode: str
    requested: int
    generated: int
    attempts: int
    seed: int
    average_roi: float = 0.0
    top_roi: float = 0.0
    average_nexus: float = 0.0
    top_nexus: float = 0.0
    distinct_teams: int = 0
    player_exposures: List[ExposureRow] = field(default_factory=list)
    team_exposures: List[ExposureRow] = field(default_factory=list)
    stack_exposures: List[ExposureRow] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    algorithm: Optional[str] = None
    final_best_fitness: Optional[float] = None
    average_genetic_fitness: Optional[float] = None
    diversity_score: Optional[float] = None
    evolution_efficiency: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "mode": self.mode,
            "requested": self.requested,
            "generated": self.generated,
            "attempts": self.attempts,
            "seed": self.seed,
            "averageROI": self.average_roi,
            "topLineupROI": self.top_roi,
            "averageNexusScore": self.average_nexus,
            "topNexusScore": self.top_nexus,
            "distinctTeams": self.distinct_teams,
            "playerExposures": [
                {
                    "id": row.key,
                    "name": row.name,
                    "team": row.team,
                    "position": row.position,
                    "count": row.count,
                    "exposure": row.exposure,
                }
                for row in self.player_exposures
            ],
            "teamExposures": [
                {"team": row.key, "count": row.count, "exposure": row.exposure} for row in self.team_exposures
            ],
            "stackExposures": [
                {"stack": row.key, "count": row.count, "exposure": row.exposure} for row in self.stack_exposures
            ],
            "warnings": list(self.warnings),
            "elapsedSeconds": self.elapsed_seconds,
        }
        if self.algorithm is not None:
            payload.update(
                {
                    "algorithm": self.algorithm,
                    "finalBestFitness": self.final_best_fitness,
                    "averageGeneticFitness": self.average_genetic_fitness,
                    "diversityScore": self.diversity_score,
                    "evolutionEfficiency": self.evolution_efficiency,
                }
            )
        return payload


@dataclass
class EvolutionRecord:
    generations: int
    fitness_history: List[GenerationRecord]
    final_diversity: float
    restarts: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "generations": self.generations,
            "fitnessHistory": [
                {
                    "generation": record.generation,
                    "bestFitness": record.best_fitness,
                    "avgFitness": record.avg_fitness,
                    "diversity": record.diversity,
                }
                for record in self.fitness_history
            ],
            "finalDiversity": self.final_diversity,
            "restarts": self.restarts,
        }


@dataclass
class OptimizationResult:
    lineups: List[LineupRecord]
    summary: Summary
    evolution: Optional[EvolutionRecord] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "lineups": [lineup.to_payload() for lineup in self.lineups],
            "summary": self.summary.to_payload(),
        }
        if self.evolution is not None:
            payload["evolution"] = self.evolution.to_payload()
        return payload


def _slot_record(pool: PlayerPool, player_id: str, position: str, salary: int) -> SlotRecord:
    player = pool.get(player_id)
    return SlotRecord(player_id, player.name, position, player.team, salary)


def make_lineup_record(
    lineup: Lineup,
    pool: PlayerPool,
    stats: SimulationStats,
    nexus: NexusResult,
    genetic_fitness: Optional[float] = None,
    strategy: Optional[str] = None,
) -> LineupRecord:
    captain = lineup.captain
    return LineupRecord(
        lineup_id=lineup.lineup_id,
        name=lineup.name or lineup.lineup_id,
        captain=_slot_record(pool, captain.player_id, captain.role, captain.salary),
        players=tuple(_slot_record(pool, slot.player_id, slot.role, slot.salary) for slot in lineup.players),
        salary=lineup.salary,
        stats=stats,
        nexus_score=round(nexus.score, 1),
        components=nexus.components,
        genetic_fitness=genetic_fitness,
        strategy=strategy,
    )


def _percent(count: int, total: int) -> float:
    return round(count / total * 100.0, 1) if total else 0.0


def exposure_rows(records: Sequence[LineupRecord], pool: PlayerPool) -> tuple[List[ExposureRow], List[ExposureRow], List[ExposureRow]]:
    total = len(records)
    players: Counter = Counter()
    teams: Counter = Counter()
    stacks: Counter = Counter()
    for record in records:
        players.update(record.player_ids)
        team_counts = Counter(pool.get(player_id).team for player_id in record.player_ids)
        teams.update(team_counts.keys())
        stacks.update(f"{team}-{size}" for team, size in team_counts.items())

    player_rows = []
    for player_id, count in sorted(players.items(), key=lambda item: (-item[1], item[0])):
        player = pool.get(player_id)
        player_rows.append(
            ExposureRow(player_id, count, _percent(count, total), player.name, player.team, player.position)
        )
    team_rows = [
        ExposureRow(team, count, _percent(count, total))
        for team, count in sorted(teams.items(), key=lambda item: (-item[1], item[0]))
    ]
    stack_rows = [
        ExposureRow(key, count, _percent(count, total))
        for key, count in sorted(stacks.items(), key=lambda item: (-item[1], item[0]))
    ]
    return player_rows, team_rows, stack_rows


def build_summary(
    records: Sequence[LineupRecord],
    pool: PlayerPool,
    *,
    mode: str,
    requested: int,
    attempts: int,
    seed: int,
    warnings: Sequence[str],
    elapsed: float,
) -> Summary:
    player_rows, team_rows, stack_rows = exposure_rows(records, pool)
    summary = Summary(
        mode=mode,
        requested=requested,
        generated=len(records),
        attempts=attempts,
        seed=seed,
        player_exposures=player_rows,
        team_exposures=team_rows,
        stack_exposures=stack_rows,
        distinct_teams=len(team_rows),
        warnings=list(warnings),
        elapsed_seconds=round(elapsed, 3),
    )
    if records:
        rois = [record.stats.roi for record in records]
        scores = [record.nexus_score for record in records]
        summary.average_roi = round(sum(rois) / len(rois), 2)
        summary.top_roi = max(rois)
        summary.average_nexus = round(sum(scores) / len(scores), 1)
        summary.top_nexus = max(scores)
    return summary
