"""Normalize raw player records, resolve exposure settings and seed lineups."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from nexusopt.config import RosterRules, get_rules
from nexusopt.models import (
    CAPTAIN_ROLE,
    POSITIONS,
    ExposureSettings,
    Lineup,
    LineupSlot,
    Player,
    PlayerRecord,
)
from nexusopt.models.exposure import STACK_SIZES, ExposureBounds
from nexusopt.optimizer.errors import InvalidInputError
from nexusopt.optimizer.exposure import Bounds, ConstraintSet
from nexusopt.optimizer.pool import PlayerPool


logger = logging.getLogger(__name__)

POSITION_VOLATILITY = {
    "MID": 0.40,
    "ADC": 0.40,
    "TOP": 0.35,
    "JNG": 0.35,
    "TEAM": 0.30,
    "SUP": 0.25,
}
DEFAULT_VOLATILITY = 0.35
MIN_STD_DEV = 3.0

_OPPONENT_PREFIXES = ("vs. ", "vs ", "at ", "@")

PlayerInput = Union[PlayerRecord, Mapping[str, Any]]
SettingsInput = Union[ExposureSettings, Mapping[str, Any], None]


@dataclass
class PreparedInput:
    pool: PlayerPool
    constraints: ConstraintSet
    seed_lineups: List[Lineup] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def parse_number(value: Any, default: float = 0.0) -> float:
    """NaN-safe numeric coercion; strips ``$``, ``,`` and ``%`` from strings."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace("$", "").replace(",", "").replace("%", "")
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def normalize_opponent(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    text = value.strip()
    lowered = text.lower()
    for prefix in _OPPONENT_PREFIXES:
        if lowered.startswith(prefix) and len(text) > len(prefix):
            text = text[len(prefix):].strip()
            break
    return text.upper() or None


def derive_std_dev(projection: float, position: str) -> float:
    volatility = POSITION_VOLATILITY.get(position, DEFAULT_VOLATILITY)
    return max(MIN_STD_DEV, projection * volatility)


def projection_percentiles(projections: Sequence[float]) -> List[float]:
    """Rank within the group scaled to [0, 1]; ties share their mean rank."""

    count = len(projections)
    if count == 1:
        return [0.5]
    order = sorted(range(count), key=lambda idx: projections[idx])
    ranks = [0.0] * count
    start = 0
    while start < count:
        end = start
        while end + 1 < count and projections[order[end + 1]] == projections[order[start]]:
            end += 1
        mean_rank = (start + end) / 2.0
        for position in range(start, end + 1):
            ranks[order[position]] = mean_rank
        start = end + 1
    return [rank / (count - 1) for rank in ranks]


def derive_target(
    bounds: Bounds,
    projection: float,
    ownership_pct: float,
    percentile: float,
    prioritize_projections: bool = True,
) -> float:
    low, high = bounds.min, bounds.max
    if projection <= 0 or not prioritize_projections:
        return (low + high) / 2.0
    leverage = min(1.0, (projection / max(0.1, ownership_pct)) / 1.5)
    target = low + (high - low) * percentile * leverage
    return min(high, max(low, target))


def _to_bounds(entry: ExposureBounds, base: Bounds = Bounds()) -> Bounds:
    """Convert percent bounds to fractions; unset fields keep ``base``."""

    provided = entry.model_fields_set
    low = entry.min_exposure / 100.0 if "min_exposure" in provided else base.min
    high = entry.max_exposure / 100.0 if "max_exposure" in provided else base.max
    if entry.target_exposure is not None:
        target: Optional[float] = entry.target_exposure / 100.0
    else:
        target = base.target
    if low > high:
        raise InvalidInputError(f"Exposure min {low:.2f} exceeds max {high:.2f}")
    return Bounds(min=low, max=high, target=target)


def _coerce_records(records: Iterable[PlayerInput]) -> List[PlayerRecord]:
    coerced: List[PlayerRecord] = []
    for idx, record in enumerate(records):
        if isinstance(record, PlayerRecord):
            coerced.append(record)
            continue
        try:
            coerced.append(PlayerRecord.model_validate(record))
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid player record at index {idx}: {exc}") from exc
    return coerced


def _coerce_settings(settings: SettingsInput) -> ExposureSettings:
    if settings is None:
        return ExposureSettings()
    if isinstance(settings, ExposureSettings):
        return settings
    try:
        return ExposureSettings.model_validate(settings)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid exposure settings: {exc}") from exc


def build_players(records: Sequence[PlayerRecord], settings: ExposureSettings) -> List[Player]:
    if not records:
        raise InvalidInputError("Player pool is empty")

    seen: set[str] = set()
    for record in records:
        position = record.position.upper()
        if position not in POSITIONS:
            raise InvalidInputError(f"Unknown position {record.position!r} for player {record.player_id}")
        if record.player_id in seen:
            raise InvalidInputError(f"Duplicate player id {record.player_id}")
        seen.add(record.player_id)

    global_settings = settings.global_settings
    if global_settings.apply_to_new_lineups:
        global_bounds = Bounds(
            min=global_settings.global_min_exposure / 100.0,
            max=global_settings.global_max_exposure / 100.0,
        )
        if global_bounds.min > global_bounds.max:
            raise InvalidInputError("Global min exposure exceeds global max exposure")
    else:
        global_bounds = Bounds()

    position_bounds: Dict[str, Bounds] = {}
    for key, entry in settings.positions.items():
        position = key.upper()
        if position not in POSITIONS:
            raise InvalidInputError(f"Unknown position {key!r} in exposure settings")
        position_bounds[position] = _to_bounds(entry, global_bounds)

    player_overrides = {entry.player_id: entry for entry in settings.players}
    unknown = sorted(set(player_overrides) - seen)
    if unknown:
        logger.warning("Ignoring exposure settings for unknown players: %s", ", ".join(unknown))

    projections = {record.player_id: max(0.0, parse_number(record.projected_points)) for record in records}
    by_position: Dict[str, List[PlayerRecord]] = {}
    for record in records:
        by_position.setdefault(record.position.upper(), []).append(record)
    percentiles: Dict[str, float] = {}
    for group in by_position.values():
        ranks = projection_percentiles([projections[record.player_id] for record in group])
        for record, rank in zip(group, ranks):
            percentiles[record.player_id] = rank

    players: List[Player] = []
    for record in records:
        position = record.position.upper()
        projection = projections[record.player_id]
        ownership_pct = min(100.0, max(0.0, parse_number(record.ownership)))
        bounds = position_bounds.get(position, global_bounds)
        override = player_overrides.get(record.player_id)
        if override is not None:
            bounds = _to_bounds(override, bounds)
        target = bounds.target
        if target is None:
            target = derive_target(
                bounds,
                projection,
                ownership_pct,
                percentiles[record.player_id],
                global_settings.prioritize_projections,
            )
        players.append(
            Player(
                player_id=record.player_id,
                name=record.name or record.player_id,
                position=position,
                team=record.team.upper(),
                salary=int(round(max(0.0, parse_number(record.salary)))),
                projection=projection,
                ownership=ownership_pct / 100.0,
                opponent=normalize_opponent(record.opponent),
                std_dev=derive_std_dev(projection, position),
                min_exposure=bounds.min,
                max_exposure=bounds.max,
                target_exposure=min(bounds.max, max(bounds.min, target)),
            )
        )
    return players


def resolve_constraints(
    pool: PlayerPool,
    settings: ExposureSettings,
    rules: RosterRules,
    warnings: List[str],
) -> ConstraintSet:
    constraints = ConstraintSet()
    for player in pool.players:
        constraints.players[player.player_id] = Bounds(
            min=player.min_exposure,
            max=player.max_exposure,
            target=player.target_exposure,
        )

    for entry in settings.teams:
        team = entry.team.upper()
        if team not in pool.teams:
            message = f"Ignoring exposure settings for unknown team {team}"
            logger.warning(message)
            warnings.append(message)
            continue
        bounds = _to_bounds(entry)
        if entry.stack_size is None:
            constraints.teams[team] = bounds
        else:
            constraints.stacks[(team, entry.stack_size)] = bounds

    _scale_stack_floors(constraints, rules, warnings)
    return constraints


def _scale_stack_floors(constraints: ConstraintSet, rules: RosterRules, warnings: List[str]) -> None:
    """Shrink (team, k) floors proportionally when a lineup cannot hold them all."""

    for size in STACK_SIZES:
        keys = [key for key in constraints.stacks if key[1] == size]
        if not keys:
            continue
        capacity = float(rules.roster_size // size)
        demand = sum(constraints.stacks[key].floor for key in keys)
        if demand <= capacity + 1e-9:
            continue
        scale = capacity / demand
        for key in keys:
            bounds = constraints.stacks[key]
            constraints.stacks[key] = Bounds(
                min=bounds.min * scale,
                max=bounds.max,
                target=None if bounds.target is None else bounds.target * scale,
            )
        message = (
            f"{size}-stack targets sum to {demand * 100:.0f}% but a lineup holds at most "
            f"{int(capacity)}; scaled by {scale:.3f}"
        )
        logger.warning(message)
        warnings.append(message)


def _slot_player_id(entry: Any) -> str:
    if isinstance(entry, Mapping):
        raw = entry.get("id", entry.get("player_id"))
    else:
        raw = entry
    if raw is None or str(raw).strip() == "":
        raise InvalidInputError("Seed lineup slot is missing a player id")
    return str(raw).strip()


def resolve_seed_lineups(
    seeds: Optional[Iterable[Union[Lineup, Mapping[str, Any]]]],
    pool: PlayerPool,
    rules: RosterRules,
) -> List[Lineup]:
    """Turn caller-supplied lineups into :class:`Lineup` records against ``pool``."""

    resolved: List[Lineup] = []
    for idx, seed in enumerate(seeds or []):
        if isinstance(seed, Lineup):
            missing = [player_id for player_id in seed.player_ids if player_id not in pool]
            if missing:
                raise InvalidInputError(f"Seed lineup {seed.lineup_id} references unknown players: {missing}")
            resolved.append(seed)
            continue

        lineup_id = str(seed.get("id") or f"S{idx + 1:03}")
        captain_entry = seed.get("cpt") or seed.get("captain")
        if captain_entry is None:
            raise InvalidInputError(f"Seed lineup {lineup_id} has no captain")
        captain_id = _slot_player_id(captain_entry)
        if captain_id not in pool:
            raise InvalidInputError(f"Seed lineup {lineup_id} references unknown captain {captain_id}")
        captain = LineupSlot(captain_id, CAPTAIN_ROLE, rules.captain_salary(pool.get(captain_id).salary))

        slots: List[LineupSlot] = []
        for entry in seed.get("players") or []:
            player_id = _slot_player_id(entry)
            if player_id not in pool:
                raise InvalidInputError(f"Seed lineup {lineup_id} references unknown player {player_id}")
            player = pool.get(player_id)
            role = player.position
            if isinstance(entry, Mapping) and entry.get("position"):
                role = str(entry["position"]).upper()
            if role != player.position:
                raise InvalidInputError(
                    f"Seed lineup {lineup_id} places {player_id} ({player.position}) in the {role} slot"
                )
            slots.append(LineupSlot(player_id, role, player.salary))
        resolved.append(
            Lineup(
                lineup_id=lineup_id,
                captain=captain,
                players=tuple(slots),
                name=str(seed.get("name") or f"Seed Lineup {idx + 1}"),
            )
        )
    return resolved


def preprocess(
    records: Iterable[PlayerInput],
    settings: SettingsInput = None,
    seed_lineups: Optional[Iterable[Union[Lineup, Mapping[str, Any]]]] = None,
    rules: Optional[RosterRules] = None,
) -> PreparedInput:
    """Normalize the pool, resolve exposure constraints and seed lineups."""

    rules = rules or get_rules()
    exposure_settings = _coerce_settings(settings)
    players = build_players(_coerce_records(records), exposure_settings)
    pool = PlayerPool(players)

    warnings: List[str] = []
    if not pool.has_opponents:
        message = "No opponent data supplied; game diversity check is skipped"
        logger.warning(message)
        warnings.append(message)

    constraints = resolve_constraints(pool, exposure_settings, rules, warnings)
    seeds = resolve_seed_lineups(seed_lineups, pool, rules)
    return PreparedInput(pool=pool, constraints=constraints, seed_lineups=seeds, warnings=warnings)
