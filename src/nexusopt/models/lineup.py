"""Lineup and slot records produced by the builder."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple


CAPTAIN_ROLE = "CPT"


@dataclass(frozen=True)
class LineupSlot:
    """One roster slot: a base player filling either the captain or a position."""

    player_id: str
    role: str
    salary: int

    @property
    def is_captain(self) -> bool:
        return self.role == CAPTAIN_ROLE


@dataclass(frozen=True)
class Lineup:
    lineup_id: str
    captain: LineupSlot
    players: Tuple[LineupSlot, ...]
    name: str = ""

    @property
    def slots(self) -> Tuple[LineupSlot, ...]:
        return (self.captain, *self.players)

    @property
    def player_ids(self) -> Tuple[str, ...]:
        return tuple(slot.player_id for slot in self.slots)

    @property
    def salary(self) -> int:
        return sum(slot.salary for slot in self.slots)

    def signature(self) -> Tuple[str, ...]:
        """Sorted id multiset; two lineups with the same signature are duplicates."""

        return tuple(sorted(self.player_ids))

    def slot_for(self, role: str) -> Optional[LineupSlot]:
        if role == CAPTAIN_ROLE:
            return self.captain
        for slot in self.players:
            if slot.role == role:
                return slot
        return None

    def replace_slot(self, role: str, slot: LineupSlot) -> "Lineup":
        if role == CAPTAIN_ROLE:
            return replace(self, captain=slot)
        players = tuple(slot if existing.role == role else existing for existing in self.players)
        return replace(self, players=players)

    def renamed(self, lineup_id: str, name: str) -> "Lineup":
        return replace(self, lineup_id=lineup_id, name=name)
