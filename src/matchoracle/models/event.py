"""EventRecord, Objective - external ground truth for one finished match."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Side(str, Enum):
    """Match side. RADIANT is side A (outcome index 0), DIRE is side B (index 1)."""

    RADIANT = "radiant"
    DIRE = "dire"

    @property
    def outcome_index(self) -> int:
        return 0 if self is Side.RADIANT else 1

    @classmethod
    def from_player_slot(cls, player_slot: int) -> Side:
        return cls.RADIANT if player_slot < 128 else cls.DIRE


class Objective(BaseModel):
    """Timestamped sub-event (building kill, first blood, ...) attributed to a side."""

    model_config = ConfigDict(frozen=True)

    time: int  # seconds since game start
    type: str
    key: str = ""
    side: Side | None = None

    @property
    def is_tower_kill(self) -> bool:
        return self.type == "building_kill" and "tower" in self.key


class EventRecord(BaseModel):
    """A concluded match. Only constructed once duration is known."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    duration: int = Field(..., gt=0, description="Match duration in seconds")
    radiant_score: int = 0
    dire_score: int = 0
    radiant_win: bool | None = None
    first_blood_time: int | None = None  # seconds
    start_time: int | None = None  # unix seconds
    objectives: tuple[Objective, ...] = ()

    @property
    def total_kills(self) -> int:
        return self.radiant_score + self.dire_score

    @property
    def duration_minutes(self) -> float:
        return self.duration / 60

    def tower_kills(self) -> list[Objective]:
        """Tower captures in time order."""
        return sorted((o for o in self.objectives if o.is_tower_kill), key=lambda o: o.time)
