"""Persistence models for the data access layer."""

from datetime import datetime

from pydantic import BaseModel

from streaks.logic.enums import PlayerId
from streaks.logic.state import GameState, Player


class MonthStanding(BaseModel, frozen=True):
    """Both players' standing for one calendar month, stored as one row."""

    month: str  # YYYY-MM, the row key
    players: dict[PlayerId, Player]
    updated_at: datetime

    @classmethod
    def from_state(cls, state: GameState, updated_at: datetime) -> "MonthStanding":
        return cls(month=state.current_month, players=state.players, updated_at=updated_at)
