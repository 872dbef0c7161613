"""Abstract interface for competition state persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from streaks.logic.state import GameState, LiveGame, MatchRecord


class StateRepository(ABC):
    """Abstract interface for competition state persistence.

    Layout contract: one standing per calendar month (both players' streak,
    total and quota), an append-only match log referencing its month, and live
    game records of which at most one is active.
    """

    @abstractmethod
    async def load_state(self) -> GameState | None:
        """Return the most recent month's standing with the full match log, or None when empty."""

    @abstractmethod
    async def save_state(self, state: GameState) -> None:
        """Upsert the standing for ``state.current_month``. The match log is not touched."""

    @abstractmethod
    async def append_match(self, record: MatchRecord) -> None: ...

    @abstractmethod
    async def delete_match(self, match_id: str) -> bool:
        """Remove a record from the log. Returns False when it did not exist."""

    @abstractmethod
    async def clear_all(self) -> None:
        """Drop every standing, match and live game."""

    @abstractmethod
    async def save_live_game(self, game: LiveGame) -> None: ...

    @abstractmethod
    async def get_live_game(self, game_id: str) -> LiveGame | None: ...

    @abstractmethod
    async def get_active_live_game(self) -> LiveGame | None: ...
