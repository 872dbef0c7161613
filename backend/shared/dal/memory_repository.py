"""In-memory state repository for tests and single-process local runs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from shared.dal.models import MonthStanding
from shared.dal.state_repository import StateRepository
from streaks.logic.enums import LiveGameStatus
from streaks.logic.state import GameState

if TYPE_CHECKING:
    from streaks.logic.state import LiveGame, MatchRecord


class InMemoryStateRepository(StateRepository):
    """Dict-backed StateRepository. Data lives as long as the instance."""

    def __init__(self) -> None:
        self._months: dict[str, MonthStanding] = {}
        self._matches: dict[str, MatchRecord] = {}
        self._live_games: dict[str, LiveGame] = {}

    async def load_state(self) -> GameState | None:
        if not self._months:
            return None
        standing = self._months[max(self._months)]
        matches = tuple(sorted(self._matches.values(), key=lambda m: m.timestamp))
        return GameState(
            players=standing.players,
            current_month=standing.month,
            matches=matches,
            last_match_id=matches[-1].match_id if matches else None,
        )

    async def save_state(self, state: GameState) -> None:
        self._months[state.current_month] = MonthStanding.from_state(state, datetime.now(tz=UTC))

    async def append_match(self, record: MatchRecord) -> None:
        if record.match_id in self._matches:
            raise ValueError(f"match {record.match_id} already recorded")
        self._matches[record.match_id] = record

    async def delete_match(self, match_id: str) -> bool:
        return self._matches.pop(match_id, None) is not None

    async def clear_all(self) -> None:
        self._months.clear()
        self._matches.clear()
        self._live_games.clear()

    async def save_live_game(self, game: LiveGame) -> None:
        if game.status is LiveGameStatus.ACTIVE:
            active = await self.get_active_live_game()
            if active is not None and active.game_id != game.game_id:
                raise ValueError(f"live game {active.game_id} is still active")
        self._live_games[game.game_id] = game

    async def get_live_game(self, game_id: str) -> LiveGame | None:
        return self._live_games.get(game_id)

    async def get_active_live_game(self) -> LiveGame | None:
        return next((g for g in self._live_games.values() if g.status is LiveGameStatus.ACTIVE), None)
