"""SQLite-backed competition state repository."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import MonthStanding
from shared.dal.state_repository import StateRepository
from streaks.logic.enums import LiveGameStatus
from streaks.logic.state import GameState, LiveGame, MatchRecord

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteStateRepository(StateRepository):
    """SQLite implementation of StateRepository.

    Every row stores the full pydantic snapshot as JSON next to the indexed
    columns used for lookups. Writes are serialized by an asyncio lock.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def load_state(self) -> GameState | None:
        """Build the state from the latest month row and the whole match log."""
        conn = self._db.connection
        row = conn.execute("SELECT data FROM months ORDER BY month DESC LIMIT 1").fetchone()
        if row is None:
            return None
        standing = MonthStanding.model_validate(json.loads(row[0]))
        rows = conn.execute("SELECT data FROM matches ORDER BY created_at ASC, rowid ASC").fetchall()
        matches = tuple(MatchRecord.model_validate(json.loads(r[0])) for r in rows)
        return GameState(
            players=standing.players,
            current_month=standing.month,
            matches=matches,
            last_match_id=matches[-1].match_id if matches else None,
        )

    async def save_state(self, state: GameState) -> None:
        standing = MonthStanding.from_state(state, datetime.now(tz=UTC))
        async with self._lock:
            self._db.connection.execute(
                "INSERT INTO months (month, updated_at, data) VALUES (?, ?, ?) "
                "ON CONFLICT (month) DO UPDATE SET updated_at = excluded.updated_at, data = excluded.data",
                (standing.month, standing.updated_at.isoformat(), standing.model_dump_json()),
            )
            self._db.connection.commit()

    async def append_match(self, record: MatchRecord) -> None:
        """Insert a record. Raises sqlite3.IntegrityError on a duplicate id."""
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO matches (id, month, created_at, winner, data) VALUES (?, ?, ?, ?, ?)",
                    (
                        record.match_id,
                        record.month,
                        record.timestamp.isoformat(),
                        record.winner.value,
                        record.model_dump_json(),
                    ),
                )
                self._db.connection.commit()
            except Exception:
                self._db.connection.rollback()
                raise

    async def delete_match(self, match_id: str) -> bool:
        async with self._lock:
            cursor = self._db.connection.execute("DELETE FROM matches WHERE id = ?", (match_id,))
            self._db.connection.commit()
        if cursor.rowcount == 0:
            logger.warning("delete_match had no effect", match_id=match_id)
            return False
        return True

    async def clear_all(self) -> None:
        async with self._lock:
            conn = self._db.connection
            try:
                conn.execute("BEGIN")
                conn.execute("DELETE FROM matches")
                conn.execute("DELETE FROM live_games")
                conn.execute("DELETE FROM months")
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    async def save_live_game(self, game: LiveGame) -> None:
        """Upsert a live game. The partial unique index rejects a second active game."""
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO live_games (id, status, started_at, data) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT (id) DO UPDATE SET status = excluded.status, data = excluded.data",
                    (game.game_id, game.status.value, game.started_at.isoformat(), game.model_dump_json()),
                )
                self._db.connection.commit()
            except Exception:
                self._db.connection.rollback()
                raise

    async def get_live_game(self, game_id: str) -> LiveGame | None:
        row = self._db.connection.execute("SELECT data FROM live_games WHERE id = ?", (game_id,)).fetchone()
        if row is None:
            return None
        return LiveGame.model_validate(json.loads(row[0]))

    async def get_active_live_game(self) -> LiveGame | None:
        row = self._db.connection.execute(
            "SELECT data FROM live_games WHERE status = ? ORDER BY started_at DESC LIMIT 1",
            (LiveGameStatus.ACTIVE.value,),
        ).fetchone()
        if row is None:
            return None
        return LiveGame.model_validate(json.loads(row[0]))
