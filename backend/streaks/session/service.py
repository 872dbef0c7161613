from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from streaks.logic import live_game as transitions
from streaks.logic.clock import Clock, SystemClock, month_of
from streaks.logic.engine import resolve_match
from streaks.logic.enums import EscalationResponse, LiveGameEventType, PlayerId
from streaks.logic.events import LiveGameEvent
from streaks.logic.exceptions import NotFoundError, StaleGameError
from streaks.logic.replay import remove_match
from streaks.logic.rollover import rollover
from streaks.logic.settings import DEFAULT_RULES, RuleSettings
from streaks.logic.state import initialize_state

if TYPE_CHECKING:
    from shared.dal.state_repository import StateRepository
    from streaks.logic.state import GameState, LiveGame, MatchInput, MatchRecord, PowerUpUsage

logger = structlog.get_logger()

EventSubscriber = Callable[[LiveGameEvent], Awaitable[None]]


def new_live_game_id() -> str:
    return f"live-{uuid.uuid4().hex}"


class StreakService:
    """
    Facade over the rules engine, the toep state machine and persistence.

    Every GameState change runs as one load-compute-save step under a single
    lock. Live game transitions run under a lock per game id. Subscribers are
    awaited after each live game transition has been saved.
    """

    def __init__(
        self,
        repository: StateRepository,
        clock: Clock | None = None,
        rules: RuleSettings = DEFAULT_RULES,
    ) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()
        self._rules = rules
        self._state_lock = asyncio.Lock()
        self._game_locks: dict[str, asyncio.Lock] = {}  # game_id -> Lock
        self._start_lock = asyncio.Lock()
        self._subscribers: list[EventSubscriber] = []

    @property
    def rules(self) -> RuleSettings:
        return self._rules

    def subscribe(self, subscriber: EventSubscriber) -> Callable[[], None]:
        """Register a live game event subscriber; returns a callable that removes it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def _emit(self, event_type: LiveGameEventType, game: LiveGame, player: PlayerId | None = None) -> None:
        event = LiveGameEvent(event_type=event_type, game=game, player=player, occurred_at=game.last_action_at)
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception:
                logger.exception("live game subscriber failed", event_type=event_type, game_id=game.game_id)

    # --- GameState ---

    async def _load_current_state(self) -> GameState:
        """Load or create the state, applying a full rollover into the clock's month."""
        now = self._clock.now()
        state = await self._repository.load_state()
        if state is None:
            state = initialize_state(month_of(now), self._rules)
            await self._repository.save_state(state)
            logger.info("created initial state", month=state.current_month)
            return state
        rolled = rollover(state, now, self._rules)
        if rolled is not state:
            await self._repository.save_state(rolled)
        return rolled

    async def get_or_create_current_state(self) -> GameState:
        async with self._state_lock:
            return await self._load_current_state()

    async def record_match(self, match_input: MatchInput) -> tuple[GameState, MatchRecord]:
        """
        Resolve a finished match against the current state and persist the outcome.

        Raises:
            PreconditionError: A power-up's eligibility condition failed.
            QuotaExceededError: A power-up has no monthly uses left.

        """
        async with self._state_lock:
            return await self._record_match(match_input)

    async def _record_match(self, match_input: MatchInput) -> tuple[GameState, MatchRecord]:
        state = await self._load_current_state()
        new_state, record = resolve_match(state, match_input, now=self._clock.now(), rules=self._rules)
        await self._repository.append_match(record)
        await self._repository.save_state(new_state)
        logger.info(
            "match recorded",
            match_id=record.match_id,
            winner=record.winner,
            amount=record.total_won,
            streak=record.streak_after.winner,
            capped=record.capped,
        )
        return new_state, record

    async def remove_match(self, match_id: str) -> GameState:
        """
        Delete a match and rebuild the state from the remaining history.

        Raises:
            NotFoundError: No match has the given id.

        """
        async with self._state_lock:
            state = await self._load_current_state()
            new_state = remove_match(state, match_id, self._rules)
            await self._repository.delete_match(match_id)
            await self._repository.save_state(new_state)
            logger.info("match removed", match_id=match_id, remaining=len(new_state.matches))
            return new_state

    async def reset_all(self) -> GameState:
        """Wipe totals, streaks, quotas, history and any live game."""
        async with self._state_lock:
            await self._repository.clear_all()
            self._game_locks.clear()
            state = initialize_state(month_of(self._clock.now()), self._rules)
            await self._repository.save_state(state)
            logger.warning("all competition data reset", month=state.current_month)
            return state

    # --- live games ---

    async def get_active_live_game(self) -> LiveGame | None:
        return await self._repository.get_active_live_game()

    async def start_live_game(self) -> LiveGame:
        """Start a new live game, cancelling the active one first."""
        now = self._clock.now()
        cancelled: LiveGame | None = None
        async with self._start_lock:
            active = await self._repository.get_active_live_game()
            if active is not None:
                async with self._game_locks.setdefault(active.game_id, asyncio.Lock()):
                    current = await self._repository.get_live_game(active.game_id)
                    if current is not None and current.is_active:
                        cancelled = transitions.cancel_live_game(current, now=now)
                        await self._repository.save_live_game(cancelled)
                        logger.info("live game cancelled", game_id=cancelled.game_id)
                self._game_locks.pop(active.game_id, None)

            game = transitions.start_live_game(new_live_game_id(), now=now, rules=self._rules)
            self._game_locks[game.game_id] = asyncio.Lock()
            await self._repository.save_live_game(game)
        logger.info("live game started", game_id=game.game_id)

        if cancelled is not None:
            await self._emit(LiveGameEventType.CANCELLED, cancelled)
        await self._emit(LiveGameEventType.STARTED, game)
        return game

    async def _lock_for(self, game_id: str) -> asyncio.Lock:
        """Return the game's lock. Locks are only created for games that are still active."""
        lock = self._game_locks.get(game_id)
        if lock is None:
            await self._get_active(game_id)
            lock = self._game_locks.setdefault(game_id, asyncio.Lock())
        return lock

    async def _get_active(self, game_id: str) -> LiveGame:
        game = await self._repository.get_live_game(game_id)
        if game is None:
            raise NotFoundError(f"live game {game_id} not found")
        if not game.is_active:
            raise StaleGameError(game_id=game.game_id, status=game.status)
        return game

    async def _transition(
        self,
        game_id: str,
        event_type: LiveGameEventType,
        apply: Callable[[LiveGame], LiveGame],
        player: PlayerId | None = None,
    ) -> LiveGame:
        async with await self._lock_for(game_id):
            game = apply(await self._get_active(game_id))
            await self._repository.save_live_game(game)
        logger.info("live game updated", game_id=game_id, event_type=event_type, player=player)
        await self._emit(event_type, game, player)
        return game

    async def escalate(self, game_id: str, player: PlayerId) -> LiveGame:
        """
        Toep: raise the stake of the live game one level.

        Raises:
            NotFoundError: Unknown game id.
            StaleGameError: The game is finished or cancelled.
            IllegalTransitionError: A toep is pending or the player toeped last.

        """
        now = self._clock.now()
        return await self._transition(
            game_id,
            LiveGameEventType.ESCALATED,
            lambda g: transitions.escalate(g, player, now=now),
            player,
        )

    async def respond_escalation(self, game_id: str, response: EscalationResponse) -> LiveGame:
        """Accept or reject the pending toep; a rejection finishes the game."""
        now = self._clock.now()
        event_type = (
            LiveGameEventType.ESCALATION_ACCEPTED
            if response is EscalationResponse.ACCEPTED
            else LiveGameEventType.ESCALATION_REJECTED
        )
        game = await self._transition(
            game_id,
            event_type,
            lambda g: transitions.respond_escalation(g, response, now=now),
        )
        if not game.is_active:
            self._game_locks.pop(game_id, None)
        return game

    async def update_balls(self, game_id: str, player: PlayerId, count: int) -> LiveGame:
        now = self._clock.now()
        return await self._transition(
            game_id,
            LiveGameEventType.BALLS_UPDATED,
            lambda g: transitions.update_balls(g, player, count, now=now),
            player,
        )

    async def set_power_ups(self, game_id: str, player: PlayerId, usage: PowerUpUsage) -> LiveGame:
        now = self._clock.now()
        return await self._transition(
            game_id,
            LiveGameEventType.POWER_UPS_UPDATED,
            lambda g: transitions.set_power_ups(g, player, usage, now=now),
            player,
        )

    async def declare_winner(self, game_id: str, player: PlayerId) -> tuple[LiveGame, MatchInput]:
        """
        Finish the live game and return the match input bundle for the engine.

        The match is not recorded; use finish_live_game for that.
        """
        now = self._clock.now()
        async with await self._lock_for(game_id):
            game, match_input = transitions.declare_winner(await self._get_active(game_id), player, now=now)
            await self._repository.save_live_game(game)
        self._game_locks.pop(game_id, None)
        logger.info("live game winner declared", game_id=game_id, player=player)
        await self._emit(LiveGameEventType.WINNER_DECLARED, game, player)
        return game, match_input

    async def finish_live_game(self, game_id: str, player: PlayerId) -> tuple[LiveGame, GameState, MatchRecord]:
        """
        Declare the winner and record the resulting match in one step.

        The state lock is taken before the game lock, so a rule violation in the
        engine leaves both the live game and the state untouched.
        """
        now = self._clock.now()
        return await self._finish(
            game_id,
            LiveGameEventType.WINNER_DECLARED,
            lambda g: transitions.declare_winner(g, player, now=now),
            player,
        )

    async def reject_and_finish(self, game_id: str) -> tuple[LiveGame, GameState, MatchRecord]:
        """
        Reject the pending toep and record the initiator's win at multiplier 1.

        Like finish_live_game, a rule violation in the engine keeps the game
        active with its toep still pending.
        """
        now = self._clock.now()
        return await self._finish(
            game_id,
            LiveGameEventType.ESCALATION_REJECTED,
            lambda g: transitions.reject_escalation(g, now=now),
        )

    async def _finish(
        self,
        game_id: str,
        event_type: LiveGameEventType,
        finish: Callable[[LiveGame], tuple[LiveGame, MatchInput]],
        player: PlayerId | None = None,
    ) -> tuple[LiveGame, GameState, MatchRecord]:
        async with self._state_lock, await self._lock_for(game_id):
            game, match_input = finish(await self._get_active(game_id))
            new_state, record = await self._record_match(match_input)
            await self._repository.save_live_game(game)
        self._game_locks.pop(game_id, None)
        logger.info("live game finished", game_id=game_id, match_id=record.match_id, event_type=event_type)
        await self._emit(event_type, game, player)
        return game, new_state, record
