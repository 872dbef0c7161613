"""
Toep state machine for a single live game.

Lifecycle: active -> finished | cancelled. Within an active game an escalation
(toep) raises the stake level and waits for the opponent's answer:

- accept keeps the raised level and lets either player escalate again
- reject ends the game at once; the initiator wins at multiplier 1, not at
  the escalated level

declare_winner() ends the game at multiplier 1 + escalation level. Both ways of
finishing produce a MatchInput for the engine and keep it on the game as
``result``.

All transitions are pure: they return a new LiveGame and never touch the one
passed in. Any transition on a finished or cancelled game raises
StaleGameError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from streaks.logic.enums import EscalationResponse, LiveGameStatus, PlayerId
from streaks.logic.exceptions import IllegalTransitionError, StaleGameError
from streaks.logic.settings import DEFAULT_RULES, MAX_BALLS, RuleSettings
from streaks.logic.state import LiveGame, MatchInput

if TYPE_CHECKING:
    from datetime import datetime

    from streaks.logic.state import PowerUpUsage


def _ensure_active(game: LiveGame) -> None:
    if not game.is_active:
        raise StaleGameError(game_id=game.game_id, status=game.status)


def _build_result(game: LiveGame, winner: PlayerId, stake_multiplier: int) -> MatchInput:
    return MatchInput(
        winner=winner,
        loser_balls_remaining=game.balls[winner.opponent],
        power_ups_used={pid: usage for pid, usage in game.pending_power_ups.items() if not usage.is_empty},
        own_balls=dict(game.balls),
        stake_multiplier=stake_multiplier,
    )


def start_live_game(game_id: str, *, now: datetime, rules: RuleSettings = DEFAULT_RULES) -> LiveGame:
    """Create an active game with full racks and no escalation."""
    return LiveGame(
        game_id=game_id,
        balls=dict.fromkeys(PlayerId, rules.starting_balls),
        started_at=now,
        last_action_at=now,
    )


def cancel_live_game(game: LiveGame, *, now: datetime) -> LiveGame:
    """Supersede an active game."""
    _ensure_active(game)
    return game.model_copy(update={"status": LiveGameStatus.CANCELLED, "last_action_at": now})


def escalate(game: LiveGame, player: PlayerId, *, now: datetime) -> LiveGame:
    """
    Raise the stake one level and wait for the opponent.

    Raises:
        StaleGameError: The game is not active.
        IllegalTransitionError: An escalation is already waiting for an answer.

    """
    _ensure_active(game)
    if game.escalated_by is player:
        raise IllegalTransitionError(f"{player.value} cannot toep twice in a row, {player.opponent.value} must respond")
    if game.is_pending:
        raise IllegalTransitionError("a toep is already waiting for a response")
    return game.model_copy(
        update={
            "escalation_level": game.escalation_level + 1,
            "escalated_by": player,
            "response": EscalationResponse.PENDING,
            "last_action_at": now,
        },
    )


def respond_escalation(game: LiveGame, response: EscalationResponse, *, now: datetime) -> LiveGame:
    """
    Accept or reject the pending escalation.

    A rejection finishes the game with the initiator as winner at multiplier 1.

    Raises:
        StaleGameError: The game is not active.
        IllegalTransitionError: Nothing is pending.
        ValueError: The response is neither accepted nor rejected.

    """
    _ensure_active(game)
    if response not in (EscalationResponse.ACCEPTED, EscalationResponse.REJECTED):
        raise ValueError(f"response must be accepted or rejected, got {response.value}")
    if not game.is_pending or game.escalated_by is None:
        raise IllegalTransitionError("there is no toep to respond to")

    if response is EscalationResponse.ACCEPTED:
        return game.model_copy(
            update={"escalated_by": None, "response": EscalationResponse.ACCEPTED, "last_action_at": now},
        )

    game, _ = reject_escalation(game, now=now)
    return game


def reject_escalation(game: LiveGame, *, now: datetime) -> tuple[LiveGame, MatchInput]:
    """
    Reject the pending escalation and return the finished game with its match input bundle.

    The initiator wins at multiplier 1 whatever level the toep had reached.

    Raises:
        StaleGameError: The game is not active.
        IllegalTransitionError: Nothing is pending.

    """
    _ensure_active(game)
    if not game.is_pending or game.escalated_by is None:
        raise IllegalTransitionError("there is no toep to respond to")

    result = _build_result(game, game.escalated_by, stake_multiplier=1)
    finished = game.model_copy(
        update={
            "status": LiveGameStatus.FINISHED,
            "response": EscalationResponse.REJECTED,
            "result": result,
            "last_action_at": now,
        },
    )
    return finished, result


def update_balls(game: LiveGame, player: PlayerId, count: int, *, now: datetime) -> LiveGame:
    """Set a player's remaining balls."""
    _ensure_active(game)
    if not 0 <= count <= MAX_BALLS:
        raise ValueError(f"ball count must be 0-{MAX_BALLS}, got {count}")
    return game.model_copy(update={"balls": {**game.balls, player: count}, "last_action_at": now})


def set_power_ups(game: LiveGame, player: PlayerId, usage: PowerUpUsage, *, now: datetime) -> LiveGame:
    """Register the power-ups a player plays in this game (replaces earlier ones)."""
    _ensure_active(game)
    return game.model_copy(
        update={"pending_power_ups": {**game.pending_power_ups, player: usage}, "last_action_at": now},
    )


def declare_winner(game: LiveGame, player: PlayerId, *, now: datetime) -> tuple[LiveGame, MatchInput]:
    """
    Finish the game with a winner at the escalated stake.

    Raises:
        StaleGameError: The game is not active.
        IllegalTransitionError: A toep is still waiting for a response.

    """
    _ensure_active(game)
    if game.is_pending:
        raise IllegalTransitionError("cannot declare a winner while a toep is waiting for a response")
    result = _build_result(game, player, stake_multiplier=game.stake_multiplier)
    finished = game.model_copy(
        update={"status": LiveGameStatus.FINISHED, "result": result, "last_action_at": now},
    )
    return finished, result
