"""Typed domain exceptions for competition rule violations.

All rule violations use subclasses of StreakRuleError rather than raw
ValueError, so the service and HTTP boundaries can convert them to user
facing errors without catching unrelated failures. Every operation that
raises one of these leaves the state it was given untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from streaks.logic.enums import LiveGameStatus, PlayerId, PowerUpKind


class StreakRuleError(Exception):
    """Base exception for business-rule violations."""

    code = "rule_error"


class PreconditionError(StreakRuleError):
    """A power-up's eligibility condition is not met (too few balls, wrong side, ...)."""

    code = "precondition_failed"


class QuotaExceededError(StreakRuleError):
    """A power-up was invoked with no monthly uses left.

    Attributes:
        player: The player who invoked the power-up.
        power_up: The exhausted power-up kind.

    """

    code = "quota_exceeded"

    def __init__(self, *, player: PlayerId, power_up: PowerUpKind) -> None:
        self.player = player
        self.power_up = power_up
        super().__init__(f"{player.value} has no {power_up.value} uses left this month")


class NotFoundError(StreakRuleError):
    """Unknown match id, or no live game with the given id."""

    code = "not_found"


class IllegalTransitionError(StreakRuleError):
    """Live game transition attempted from a state that forbids it."""

    code = "illegal_transition"


class StaleGameError(IllegalTransitionError):
    """Mutation attempted on a live game that is no longer active."""

    code = "stale_game"

    def __init__(self, *, game_id: str, status: LiveGameStatus) -> None:
        self.game_id = game_id
        self.status = status
        super().__init__(f"live game {game_id} is {status.value}")
