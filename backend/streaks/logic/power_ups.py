"""
Power-up catalog and monthly quota bookkeeping.

Each kind carries the side allowed to invoke it and, where it has one, the
RuleSettings threshold of own balls the invoker must still have on the table.
Quota allotments come from RuleSettings; a kind without an allotment is
unlimited.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from operator import attrgetter
from typing import TYPE_CHECKING

from streaks.logic.enums import PowerUpKind, PowerUpSide
from streaks.logic.exceptions import PreconditionError, QuotaExceededError
from streaks.logic.settings import DEFAULT_RULES, RuleSettings

if TYPE_CHECKING:
    from streaks.logic.enums import PlayerId
    from streaks.logic.state import Player, PowerUpUsage


@dataclass(frozen=True)
class PowerUpSpec:
    """Static description of one power-up kind."""

    kind: PowerUpKind
    label: str
    side: PowerUpSide
    min_own_balls: Callable[[RuleSettings], int] | None = None


CATALOG: dict[PowerUpKind, PowerUpSpec] = {
    spec.kind: spec
    for spec in (
        PowerUpSpec(PowerUpKind.CUMBACK_KID, "Cumback Kid", PowerUpSide.LOSER),
        PowerUpSpec(PowerUpKind.TOEP, "Toep", PowerUpSide.WINNER, attrgetter("toep_min_own_balls")),
        PowerUpSpec(PowerUpKind.PULL_THE_PLUG, "Pull The Plug", PowerUpSide.WINNER),
        PowerUpSpec(
            PowerUpKind.BALLENBAK_BIZARRE,
            "Ballenbak Bizarre",
            PowerUpSide.WINNER,
            attrgetter("ballenbak_bizarre_min_own_balls"),
        ),
        PowerUpSpec(PowerUpKind.SNIPER, "Sniper", PowerUpSide.WINNER),
        PowerUpSpec(PowerUpKind.DOUBLE_TROUBLE, "Double Trouble", PowerUpSide.WINNER),
        PowerUpSpec(PowerUpKind.BALLENBAK, "Ballenbak", PowerUpSide.EITHER),
        PowerUpSpec(PowerUpKind.BLACK_BALL_CHAMP, "Black Ball Champ", PowerUpSide.WINNER),
        PowerUpSpec(PowerUpKind.SPEEDPOT, "Speedpot", PowerUpSide.EITHER),
    )
}


def consume(player: Player, kind: PowerUpKind) -> Player:
    """
    Return a player with one use of a power-up spent.

    Unlimited kinds are left untouched.

    Raises:
        QuotaExceededError: If the player has no uses left.

    """
    remaining = player.remaining(kind)
    if remaining is None:
        return player
    if remaining <= 0:
        raise QuotaExceededError(player=player.player_id, power_up=kind)
    return player.model_copy(update={"quota": {**player.quota, kind: remaining - 1}})


def check_side(usage: PowerUpUsage, player: PlayerId, *, is_winner: bool) -> None:
    """
    Reject power-ups invoked from a side that may not use them.

    Raises:
        PreconditionError: If any invoked kind belongs to the other side.

    """
    forbidden = PowerUpSide.LOSER if is_winner else PowerUpSide.WINNER
    for kind in usage.invoked():
        spec = CATALOG[kind]
        if spec.side is forbidden:
            role = "winner" if is_winner else "loser"
            raise PreconditionError(f"{spec.label} cannot be used by the {role} ({player.value})")


def require_own_balls(kind: PowerUpKind, own_balls: int, rules: RuleSettings = DEFAULT_RULES) -> None:
    """Raise PreconditionError unless the invoker still has enough own balls on the table."""
    spec = CATALOG[kind]
    if spec.min_own_balls is None:
        return
    minimum = spec.min_own_balls(rules)
    if own_balls < minimum:
        raise PreconditionError(f"{spec.label} requires at least {minimum} own balls on the table, got {own_balls}")


def sniper_bonus(balls_potted: int, rules: RuleSettings = DEFAULT_RULES) -> int:
    """
    Streak bonus for a series of consecutive pots.

    3 pots give +1, 4 give +2 and 5 or more give +3.

    Raises:
        PreconditionError: If fewer than the minimum series was potted.

    """
    if balls_potted < rules.sniper_min_balls:
        raise PreconditionError(
            f"Sniper requires a series of at least {rules.sniper_min_balls} balls, got {balls_potted}"
        )
    return min(balls_potted - rules.sniper_min_balls + 1, rules.sniper_max_bonus)
