"""
Match resolution: the rules engine of the streak competition.

resolve_match() turns a pre-match GameState plus one MatchInput into a new
GameState and an immutable MatchRecord. The phases run in a fixed order since
later phases read streaks and quotas written by earlier ones:

1. month check (quota refresh)
2. loser's Cumback Kid
3. winner's Toep and Pull The Plug
4. base streak transition, scaled by the stake multiplier
5. Ballenbak Bizarre and Sniper bonuses
6. stake for the final streak
7. Double Trouble
8. anti-runaway cap
9. Ballenbak penalty and Black Ball Champ bonus (both uncapped)
10. totals
11. match record

The input state is never mutated. Any rule violation raises before a new state
exists, so a failed call has no effect.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, NamedTuple

from streaks.logic.clock import month_of
from streaks.logic.enums import PowerUpKind
from streaks.logic.formulas import cap_active, capped_amount, stake_for_streak
from streaks.logic.power_ups import check_side, consume, require_own_balls, sniper_bonus
from streaks.logic.rollover import refresh_quotas, wins_this_month
from streaks.logic.settings import DEFAULT_RULES, RuleSettings
from streaks.logic.state import MatchRecord, StreakPair

if TYPE_CHECKING:
    from datetime import datetime

    from streaks.logic.state import GameState, MatchInput

logger = logging.getLogger(__name__)

COMEBACK_SURVIVED_STEP = 2


class MatchResolution(NamedTuple):
    state: GameState
    record: MatchRecord


def new_match_id() -> str:
    return f"match-{uuid.uuid4().hex}"


def resolve_match(  # noqa: C901, PLR0912, PLR0915
    state: GameState,
    match_input: MatchInput,
    *,
    now: datetime,
    match_id: str | None = None,
    rules: RuleSettings = DEFAULT_RULES,
) -> MatchResolution:
    """
    Resolve one finished match.

    Args:
        state: State before the match.
        match_input: Winner, ball counts, power-ups and stake multiplier.
        now: Resolution time; decides the owning month.
        match_id: Identifier for the record (generated when omitted).
        rules: Rule constants.

    Returns:
        The new state and the record appended to its history.

    Raises:
        PreconditionError: A power-up's eligibility condition failed.
        QuotaExceededError: A power-up has no monthly uses left.

    """
    month = month_of(now)
    state = refresh_quotas(state, month, rules)

    winner_id = match_input.winner
    loser_id = match_input.loser
    winner = state.player(winner_id)
    loser = state.player(loser_id)
    winner_usage = match_input.usage_for(winner_id)
    loser_usage = match_input.usage_for(loser_id)
    check_side(winner_usage, winner_id, is_winner=True)
    check_side(loser_usage, loser_id, is_winner=False)

    multiplier = match_input.stake_multiplier
    winner_own_balls = match_input.own_balls_for(winner_id)
    loser_balls = match_input.loser_balls_remaining

    streak_before = StreakPair(winner=winner.streak, loser=loser.streak)
    winner_streak = winner.streak
    loser_streak = loser.streak

    # phase 2: loser tries to come back before the result is applied
    comeback = loser_usage.cumback_kid
    if comeback:
        loser = consume(loser, PowerUpKind.CUMBACK_KID)
        loser_streak = max(0, winner_streak - 1)

    # phase 3: winner's pre-resolution power-ups, independent of each other
    if winner_usage.toep:
        require_own_balls(PowerUpKind.TOEP, winner_own_balls, rules)
        winner = consume(winner, PowerUpKind.TOEP)
        winner_streak += 1
    if winner_usage.pull_the_plug:
        winner = consume(winner, PowerUpKind.PULL_THE_PLUG)
        loser_streak = 0

    # phase 4: base transition
    if comeback:
        winner_streak += COMEBACK_SURVIVED_STEP * multiplier
    else:
        winner_streak += multiplier
        loser_streak = 0

    # phase 5: post-resolution streak bonuses
    if winner_usage.ballenbak_bizarre:
        require_own_balls(PowerUpKind.BALLENBAK_BIZARRE, winner_own_balls, rules)
        winner = consume(winner, PowerUpKind.BALLENBAK_BIZARRE)
        winner_streak += loser_balls
    if winner_usage.sniper is not None:
        winner = consume(winner, PowerUpKind.SNIPER)
        if winner_usage.sniper.successful:
            winner_streak += sniper_bonus(winner_usage.sniper.balls_potted, rules)

    # phase 6
    amount = stake_for_streak(winner_streak, rules)

    # phase 7
    if winner_usage.double_trouble is not None:
        winner = consume(winner, PowerUpKind.DOUBLE_TROUBLE)
        if winner_usage.double_trouble.successful:
            amount *= 2

    # phase 8: cap on totals before this match is credited
    capped = False
    totals = [p.monthly_total for p in state.players.values()]
    if cap_active(totals[0], totals[1], rules):
        ceiling = capped_amount(wins_this_month(state, winner_id, month) + 1, rules)
        if amount > ceiling:
            logger.debug("capping %s from %.2f to %.2f", winner_id.value, amount, ceiling)
            amount = ceiling
            capped = True

    # phase 9: flat modifiers, kept out of amount_won and credited in phase 10
    ballenbak_penalty: float | None = None
    if winner_usage.ballenbak or loser_usage.ballenbak:
        if winner_usage.ballenbak:
            winner = consume(winner, PowerUpKind.BALLENBAK)
        if loser_usage.ballenbak:
            loser = consume(loser, PowerUpKind.BALLENBAK)
        penalty = loser_balls * rules.ballenbak_penalty_per_ball
        ballenbak_penalty = penalty if penalty > 0 else None

    black_ball_bonus: float | None = None
    if winner_usage.black_ball_champ:
        winner = consume(winner, PowerUpKind.BLACK_BALL_CHAMP)
        black_ball_bonus = rules.black_ball_bonus

    # speedpot only changes gameplay, it is tracked for the quota
    if winner_usage.speedpot:
        winner = consume(winner, PowerUpKind.SPEEDPOT)
    if loser_usage.speedpot:
        loser = consume(loser, PowerUpKind.SPEEDPOT)

    # phase 10
    winner = winner.model_copy(
        update={
            "streak": winner_streak,
            "monthly_total": winner.monthly_total + amount + (ballenbak_penalty or 0.0) + (black_ball_bonus or 0.0),
        },
    )
    loser = loser.model_copy(update={"streak": loser_streak})

    # phase 11
    record = MatchRecord(
        match_id=match_id or new_match_id(),
        timestamp=now,
        month=month,
        winner=winner_id,
        loser=loser_id,
        win_condition=match_input.win_condition,
        loser_balls_remaining=loser_balls,
        own_balls=dict(match_input.own_balls),
        stake_multiplier=multiplier,
        power_ups_used={pid: usage for pid, usage in match_input.power_ups_used.items() if not usage.is_empty},
        streak_before=streak_before,
        streak_after=StreakPair(winner=winner_streak, loser=loser_streak),
        amount_won=amount,
        ballenbak_penalty=ballenbak_penalty,
        black_ball_bonus=black_ball_bonus,
        capped=capped,
    )

    new_state = state.model_copy(
        update={
            "players": {pid: winner if pid is winner_id else loser for pid in state.players},
            "matches": (*state.matches, record),
            "last_match_id": record.match_id,
        },
    )
    logger.debug(
        "resolved %s: %s won %.2f, streak %d -> %d",
        record.match_id,
        winner_id.value,
        amount,
        streak_before.winner,
        winner_streak,
    )
    return MatchResolution(state=new_state, record=record)
