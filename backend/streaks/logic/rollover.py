"""
Monthly rollover of quotas and totals.

Two strengths exist. The engine's own check only refreshes power-up quotas
when a match lands in a new month. The full rollover, applied when state is
loaded in a new month, also zeroes the monthly totals. Streaks carry over and
history is never deleted; month views filter it instead.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from streaks.logic.clock import month_of
from streaks.logic.settings import DEFAULT_RULES, RuleSettings
from streaks.logic.state import initial_quota

if TYPE_CHECKING:
    from datetime import datetime

    from streaks.logic.enums import PlayerId
    from streaks.logic.state import GameState, MatchRecord

logger = logging.getLogger(__name__)


def has_month_changed(state: GameState, month: str) -> bool:
    return state.current_month != month


def refresh_quotas(state: GameState, month: str, rules: RuleSettings = DEFAULT_RULES) -> GameState:
    """Reset both players' quotas when the month changed; totals are untouched."""
    if not has_month_changed(state, month):
        return state
    logger.debug("month changed from %s to %s, refreshing quotas", state.current_month, month)
    players = {pid: p.model_copy(update={"quota": initial_quota(rules)}) for pid, p in state.players.items()}
    return state.model_copy(update={"players": players, "current_month": month})


def rollover(state: GameState, now: datetime, rules: RuleSettings = DEFAULT_RULES) -> GameState:
    """
    Return the state as of the month containing ``now``.

    When the stored month differs, quotas return to their initial allotment and
    monthly totals to zero. Otherwise the state is returned unchanged.
    """
    return rollover_to_month(state, month_of(now), rules)


def rollover_to_month(state: GameState, month: str, rules: RuleSettings = DEFAULT_RULES) -> GameState:
    if not has_month_changed(state, month):
        return state
    logger.info("monthly rollover from %s to %s", state.current_month, month)
    players = {
        pid: p.model_copy(update={"quota": initial_quota(rules), "monthly_total": 0.0})
        for pid, p in state.players.items()
    }
    return state.model_copy(update={"players": players, "current_month": month})


def matches_for_month(state: GameState, month: str | None = None) -> list[MatchRecord]:
    """Return the history entries of one month (default: the state's month)."""
    target = month or state.current_month
    return [m for m in state.matches if m.month == target]


def wins_this_month(state: GameState, player: PlayerId, month: str) -> int:
    return sum(1 for m in state.matches if m.month == month and m.winner is player)


def monthly_summary(state: GameState, month: str | None = None) -> dict[PlayerId, dict[str, float]]:
    """Wins and amounts per player for one month of history."""
    records = matches_for_month(state, month)
    summary: dict[PlayerId, dict[str, float]] = {
        pid: {"wins": 0, "won": 0.0, "capped_wins": 0} for pid in state.players
    }
    for record in records:
        entry = summary[record.winner]
        entry["wins"] += 1
        entry["won"] += record.total_won
        if record.capped:
            entry["capped_wins"] += 1
    return summary
