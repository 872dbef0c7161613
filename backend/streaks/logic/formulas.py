"""
Monetary formulas: stake per streak and the anti-runaway cap.
"""

from __future__ import annotations

from streaks.logic.settings import DEFAULT_RULES, RuleSettings


def stake_for_streak(streak: int, rules: RuleSettings = DEFAULT_RULES) -> float:
    """
    Return the amount won at a given streak.

    Exponential: base * 2^(streak - 1), so streak 1 pays the base amount and every
    further consecutive win doubles it. Non-positive streaks pay nothing.
    """
    if streak <= 0:
        return 0.0
    return rules.base_amount * 2 ** (streak - 1)


def cap_active(total_a: float, total_b: float, rules: RuleSettings = DEFAULT_RULES) -> bool:
    """Check whether the running totals diverge beyond the cap threshold."""
    return abs(total_a - total_b) > rules.cap_threshold


def capped_amount(consecutive_wins: int, rules: RuleSettings = DEFAULT_RULES) -> float:
    """
    Return the payout ceiling while the cap is active.

    consecutive_wins counts the current win, so the first capped win pays cap_base
    and each further win adds cap_increment.
    """
    return rules.cap_base + rules.cap_increment * (consecutive_wins - 1)


def is_in_danger_zone(streak: int, rules: RuleSettings = DEFAULT_RULES) -> bool:
    """Check if a streak is high enough that the next loss is expensive."""
    return streak >= rules.danger_zone_streak
