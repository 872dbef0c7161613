"""Centralized rule settings for the streak competition - all tunable constants."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from streaks.logic.enums import PowerUpKind

NUM_PLAYERS = 2
MAX_BALLS = 7


def _default_quotas() -> dict[PowerUpKind, int]:
    # black_ball_champ is unlimited and therefore absent
    return {
        PowerUpKind.BALLENBAK_BIZARRE: 1,
        PowerUpKind.CUMBACK_KID: 1,
        PowerUpKind.TOEP: 5,
        PowerUpKind.BALLENBAK: 5,
        PowerUpKind.PULL_THE_PLUG: 1,
        PowerUpKind.SNIPER: 3,
        PowerUpKind.SPEEDPOT: 2,
        PowerUpKind.DOUBLE_TROUBLE: 2,
    }


class RuleSettings(BaseModel):
    """
    Configuration for every monetary and power-up rule.

    All fields default to the house rules; tests and deployments may override
    individual values.
    """

    model_config = ConfigDict(frozen=True)

    # --- Stake ---
    base_amount: float = Field(default=0.50, gt=0)
    danger_zone_streak: int = Field(default=6, ge=1)

    # --- Anti-runaway cap ---
    cap_threshold: float = Field(default=150, ge=0)
    cap_base: float = Field(default=10, gt=0)
    cap_increment: float = Field(default=2, ge=0)

    # --- Flat modifiers ---
    ballenbak_penalty_per_ball: float = Field(default=2, ge=0)
    black_ball_bonus: float = Field(default=5, ge=0)

    # --- Power-up preconditions ---
    toep_min_own_balls: int = Field(default=2, ge=0, le=MAX_BALLS)
    ballenbak_bizarre_min_own_balls: int = Field(default=3, ge=0, le=MAX_BALLS)
    sniper_min_balls: int = Field(default=3, ge=1)
    sniper_max_bonus: int = Field(default=3, ge=1)

    # --- Live game ---
    starting_balls: int = Field(default=MAX_BALLS, ge=0, le=MAX_BALLS)

    # --- Monthly quotas (kinds missing here are unlimited) ---
    monthly_quotas: dict[PowerUpKind, int] = Field(default_factory=_default_quotas)

    def quota_for(self, kind: PowerUpKind) -> int | None:
        """Return the monthly allotment for a power-up, or None when unlimited."""
        return self.monthly_quotas.get(kind)


DEFAULT_RULES = RuleSettings()
