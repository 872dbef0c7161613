"""
Frozen state models for the streak competition.

GameState is the aggregate root: both players, the active month and the full
match history. LiveGame is the transient toep session layered on top of it.
Every model is frozen; rule functions return new instances via model_copy.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from streaks.logic.enums import (
    EscalationResponse,
    LiveGameStatus,
    PlayerId,
    PowerUpKind,
    WinCondition,
)
from streaks.logic.settings import DEFAULT_RULES, MAX_BALLS, NUM_PLAYERS, RuleSettings


class SniperAttempt(BaseModel):
    """A reported series of consecutive pots in one visit."""

    model_config = ConfigDict(frozen=True)

    balls_potted: int = Field(ge=0, le=MAX_BALLS)
    successful: bool = True


class DoubleTroubleAttempt(BaseModel):
    """Two balls in one shot; doubles the payout when it succeeds."""

    model_config = ConfigDict(frozen=True)

    successful: bool = True


class PowerUpUsage(BaseModel):
    """Power-ups one player invokes in a single match."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cumback_kid: bool = False
    toep: bool = False
    pull_the_plug: bool = False
    ballenbak_bizarre: bool = False
    sniper: SniperAttempt | None = None
    double_trouble: DoubleTroubleAttempt | None = None
    ballenbak: bool = False
    black_ball_champ: bool = False
    speedpot: bool = False

    def invoked(self) -> list[PowerUpKind]:
        """Return the invoked kinds in declaration order."""
        return [kind for kind in PowerUpKind if getattr(self, kind.value) not in (False, None)]

    @property
    def is_empty(self) -> bool:
        return not self.invoked()


class Player(BaseModel):
    """One competitor's monthly standing."""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerId
    streak: int = Field(default=0, ge=0)
    monthly_total: float = 0.0
    quota: dict[PowerUpKind, int] = Field(default_factory=dict)

    @field_validator("quota")
    @classmethod
    def _quota_non_negative(cls, v: dict[PowerUpKind, int]) -> dict[PowerUpKind, int]:
        negative = {k.value: n for k, n in v.items() if n < 0}
        if negative:
            raise ValueError(f"quota must not be negative: {negative}")
        return v

    def remaining(self, kind: PowerUpKind) -> int | None:
        """Remaining uses of a power-up this month, None when unlimited."""
        return self.quota.get(kind)


class MatchInput(BaseModel):
    """Everything the engine needs to resolve one match.

    Produced by manual entry or by a finished live game; stored back on the
    MatchRecord so history can be replayed.
    """

    model_config = ConfigDict(frozen=True)

    winner: PlayerId
    win_condition: WinCondition = WinCondition.NORMAL
    loser_balls_remaining: int = Field(ge=0, le=MAX_BALLS)
    power_ups_used: dict[PlayerId, PowerUpUsage] = Field(default_factory=dict)
    own_balls: dict[PlayerId, int] = Field(default_factory=dict)
    stake_multiplier: int = Field(default=1, ge=1)

    @field_validator("own_balls")
    @classmethod
    def _own_balls_in_range(cls, v: dict[PlayerId, int]) -> dict[PlayerId, int]:
        for player, balls in v.items():
            if not 0 <= balls <= MAX_BALLS:
                raise ValueError(f"own balls for {player.value} must be 0-{MAX_BALLS}, got {balls}")
        return v

    @property
    def loser(self) -> PlayerId:
        return self.winner.opponent

    def usage_for(self, player: PlayerId) -> PowerUpUsage:
        return self.power_ups_used.get(player) or PowerUpUsage()

    def own_balls_for(self, player: PlayerId) -> int:
        return self.own_balls.get(player, 0)


class StreakPair(BaseModel):
    """Winner and loser streak at one point of a match."""

    model_config = ConfigDict(frozen=True)

    winner: int
    loser: int


class MatchRecord(BaseModel):
    """Immutable, append-only entry in the match log."""

    model_config = ConfigDict(frozen=True)

    match_id: str
    timestamp: datetime
    month: str  # YYYY-MM
    winner: PlayerId
    loser: PlayerId
    win_condition: WinCondition
    loser_balls_remaining: int
    own_balls: dict[PlayerId, int] = Field(default_factory=dict)
    stake_multiplier: int = 1
    power_ups_used: dict[PlayerId, PowerUpUsage] = Field(default_factory=dict)
    streak_before: StreakPair
    streak_after: StreakPair
    amount_won: float
    ballenbak_penalty: float | None = None
    black_ball_bonus: float | None = None
    capped: bool = False

    @property
    def total_won(self) -> float:
        """Amount credited to the winner: the capped stake plus the flat modifiers."""
        return self.amount_won + (self.ballenbak_penalty or 0.0) + (self.black_ball_bonus or 0.0)

    def to_input(self) -> MatchInput:
        """Rebuild the engine inputs this record was produced from."""
        return MatchInput(
            winner=self.winner,
            win_condition=self.win_condition,
            loser_balls_remaining=self.loser_balls_remaining,
            power_ups_used=self.power_ups_used,
            own_balls=self.own_balls,
            stake_multiplier=self.stake_multiplier,
        )


class GameState(BaseModel):
    """Aggregate root: both players, the active month and the match history."""

    model_config = ConfigDict(frozen=True)

    players: dict[PlayerId, Player]
    current_month: str
    matches: tuple[MatchRecord, ...] = ()
    last_match_id: str | None = None

    @model_validator(mode="after")
    def _both_players_present(self) -> GameState:
        if set(self.players) != set(PlayerId) or len(self.players) != NUM_PLAYERS:
            raise ValueError("game state must hold exactly both players")
        for key, player in self.players.items():
            if player.player_id is not key:
                raise ValueError(f"player keyed as {key.value} has id {player.player_id.value}")
        return self

    def player(self, player_id: PlayerId) -> Player:
        return self.players[player_id]

    def find_match(self, match_id: str) -> MatchRecord | None:
        return next((m for m in self.matches if m.match_id == match_id), None)


class LiveGame(BaseModel):
    """A single in-progress game with toep escalation."""

    model_config = ConfigDict(frozen=True)

    game_id: str
    status: LiveGameStatus = LiveGameStatus.ACTIVE
    balls: dict[PlayerId, int]
    escalation_level: int = Field(default=0, ge=0)
    escalated_by: PlayerId | None = None
    response: EscalationResponse = EscalationResponse.NONE
    pending_power_ups: dict[PlayerId, PowerUpUsage] = Field(default_factory=dict)
    result: MatchInput | None = None
    started_at: datetime
    last_action_at: datetime

    @field_validator("balls")
    @classmethod
    def _balls_in_range(cls, v: dict[PlayerId, int]) -> dict[PlayerId, int]:
        if set(v) != set(PlayerId):
            raise ValueError("balls must be tracked for both players")
        for player, balls in v.items():
            if not 0 <= balls <= MAX_BALLS:
                raise ValueError(f"balls for {player.value} must be 0-{MAX_BALLS}, got {balls}")
        return v

    @property
    def is_active(self) -> bool:
        return self.status is LiveGameStatus.ACTIVE

    @property
    def is_pending(self) -> bool:
        return self.response is EscalationResponse.PENDING

    @property
    def stake_multiplier(self) -> int:
        return 1 + self.escalation_level


def initial_quota(rules: RuleSettings = DEFAULT_RULES) -> dict[PowerUpKind, int]:
    """Fresh monthly quota allotment."""
    return dict(rules.monthly_quotas)


def initialize_state(month: str, rules: RuleSettings = DEFAULT_RULES) -> GameState:
    """Return an empty state for the given month."""
    return GameState(
        players={pid: Player(player_id=pid, quota=initial_quota(rules)) for pid in PlayerId},
        current_month=month,
    )
