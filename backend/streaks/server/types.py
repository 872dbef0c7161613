from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from streaks.logic.enums import EscalationResponse, PlayerId, WinCondition
from streaks.logic.settings import MAX_BALLS
from streaks.logic.state import MatchInput, PowerUpUsage


class RecordMatchRequest(BaseModel):
    """A finished match: typed in by hand, or a live game's ``result`` bundle posted back."""

    model_config = ConfigDict(extra="forbid")

    winner: PlayerId
    win_condition: WinCondition = WinCondition.NORMAL
    loser_balls_remaining: int = Field(ge=0, le=MAX_BALLS, strict=True)
    power_ups_used: dict[PlayerId, PowerUpUsage] = Field(default_factory=dict)
    own_balls: dict[PlayerId, int] = Field(default_factory=dict)
    stake_multiplier: int = Field(default=1, ge=1, strict=True)

    def to_input(self) -> MatchInput:
        return MatchInput(
            winner=self.winner,
            win_condition=self.win_condition,
            loser_balls_remaining=self.loser_balls_remaining,
            power_ups_used=self.power_ups_used,
            own_balls=self.own_balls,
            stake_multiplier=self.stake_multiplier,
        )


class PlayerRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player: PlayerId


class RespondRequest(BaseModel):
    """Answer a toep. A rejection with ``record`` resolves the initiator's win right away."""

    model_config = ConfigDict(extra="forbid")

    response: EscalationResponse
    record: bool = True

    @model_validator(mode="after")
    def _validate_response(self) -> Self:
        if self.response not in (EscalationResponse.ACCEPTED, EscalationResponse.REJECTED):
            raise ValueError("response must be 'accepted' or 'rejected'")
        return self


class BallsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player: PlayerId
    count: int = Field(ge=0, le=MAX_BALLS, strict=True)


class PowerUpsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player: PlayerId
    power_ups: PowerUpUsage


class WinnerRequest(BaseModel):
    """Declare the live game winner. With ``record`` the match is resolved right away."""

    model_config = ConfigDict(extra="forbid")

    player: PlayerId
    record: bool = True
