"""
String enum definitions for the pool streak competition.
"""

from __future__ import annotations

from enum import Enum


class PlayerId(str, Enum):
    """The two fixed competitors."""

    JESSE = "Jesse"
    FLIP = "Flip"

    @property
    def opponent(self) -> PlayerId:
        return PlayerId.FLIP if self is PlayerId.JESSE else PlayerId.JESSE


class WinCondition(str, Enum):
    """How a match was decided."""

    NORMAL = "normal"
    BLACK_BALL = "black_ball"  # opponent forfeits early by potting the black


class PowerUpKind(str, Enum):
    """Power-ups a player may invoke in a match."""

    CUMBACK_KID = "cumback_kid"
    TOEP = "toep"
    PULL_THE_PLUG = "pull_the_plug"
    BALLENBAK_BIZARRE = "ballenbak_bizarre"
    SNIPER = "sniper"
    DOUBLE_TROUBLE = "double_trouble"
    BALLENBAK = "ballenbak"
    BLACK_BALL_CHAMP = "black_ball_champ"
    SPEEDPOT = "speedpot"


class PowerUpSide(str, Enum):
    """Which side of a match may invoke a power-up."""

    WINNER = "winner"
    LOSER = "loser"
    EITHER = "either"


class LiveGameStatus(str, Enum):
    """Lifecycle of a live game session."""

    ACTIVE = "active"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class EscalationResponse(str, Enum):
    """Response status of the most recent escalation (toep)."""

    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class LiveGameEventType(str, Enum):
    """Transitions emitted by the live game state machine."""

    STARTED = "started"
    CANCELLED = "cancelled"
    ESCALATED = "escalated"
    ESCALATION_ACCEPTED = "escalation_accepted"
    ESCALATION_REJECTED = "escalation_rejected"
    BALLS_UPDATED = "balls_updated"
    POWER_UPS_UPDATED = "power_ups_updated"
    WINNER_DECLARED = "winner_declared"
