"""Live game transition events for push-style subscribers."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict

from streaks.logic.enums import LiveGameEventType, PlayerId  # noqa: TC001
from streaks.logic.state import LiveGame  # noqa: TC001


class LiveGameEvent(BaseModel):
    """Emitted after every successful live game transition."""

    model_config = ConfigDict(frozen=True)

    event_type: LiveGameEventType
    game: LiveGame
    player: PlayerId | None = None
    occurred_at: datetime
