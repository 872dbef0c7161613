"""Injectable wall clock so month boundaries are deterministic in tests and replay."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Reads the real UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)


class FixedClock:
    """Returns a settable instant; used by tests and history replay."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant


def month_of(instant: datetime) -> str:
    """Format an instant as its YYYY-MM month key."""
    return f"{instant.year:04d}-{instant.month:02d}"
