"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.memory_repository import InMemoryStateRepository
from shared.dal.models import MonthStanding
from shared.dal.state_repository import StateRepository

__all__ = [
    "InMemoryStateRepository",
    "MonthStanding",
    "StateRepository",
]
