import pytest

from shared.dal import InMemoryStateRepository
from streaks.logic.clock import FixedClock
from streaks.session.service import StreakService
from streaks.tests.helpers.builders import T0


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def repository():
    return InMemoryStateRepository()


@pytest.fixture
def service(repository, clock):
    return StreakService(repository, clock=clock)
