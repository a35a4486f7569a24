import pytest

from storyworlds.config import AgentConfig, Genre, Persona, SimConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, dt: float):
        self.now += dt


@pytest.fixture
def cfg():
    return SimConfig()


@pytest.fixture
def agent_config():
    return AgentConfig(name="Tester", persona=Persona.STRATEGIST, genre=Genre.FANTASY)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clock_factory():
    return FakeClock
