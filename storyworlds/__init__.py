# storyworlds - an online Q-learning agent staged through five story worlds.

__version__ = "0.1.0"

from .config import AgentConfig, Persona, Genre, SimConfig, load_config
from .engine import (
    SimulationStep, SimulationSession, StepScheduler, SchedulerState,
    generate_simulation_step, reset_simulation,
)
from .world import WorldId, WORLD_ORDER, StoryEnvironment

__all__ = [
    "AgentConfig", "Persona", "Genre", "SimConfig", "load_config",
    "SimulationStep", "SimulationSession", "StepScheduler", "SchedulerState",
    "generate_simulation_step", "reset_simulation",
    "WorldId", "WORLD_ORDER", "StoryEnvironment",
]
