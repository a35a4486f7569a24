from .step import SimulationStep
from .session import (
    SimulationSession, generate_simulation_step, reset_simulation, default_session,
)
from .scheduler import StepScheduler, SchedulerState

__all__ = [
    "SimulationStep", "SimulationSession", "generate_simulation_step",
    "reset_simulation", "default_session", "StepScheduler", "SchedulerState",
]
