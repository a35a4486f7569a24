"""Random-policy baseline and headless run helpers for RL-vs-random comparison."""

from collections import Counter, OrderedDict
from typing import Iterable, Optional

from .agent.qlearning import QLearningAgent
from .config import CONFIG, AgentConfig, SimConfig
from .engine.scheduler import StepScheduler
from .engine.session import SimulationSession
from .engine.step import SimulationStep


class RandomAgent(QLearningAgent):
    """Uniform random policy that never learns; epsilon stays at 1.0."""

    def __init__(self, agent_config: AgentConfig, cfg: SimConfig = CONFIG, rng=None):
        super().__init__(agent_config, cfg=cfg, rng=rng)
        self._epsilon = 1.0

    def choose_action(self, state, available_actions):
        self.last_explored = True
        return available_actions[self.rng.randint(len(available_actions))]

    def learn(self, state, action, reward, next_state, next_available_actions=()):
        self.total_updates += 1
        return 0.0


def run_headless(scheduler: StepScheduler, max_ticks: Optional[int] = None) -> list:
    """Fire ticks back to back, ignoring pacing, until the run ends."""
    steps = []
    while not scheduler.finished:
        if max_ticks is not None and len(steps) >= max_ticks:
            break
        step = scheduler.fire_next()
        if step is not None:
            steps.append(step)
    return steps


def run_baseline(
    agent_config: AgentConfig,
    cfg: SimConfig = CONFIG,
    seed: Optional[int] = None,
    max_ticks: Optional[int] = None,
) -> list:
    session = SimulationSession(cfg=cfg, seed=seed, agent_factory=RandomAgent)
    return run_headless(StepScheduler(agent_config, session=session, cfg=cfg), max_ticks)


def summarize(steps: Iterable[SimulationStep]) -> dict:
    """Per-world tick counts and reward totals plus the final tallies."""
    ticks: Counter = Counter()
    rewards: Counter = Counter()
    converged = []
    last = None
    for step in steps:
        ticks[step.world.key] += 1
        rewards[step.world.key] += step.reward
        if step.converged:
            converged.append(step.world.key)
        last = step

    worlds = OrderedDict()
    for key in ticks:
        worlds[key] = {"ticks": ticks[key], "reward": rewards[key]}

    return {
        "worlds": worlds,
        "converged": converged,
        "total_ticks": sum(ticks.values()),
        "final_score": last.cumulative_reward if last else 0,
        "diamonds": last.diamonds if last else 0,
        "epsilon": last.epsilon if last else None,
        "final_reward": last.reward if last and last.converged else None,
    }
