"""SimulationSession: the explicit context owning one run's mutable state."""

import time
from typing import Callable, Optional

import numpy as np

from ..agent.qlearning import QLearningAgent
from ..config import CONFIG, AgentConfig, SimConfig
from ..logging_config import get_logger, log_transition
from ..world.environment import StoryEnvironment
from ..world.worlds import (
    AGENT_TITLES, VISUAL_STATES, WORLD_ORDER, WorldId, actions_for, parse_world,
)
from .narration import compose_thought
from .step import SimulationStep

logger = get_logger("storyworlds.engine")


class SimulationSession:
    """
    Environment + agent + step counter for a single run.

    Both are created lazily on the first tick so the persona chosen by the
    caller decides the agent's starting epsilon.
    """

    def __init__(
        self,
        cfg: SimConfig = CONFIG,
        seed: Optional[int] = None,
        agent_factory: Optional[Callable] = None,
    ):
        self.cfg = cfg
        self.seed = seed
        self.agent_factory = agent_factory or QLearningAgent
        self.rng = np.random.RandomState(seed)
        self.agent = None
        self.environment: Optional[StoryEnvironment] = None
        self.step_count = 0
        self.agent_config: Optional[AgentConfig] = None

    def reset_simulation(self):
        """Drop environment, agent and step counter for a fresh run."""
        self.step_count = 0
        self.agent = None
        self.environment = None
        self.agent_config = None
        self.rng = np.random.RandomState(self.seed)
        logger.debug("Session reset")

    @property
    def current_world(self) -> WorldId:
        if self.environment is None:
            return WORLD_ORDER[0]
        return self.environment.current_world

    def _ensure_initialized(self, agent_config: AgentConfig, world: WorldId):
        if self.agent is None:
            self.agent_config = agent_config
            self.agent = self.agent_factory(agent_config, cfg=self.cfg, rng=self.rng)
            logger.info(
                f"Agent '{agent_config.name}' ({agent_config.persona.value}) "
                f"epsilon={self.agent.epsilon:.2f}"
            )
        if self.environment is None:
            self.environment = StoryEnvironment(world, cfg=self.cfg)

    def generate_simulation_step(
        self,
        agent_config: AgentConfig,
        world: WorldId,
        prev_stability: float = 0.0,
    ) -> SimulationStep:
        """Advance the run by one tick in `world`.

        `world` must be the environment's current world or the next one in
        order; the latter resets the environment into the new world first.
        `prev_stability` is the caller's last displayed value and is only
        used for diagnostics.
        """
        world = parse_world(world)
        self._ensure_initialized(agent_config, world)
        env, agent = self.environment, self.agent

        if env.current_world is not world:
            leaving, exit_stability = env.current_world, env.stability
            granted = env.reset(world)
            log_transition(self.step_count, leaving, world, exit_stability, granted,
                           env.diamonds)

        self.step_count += 1

        actions = actions_for(world)
        state = agent.state_key(world, env.stability)
        action = agent.choose_action(state, actions)
        result = env.step(action)

        next_state = agent.state_key(world, result.stability)
        agent.learn(state, action, result.reward, next_state, actions)

        epsilon = agent.epsilon
        logger.debug(
            f"t={self.step_count} world={world.key} action={action.value!r} "
            f"reward={result.reward} stability={prev_stability:.1f}->{result.stability:.1f}"
        )

        return SimulationStep(
            step=self.step_count,
            world=world,
            action=action.value,
            reward=result.reward,
            cumulative_reward=env.score,
            diamonds=result.diamonds,
            epsilon=epsilon,
            stability=result.stability,
            converged=result.done,
            agent_title=AGENT_TITLES[world],
            visual_state=VISUAL_STATES[world],
            thought=compose_thought(self.agent_config, epsilon, result.reward, self.rng),
            timestamp=time.time(),
        )


# ------------------------------------------------------------------ #
#  Default session                                                    #
# ------------------------------------------------------------------ #
_default_session = SimulationSession()


def default_session() -> SimulationSession:
    return _default_session


def reset_simulation():
    _default_session.reset_simulation()


def generate_simulation_step(
    agent_config: AgentConfig, world: WorldId, prev_stability: float = 0.0
) -> SimulationStep:
    return _default_session.generate_simulation_step(agent_config, world, prev_stability)
