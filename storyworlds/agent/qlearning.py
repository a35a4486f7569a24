"""
Online tabular Q-learning agent shared across all five worlds.

    Q(s,a) <- Q(s,a) + alpha * [ r + gamma * max_a' Q(s',a') - Q(s,a) ]

The state is the active world plus a coarse stability bucket, so each world
contributes at most BUCKET_COUNT states to the table.
"""

from typing import Dict, NamedTuple, Optional, Sequence

import numpy as np

from ..config import CONFIG, AgentConfig, SimConfig
from ..world.worlds import WorldId


class StateKey(NamedTuple):
    world: WorldId
    bucket: int

    def __str__(self) -> str:
        return f"{self.world.key}_{self.bucket}"


class QLearningAgent:
    """
    Epsilon-greedy tabular agent.

    The Q-table is a sparse mapping StateKey -> {action: value}; entries are
    created on first visit with every available action at 0.0.
    """

    def __init__(
        self,
        agent_config: AgentConfig,
        cfg: SimConfig = CONFIG,
        rng: Optional[np.random.RandomState] = None,
    ):
        self.agent_config = agent_config
        self.cfg = cfg
        self.rng = rng if rng is not None else np.random.RandomState()

        self.alpha = cfg.LEARNING_RATE
        self.gamma = cfg.DISCOUNT_FACTOR
        self._epsilon = agent_config.initial_epsilon

        self.Q: Dict[StateKey, Dict] = {}

        # Statistics
        self.total_updates = 0
        self.last_explored = False

    @property
    def epsilon(self) -> float:
        return self._epsilon

    def state_key(self, world: WorldId, stability: float) -> StateKey:
        """Discretize stability into buckets of BUCKET_WIDTH.

        The bucket index is clamped so stability 100 lands in the top bucket
        instead of opening a sixth one.
        """
        width = self.cfg.BUCKET_WIDTH
        idx = int(np.floor(stability / width))
        idx = int(np.clip(idx, 0, self.cfg.BUCKET_COUNT - 1))
        return StateKey(world, idx * width)

    def q_values(self, state: StateKey, actions: Sequence) -> Dict:
        """Get-or-insert the value row for `state`."""
        row = self.Q.get(state)
        if row is None:
            row = {a: 0.0 for a in actions}
            self.Q[state] = row
        else:
            for a in actions:
                row.setdefault(a, 0.0)
        return row

    def choose_action(self, state: StateKey, available_actions: Sequence):
        """Epsilon-greedy; ties go to the earliest action in canonical order."""
        if not available_actions:
            raise ValueError("No actions available")
        row = self.q_values(state, available_actions)

        if self.rng.rand() < self._epsilon:
            self.last_explored = True
            return available_actions[self.rng.randint(len(available_actions))]

        self.last_explored = False
        best_action = available_actions[0]
        max_val = -np.inf
        for action in available_actions:
            if row[action] > max_val:
                max_val = row[action]
                best_action = action
        return best_action

    def learn(
        self,
        state: StateKey,
        action,
        reward: float,
        next_state: StateKey,
        next_available_actions: Sequence = (),
    ) -> float:
        """One-step Bellman backup followed by epsilon decay.

        Returns the updated Q(state, action).
        """
        row = self.Q.setdefault(state, {})
        current_q = row.get(action, 0.0)

        if next_available_actions:
            next_row = self.q_values(next_state, next_available_actions)
        else:
            next_row = self.Q.get(next_state)
        max_next_q = max(list(next_row.values()) + [0.0]) if next_row else 0.0

        new_q = current_q + self.alpha * (reward + self.gamma * max_next_q - current_q)
        row[action] = new_q
        self.total_updates += 1

        if self._epsilon > self.cfg.EPSILON_FLOOR:
            self._epsilon = max(
                self.cfg.EPSILON_FLOOR, self._epsilon * self.cfg.EPSILON_DECAY
            )
        return new_q

    @property
    def states_visited(self) -> int:
        return len(self.Q)
