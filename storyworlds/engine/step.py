"""SimulationStep: the immutable per-tick record handed to consumers."""

import math
from dataclasses import dataclass, field

from ..world.worlds import WorldId


@dataclass(frozen=True)
class SimulationStep:
    step: int
    world: WorldId
    action: str
    reward: int
    cumulative_reward: int
    diamonds: int
    epsilon: float
    stability: float
    converged: bool
    # Flavor (supplied by narration, never read back by the engine)
    agent_title: str = ""
    visual_state: str = ""
    thought: str = ""
    timestamp: float = field(default=0.0, compare=False)

    # ------------------------------------------------------------------ #
    #  Derived display fields                                              #
    # ------------------------------------------------------------------ #
    @property
    def valence(self) -> float:
        return min(1.0, max(-1.0, (self.stability - 50.0) / 50.0))

    @property
    def arousal(self) -> float:
        return max(0.0, self.epsilon)

    @property
    def location(self) -> tuple:
        x = 50.0 + (self.stability - 50.0)
        y = 50.0 + math.sin(self.step / 10.0) * 10.0
        return (x, y)

    def to_dict(self) -> dict:
        x, y = self.location
        return {
            "timestamp": self.timestamp,
            "step": self.step,
            "world": self.world.key,
            "agent_title": self.agent_title,
            "visual_state": self.visual_state,
            "action": self.action,
            "thought": self.thought,
            "reward": self.reward,
            "cumulative_reward": self.cumulative_reward,
            "diamonds": self.diamonds,
            "epsilon": round(self.epsilon, 3),
            "stability": round(self.stability, 1),
            "converged": self.converged,
            "valence": self.valence,
            "arousal": self.arousal,
            "location": {"x": x, "y": y},
        }
