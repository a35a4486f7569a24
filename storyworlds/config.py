from dataclasses import dataclass, field, fields
from enum import Enum
import os

import yaml


class Persona(Enum):
    EXPLORER = "Explorer"      # High exploration (high epsilon)
    STRATEGIST = "Strategist"  # High exploitation (low epsilon)
    EMPATH = "Empath"          # Balanced


class Genre(Enum):
    FANTASY = "Dark Fantasy"
    SCIFI = "Cyberpunk"
    MYTH = "Mythology"
    HORROR = "Cosmic Horror"


# Initial exploration rate per persona
PERSONA_EPSILON = {
    Persona.EXPLORER: 0.8,
    Persona.STRATEGIST: 0.3,
    Persona.EMPATH: 0.5,
}


@dataclass(frozen=True)
class AgentConfig:
    """Choices made on the configuration screen. Genre is flavor only."""
    name: str = "Agent"
    persona: Persona = Persona.EXPLORER
    genre: Genre = Genre.FANTASY

    @property
    def initial_epsilon(self) -> float:
        return PERSONA_EPSILON[self.persona]


@dataclass
class SimConfig:
    # Environment
    STABILITY_START: float = 20.0         # Low start leaves climb time per world
    CONVERGENCE_THRESHOLD: float = 99.0
    DIAMOND_THRESHOLD: float = 90.0       # Stability on exit that earns a diamond
    STABILITY_GAIN_HIGH: float = 0.6
    STABILITY_GAIN_MED: float = 0.4
    STABILITY_GAIN_LOW: float = 0.15
    STABILITY_LOSS_SMALL: float = 0.2
    STABILITY_LOSS_BIG: float = 0.8
    RIDDLE_MAX_LEVEL: int = 5
    TRIAL_STREAK_BONUS_CAP: int = 20

    # Q-learning
    LEARNING_RATE: float = 0.2
    DISCOUNT_FACTOR: float = 0.95
    EPSILON_DECAY: float = 0.98
    EPSILON_FLOOR: float = 0.05
    BUCKET_WIDTH: int = 20
    BUCKET_COUNT: int = 5                 # Buckets 0..80; stability 100 folds into 80

    # Pacing (seconds); ~200 ticks per world at these rates
    TICK_DELAYS: dict = field(default_factory=lambda: {
        "forest": 0.150,
        "time": 0.180,
        "creatures": 0.140,
        "trial": 0.120,
        "void": 0.200,
    })
    TRANSITION_PAUSE: float = 1.5

    # Consumers
    HISTORY_WINDOW: int = 50
    METRICS_INTERVAL: int = 25


def load_config(path: str = "storyworlds.yaml") -> SimConfig:
    """Load configuration from YAML, filter to SimConfig fields."""
    cfg = SimConfig()
    if os.path.exists(path):
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        valid = {f.name for f in fields(SimConfig)}
        filtered = {k: v for k, v in raw.items() if k in valid}
        if "TICK_DELAYS" in filtered:
            filtered["TICK_DELAYS"] = {**cfg.TICK_DELAYS, **filtered["TICK_DELAYS"]}
        cfg = SimConfig(**filtered)
    return cfg


# Global config instance
CONFIG = load_config()
