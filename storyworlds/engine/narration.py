"""Inner-monologue lines attached to each step."""

import numpy as np

from ..config import AgentConfig, Genre

THOUGHT_TEMPLATES = {
    "POSITIVE": [
        "Reward logic verified. Points secured.",
        "Optimal strategy for this world mechanic.",
        "Stability increasing. Diamond probability high.",
        "Scoring heuristic matched.",
        "Diamond acquisition likely.",
    ],
    "NEGATIVE": [
        "Penalty received. Adjusting behavior.",
        "Score deduction detected. Avoiding action.",
        "Resource loss imminent. Recalculating.",
        "Suboptimal outcome. Strategy failed.",
        "Diamond reserve threatened.",
    ],
    "EXPLORATION": [
        "Testing scoring boundary.",
        "Searching for hidden mechanics.",
        "Evaluating risk/reward ratio.",
        "Querying environment rules.",
        "Analyzing Diamond economy.",
    ],
}

HORROR_LINE = "The score... it demands sacrifice."
EXPLORATION_EPSILON = 0.4


def thought_kind(epsilon: float, reward: float) -> str:
    if epsilon >= EXPLORATION_EPSILON:
        return "EXPLORATION"
    return "POSITIVE" if reward > 0 else "NEGATIVE"


def compose_thought(
    agent_config: AgentConfig,
    epsilon: float,
    reward: float,
    rng: np.random.RandomState,
) -> str:
    lines = THOUGHT_TEMPLATES[thought_kind(epsilon, reward)]
    thought = lines[rng.randint(len(lines))]
    if agent_config.genre is Genre.HORROR and rng.rand() > 0.8:
        thought = HORROR_LINE
    return f"[ε:{epsilon:.2f}] {thought}"
