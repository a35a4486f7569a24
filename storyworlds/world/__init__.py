from .worlds import WorldId, WORLD_ORDER, actions_for, next_world, is_last_world
from .environment import StoryEnvironment, StepResult

__all__ = [
    "WorldId", "WORLD_ORDER", "actions_for", "next_world", "is_last_world",
    "StoryEnvironment", "StepResult",
]
