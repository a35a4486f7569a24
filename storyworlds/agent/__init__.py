from .qlearning import QLearningAgent, StateKey

__all__ = ["QLearningAgent", "StateKey"]
