"""Exceptions raised by the simulation engine."""


class ContractViolation(ValueError):
    """An input outside the fixed world/action vocabulary.

    Raised for an action label that is not in the active world's action set,
    an unknown world identifier, or an attempt to move past the last world.
    """


class SchedulerStateError(RuntimeError):
    """A scheduler control call that is not valid in its current state."""
