"""The five worlds, their fixed order, and each world's closed action set."""

from enum import Enum

from ..errors import ContractViolation


class WorldId(Enum):
    FOREST = "Forest of Forgotten Fables"
    TIME = "Kingdom of Broken Time"
    CREATURES = "Realm of Mythic Creatures"
    TRIAL = "Immunity and Trial World"
    VOID = "The Blank Page"

    @property
    def key(self) -> str:
        """Short lowercase key used in config tables and state keys."""
        return self.name.lower()

    @property
    def index(self) -> int:
        return WORLD_ORDER.index(self)


WORLD_ORDER = (
    WorldId.FOREST,
    WorldId.TIME,
    WorldId.CREATURES,
    WorldId.TRIAL,
    WorldId.VOID,
)


def parse_world(value) -> WorldId:
    """Accept a WorldId, its short key, or its display name."""
    if isinstance(value, WorldId):
        return value
    for world in WORLD_ORDER:
        if value in (world.key, world.value, world.name):
            return world
    raise ContractViolation(f"Unknown world: {value!r}")


def is_last_world(world: WorldId) -> bool:
    return world is WORLD_ORDER[-1]


def next_world(world: WorldId) -> WorldId:
    if is_last_world(world):
        raise ContractViolation(f"No world after {world.value}")
    return WORLD_ORDER[world.index + 1]


# ------------------------------------------------------------------ #
#  Actions (canonical order = tie-break order for greedy selection)   #
# ------------------------------------------------------------------ #
class ForestAction(Enum):
    ATTEMPT_RIDDLE = "Attempt Riddle Solution"
    ANALYZE_PATTERN = "Analyze Pattern (Correct)"
    CONSULT_TEXT = "Consult Ancient Text"
    GUESS_WRONG = "Guess Answer (Wrong)"
    RUSH_PUZZLE = "Rush Puzzle (Wrong)"


class TimeAction(Enum):
    MAINTAIN_FORWARD = "Maintain Forward Stability"
    ADAPT_PACE = "Adapt Pace (Stable)"
    SAME_SPEED = "Maintain Same Speed"
    CAUSE_COLLAPSE = "Cause Time Collapse"
    ATTEMPT_STABILIZATION = "Attempt Stabilization"


class CreatureAction(Enum):
    MAINTAIN_CALM = "Maintain Calm State"
    PROJECT_SERENITY = "Project Serenity"
    SUCCUMB_TO_FEAR = "Succumb to Fear"
    ENGAGE_COMBAT = "Engage Combat (Aggression)"
    AGGRESSIVE_OUTBURST = "Aggressive Outburst"


class TrialAction(Enum):
    ANALYZE_WEAKNESS = "Analyze Weakness"
    PERFECT_DODGE = "Perfect Dodge"
    COUNTER_STRIKE = "Counter Strike"
    STATIC_DEFENSE = "Static Defense"
    RECKLESS_CHARGE = "Reckless Charge"


class VoidAction(Enum):
    STABILIZE_VOID = "Stabilize Void"
    MANIFEST_REALITY = "Manifest Reality"
    CALCULATED_DRIFT = "Calculated Drift"
    DRIFT_IN_NOTHINGNESS = "Drift in Nothingness"
    CHAOTIC_PULSE = "Chaotic Pulse"


ACTIONS_BY_WORLD = {
    WorldId.FOREST: ForestAction,
    WorldId.TIME: TimeAction,
    WorldId.CREATURES: CreatureAction,
    WorldId.TRIAL: TrialAction,
    WorldId.VOID: VoidAction,
}


def actions_for(world: WorldId) -> tuple:
    """The five actions available in a world, in canonical order."""
    return tuple(ACTIONS_BY_WORLD[world])


def parse_action(world: WorldId, action):
    """Resolve an enum member or label to the world's action, or fail fast."""
    action_cls = ACTIONS_BY_WORLD[world]
    if isinstance(action, action_cls):
        return action
    if isinstance(action, Enum):
        raise ContractViolation(
            f"{action.value!r} is not an action of {world.value}"
        )
    try:
        return action_cls(action)
    except ValueError:
        raise ContractViolation(
            f"{action!r} is not an action of {world.value}"
        ) from None


# ------------------------------------------------------------------ #
#  Lore (read by narration / renderers)                               #
# ------------------------------------------------------------------ #
AGENT_TITLES = {
    WorldId.FOREST: "The Shadow Scholar",
    WorldId.TIME: "The Time Warden",
    WorldId.CREATURES: "The Mythic Sovereign",
    WorldId.TRIAL: "The Warforged Champion",
    WorldId.VOID: "The Cosmic Architect",
}

VISUAL_STATES = {
    WorldId.FOREST: "Cloaked in Shadows",
    WorldId.TIME: "Temporal Flux",
    WorldId.CREATURES: "Emotional Aura",
    WorldId.TRIAL: "Reactive Armor",
    WorldId.VOID: "Luminous Core",
}
