"""StoryEnvironment: per-world reward rules and the stability/diamond economy."""

from dataclasses import dataclass
from typing import Optional

from ..config import CONFIG, SimConfig
from ..errors import ContractViolation
from .worlds import (
    WorldId, ForestAction, TimeAction, CreatureAction, TrialAction, VoidAction,
    next_world, parse_action, parse_world,
)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one environment step."""
    reward: int
    done: bool
    stability: float
    diamonds: int


# Forest: riddle-solving actions scale with the riddle level
_FOREST_SOLVE = {
    ForestAction.ATTEMPT_RIDDLE: True,
    ForestAction.ANALYZE_PATTERN: True,
    ForestAction.CONSULT_TEXT: True,
    ForestAction.GUESS_WRONG: False,
    ForestAction.RUSH_PUZZLE: False,
}

# Time: action -> (points, stability attribute on SimConfig, sign)
_TIME_TABLE = {
    TimeAction.MAINTAIN_FORWARD: (50, "STABILITY_GAIN_MED", +1),
    TimeAction.ADAPT_PACE: (50, "STABILITY_GAIN_MED", +1),
    TimeAction.SAME_SPEED: (20, "STABILITY_GAIN_LOW", +1),
    TimeAction.CAUSE_COLLAPSE: (-20, "STABILITY_LOSS_BIG", -1),
    TimeAction.ATTEMPT_STABILIZATION: (0, None, 0),
}

# Void: only stabilizing actions move the needle
_VOID_STABILIZING = {
    VoidAction.STABILIZE_VOID: True,
    VoidAction.MANIFEST_REALITY: True,
    VoidAction.CALCULATED_DRIFT: False,
    VoidAction.DRIFT_IN_NOTHINGNESS: False,
    VoidAction.CHAOTIC_PULSE: False,
}


class StoryEnvironment:
    """
    A single live environment per run, moving forward through the five worlds.

    `diamonds` and `score` persist across worlds; `stability` and the
    world-local counters restart on every `reset`.
    """

    def __init__(self, world: WorldId = WorldId.FOREST, cfg: SimConfig = CONFIG):
        self.cfg = cfg
        self.current_world = parse_world(world)
        self.stability: float = cfg.STABILITY_START
        self.diamonds: int = 0
        self.score: int = 0

        # World-local counters
        self.riddle_level = 1                           # Forest, 1..5
        self.aggression_streak = 0                      # Creatures
        self.last_trial_action: Optional[TrialAction] = None
        self.survival_streak = 0                        # Trial

        self._handlers = {
            WorldId.FOREST: self._step_forest,
            WorldId.TIME: self._step_time,
            WorldId.CREATURES: self._step_creatures,
            WorldId.TRIAL: self._step_trial,
            WorldId.VOID: self._step_void,
        }

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #
    def reset(self, world: WorldId) -> bool:
        """Enter `world`, granting a diamond if the world being left was
        completed with high stability. Returns True when a diamond was granted.

        Only the current world (restart, no grant) or the next one in order
        are accepted.
        """
        world = parse_world(world)
        granted = False
        if world is not self.current_world:
            if world is not next_world(self.current_world):
                raise ContractViolation(
                    f"Cannot move from {self.current_world.value} to {world.value}"
                )
            if self.stability >= self.cfg.DIAMOND_THRESHOLD:
                self.diamonds += 1
                granted = True

        self.current_world = world
        self.stability = self.cfg.STABILITY_START

        self.riddle_level = 1
        self.aggression_streak = 0
        self.last_trial_action = None
        self.survival_streak = 0
        return granted

    # ------------------------------------------------------------------ #
    #  Step                                                                #
    # ------------------------------------------------------------------ #
    def step(self, action) -> StepResult:
        """Apply `action` in the current world and return the outcome."""
        action = parse_action(self.current_world, action)
        points = self._handlers[self.current_world](action)

        done = self.stability >= self.cfg.CONVERGENCE_THRESHOLD
        if done and self.current_world is WorldId.VOID:
            points = self._void_terminal_reward()

        self.score += points
        self.stability = max(0.0, min(100.0, self.stability))
        self.diamonds = max(0, self.diamonds)

        return StepResult(
            reward=points, done=done,
            stability=self.stability, diamonds=self.diamonds,
        )

    def _step_forest(self, action: ForestAction) -> int:
        cfg = self.cfg
        if _FOREST_SOLVE[action]:
            points = 10 * self.riddle_level
            self.riddle_level = min(cfg.RIDDLE_MAX_LEVEL, self.riddle_level + 1)
            self.stability += cfg.STABILITY_GAIN_MED
        else:
            points = -20
            self.stability -= cfg.STABILITY_LOSS_SMALL
        return points

    def _step_time(self, action: TimeAction) -> int:
        points, attr, sign = _TIME_TABLE[action]
        if attr is not None:
            self.stability += sign * getattr(self.cfg, attr)
        return points

    def _step_creatures(self, action: CreatureAction) -> int:
        cfg = self.cfg
        if action in (CreatureAction.MAINTAIN_CALM, CreatureAction.PROJECT_SERENITY):
            self.stability += cfg.STABILITY_GAIN_HIGH
            self.aggression_streak = 0
            return 100
        if action is CreatureAction.SUCCUMB_TO_FEAR:
            self.stability -= cfg.STABILITY_LOSS_SMALL
            return 0
        if action in (CreatureAction.ENGAGE_COMBAT, CreatureAction.AGGRESSIVE_OUTBURST):
            self.aggression_streak += 1
            if self.aggression_streak > 2 or action is CreatureAction.AGGRESSIVE_OUTBURST:
                # Prolonged aggression
                self.stability -= cfg.STABILITY_LOSS_BIG
                return -50
            return 20
        raise ContractViolation(f"Unhandled creature action: {action}")

    def _step_trial(self, action: TrialAction) -> int:
        cfg = self.cfg
        if action is TrialAction.RECKLESS_CHARGE:
            points = -25
            self.survival_streak = 0
            if self.diamonds > 0:
                self.diamonds -= 1
            self.stability -= cfg.STABILITY_LOSS_BIG
        elif action is TrialAction.STATIC_DEFENSE:
            points = -10
            self.stability -= cfg.STABILITY_LOSS_SMALL
        else:
            # Survival bonus counts the streak held entering this step
            points = 5 + min(cfg.TRIAL_STREAK_BONUS_CAP, 2 * self.survival_streak)
            self.survival_streak += 1

            if action is TrialAction.ANALYZE_WEAKNESS:
                points += 10
                self.stability += cfg.STABILITY_GAIN_LOW
            elif action is TrialAction.PERFECT_DODGE:
                points += 15
                self.stability += cfg.STABILITY_GAIN_MED
            elif self.last_trial_action in (
                TrialAction.ANALYZE_WEAKNESS, TrialAction.PERFECT_DODGE
            ):
                # Counter after preparation: combo
                points += 40
                self.stability += cfg.STABILITY_GAIN_HIGH
            else:
                points += 10
                self.stability += cfg.STABILITY_GAIN_LOW

        self.last_trial_action = action
        return points

    def _step_void(self, action: VoidAction) -> int:
        if _VOID_STABILIZING[action]:
            self.stability += self.cfg.STABILITY_GAIN_MED
        return 0

    def _void_terminal_reward(self) -> int:
        """Final judgement: non-negative score and more than one diamond."""
        if self.score >= 0 and self.diamonds > 1:
            return 100
        return -50

    # ------------------------------------------------------------------ #
    #  Snapshot                                                            #
    # ------------------------------------------------------------------ #
    def to_dict(self) -> dict:
        return {
            "world": self.current_world.key,
            "stability": self.stability,
            "diamonds": self.diamonds,
            "score": self.score,
            "riddle_level": self.riddle_level,
            "aggression_streak": self.aggression_streak,
            "last_trial_action": (
                self.last_trial_action.value if self.last_trial_action else None
            ),
            "survival_streak": self.survival_streak,
        }

    @classmethod
    def from_dict(cls, data: dict, cfg: SimConfig = CONFIG) -> "StoryEnvironment":
        env = cls(parse_world(data["world"]), cfg=cfg)
        env.stability = float(data["stability"])
        env.diamonds = int(data["diamonds"])
        env.score = int(data["score"])
        env.riddle_level = data.get("riddle_level", 1)
        env.aggression_streak = data.get("aggression_streak", 0)
        last = data.get("last_trial_action")
        env.last_trial_action = TrialAction(last) if last else None
        env.survival_streak = data.get("survival_streak", 0)
        return env
