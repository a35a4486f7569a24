"""StepScheduler: paces ticks, moves between worlds, and gates on pause.

Scheduling is cooperative. There is at most one pending unit of work (the
next tick, or the end of a between-worlds pause), stamped with the
generation it was scheduled in. `reset()` and `teardown()` bump the
generation, so a tick scheduled against superseded state can never fire.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..config import CONFIG, AgentConfig, SimConfig
from ..errors import SchedulerStateError
from ..logging_config import get_logger, log_finish, log_metrics
from ..world.worlds import WorldId, is_last_world, next_world
from .session import SimulationSession
from .step import SimulationStep

logger = get_logger("storyworlds.engine")


class SchedulerState(Enum):
    RUNNING = "running"
    TRANSITIONING = "transitioning"
    PAUSED = "paused"
    FINISHED = "finished"


class WorkKind(Enum):
    TICK = "tick"
    ADVANCE = "advance"     # end of the pause between worlds


@dataclass(frozen=True)
class PendingWork:
    kind: WorkKind
    due: float
    generation: int


class StepScheduler:
    """
    Single owner of a SimulationSession. Every mutation of environment and
    agent state happens inside `poll()` under one lock, one tick at a time.
    """

    def __init__(
        self,
        agent_config: AgentConfig,
        session: Optional[SimulationSession] = None,
        cfg: SimConfig = CONFIG,
        clock: Callable[[], float] = time.monotonic,
        speed: float = 1.0,
    ):
        if speed <= 0:
            raise ValueError("speed must be positive")
        self.agent_config = agent_config
        self.cfg = cfg
        self.session = session if session is not None else SimulationSession(cfg=cfg)
        self.clock = clock
        self.speed = speed

        self.history: deque = deque(maxlen=cfg.HISTORY_WINDOW)
        self._listeners: list[Callable[[SimulationStep], None]] = []

        self._lock = threading.Lock()
        self._dispatch_lock = threading.Lock()
        self._outbox: deque = deque()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self._generation = 0
        self._closed = False
        self._start_run()

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #
    def _start_run(self):
        self.state = SchedulerState.RUNNING
        self.world: WorldId = self.session.current_world
        self.last_step: Optional[SimulationStep] = None
        self.history.clear()
        self._paused_work: Optional[tuple] = None   # (kind, remaining delay)
        self._paused_from: Optional[SchedulerState] = None
        self._pending: Optional[PendingWork] = None

        # A restored session may already sit past convergence
        env = self.session.environment
        if env is None or env.stability < self.cfg.CONVERGENCE_THRESHOLD:
            self._schedule(WorkKind.TICK, 0.0)
        elif is_last_world(self.world):
            self.state = SchedulerState.FINISHED
            logger.info(f"Restored run already finished (score={env.score})")
        else:
            self.state = SchedulerState.TRANSITIONING
            self._schedule(WorkKind.ADVANCE, self.cfg.TRANSITION_PAUSE / self.speed)

    def reset(self):
        """Discard the run and start a fresh one in the first world."""
        with self._lock:
            self._generation += 1
            self.session.reset_simulation()
            self._closed = False
            self._start_run()
            logger.info("Scheduler reset")

    def teardown(self):
        """Cancel pending work; the scheduler will not tick again."""
        with self._lock:
            self._generation += 1
            self._pending = None
            self._paused_work = None
            self._closed = True
        self.stop()

    def subscribe(self, callback: Callable[[SimulationStep], None]):
        self._listeners.append(callback)

    # ------------------------------------------------------------------ #
    #  Timer                                                               #
    # ------------------------------------------------------------------ #
    def _schedule(self, kind: WorkKind, delay: float):
        self._pending = PendingWork(kind, self.clock() + delay, self._generation)

    def tick_delay(self, world: WorldId) -> float:
        return self.cfg.TICK_DELAYS[world.key] / self.speed

    @property
    def pending(self) -> Optional[PendingWork]:
        return self._pending

    @property
    def finished(self) -> bool:
        return self.state is SchedulerState.FINISHED

    def poll(self, now: Optional[float] = None) -> Optional[SimulationStep]:
        """Run the pending work if it is due. Returns the emitted step, if any.

        Listeners are notified after the tick lock is released, in tick order.
        """
        with self._lock:
            step = self._poll_locked(now)
            if step is not None:
                self._outbox.append(step)
        self._dispatch()
        return step

    def _poll_locked(self, now: Optional[float]) -> Optional[SimulationStep]:
        work = self._pending
        if self._closed or work is None:
            return None
        if self.state in (SchedulerState.PAUSED, SchedulerState.FINISHED):
            return None
        if now is None:
            now = self.clock()
        if now < work.due:
            return None
        self._pending = None
        if work.generation != self._generation:
            logger.debug(f"Dropped stale {work.kind.value} from generation {work.generation}")
            return None

        if work.kind is WorkKind.ADVANCE:
            self.world = next_world(self.world)
            self.state = SchedulerState.RUNNING
        return self._tick()

    def _dispatch(self):
        with self._dispatch_lock:
            while self._outbox:
                step = self._outbox.popleft()
                for callback in list(self._listeners):
                    callback(step)

    def fire_next(self) -> Optional[SimulationStep]:
        """Run the pending work immediately, ignoring its due time."""
        with self._lock:
            if self.state is SchedulerState.PAUSED:
                raise SchedulerStateError("Scheduler is paused")
            if self.state is SchedulerState.FINISHED or self._closed:
                raise SchedulerStateError("Run is over")
            if self._pending is None:
                return None
            due = self._pending.due
        return self.poll(now=due)

    def _tick(self) -> SimulationStep:
        prev_stability = self.last_step.stability if self.last_step else 0.0
        step = self.session.generate_simulation_step(
            self.agent_config, self.world, prev_stability
        )
        self.last_step = step
        self.history.append(step)

        if step.step % self.cfg.METRICS_INTERVAL == 0 or step.converged:
            log_metrics(step)

        if step.converged:
            if is_last_world(self.world):
                self.state = SchedulerState.FINISHED
                log_finish(step.step, step.cumulative_reward, step.diamonds, step.reward)
            else:
                self.state = SchedulerState.TRANSITIONING
                logger.info(
                    f"{self.world.value} converged at t={step.step} "
                    f"(stability={step.stability:.1f})"
                )
                self._schedule(WorkKind.ADVANCE, self.cfg.TRANSITION_PAUSE / self.speed)
        else:
            self._schedule(WorkKind.TICK, self.tick_delay(self.world))
        return step

    # ------------------------------------------------------------------ #
    #  Pause gate                                                          #
    # ------------------------------------------------------------------ #
    def pause(self) -> bool:
        """Suspend scheduling. Returns False if there was nothing to pause."""
        with self._lock:
            if self.state not in (SchedulerState.RUNNING, SchedulerState.TRANSITIONING):
                return False
            work = self._pending
            if work is not None:
                remaining = max(0.0, work.due - self.clock())
                self._paused_work = (work.kind, remaining)
            self._pending = None
            self._paused_from = self.state
            self.state = SchedulerState.PAUSED
            logger.info("Paused")
            return True

    def resume(self) -> bool:
        """Resume with the delay that was left when paused."""
        with self._lock:
            if self.state is not SchedulerState.PAUSED:
                return False
            self.state = self._paused_from
            self._paused_from = None
            if self._paused_work is not None:
                kind, remaining = self._paused_work
                self._paused_work = None
                self._schedule(kind, remaining)
            logger.info("Resumed")
            return True

    def toggle_pause(self) -> bool:
        """Flip the pause gate. Returns True when now paused."""
        if self.state is SchedulerState.PAUSED:
            self.resume()
            return False
        return self.pause()

    # ------------------------------------------------------------------ #
    #  Drivers                                                             #
    # ------------------------------------------------------------------ #
    def run(
        self,
        max_ticks: Optional[int] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> list[SimulationStep]:
        """Blocking driver: wait until work is due, then poll.

        Waits on the stop signal unless `sleep` is given, so `stop()` wakes it.
        """
        self._stop_event.clear()
        return self._drive(max_ticks, sleep)

    def _drive(
        self,
        max_ticks: Optional[int] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> list[SimulationStep]:
        wait_for = sleep if sleep is not None else self._stop_event.wait
        emitted: list[SimulationStep] = []
        while not self._stop_event.is_set() and not self._closed and not self.finished:
            if max_ticks is not None and len(emitted) >= max_ticks:
                break
            work = self._pending
            if self.state is SchedulerState.PAUSED or work is None:
                wait_for(0.05)
                continue
            wait = work.due - self.clock()
            if wait > 0:
                wait_for(wait)
                continue
            step = self.poll()
            if step is not None:
                emitted.append(step)
        return emitted

    def start(self):
        """Drive the scheduler from a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._drive, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2)
        if thread is not None and not thread.is_alive():
            self._thread = None
