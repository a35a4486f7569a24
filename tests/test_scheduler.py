import time

import pytest

from storyworlds.baseline import run_headless
from storyworlds.config import SimConfig
from storyworlds.engine.scheduler import SchedulerState, StepScheduler, WorkKind
from storyworlds.engine.session import SimulationSession
from storyworlds.errors import SchedulerStateError
from storyworlds.world.environment import StoryEnvironment
from storyworlds.world.worlds import WORLD_ORDER, WorldId


def _scheduler(agent_config, cfg, clock, seed=0, **kwargs):
    session = SimulationSession(cfg=cfg, seed=seed)
    return StepScheduler(agent_config, session=session, cfg=cfg, clock=clock, **kwargs)


def _start_in(setup, world, stability, **env_fields):
    agent_config, cfg, clock = setup
    session = SimulationSession(cfg=cfg, seed=0)
    session.generate_simulation_step(agent_config, WorldId.FOREST)
    session.environment = StoryEnvironment(world, cfg=cfg)
    scheduler = StepScheduler(agent_config, session=session, cfg=cfg, clock=clock)
    env = session.environment
    env.stability = stability
    for name, value in env_fields.items():
        setattr(env, name, value)
    return scheduler


def test_first_tick_is_due_immediately(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    assert scheduler.state is SchedulerState.RUNNING
    step = scheduler.poll()
    assert step.step == 1
    assert step.world is WorldId.FOREST
    assert scheduler.pending.kind is WorkKind.TICK
    assert scheduler.pending.due == pytest.approx(0.150)


def test_tick_waits_for_world_delay(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    scheduler.poll()
    clock.advance(0.1)
    assert scheduler.poll() is None
    clock.advance(0.06)
    assert scheduler.poll().step == 2


def test_speed_scales_delays(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock, speed=2.0)
    assert scheduler.tick_delay(WorldId.VOID) == pytest.approx(0.1)
    with pytest.raises(ValueError):
        _scheduler(agent_config, cfg, clock, speed=0)


def test_convergence_pauses_then_advances_world(agent_config, cfg, clock):
    scheduler = _start_in((agent_config, cfg, clock), WorldId.FOREST, 99.5)
    step = scheduler.poll()
    assert step.converged
    assert scheduler.state is SchedulerState.TRANSITIONING
    assert scheduler.pending.kind is WorkKind.ADVANCE

    clock.advance(1.0)
    assert scheduler.poll() is None
    clock.advance(0.5)
    nxt = scheduler.poll()
    assert nxt.world is WorldId.TIME
    assert nxt.diamonds == 1
    assert scheduler.state is SchedulerState.RUNNING
    assert scheduler.world is WorldId.TIME


def test_last_world_finishes_run(agent_config, cfg, clock):
    scheduler = _start_in(
        (agent_config, cfg, clock), WorldId.VOID, 99.5, score=10, diamonds=2
    )
    step = scheduler.poll()
    assert step.converged
    assert step.reward == 100
    assert scheduler.finished
    assert scheduler.pending is None

    clock.advance(100.0)
    assert scheduler.poll() is None
    with pytest.raises(SchedulerStateError):
        scheduler.fire_next()


def test_pause_freezes_state_and_resume_reproduces_next_step(agent_config, cfg, clock, clock_factory):
    reference = _scheduler(agent_config, cfg, clock, seed=42)
    reference.poll()
    expected = reference.fire_next()

    clock2 = clock_factory()
    paused = _scheduler(agent_config, cfg, clock2, seed=42)
    paused.poll()
    clock2.advance(0.05)
    assert paused.pause()
    assert paused.state is SchedulerState.PAUSED
    assert not paused.pause()

    clock2.advance(10.0)
    assert paused.poll() is None
    with pytest.raises(SchedulerStateError):
        paused.fire_next()

    assert paused.resume()
    assert paused.state is SchedulerState.RUNNING
    # Remaining 0.1 s of the delay carries over
    clock2.advance(0.08)
    assert paused.poll() is None
    clock2.advance(0.02)
    assert paused.poll() == expected


def test_pause_during_transition_returns_to_transition(agent_config, cfg, clock):
    scheduler = _start_in((agent_config, cfg, clock), WorldId.FOREST, 99.5)
    scheduler.poll()
    assert scheduler.toggle_pause() is True
    assert scheduler.toggle_pause() is False
    assert scheduler.state is SchedulerState.TRANSITIONING
    clock.advance(1.5)
    assert scheduler.poll().world is WorldId.TIME


def test_reset_invalidates_stale_work(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    scheduler.poll()
    stale = scheduler.pending
    scheduler.reset()
    assert scheduler.session.step_count == 0
    assert scheduler.pending.generation != stale.generation

    scheduler._pending = stale
    clock.advance(1.0)
    assert scheduler.poll() is None
    assert scheduler.session.step_count == 0


def test_teardown_cancels_pending(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    scheduler.poll()
    scheduler.teardown()
    assert scheduler.pending is None
    clock.advance(5.0)
    assert scheduler.poll() is None


def test_listeners_and_bounded_history(agent_config, clock):
    cfg = SimConfig(HISTORY_WINDOW=3)
    scheduler = _scheduler(agent_config, cfg, clock)
    seen = []
    scheduler.subscribe(seen.append)
    for _ in range(5):
        scheduler.fire_next()
    assert [s.step for s in seen] == [1, 2, 3, 4, 5]
    assert [s.step for s in scheduler.history] == [3, 4, 5]


def test_run_uses_sleep_between_ticks(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    slept = []

    def fake_sleep(dt):
        slept.append(dt)
        clock.advance(dt)

    steps = scheduler.run(max_ticks=3, sleep=fake_sleep)
    assert [s.step for s in steps] == [1, 2, 3]
    assert slept == [pytest.approx(0.150), pytest.approx(0.150)]


def test_headless_run_respects_world_order(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock, seed=7)
    steps = run_headless(scheduler, max_ticks=1500)

    indices = [s.step for s in steps]
    assert indices == list(range(1, len(steps) + 1))

    order = [WORLD_ORDER.index(s.world) for s in steps]
    for prev, cur, prev_step in zip(order, order[1:], steps):
        # Worlds only move forward, one at a time, right after convergence
        assert cur in (prev, prev + 1)
        if cur == prev + 1:
            assert prev_step.converged
    for s in steps:
        assert 0.0 <= s.stability <= 100.0
        assert s.diamonds >= 0


def test_listener_runs_outside_tick_lock(agent_config, cfg, clock):
    scheduler = _scheduler(agent_config, cfg, clock)
    lock_free = []

    def on_step(step):
        acquired = scheduler._lock.acquire(blocking=False)
        if acquired:
            scheduler._lock.release()
        lock_free.append(acquired)
        if step.step == 3:
            scheduler.pause()

    scheduler.subscribe(on_step)
    for _ in range(3):
        scheduler.fire_next()
    assert lock_free == [True, True, True]
    assert scheduler.state is SchedulerState.PAUSED
    with pytest.raises(SchedulerStateError):
        scheduler.fire_next()


# ---------------------------------------------------------------------- #
#  Background thread driver (real clock, short delays)                    #
# ---------------------------------------------------------------------- #
@pytest.fixture
def fast_cfg():
    return SimConfig(
        TICK_DELAYS={"forest": 0.001, "time": 0.001, "creatures": 0.001,
                     "trial": 0.001, "void": 0.001},
        TRANSITION_PAUSE=0.005,
    )


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.002)
    return predicate()


def test_background_driver_serializes_ticks_and_stops(agent_config, fast_cfg):
    scheduler = StepScheduler(
        agent_config, session=SimulationSession(cfg=fast_cfg, seed=3), cfg=fast_cfg
    )
    seen = []
    scheduler.subscribe(seen.append)
    scheduler.start()
    thread = scheduler._thread
    assert thread.is_alive()

    assert _wait_for(lambda: len(seen) >= 20)
    # Polling from a second thread races the driver for the same work
    for _ in range(200):
        scheduler.poll()

    assert scheduler.pause()
    time.sleep(0.02)
    frozen = len(seen)
    time.sleep(0.05)
    assert len(seen) == frozen

    assert scheduler.resume()
    assert _wait_for(lambda: len(seen) >= frozen + 20)

    scheduler.stop()
    assert not thread.is_alive()
    assert scheduler._thread is None

    indices = [s.step for s in seen]
    assert indices == list(range(1, len(indices) + 1))
    assert scheduler.session.step_count == indices[-1]


def test_reset_during_background_run_never_fires_stale_tick(agent_config, fast_cfg):
    scheduler = StepScheduler(
        agent_config, session=SimulationSession(cfg=fast_cfg, seed=4), cfg=fast_cfg
    )
    seen = []
    scheduler.subscribe(seen.append)
    scheduler.start()
    thread = scheduler._thread

    assert _wait_for(lambda: len(seen) >= 10)
    scheduler.reset()
    before = len(seen)
    assert _wait_for(lambda: len(seen) >= before + 10)
    scheduler.stop()
    assert not thread.is_alive()

    indices = [s.step for s in seen]
    drops = [i for i in range(1, len(indices)) if indices[i] <= indices[i - 1]]
    assert len(drops) == 1
    first_run, second_run = indices[:drops[0]], indices[drops[0]:]
    assert first_run == list(range(1, len(first_run) + 1))
    assert second_run == list(range(1, len(second_run) + 1))
    assert seen[drops[0]].world is WorldId.FOREST
    assert seen[drops[0]].diamonds == 0
    assert scheduler.session.step_count == second_run[-1]


def test_stop_wakes_a_long_wait(agent_config, cfg):
    # At speed 0.01 the second Forest tick is 15 s away
    scheduler = StepScheduler(
        agent_config, session=SimulationSession(cfg=cfg, seed=0), cfg=cfg, speed=0.01
    )
    seen = []
    scheduler.subscribe(seen.append)
    scheduler.start()
    first = scheduler._thread
    assert _wait_for(lambda: len(seen) == 1)

    started = time.monotonic()
    scheduler.stop()
    assert time.monotonic() - started < 1.0
    assert not first.is_alive()
    assert scheduler._thread is None

    scheduler.start()
    second = scheduler._thread
    assert second is not first and second.is_alive()
    scheduler.teardown()
    assert not second.is_alive()
    assert len(seen) == 1
