"""Entry point: python -m storyworlds [--persona P] [--speed X] [--headless] ..."""

import sys

from .baseline import run_baseline, run_headless, summarize
from .config import AgentConfig, Genre, Persona, load_config
from .engine.scheduler import StepScheduler
from .engine.session import SimulationSession
from .logging_config import setup_logging
from .persistence import save_state, load_state

BASELINE_MAX_TICKS = 5000


def _print_summary(title: str, summary: dict):
    print(f"  {title}")
    for world, stats in summary["worlds"].items():
        print(f"    {world:<10} ticks={stats['ticks']:<5} reward={stats['reward']:+d}")
    print(f"    score={summary['final_score']:+d}  diamonds={summary['diamonds']}  "
          f"ticks={summary['total_ticks']}")


def main():
    # Parse args
    name = "Agent"
    persona = Persona.EXPLORER
    genre = Genre.FANTASY
    seed = None
    speed = 1.0
    headless = False
    max_ticks = None
    baseline = False
    config_path = "storyworlds.yaml"
    save_path = None
    load_path = None
    log_dir = "runs"

    args = sys.argv[1:]
    i = 0
    while i < len(args):
        if args[i] == "--name" and i + 1 < len(args):
            name = args[i + 1]
            i += 2
        elif args[i] == "--persona" and i + 1 < len(args):
            persona = Persona(args[i + 1].capitalize())
            i += 2
        elif args[i] == "--genre" and i + 1 < len(args):
            genre = Genre(args[i + 1])
            i += 2
        elif args[i] == "--seed" and i + 1 < len(args):
            seed = int(args[i + 1])
            i += 2
        elif args[i] == "--speed" and i + 1 < len(args):
            speed = float(args[i + 1])
            i += 2
        elif args[i] == "--max-ticks" and i + 1 < len(args):
            max_ticks = int(args[i + 1])
            i += 2
        elif args[i] == "--config" and i + 1 < len(args):
            config_path = args[i + 1]
            i += 2
        elif args[i] == "--save" and i + 1 < len(args):
            save_path = args[i + 1]
            i += 2
        elif args[i] == "--load" and i + 1 < len(args):
            load_path = args[i + 1]
            i += 2
        elif args[i] == "--log-dir" and i + 1 < len(args):
            log_dir = args[i + 1]
            i += 2
        elif args[i] == "--headless":
            headless = True
            i += 1
        elif args[i] == "--baseline":
            baseline = True
            i += 1
        else:
            i += 1

    cfg = load_config(config_path)
    setup_logging(log_dir)
    agent_config = AgentConfig(name=name, persona=persona, genre=genre)

    print(f"  storyworlds")
    print(f"  Agent: {name} ({persona.value})  Genre: {genre.value}  Speed: {speed}x")

    session = SimulationSession(cfg=cfg, seed=seed)
    if load_path:
        try:
            agent_config = load_state(load_path, session)
            print(f"  Loaded state from {load_path}")
        except (OSError, ValueError, KeyError) as e:
            print(f"  Failed to load state: {e}")
            session.reset_simulation()

    scheduler = StepScheduler(agent_config, session=session, cfg=cfg, speed=speed)
    steps = []
    scheduler.subscribe(steps.append)
    if not headless:
        scheduler.subscribe(
            lambda s: print(f"  [{s.step:>5}] {s.world.key:<9} {s.action:<28} "
                            f"r={s.reward:+4d} stab={s.stability:5.1f} "
                            f"gems={s.diamonds} {s.thought}")
        )

    try:
        if headless:
            run_headless(scheduler, max_ticks)
        else:
            scheduler.run(max_ticks)
    except KeyboardInterrupt:
        print("  Interrupted.")
    finally:
        scheduler.teardown()

    _print_summary("Q-learning agent", summarize(steps))

    if baseline:
        random_steps = run_baseline(
            agent_config, cfg=cfg, seed=seed, max_ticks=max_ticks or BASELINE_MAX_TICKS
        )
        _print_summary("Random baseline", summarize(random_steps))

    if save_path:
        try:
            save_state(session, save_path)
            print(f"  State saved to {save_path}")
        except (OSError, ValueError) as e:
            print(f"  Failed to save state: {e}")

    print("  Run ended.")


if __name__ == "__main__":
    main()
