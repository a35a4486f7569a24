"""Logging configuration for storyworlds runs.

Creates two output files per run:
- <log_dir>/latest.log: human-readable run narrative
- <log_dir>/latest_metrics.jsonl: structured step metrics every N ticks
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_NAME = "latest.log"
METRICS_NAME = "latest_metrics.jsonl"

# Set by setup_logging(); metrics are dropped until then
_metrics_file: Optional[Path] = None


def setup_logging(log_dir: str | Path = "runs", console: bool = True) -> logging.Logger:
    """Configure logging for a new run. Clears previous log files."""
    global _metrics_file

    runs_dir = Path(log_dir)
    runs_dir.mkdir(parents=True, exist_ok=True)
    log_file = runs_dir / LOG_NAME
    _metrics_file = runs_dir / METRICS_NAME

    if _metrics_file.exists():
        _metrics_file.unlink()

    logger = logging.getLogger("storyworlds")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    # File handler for the narrative log (overwrites each run)
    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
        logger.addHandler(console_handler)

    logging.getLogger("storyworlds.engine").setLevel(logging.DEBUG)
    logging.getLogger("storyworlds.metrics").setLevel(logging.DEBUG)

    logger.info(f"=== Storyworlds Run Started: {datetime.now().isoformat()} ===")
    return logger


def get_logger(name: str = "storyworlds") -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def metrics_path() -> Optional[Path]:
    return _metrics_file


def log_metrics(step) -> None:
    """Append one SimulationStep (as a dict) to the metrics JSONL file."""
    if _metrics_file is None:
        return
    record = step.to_dict()
    record["logged_at"] = datetime.now().isoformat()
    with open(_metrics_file, "a") as f:
        f.write(json.dumps(record, ensure_ascii=False) + "\n")


def log_transition(tick: int, leaving, entering, exit_stability: float,
                   diamond_granted: bool, diamonds: int):
    """Log a world change and whether the exit earned a diamond."""
    logger = logging.getLogger("storyworlds.engine")
    logger.info(
        f"TRANSITION t={tick} | {leaving.value} -> {entering.value} "
        f"exit_stability={exit_stability:.1f} diamond={'yes' if diamond_granted else 'no'} "
        f"total_diamonds={diamonds}"
    )


def log_finish(tick: int, score: int, diamonds: int, final_reward: int):
    """Log the end of the run; a failed final judgement is a warning."""
    logger = logging.getLogger("storyworlds.engine")
    level = logging.INFO if final_reward > 0 else logging.WARNING
    logger.log(
        level,
        f"FINISHED t={tick} | score={score} diamonds={diamonds} "
        f"final_reward={final_reward:+d}",
    )
