"""Save/load a session snapshot: environment, Q-table and epsilon."""

import json
from pathlib import Path

from .agent.qlearning import QLearningAgent, StateKey
from .config import AgentConfig, Genre, Persona
from .engine.session import SimulationSession
from .world.environment import StoryEnvironment
from .world.worlds import actions_for, parse_action, parse_world

SNAPSHOT_VERSION = 1


# ------------------------------------------------------------------ #
#  Q-table serialization                                              #
# ------------------------------------------------------------------ #
def _serialize_q(agent: QLearningAgent) -> list:
    rows = []
    for state, values in agent.Q.items():
        rows.append({
            "world": state.world.key,
            "bucket": state.bucket,
            "values": {action.value: q for action, q in values.items()},
        })
    return rows


def _deserialize_q(rows: list) -> dict:
    table = {}
    for row in rows:
        world = parse_world(row["world"])
        state = StateKey(world, int(row["bucket"]))
        values = {}
        for label, q in row["values"].items():
            values[parse_action(world, label)] = float(q)
        # Keep canonical action order
        order = actions_for(world)
        table[state] = {a: values[a] for a in order if a in values}
    return table


# ------------------------------------------------------------------ #
#  Save / Load                                                        #
# ------------------------------------------------------------------ #
def save_state(session: SimulationSession, filepath: str):
    """Save the session's live state to JSON."""
    if session.agent is None or session.environment is None:
        raise ValueError("Session has not started; nothing to save")
    if not isinstance(session.agent, QLearningAgent):
        raise TypeError("Only Q-learning agents can be saved")

    ac = session.agent_config
    state = {
        "version": SNAPSHOT_VERSION,
        "step_count": session.step_count,
        "agent_config": {
            "name": ac.name,
            "persona": ac.persona.value,
            "genre": ac.genre.value,
        },
        "environment": session.environment.to_dict(),
        "agent": {
            "epsilon": session.agent.epsilon,
            "total_updates": session.agent.total_updates,
            "q_table": _serialize_q(session.agent),
        },
    }
    Path(filepath).write_text(json.dumps(state, indent=2))


def load_state(filepath: str, session: SimulationSession) -> AgentConfig:
    """Load a saved snapshot into `session`, replacing its state.

    Returns the stored AgentConfig so callers can keep ticking with it.
    """
    data = json.loads(Path(filepath).read_text())
    if data.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version: {data.get('version')}")

    acd = data["agent_config"]
    agent_config = AgentConfig(
        name=acd["name"],
        persona=Persona(acd["persona"]),
        genre=Genre(acd["genre"]),
    )

    session.reset_simulation()
    session.agent_config = agent_config
    session.environment = StoryEnvironment.from_dict(data["environment"], cfg=session.cfg)

    agent = QLearningAgent(agent_config, cfg=session.cfg, rng=session.rng)
    ad = data["agent"]
    agent._epsilon = float(ad["epsilon"])
    agent.total_updates = ad.get("total_updates", 0)
    agent.Q = _deserialize_q(ad["q_table"])
    session.agent = agent
    session.step_count = data["step_count"]
    return agent_config
