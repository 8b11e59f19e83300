from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence

from ..core.agent import Agent
from ..types.delta import SteeringDelta
from ..utils.math2d import clamp_speed, safe_normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionLimits:
    min_speed: float
    max_speed: float
    friction: float = 0.0


def integrate_agent(agent: Agent, delta: SteeringDelta, dt: float, limits: MotionLimits) -> None:
    velocity = agent.velocity + delta.velocity_delta
    velocity -= velocity * (limits.friction * dt)
    velocity = clamp_speed(velocity, limits.min_speed, limits.max_speed)
    agent.velocity.update(velocity.x, velocity.y)
    # A stopped agent keeps facing where it last moved.
    agent.orientation = safe_normalize(velocity, fallback=agent.orientation)
    agent.position.update(
        agent.position.x + velocity.x * dt,
        agent.position.y + velocity.y * dt,
    )


def apply_deltas(
    agents: Sequence[Agent],
    deltas: Iterable[SteeringDelta],
    dt: float,
    limits: MotionLimits,
) -> int:
    """Apply one tick of deltas in place; returns how many were applied."""
    by_id: Dict[int, Agent] = {agent.id: agent for agent in agents}
    applied = 0
    for delta in deltas:
        agent = by_id.get(delta.agent_id)
        if agent is None:
            logger.debug("Dropping steering delta for unknown agent %d", delta.agent_id)
            continue
        integrate_agent(agent, delta, dt, limits)
        applied += 1
    return applied
