from __future__ import annotations

from typing import Sequence

from ..core.agent import Agent
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    agents: Sequence[Agent],
    neighbor_checks: int,
    index_age_ms: float,
    index_rebuilds: int,
    duration_ms: float,
) -> TickMetrics:
    speeds = [agent.velocity.length() for agent in agents]
    population = len(speeds)
    return TickMetrics(
        tick=tick,
        population=population,
        neighbor_checks=neighbor_checks,
        average_speed=0.0 if population == 0 else sum(speeds) / population,
        min_speed=min(speeds, default=0.0),
        max_speed=max(speeds, default=0.0),
        index_age_ms=index_age_ms,
        index_rebuilds=index_rebuilds,
        tick_duration_ms=duration_ms,
    )
