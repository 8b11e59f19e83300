from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2


@dataclass(slots=True)
class SteeringDelta:
    agent_id: int
    velocity_delta: Vector2
    neighbor_count: int = 0
