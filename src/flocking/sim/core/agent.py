from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2


@dataclass(frozen=True, slots=True)
class AgentPose:
    id: int
    position: tuple[float, float]
    orientation: tuple[float, float]


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector2
    velocity: Vector2
    orientation: Vector2

    def pose(self) -> AgentPose:
        return AgentPose(
            id=self.id,
            position=(self.position.x, self.position.y),
            orientation=(self.orientation.x, self.orientation.y),
        )
