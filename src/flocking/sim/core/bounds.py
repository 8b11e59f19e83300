from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2

from .rng import DeterministicRng


@dataclass(frozen=True)
class WorldBounds:
    """Axis-aligned world rectangle centred on the origin."""

    width: float
    height: float
    border: float = 10.0

    @property
    def center(self) -> Vector2:
        return Vector2()

    @property
    def half_extents(self) -> tuple[float, float]:
        return self.width * 0.5, self.height * 0.5

    def distance_to_edge(self, position: Vector2) -> float:
        """Distance to the nearest edge; negative once outside the rectangle."""
        half_w, half_h = self.half_extents
        return min(half_w - abs(position.x - self.center.x), half_h - abs(position.y - self.center.y))

    def contains(self, position: Vector2) -> bool:
        return self.distance_to_edge(position) >= 0.0

    def sample_position(self, rng: DeterministicRng) -> Vector2:
        half_w, half_h = self.half_extents
        return rng.next_point(self.center, half_w, half_h)
