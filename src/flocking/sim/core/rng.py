from __future__ import annotations

import random

from pygame.math import Vector2


class DeterministicRng:
    """Seeded source for initial placement; ``reset`` replays the same flock."""

    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_point(self, center: Vector2, half_width: float, half_height: float) -> Vector2:
        return Vector2(
            center.x + self.next_range(-half_width, half_width),
            center.y + self.next_range(-half_height, half_height),
        )
