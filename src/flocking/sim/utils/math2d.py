from __future__ import annotations

import math
from typing import Iterable

from pygame.math import Vector2

ZERO = Vector2()

_NORMALIZE_EPS_SQ = 1e-12


def safe_normalize(vector: Vector2, fallback: Vector2 | None = None) -> Vector2:
    magnitude_sq = vector.x * vector.x + vector.y * vector.y
    if magnitude_sq < _NORMALIZE_EPS_SQ:
        return Vector2() if fallback is None else Vector2(fallback)
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(vector.x * inv, vector.y * inv)


def angle_between(a: Vector2, b: Vector2) -> float:
    """Unsigned angle in radians; 0.0 when either side has no direction."""
    len_sq_a = a.x * a.x + a.y * a.y
    len_sq_b = b.x * b.x + b.y * b.y
    if len_sq_a < _NORMALIZE_EPS_SQ or len_sq_b < _NORMALIZE_EPS_SQ:
        return 0.0
    cos_theta = (a.x * b.x + a.y * b.y) / math.sqrt(len_sq_a * len_sq_b)
    return math.acos(_clamp_value(cos_theta, -1.0, 1.0))


def clamp_speed(velocity: Vector2, min_speed: float, max_speed: float) -> Vector2:
    speed_sq = velocity.x * velocity.x + velocity.y * velocity.y
    if speed_sq == 0.0:
        return Vector2()
    if max_speed >= 0.0 and speed_sq > max_speed * max_speed:
        scale = max_speed / math.sqrt(speed_sq)
        return Vector2(velocity.x * scale, velocity.y * scale)
    if speed_sq < min_speed * min_speed:
        scale = min_speed / math.sqrt(speed_sq)
        return Vector2(velocity.x * scale, velocity.y * scale)
    return Vector2(velocity)


def average(vectors: Iterable[Vector2], default: Vector2) -> Vector2:
    sum_x = 0.0
    sum_y = 0.0
    count = 0
    for vector in vectors:
        sum_x += vector.x
        sum_y += vector.y
        count += 1
    if count == 0:
        return Vector2(default)
    return Vector2(sum_x / count, sum_y / count)


def heading_from_vector(vector: Vector2) -> float:
    if vector.length_squared() < _NORMALIZE_EPS_SQ:
        return 0.0
    return math.atan2(vector.y, vector.x)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
