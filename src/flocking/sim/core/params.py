from __future__ import annotations

import math
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

from .errors import InvalidParameterError


@dataclass(frozen=True)
class ParameterSet:
    cohesion_weight: float = 1.0
    alignment_weight: float = 1.0
    separation_weight: float = 1.0
    edge_avoid_weight: float = 1.0
    view_radius: float = 100.0
    view_angle: float = math.pi / 3.0

    def validate(self) -> "ParameterSet":
        for name in ("cohesion_weight", "alignment_weight", "separation_weight", "edge_avoid_weight", "view_radius"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise InvalidParameterError(f"{name} must be a non-negative finite number, got {value!r}")
        if not math.isfinite(self.view_angle) or not 0.0 < self.view_angle <= math.pi:
            raise InvalidParameterError(f"view_angle must be in (0, pi], got {self.view_angle!r}")
        return self

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_FIELD_NAMES = frozenset(f.name for f in fields(ParameterSet))


class ParameterStore:
    """
    Holds the live-tunable steering parameters.

    Writers swap in a whole new immutable ``ParameterSet``; readers take one
    snapshot per tick, so a tick never sees a half-applied edit.
    """

    def __init__(self, initial: ParameterSet | None = None):
        self._initial = (initial or ParameterSet()).validate()
        self._current = self._initial
        self._version = 0
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> ParameterSet:
        with self._lock:
            return self._current

    def update(self, **changes: Any) -> ParameterSet:
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise InvalidParameterError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")
        try:
            coerced = {name: float(value) for name, value in changes.items()}
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(str(exc)) from exc
        with self._lock:
            candidate = replace(self._current, **coerced).validate()
            self._current = candidate
            self._version += 1
            return candidate

    def reset(self) -> ParameterSet:
        with self._lock:
            self._current = self._initial
            self._version += 1
            return self._current
