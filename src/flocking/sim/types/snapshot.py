from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"
    params: Dict[str, float]


@dataclass(slots=True)
class SnapshotWorld:
    width: float
    height: float
    border: float


@dataclass(slots=True)
class SnapshotMetadata:
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str
    params_version: int
