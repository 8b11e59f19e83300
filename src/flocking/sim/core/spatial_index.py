from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor, Future
from time import perf_counter
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Mapping, Tuple

from pygame.math import Vector2

if TYPE_CHECKING:
    from .agent import Agent

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int]
IndexEntry = Tuple[int, Vector2]


class SpatialIndex:
    """
    Immutable uniform-grid snapshot of agent positions.

    Built once from an ``agent_id -> position`` mapping and never mutated
    afterwards, so any number of threads may query it while the next
    snapshot is being built elsewhere.
    """

    __slots__ = ("_cell_size", "_cells", "_positions", "_built_at")

    def __init__(self, cell_size: float, cells: Dict[CellKey, Tuple[IndexEntry, ...]], positions: Dict[int, Vector2], built_at: float):
        self._cell_size = cell_size
        self._cells = cells
        self._positions = positions
        self._built_at = built_at

    @classmethod
    def build(cls, positions: Mapping[int, Vector2], cell_size: float, built_at: float = 0.0) -> "SpatialIndex":
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        buckets: Dict[CellKey, List[IndexEntry]] = {}
        copied: Dict[int, Vector2] = {}
        for agent_id, position in positions.items():
            point = Vector2(position)
            copied[agent_id] = point
            key = (int(point.x // cell_size), int(point.y // cell_size))
            bucket = buckets.get(key)
            if bucket is None:
                bucket = []
                buckets[key] = bucket
            bucket.append((agent_id, point))
        cells = {key: tuple(bucket) for key, bucket in buckets.items()}
        return cls(cell_size, cells, copied, built_at)

    @classmethod
    def from_agents(cls, agents: Iterable["Agent"], cell_size: float, built_at: float = 0.0) -> "SpatialIndex":
        return cls.build({agent.id: agent.position for agent in agents}, cell_size, built_at)

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def built_at(self) -> float:
        return self._built_at

    @property
    def positions(self) -> Mapping[int, Vector2]:
        return self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._positions

    def query(self, center: Vector2, radius: float) -> List[IndexEntry]:
        """Return every indexed point within ``radius`` of ``center``, the centre's own entry included."""
        if radius < 0:
            return []
        cell_size = self._cell_size
        base_x = int(center.x // cell_size)
        base_y = int(center.y // cell_size)
        cell_range = int(math.ceil(radius / cell_size))
        radius_sq = radius * radius
        pos_x = center.x
        pos_y = center.y
        cells = self._cells
        found: List[IndexEntry] = []
        append = found.append

        for dx in range(-cell_range, cell_range + 1):
            for dy in range(-cell_range, cell_range + 1):
                bucket = cells.get((base_x + dx, base_y + dy))
                if not bucket:
                    continue
                for entry in bucket:
                    point = entry[1]
                    offset_x = point.x - pos_x
                    offset_y = point.y - pos_y
                    if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                        append(entry)
        return found


class IndexScheduler:
    """
    Rebuilds the spatial index on a fixed clock cadence, independent of tick rate.

    Between rebuilds queries run against the previous snapshot, so positions
    seen through ``current`` are at most ``interval`` old (plus one build when
    rebuilding on an executor).
    """

    def __init__(
        self,
        cell_size: float,
        interval: float = 0.3,
        clock: Callable[[], float] = perf_counter,
        executor: Executor | None = None,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._cell_size = cell_size
        self._interval = interval
        self._clock = clock
        self._executor = executor
        self._lock = threading.Lock()
        self._current = SpatialIndex.build({}, cell_size, built_at=clock())
        self._pending: Future[SpatialIndex] | None = None
        self._last_rebuild = self._current.built_at
        self._rebuild_count = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def current(self) -> SpatialIndex:
        with self._lock:
            return self._current

    @property
    def rebuild_count(self) -> int:
        return self._rebuild_count

    @property
    def rebuild_pending(self) -> bool:
        return self._pending is not None

    def age(self) -> float:
        return self._clock() - self.current.built_at

    def needs_rebuild(self, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        return now - self._last_rebuild >= self._interval

    def force_rebuild(self, agents: Iterable["Agent"]) -> SpatialIndex:
        index = SpatialIndex.from_agents(agents, self._cell_size, built_at=self._clock())
        self._swap(index)
        return index

    def maybe_rebuild(self, agents: Iterable["Agent"]) -> bool:
        """Rebuild (or swap in a finished background build); True when ``current`` changed."""
        swapped = self._collect_pending()
        now = self._clock()
        if self._pending is not None or not self.needs_rebuild(now):
            return swapped
        self._last_rebuild = now
        # Positions are copied here so the background build never reads live agent state.
        positions = {agent.id: Vector2(agent.position) for agent in agents}
        if self._executor is None:
            self._swap(SpatialIndex.build(positions, self._cell_size, built_at=now))
            return True
        self._pending = self._executor.submit(SpatialIndex.build, positions, self._cell_size, now)
        return self._collect_pending() or swapped

    def reset(self, agents: Iterable["Agent"]) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._rebuild_count = 0
        index = SpatialIndex.from_agents(agents, self._cell_size, built_at=self._clock())
        with self._lock:
            self._current = index
        self._last_rebuild = index.built_at

    def shutdown(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _collect_pending(self) -> bool:
        pending = self._pending
        if pending is None or not pending.done():
            return False
        self._pending = None
        self._swap(pending.result())
        return True

    def _swap(self, index: SpatialIndex) -> None:
        with self._lock:
            self._current = index
        self._last_rebuild = max(self._last_rebuild, index.built_at)
        self._rebuild_count += 1
        logger.debug("Spatial index rebuilt: %d points (rebuild #%d)", len(index), self._rebuild_count)
