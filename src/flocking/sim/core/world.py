from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from time import perf_counter
from typing import Any, Callable, Dict, List

from pygame.math import Vector2

from .agent import Agent, AgentPose
from .bounds import WorldBounds
from .config import SimulationConfig
from .params import ParameterStore
from .rng import DeterministicRng
from .spatial_index import IndexScheduler, SpatialIndex
from ..systems import integration, metrics as metrics_system, steering
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import heading_from_vector, safe_normalize

logger = logging.getLogger(__name__)

_DEFAULT_ORIENTATION = Vector2(1.0, 0.0)


class World:
    """
    Owns the flock and runs one Query -> Steer -> Integrate pass per tick.

    The parameter store and index scheduler are owned here and handed to each
    phase explicitly; presentation layers only ever get pose copies.
    """

    def __init__(self, config: SimulationConfig, clock: Callable[[], float] | None = None):
        self._config = config.validate()
        self._bounds = config.bounds
        self._rng = DeterministicRng(config.seed)
        self._params = ParameterStore(config.params.to_parameter_set())
        self._limits = integration.MotionLimits(
            min_speed=config.min_speed,
            max_speed=config.max_speed,
            friction=config.friction,
        )
        self._clock = clock or perf_counter
        self._steering_pool = (
            ThreadPoolExecutor(max_workers=config.steering_workers, thread_name_prefix="steering")
            if config.steering_workers > 0
            else None
        )
        self._index_pool = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="index-rebuild")
            if config.background_index_rebuild
            else None
        )
        self._scheduler = IndexScheduler(
            config.cell_size,
            interval=config.index_rebuild_interval,
            clock=self._clock,
            executor=self._index_pool,
        )
        self._agents: List[Agent] = []
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()
        self._scheduler.reset(self._agents)

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def params(self) -> ParameterStore:
        return self._params

    @property
    def bounds(self) -> WorldBounds:
        return self._bounds

    @property
    def index(self) -> SpatialIndex:
        return self._scheduler.current

    @property
    def scheduler(self) -> IndexScheduler:
        return self._scheduler

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def reset(self) -> None:
        self._agents.clear()
        self._rng.reset()
        self._params.reset()
        self._metrics = None
        self._bootstrap_population()
        self._scheduler.reset(self._agents)
        logger.info("World reset: %d agents", len(self._agents))

    def step(self, tick: int, dt: float | None = None) -> TickMetrics:
        start = perf_counter()
        dt = self._config.time_step if dt is None else dt
        params = self._params.snapshot()

        self._scheduler.maybe_rebuild(self._agents)
        index = self._scheduler.current

        deltas = steering.compute_deltas(
            self._agents,
            index,
            params,
            self._bounds,
            dt,
            executor=self._steering_pool,
        )
        neighbor_checks = sum(delta.neighbor_count for delta in deltas)
        integration.apply_deltas(self._agents, deltas, dt, self._limits)

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            tick,
            self._agents,
            neighbor_checks,
            self._scheduler.age() * 1000.0,
            self._scheduler.rebuild_count,
            elapsed_ms,
        )
        self._metrics = metrics
        return metrics

    def poses(self) -> List[AgentPose]:
        return [agent.pose() for agent in self._agents]

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else self._metrics_from_state(tick)
        params = self._params.snapshot()
        metadata = SnapshotMetadata(
            sim_dt=self._config.time_step,
            tick_rate=0.0 if self._config.time_step <= 0 else 1.0 / self._config.time_step,
            seed=self._config.seed,
            config_version=self._config.config_version,
            params_version=self._params.version,
        )
        return Snapshot(
            tick=tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            world=SnapshotWorld(width=self._bounds.width, height=self._bounds.height, border=self._bounds.border),
            metadata=metadata,
            params=params.as_dict(),
        )

    def close(self) -> None:
        self._scheduler.shutdown()
        if self._steering_pool is not None:
            self._steering_pool.shutdown(wait=True)
        if self._index_pool is not None:
            self._index_pool.shutdown(wait=True)

    def _bootstrap_population(self) -> None:
        vx, vy = self._config.initial_velocity
        for agent_id in range(self._config.initial_population):
            velocity = Vector2(vx, vy)
            self._agents.append(
                Agent(
                    id=agent_id,
                    position=self._bounds.sample_position(self._rng),
                    velocity=velocity,
                    orientation=safe_normalize(velocity, fallback=_DEFAULT_ORIENTATION),
                )
            )
        logger.info(
            "Spawned %d agents in %.0fx%.0f world (seed=%d)",
            len(self._agents),
            self._bounds.width,
            self._bounds.height,
            self._config.seed,
        )

    @staticmethod
    def _agent_snapshot(agent: Agent) -> Dict[str, Any]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "ox": agent.orientation.x,
            "oy": agent.orientation.y,
            "heading": heading_from_vector(agent.orientation),
            "speed": agent.velocity.length(),
        }

    def _metrics_from_state(self, tick: int) -> TickMetrics:
        return metrics_system.create_metrics(
            tick,
            self._agents,
            0,
            self._scheduler.age() * 1000.0,
            self._scheduler.rebuild_count,
            0.0,
        )
