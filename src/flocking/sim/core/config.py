from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .bounds import WorldBounds
from .errors import ConfigError, InvalidParameterError
from .params import ParameterSet


@dataclass
class ParamsConfig:
    cohesion_weight: float = 1.0
    alignment_weight: float = 1.0
    separation_weight: float = 1.0
    edge_avoid_weight: float = 1.0
    view_radius: float = 100.0
    view_angle: float = math.pi / 3.0

    def to_parameter_set(self) -> ParameterSet:
        return ParameterSet(
            cohesion_weight=float(self.cohesion_weight),
            alignment_weight=float(self.alignment_weight),
            separation_weight=float(self.separation_weight),
            edge_avoid_weight=float(self.edge_avoid_weight),
            view_radius=float(self.view_radius),
            view_angle=float(self.view_angle),
        )


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 60.0
    initial_population: int = 50
    initial_velocity: tuple[float, float] = (50.0, 50.0)
    world_width: float = 800.0
    world_height: float = 600.0
    boundary_margin: float = 10.0
    min_speed: float = 20.0
    max_speed: float = 150.0
    # Fraction of velocity shed per second.
    friction: float = 0.1
    cell_size: float = 100.0
    index_rebuild_interval: float = 0.3
    background_index_rebuild: bool = False
    steering_workers: int = 0
    seed: int = 42
    config_version: str = "v1"
    params: ParamsConfig = field(default_factory=ParamsConfig)

    @property
    def bounds(self) -> WorldBounds:
        return WorldBounds(width=self.world_width, height=self.world_height, border=self.boundary_margin)

    def validate(self) -> "SimulationConfig":
        if self.world_width <= 0 or self.world_height <= 0:
            raise ConfigError(f"World bounds must be positive, got {self.world_width}x{self.world_height}")
        if self.time_step <= 0:
            raise ConfigError(f"time_step must be positive, got {self.time_step}")
        if self.initial_population < 0:
            raise ConfigError(f"initial_population must be >= 0, got {self.initial_population}")
        if self.min_speed < 0 or self.min_speed > self.max_speed:
            raise ConfigError(f"Speed limits out of order: min={self.min_speed}, max={self.max_speed}")
        if self.friction < 0:
            raise ConfigError(f"friction must be >= 0, got {self.friction}")
        if self.boundary_margin < 0:
            raise ConfigError(f"boundary_margin must be >= 0, got {self.boundary_margin}")
        if self.cell_size <= 0:
            raise ConfigError(f"cell_size must be positive, got {self.cell_size}")
        if self.index_rebuild_interval <= 0:
            raise ConfigError(f"index_rebuild_interval must be positive, got {self.index_rebuild_interval}")
        if self.steering_workers < 0:
            raise ConfigError(f"steering_workers must be >= 0, got {self.steering_workers}")
        try:
            self.params.to_parameter_set().validate()
        except InvalidParameterError as exc:
            raise ConfigError(f"Invalid default params: {exc}") from exc
        return self

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


def load_config(raw: dict) -> SimulationConfig:
    def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    params = ParamsConfig(**(raw.get("params") or {}))
    initial_velocity = _pair(raw.get("initial_velocity"), SimulationConfig.initial_velocity)
    sim_values = {k: v for k, v in raw.items() if k not in {"params", "initial_velocity"}}
    return SimulationConfig(params=params, initial_velocity=initial_velocity, **sim_values)
