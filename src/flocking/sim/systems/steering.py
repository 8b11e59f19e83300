from __future__ import annotations

from concurrent.futures import Executor
from typing import Dict, List, Mapping, Sequence, Tuple

from pygame.math import Vector2

from ..core.agent import Agent
from ..core.bounds import WorldBounds
from ..core.params import ParameterSet
from ..core.spatial_index import SpatialIndex
from ..types.delta import SteeringDelta
from ..utils.math2d import ZERO, angle_between, average

SEPARATION_EPSILON = 0.5
EDGE_EPSILON = 0.01
_MIN_HEADING_SPEED_SQ = 1e-12
_CHUNK_SIZE = 64

Neighbor = Tuple[Vector2, Vector2]


def visible_neighbors(
    agent: Agent,
    heading: Vector2,
    agents_by_id: Mapping[int, Agent],
    index: SpatialIndex,
    params: ParameterSet,
) -> List[Neighbor]:
    """
    Neighbours inside the view radius and strictly inside the forward cone.

    Positions come from the index snapshot, velocities from the pre-tick
    agent state. Index entries for ids no longer present are skipped.
    """
    position = agent.position
    visible: List[Neighbor] = []
    for other_id, other_position in index.query(position, params.view_radius):
        if other_id == agent.id:
            continue
        other = agents_by_id.get(other_id)
        if other is None:
            continue
        offset = other_position - position
        if angle_between(offset, heading) < params.view_angle:
            visible.append((other_position, other.velocity))
    return visible


def cohesion(position: Vector2, neighbor_positions: Sequence[Vector2]) -> Vector2:
    """Offset from the agent to the centre of mass of itself and its visible neighbours."""
    return average([position, *neighbor_positions], position) - position


def alignment(neighbor_velocities: Sequence[Vector2]) -> Vector2:
    return average(neighbor_velocities, ZERO)


def separation(position: Vector2, neighbor_positions: Sequence[Vector2], view_radius: float) -> Vector2:
    """Average push away from each neighbour, magnitude ``view_radius / distance`` above the epsilon floor."""
    if not neighbor_positions:
        return Vector2()
    accum_x = 0.0
    accum_y = 0.0
    for other in neighbor_positions:
        away_x = position.x - other.x
        away_y = position.y - other.y
        dist = max((away_x * away_x + away_y * away_y) ** 0.5, SEPARATION_EPSILON)
        scale = view_radius / (dist * dist)
        accum_x += away_x * scale
        accum_y += away_y * scale
    count = len(neighbor_positions)
    return Vector2(accum_x / count, accum_y / count)


def edge_avoidance(position: Vector2, bounds: WorldBounds) -> Vector2:
    distance = bounds.distance_to_edge(position)
    if distance >= bounds.border:
        return Vector2()
    return (bounds.center - position) / max(distance, EDGE_EPSILON)


def compute_delta(
    agent: Agent,
    agents_by_id: Mapping[int, Agent],
    index: SpatialIndex,
    params: ParameterSet,
    bounds: WorldBounds,
    dt: float,
) -> SteeringDelta:
    position = agent.position
    velocity = agent.velocity
    edge = edge_avoidance(position, bounds)
    delta_x = params.edge_avoid_weight * edge.x
    delta_y = params.edge_avoid_weight * edge.y
    neighbor_count = 0

    speed_sq = velocity.x * velocity.x + velocity.y * velocity.y
    if speed_sq >= _MIN_HEADING_SPEED_SQ:
        heading = velocity / (speed_sq ** 0.5)
        neighbors = visible_neighbors(agent, heading, agents_by_id, index, params)
        neighbor_count = len(neighbors)
        if neighbors:
            positions = [pos for pos, _ in neighbors]
            velocities = [vel for _, vel in neighbors]
            cohesion_vec = cohesion(position, positions)
            alignment_vec = alignment(velocities)
            separation_vec = separation(position, positions, params.view_radius)
            delta_x += (
                params.cohesion_weight * cohesion_vec.x
                + params.alignment_weight * alignment_vec.x
                + params.separation_weight * separation_vec.x
            )
            delta_y += (
                params.cohesion_weight * cohesion_vec.y
                + params.alignment_weight * alignment_vec.y
                + params.separation_weight * separation_vec.y
            )

    return SteeringDelta(agent.id, Vector2(delta_x * dt, delta_y * dt), neighbor_count)


def compute_deltas(
    agents: Sequence[Agent],
    index: SpatialIndex,
    params: ParameterSet,
    bounds: WorldBounds,
    dt: float,
    executor: Executor | None = None,
) -> List[SteeringDelta]:
    """
    One delta per agent, in agent order, computed from the unmodified pre-tick state.

    With an executor the agents are split into chunks and mapped across
    workers; the result is identical to the serial path.
    """
    agents_by_id: Dict[int, Agent] = {agent.id: agent for agent in agents}

    def _compute_chunk(chunk: Sequence[Agent]) -> List[SteeringDelta]:
        return [compute_delta(agent, agents_by_id, index, params, bounds, dt) for agent in chunk]

    if executor is None or len(agents) <= _CHUNK_SIZE:
        return _compute_chunk(agents)

    chunks = [agents[start:start + _CHUNK_SIZE] for start in range(0, len(agents), _CHUNK_SIZE)]
    deltas: List[SteeringDelta] = []
    for chunk_deltas in executor.map(_compute_chunk, chunks):
        deltas.extend(chunk_deltas)
    return deltas
