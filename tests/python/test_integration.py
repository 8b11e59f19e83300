from __future__ import annotations

from pygame.math import Vector2
from pytest import approx

from flocking.sim.core.agent import Agent
from flocking.sim.systems.integration import MotionLimits, apply_deltas, integrate_agent
from flocking.sim.types.delta import SteeringDelta

LIMITS = MotionLimits(min_speed=5.0, max_speed=100.0, friction=0.1)


def _agent(agent_id: int = 0, vel: tuple[float, float] = (10.0, 0.0)) -> Agent:
    velocity = Vector2(vel)
    orientation = velocity.normalize() if velocity.length_squared() > 0 else Vector2(0.0, 1.0)
    return Agent(id=agent_id, position=Vector2(0.0, 0.0), velocity=velocity, orientation=orientation)


def test_delta_then_friction_then_euler_step():
    agent = _agent(vel=(10.0, 0.0))
    integrate_agent(agent, SteeringDelta(0, Vector2(38.0, 0.0)), 1.0, LIMITS)
    assert agent.velocity.x == approx(43.2)
    assert agent.position.x == approx(43.2)
    assert agent.orientation == Vector2(1.0, 0.0)


def test_speed_is_clamped_to_max():
    agent = _agent(vel=(10.0, 0.0))
    integrate_agent(agent, SteeringDelta(0, Vector2(0.0, 5000.0)), 0.5, LIMITS)
    assert agent.velocity.length() == approx(LIMITS.max_speed)
    assert agent.position.length() == approx(LIMITS.max_speed * 0.5)


def test_slow_nonzero_speed_is_raised_to_min():
    agent = _agent(vel=(1.0, 0.0))
    integrate_agent(agent, SteeringDelta(0, Vector2()), 0.1, LIMITS)
    assert agent.velocity.length() == approx(LIMITS.min_speed)
    assert agent.velocity.x > 0.0


def test_zero_velocity_stays_zero_and_keeps_orientation():
    agent = _agent(vel=(0.0, 0.0))
    integrate_agent(agent, SteeringDelta(0, Vector2()), 1.0, LIMITS)
    assert agent.velocity == Vector2()
    assert agent.orientation == Vector2(0.0, 1.0)
    assert agent.position == Vector2()


def test_orientation_follows_new_velocity():
    agent = _agent(vel=(10.0, 0.0))
    integrate_agent(agent, SteeringDelta(0, Vector2(-10.0, 20.0)), 1.0, LIMITS)
    assert agent.orientation.length() == approx(1.0)
    assert agent.orientation.x == approx(0.0, abs=1e-9)
    assert agent.orientation.y == approx(1.0)


def test_apply_deltas_drops_unknown_ids():
    agents = [_agent(0), _agent(1)]
    deltas = [SteeringDelta(0, Vector2(1.0, 0.0)), SteeringDelta(42, Vector2(1.0, 0.0)), SteeringDelta(1, Vector2())]
    applied = apply_deltas(agents, deltas, 1.0, LIMITS)
    assert applied == 2


def test_application_order_does_not_change_outcome():
    forward = [_agent(0, (10.0, 0.0)), _agent(1, (0.0, 10.0))]
    backward = [_agent(0, (10.0, 0.0)), _agent(1, (0.0, 10.0))]
    deltas = [SteeringDelta(0, Vector2(3.0, 1.0)), SteeringDelta(1, Vector2(-2.0, 4.0))]
    apply_deltas(forward, deltas, 0.5, LIMITS)
    apply_deltas(backward, list(reversed(deltas)), 0.5, LIMITS)
    for a, b in zip(forward, backward):
        assert a.velocity == b.velocity
        assert a.position == b.position
