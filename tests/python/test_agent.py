from __future__ import annotations

import dataclasses

import pytest
from pygame.math import Vector2

from flocking.sim.core.agent import Agent, AgentPose


def _make_agent(agent_id: int) -> Agent:
    return Agent(id=agent_id, position=Vector2(1.0, 2.0), velocity=Vector2(3.0, 0.0), orientation=Vector2(1.0, 0.0))


def test_agent_uses_slots_and_requires_every_field():
    agent = _make_agent(1)
    assert not hasattr(agent, "__dict__")
    assert hasattr(Agent, "__slots__")
    with pytest.raises(TypeError):
        Agent(id=2, position=Vector2(), velocity=Vector2())  # type: ignore[call-arg]


def test_pose_is_an_immutable_copy():
    agent = _make_agent(5)
    pose = agent.pose()
    agent.position.update(9.0, 9.0)

    assert pose == AgentPose(id=5, position=(1.0, 2.0), orientation=(1.0, 0.0))
    with pytest.raises(dataclasses.FrozenInstanceError):
        pose.id = 6  # type: ignore[misc]
