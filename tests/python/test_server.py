import pytest
from fastapi.testclient import TestClient

from flocking.app.server import SimulationController, create_app
from flocking.sim.core.config import SimulationConfig


@pytest.fixture
def client():
    controller = SimulationController(SimulationConfig(initial_population=6))
    with TestClient(create_app(controller, autostart=False)) as test_client:
        yield test_client


def _controller(client: TestClient) -> SimulationController:
    return client.app.state.controller


def test_status_reports_idle_world(client):
    body = client.get("/api/status").json()
    assert body["running"] is False
    assert body["tick"] == 0
    assert body["population"] == 6
    assert body["world"] == {"width": 800.0, "height": 600.0, "border": 10.0}
    assert body["metadata"]["seed"] == 42


def test_start_and_stop_toggle_running(client):
    assert client.post("/api/control/start").json() == {"running": True}
    assert client.get("/api/status").json()["running"] is True
    assert client.post("/api/control/stop").json()["running"] is False
    assert client.get("/api/status").json()["running"] is False


def test_reset_restores_initial_poses(client):
    controller = _controller(client)
    initial = client.get("/api/poses").json()
    controller.world.step(0)
    controller.tick = 1
    moved = client.get("/api/poses").json()
    assert moved["tick"] == 1
    assert moved["agents"] != initial["agents"]

    assert client.post("/api/control/reset").json()["tick"] == 0
    assert client.get("/api/poses").json()["agents"] == initial["agents"]


def test_params_update_and_rejection(client):
    before = client.get("/api/params").json()
    assert before["params"]["cohesion_weight"] == 1.0

    response = client.post("/api/params", json={"cohesion_weight": 2.5})
    assert response.status_code == 200
    assert response.json()["params"]["cohesion_weight"] == 2.5
    assert response.json()["version"] == before["version"] + 1

    assert client.post("/api/params", json={"view_radius": -1}).status_code == 422
    assert client.post("/api/params", json={"gravity": 1.0}).status_code == 422
    assert client.get("/api/params").json()["params"]["cohesion_weight"] == 2.5


def test_websocket_streams_poses_and_takes_params(client):
    with client.websocket_connect("/ws") as ws:
        client.post("/api/control/reset")
        frame = ws.receive_json()
        assert frame["type"] == "poses"
        assert frame["tick"] == 0
        assert [agent["id"] for agent in frame["agents"]] == list(range(6))

        ws.send_json({"type": "params", "params": {"alignment_weight": 0.25}})
        reply = ws.receive_json()
        assert reply["type"] == "params"
        assert reply["params"]["alignment_weight"] == 0.25

        ws.send_json({"type": "params", "params": {"view_angle": 10.0}})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "ack", "tick": 0})
    assert _controller(client).world.params.snapshot().alignment_weight == 0.25
