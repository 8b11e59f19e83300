from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional, Sequence

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.agent import AgentPose
from ..sim.core.config import SimulationConfig
from ..sim.core.errors import InvalidParameterError
from ..sim.core.world import World

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoseFrame:
    tick: int
    payload: str


def pose_message(tick: int, poses: Sequence[AgentPose], params_version: int) -> Dict[str, Any]:
    return {
        "type": "poses",
        "tick": tick,
        "params_version": params_version,
        "agents": [
            {"id": pose.id, "position": list(pose.position), "orientation": list(pose.orientation)}
            for pose in poses
        ],
    }


class SimulationController:
    """
    Steps a World from an asyncio task and fans pose frames out to subscribers.

    Each subscriber has a cursor (last tick sent). Frames stay in the backlog
    until a client acknowledges them or the backlog bound pushes them out.
    """

    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, backlog: int = 256):
        self.config = config
        self.world = World(config)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.tick = 0
        self._frames: Deque[PoseFrame] = deque(maxlen=max(1, backlog))
        self._cursors: Dict[WebSocket, int] = {}
        self._step_lock = asyncio.Lock()
        self._loop_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def backlog_ticks(self) -> List[int]:
        return [frame.tick for frame in self._frames]

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("controller has been shut down")
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._run())
            logger.info("Simulation loop started (dt=%.4f)", self.config.time_step)
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if not self._closed:
            self.world.close()
            self._closed = True
            logger.info("Simulation loop stopped at tick %d", self.tick)

    async def reset(self) -> None:
        async with self._step_lock:
            self.world.reset()
            self.tick = 0
        self._frames.clear()
        for client in self._cursors:
            self._cursors[client] = -1
        await self.publish()

    async def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            async with self._step_lock:
                self.world.step(self.tick)
                self.tick += 1
            if self.tick % self.broadcast_interval == 0:
                await self.publish()

    def update_params(self, changes: Dict[str, Any]) -> Dict[str, float]:
        """Apply a live parameter edit; the next tick reads it from its snapshot."""
        updated = self.world.params.update(**changes)
        logger.info("Parameters updated (version %d): %s", self.world.params.version, changes)
        return updated.as_dict()

    def current_frame(self) -> PoseFrame:
        message = pose_message(self.tick, self.world.poses(), self.world.params.version)
        return PoseFrame(tick=self.tick, payload=json.dumps(message))

    def acknowledge(self, tick: int) -> None:
        while self._frames and self._frames[0].tick <= tick:
            self._frames.popleft()

    async def subscribe(self, websocket: WebSocket) -> None:
        self._cursors[websocket] = -1
        await self._flush(websocket)

    def unsubscribe(self, websocket: WebSocket) -> None:
        self._cursors.pop(websocket, None)

    async def publish(self) -> None:
        self._frames.append(self.current_frame())
        gone: List[WebSocket] = []
        for client in list(self._cursors):
            try:
                await self._flush(client)
            except WebSocketDisconnect:
                gone.append(client)
        for client in gone:
            self.unsubscribe(client)

    async def _flush(self, websocket: WebSocket) -> None:
        cursor = self._cursors.get(websocket, -1)
        for frame in [frame for frame in self._frames if frame.tick > cursor]:
            await websocket.send_text(frame.payload)
            cursor = frame.tick
        self._cursors[websocket] = cursor

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step)
            if self.running:
                await self.advance()


async def _handle_client_message(
    controller: SimulationController, websocket: WebSocket, message: Dict[str, Any]
) -> None:
    kind = message.get("type")
    if kind == "ack" and isinstance(message.get("tick"), int):
        controller.acknowledge(message["tick"])
    elif kind == "params" and isinstance(message.get("params"), dict):
        try:
            params = controller.update_params(message["params"])
        except InvalidParameterError as exc:
            await websocket.send_json({"type": "error", "error": str(exc)})
        else:
            await websocket.send_json(
                {"type": "params", "params": params, "version": controller.world.params.version}
            )


def create_app(controller: SimulationController, autostart: bool = True) -> FastAPI:
    api = FastAPI(title="Flocking Simulation")
    api.state.controller = controller

    @api.on_event("startup")
    async def _startup() -> None:
        if autostart:
            await controller.start()

    @api.on_event("shutdown")
    async def _shutdown() -> None:
        await controller.shutdown()

    @api.get("/api/status")
    async def status() -> JSONResponse:
        snapshot = controller.world.snapshot(controller.tick)
        return JSONResponse(
            {
                "running": controller.running,
                "tick": controller.tick,
                "population": len(snapshot.agents),
                "metrics": asdict(snapshot.metrics),
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            }
        )

    @api.get("/api/poses")
    async def poses() -> JSONResponse:
        return JSONResponse(pose_message(controller.tick, controller.world.poses(), controller.world.params.version))

    @api.get("/api/params")
    async def get_params() -> JSONResponse:
        store = controller.world.params
        return JSONResponse({"params": store.snapshot().as_dict(), "version": store.version})

    @api.post("/api/params")
    async def set_params(payload: dict) -> JSONResponse:
        try:
            params = controller.update_params(payload)
        except InvalidParameterError as exc:
            return JSONResponse({"error": str(exc)}, status_code=422)
        return JSONResponse({"params": params, "version": controller.world.params.version})

    @api.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        await controller.start()
        return JSONResponse({"running": controller.running})

    @api.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        await controller.stop()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @api.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @api.websocket("/ws")
    async def stream(websocket: WebSocket) -> None:
        await websocket.accept()
        await controller.subscribe(websocket)
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    message = json.loads(text)
                except json.JSONDecodeError:
                    continue
                if isinstance(message, dict):
                    await _handle_client_message(controller, websocket, message)
        except WebSocketDisconnect:
            logger.debug("Pose stream client disconnected")
        finally:
            controller.unsubscribe(websocket)

    return api


controller = SimulationController(SimulationConfig())
app = create_app(controller)


__all__ = ["PoseFrame", "SimulationController", "app", "controller", "create_app", "pose_message"]
