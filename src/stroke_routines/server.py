"""HTTP and WebSocket surface for drawing clients.

Features:
- Routine CRUD (save / delete / toggle) backed by the routine store
- Gesture validation for the registration flow
- Recognize-and-execute for the drawing canvas
- Test runs of unsaved command lists
- Block catalog and registered host commands for the routine editor
- Prometheus metrics endpoint

Usage:
    stroke-routines serve
    # or
    uvicorn stroke_routines.server:app --host 127.0.0.1 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from stroke_routines import __version__
from stroke_routines.blocks import PREDEFINED_BLOCKS, blocks_by_category
from stroke_routines.config import EngineConfig
from stroke_routines.runtime import Runtime
from stroke_routines.session import DrawingSession
from stroke_routines.store import MemoryPersistence, Routine, ValidationError

logger = logging.getLogger("stroke_routines.server")

app = FastAPI(title="StrokeRoutines", version=__version__)


# --- State ---

class ServerState:
    def __init__(self):
        self.runtime: Runtime = Runtime.build(EngineConfig(), persistence=MemoryPersistence())
        self.canvas_clients: set[WebSocket] = set()

    def configure(self, runtime: Runtime):
        self.runtime = runtime


state = ServerState()


# --- Request bodies ---

class PointModel(BaseModel):
    x: float
    y: float


class CommandModel(BaseModel):
    type: str = "host-command"
    payload: str
    label: str = ""


class RoutineModel(BaseModel):
    name: str
    commands: list[Union[CommandModel, str]] = Field(default_factory=list)
    samples: list[list[PointModel]] = Field(default_factory=list)
    enabled: Optional[bool] = None
    delay_ms: int = Field(0, ge=0)


class StrokeModel(BaseModel):
    points: list[PointModel]


class ValidateModel(BaseModel):
    points: list[PointModel]
    exclude_name: Optional[str] = None


class TestRunModel(BaseModel):
    commands: list[Union[CommandModel, str]]
    delay_ms: int = Field(0, ge=0)


def _points(points: list[PointModel]) -> list[dict]:
    return [p.model_dump() for p in points]


def _commands(commands: list[Union[CommandModel, str]]) -> list:
    return [c if isinstance(c, str) else c.model_dump() for c in commands]


def _routine_or_404(name: str) -> Routine:
    routine = state.runtime.store.get(name)
    if routine is None:
        raise HTTPException(status_code=404, detail=f"Routine not found: {name}")
    return routine


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    rt = state.runtime
    return {
        "routines": len(rt.store),
        "enabled": len(rt.store.get_enabled()),
        "canvas_clients": len(state.canvas_clients),
        "recognition_threshold": rt.engine.threshold,
        "similarity_threshold": rt.validator.threshold,
        "notifications": rt.notifier.messages[-10:],
    }


@app.get("/api/routines")
async def list_routines():
    return {"routines": [r.to_dict() for r in state.runtime.store.get_all().values()]}


@app.get("/api/routines/{name}")
async def get_routine(name: str):
    return _routine_or_404(name).to_dict()


@app.post("/api/routines")
async def save_routine(body: RoutineModel):
    try:
        routine = Routine(
            name=body.name,
            commands=tuple(_commands(body.commands)),
            samples=tuple(_points(s) for s in body.samples),
            enabled=body.enabled,
            delay_ms=body.delay_ms,
        )
        saved = state.runtime.store.save_routine(routine)
    except ValidationError as e:
        state.runtime.notifier.error(f"Error saving routine: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    state.runtime.notifier.info(
        f'Routine saved: "{saved.name}" ({len(saved.commands)} commands)'
    )
    return saved.to_dict()


@app.delete("/api/routines/{name}")
async def delete_routine(name: str):
    if not state.runtime.store.delete(name):
        raise HTTPException(status_code=404, detail=f"Routine not found: {name}")
    return {"deleted": name}


@app.post("/api/routines/{name}/toggle")
async def toggle_routine(name: str):
    if not state.runtime.store.toggle(name):
        raise HTTPException(status_code=404, detail=f"Routine not found: {name}")
    return {"name": name, "enabled": state.runtime.store.get(name).is_enabled}


@app.post("/api/routines/{name}/run")
async def run_routine(name: str):
    routine = _routine_or_404(name)
    report = await state.runtime.executor.execute_routine(routine)
    return report.to_dict()


@app.post("/api/validate")
async def validate_gesture(body: ValidateModel):
    rt = state.runtime
    result = rt.validator.validate(
        _points(body.points), rt.store.get_all_gestures(), body.exclude_name
    )
    rt.metrics.record_validation(result.accepted)
    if not result.accepted:
        rt.notifier.warning(result.message)
    return result.to_dict()


@app.post("/api/recognize")
async def recognize(body: StrokeModel):
    result = await state.runtime.engine.recognize_and_execute(_points(body.points))
    return result.to_dict()


@app.post("/api/test")
async def run_unsaved_commands(body: TestRunModel):
    try:
        report = await state.runtime.executor.execute_commands(
            _commands(body.commands), delay_ms=body.delay_ms
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return report.to_dict()


@app.get("/api/blocks")
async def list_blocks(category: Optional[str] = None):
    if category is None:
        return {"blocks": [b.to_dict() for b in PREDEFINED_BLOCKS]}
    grouped = blocks_by_category()
    if category not in grouped:
        raise HTTPException(status_code=404, detail=f"Unknown block category: {category}")
    return {"blocks": [b.to_dict() for b in grouped[category]]}


@app.get("/api/commands")
async def list_commands():
    """Host command ids the executor can invoke."""
    host = state.runtime.executor.host
    return {"commands": list(getattr(host, "command_ids", []))}


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    rt = state.runtime
    rt.metrics.set_connections(len(state.canvas_clients))
    rt.metrics.set_routines(len(rt.store))
    return PlainTextResponse(
        rt.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: canvas ---

async def _handle_stroke(ws: WebSocket, session: DrawingSession, points: list):
    try:
        reply = await session.submit(points)
    except (KeyError, TypeError, ValueError) as e:
        await ws.send_json({"type": "error", "detail": f"Invalid stroke: {e}"})
        return
    message = reply.to_dict()
    message["type"] = "recognition_result" if reply.status == "completed" else reply.status
    try:
        await ws.send_json(message)
    except Exception as e:
        logger.debug(f"Canvas WS send failed: {e}")


@app.websocket("/ws/canvas")
async def canvas_websocket(ws: WebSocket):
    await ws.accept()
    state.canvas_clients.add(ws)
    session = state.runtime.new_session()
    tasks: set[asyncio.Task] = set()
    logger.info(f"Canvas client connected ({len(state.canvas_clients)} total)")

    try:
        await ws.send_json({
            "type": "connected",
            "routines": list(state.runtime.store.get_enabled().keys()),
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
                data = json.loads(msg)
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong"})
                elif data.get("type") == "stroke":
                    task = asyncio.create_task(_handle_stroke(ws, session, data.get("points", [])))
                    tasks.add(task)
                    task.add_done_callback(tasks.discard)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug(f"Canvas WS error: {e}")
    finally:
        state.canvas_clients.discard(ws)
        logger.info(f"Canvas client disconnected ({len(state.canvas_clients)} total)")
