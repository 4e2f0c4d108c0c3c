"""
Fleet Playback — FastAPI backend
Streams the displayed boats (live or historical playback) via WebSocket and
exposes the playback controls over REST.
"""

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import (
    DEMO_MODE, DEFAULT_WINDOW_HOURS, DEFAULT_PLAYBACK_SPEED, FRAME_INTERVAL_SECONDS,
    WINDOW_PRESETS_HOURS, PLAYBACK_SPEED_STEPS,
)
from demo_fleet import DemoFleet
from live_feed import LiveFeed, parse_live_event
from playback import (
    FetchError, InvalidArgument, Mode, ModeController, PlaybackClock, SampleStore,
)
import database as db


# ── WebSocket Manager ─────────────────────────────────────────────────────────

class ConnectionManager:
    def __init__(self):
        self.clients: dict[str, WebSocket] = {}  # client_id → websocket

    async def connect(self, ws: WebSocket) -> str:
        client_id = str(uuid.uuid4())
        await ws.accept()
        self.clients[client_id] = ws
        return client_id

    def disconnect(self, client_id: str):
        self.clients.pop(client_id, None)

    async def broadcast(self, message: dict):
        """Send to all connected clients; drop the ones that fail."""
        dead = []
        payload = json.dumps(message)
        for cid, ws in list(self.clients.items()):
            try:
                await ws.send_text(payload)
            except (WebSocketDisconnect, RuntimeError, OSError):
                dead.append(cid)
        for cid in dead:
            self.clients.pop(cid, None)

    async def send_to(self, client_id: str, message: dict):
        ws = self.clients.get(client_id)
        if ws:
            try:
                await ws.send_text(json.dumps(message))
            except (WebSocketDisconnect, RuntimeError, OSError):
                self.clients.pop(client_id, None)


manager = ConnectionManager()
controller: ModeController | None = None
feed: LiveFeed | None = None
_tasks: list[asyncio.Task] = []


def build_controller(demo_mode: bool, fleet: DemoFleet | None = None) -> ModeController:
    query = fleet.history if demo_mode and fleet is not None else db.fetch_boat_logs
    now = datetime.now(timezone.utc)
    clock = PlaybackClock(now - timedelta(hours=DEFAULT_WINDOW_HOURS), now, DEFAULT_PLAYBACK_SPEED)
    return ModeController(SampleStore(query), clock, window_hours=DEFAULT_WINDOW_HOURS)


async def _seed(ctrl: ModeController, demo_mode: bool, fleet: DemoFleet | None):
    """Load the boat registry and current live positions before subscribing."""
    if demo_mode and fleet is not None:
        boats, live_rows = fleet.registry(), fleet.live_rows()
    else:
        boats = await db.fetch_boats()
        live_rows = await db.fetch_live_locations()
    ctrl.set_registry({str(b["id"]): b.get("name") or "" for b in boats if b.get("id") is not None})
    seeded = 0
    for row in live_rows:
        try:
            ctrl.apply_live_event(parse_live_event(row))
            seeded += 1
        except FetchError as e:
            print(f"[Startup] Skipping live row: {e}")
    print(f"[Startup] {len(boats)} boat(s) in registry, {seeded} live position(s)")


def _frame_message(ctrl: ModeController, units) -> dict:
    return {
        "type": "units",
        "data": [u.serialise() for u in units],
        "mode": ctrl.mode.value,
        "clock": ctrl.clock.state() if ctrl.mode is Mode.HISTORICAL else None,
    }


async def _frame_loop(ctrl: ModeController):
    """Animation callback: tick the clock and push the full displayed set every frame."""
    last = time.monotonic()
    while True:
        await asyncio.sleep(FRAME_INTERVAL_SECONDS)
        now = time.monotonic()
        elapsed, last = now - last, now
        try:
            units = ctrl.on_frame(elapsed)
            if manager.clients:
                await manager.broadcast(_frame_message(ctrl, units))
        except Exception as e:
            print(f"[Frame] Error: {e}")


async def _broadcast_status():
    if controller:
        await manager.broadcast({"type": "status", "data": controller.status()})


def _after_load(task: asyncio.Task | None):
    """Push a status update once a window fetch settles (installed, stale or failed)."""
    if task is None:
        return
    task.add_done_callback(lambda _t: asyncio.create_task(_broadcast_status()))


# ── Lifespan (startup / shutdown) ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    global controller, feed, _tasks

    fleet = DemoFleet() if DEMO_MODE else None
    controller = build_controller(DEMO_MODE, fleet)

    def on_connection_change(connected: bool):
        controller.feed_connected = connected

    try:
        await _seed(controller, DEMO_MODE, fleet)
    except FetchError as e:
        # Start anyway; realtime events will fill the live table.
        print(f"[Startup] Initial load failed: {e}")

    feed = LiveFeed(
        on_event=controller.apply_live_event,
        on_connection_change=on_connection_change,
        demo_mode=DEMO_MODE,
        fleet=fleet,
    )
    _tasks = [
        asyncio.create_task(feed.start()),
        asyncio.create_task(_frame_loop(controller)),
    ]
    print(f"[Startup] Running in {'DEMO' if DEMO_MODE else 'LIVE'} data mode")

    yield  # App running

    feed.stop()
    for task in _tasks:
        task.cancel()
    for task in _tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    _tasks = []


app = FastAPI(title="Fleet Playback", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _ctrl() -> ModeController:
    if controller is None:
        raise HTTPException(503, "Playback engine not started")
    return controller


# ── REST Endpoints ────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    ctrl = controller
    return {
        "status": "ok",
        "demo_mode": DEMO_MODE,
        "live_boats": len(ctrl.live_table) if ctrl else 0,
    }


@app.get("/units")
async def get_units():
    return [u.serialise() for u in _ctrl().project()]


@app.get("/status")
async def get_status():
    return _ctrl().status()


@app.get("/playback/options")
async def get_playback_options():
    return {"window_presets_hours": WINDOW_PRESETS_HOURS, "speed_steps": PLAYBACK_SPEED_STEPS}


class ModeRequest(BaseModel):
    historical: bool


class SeekRequest(BaseModel):
    time: datetime


class SpeedRequest(BaseModel):
    multiplier: float


class WindowRequest(BaseModel):
    hours: float


class StepRequest(BaseModel):
    amount: int
    unit: str


def _require_historical(ctrl: ModeController):
    if ctrl.mode is not Mode.HISTORICAL:
        raise HTTPException(409, "Playback controls are only available in historical mode")


@app.post("/mode")
async def switch_mode(body: ModeRequest):
    ctrl = _ctrl()
    if body.historical:
        _after_load(ctrl.enter_historical())
    else:
        ctrl.exit_historical()
    print(f"[Mode] {ctrl.mode.value.upper()}")
    await _broadcast_status()
    return ctrl.status()


@app.post("/playback/play")
async def play():
    ctrl = _ctrl()
    _require_historical(ctrl)
    ctrl.clock.play()
    return ctrl.clock.state()


@app.post("/playback/pause")
async def pause():
    ctrl = _ctrl()
    _require_historical(ctrl)
    ctrl.clock.pause()
    return ctrl.clock.state()


@app.post("/playback/seek")
async def seek(body: SeekRequest):
    ctrl = _ctrl()
    _require_historical(ctrl)
    when = body.time if body.time.tzinfo else body.time.replace(tzinfo=timezone.utc)
    ctrl.clock.seek(when)
    return ctrl.clock.state()


@app.post("/playback/step")
async def step(body: StepRequest):
    ctrl = _ctrl()
    _require_historical(ctrl)
    try:
        ctrl.clock.step(body.amount, body.unit)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return ctrl.clock.state()


@app.post("/playback/speed")
async def set_speed(body: SpeedRequest):
    ctrl = _ctrl()
    try:
        ctrl.clock.set_speed(body.multiplier)
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return ctrl.clock.state()


@app.post("/playback/speed/cycle")
async def cycle_speed():
    ctrl = _ctrl()
    ctrl.clock.cycle_speed()
    return ctrl.clock.state()


@app.post("/playback/window")
async def set_window(body: WindowRequest):
    ctrl = _ctrl()
    try:
        _after_load(ctrl.set_window_hours(body.hours))
    except InvalidArgument as e:
        raise HTTPException(400, str(e))
    return ctrl.status()


# ── WebSocket Endpoint ────────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    client_id = await manager.connect(websocket)
    try:
        ctrl = controller
        await manager.send_to(client_id, {
            "type": "init",
            "data": {
                "client_id": client_id,
                "units": [u.serialise() for u in ctrl.project()] if ctrl else [],
                "status": ctrl.status() if ctrl else {},
                "demo_mode": DEMO_MODE,
                "window_presets_hours": WINDOW_PRESETS_HOURS,
                "speed_steps": PLAYBACK_SPEED_STEPS,
            }
        })

        # Keep connection alive and answer pings
        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=30.0)
                msg = json.loads(data)
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await manager.send_to(client_id, {"type": "pong"})
            except asyncio.TimeoutError:
                await manager.send_to(client_id, {"type": "heartbeat"})
            except ValueError:
                continue
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(client_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
