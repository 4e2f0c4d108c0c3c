"""
Live Feed — push updates for boats' current positions.

In DEMO_MODE:
  - Steps the simulated DemoFleet every DEMO_STEP_SECONDS
  - Emits one event per boat in the same shape as a boat_live_locations row

In LIVE mode:
  - Connects to the Supabase Realtime websocket (Phoenix channel protocol)
  - Subscribes to postgres_changes on boat_live_locations
  - Heartbeats every REALTIME_HEARTBEAT_SECONDS, reconnects after transport errors

Every event replaces the previous value for that boat; it is handed to
on_event regardless of the display mode.
"""

import asyncio
import itertools
import json
from typing import Callable
from urllib.parse import urlsplit

import websockets
from pydantic import ValidationError

from config import (
    SUPABASE_URL, SUPABASE_KEY, DEMO_MODE, LIVE_LOCATIONS_TABLE,
    DEMO_STEP_SECONDS, REALTIME_HEARTBEAT_SECONDS, REALTIME_RECONNECT_SECONDS,
)
from demo_fleet import DemoFleet
from playback.errors import FetchError
from playback.models import LiveEvent

CHANNEL_TOPIC = "realtime:live-locations"


def parse_live_event(record: dict) -> LiveEvent:
    """Validate one live-location row. Raises FetchError on malformed payloads."""
    if not isinstance(record, dict):
        raise FetchError(f"Live payload is not an object: {record!r:.80}")
    try:
        return LiveEvent.model_validate(record)
    except ValidationError as e:
        raise FetchError(f"Malformed live event: {e.errors()[0].get('msg', e)}") from e


def realtime_url(base_url: str, key: str) -> str:
    parts = urlsplit(base_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    return f"{scheme}://{parts.netloc}/realtime/v1/websocket?apikey={key}&vsn=1.0.0"


def join_message(ref: str, key: str) -> str:
    return json.dumps({
        "topic": CHANNEL_TOPIC,
        "event": "phx_join",
        "payload": {
            "config": {
                "postgres_changes": [
                    {"event": "*", "schema": "public", "table": LIVE_LOCATIONS_TABLE},
                ],
            },
            "access_token": key,
        },
        "ref": ref,
    })


def extract_record(msg: dict) -> dict | None:
    """Pull the changed row out of a realtime frame, or None if it isn't a change."""
    if msg.get("event") != "postgres_changes":
        return None
    data = (msg.get("payload") or {}).get("data") or {}
    if data.get("type") == "DELETE":
        return None
    return data.get("record")


class LiveFeed:
    def __init__(
        self,
        on_event: Callable[[LiveEvent], object],
        on_connection_change: Callable[[bool], object] | None = None,
        demo_mode: bool | None = None,
        fleet: DemoFleet | None = None,
    ):
        self.on_event = on_event                          # callback(event: LiveEvent)
        self.on_connection_change = on_connection_change  # callback(connected: bool)
        self._demo_mode = demo_mode if demo_mode is not None else DEMO_MODE
        self.fleet = fleet if fleet is not None else (DemoFleet() if self._demo_mode else None)
        self._running = False
        self._refs = itertools.count(1)
        self.events_received = 0
        self.events_rejected = 0

    # ── Public API ────────────────────────────────────────────────────────────

    async def start(self):
        self._running = True
        if self._demo_mode:
            await self._demo_loop()
        else:
            await self._realtime_loop()

    def stop(self):
        self._running = False

    def handle_record(self, record: dict) -> LiveEvent | None:
        """Parse and forward one row. Malformed rows are counted and dropped."""
        try:
            event = parse_live_event(record)
        except FetchError as e:
            self.events_rejected += 1
            print(f"[Live] Dropped event: {e}")
            return None
        self.events_received += 1
        self.on_event(event)
        return event

    # ── Demo loop ─────────────────────────────────────────────────────────────

    async def _demo_loop(self):
        """Move demo boats every DEMO_STEP_SECONDS and push their positions."""
        self._set_connected(True)
        try:
            while self._running:
                for row in self.fleet.step(DEMO_STEP_SECONDS):
                    self.handle_record(row)
                await asyncio.sleep(DEMO_STEP_SECONDS)
        finally:
            self._set_connected(False)

    # ── Realtime loop ─────────────────────────────────────────────────────────

    async def _realtime_loop(self):
        """Connect to Supabase Realtime and process boat_live_locations changes.

        Reconnects after REALTIME_RECONNECT_SECONDS on any transport error; the
        live table keeps its last known positions in the meantime.
        """
        url = realtime_url(SUPABASE_URL, SUPABASE_KEY)

        while self._running:
            try:
                async with websockets.connect(url) as ws:
                    await ws.send(join_message(str(next(self._refs)), SUPABASE_KEY))
                    print(f"[Live] Subscribed to {LIVE_LOCATIONS_TABLE}")
                    self._set_connected(True)
                    heartbeat = asyncio.create_task(self._heartbeat(ws))
                    try:
                        while self._running:
                            try:
                                raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                            except asyncio.TimeoutError:
                                continue
                            self._process_frame(raw)
                    finally:
                        heartbeat.cancel()
            except (OSError, websockets.WebSocketException, FetchError) as e:
                print(f"[Live] Connection error: {e}. Reconnecting in {REALTIME_RECONNECT_SECONDS}s...")
                self._set_connected(False)
                await asyncio.sleep(REALTIME_RECONNECT_SECONDS)
        self._set_connected(False)

    async def _heartbeat(self, ws):
        while True:
            await asyncio.sleep(REALTIME_HEARTBEAT_SECONDS)
            try:
                await ws.send(json.dumps({
                    "topic": "phoenix", "event": "heartbeat", "payload": {}, "ref": str(next(self._refs)),
                }))
            except websockets.ConnectionClosed:
                # the receive loop sees the same close and reconnects
                return

    def _process_frame(self, raw):
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            print(f"[Live] Non-JSON frame ignored: {str(raw)[:80]}")
            return
        if msg.get("event") == "phx_reply" and (msg.get("payload") or {}).get("status") == "error":
            raise FetchError(f"Realtime join rejected: {msg['payload'].get('response')}")
        if msg.get("event") == "phx_error":
            raise FetchError("Realtime channel error")
        record = extract_record(msg)
        if record is not None:
            self.handle_record(record)

    def _set_connected(self, connected: bool):
        if self.on_connection_change is not None:
            self.on_connection_change(connected)
