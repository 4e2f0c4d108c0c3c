"""
Demo Fleet — simulated boats for running without Supabase.

  - Boats move along their course every DEMO_STEP_SECONDS with a little jitter
  - Every move is a live event in the same shape as a boat_live_locations row
  - A backfilled boat_logs history (one row every DEMO_LOG_INTERVAL_SECONDS,
    DEMO_BACKFILL_HOURS deep) answers historical queries
"""

import math
import random
from collections import deque
from datetime import datetime, timedelta, timezone

from config import (
    DEMO_CENTER, DEMO_STEP_SECONDS, DEMO_BACKFILL_HOURS, DEMO_LOG_INTERVAL_SECONDS,
)

KNOTS_TO_DEG_PER_SEC = 0.000083333  # approx, 1 NM ≈ 1/60 deg latitude

DEMO_BOATS_SPEC = [
    {"id": "b-0001", "name": "Kadal Rani",   "dlat": 0.02,  "dlon": -0.05, "heading": 200, "speed": 6.5},
    {"id": "b-0002", "name": "Muthu Maari",  "dlat": -0.04, "dlon": 0.03,  "heading": 110, "speed": 8.0},
    {"id": "b-0003", "name": "St. Antony",   "dlat": 0.06,  "dlon": 0.08,  "heading": 45,  "speed": 5.0},
    {"id": "b-0004", "name": "Amman Arul",   "dlat": -0.08, "dlon": -0.02, "heading": 270, "speed": 7.2},
    {"id": "b-0005", "name": "Sea Pearl",    "dlat": 0.01,  "dlon": 0.12,  "heading": 350, "speed": 9.0},
    {"id": "b-0006", "name": "Velankanni",   "dlat": -0.12, "dlon": 0.06,  "heading": 160, "speed": 4.5},
    {"id": "b-0007", "name": "Thoothu Star", "dlat": 0.09,  "dlon": -0.10, "heading": 20,  "speed": 6.0},
    {"id": "b-0008", "name": "Neithal",      "dlat": -0.03, "dlon": -0.11, "heading": 300, "speed": 3.5},
]


def _move(boat: dict, dt: float, rng: random.Random):
    """Advance one boat along its heading by dt seconds."""
    deg = boat["speed"] * KNOTS_TO_DEG_PER_SEC * dt
    dlat = deg * math.cos(math.radians(boat["heading"]))
    dlon = deg * math.sin(math.radians(boat["heading"])) / math.cos(math.radians(boat["lat"] + 0.001))
    boat["lat"] += dlat
    boat["lon"] += dlon

    # keep boats inside a ~0.3 deg box around the harbour; turn back when outside
    clat, clon = DEMO_CENTER
    if abs(boat["lat"] - clat) > 0.3 or abs(boat["lon"] - clon) > 0.3:
        back = math.degrees(math.atan2(clon - boat["lon"], clat - boat["lat"]))
        boat["heading"] = back % 360
    else:
        boat["heading"] = (boat["heading"] + rng.uniform(-4, 4)) % 360

    boat["speed"] = max(0.0, boat["speed"] + rng.uniform(-0.3, 0.3))
    boat["battery_level"] = max(5.0, boat["battery_level"] - rng.uniform(0, 0.02))


class DemoFleet:
    def __init__(self, seed: int = 7, now: datetime | None = None):
        self._rng = random.Random(seed)
        self._boats: dict[str, dict] = {}
        self._logs: deque[dict] = deque()

        clat, clon = DEMO_CENTER
        for spec in DEMO_BOATS_SPEC:
            self._boats[spec["id"]] = {
                "id": spec["id"],
                "name": spec["name"],
                "lat": clat + spec["dlat"],
                "lon": clon + spec["dlon"],
                "heading": float(spec["heading"]),
                "speed": spec["speed"],
                "battery_level": 100.0,
            }
        self._backfill(now or datetime.now(timezone.utc))

    def _backfill(self, now: datetime):
        t = now - timedelta(hours=DEMO_BACKFILL_HOURS)
        step = timedelta(seconds=DEMO_LOG_INTERVAL_SECONDS)
        while t <= now:
            for boat in self._boats.values():
                self._log(boat, t)
                _move(boat, DEMO_LOG_INTERVAL_SECONDS, self._rng)
            t += step

    def _log(self, boat: dict, when: datetime):
        self._logs.append({
            "boat_id": boat["id"],
            "lat": round(boat["lat"], 6),
            "lon": round(boat["lon"], 6),
            "heading": round(boat["heading"], 1),
            "speed": round(boat["speed"], 2),
            "battery_level": round(boat["battery_level"], 1),
            "recorded_at": when.isoformat(),
        })

    # ── Public API ────────────────────────────────────────────────────────────

    def registry(self) -> list[dict]:
        return [{"id": b["id"], "name": b["name"]} for b in self._boats.values()]

    def live_rows(self, now: datetime | None = None) -> list[dict]:
        when = (now or datetime.now(timezone.utc)).isoformat()
        return [
            {
                "boat_id": b["id"],
                "lat": round(b["lat"], 6),
                "lon": round(b["lon"], 6),
                "heading": round(b["heading"], 1),
                "speed": round(b["speed"], 2),
                "battery_level": round(b["battery_level"], 1),
                "last_updated": when,
            }
            for b in self._boats.values()
        ]

    def step(self, dt: float = DEMO_STEP_SECONDS, now: datetime | None = None) -> list[dict]:
        """Move every boat, append a log row each, and return the new live rows."""
        now = now or datetime.now(timezone.utc)
        for boat in self._boats.values():
            _move(boat, dt, self._rng)
            self._log(boat, now)

        cutoff = now - timedelta(hours=DEMO_BACKFILL_HOURS)
        while self._logs and datetime.fromisoformat(self._logs[0]["recorded_at"]) < cutoff:
            self._logs.popleft()
        return self.live_rows(now)

    async def history(self, start: datetime, end: datetime) -> list[dict]:
        """Same contract as database.fetch_boat_logs."""
        out = []
        for row in self._logs:
            ts = datetime.fromisoformat(row["recorded_at"])
            if start <= ts <= end:
                out.append(row)
        return out
