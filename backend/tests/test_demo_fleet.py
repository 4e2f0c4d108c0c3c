"""Tests for the simulated fleet and an offline end-to-end playback."""

import asyncio
from datetime import datetime, timedelta, timezone

from config import DEMO_BACKFILL_HOURS
from demo_fleet import DEMO_BOATS_SPEC, DemoFleet
from live_feed import parse_live_event
from playback.clock import PlaybackClock
from playback.mode_controller import ModeController
from playback.models import Mode
from playback.sample_store import SampleStore

NOW = datetime(2025, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_registry_and_live_rows_parse():
    fleet = DemoFleet(now=NOW)
    assert len(fleet.registry()) == len(DEMO_BOATS_SPEC)
    events = [parse_live_event(row) for row in fleet.live_rows(NOW)]
    assert {e.unit_id for e in events} == {b["id"] for b in DEMO_BOATS_SPEC}


def test_history_covers_backfill_and_respects_range():
    fleet = DemoFleet(now=NOW)
    start = NOW - timedelta(hours=DEMO_BACKFILL_HOURS)
    rows = asyncio.run(fleet.history(start, NOW))
    stamps = [datetime.fromisoformat(r["recorded_at"]) for r in rows]
    assert min(stamps) == start
    assert max(stamps) == NOW

    rows = asyncio.run(fleet.history(NOW - timedelta(hours=1), NOW))
    assert all(NOW - timedelta(hours=1) <= datetime.fromisoformat(r["recorded_at"]) <= NOW for r in rows)


def test_step_moves_boats_and_logs():
    fleet = DemoFleet(now=NOW)
    before = {r["boat_id"]: (r["lat"], r["lon"]) for r in fleet.live_rows(NOW)}
    later = NOW + timedelta(seconds=5)
    rows = fleet.step(5, now=later)
    after = {r["boat_id"]: (r["lat"], r["lon"]) for r in rows}
    assert before != after
    logged = asyncio.run(fleet.history(later, later))
    assert len(logged) == len(DEMO_BOATS_SPEC)


def test_same_seed_same_history():
    a = asyncio.run(DemoFleet(seed=3, now=NOW).history(NOW - timedelta(hours=2), NOW))
    b = asyncio.run(DemoFleet(seed=3, now=NOW).history(NOW - timedelta(hours=2), NOW))
    assert a == b


def test_offline_playback_end_to_end():
    fleet = DemoFleet(now=NOW)

    async def scenario():
        clock = PlaybackClock(NOW - timedelta(hours=24), NOW)
        ctrl = ModeController(SampleStore(fleet.history), clock, window_hours=6, now=lambda: NOW)
        ctrl.set_registry({b["id"]: b["name"] for b in fleet.registry()})
        await ctrl.enter_historical()
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.mode is Mode.HISTORICAL
    at_end = ctrl.on_frame(0.1)
    assert len(at_end) == len(DEMO_BOATS_SPEC)
    assert all(u.name for u in at_end)

    ctrl.clock.seek(NOW - timedelta(hours=3, minutes=4))
    ctrl.clock.play()
    frames = [ctrl.on_frame(0.5) for _ in range(10)]
    assert all(len(f) == len(DEMO_BOATS_SPEC) for f in frames)
    assert ctrl.clock.virtual_time == NOW - timedelta(hours=3, minutes=4) + timedelta(seconds=50)
