"""Tests for the per-frame render projection."""

from datetime import datetime, timedelta, timezone

from playback.clock import PlaybackClock
from playback.models import LiveEvent, Mode, Sample, UnitSnapshot
from playback.projection import project

T0 = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _sample(unit: str, minutes: int, lat: float) -> Sample:
    return Sample(unit_id=unit, lat=lat, lon=0.0, recorded_at=T0 + timedelta(minutes=minutes))


def _live_table() -> dict[str, UnitSnapshot]:
    event = LiveEvent(unit_id="b1", lat=1.0, lon=2.0, heading=10, speed=4, timestamp=T0)
    return {"b1": UnitSnapshot.from_live_event(event, name="Sea Pearl")}


SERIES = {
    "b1": [_sample("b1", 0, 0.0), _sample("b1", 60, 6.0)],
    "b2": [_sample("b2", 30, 3.0), _sample("b2", 90, 9.0)],
    "b3": [_sample("b3", 10, 1.0)],
}


def test_live_returns_table_verbatim():
    table = _live_table()
    clock = PlaybackClock(T0, T0 + timedelta(hours=2))
    assert project(Mode.LIVE, clock, table, SERIES) == list(table.values())
    assert project(Mode.LIVE, None, table, SERIES) == list(table.values())


def test_historical_interpolates_and_omits_unbracketed():
    clock = PlaybackClock(T0, T0 + timedelta(hours=2))
    clock.seek(T0 + timedelta(minutes=45))
    units = {u.unit_id: u for u in project(Mode.HISTORICAL, clock, _live_table(), SERIES, names={"b2": "Neithal"})}
    assert set(units) == {"b1", "b2"}
    assert units["b1"].lat == 4.5
    assert units["b2"].lat == 4.5
    assert units["b2"].name == "Neithal"
    assert units["b1"].last_updated == T0 + timedelta(minutes=45)


def test_historical_ignores_live_table():
    clock = PlaybackClock(T0, T0 + timedelta(hours=2))
    clock.seek(T0 + timedelta(minutes=100))
    assert project(Mode.HISTORICAL, clock, _live_table(), SERIES) == []


def test_historical_without_clock_is_empty():
    assert project(Mode.HISTORICAL, None, _live_table(), SERIES) == []
