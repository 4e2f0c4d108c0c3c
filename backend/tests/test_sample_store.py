"""Tests for the sample store (fetch, partition, failure handling)."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from playback.errors import FetchError, InvalidArgument
from playback.sample_store import SampleStore, parse_samples, partition_samples

START = datetime(2025, 3, 1, 0, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=1)


def _row(boat: str, minutes: float, lat: float = 0.0, **extra) -> dict:
    row = {
        "boat_id": boat,
        "lat": lat,
        "lon": 77.5,
        "heading": 90,
        "speed": 4.0,
        "recorded_at": (START + timedelta(minutes=minutes)).isoformat(),
    }
    row.update(extra)
    return row


def _store(rows):
    async def query(start, end):
        if isinstance(rows, Exception):
            raise rows
        return rows
    return SampleStore(query)


def test_load_window_partitions_and_sorts():
    rows = [_row("b2", 30), _row("b1", 40), _row("b1", 10), _row("b2", 5), _row("b1", 20)]
    store = _store(rows)
    series = asyncio.run(store.load_window(START, END))
    assert set(series) == {"b1", "b2"}
    assert [s.recorded_at for s in series["b1"]] == sorted(s.recorded_at for s in series["b1"])
    assert len(series["b1"]) == 3 and len(series["b2"]) == 2
    assert store.window == (START, END)
    assert store.series is series


def test_ties_keep_arrival_order():
    rows = [_row("b1", 10, lat=1.0), _row("b1", 10, lat=2.0), _row("b1", 5, lat=0.0)]
    series = partition_samples(parse_samples(rows))
    assert [s.lat for s in series["b1"]] == [0.0, 1.0, 2.0]


def test_rows_outside_window_are_dropped():
    rows = [_row("b1", -1), _row("b1", 0), _row("b1", 60), _row("b1", 61)]
    series = asyncio.run(_store(rows).load_window(START, END))
    assert [s.recorded_at for s in series["b1"]] == [START, END]


def test_null_heading_and_speed_read_as_zero():
    [sample] = parse_samples([_row("b1", 1, heading=None, speed=None)])
    assert sample.heading == 0.0 and sample.speed == 0.0


def test_naive_timestamp_is_utc():
    [sample] = parse_samples([_row("b1", 0, recorded_at="2025-03-01T00:10:00")])
    assert sample.recorded_at == START + timedelta(minutes=10)


@pytest.mark.parametrize("bad_row", [
    {"lat": 1, "lon": 2, "recorded_at": "2025-03-01T00:10:00Z"},
    {"boat_id": "b1", "lat": 1, "lon": 2, "recorded_at": "yesterday-ish"},
    {"boat_id": "b1", "lat": 1, "lon": 2},
    "not a row",
])
def test_malformed_rows_fail_and_keep_previous_window(bad_row):
    good = [_row("b1", 10), _row("b1", 20)]
    rows = list(good)
    store = _store(rows)
    before = asyncio.run(store.load_window(START, END))

    rows.append(bad_row)
    with pytest.raises(FetchError):
        asyncio.run(store.load_window(START, END + timedelta(hours=1)))
    assert store.series is before
    assert store.window == (START, END)


def test_query_exception_becomes_fetch_error():
    store = _store(ConnectionError("socket closed"))
    with pytest.raises(FetchError, match="socket closed"):
        asyncio.run(store.load_window(START, END))
    assert store.series == {}
    assert store.window is None


def test_inverted_window_is_invalid_argument():
    with pytest.raises(InvalidArgument):
        asyncio.run(_store([]).fetch_window(END, START))


def test_fetch_window_does_not_install():
    store = _store([_row("b1", 10), _row("b1", 20)])
    series = asyncio.run(store.fetch_window(START, END))
    assert "b1" in series
    assert store.series == {}
    store.install(series, START, END)
    assert store.series is series


def test_empty_response_is_valid():
    store = _store([])
    assert asyncio.run(store.load_window(START, END)) == {}
    assert store.window == (START, END)


def test_clear_drops_everything():
    store = _store([_row("b1", 10)])
    asyncio.run(store.load_window(START, END))
    store.clear()
    assert store.series == {} and store.window is None
