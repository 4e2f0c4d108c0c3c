"""Tests for the REST surface, run against the demo fleet."""

import pytest
from fastapi.testclient import TestClient

import config
import main

pytestmark = pytest.mark.skipif(not config.DEMO_MODE, reason="needs DEMO_MODE (no Supabase configured)")


@pytest.fixture
def client():
    with TestClient(main.app) as c:
        yield c


def test_health_and_live_units(client):
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["demo_mode"] is True

    units = client.get("/units").json()
    assert len(units) == health["live_boats"] > 0
    assert {u["source"] for u in units} == {"live"}


def test_playback_controls_require_historical(client):
    assert client.post("/playback/play").status_code == 409


def test_invalid_arguments_are_400(client):
    assert client.post("/playback/speed", json={"multiplier": 0}).status_code == 400
    assert client.post("/playback/window", json={"hours": -1}).status_code == 400
    client.post("/mode", json={"historical": True})
    assert client.post("/playback/step", json={"amount": 1, "unit": "weeks"}).status_code == 400


def test_mode_round_trip(client):
    status = client.post("/mode", json={"historical": True}).json()
    assert status["mode"] == "historical"
    assert client.post("/playback/play").json()["is_playing"] is True
    assert client.post("/playback/pause").json()["is_playing"] is False
    assert client.post("/playback/speed/cycle").json()["speed_multiplier"] == 60

    status = client.post("/mode", json={"historical": False}).json()
    assert status["mode"] == "live"
    assert status["clock"] is None
    assert {u["source"] for u in client.get("/units").json()} == {"live"}


def test_options(client):
    options = client.get("/playback/options").json()
    assert options["window_presets_hours"] == [1, 6, 12, 24, 168]
    assert options["speed_steps"] == [1, 10, 60, 120]
