"""
Interpolator — synthesises a boat's position for any instant inside its
recorded samples.

Position and heading are blended between the two samples that bracket the
instant. Speed and battery are taken from the earlier sample (step function).
Outside the first/last sample, or with fewer than two samples, the boat is
hidden rather than extrapolated.

The bracket search is pluggable: a binary search, or a linear scan that
resumes from the last index found for each boat (playback mostly moves
forward, so this is usually O(1) per frame).
"""

from bisect import bisect_right
from datetime import datetime
from typing import Optional, Protocol, Sequence

from .models import Sample, UnitSnapshot


def heading_lerp(h1: float, h2: float, factor: float) -> float:
    """Blend two headings the short way round the circle (350 → 10 passes 0, not 180)."""
    if abs(h2 - h1) > 180:
        if h2 > h1:
            h1 += 360
        else:
            h2 += 360
    return (h1 + (h2 - h1) * factor) % 360


def bracket_factor(p1: Sample, p2: Sample, instant: datetime) -> float:
    span = (p2.recorded_at - p1.recorded_at).total_seconds()
    if span <= 0:
        return 0.0
    return (instant - p1.recorded_at).total_seconds() / span


def _covers(series: Sequence[Sample], instant: datetime) -> bool:
    return len(series) >= 2 and series[0].recorded_at <= instant <= series[-1].recorded_at


class BracketSearch(Protocol):
    def find(self, series: Sequence[Sample], instant: datetime, hint: int = 0) -> int:
        """Return i with series[i].recorded_at <= instant <= series[i + 1].recorded_at.

        Callers guarantee the series covers the instant.
        """
        ...


class BisectSearch:
    def find(self, series: Sequence[Sample], instant: datetime, hint: int = 0) -> int:
        lo = bisect_right(series, instant, key=lambda s: s.recorded_at) - 1
        return min(max(lo, 0), len(series) - 2)


class LinearSearch:
    def find(self, series: Sequence[Sample], instant: datetime, hint: int = 0) -> int:
        i = min(max(hint, 0), len(series) - 2)
        while i > 0 and series[i].recorded_at > instant:
            i -= 1
        while i < len(series) - 2 and series[i + 1].recorded_at < instant:
            i += 1
        return i


def interpolate(p1: Sample, p2: Sample, instant: datetime, name: Optional[str] = None) -> UnitSnapshot:
    factor = bracket_factor(p1, p2, instant)
    return UnitSnapshot(
        unit_id=p1.unit_id,
        name=name,
        lat=p1.lat + (p2.lat - p1.lat) * factor,
        lon=p1.lon + (p2.lon - p1.lon) * factor,
        heading=heading_lerp(p1.heading, p2.heading, factor),
        speed=p1.speed,
        battery_level=p1.battery_level,
        last_updated=instant,
        source="historical",
    )


def resolve(
    series: Sequence[Sample],
    instant: datetime,
    search: Optional[BracketSearch] = None,
    name: Optional[str] = None,
) -> UnitSnapshot | None:
    """Position of one boat at `instant`, or None when no bracket exists."""
    if not _covers(series, instant):
        return None
    i = (search or BisectSearch()).find(series, instant)
    return interpolate(series[i], series[i + 1], instant, name=name)


class Interpolator:
    """Per-boat resolver that remembers where the last bracket was found."""

    def __init__(self, search: Optional[BracketSearch] = None):
        self.search = search or LinearSearch()
        self._hints: dict[str, int] = {}

    def resolve(
        self,
        unit_id: str,
        series: Sequence[Sample],
        instant: datetime,
        name: Optional[str] = None,
    ) -> UnitSnapshot | None:
        if not _covers(series, instant):
            return None
        i = self.search.find(series, instant, self._hints.get(unit_id, 0))
        self._hints[unit_id] = i
        return interpolate(series[i], series[i + 1], instant, name=name)

    def reset(self) -> None:
        """Forget cached indices (call when the series are replaced)."""
        self._hints.clear()
