"""
Render Projection — the map-ready set of boats for one frame.

LIVE returns the live table as-is. HISTORICAL resolves every boat with a
sample series at the clock's virtual time and drops the ones without a
bracket. The result always replaces the previously displayed set.
"""

from typing import Mapping, Optional, Sequence

from .clock import PlaybackClock
from .interpolator import Interpolator
from .models import Mode, Sample, UnitSnapshot


def project(
    mode: Mode,
    clock: Optional[PlaybackClock],
    live_table: Mapping[str, UnitSnapshot],
    series_by_unit: Mapping[str, Sequence[Sample]],
    interpolator: Optional[Interpolator] = None,
    names: Optional[Mapping[str, str]] = None,
) -> list[UnitSnapshot]:
    if mode is Mode.LIVE:
        return list(live_table.values())

    if clock is None:
        return []
    interpolator = interpolator or Interpolator()
    names = names or {}
    instant = clock.virtual_time
    out = []
    for unit_id, series in series_by_unit.items():
        snap = interpolator.resolve(unit_id, series, instant, name=names.get(unit_id))
        if snap is not None:
            out.append(snap)
    return out
