"""
Sample Store — per-boat ordered samples for the currently loaded window.

Fetching and installing are separate steps so the Mode Controller can drop a
result that went stale while it was in flight.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Awaitable, Callable, Iterable

from pydantic import ValidationError

from .errors import FetchError, InvalidArgument
from .models import Sample

logger = logging.getLogger(__name__)

# async (start, end) -> raw rows, any order
HistoryQuery = Callable[[datetime, datetime], Awaitable[list[dict]]]

SampleSeries = list[Sample]


def parse_samples(rows: Iterable[dict]) -> list[Sample]:
    """Validate raw rows. A row missing its boat id or timestamp fails the whole batch."""
    samples = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise FetchError(f"Row {i} is not an object: {row!r:.80}")
        try:
            samples.append(Sample.model_validate(row))
        except ValidationError as e:
            raise FetchError(f"Malformed sample row {i}: {e.errors()[0].get('msg', e)}") from e
    return samples


def partition_samples(samples: Iterable[Sample]) -> dict[str, SampleSeries]:
    """Group by boat and sort each group by recorded_at. Ties keep arrival order."""
    grouped: dict[str, SampleSeries] = defaultdict(list)
    for s in samples:
        grouped[s.unit_id].append(s)
    return {
        unit_id: sorted(series, key=lambda s: s.recorded_at)
        for unit_id, series in grouped.items()
    }


class SampleStore:
    def __init__(self, query: HistoryQuery):
        self._query = query
        self._series: dict[str, SampleSeries] = {}
        self._window: tuple[datetime, datetime] | None = None

    @property
    def series(self) -> dict[str, SampleSeries]:
        return self._series

    @property
    def window(self) -> tuple[datetime, datetime] | None:
        return self._window

    async def fetch_window(self, start: datetime, end: datetime) -> dict[str, SampleSeries]:
        """Query and partition [start, end] without touching the installed data."""
        if start > end:
            raise InvalidArgument(f"Window start {start.isoformat()} is after end {end.isoformat()}")
        try:
            rows = await self._query(start, end)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(f"History query failed: {e}") from e
        if rows is None:
            rows = []
        samples = [s for s in parse_samples(rows) if start <= s.recorded_at <= end]
        series = partition_samples(samples)
        logger.debug("Fetched %d samples for %d boats", len(samples), len(series))
        return series

    def install(self, series: dict[str, SampleSeries], start: datetime, end: datetime) -> None:
        self._series = series
        self._window = (start, end)

    async def load_window(self, start: datetime, end: datetime) -> dict[str, SampleSeries]:
        """Fetch and install. On FetchError the previous window stays in place."""
        series = await self.fetch_window(start, end)
        self.install(series, start, end)
        return series

    def clear(self) -> None:
        self._series = {}
        self._window = None
