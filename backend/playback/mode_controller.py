"""
Mode Controller — owns LIVE / HISTORICAL and everything that changes with it.

LIVE → HISTORICAL   set the mode, fetch the window ending now, then install
                    the samples and reset the clock to the window end.
HISTORICAL → LIVE   pause the clock and drop the samples (re-entry re-fetches).
Window change       while HISTORICAL, fetch the new range and reset the clock.

Every fetch carries a ticket (generation, mode, window). A result is only
installed if its ticket is still the latest one when it lands; anything else
is discarded, so a slow fetch can never overwrite newer data or leak
historical boats into LIVE. Fetch failures leave the previous samples and
clock window untouched.

Live events are merged into the live table in both modes; the table is only
rendered while LIVE.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, NamedTuple, Optional

from config import DEFAULT_WINDOW_HOURS
from .clock import PlaybackClock
from .errors import FetchError, InvalidArgument
from .interpolator import Interpolator
from .models import LiveEvent, Mode, UnitSnapshot
from .projection import project
from .sample_store import SampleStore

logger = logging.getLogger(__name__)


class FetchTicket(NamedTuple):
    generation: int
    mode: Mode
    start: datetime
    end: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModeController:
    def __init__(
        self,
        store: SampleStore,
        clock: PlaybackClock,
        interpolator: Optional[Interpolator] = None,
        window_hours: float = DEFAULT_WINDOW_HOURS,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.clock = clock
        self.interpolator = interpolator or Interpolator()
        self.mode = Mode.LIVE
        self.window_hours = float(window_hours)
        self.live_table: dict[str, UnitSnapshot] = {}
        self.names: dict[str, str] = {}

        self.loading = False
        self.last_error: str | None = None
        self.feed_connected = False

        self._now = now
        self._generation = 0
        self._pending: FetchTicket | None = None
        self._load_task: asyncio.Task | None = None

    # ── Live table ────────────────────────────────────────────────────────────

    def set_registry(self, names: Mapping[str, str]):
        """Boat id → display name. Existing live entries pick up the new names."""
        self.names = dict(names)
        for unit_id, snap in list(self.live_table.items()):
            name = self.names.get(unit_id)
            if name and name != snap.name:
                self.live_table[unit_id] = snap.model_copy(update={"name": name})

    def apply_live_event(self, event: LiveEvent) -> UnitSnapshot:
        """Replace the boat's live entry. Merged in every mode, rendered only in LIVE."""
        snap = UnitSnapshot.from_live_event(event, name=self.names.get(event.unit_id))
        self.live_table[event.unit_id] = snap
        return snap

    # ── Transitions ───────────────────────────────────────────────────────────

    def enter_historical(self) -> asyncio.Task | None:
        if self.mode is Mode.HISTORICAL:
            return None
        self.mode = Mode.HISTORICAL
        logger.info("Entering historical mode (%sh window)", self.window_hours)
        return self._schedule_load()

    def exit_historical(self):
        if self.mode is Mode.LIVE:
            return
        self.mode = Mode.LIVE
        # any in-flight fetch is now stale
        self._generation += 1
        self._pending = None
        self.loading = False
        self.last_error = None
        self.clock.pause()
        self.store.clear()
        self.interpolator.reset()
        logger.info("Back to live mode")

    def toggle(self) -> asyncio.Task | None:
        if self.mode is Mode.LIVE:
            return self.enter_historical()
        self.exit_historical()
        return None

    def set_window_hours(self, hours: float) -> asyncio.Task | None:
        """Change the history range (last N hours). Re-fetches only while HISTORICAL."""
        try:
            value = float(hours)
        except (TypeError, ValueError):
            raise InvalidArgument(f"Window hours must be a number, got {hours!r}") from None
        if not value > 0 or math.isinf(value):
            raise InvalidArgument(f"Window hours must be positive, got {hours!r}")
        self.window_hours = value
        if self.mode is Mode.HISTORICAL:
            return self._schedule_load()
        return None

    # ── Fetching ──────────────────────────────────────────────────────────────

    def issue_ticket(self) -> FetchTicket:
        self._generation += 1
        end = self._now()
        start = end - timedelta(hours=self.window_hours)
        ticket = FetchTicket(self._generation, self.mode, start, end)
        self._pending = ticket
        self.loading = True
        return ticket

    def is_current(self, ticket: FetchTicket) -> bool:
        return (
            ticket == self._pending
            and ticket.generation == self._generation
            and ticket.mode is self.mode
            and self.mode is Mode.HISTORICAL
        )

    def _schedule_load(self) -> asyncio.Task:
        ticket = self.issue_ticket()
        self._load_task = asyncio.create_task(self.load(ticket))
        return self._load_task

    async def load(self, ticket: FetchTicket) -> bool:
        """Run one fetch and install it if still current. Returns True when installed."""
        try:
            series = await self.store.fetch_window(ticket.start, ticket.end)
        except FetchError as e:
            if not self.is_current(ticket):
                logger.debug("Ignoring failure of stale fetch #%d: %s", ticket.generation, e)
                return False
            self.loading = False
            self.last_error = str(e)
            logger.warning("History fetch failed, keeping previous data: %s", e)
            return False

        if not self.is_current(ticket):
            logger.debug("Discarding stale fetch #%d", ticket.generation)
            return False

        self.store.install(series, ticket.start, ticket.end)
        self.interpolator.reset()
        self.clock.set_window(ticket.start, ticket.end, reset_to_end=True)
        self._pending = None
        self.loading = False
        self.last_error = None
        logger.info("Loaded %d boat series for %s → %s", len(series), ticket.start.isoformat(), ticket.end.isoformat())
        return True

    # ── Frame ─────────────────────────────────────────────────────────────────

    def project(self) -> list[UnitSnapshot]:
        return project(
            self.mode,
            self.clock,
            self.live_table,
            self.store.series,
            interpolator=self.interpolator,
            names=self.names,
        )

    def on_frame(self, elapsed_seconds: float) -> list[UnitSnapshot]:
        """Animation callback: advance the clock (HISTORICAL only) and project."""
        if self.mode is Mode.HISTORICAL:
            self.clock.tick(elapsed_seconds)
        return self.project()

    def status(self) -> dict:
        return {
            "mode": self.mode.value,
            "window_hours": self.window_hours,
            "loading": self.loading,
            "stale": self.last_error is not None,
            "error": self.last_error,
            "feed_connected": self.feed_connected,
            "clock": self.clock.state() if self.mode is Mode.HISTORICAL else None,
        }
