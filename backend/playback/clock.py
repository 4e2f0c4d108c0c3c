"""
Playback Clock — the single virtual-time cursor for historical playback.

Paused: virtual time only moves on seek/step.
Playing: every tick advances virtual time by elapsed wall time × speed, and
playback stops by itself at the end of the window (no looping).
"""

import calendar
import logging
from datetime import datetime, timedelta

from config import DEFAULT_PLAYBACK_SPEED, PLAYBACK_SPEED_STEPS
from .errors import InvalidArgument

logger = logging.getLogger(__name__)

STEP_UNITS = ("minutes", "hours", "days", "months")


def _add_months(when: datetime, months: int) -> datetime:
    month_index = when.month - 1 + months
    year = when.year + month_index // 12
    month = month_index % 12 + 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


class PlaybackClock:
    def __init__(self, window_start: datetime, window_end: datetime, speed_multiplier: float = DEFAULT_PLAYBACK_SPEED):
        if window_start > window_end:
            raise InvalidArgument("window_start must not be after window_end")
        if not speed_multiplier > 0:
            raise InvalidArgument(f"Speed multiplier must be positive, got {speed_multiplier!r}")
        self.window_start = window_start
        self.window_end = window_end
        self.virtual_time = window_end
        self.speed_multiplier = float(speed_multiplier)
        self.is_playing = False

    # ── Play state ────────────────────────────────────────────────────────────

    def play(self):
        self.is_playing = True

    def pause(self):
        self.is_playing = False

    def tick(self, elapsed_seconds: float) -> datetime:
        """Advance by one animation frame. No-op while paused."""
        if not self.is_playing or elapsed_seconds <= 0:
            return self.virtual_time
        remaining = (self.window_end - self.virtual_time).total_seconds()
        advance = elapsed_seconds * self.speed_multiplier
        if advance >= remaining:
            self.virtual_time = self.window_end
            self.is_playing = False
            logger.debug("Reached end of window, playback stopped")
        else:
            self.virtual_time += timedelta(seconds=advance)
        return self.virtual_time

    # ── Cursor ────────────────────────────────────────────────────────────────

    def clamp(self, instant: datetime) -> datetime:
        return max(self.window_start, min(self.window_end, instant))

    def seek(self, instant: datetime) -> datetime:
        """Jump to `instant` (clamped into the window). Play state is unchanged."""
        self.virtual_time = self.clamp(instant)
        return self.virtual_time

    def step(self, amount: int, unit: str) -> datetime:
        """Nudge the cursor by whole minutes/hours/days/months, clamped into the window."""
        if unit not in STEP_UNITS:
            raise InvalidArgument(f"Unknown step unit {unit!r}; expected one of {', '.join(STEP_UNITS)}")
        try:
            if unit == "months":
                target = _add_months(self.virtual_time, int(amount))
            else:
                target = self.virtual_time + timedelta(**{unit: amount})
        except (OverflowError, ValueError):
            # past the datetime range: lands on the window edge anyway
            target = self.window_end if amount > 0 else self.window_start
        return self.seek(target)

    @property
    def progress(self) -> float:
        """Fraction of the window already played, 0..1."""
        span = (self.window_end - self.window_start).total_seconds()
        if span <= 0:
            return 1.0
        return (self.virtual_time - self.window_start).total_seconds() / span

    # ── Speed ─────────────────────────────────────────────────────────────────

    def set_speed(self, multiplier: float) -> float:
        try:
            value = float(multiplier)
        except (TypeError, ValueError):
            raise InvalidArgument(f"Speed multiplier must be a number, got {multiplier!r}") from None
        if not value > 0 or value == float("inf"):
            raise InvalidArgument(f"Speed multiplier must be positive, got {multiplier!r}")
        self.speed_multiplier = value
        return value

    def cycle_speed(self) -> float:
        """Next preset on the speed ladder (1 → 10 → 60 → 120 → 1)."""
        steps = list(PLAYBACK_SPEED_STEPS)
        try:
            nxt = steps[(steps.index(self.speed_multiplier) + 1) % len(steps)]
        except ValueError:
            nxt = steps[0]
        return self.set_speed(nxt)

    # ── Window ────────────────────────────────────────────────────────────────

    def set_window(self, start: datetime, end: datetime, reset_to_end: bool = True):
        if start > end:
            raise InvalidArgument(f"Window start {start.isoformat()} is after end {end.isoformat()}")
        self.window_start = start
        self.window_end = end
        if reset_to_end:
            self.virtual_time = end
            self.is_playing = False
        else:
            self.virtual_time = self.clamp(self.virtual_time)

    def state(self) -> dict:
        return {
            "virtual_time": self.virtual_time.isoformat(),
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "is_playing": self.is_playing,
            "speed_multiplier": self.speed_multiplier,
            "progress": round(self.progress, 4),
        }
