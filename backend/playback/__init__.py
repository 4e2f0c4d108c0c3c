"""
Boat position playback engine.

Live vs. historical display modes, sample interpolation, and a virtual
playback clock driven once per animation frame.
"""

from .clock import PlaybackClock
from .errors import FetchError, InvalidArgument
from .interpolator import BisectSearch, Interpolator, LinearSearch, heading_lerp, resolve
from .mode_controller import FetchTicket, ModeController
from .models import LiveEvent, Mode, Sample, UnitSnapshot
from .projection import project
from .sample_store import SampleStore, partition_samples

__all__ = [
    "PlaybackClock",
    "FetchError",
    "InvalidArgument",
    "BisectSearch",
    "Interpolator",
    "LinearSearch",
    "heading_lerp",
    "resolve",
    "FetchTicket",
    "ModeController",
    "LiveEvent",
    "Mode",
    "Sample",
    "UnitSnapshot",
    "project",
    "SampleStore",
    "partition_samples",
]
