"""
Data model for boat positions.

Rows arrive with the database column names (boat_id, lat, lon, ...) so every
model accepts those as aliases. Timestamps without a zone are read as UTC.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Mode(str, Enum):
    LIVE = "live"
    HISTORICAL = "historical"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Sample(BaseModel):
    """One recorded observation of a boat. Immutable once stored."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    unit_id: str = Field(alias="boat_id", min_length=1)
    lat: float
    lon: float
    heading: float = 0.0
    speed: float = 0.0
    battery_level: Optional[float] = None
    recorded_at: datetime

    @field_validator("unit_id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        # uuid or integer ids both come through as strings
        return str(v) if v is not None else v

    @field_validator("heading", "speed", mode="before")
    @classmethod
    def _null_as_zero(cls, v):
        return 0.0 if v is None else v

    @field_validator("recorded_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def position(self) -> tuple[float, float]:
        return (self.lat, self.lon)


class LiveEvent(BaseModel):
    """One push update for a single boat's current position."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    unit_id: str = Field(alias="boat_id", min_length=1)
    lat: float
    lon: float
    heading: float = 0.0
    speed: float = 0.0
    battery_level: Optional[float] = None
    timestamp: datetime = Field(alias="last_updated")

    @field_validator("unit_id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("heading", "speed", mode="before")
    @classmethod
    def _null_as_zero(cls, v):
        return 0.0 if v is None else v

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class UnitSnapshot(BaseModel):
    """Renderable state of one boat at one instant. Recomputed every frame."""

    model_config = ConfigDict(frozen=True)

    unit_id: str
    name: Optional[str] = None
    lat: float
    lon: float
    heading: float
    speed: float
    battery_level: Optional[float] = None
    last_updated: datetime
    source: Literal["live", "historical"]

    @property
    def position(self) -> tuple[float, float]:
        return (self.lat, self.lon)

    @classmethod
    def from_live_event(cls, event: LiveEvent, name: Optional[str] = None) -> "UnitSnapshot":
        return cls(
            unit_id=event.unit_id,
            name=name,
            lat=event.lat,
            lon=event.lon,
            heading=event.heading,
            speed=event.speed,
            battery_level=event.battery_level,
            last_updated=event.timestamp,
            source="live",
        )

    def serialise(self) -> dict:
        return {
            "id": self.unit_id,
            "name": self.name or f"Boat-{self.unit_id[:8]}",
            "lat": round(self.lat, 6),
            "lon": round(self.lon, 6),
            "heading": round(self.heading, 1),
            "speed": round(self.speed, 1),
            "battery_level": self.battery_level,
            "last_updated": self.last_updated.isoformat(),
            "source": self.source,
        }
