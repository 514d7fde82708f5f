"""Data models for location fixes, trackers and dwell clusters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Device metadata reported by the tracked browser. Never used in geometry."""

    browser: str = ""
    os: str = ""
    platform: str = ""
    screen: str = ""
    user_agent: str = ""


@dataclass(frozen=True, slots=True)
class LocationFix:
    """A single GPS observation.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        accuracy_m: Estimated error radius in meters, as reported by the device.
        timestamp_ms: Unix epoch milliseconds.
        device_info: Optional device metadata, carried through unchanged.
        ip: Optional reporting IP address, carried through unchanged.
    """

    latitude: float
    longitude: float
    accuracy_m: float
    timestamp_ms: int
    device_info: DeviceInfo | None = None
    ip: str | None = None

    @property
    def timestamp_s(self) -> float:
        """Unix epoch seconds as float."""

        return self.timestamp_ms / 1000.0


@dataclass(frozen=True, slots=True)
class Tracker:
    """A tracked entity and its trail of fixes.

    Note:
        History is append-only. Use ``with_fix`` to get a tracker with one more fix;
        a tracker never replaces its trail with only the latest location.
    """

    tracker_id: str
    name: str
    created_ms: int
    fixes: tuple[LocationFix, ...] = field(default_factory=tuple)

    def with_fix(self, fix: LocationFix) -> Tracker:
        return Tracker(
            tracker_id=self.tracker_id,
            name=self.name,
            created_ms=self.created_ms,
            fixes=(*self.fixes, fix),
        )


@dataclass(frozen=True, slots=True)
class DwellCluster:
    """A run of consecutive fixes that stayed within a radius of the run's first fix."""

    centroid_lat: float
    centroid_lon: float
    duration_ms: int
    fix_count: int


EARTH_RADIUS_M: Final[float] = 6_371_000.0
MS_TO_KMH: Final[float] = 3.6
DEFAULT_DWELL_THRESHOLD_M: Final[float] = 50.0
DEFAULT_REFRESH_SECONDS: Final[int] = 15
