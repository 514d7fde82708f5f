"""Circular geofences and entry/exit event detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, MutableMapping, Sequence

from geotrail.analytics import sort_by_time
from geotrail.geo import is_inside_circle
from geotrail.models import LocationFix

logger = logging.getLogger(__name__)

EventKind = Literal["entry", "exit"]


@dataclass(frozen=True, slots=True)
class Geofence:
    """A named circle geofence (center + radius), optionally bound to one tracker."""

    geofence_id: str
    name: str
    center_lat: float
    center_lon: float
    radius_m: float
    tracker_id: str | None = None
    on_entry: bool = True
    on_exit: bool = True

    def contains(self, lat: float, lon: float) -> bool:
        return is_inside_circle(lat, lon, self.center_lat, self.center_lon, self.radius_m)


@dataclass(frozen=True, slots=True)
class GeofenceEvent:
    """A boundary crossing, stamped with the fix that revealed it."""

    geofence_id: str
    geofence_name: str
    kind: EventKind
    timestamp_ms: int
    latitude: float
    longitude: float
    tracker_id: str | None = None


class GeofenceMonitor:
    """Track inside/outside state per (geofence, tracker) and report crossings.

    The last-known state lives in ``state``, a plain mutable mapping owned by the
    caller. Pass a persisted mapping to resume monitoring, or nothing to start fresh.
    """

    def __init__(
        self,
        geofences: Sequence[Geofence],
        state: MutableMapping[str, bool] | None = None,
    ) -> None:
        self._geofences = list(geofences)
        self._state: MutableMapping[str, bool] = state if state is not None else {}

    @property
    def state(self) -> MutableMapping[str, bool]:
        return self._state

    @staticmethod
    def state_key(geofence_id: str, tracker_id: str | None) -> str:
        return f"{geofence_id}_{tracker_id or 'default'}"

    def check(self, fix: LocationFix, tracker_id: str | None = None) -> list[GeofenceEvent]:
        """Evaluate one fix against every applicable geofence.

        An entry event fires when a fix is inside and the previous state was not
        (including the very first observation). An exit fires on inside -> outside.
        State is updated even when the matching alert is switched off.
        """

        events: list[GeofenceEvent] = []
        for gf in self._geofences:
            if gf.tracker_id and tracker_id and gf.tracker_id != tracker_id:
                continue

            key = self.state_key(gf.geofence_id, tracker_id)
            inside = gf.contains(fix.latitude, fix.longitude)
            was_inside = self._state.get(key, False)
            self._state[key] = inside

            kind: EventKind | None = None
            if inside and not was_inside and gf.on_entry:
                kind = "entry"
            elif not inside and was_inside and gf.on_exit:
                kind = "exit"
            if kind is None:
                continue

            logger.info(
                "geofence %s",
                kind,
                extra={"geofence_id": gf.geofence_id, "tracker_id": tracker_id, "timestamp_ms": fix.timestamp_ms},
            )
            events.append(
                GeofenceEvent(
                    geofence_id=gf.geofence_id,
                    geofence_name=gf.name,
                    kind=kind,
                    timestamp_ms=fix.timestamp_ms,
                    latitude=fix.latitude,
                    longitude=fix.longitude,
                    tracker_id=tracker_id,
                )
            )
        return events

    def scan(self, trail: Sequence[LocationFix], tracker_id: str | None = None) -> list[GeofenceEvent]:
        """Feed a whole trail through ``check`` in time order."""

        events: list[GeofenceEvent] = []
        for fix in sort_by_time(trail):
            events.extend(self.check(fix, tracker_id))
        return events
