"""Trail analytics: distance, speed, dwell clusters and time buckets.

Every function here is pure: it reads the fixes it is given and returns new
values. Functions over consecutive pairs use the trail in the order given;
callers that want chronological results sort first (see ``sort_by_time``).
Empty and single-fix trails yield zero values, never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Sequence

from geotrail.geo import fix_distance_m
from geotrail.models import MS_TO_KMH, DwellCluster, LocationFix


@dataclass(frozen=True, slots=True)
class SpeedSample:
    """Speed over one segment, stamped with the segment's later fix."""

    timestamp_ms: int
    speed_kmh: float
    latitude: float
    longitude: float


def sort_by_time(trail: Sequence[LocationFix]) -> list[LocationFix]:
    """Return a new list sorted by timestamp ascending (stable for equal stamps)."""

    return sorted(trail, key=lambda f: f.timestamp_ms)


def speed_kmh(a: LocationFix, b: LocationFix) -> float:
    """Speed between two fixes in km/h.

    Uses the absolute time difference, so argument order does not matter.
    Two fixes with the same timestamp give 0.0.
    """

    dt_s = abs(b.timestamp_ms - a.timestamp_ms) / 1000.0
    if dt_s == 0:
        return 0.0
    return fix_distance_m(a, b) / dt_s * MS_TO_KMH


def total_distance_m(trail: Sequence[LocationFix]) -> float:
    """Sum of segment distances over consecutive pairs, in the given order."""

    total = 0.0
    for i in range(1, len(trail)):
        total += fix_distance_m(trail[i - 1], trail[i])
    return total


def average_speed_kmh(trail: Sequence[LocationFix]) -> float:
    """Path distance over the wall-clock span between the first and last fix.

    The span is taken from the first and last element as given, not from the
    min/max timestamp. An unsorted trail gives a meaningless (but finite)
    result; sorting is the caller's job.
    """

    if len(trail) < 2:
        return 0.0
    elapsed_s = abs(trail[-1].timestamp_ms - trail[0].timestamp_ms) / 1000.0
    if elapsed_s == 0:
        return 0.0
    return total_distance_m(trail) / elapsed_s * MS_TO_KMH


def max_speed_kmh(trail: Sequence[LocationFix]) -> float:
    """Fastest single segment over consecutive pairs, in the given order."""

    fastest = 0.0
    for i in range(1, len(trail)):
        v = speed_kmh(trail[i - 1], trail[i])
        if v > fastest:
            fastest = v
    return fastest


def total_active_time_ms(trail: Sequence[LocationFix]) -> int:
    """Span between the earliest and latest timestamp. Order-independent."""

    if len(trail) < 2:
        return 0
    stamps = [f.timestamp_ms for f in trail]
    return max(stamps) - min(stamps)


def speed_log(trail: Sequence[LocationFix]) -> list[SpeedSample]:
    """Per-segment speeds over the time-sorted trail."""

    pts = sort_by_time(trail)
    return [
        SpeedSample(
            timestamp_ms=pts[i].timestamp_ms,
            speed_kmh=speed_kmh(pts[i - 1], pts[i]),
            latitude=pts[i].latitude,
            longitude=pts[i].longitude,
        )
        for i in range(1, len(pts))
    ]


def dwell_times(trail: Sequence[LocationFix], threshold_m: float) -> list[DwellCluster]:
    """Partition the trail into dwell clusters with one greedy left-to-right pass.

    A fix joins the current cluster when it lies within ``threshold_m`` of the
    cluster's first fix (the anchor). The anchor is never recomputed. The cluster's
    reported position is the anchor's position.

    Args:
        trail: Fixes in the order to scan (normally sorted by time).
        threshold_m: Join radius in meters, inclusive.

    Returns:
        Clusters in scan order. Empty for an empty trail.
    """

    clusters: list[DwellCluster] = []
    if not trail:
        return clusters

    start = 0
    for i in range(1, len(trail) + 1):
        if i < len(trail) and fix_distance_m(trail[start], trail[i]) <= threshold_m:
            continue
        anchor = trail[start]
        clusters.append(
            DwellCluster(
                centroid_lat=anchor.latitude,
                centroid_lon=anchor.longitude,
                duration_ms=trail[i - 1].timestamp_ms - anchor.timestamp_ms,
                fix_count=i - start,
            )
        )
        start = i
    return clusters


def _local_dt(fix: LocationFix, tz: tzinfo | None) -> datetime:
    # tz=None: host local time, the viewer-local reading of the dashboard.
    return datetime.fromtimestamp(fix.timestamp_ms / 1000.0, tz=tz)


def by_hour_of_day(
    trail: Sequence[LocationFix],
    tz: tzinfo | None = None,
) -> dict[int, list[LocationFix]]:
    """Group fixes by local hour of day.

    Args:
        trail: Fixes in any order.
        tz: Timezone for the hour; None means the host's local timezone.

    Returns:
        Mapping with all 24 keys 0..23, empty lists for hours without fixes.
    """

    buckets: dict[int, list[LocationFix]] = {h: [] for h in range(24)}
    for fix in trail:
        buckets[_local_dt(fix, tz).hour].append(fix)
    return buckets


def by_calendar_day(
    trail: Sequence[LocationFix],
    tz: tzinfo | None = None,
) -> dict[str, list[LocationFix]]:
    """Group fixes by local calendar day ("YYYY-MM-DD").

    Only days with at least one fix get a key. Keys appear in first-seen order.
    """

    buckets: dict[str, list[LocationFix]] = {}
    for fix in trail:
        key = _local_dt(fix, tz).strftime("%Y-%m-%d")
        buckets.setdefault(key, []).append(fix)
    return buckets
