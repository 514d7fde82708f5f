"""Trail report: the summary numbers and tables shown by the analytics view."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Mapping, Sequence

from geotrail.analytics import (
    SpeedSample,
    average_speed_kmh,
    by_calendar_day,
    by_hour_of_day,
    dwell_times,
    max_speed_kmh,
    sort_by_time,
    total_active_time_ms,
    total_distance_m,
)
from geotrail.models import DEFAULT_DWELL_THRESHOLD_M, DwellCluster, LocationFix
from geotrail.timeutils import DeltaStats, delta_stats, dt_from_epoch_ms


@dataclass(frozen=True, slots=True)
class TrailReport:
    """High-level trail analytics result."""

    fix_count: int
    first_ms: int | None
    last_ms: int | None
    total_distance_m: float
    average_speed_kmh: float
    max_speed_kmh: float
    active_time_ms: int
    interval: DeltaStats | None
    hour_counts: list[int] = field(default_factory=lambda: [0] * 24)
    day_counts: dict[str, int] = field(default_factory=dict)
    dwell: list[DwellCluster] = field(default_factory=list)


def build_report(
    fixes: Sequence[LocationFix],
    dwell_threshold_m: float = DEFAULT_DWELL_THRESHOLD_M,
    tz: tzinfo | None = None,
    presorted: bool = False,
) -> TrailReport:
    """Compute every metric of the analytics view for one trail.

    The trail is sorted by time first unless ``presorted`` is set, since the
    consecutive-pair metrics assume chronological order.
    """

    pts = list(fixes) if presorted else sort_by_time(fixes)
    if not pts:
        return TrailReport(
            fix_count=0,
            first_ms=None,
            last_ms=None,
            total_distance_m=0.0,
            average_speed_kmh=0.0,
            max_speed_kmh=0.0,
            active_time_ms=0,
            interval=None,
        )

    hours = by_hour_of_day(pts, tz)
    days = by_calendar_day(pts, tz)
    return TrailReport(
        fix_count=len(pts),
        first_ms=pts[0].timestamp_ms,
        last_ms=pts[-1].timestamp_ms,
        total_distance_m=total_distance_m(pts),
        average_speed_kmh=average_speed_kmh(pts),
        max_speed_kmh=max_speed_kmh(pts),
        active_time_ms=total_active_time_ms(pts),
        interval=delta_stats(sorted(f.timestamp_ms for f in pts)),
        hour_counts=[len(hours[h]) for h in range(24)],
        day_counts={d: len(days[d]) for d in sorted(days)},
        dwell=dwell_times(pts, dwell_threshold_m),
    )


def format_duration_ms(ms: int) -> str:
    """Render a duration like "1h 2m 3s"; anything <= 0 is "0s"."""

    if ms <= 0:
        return "0s"
    s = ms // 1000
    h, m, sec = s // 3600, (s % 3600) // 60, s % 60
    parts: list[str] = []
    if h > 0:
        parts.append(f"{h}h")
    if m > 0:
        parts.append(f"{m}m")
    if sec > 0 or not parts:
        parts.append(f"{sec}s")
    return " ".join(parts)


def write_speed_log_csv(samples: Sequence[SpeedSample], out_path: str | Path, tz: tzinfo | None = None) -> None:
    """Write the speed log table."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["time_local", "epoch_ms", "speed_kmh", "latitude", "longitude"])
        w.writeheader()
        for s in samples:
            w.writerow(
                {
                    "time_local": dt_from_epoch_ms(s.timestamp_ms, tz).isoformat(sep=" "),
                    "epoch_ms": s.timestamp_ms,
                    "speed_kmh": f"{s.speed_kmh:.2f}",
                    "latitude": s.latitude,
                    "longitude": s.longitude,
                }
            )


def write_dwell_csv(
    clusters: Sequence[DwellCluster],
    out_path: str | Path,
    place_names: Mapping[int, str] | None = None,
) -> None:
    """Write dwell clusters; ``place_names`` maps cluster index -> place name."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=["cluster", "latitude", "longitude", "duration_ms", "duration", "fixes", "place_name"],
        )
        w.writeheader()
        for i, c in enumerate(clusters):
            w.writerow(
                {
                    "cluster": i + 1,
                    "latitude": c.centroid_lat,
                    "longitude": c.centroid_lon,
                    "duration_ms": c.duration_ms,
                    "duration": format_duration_ms(c.duration_ms),
                    "fixes": c.fix_count,
                    "place_name": (place_names or {}).get(i, ""),
                }
            )
