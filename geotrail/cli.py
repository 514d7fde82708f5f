"""Command-line interface for geotrail.

Run:
    python -m geotrail summary --trail trail.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Sequence

from geotrail.analytics import dwell_times, sort_by_time, speed_log
from geotrail.geofence import Geofence, GeofenceEvent, GeofenceMonitor
from geotrail.logging_setup import configure_logging
from geotrail.models import DEFAULT_DWELL_THRESHOLD_M, LocationFix, Tracker
from geotrail.report import build_report, format_duration_ms, write_dwell_csv, write_speed_log_csv
from geotrail.timeutils import dt_from_epoch_ms, epoch_ms_from_dt, parse_dt, tzinfo_from_name
from geotrail.trail_io import LoadSummary, load_trail, load_trail_json, write_trail_csv, write_trail_json

logger = logging.getLogger(__name__)


def _in_window(fixes: Sequence[LocationFix], args: argparse.Namespace) -> list[LocationFix]:
    """Keep only fixes inside --range-start/--range-end (inclusive)."""

    kept = list(fixes)
    if args.range_start is None and args.range_end is None:
        return kept

    tz = tzinfo_from_name(args.tz)
    if args.range_start:
        start_ms = epoch_ms_from_dt(parse_dt(args.range_start, tz))
        kept = [f for f in kept if f.timestamp_ms >= start_ms]
    if args.range_end:
        end_ms = epoch_ms_from_dt(parse_dt(args.range_end, tz))
        kept = [f for f in kept if f.timestamp_ms <= end_ms]
    return kept


def _load_window(args: argparse.Namespace) -> tuple[list[LocationFix], LoadSummary]:
    fixes, summary = load_trail(args.trail)
    fixes = _in_window(fixes, args)
    logger.info("time window kept %s of %s fixes", len(fixes), summary.records_parsed)
    return fixes, summary


def _load_trackers(args: argparse.Namespace, name: str | None = None) -> list[Tracker]:
    """Load the trail per tracker, windowed. A CSV export becomes one tracker named after the file."""

    src = Path(args.trail)
    if src.suffix.lower() == ".json":
        trackers, _ = load_trail_json(src)
    else:
        fixes, _ = load_trail(src)
        trackers = [Tracker(tracker_id=src.stem, name=name or src.stem, created_ms=0, fixes=tuple(fixes))]
    return [replace(t, fixes=tuple(_in_window(t.fixes, args))) for t in trackers]


def _cmd_summary(args: argparse.Namespace) -> int:
    tz = tzinfo_from_name(args.tz)
    fixes, summary = _load_window(args)
    report = build_report(fixes, dwell_threshold_m=args.dwell_threshold_m, tz=tz)

    if args.json:
        payload = asdict(report) | {
            "records_total": summary.records_total,
            "records_skipped": summary.records_skipped,
            "trackers": summary.trackers,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print("### Records")
    print(
        f"total={summary.records_total}, parsed={summary.records_parsed}, "
        f"skipped={summary.records_skipped}, trackers={summary.trackers}"
    )
    print()

    if report.first_ms is not None and report.last_ms is not None:
        print("### Time range (local)")
        start = dt_from_epoch_ms(report.first_ms, tz)
        end = dt_from_epoch_ms(report.last_ms, tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
        print()

    print("### Movement")
    print(f"total_distance={report.total_distance_m / 1000.0:.2f} km")
    print(f"average_speed={report.average_speed_kmh:.1f} km/h, max_speed={report.max_speed_kmh:.1f} km/h")
    print(f"tracking_time={format_duration_ms(report.active_time_ms)}")
    print()

    if report.interval is not None:
        print("### Reporting interval (seconds)")
        print(
            f"count={report.interval.count}, min={report.interval.min_s:.3f}, "
            f"median={report.interval.median_s:.3f}, p95={report.interval.p95_s:.3f}, "
            f"max={report.interval.max_s:.3f}"
        )
        print()

    print("### Fixes by hour")
    print(" ".join(f"{h:02d}:{n}" for h, n in enumerate(report.hour_counts) if n))
    print()

    print("### Fixes by day")
    for day, n in report.day_counts.items():
        print(f"{day}  {n}")
    print()

    print(f"### Dwell clusters (threshold {args.dwell_threshold_m:g} m)")
    print(f"clusters={len(report.dwell)}, longest={format_duration_ms(max((c.duration_ms for c in report.dwell), default=0))}")
    return 0


def _cmd_dwell(args: argparse.Namespace) -> int:
    fixes, _ = _load_window(args)
    clusters = dwell_times(sort_by_time(fixes), args.threshold_m)
    if args.min_duration_s > 0:
        clusters = [c for c in clusters if c.duration_ms >= args.min_duration_s * 1000]

    place_names: dict[int, str] | None = None
    if args.geocode:
        from geotrail.geocode import BoundedCache, NominatimConfig, NominatimReverseGeocoder

        geocoder = NominatimReverseGeocoder(
            NominatimConfig(
                accept_language=args.geocode_lang,
                min_interval_seconds=args.geocode_min_interval,
                user_agent=args.geocode_user_agent,
            ),
            cache=BoundedCache(max_entries=args.geocode_cache_size),
            precision=args.geocode_precision,
        )
        place_names = {}
        try:
            for i, c in enumerate(clusters):
                res = geocoder.reverse(c.centroid_lat, c.centroid_lon)
                place_names[i] = res.display_name if res is not None else ""
                print(f"\rReverse geocoding: {i + 1}/{len(clusters)}", end="", file=sys.stderr, flush=True)
        except KeyboardInterrupt:
            print("\nInterrupted: exporting the place names resolved so far.", file=sys.stderr, flush=True)
        print(file=sys.stderr)

    write_dwell_csv(clusters, args.out, place_names=place_names)
    print(f"clusters={len(clusters)}")
    print(f"Exported: {args.out}")
    return 0


def _cmd_speed_log(args: argparse.Namespace) -> int:
    fixes, _ = _load_window(args)
    samples = speed_log(fixes)
    write_speed_log_csv(samples, args.out, tz=tzinfo_from_name(args.tz))
    print(f"segments={len(samples)}")
    print(f"Exported: {args.out}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    trackers = _load_trackers(args, name=args.name)
    if args.format == "csv":
        write_trail_csv([f for t in trackers for f in t.fixes], args.out)
    else:
        if len(trackers) == 1:
            tracker = trackers[0]
        else:
            stem = Path(args.trail).stem
            tracker = Tracker(stem, args.name or stem, 0, tuple(f for t in trackers for f in t.fixes))
        write_trail_json(tracker, args.out)
    print(f"Exported: {args.out}")
    return 0


def _cmd_geofence(args: argparse.Namespace) -> int:
    tz = tzinfo_from_name(args.tz)
    fence = Geofence(
        geofence_id="cli",
        name=args.fence_name,
        center_lat=args.center_lat,
        center_lon=args.center_lon,
        radius_m=args.radius_m,
    )
    # One monitor, state kept per fence and tracker.
    monitor = GeofenceMonitor([fence])
    events: list[GeofenceEvent] = []
    for tracker in _load_trackers(args):
        events.extend(monitor.scan(tracker.fixes, tracker_id=tracker.tracker_id))
    for ev in events:
        when = dt_from_epoch_ms(ev.timestamp_ms, tz).isoformat(sep=" ")
        print(f"{when}  {ev.kind:<5}  {ev.tracker_id}  {ev.geofence_name}  ({ev.latitude:.6f}, {ev.longitude:.6f})")
    print(f"events={len(events)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="geotrail")
    p.add_argument("--log-level", type=str, default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_trail(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--trail", type=str, required=True, help="Trail export (.json or .csv)")
        sp.add_argument("--tz", type=str, default=None, help="IANA timezone for local times (default: host local)")
        sp.add_argument("--range-start", type=str, default=None, help="Only fixes at or after this time, e.g. 2025-06-01 00:00:00")
        sp.add_argument("--range-end", type=str, default=None, help="Only fixes at or before this time, e.g. 2025-06-30 23:59:59")

    p_sum = sub.add_parser("summary", help="Distance, speed, tracking time, hour/day activity and dwell clusters")
    add_trail(p_sum)
    p_sum.add_argument(
        "--dwell-threshold-m",
        type=float,
        default=DEFAULT_DWELL_THRESHOLD_M,
        help="Dwell cluster radius around the cluster's first fix (meters)",
    )
    p_sum.add_argument("--json", action="store_true", help="Print the report as JSON")
    p_sum.set_defaults(func=_cmd_summary)

    p_dw = sub.add_parser("dwell", help="Export dwell clusters to CSV")
    add_trail(p_dw)
    p_dw.add_argument("--threshold-m", type=float, default=DEFAULT_DWELL_THRESHOLD_M, help="Cluster radius (meters)")
    p_dw.add_argument("--min-duration-s", type=float, default=0.0, help="Drop clusters shorter than this")
    p_dw.add_argument("--out", type=str, default="dwell.csv", help="Output CSV path")
    p_dw.add_argument("--geocode", action="store_true", help="Resolve a place name for each cluster (Nominatim)")
    p_dw.add_argument("--geocode-lang", type=str, default="en", help="Reverse geocoding language")
    p_dw.add_argument("--geocode-precision", type=int, default=4, help="Coordinate decimals used as cache key")
    p_dw.add_argument("--geocode-cache-size", type=int, default=1024, help="Max cached place names")
    p_dw.add_argument(
        "--geocode-min-interval",
        type=float,
        default=1.0,
        help="Minimum seconds between requests; public Nominatim asks for >= 1.0",
    )
    p_dw.add_argument(
        "--geocode-user-agent",
        type=str,
        default="geotrail/0.1.0 (reverse-geocode; set your own UA)",
        help="HTTP User-Agent (use your own identifier)",
    )
    p_dw.set_defaults(func=_cmd_dwell)

    p_sl = sub.add_parser("speed-log", help="Export per-segment speeds to CSV")
    add_trail(p_sl)
    p_sl.add_argument("--out", type=str, default="speed_log.csv", help="Output CSV path")
    p_sl.set_defaults(func=_cmd_speed_log)

    p_ex = sub.add_parser("export", help="Convert a trail to the dashboard CSV or JSON export format")
    add_trail(p_ex)
    p_ex.add_argument("--format", type=str, choices=["csv", "json"], required=True)
    p_ex.add_argument("--name", type=str, default=None, help="Tracker name for JSON output from CSV")
    p_ex.add_argument("--out", type=str, required=True, help="Output path")
    p_ex.set_defaults(func=_cmd_export)

    p_gf = sub.add_parser("geofence", help="List entry/exit events of the trail against a circle geofence")
    add_trail(p_gf)
    p_gf.add_argument("--center-lat", type=float, required=True, help="Geofence center latitude")
    p_gf.add_argument("--center-lon", type=float, required=True, help="Geofence center longitude")
    p_gf.add_argument("--radius-m", type=float, required=True, help="Geofence radius (meters)")
    p_gf.add_argument("--name", dest="fence_name", type=str, default="geofence", help="Geofence name")
    p_gf.set_defaults(func=_cmd_geofence)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return int(args.func(args))
    except (ValueError, KeyError, OSError) as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
