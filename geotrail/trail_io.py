"""Load and export trails in the GeoTracker dashboard formats (JSON and CSV).

This is the ingestion boundary: coordinates and timestamps are validated here,
before anything reaches the analytics functions.
"""

from __future__ import annotations

import csv
import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from geotrail.models import DeviceInfo, LocationFix, Tracker
from geotrail.timeutils import iso_from_epoch_ms, parse_timestamp

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "Timestamp",
    "Latitude",
    "Longitude",
    "Accuracy (m)",
    "Browser",
    "OS",
    "Platform",
    "Screen",
    "IP Address",
]


@dataclass(frozen=True, slots=True)
class LoadSummary:
    """Quick summary of trail parsing."""

    records_total: int
    records_parsed: int
    records_skipped: int
    trackers: int


def _finite(value: Any, name: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} is not a number: {value!r}") from exc
    if not math.isfinite(v):
        raise ValueError(f"{name} is not finite: {value!r}")
    return v


def validate_coordinates(latitude: float, longitude: float, accuracy_m: float = 0.0) -> None:
    """Raise ValueError for coordinates outside the valid range. Nothing is clamped."""

    if not -90.0 <= latitude <= 90.0:
        raise ValueError(f"latitude out of range [-90, 90]: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise ValueError(f"longitude out of range [-180, 180]: {longitude}")
    if accuracy_m < 0:
        raise ValueError(f"accuracy must be non-negative: {accuracy_m}")


def _device_from_dict(raw: Any) -> DeviceInfo | None:
    if not isinstance(raw, Mapping):
        return None
    return DeviceInfo(
        browser=str(raw.get("browser") or ""),
        os=str(raw.get("os") or ""),
        platform=str(raw.get("platform") or ""),
        screen=str(raw.get("screen") or ""),
        user_agent=str(raw.get("userAgent") or ""),
    )


def fix_from_dict(record: Mapping[str, Any]) -> LocationFix:
    """Build a validated LocationFix from a GeoTracker location record.

    Accepts the keys of the tracker location payload and the JSON export:
    latitude, longitude, accuracy (defaults to 0), timestamp, deviceInfo or device, ip.

    Raises:
        ValueError: If a required value is missing, malformed or out of range.
    """

    if "latitude" not in record or "longitude" not in record:
        raise ValueError("latitude and longitude are required")
    if "timestamp" not in record:
        raise ValueError("timestamp is required")

    lat = _finite(record["latitude"], "latitude")
    lon = _finite(record["longitude"], "longitude")
    acc = _finite(record.get("accuracy") or 0, "accuracy")
    validate_coordinates(lat, lon, acc)

    ip = record.get("ip")
    return LocationFix(
        latitude=lat,
        longitude=lon,
        accuracy_m=acc,
        timestamp_ms=parse_timestamp(record["timestamp"]),
        device_info=_device_from_dict(record.get("deviceInfo", record.get("device"))),
        ip=str(ip) if ip else None,
    )


def fix_to_dict(fix: LocationFix) -> dict[str, Any]:
    """Serialize a fix the way the dashboard JSON export does."""

    device = None
    if fix.device_info is not None:
        device = {
            "browser": fix.device_info.browser,
            "os": fix.device_info.os,
            "platform": fix.device_info.platform,
            "screen": fix.device_info.screen,
        }
    return {
        "latitude": fix.latitude,
        "longitude": fix.longitude,
        "accuracy": fix.accuracy_m,
        "timestamp": iso_from_epoch_ms(fix.timestamp_ms),
        "device": device,
        "ip": fix.ip,
    }


def _parse_fixes(records: Iterable[Any], counts: list[int]) -> tuple[LocationFix, ...]:
    fixes: list[LocationFix] = []
    for rec in records:
        counts[0] += 1
        if not isinstance(rec, Mapping):
            continue
        try:
            fixes.append(fix_from_dict(rec))
        except ValueError as exc:
            logger.debug("skipping location record: %s", exc)
    return tuple(fixes)


def _tracker_from_export(obj: Mapping[str, Any], index: int, counts: list[int]) -> Tracker:
    meta = obj.get("tracker") or {}
    created = meta.get("created")
    try:
        created_ms = parse_timestamp(created) if created is not None else 0
    except ValueError:
        created_ms = 0
    return Tracker(
        tracker_id=str(meta.get("id") or f"tracker_{index}"),
        name=str(meta.get("name") or "Unnamed Tracker"),
        created_ms=created_ms,
        fixes=_parse_fixes(obj.get("locations") or [], counts),
    )


def load_trail_json(json_path: str | Path) -> tuple[list[Tracker], LoadSummary]:
    """Load trackers from a GeoTracker JSON export.

    Accepted shapes:
      - a single export object: {"tracker": {...}, "locations": [...]}
      - a list of export objects (several trackers)
      - a bare list of location records (one anonymous tracker)

    Invalid location records are skipped and counted.

    Raises:
        ValueError: If the file is not JSON or has none of the shapes above.
    """

    p = Path(json_path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{p} is not valid JSON: {exc}") from exc

    counts = [0]
    trackers: list[Tracker] = []
    if isinstance(data, Mapping) and "locations" in data:
        trackers.append(_tracker_from_export(data, 0, counts))
    elif isinstance(data, list) and all(isinstance(o, Mapping) and "locations" in o for o in data) and data:
        trackers.extend(_tracker_from_export(o, i, counts) for i, o in enumerate(data))
    elif isinstance(data, list):
        trackers.append(
            Tracker(tracker_id=p.stem, name=p.stem, created_ms=0, fixes=_parse_fixes(data, counts))
        )
    else:
        raise ValueError(f"{p}: expected a GeoTracker export object or a list of locations")

    parsed = sum(len(t.fixes) for t in trackers)
    summary = LoadSummary(
        records_total=counts[0],
        records_parsed=parsed,
        records_skipped=counts[0] - parsed,
        trackers=len(trackers),
    )
    if summary.records_skipped > 0:
        logger.warning("%s: skipped %s invalid location records", p, summary.records_skipped)
    return trackers, summary


def load_trail_csv(csv_path: str | Path) -> tuple[list[LocationFix], LoadSummary]:
    """Load fixes from a GeoTracker CSV export.

    Raises:
        KeyError: If the Timestamp/Latitude/Longitude columns are missing.
    """

    p = Path(csv_path)
    fixes: list[LocationFix] = []
    rows_total = 0
    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or []
        missing = [c for c in ("Timestamp", "Latitude", "Longitude") if c not in fieldnames]
        if missing:
            raise KeyError(f"CSV is missing required columns {missing}. Found: {fieldnames}")

        for row in reader:
            rows_total += 1
            device = {
                "browser": row.get("Browser"),
                "os": row.get("OS"),
                "platform": row.get("Platform"),
                "screen": row.get("Screen"),
            }
            record = {
                "latitude": row["Latitude"],
                "longitude": row["Longitude"],
                "accuracy": row.get("Accuracy (m)") or 0,
                "timestamp": row["Timestamp"],
                "deviceInfo": device if any(device.values()) else None,
                "ip": row.get("IP Address"),
            }
            try:
                fixes.append(fix_from_dict(record))
            except ValueError as exc:
                logger.debug("skipping CSV row %s: %s", rows_total, exc)

    summary = LoadSummary(
        records_total=rows_total,
        records_parsed=len(fixes),
        records_skipped=rows_total - len(fixes),
        trackers=1,
    )
    if summary.records_skipped > 0:
        logger.warning("%s: skipped %s invalid CSV rows", p, summary.records_skipped)
    return fixes, summary


def load_trail(path: str | Path) -> tuple[list[LocationFix], LoadSummary]:
    """Load every fix from a .json or .csv export into one flat list (file order)."""

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".json":
        trackers, summary = load_trail_json(p)
        return [fix for t in trackers for fix in t.fixes], summary
    if suffix == ".csv":
        return load_trail_csv(p)
    raise ValueError(f"Unsupported trail file type {p.suffix!r}; use .json or .csv")


def write_trail_json(tracker: Tracker, out_path: str | Path, exported_at_ms: int | None = None) -> None:
    """Write a tracker in the dashboard JSON export format."""

    if exported_at_ms is None:
        exported_at_ms = round(datetime.now(UTC).timestamp() * 1000)
    payload = {
        "tracker": {
            "id": tracker.tracker_id,
            "name": tracker.name,
            "created": iso_from_epoch_ms(tracker.created_ms),
        },
        "locations": [fix_to_dict(f) for f in tracker.fixes],
        "exportedAt": iso_from_epoch_ms(exported_at_ms),
    }
    Path(out_path).write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def write_trail_csv(fixes: Sequence[LocationFix], out_path: str | Path) -> None:
    """Write fixes in the dashboard CSV export format."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        w.writeheader()
        for fix in fixes:
            dev = fix.device_info or DeviceInfo()
            w.writerow(
                {
                    "Timestamp": iso_from_epoch_ms(fix.timestamp_ms),
                    "Latitude": f"{fix.latitude:.6f}",
                    "Longitude": f"{fix.longitude:.6f}",
                    "Accuracy (m)": f"{fix.accuracy_m:.2f}",
                    "Browser": dev.browser,
                    "OS": dev.os,
                    "Platform": dev.platform,
                    "Screen": dev.screen,
                    "IP Address": fix.ip or "",
                }
            )


def export_filename(tracker: Tracker, ext: str, today: datetime | None = None) -> str:
    """Build a download name like geotracker_my_phone_2025-06-01.json."""

    slug = re.sub(r"[^a-z0-9]+", "_", tracker.name.lower()).strip("_") or tracker.tracker_id
    day = (today or datetime.now(UTC)).strftime("%Y-%m-%d")
    return f"geotracker_{slug}_{day}.{ext}"
