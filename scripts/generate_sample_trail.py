from __future__ import annotations

import argparse
import json
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Final

REPORT_INTERVAL_S: Final[int] = 15


@dataclass(frozen=True, slots=True)
class Place:
    name: str
    lat: float
    lon: float


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def generate_locations(
    *,
    stops: int,
    seed: int,
    start_utc: datetime,
    places: list[Place],
) -> list[dict[str, Any]]:
    """Generate fake GeoTracker location records: stays with jitter, then travel legs."""

    rng = random.Random(seed)
    cur = start_utc.replace(tzinfo=timezone.utc)
    here = rng.choice(places)
    device = {"browser": "Chrome", "os": "Android", "platform": "Linux armv8l", "screen": "412x915"}

    out: list[dict[str, Any]] = []
    for _ in range(stops):
        # Stay: 5-40 minutes of fixes jittering a few meters around the place
        for _ in range(rng.randint(20, 160)):
            out.append(
                {
                    "latitude": round(here.lat + rng.uniform(-0.00005, 0.00005), 7),
                    "longitude": round(here.lon + rng.uniform(-0.00005, 0.00005), 7),
                    "accuracy": rng.choice([5.0, 8.0, 12.0, 20.0]),
                    "timestamp": _iso(cur),
                    "device": device,
                    "ip": "203.0.113.7",
                }
            )
            cur += timedelta(seconds=REPORT_INTERVAL_S + rng.uniform(-1.0, 1.0))

        # Travel: straight leg to the next place at 15-50 km/h
        dest = rng.choice([p for p in places if p != here] or places)
        speed_mps = rng.uniform(15.0, 50.0) / 3.6
        dist = math.hypot((dest.lat - here.lat) * 111_320.0, (dest.lon - here.lon) * 111_320.0 * math.cos(math.radians(here.lat)))
        steps = max(1, int(dist / (speed_mps * REPORT_INTERVAL_S)))
        for k in range(1, steps):
            f = k / steps
            out.append(
                {
                    "latitude": round(here.lat + (dest.lat - here.lat) * f, 7),
                    "longitude": round(here.lon + (dest.lon - here.lon) * f, 7),
                    "accuracy": rng.choice([8.0, 12.0, 20.0, 35.0]),
                    "timestamp": _iso(cur),
                    "device": device,
                    "ip": "203.0.113.7",
                }
            )
            cur += timedelta(seconds=REPORT_INTERVAL_S)
        here = dest

    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake GeoTracker JSON export for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/trail.json", help="Output JSON path")
    p.add_argument("--stops", type=int, default=8, help="Number of stays")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--start", type=str, default="2025-06-01 07:00:00", help="Start time in UTC")
    args = p.parse_args()

    start = datetime.fromisoformat(args.start)
    places = [
        Place("home", 52.5200000, 13.4050000),
        Place("office", 52.5075000, 13.3903000),
        Place("gym", 52.5306000, 13.3849000),
        Place("park", 52.5145000, 13.3501000),
    ]
    locations = generate_locations(stops=args.stops, seed=args.seed, start_utc=start, places=places)
    payload = {
        "tracker": {"id": f"track_sample_{args.seed}", "name": "Sample phone", "created": _iso(start.replace(tzinfo=timezone.utc))},
        "locations": locations,
        "exportedAt": _iso(datetime.now(timezone.utc)),
    }

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    print(f"Generated: {out_path} (locations={len(locations)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
