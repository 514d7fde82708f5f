from __future__ import annotations

from pathlib import Path

import streamlit as st

from geotrail.analytics import speed_log
from geotrail.models import DEFAULT_DWELL_THRESHOLD_M, DEFAULT_REFRESH_SECONDS, Tracker
from geotrail.report import build_report, format_duration_ms
from geotrail.timeutils import dt_from_epoch_ms, tzinfo_from_name
from geotrail.trail_io import load_trail_csv, load_trail_json

ALL_TRACKERS = "__all__"


@st.cache_data(show_spinner=False)
def _load_trackers(trail_path: str, mtime: float) -> list[Tracker]:
    _ = mtime  # part of cache key: a newer snapshot replaces the old one
    p = Path(trail_path)
    if p.suffix.lower() == ".csv":
        fixes, _ = load_trail_csv(p)
        return [Tracker(tracker_id=p.stem, name=p.stem, created_ms=0, fixes=tuple(fixes))]
    trackers, _ = load_trail_json(p)
    return trackers


def _render(trail_path: str, tz_name: str, threshold_m: float) -> None:
    p = Path(trail_path)
    if not p.exists():
        st.error(f"File not found: {trail_path!r}. Generate one with scripts/generate_sample_trail.py.")
        return

    try:
        tz = tzinfo_from_name(tz_name)
        trackers = _load_trackers(trail_path, p.stat().st_mtime)
    except (ValueError, KeyError, OSError) as exc:
        st.exception(exc)
        return

    options = [ALL_TRACKERS] + [t.tracker_id for t in trackers]
    names = {t.tracker_id: t.name or t.tracker_id for t in trackers} | {ALL_TRACKERS: "All trackers"}
    selected = st.selectbox("Tracker", options, format_func=lambda k: names[k], key="tracker")
    if selected == ALL_TRACKERS:
        fixes = [f for t in trackers for f in t.fixes]
    else:
        fixes = list(next(t for t in trackers if t.tracker_id == selected).fixes)

    report = build_report(fixes, dwell_threshold_m=threshold_m, tz=tz)

    st.subheader("Summary")
    c1, c2, c3 = st.columns(3)
    c1.metric("Total distance", f"{report.total_distance_m / 1000.0:.2f} km")
    c2.metric("Average speed", f"{report.average_speed_kmh:.1f} km/h")
    c3.metric("Max speed", f"{report.max_speed_kmh:.1f} km/h")
    c4, c5, c6 = st.columns(3)
    c4.metric("Tracking time", format_duration_ms(report.active_time_ms))
    c5.metric("Location points", str(report.fix_count))
    c6.metric("Trackers", str(len(trackers)))

    if not fixes:
        st.info("No location data yet.")
        return

    st.subheader("Activity by hour")
    st.bar_chart({"fixes": report.hour_counts})

    st.subheader("Activity by day")
    st.dataframe([{"date": d, "fixes": n} for d, n in report.day_counts.items()], use_container_width=True)

    st.subheader(f"Dwell clusters (radius {threshold_m:g} m)")
    st.dataframe(
        [
            {
                "latitude": c.centroid_lat,
                "longitude": c.centroid_lon,
                "duration": format_duration_ms(c.duration_ms),
                "fixes": c.fix_count,
            }
            for c in sorted(report.dwell, key=lambda c: c.duration_ms, reverse=True)
        ],
        use_container_width=True,
        height=320,
    )

    with st.expander("Speed log", expanded=False):
        st.dataframe(
            [
                {
                    "time": dt_from_epoch_ms(s.timestamp_ms, tz).isoformat(sep=" "),
                    "speed_kmh": round(s.speed_kmh, 2),
                    "latitude": s.latitude,
                    "longitude": s.longitude,
                }
                for s in speed_log(fixes)
            ],
            use_container_width=True,
            height=360,
        )

    st.caption(
        "Hour and day buckets use the selected timezone (empty = this machine's local time). "
        f"The trail file is re-read every {DEFAULT_REFRESH_SECONDS}s when it changes."
    )


def main() -> None:
    st.set_page_config(page_title="GeoTrail analytics", layout="wide")
    st.title("GeoTrail: trail analytics")

    with st.sidebar:
        st.subheader("Data")
        trail_path = st.text_input("Trail export (.json / .csv)", value="sample_data/trail.json")
        tz_name = st.text_input("Timezone (IANA, empty = local)", value="")
        threshold_m = st.number_input("Dwell radius (m)", value=DEFAULT_DWELL_THRESHOLD_M, step=5.0, min_value=1.0)
        live = st.checkbox("Auto refresh", value=True)

    if live:
        # Fallback poll: each run reloads the latest snapshot; no merging with the previous one.
        st.fragment(run_every=DEFAULT_REFRESH_SECONDS)(_render)(trail_path, tz_name, float(threshold_m))
    else:
        _render(trail_path, tz_name, float(threshold_m))


if __name__ == "__main__":
    main()
