import csv
from datetime import timezone

import pytest

from geotrail.analytics import speed_log
from geotrail.report import build_report, format_duration_ms, write_dwell_csv, write_speed_log_csv


def test_empty_report():
    report = build_report([])
    assert report.fix_count == 0
    assert report.first_ms is None
    assert report.total_distance_m == 0.0
    assert report.hour_counts == [0] * 24
    assert report.day_counts == {}
    assert report.dwell == []
    assert report.interval is None


def test_report_sorts_before_pair_metrics(meridian_fix):
    ordered = [meridian_fix(0, 0), meridian_fix(100, 100), meridian_fix(200, 200)]
    shuffled = [ordered[2], ordered[0], ordered[1]]
    report = build_report(shuffled, tz=timezone.utc)
    assert report == build_report(ordered, tz=timezone.utc)
    assert report.total_distance_m == pytest.approx(200.0, rel=1e-6)
    assert report.average_speed_kmh == pytest.approx(3.6, rel=1e-6)
    assert report.first_ms == 0
    assert report.last_ms == 200_000


def test_report_presorted_trusts_caller(meridian_fix):
    shuffled = [meridian_fix(200, 200), meridian_fix(0, 0), meridian_fix(100, 100)]
    report = build_report(shuffled, presorted=True, tz=timezone.utc)
    assert report.total_distance_m == pytest.approx(300.0, rel=1e-6)


def test_report_buckets_and_dwell(meridian_fix):
    # 1970-01-01 00:00 UTC plus 15 s reports, then a jump and a stay an hour later
    trail = [meridian_fix(0, t) for t in (0, 15, 30)] + [meridian_fix(1000, t) for t in (3600, 3615)]
    report = build_report(trail, dwell_threshold_m=50.0, tz=timezone.utc)
    assert report.hour_counts[0] == 3
    assert report.hour_counts[1] == 2
    assert sum(report.hour_counts) == 5
    assert report.day_counts == {"1970-01-01": 5}
    assert [c.fix_count for c in report.dwell] == [3, 2]
    assert report.interval.median_s == 15.0
    assert report.interval.max_s == 3570.0
    assert report.active_time_ms == 3_615_000


@pytest.mark.parametrize(
    "ms, text",
    [(0, "0s"), (-5, "0s"), (999, "0s"), (1000, "1s"), (60_000, "1m"), (3_723_000, "1h 2m 3s"), (7_200_000, "2h")],
)
def test_format_duration_ms(ms, text):
    assert format_duration_ms(ms) == text


def test_write_tables(tmp_path, meridian_fix):
    trail = [meridian_fix(0, 0), meridian_fix(10, 15), meridian_fix(500, 30)]
    report = build_report(trail, tz=timezone.utc)

    dwell_out = tmp_path / "dwell.csv"
    write_dwell_csv(report.dwell, dwell_out, place_names={0: "Somewhere"})
    with dwell_out.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["fixes"] for r in rows] == ["2", "1"]
    assert rows[0]["duration"] == "15s"
    assert rows[0]["place_name"] == "Somewhere"
    assert rows[1]["place_name"] == ""

    speed_out = tmp_path / "speed.csv"
    write_speed_log_csv(speed_log(trail), speed_out, tz=timezone.utc)
    with speed_out.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 2
    assert rows[0]["time_local"] == "1970-01-01 00:00:15+00:00"
    assert float(rows[1]["speed_kmh"]) == pytest.approx(490.0 / 15.0 * 3.6, abs=0.01)
