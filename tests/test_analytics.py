from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from geotrail.analytics import (
    average_speed_kmh,
    by_calendar_day,
    by_hour_of_day,
    dwell_times,
    max_speed_kmh,
    sort_by_time,
    speed_kmh,
    speed_log,
    total_active_time_ms,
    total_distance_m,
)
from geotrail.geo import fix_distance_m
from geotrail.models import LocationFix
from geotrail.timeutils import epoch_ms_from_dt


def _at(dt: datetime, lat: float = 0.0, lon: float = 0.0) -> LocationFix:
    return LocationFix(latitude=lat, longitude=lon, accuracy_m=10.0, timestamp_ms=epoch_ms_from_dt(dt))


def test_speed_is_order_independent(meridian_fix):
    a = meridian_fix(0, 0)
    b = meridian_fix(100, 10)
    assert speed_kmh(a, b) == pytest.approx(36.0, rel=1e-9)
    assert speed_kmh(b, a) == pytest.approx(speed_kmh(a, b))


def test_speed_with_equal_timestamps_is_zero(meridian_fix):
    a = meridian_fix(0, 5)
    b = meridian_fix(500, 5)
    assert speed_kmh(a, b) == 0.0
    assert speed_kmh(b, a) == 0.0


def test_short_trails_give_zero_aggregates(meridian_fix):
    for trail in ([], [meridian_fix(0, 0)]):
        assert total_distance_m(trail) == 0.0
        assert average_speed_kmh(trail) == 0.0
        assert max_speed_kmh(trail) == 0.0
        assert total_active_time_ms(trail) == 0


def test_total_distance_sums_consecutive_segments(meridian_fix):
    trail = [meridian_fix(0, 0), meridian_fix(100, 10), meridian_fix(300, 20), meridian_fix(600, 30)]
    assert total_distance_m(trail) == pytest.approx(600.0, rel=1e-6)
    pairs = sum(fix_distance_m(trail[i - 1], trail[i]) for i in range(1, len(trail)))
    assert total_distance_m(trail) == pairs


def test_average_speed_36_km_in_one_hour(meridian_fix):
    trail = [meridian_fix(0, 0), meridian_fix(36_000, 3600)]
    assert average_speed_kmh(trail) == pytest.approx(36.0, rel=1e-9)


def test_average_speed_zero_elapsed(meridian_fix):
    assert average_speed_kmh([meridian_fix(0, 7), meridian_fix(100, 7)]) == 0.0


def test_average_speed_uses_given_order_not_sorted(meridian_fix):
    a, b, c = meridian_fix(0, 0), meridian_fix(100, 100), meridian_fix(200, 200)
    unsorted = [a, c, b]
    # path 200 m + 100 m over |t_b - t_a| = 100 s
    assert average_speed_kmh(unsorted) == pytest.approx(300.0 / 100.0 * 3.6, rel=1e-6)
    assert average_speed_kmh(sort_by_time(unsorted)) == pytest.approx(3.6, rel=1e-6)


def test_max_speed_picks_fastest_segment(meridian_fix):
    trail = [
        meridian_fix(0, 0),
        meridian_fix(100, 100),  # 3.6 km/h
        meridian_fix(1100, 200),  # 36 km/h
        meridian_fix(1200, 300),  # 3.6 km/h
    ]
    assert max_speed_kmh(trail) == pytest.approx(36.0, rel=1e-6)
    assert max_speed_kmh(trail) > average_speed_kmh(trail)


def test_active_time_is_order_independent(meridian_fix):
    trail = [meridian_fix(0, 50), meridian_fix(10, 10), meridian_fix(20, 90.5), meridian_fix(30, 20)]
    assert total_active_time_ms(trail) == 80_500


def test_end_to_end_equator_segment(make_fix):
    trail = [make_fix(0.0, 0.0, 0), make_fix(0.0, 0.009, 1000)]
    assert total_distance_m(trail) == pytest.approx(1000.0, rel=0.01)
    assert average_speed_kmh(trail) == pytest.approx(3.6, rel=0.01)
    assert max_speed_kmh(trail) == pytest.approx(average_speed_kmh(trail))
    assert total_active_time_ms(trail) == 1_000_000


def test_speed_log_sorts_and_stamps_later_fix(meridian_fix):
    trail = [meridian_fix(100, 10), meridian_fix(0, 0), meridian_fix(300, 30)]
    log = speed_log(trail)
    assert [s.timestamp_ms for s in log] == [10_000, 30_000]
    assert log[0].speed_kmh == pytest.approx(36.0, rel=1e-6)
    assert log[1].latitude == trail[2].latitude
    assert speed_log(trail[:1]) == []


def test_dwell_two_clusters(meridian_fix):
    trail = [
        meridian_fix(0, 0),
        meridian_fix(5, 15),
        meridian_fix(9, 30),
        meridian_fix(300, 60),
        meridian_fix(305, 75),
    ]
    clusters = dwell_times(trail, 50.0)
    assert [c.fix_count for c in clusters] == [3, 2]
    assert clusters[0].duration_ms == 30_000
    assert clusters[1].duration_ms == 15_000
    assert clusters[1].centroid_lat == trail[3].latitude
    assert clusters[0].centroid_lon == 0.0


def test_dwell_compares_to_anchor_not_previous_fix(meridian_fix):
    # each step is 30 m from the previous one, but the third is 60 m from the anchor
    trail = [meridian_fix(0, 0), meridian_fix(30, 10), meridian_fix(60, 20), meridian_fix(90, 30)]
    clusters = dwell_times(trail, 50.0)
    assert [c.fix_count for c in clusters] == [2, 2]
    assert clusters[1].centroid_lat == trail[2].latitude


def test_dwell_threshold_is_inclusive(meridian_fix):
    a, b = meridian_fix(0, 0), meridian_fix(40, 10)
    d = fix_distance_m(a, b)
    assert len(dwell_times([a, b], d)) == 1
    assert len(dwell_times([a, b], d * 0.999)) == 2


def test_dwell_empty_and_single(meridian_fix):
    assert dwell_times([], 50.0) == []
    (only,) = dwell_times([meridian_fix(0, 42)], 50.0)
    assert only.fix_count == 1
    assert only.duration_ms == 0


def test_by_hour_always_has_24_keys(make_fix):
    assert list(by_hour_of_day([])) == list(range(24))
    buckets = by_hour_of_day([make_fix(0, 0, 0)])
    assert sorted(buckets) == list(range(24))
    assert sum(len(v) for v in buckets.values()) == 1


def test_by_hour_uses_host_local_time_by_default():
    fix = _at(datetime(2025, 6, 1, 9, 30).astimezone())
    assert by_hour_of_day([fix])[9] == [fix]


def test_by_hour_with_explicit_timezone():
    fix = _at(datetime(2025, 6, 1, 0, 30, tzinfo=timezone.utc))
    assert by_hour_of_day([fix], tz=timezone.utc)[0] == [fix]
    assert by_hour_of_day([fix], tz=ZoneInfo("Asia/Tokyo"))[9] == [fix]


def test_by_day_only_present_days():
    fixes = [
        _at(datetime(2025, 6, 1, 8, 0).astimezone()),
        _at(datetime(2025, 6, 1, 12, 0).astimezone()),
        _at(datetime(2025, 6, 1, 18, 0).astimezone()),
    ]
    assert by_calendar_day(fixes) == {"2025-06-01": fixes}
    assert by_calendar_day([]) == {}


def test_by_day_with_explicit_timezone():
    late = _at(datetime(2025, 6, 1, 23, 30, tzinfo=timezone.utc))
    early = _at(datetime(2025, 6, 3, 1, 0, tzinfo=timezone.utc))
    assert list(by_calendar_day([late, early], tz=timezone.utc)) == ["2025-06-01", "2025-06-03"]
    assert list(by_calendar_day([late], tz=ZoneInfo("Asia/Tokyo"))) == ["2025-06-02"]


def test_sort_by_time_returns_new_list(meridian_fix):
    trail = [meridian_fix(0, 3), meridian_fix(0, 1), meridian_fix(0, 2)]
    out = sort_by_time(trail)
    assert [f.timestamp_ms for f in out] == [1000, 2000, 3000]
    assert [f.timestamp_ms for f in trail] == [3000, 1000, 2000]
