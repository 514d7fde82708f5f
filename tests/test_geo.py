import pytest

from conftest import meters_to_deg
from geotrail.geo import fix_distance_m, haversine_m, is_inside_circle


def test_distance_to_self_is_zero():
    for lat, lon in [(0.0, 0.0), (52.52, 13.405), (-33.86, 151.21), (89.9999, 179.9)]:
        assert haversine_m(lat, lon, lat, lon) == 0.0


def test_distance_is_symmetric():
    a = (52.5200, 13.4050)
    b = (48.8566, 2.3522)
    assert haversine_m(*a, *b) == pytest.approx(haversine_m(*b, *a), rel=1e-12)


def test_one_kilometer_along_a_meridian():
    d = haversine_m(45.0, 7.0, 45.0 + meters_to_deg(1000.0), 7.0)
    assert d == pytest.approx(1000.0, abs=0.01)


def test_small_right_angle_is_close_to_planar():
    # 300 m north and 400 m east of a point near the equator: ~500 m hypotenuse
    d = haversine_m(0.0, 0.0, meters_to_deg(300.0), meters_to_deg(400.0))
    assert d == pytest.approx(500.0, rel=1e-4)


def test_antipodal_and_polar_points_are_finite():
    half_circumference = haversine_m(0.0, 0.0, 0.0, 180.0)
    assert half_circumference == pytest.approx(20_015_086.8, rel=1e-6)
    assert haversine_m(90.0, 0.0, -90.0, 0.0) == pytest.approx(half_circumference, rel=1e-9)
    assert haversine_m(89.999, 10.0, 89.999, -170.0) > 0.0


def test_fix_distance_uses_fix_coordinates(make_fix):
    a = make_fix(0.0, 0.0, 0)
    b = make_fix(0.0, 0.009, 10)
    assert fix_distance_m(a, b) == pytest.approx(haversine_m(0.0, 0.0, 0.0, 0.009))


def test_circle_boundary_counts_as_inside():
    edge = meters_to_deg(100.0)
    assert is_inside_circle(edge, 0.0, 0.0, 0.0, 100.0 + 1e-6)
    assert not is_inside_circle(meters_to_deg(150.0), 0.0, 0.0, 0.0, 100.0)
