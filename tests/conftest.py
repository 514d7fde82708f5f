from __future__ import annotations

import math
from typing import Callable

import pytest

from geotrail.models import EARTH_RADIUS_M, LocationFix


def meters_to_deg(m: float) -> float:
    """Degrees of arc along a meridian (or the equator) for ``m`` meters."""

    return math.degrees(m / EARTH_RADIUS_M)


@pytest.fixture
def make_fix() -> Callable[..., LocationFix]:
    def _make(lat: float, lon: float, t_s: float, accuracy: float = 5.0) -> LocationFix:
        return LocationFix(latitude=lat, longitude=lon, accuracy_m=accuracy, timestamp_ms=int(t_s * 1000))

    return _make


@pytest.fixture
def meridian_fix(make_fix) -> Callable[..., LocationFix]:
    """Fix placed ``offset_m`` meters north of (0, 0)."""

    def _make(offset_m: float, t_s: float) -> LocationFix:
        return make_fix(meters_to_deg(offset_m), 0.0, t_s)

    return _make
