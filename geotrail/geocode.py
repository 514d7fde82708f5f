"""Reverse geocoding utilities (lat/lon -> place name).

This module uses only the Python standard library for HTTP.

Important:
    - Public reverse-geocoding services are rate-limited.
    - For Nominatim (OpenStreetMap), respect their usage policy: keep a
      reasonable request interval and send a descriptive User-Agent.
    - Results are cached in a cache object the caller passes in; there is no
      module-level cache.
"""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def coord_key(lat: float, lon: float, precision: int = 4) -> str:
    """Build a stable cache key by rounding coordinates.

    Notes:
        Precision=4 is often a good default (lat ~ 11m resolution).
    """

    return f"{round(lat, precision):.{precision}f},{round(lon, precision):.{precision}f}"


class BoundedCache(Generic[K, V]):
    """In-memory key/value store holding at most ``max_entries`` items.

    Eviction policy: least recently used. Both ``get`` hits and ``set`` count as use.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max = max_entries
        self._data: OrderedDict[K, V] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def get(self, key: K) -> V | None:
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    def set(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self._max:
            evicted, _ = self._data.popitem(last=False)
            logger.debug("cache evicted %s", evicted)

    def clear(self) -> None:
        self._data.clear()


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    """A reverse geocoding result reduced to the fields the dashboard shows."""

    display_name: str
    city: str | None = None
    state: str | None = None
    country: str | None = None
    road: str | None = None
    postcode: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_nominatim(cls, raw: dict[str, Any]) -> GeocodeResult:
        address = raw.get("address") or {}
        return cls(
            display_name=str(raw.get("display_name") or "Unknown location"),
            city=address.get("city") or address.get("town") or address.get("village"),
            state=address.get("state"),
            country=address.get("country"),
            road=address.get("road"),
            postcode=address.get("postcode"),
            raw=raw,
        )


@dataclass(frozen=True, slots=True)
class NominatimConfig:
    """Configuration for Nominatim reverse API."""

    base_url: str = "https://nominatim.openstreetmap.org/reverse"
    accept_language: str = "en"
    zoom: int = 18
    addressdetails: int = 1
    timeout_seconds: float = 20.0
    min_interval_seconds: float = 1.0
    user_agent: str = "geotrail/0.1.0 (reverse-geocode; please set your own UA)"


def nominatim_reverse_raw(lat: float, lon: float, cfg: NominatimConfig) -> dict[str, Any] | None:
    """Call Nominatim reverse API and return the raw JSON dict.

    No cache, no throttling state.

    Returns:
        Parsed JSON dict on success, otherwise None.
    """

    params = {
        "format": "jsonv2",
        "lat": f"{lat:.8f}",
        "lon": f"{lon:.8f}",
        "zoom": str(cfg.zoom),
        "addressdetails": str(cfg.addressdetails),
        "accept-language": cfg.accept_language,
    }
    url = f"{cfg.base_url}?{urllib.parse.urlencode(params)}"
    req = urllib.request.Request(
        url,
        headers={
            "User-Agent": cfg.user_agent,
            "Accept": "application/json",
        },
        method="GET",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:  # noqa: S310
            body = resp.read().decode("utf-8", errors="replace")
        raw = json.loads(body)
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        logger.warning("reverse geocode request failed: %s", exc, extra={"lat": lat, "lon": lon})
        return None
    except json.JSONDecodeError as exc:
        logger.warning("reverse geocode returned invalid JSON: %s", exc, extra={"lat": lat, "lon": lon})
        return None
    if not isinstance(raw, dict) or "error" in raw:
        logger.warning("reverse geocode returned no result", extra={"lat": lat, "lon": lon})
        return None
    return raw


class NominatimReverseGeocoder:
    """Reverse geocoder using OpenStreetMap Nominatim, with an injected cache."""

    def __init__(
        self,
        config: NominatimConfig,
        cache: BoundedCache[str, GeocodeResult] | None = None,
        precision: int = 4,
    ) -> None:
        self._cfg = config
        self._cache = cache
        self._precision = precision
        self._last_request_at: float | None = None

    def reverse(self, lat: float, lon: float) -> GeocodeResult | None:
        """Reverse geocode one coordinate; cache hits never touch the network.

        Returns:
            GeocodeResult or None if the request failed.
        """

        key = coord_key(lat, lon, self._precision)
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        self._sleep_if_needed()
        raw = nominatim_reverse_raw(lat, lon, self._cfg)
        if raw is None:
            return None

        result = GeocodeResult.from_nominatim(raw)
        if self._cache is not None:
            self._cache.set(key, result)
        return result

    def _sleep_if_needed(self) -> None:
        if self._last_request_at is not None:
            wait = self._cfg.min_interval_seconds - (time.monotonic() - self._last_request_at)
            if wait > 0:
                time.sleep(wait)
        self._last_request_at = time.monotonic()
