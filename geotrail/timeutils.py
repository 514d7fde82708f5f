"""Timestamp parsing, conversion and sampling-interval statistics."""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Iterable

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def tzinfo_from_name(tz_name: str | None) -> tzinfo | None:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Europe/Berlin". None or "" means host local time.

    Returns:
        tzinfo instance, or None for host local time.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {tz_name!r}. Example: Europe/Berlin") from exc


def dt_from_epoch_ms(epoch_ms: int, tz: tzinfo | None = None) -> datetime:
    """Convert epoch milliseconds to a timezone-aware datetime (host local if tz is None)."""

    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC).astimezone(tz)


def epoch_ms_from_dt(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Args:
        dt: Datetime. If naive, will be treated as UTC.

    Returns:
        Epoch milliseconds.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return round(dt.timestamp() * 1000)


def iso_from_epoch_ms(epoch_ms: int) -> str:
    """Format epoch ms as UTC ISO-8601 with millisecond precision, e.g. 2025-01-01T08:00:00.000Z."""

    dt = datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{epoch_ms % 1000:03d}Z"


def parse_timestamp(value: object) -> int:
    """Parse a fix timestamp into epoch milliseconds.

    Accepted forms:
      - int/float epoch milliseconds
      - numeric strings (epoch milliseconds)
      - ISO-8601 strings, with "Z" or an offset; naive strings are read as UTC

    Raises:
        ValueError: If the value cannot be interpreted or lies outside the datetime range.
    """

    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"Invalid timestamp: {value!r}")
        return _representable_ms(int(value))
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")

    s = value.strip()
    if not s:
        raise ValueError("Empty timestamp")
    try:
        ms = int(float(s)) if s.lstrip("-").replace(".", "", 1).isdigit() else _parse_iso_ms(s)
        return _representable_ms(ms)
    except ValueError as exc:
        raise ValueError(f"Cannot parse timestamp: {value!r}. Expected ISO-8601 or epoch ms") from exc


def _parse_iso_ms(text: str) -> int:
    return epoch_ms_from_dt(datetime.fromisoformat(text.replace(" ", "T", 1)))


def _representable_ms(epoch_ms: int) -> int:
    # Must survive conversion to a UTC and a host-local datetime.
    try:
        datetime.fromtimestamp(epoch_ms / 1000.0, tz=UTC).astimezone()
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"Timestamp out of range: {epoch_ms}") from exc
    return epoch_ms


def parse_dt(text: str, tz: tzinfo | None) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+02:00"

    If timezone is missing, it is assumed to be ``tz`` (host local if None).

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"Cannot parse datetime: {text!r}. Suggested format: 2025-06-01 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz) if tz is not None else dt.astimezone()
    return dt.astimezone(tz)


@dataclass(frozen=True, slots=True)
class DeltaStats:
    """Sampling interval stats (seconds)."""

    count: int
    min_s: float
    median_s: float
    p95_s: float
    max_s: float


def delta_stats(epoch_ms_sorted: Iterable[int]) -> DeltaStats | None:
    """Compute sampling-interval statistics between consecutive fixes.

    Args:
        epoch_ms_sorted: Epoch ms sorted ascending.

    Returns:
        DeltaStats or None if less than 2 points.
    """

    ms = list(epoch_ms_sorted)
    deltas = sorted((ms[i] - ms[i - 1]) / 1000.0 for i in range(1, len(ms)) if ms[i] >= ms[i - 1])
    if not deltas:
        return None
    return DeltaStats(
        count=len(deltas),
        min_s=deltas[0],
        median_s=statistics.median(deltas),
        p95_s=deltas[int(0.95 * (len(deltas) - 1))],
        max_s=deltas[-1],
    )
