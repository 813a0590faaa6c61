# Functions for working with UTC timestamps

import re
from datetime import datetime, timedelta, timezone


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"\.(\d+)")


def now_utc_dt():
    return datetime.now(timezone.utc)


def lookback_start(minutes, now=None):
    now = now or now_utc_dt()
    return now - timedelta(minutes=minutes)


def _datetime_to_ns(dt):
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    micros = (dt - EPOCH) // timedelta(microseconds=1)
    # DatetimeWithNanoseconds carries the digits below the microsecond
    extra = getattr(dt, "nanosecond", 0) % 1000
    return micros * 1000 + extra


def _rfc3339_to_ns(s):
    s = s.strip()
    nanos = 0
    match = _FRACTION.search(s)
    if match:
        digits = match.group(1)
        nanos = int(digits[:9].ljust(9, "0"))
        s = s[:match.start()] + s[match.end():]

    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    return _datetime_to_ns(dt) + nanos


def to_timestamp_ns(value):
    """Chronological key for an event time, in nanoseconds since the epoch.

    Accepts datetimes, RFC3339 strings, epoch seconds, protobuf Timestamps
    and None (treated as the epoch). Comparing the returned integers orders
    times by value even when the inputs differ in precision or offset.
    """
    if value is None:
        return 0
    if isinstance(value, datetime):
        return _datetime_to_ns(value)
    if isinstance(value, str):
        if not value.strip():
            return 0
        return _rfc3339_to_ns(value)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if isinstance(value, int):
        return value * 1_000_000_000
    if isinstance(value, float):
        return int(round(value * 1_000_000_000))
    if hasattr(value, "seconds") and hasattr(value, "nanos"):
        return int(value.seconds) * 1_000_000_000 + int(value.nanos)
    raise ValueError(f"Unsupported timestamp: {value!r}")
