"""
Footing Engine — Helpers
==========================
Time parsing and local-clock conversions shared by the scorer and the
window generator. Forecast instants arrive as UTC; ride slots and busy
intervals are local wall-clock values shifted by the forecast's
timezone offset (seconds east of UTC).
"""

import math
from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None for empty input.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Union[str, date]) -> date:
    """Parse 'YYYY-MM-DD' (or a datetime/date) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_local(value, tz_offset: int = 0) -> Optional[datetime]:
    """Convert an instant to naive local wall-clock time."""
    dt = parse_datetime(value)
    if dt is None:
        return None
    return (dt + timedelta(seconds=tz_offset or 0)).replace(tzinfo=None)


def local_minutes(value, tz_offset: int = 0) -> Optional[int]:
    """Minutes after local midnight for an instant, or None."""
    local = to_local(value, tz_offset)
    if local is None:
        return None
    return local.hour * 60 + local.minute


def get_local_hour(value, tz_offset: int = 0) -> Optional[int]:
    local = to_local(value, tz_offset)
    return local.hour if local is not None else None


def parse_clock(value: str) -> int:
    """'HH:MM' or 'HH:MM:SS' → minutes after midnight. '24:00' is allowed."""
    parts = str(value).strip().split(':')
    if len(parts) < 2:
        raise ValueError(f"Invalid clock time: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 24 and 0 <= minutes < 60) or (hours == 24 and minutes):
        raise ValueError(f"Invalid clock time: {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    """Minutes after midnight → 'HH:MM:SS'."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}:00"


def day_of_week(value) -> int:
    """Weekday with Sunday = 0 through Saturday = 6 (ride_schedule convention)."""
    return (parse_date(value).weekday() + 1) % 7


def is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

# Seed values for the weather_settings row; the scorer falls back to these
# for any key a caller leaves out.
DEFAULT_SETTINGS = {
    'location_lat': None,
    'location_lng': None,
    'rain_cutoff_inches': 0.5,
    'rain_window_hours': 48,
    'cold_alert_temp_f': 20.0,
    'heat_alert_temp_f': 95.0,
    'wind_cutoff_mph': 25.0,
    'has_indoor_arena': False,
    'footing_dry_hours_per_inch': 48.0,
    'auto_tune_drying_rate': True,
    'rain_chance_caution_pct': 60.0,
    'rain_chance_unsafe_pct': 90.0,
    'moisture_caution_ratio': 0.5,
    'temp_caution_margin_f': 10.0,
    'wind_caution_margin_mph': 10.0,
    'extreme_wind_margin_mph': 15.0,
    'blanket_temp_f': 40.0,
}


def setting(settings, key):
    """Read a setting, falling back to DEFAULT_SETTINGS when absent or NULL."""
    value = (settings or {}).get(key)
    if value is None:
        return DEFAULT_SETTINGS.get(key)
    return value
