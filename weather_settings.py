"""
Weather settings for Barnbook ride-day scoring.
A single row holds the site location, scoring thresholds and the
self-tuned footing drying rate.
"""

import math
import logging
from datetime import datetime

from db import get_db
from footing.helpers import DEFAULT_SETTINGS, parse_datetime
from footing.tuner import MIN_DRYING_RATE, MAX_DRYING_RATE

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BOOLEAN_FIELDS = ['has_indoor_arena', 'auto_tune_drying_rate']

# Fields that must be strictly positive
POSITIVE_FIELDS = ['rain_cutoff_inches', 'footing_dry_hours_per_inch']

PERCENT_FIELDS = ['rain_chance_caution_pct', 'rain_chance_unsafe_pct']

MARGIN_FIELDS = ['temp_caution_margin_f', 'wind_caution_margin_mph', 'extreme_wind_margin_mph']

TEMPERATURE_FIELDS = ['cold_alert_temp_f', 'heat_alert_temp_f', 'blanket_temp_f']

EDITABLE_FIELDS = (
    ['location_lat', 'location_lng', 'rain_window_hours', 'wind_cutoff_mph',
     'moisture_caution_ratio']
    + BOOLEAN_FIELDS + POSITIVE_FIELDS + PERCENT_FIELDS + MARGIN_FIELDS + TEMPERATURE_FIELDS
)

MAX_RAIN_WINDOW_HOURS = 168

_SELECT_COLUMNS = ', '.join(
    ['id', 'version', 'last_tuned_at', 'updated_at'] + sorted(DEFAULT_SETTINGS)
)


class SettingsError(ValueError):
    """Raised when a settings edit would leave the row invalid."""
    pass


# ---------------------------------------------------------------------------
# Table Initialization
# ---------------------------------------------------------------------------

def init_weather_settings_table():
    """Create the weather_settings table and its singleton row."""
    d = DEFAULT_SETTINGS
    with get_db() as conn:
        conn.execute(f'''
            CREATE TABLE IF NOT EXISTS weather_settings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                singleton INTEGER NOT NULL DEFAULT 1 UNIQUE CHECK (singleton = 1),
                location_lat REAL,
                location_lng REAL,
                rain_cutoff_inches REAL NOT NULL DEFAULT {d['rain_cutoff_inches']},
                rain_window_hours INTEGER NOT NULL DEFAULT {d['rain_window_hours']},
                cold_alert_temp_f REAL NOT NULL DEFAULT {d['cold_alert_temp_f']},
                heat_alert_temp_f REAL NOT NULL DEFAULT {d['heat_alert_temp_f']},
                wind_cutoff_mph REAL NOT NULL DEFAULT {d['wind_cutoff_mph']},
                has_indoor_arena INTEGER NOT NULL DEFAULT 0,
                footing_dry_hours_per_inch REAL NOT NULL DEFAULT {d['footing_dry_hours_per_inch']}
                    CHECK (footing_dry_hours_per_inch > 0),
                auto_tune_drying_rate INTEGER NOT NULL DEFAULT 1,
                last_tuned_at TEXT,
                rain_chance_caution_pct REAL NOT NULL DEFAULT {d['rain_chance_caution_pct']},
                rain_chance_unsafe_pct REAL NOT NULL DEFAULT {d['rain_chance_unsafe_pct']},
                moisture_caution_ratio REAL NOT NULL DEFAULT {d['moisture_caution_ratio']},
                temp_caution_margin_f REAL NOT NULL DEFAULT {d['temp_caution_margin_f']},
                wind_caution_margin_mph REAL NOT NULL DEFAULT {d['wind_caution_margin_mph']},
                extreme_wind_margin_mph REAL NOT NULL DEFAULT {d['extreme_wind_margin_mph']},
                blanket_temp_f REAL NOT NULL DEFAULT {d['blanket_temp_f']},
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.execute(
            'INSERT INTO weather_settings (singleton) VALUES (1) ON CONFLICT (singleton) DO NOTHING'
        )

    logger.info("Weather settings table initialized")


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def _row_to_settings(row):
    if row is None:
        return None
    d = dict(row)
    for flag in BOOLEAN_FIELDS:
        d[flag] = bool(d.get(flag))
    for key in ('location_lat', 'location_lng'):
        if d.get(key) is not None:
            d[key] = float(d[key])
    d['rain_window_hours'] = int(d['rain_window_hours'])
    d['footing_dry_hours_per_inch'] = float(d['footing_dry_hours_per_inch'])
    if isinstance(d.get('last_tuned_at'), datetime):
        d['last_tuned_at'] = d['last_tuned_at'].isoformat()
    return d


def get_settings():
    """Return the singleton settings row as a dict."""
    with get_db() as conn:
        row = conn.execute(f'SELECT {_SELECT_COLUMNS} FROM weather_settings LIMIT 1').fetchone()
    if row is None:
        raise RuntimeError("weather_settings is empty; call init_weather_settings_table() first")
    return _row_to_settings(row)


def _validate_number(key, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SettingsError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise SettingsError(f"{key} must be finite, got {value}")
    return float(value)


def validate_settings_update(data, current=None):
    """
    Validate a partial settings edit.

    Args:
        data: dict of field → new value (only EDITABLE_FIELDS allowed).
        current: existing settings, used for cross-field checks.

    Returns:
        dict of cleaned values ready to write.
    """
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise SettingsError(f"Unknown settings field(s): {sorted(unknown)}")

    cleaned = {}
    for key, value in data.items():
        if key in ('location_lat', 'location_lng'):
            if value is None:
                cleaned[key] = None
                continue
            value = _validate_number(key, value)
            limit = 90 if key == 'location_lat' else 180
            if not -limit <= value <= limit:
                raise SettingsError(f"{key} must be between -{limit} and {limit}")
        elif key in BOOLEAN_FIELDS:
            if not isinstance(value, bool):
                raise SettingsError(f"{key} must be true or false")
            value = 1 if value else 0
        elif key == 'rain_window_hours':
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_RAIN_WINDOW_HOURS:
                raise SettingsError(f"rain_window_hours must be an integer between 1 and {MAX_RAIN_WINDOW_HOURS}")
        elif key == 'moisture_caution_ratio':
            value = _validate_number(key, value)
            if not 0 < value <= 1:
                raise SettingsError("moisture_caution_ratio must be in (0, 1]")
        elif key == 'footing_dry_hours_per_inch':
            value = _validate_number(key, value)
            if not MIN_DRYING_RATE <= value <= MAX_DRYING_RATE:
                raise SettingsError(
                    f"footing_dry_hours_per_inch must be between {MIN_DRYING_RATE:g} and {MAX_DRYING_RATE:g}"
                )
        elif key in POSITIVE_FIELDS or key == 'wind_cutoff_mph':
            value = _validate_number(key, value)
            if value <= 0:
                raise SettingsError(f"{key} must be positive, got {value}")
        elif key in PERCENT_FIELDS:
            value = _validate_number(key, value)
            if not 0 <= value <= 100:
                raise SettingsError(f"{key} must be between 0 and 100")
        elif key in MARGIN_FIELDS:
            value = _validate_number(key, value)
            if value < 0:
                raise SettingsError(f"{key} must not be negative")
        else:
            value = _validate_number(key, value)
        cleaned[key] = value

    merged = dict(current or DEFAULT_SETTINGS)
    merged.update(cleaned)
    if float(merged['cold_alert_temp_f']) >= float(merged['heat_alert_temp_f']):
        raise SettingsError("cold_alert_temp_f must be below heat_alert_temp_f")
    if float(merged['rain_chance_caution_pct']) > float(merged['rain_chance_unsafe_pct']):
        raise SettingsError("rain_chance_caution_pct must not exceed rain_chance_unsafe_pct")

    return cleaned


def update_settings(data):
    """Apply a partial edit and return the updated settings."""
    current = get_settings()
    cleaned = validate_settings_update(data, current)
    if not cleaned:
        return current

    assignments = ', '.join(f'{key} = ?' for key in cleaned)
    with get_db() as conn:
        conn.execute(
            f'UPDATE weather_settings SET {assignments}, version = version + 1, '
            f'updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            list(cleaned.values()) + [current['id']]
        )

    logger.info(f"Weather settings updated: {sorted(cleaned)}")
    return get_settings()


def compare_and_set_drying_rate(expected_version, new_rate, tuned_at=None):
    """
    Write a tuned drying rate only if nobody else wrote settings meanwhile.

    Returns:
        True if the row was updated, False if its version had moved on.
    """
    if isinstance(new_rate, bool) or not isinstance(new_rate, (int, float)) \
            or not math.isfinite(new_rate) or new_rate <= 0:
        raise SettingsError(f"Refusing to store drying rate {new_rate!r}")

    tuned_at = parse_datetime(tuned_at) if tuned_at is not None else None
    with get_db() as conn:
        cursor = conn.execute(
            '''UPDATE weather_settings
               SET footing_dry_hours_per_inch = ?, last_tuned_at = ?,
                   version = version + 1, updated_at = CURRENT_TIMESTAMP
               WHERE version = ?''',
            (float(new_rate), tuned_at.isoformat() if tuned_at else None, expected_version)
        )
        return cursor.rowcount == 1


def is_location_configured(settings):
    return settings is not None and settings.get('location_lat') is not None \
        and settings.get('location_lng') is not None
