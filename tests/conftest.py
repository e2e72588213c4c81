"""
Pytest configuration and shared fixtures for Barnbook footing tests.
"""

import os
import sys
import tempfile
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables before importing project modules
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="barnbook-tests-")
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ.setdefault("LOG_DIR", _TEST_DATA_DIR)
os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("OPENWEATHERMAP_API_KEY", "test-key-not-real")


# Monday 2026-10-19 .. Friday 2026-10-23
HORIZON = ["2026-10-19", "2026-10-20", "2026-10-21", "2026-10-22", "2026-10-23"]


def _day(date, **overrides):
    day = {
        "date": date,
        "high_f": 70,
        "low_f": 50,
        "day_f": 65,
        "precipitation_chance": 0,
        "precipitation_inches": 0.0,
        "wind_speed_mph": 5,
        "clouds_pct": 10,
        "humidity_pct": 50,
        "condition": "Clear",
        "sunrise": f"{date}T06:45:00+00:00",
        "sunset": f"{date}T18:30:00+00:00",
    }
    day.update(overrides)
    return day


@pytest.fixture
def make_day():
    """Factory for a mild, dry DayForecast dict (UTC location)."""
    return _day


@pytest.fixture
def settings():
    return {
        "location_lat": 38.03,
        "location_lng": -84.5,
        "rain_cutoff_inches": 0.5,
        "rain_window_hours": 48,
        "cold_alert_temp_f": 20,
        "heat_alert_temp_f": 95,
        "wind_cutoff_mph": 25,
        "has_indoor_arena": False,
        "footing_dry_hours_per_inch": 12,
        "auto_tune_drying_rate": True,
    }


@pytest.fixture
def mild_forecast():
    """Five mild dry days with current conditions, no hourly data."""
    return {
        "current": {
            "temperature_f": 60,
            "wind_speed_mph": 5,
            "precipitation_inches": 0.0,
            "condition": "Clear",
            "as_of": "2026-10-19T12:00:00+00:00",
        },
        "daily": [_day(d) for d in HORIZON],
        "hourly": [],
        "timezone_offset": 0,
    }


class FakeForecastSource:
    """Stands in for the weather_service module in orchestration tests."""

    def __init__(self, forecast, recent_rain=None, rain_error=None, configured=True):
        self.forecast = forecast
        self.recent_rain = recent_rain if recent_rain is not None else []
        self.rain_error = rain_error
        self.configured = configured
        self.calls = []

    def is_configured(self):
        return self.configured

    def get_forecast(self, lat, lng):
        self.calls.append(("forecast", lat, lng))
        return self.forecast

    def get_recent_rain(self, lat, lng, window_hours):
        self.calls.append(("recent_rain", lat, lng, window_hours))
        if self.rain_error is not None:
            raise self.rain_error
        return self.recent_rain


@pytest.fixture
def fake_source():
    """Factory building a FakeForecastSource."""
    return FakeForecastSource


@pytest.fixture
def clean_db():
    """Fresh tables with only the default settings row."""
    from db import get_db
    from ride_days import init_tables
    from footing import background
    from weather_settings import init_weather_settings_table

    init_tables()
    background.drain()
    with get_db() as conn:
        for table in ("footing_feedback", "weather_prediction_snapshots",
                      "suggested_ride_windows", "ride_schedule", "weather_settings"):
            conn.execute(f"DELETE FROM {table}")
    init_weather_settings_table()
    yield
    background.drain()


@pytest.fixture
def located(clean_db):
    """Default settings plus a location and a 12 h/in drying rate."""
    from weather_settings import update_settings
    return update_settings({
        "location_lat": 38.03,
        "location_lng": -84.5,
        "footing_dry_hours_per_inch": 12.0,
    })
