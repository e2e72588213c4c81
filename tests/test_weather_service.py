"""Tests for weather_service.py: OpenWeatherMap parsing and fetch errors."""

from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import diskcache
import pytest
import requests

import weather_service
from config import Config
from weather_service import (
    get_forecast, get_recent_rain, transform_response, mm_to_inches,
    WeatherNotConfiguredError, WeatherServiceError,
)

# 2026-10-19T12:00:00Z
NOON = 1792411200


def ts(hours_from_noon):
    return NOON + hours_from_noon * 3600


@pytest.fixture
def onecall_payload():
    return {
        "timezone_offset": -14400,
        "current": {
            "dt": NOON, "temp": 61.4, "feels_like": 60.2, "humidity": 70,
            "wind_speed": 8.6, "wind_gust": 14.1, "uvi": 3.2,
            "rain": {"1h": 2.54}, "weather": [{"main": "Rain"}],
        },
        "hourly": [
            {"dt": ts(1), "temp": 62.0, "pop": 0.4, "wind_speed": 9.4, "rain": {"1h": 1.27}},
            {"dt": ts(2), "temp": 63.0, "pop": 0.1, "wind_speed": 7.0},
        ],
        "daily": [
            {
                # 02:00Z on the 20th is still the 19th at UTC-4
                "dt": ts(14), "sunrise": ts(-1), "sunset": ts(11),
                "temp": {"max": 66.6, "min": 48.2, "day": 63.1},
                "pop": 0.35, "rain": 6.35, "snow": 6.35, "wind_speed": 12.4,
                "clouds": 40, "humidity": 65, "weather": [{"main": "Rain"}],
            },
        ],
    }


@pytest.fixture
def fresh_cache(tmp_path, monkeypatch):
    cache = diskcache.Cache(str(tmp_path / "weather"))
    monkeypatch.setattr(weather_service, "_cache", cache)
    yield cache
    cache.close()


def ok_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


# ── Parsing ──

class TestTransformResponse:
    def test_current(self, onecall_payload):
        current = transform_response(onecall_payload)["current"]
        assert current["temperature_f"] == 61
        assert current["wind_speed_mph"] == 9
        assert current["precipitation_inches"] == 0.1
        assert current["precipitation_chance"] == 100
        assert current["condition"] == "Rain"
        assert current["as_of"] == "2026-10-19T12:00:00+00:00"

    def test_daily_uses_local_date(self, onecall_payload):
        forecast = transform_response(onecall_payload)
        day = forecast["daily"][0]
        assert forecast["timezone_offset"] == -14400
        assert day["date"] == "2026-10-19"
        assert day["high_f"] == 67
        assert day["low_f"] == 48
        assert day["precipitation_chance"] == 35
        assert day["precipitation_inches"] == 0.5
        assert day["sunrise"] == "2026-10-19T11:00:00+00:00"

    def test_hourly(self, onecall_payload):
        hourly = transform_response(onecall_payload)["hourly"]
        assert hourly[0]["rain_inches"] == 0.05
        assert hourly[1]["rain_inches"] == 0
        assert hourly[0]["wind_speed_mph"] == 9

    def test_empty_payload(self):
        forecast = transform_response({})
        assert forecast["daily"] == []
        assert forecast["hourly"] == []

    def test_mm_to_inches(self):
        assert mm_to_inches(25.4) == 1.0
        assert mm_to_inches(None) == 0


# ── Fetching ──

class TestGetForecast:
    def test_cached_between_calls(self, onecall_payload, fresh_cache):
        with patch("weather_service.requests.get", return_value=ok_response(onecall_payload)) as mock_get:
            first = get_forecast(38.03, -84.5)
            second = get_forecast(38.03, -84.5)
        assert first == second
        assert mock_get.call_count == 1
        assert mock_get.call_args.kwargs["params"]["units"] == "imperial"

    def test_http_failure(self, fresh_cache):
        with patch("weather_service.requests.get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(WeatherServiceError):
                get_forecast(38.03, -84.5)

    def test_bad_status(self, fresh_cache):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        with patch("weather_service.requests.get", return_value=response):
            with pytest.raises(WeatherServiceError):
                get_forecast(38.03, -84.5)

    def test_not_configured(self, monkeypatch, fresh_cache):
        monkeypatch.delenv("OPENWEATHERMAP_API_KEY", raising=False)
        monkeypatch.setattr(Config, "OPENWEATHERMAP_API_KEY", None)
        with patch("weather_service.requests.get") as mock_get:
            with pytest.raises(WeatherNotConfiguredError):
                get_forecast(38.03, -84.5)
        mock_get.assert_not_called()


class TestGetRecentRain:
    def test_filters_to_window(self, fresh_cache):
        def fake_day(lat, lng, when):
            start = int(when.replace(hour=0).timestamp())
            return [
                {"time": datetime.fromtimestamp(start + h * 3600, tz=timezone.utc).isoformat(),
                 "amount_inches": 0.01}
                for h in range(24)
            ]

        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        with patch("weather_service._fetch_timemachine_day", side_effect=fake_day) as mock_fetch:
            samples = get_recent_rain(38.03, -84.5, 48, now=now)

        assert mock_fetch.call_count == 2
        # 12:00-23:00 on the 17th plus all of the 18th
        assert len(samples) == 36
        times = [s["time"] for s in samples]
        assert times == sorted(times)
        assert times[0] == "2026-10-17T12:00:00+00:00"

    def test_timemachine_parsed_and_cached(self, fresh_cache):
        payload = {"data": [{"dt": ts(-24), "rain": {"1h": 5.08}}]}
        now = datetime(2026, 10, 19, 12, tzinfo=timezone.utc)
        with patch("weather_service.requests.get", return_value=ok_response(payload)) as mock_get:
            first = get_recent_rain(38.03, -84.5, 24, now=now)
            second = get_recent_rain(38.03, -84.5, 24, now=now)
        assert first == [{"time": "2026-10-18T12:00:00+00:00", "amount_inches": 0.2}]
        assert second == first
        assert mock_get.call_count == 1
