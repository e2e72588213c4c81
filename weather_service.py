"""
Weather integration for Barnbook ride-day scoring.
Uses the OpenWeatherMap One Call 3.0 API for forecasts and the timemachine
endpoint for recent rainfall history.
"""
import logging
import math
import os
from typing import Dict, List, Optional, Any
from datetime import datetime, timedelta, timezone

import diskcache
import requests

from config import Config

logger = logging.getLogger(__name__)

ONECALL_API_URL = "https://api.openweathermap.org/data/3.0/onecall"

CACHE_DIR = os.path.join(Config.DATA_DIR, 'cache', 'weather')

_cache = None


class WeatherNotConfiguredError(RuntimeError):
    """Raised when scoring is requested without an API key or location."""
    pass


class WeatherServiceError(RuntimeError):
    """Raised when the weather provider fails or returns unusable data."""
    pass


def _get_cache():
    """Lazily open the on-disk response cache."""
    global _cache
    if _cache is None:
        os.makedirs(CACHE_DIR, exist_ok=True)
        _cache = diskcache.Cache(CACHE_DIR)
    return _cache


def _api_key():
    return os.getenv("OPENWEATHERMAP_API_KEY") or Config.OPENWEATHERMAP_API_KEY


def is_configured() -> bool:
    return bool(_api_key())


def mm_to_inches(mm: float) -> float:
    return round((mm or 0) / 25.4, 2)


def _iso(ts: Optional[int]) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _get_json(params: Dict[str, Any], url: str = ONECALL_API_URL) -> Dict:
    try:
        response = requests.get(url, params=params, timeout=Config.WEATHER_HTTP_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise WeatherServiceError(f"OpenWeatherMap request failed: {e}") from e
    except ValueError as e:
        raise WeatherServiceError(f"OpenWeatherMap returned invalid JSON: {e}") from e


def get_forecast(lat: float, lng: float) -> Dict[str, Any]:
    """
    Get current conditions plus daily and hourly forecasts for a location.

    Returns:
        dict with ``current``, ``daily``, ``hourly`` and ``timezone_offset``
        (seconds east of UTC).
    """
    if not is_configured():
        raise WeatherNotConfiguredError(
            "OpenWeatherMap not configured. Set OPENWEATHERMAP_API_KEY environment variable."
        )

    cache = _get_cache()
    cache_key = f"forecast:{lat},{lng}"
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Forecast cache hit for {lat},{lng}")
        return cached

    raw = _get_json({'lat': lat, 'lon': lng, 'units': 'imperial', 'appid': _api_key()})
    try:
        forecast = transform_response(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise WeatherServiceError(f"Weather parsing failed: {e}") from e

    cache.set(cache_key, forecast, expire=Config.FORECAST_CACHE_TTL)
    return forecast


def _precip_mm(block: Dict, key: str = '1h') -> float:
    """Rain plus snow in mm; daily blocks carry plain numbers, hourly ones dicts."""
    total = 0.0
    for kind in ('rain', 'snow'):
        value = block.get(kind)
        if isinstance(value, dict):
            total += value.get(key, 0) or 0
        elif value:
            total += value
    return total


def transform_response(raw: Dict) -> Dict[str, Any]:
    """Convert a One Call 3.0 payload into Barnbook forecast dicts."""
    tz_offset = int(raw.get('timezone_offset') or 0)
    cw = raw.get('current') or {}
    current_precip_mm = _precip_mm(cw)

    current = {
        'temperature_f': round(cw.get('temp', 0)),
        'feels_like_f': round(cw.get('feels_like', 0)),
        'humidity_percent': cw.get('humidity', 0),
        'wind_speed_mph': round(cw.get('wind_speed', 0)),
        'wind_gust_mph': round(cw.get('wind_gust', 0)),
        'precipitation_chance': 100 if current_precip_mm > 0 else 0,
        'precipitation_inches': mm_to_inches(current_precip_mm),
        'condition': (cw.get('weather') or [{}])[0].get('main', 'Unknown'),
        'uv_index': round(cw.get('uvi', 0)),
        'as_of': _iso(cw.get('dt')) or datetime.now(timezone.utc).isoformat(),
    }

    hourly = []
    for h in raw.get('hourly') or []:
        hourly.append({
            'hour': _iso(h.get('dt')),
            'pop': h.get('pop', 0),
            'rain_inches': mm_to_inches(_precip_mm(h)),
            'wind_speed_mph': round(h.get('wind_speed', 0)),
            'temp_f': h.get('temp'),
        })

    daily = []
    for d in raw.get('daily') or []:
        temp = d.get('temp') or {}
        local_date = ''
        if d.get('dt'):
            local_date = (datetime.fromtimestamp(d['dt'], tz=timezone.utc)
                          + timedelta(seconds=tz_offset)).date().isoformat()
        daily.append({
            'date': local_date,
            'high_f': round(temp.get('max', 0)),
            'low_f': round(temp.get('min', 0)),
            'day_f': round(temp.get('day', 0)),
            'precipitation_chance': round((d.get('pop') or 0) * 100),
            'precipitation_inches': mm_to_inches(_precip_mm(d)),
            'wind_speed_mph': round(d.get('wind_speed', 0)),
            'clouds_pct': d.get('clouds', 0),
            'humidity_pct': d.get('humidity', 0),
            'condition': (d.get('weather') or [{}])[0].get('main', 'Unknown'),
            'sunrise': _iso(d.get('sunrise')),
            'sunset': _iso(d.get('sunset')),
        })

    return {'current': current, 'daily': daily, 'hourly': hourly, 'timezone_offset': tz_offset}


def _fetch_timemachine_day(lat: float, lng: float, when: datetime) -> List[Dict]:
    """Historical hourly rain for one timestamp; cached for a day since history is immutable."""
    cache = _get_cache()
    cache_key = f"tm:{lat},{lng}:{when.date().isoformat()}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    raw = _get_json({
        'lat': lat, 'lon': lng, 'dt': int(when.timestamp()),
        'units': 'imperial', 'appid': _api_key(),
    }, url=f"{ONECALL_API_URL}/timemachine")

    samples = [
        {'time': _iso(h['dt']), 'amount_inches': mm_to_inches(_precip_mm(h))}
        for h in raw.get('data') or [] if h.get('dt')
    ]
    cache.set(cache_key, samples, expire=Config.RECENT_RAIN_CACHE_TTL)
    return samples


def get_recent_rain(lat: float, lng: float, window_hours: int,
                    now: Optional[datetime] = None) -> List[Dict]:
    """
    Rainfall samples covering the last ``window_hours``.

    Returns:
        Ascending list of ``{time, amount_inches}``. Raises
        WeatherServiceError when history cannot be fetched; callers decide
        whether to degrade.
    """
    if not is_configured():
        raise WeatherNotConfiguredError("OpenWeatherMap not configured")

    now = now or datetime.now(timezone.utc)
    days_back = max(1, math.ceil(window_hours / 24))
    samples = []
    for days_ago in range(days_back, 0, -1):
        day = (now - timedelta(days=days_ago)).replace(hour=12, minute=0, second=0, microsecond=0)
        samples.extend(_fetch_timemachine_day(lat, lng, day))

    cutoff = now - timedelta(hours=window_hours)
    recent = [
        s for s in samples
        if cutoff <= datetime.fromisoformat(s['time']) <= now
    ]
    recent.sort(key=lambda s: s['time'])
    return recent
