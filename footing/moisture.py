"""
Footing Engine — Moisture Estimator
=====================================
Linear drying model for arena/trail footing.

Every rain contribution inside the lookback window dries independently at
``footing_dry_hours_per_inch`` hours per inch; whatever has not dried yet is
summed into the current moisture. Future days are projected by drying
through each intervening day's rain-free hours and then adding that day's
forecast precipitation.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from footing.helpers import parse_datetime, parse_date, setting, to_local

logger = logging.getLogger(__name__)


def _reference_time(current: Optional[Dict], daily_forecast: Optional[List[Dict]],
                    now: Optional[datetime]) -> datetime:
    """Resolve "now" from explicit input only, never from the wall clock."""
    if now is not None:
        return parse_datetime(now)
    if current and current.get('as_of'):
        return parse_datetime(current['as_of'])
    if daily_forecast and daily_forecast[0].get('date'):
        d = parse_date(daily_forecast[0]['date'])
        return datetime(d.year, d.month, d.day, 12, tzinfo=timezone.utc)
    raise ValueError("Cannot estimate moisture without a reference time")


def _drying_rate(settings: Dict) -> float:
    rate = float(setting(settings, 'footing_dry_hours_per_inch'))
    if not rate > 0:
        raise ValueError(f"footing_dry_hours_per_inch must be positive, got {rate}")
    return rate


def _state(moisture: float, as_of, known: bool, settings: Dict,
           recent_rain_inches: Optional[float] = None) -> Dict:
    moisture = max(0.0, moisture)
    cutoff = float(setting(settings, 'rain_cutoff_inches'))
    return {
        'current_moisture': round(moisture, 4),
        'as_of': as_of,
        'known': known,
        'saturated': known and moisture >= cutoff,
        'hours_to_dry': round(moisture * _drying_rate(settings), 1) if known else None,
        'recent_rain_inches': recent_rain_inches,
    }


def estimate_moisture(recent_rain: Optional[List[Dict]], current: Optional[Dict],
                      daily_forecast: Optional[List[Dict]], settings: Dict,
                      now: Optional[datetime] = None, tz_offset: int = 0) -> Dict:
    """
    Estimate today's footing moisture from recent rainfall.

    Args:
        recent_rain: Ordered ``{time, amount_inches}`` samples. None or empty
            means the history could not be fetched; the result is then
            ``known=False`` with zero moisture, and callers must not treat it
            as dry ground.
        current: Current conditions; ``as_of`` is the default reference time
            and active ``precipitation_inches`` counts as rain that just fell.
        daily_forecast: Used only to derive a reference time when neither
            ``now`` nor ``current['as_of']`` is available.
        settings: WeatherSettings dict.
        now: Explicit reference instant.
        tz_offset: Location offset from UTC in seconds; ``as_of`` is the
            local date of the reference instant.

    Returns:
        MoistureState dict.
    """
    ref = _reference_time(current, daily_forecast, now)
    as_of = to_local(ref, tz_offset).date().isoformat()

    if not recent_rain:
        logger.debug("No recent rain data; moisture unknown")
        return _state(0.0, as_of, False, settings)

    rate = _drying_rate(settings)
    window_start = ref - timedelta(hours=float(setting(settings, 'rain_window_hours')))

    total_rain = 0.0
    moisture = 0.0
    for sample in recent_rain:
        amount = float(sample.get('amount_inches') or 0)
        when = parse_datetime(sample.get('time'))
        if amount <= 0 or when is None:
            continue
        if when <= window_start or when > ref:
            continue
        elapsed_hours = (ref - when).total_seconds() / 3600
        total_rain += amount
        moisture += max(0.0, amount - elapsed_hours / rate)

    active = float((current or {}).get('precipitation_inches') or 0)
    if active > 0:
        total_rain += active
        moisture += active

    return _state(moisture, as_of, True, settings, round(total_rain, 4))


def dry_hours(day: Dict) -> float:
    """Rain-free hours implied by a day's precipitation chance."""
    chance = min(100.0, max(0.0, float(day.get('precipitation_chance') or 0)))
    return 24 * (1 - chance / 100)


def estimate_future_moisture(today_moisture: float, days_ahead: int,
                             daily_forecast: List[Dict], settings: Dict) -> Dict:
    """Project moisture ``days_ahead`` days past ``daily_forecast[0]``.

    Each intervening day first dries through its rain-free hours, then gains
    its own forecast precipitation. Both steps are non-decreasing in the
    running value, so more rain earlier never lowers a later projection.
    """
    if days_ahead < 0:
        raise ValueError("days_ahead must be non-negative")
    if days_ahead >= len(daily_forecast):
        raise ValueError(f"Forecast has no day {days_ahead}")

    rate = _drying_rate(settings)
    moisture = max(0.0, float(today_moisture))
    for day in daily_forecast[:days_ahead]:
        moisture = max(0.0, moisture - dry_hours(day) / rate)
        moisture += float(day.get('precipitation_inches') or 0)

    return _state(moisture, daily_forecast[days_ahead].get('date'), True, settings)
