"""
Footing Engine — Day Scorer
=============================
Scores each forecast day as "green" (good), "yellow" (caution), or "red"
(no-go) and explains why.

Every rule that matches is recorded, so a day with rain and wind lists both.
``reasons`` holds the human-readable explanation, ``factors`` the stable
machine codes behind it, and ``notes`` the secondary advisories.

Ground-condition reds (saturated footing, heavy rain, likely rain, high
wind) can be softened to yellow by an indoor arena. Cold, heat, extreme
wind and thunderstorms stay red regardless.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from footing.helpers import day_of_week, parse_clock, to_local, setting
from footing.moisture import estimate_moisture, estimate_future_moisture

logger = logging.getLogger(__name__)

SCORE_RANK = {'green': 0, 'yellow': 1, 'red': 2}

# Red factors an indoor arena makes rideable
INDOOR_OVERRIDABLE = frozenset({'saturated_footing', 'rain', 'rain_chance_unsafe', 'wind'})

THUNDERSTORM_CONDITIONS = ('thunderstorm', 'thunderstorms')


def escalate(current: str, to: str) -> str:
    return to if SCORE_RANK[to] > SCORE_RANK[current] else current


class _DayResult:
    """Accumulates a day's classification."""

    def __init__(self):
        self.score = 'green'
        self.reasons = []
        self.notes = []
        self.factors = []
        self.red_factors = set()

    def flag(self, factor, score, reason):
        self.score = escalate(self.score, score)
        self.reasons.append(reason)
        self.factors.append(factor)
        if score == 'red':
            self.red_factors.add(factor)


def _score_moisture(result: _DayResult, moisture: Optional[Dict], settings: Dict):
    if moisture is None or not moisture.get('known'):
        result.notes.append("Recent rain data unavailable; footing not assessed")
        return

    value = moisture['current_moisture']
    cutoff = float(setting(settings, 'rain_cutoff_inches'))
    caution = cutoff * float(setting(settings, 'moisture_caution_ratio'))

    # The estimator decides saturation on the unrounded value
    if moisture.get('saturated', value >= cutoff):
        result.flag('saturated_footing', 'red',
                    f'Saturated footing: {value:.2f}" est. moisture')
    elif value >= caution:
        result.flag('soft_footing', 'yellow',
                    f'Soft footing: {value:.2f}" est. moisture')
    elif value > 0:
        result.notes.append(f'Ground still damp ({value:.2f}" est. moisture)')
    else:
        result.notes.append("Footing dry")


def _score_rain(result: _DayResult, forecast: Dict, settings: Dict):
    inches = float(forecast.get('precipitation_inches') or 0)
    chance = float(forecast.get('precipitation_chance') or 0)

    if inches >= float(setting(settings, 'rain_cutoff_inches')):
        result.flag('rain', 'red', f'Rain: {inches}" expected')
    if chance >= float(setting(settings, 'rain_chance_unsafe_pct')):
        result.flag('rain_chance_unsafe', 'red', f'{chance:.0f}% chance of rain')
    elif chance >= float(setting(settings, 'rain_chance_caution_pct')):
        result.flag('rain_chance', 'yellow', f'{chance:.0f}% chance of rain')

    condition = str(forecast.get('condition') or '').lower()
    if condition in THUNDERSTORM_CONDITIONS:
        result.flag('thunderstorm', 'red', "Thunderstorms forecast")


def _score_wind(result: _DayResult, wind: float, settings: Dict):
    cutoff = float(setting(settings, 'wind_cutoff_mph'))
    if wind >= cutoff + float(setting(settings, 'extreme_wind_margin_mph')):
        result.flag('extreme_wind', 'red', f'Extreme wind: {wind:.0f} mph')
    elif wind >= cutoff:
        result.flag('wind', 'red', f'Wind: {wind:.0f} mph')
    elif wind >= cutoff - float(setting(settings, 'wind_caution_margin_mph')):
        result.flag('breezy', 'yellow', f'Breezy: {wind:.0f} mph')


def _score_temperature(result: _DayResult, forecast: Dict, settings: Dict):
    margin = float(setting(settings, 'temp_caution_margin_f'))
    cold = float(setting(settings, 'cold_alert_temp_f'))
    heat = float(setting(settings, 'heat_alert_temp_f'))
    low = forecast.get('low_f')
    high = forecast.get('high_f')

    if low is not None:
        if low <= cold:
            result.flag('cold', 'red', f'Cold: low of {low}°F')
        elif low <= cold + margin:
            result.flag('chilly', 'yellow', f'Chilly: low of {low}°F')

    if high is not None:
        if high >= heat:
            result.flag('heat', 'red', f'Heat: high of {high}°F')
        elif high >= heat - margin:
            result.flag('warm', 'yellow', f'Warm: high of {high}°F')


def score_day(forecast: Dict, settings: Dict, moisture: Optional[Dict] = None,
              ride_wind_mph: Optional[float] = None) -> Dict:
    """
    Score a single forecast day.

    Args:
        forecast: DayForecast dict.
        settings: WeatherSettings dict.
        moisture: MoistureState for this day, or None when unknown.
        ride_wind_mph: Wind during the day's likely ride slots; defaults to
            the daily wind speed.

    Returns:
        ScoredDay dict.
    """
    result = _DayResult()

    _score_moisture(result, moisture, settings)
    _score_rain(result, forecast, settings)

    wind = ride_wind_mph if ride_wind_mph is not None else float(forecast.get('wind_speed_mph') or 0)
    _score_wind(result, wind, settings)
    _score_temperature(result, forecast, settings)

    if (result.score == 'red' and setting(settings, 'has_indoor_arena')
            and result.red_factors <= INDOOR_OVERRIDABLE):
        result.score = 'yellow'
        result.notes.append("Indoor arena available")

    blanket_low = None
    low = forecast.get('low_f')
    if low is not None and low <= float(setting(settings, 'blanket_temp_f')):
        blanket_low = low
        result.notes.append(f"Blanket tonight: low of {low}°F")

    if result.score == 'green':
        result.notes.append("Good riding conditions")

    return {
        'date': forecast.get('date'),
        'score': result.score,
        'reasons': result.reasons,
        'notes': result.notes,
        'factors': result.factors,
        'forecast': forecast,
        'moisture': moisture,
        'blanket_low_f': blanket_low,
    }


def ride_slot_wind(day: Dict, hourly_forecast: Optional[List[Dict]],
                   ride_slots: Optional[List[Dict]], tz_offset: int = 0) -> Optional[float]:
    """Peak hourly wind inside the day's scheduled ride slots.

    Returns None when the day has no slots or the hourly forecast does not
    reach them, so the caller falls back to the daily wind.
    """
    if not hourly_forecast or not ride_slots or not day.get('date'):
        return None

    dow = day_of_week(day['date'])
    slots = [(parse_clock(s['start_time']), parse_clock(s['end_time']))
             for s in ride_slots if int(s['day_of_week']) == dow]
    if not slots:
        return None

    winds = []
    for hour in hourly_forecast:
        local = to_local(hour.get('hour'), tz_offset)
        if local is None or local.date().isoformat() != day['date']:
            continue
        minute = local.hour * 60 + local.minute
        if any(start <= minute < end for start, end in slots):
            winds.append(float(hour.get('wind_speed_mph') or 0))

    return max(winds) if winds else None


def score_days(daily_forecast: List[Dict], settings: Dict,
               recent_rain: Optional[List[Dict]] = None,
               current: Optional[Dict] = None,
               hourly_forecast: Optional[List[Dict]] = None,
               ride_slots: Optional[List[Dict]] = None,
               tz_offset: int = 0,
               now: Optional[datetime] = None) -> List[Dict]:
    """
    Score every day of a forecast horizon.

    Day 0 uses the moisture estimated from ``recent_rain``; later days use
    that value projected forward through the forecast. When recent rain is
    unknown, every day is scored without moisture-based reasons.

    The result depends only on the arguments; ``now`` (or
    ``current['as_of']``) is the only notion of the present.
    """
    if not daily_forecast:
        return []

    today = estimate_moisture(recent_rain, current, daily_forecast, settings, now=now, tz_offset=tz_offset)
    if not today['known']:
        logger.warning("Scoring without recent rain data; moisture-based reasons omitted")

    scored = []
    for index, day in enumerate(daily_forecast):
        if not today['known']:
            moisture = None
        elif index == 0:
            moisture = today
        else:
            moisture = estimate_future_moisture(
                today['current_moisture'], index, daily_forecast, settings)

        wind = ride_slot_wind(day, hourly_forecast, ride_slots, tz_offset)
        scored.append(score_day(day, settings, moisture=moisture, ride_wind_mph=wind))

    return scored
