"""
Ride-day scoring pass for Barnbook.

Fetches the forecast and recent rain for the configured location, scores
each day, records prediction snapshots, and queues snapshot pruning. A
recent-rain failure degrades scoring (no moisture reasons) instead of
failing it; a missing API key or location fails fast.
"""

import logging
from datetime import datetime, timezone

import weather_service
from footing import background, get_alerts, score_days
from footing.helpers import parse_datetime
from footing_feedback import init_footing_feedback_table
from ride_schedule import get_schedule, init_ride_schedule_table
from weather_service import WeatherNotConfiguredError
from weather_settings import get_settings, init_weather_settings_table, is_location_configured
from weather_snapshots import init_weather_snapshots_table, prune_snapshots, upsert_snapshot

logger = logging.getLogger(__name__)


def init_tables():
    """Create every table the footing engine reads or writes."""
    from ride_windows import init_ride_windows_table

    init_weather_settings_table()
    init_ride_schedule_table()
    init_weather_snapshots_table()
    init_footing_feedback_table()
    init_ride_windows_table()


def load_scoring_inputs(forecast_source=weather_service, now=None):
    """
    Gather everything a scoring pass needs.

    Raises:
        WeatherNotConfiguredError: no API key or no location set.

    Returns:
        dict with settings, forecast, recent_rain (None when unavailable),
        ride_slots and now.
    """
    if not forecast_source.is_configured():
        raise WeatherNotConfiguredError("Weather provider not configured")

    settings = get_settings()
    if not is_location_configured(settings):
        raise WeatherNotConfiguredError("Location not configured")

    lat = float(settings['location_lat'])
    lng = float(settings['location_lng'])
    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)

    forecast = forecast_source.get_forecast(lat, lng)

    try:
        recent_rain = forecast_source.get_recent_rain(lat, lng, settings['rain_window_hours'])
    except Exception as e:
        logger.error(f"Failed to fetch recent rain (footing scoring degraded): {e}")
        recent_rain = None

    return {
        'settings': settings,
        'forecast': forecast,
        'recent_rain': recent_rain,
        'ride_slots': get_schedule(),
        'now': now,
    }


def score_from_inputs(inputs):
    forecast = inputs['forecast']
    return score_days(
        forecast['daily'],
        inputs['settings'],
        recent_rain=inputs['recent_rain'],
        current=forecast.get('current'),
        hourly_forecast=forecast.get('hourly'),
        ride_slots=inputs['ride_slots'],
        tz_offset=forecast.get('timezone_offset', 0),
        now=inputs['now'],
    )


def record_snapshots(scored, drying_rate):
    """Upsert a snapshot per scored day; failures are logged, never raised."""
    saved = 0
    for day in scored:
        try:
            upsert_snapshot(day, day.get('moisture'), drying_rate)
            saved += 1
        except Exception as e:
            logger.error(f"Failed to save weather snapshot for {day.get('date')}: {e}")
    return saved


def _prune_quietly(today):
    try:
        prune_snapshots(today=today)
    except Exception as e:
        logger.error(f"Snapshot pruning failed: {e}")


def get_ride_days(forecast_source=weather_service, now=None):
    """
    Score the forecast horizon for the configured location.

    Returns:
        List of ScoredDay dicts.
    """
    inputs = load_scoring_inputs(forecast_source, now)
    scored = score_from_inputs(inputs)

    record_snapshots(scored, inputs['settings']['footing_dry_hours_per_inch'])
    background.submit('prune_snapshots', _prune_quietly, inputs['now'].date())

    logger.info(f"Scored {len(scored)} ride days: " + ', '.join(f"{d['date']}={d['score']}" for d in scored))
    return scored


def get_current_alerts(forecast_source=weather_service):
    """Hazard alerts for current conditions at the configured location."""
    if not forecast_source.is_configured():
        raise WeatherNotConfiguredError("Weather provider not configured")
    settings = get_settings()
    if not is_location_configured(settings):
        raise WeatherNotConfiguredError("Location not configured")

    forecast = forecast_source.get_forecast(float(settings['location_lat']), float(settings['location_lng']))
    return get_alerts(forecast.get('current') or {}, settings)
