"""
Footing Engine — Window Generator
===================================
Turns scored days into concrete suggested ride windows.

For each non-red day the candidates are the ride-schedule slots for that
weekday, or, when there are none, 3-hour blocks starting one hour after
sunrise. Candidates must fall strictly after sunrise, end by sunset, and
not overlap any busy interval from the external calendar.
"""

import re
import logging
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Tuple

from footing.helpers import (
    day_of_week, format_clock, local_minutes, parse_clock, parse_date, to_local,
)

logger = logging.getLogger(__name__)

BLOCK_HOURS = 3
DEFAULT_SUNRISE_MINUTES = 6 * 60
DEFAULT_SUNSET_MINUTES = 20 * 60

_CLOCK_RE = re.compile(r'^\d{1,2}:\d{2}(:\d{2})?$')


def _daylight(day: Dict, tz_offset: int) -> Tuple[int, int]:
    forecast = day.get('forecast') or {}
    sunrise = local_minutes(forecast.get('sunrise'), tz_offset) if forecast.get('sunrise') else None
    sunset = local_minutes(forecast.get('sunset'), tz_offset) if forecast.get('sunset') else None
    return (
        sunrise if sunrise is not None else DEFAULT_SUNRISE_MINUTES,
        sunset if sunset is not None else DEFAULT_SUNSET_MINUTES,
    )


def candidate_slots(day: Dict, ride_slots: Optional[List[Dict]], tz_offset: int = 0) -> List[Tuple[int, int]]:
    """Candidate (start, end) minute pairs for a day, before any filtering."""
    dow = day_of_week(day['date'])
    scheduled = [s for s in (ride_slots or []) if int(s['day_of_week']) == dow]
    if scheduled:
        return [(parse_clock(s['start_time']), parse_clock(s['end_time'])) for s in scheduled]

    sunrise, sunset = _daylight(day, tz_offset)
    blocks = []
    start = (sunrise // 60 + 1) * 60
    while start + BLOCK_HOURS * 60 <= sunset:
        blocks.append((start, start + BLOCK_HOURS * 60))
        start += BLOCK_HOURS * 60
    return blocks


def _to_local_naive(value, on_date: date, tz_offset: int, end_of_day: bool) -> datetime:
    """Busy-interval endpoint → naive local datetime.

    Accepts ``datetime``/``date`` objects, ISO strings with a date part
    (``T`` or space separated), bare ``HH:MM`` clock times on ``on_date`` and
    date-only values. Offset-aware instants are shifted by ``tz_offset``.
    """
    if isinstance(value, datetime):
        return to_local(value, tz_offset) if value.tzinfo is not None else value
    if isinstance(value, date):
        day = value + timedelta(days=1) if end_of_day else value
        return datetime.combine(day, datetime.min.time())

    text = str(value).strip()
    if _CLOCK_RE.match(text):
        minutes = parse_clock(text)
        return datetime.combine(on_date, datetime.min.time()) + timedelta(minutes=minutes)
    if len(text) > 10:
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        return _to_local_naive(datetime.fromisoformat(text), on_date, tz_offset, end_of_day)
    return _to_local_naive(parse_date(text), on_date, tz_offset, end_of_day)


def _whole_day(on_date: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(on_date, datetime.min.time())
    return start, start + timedelta(days=1)


def normalize_busy(busy: Dict, tz_offset: int = 0) -> Tuple[datetime, datetime]:
    """
    Convert a ``{date, start, end}`` busy interval to local naive datetimes.

    ``start``/``end`` may be ISO datetimes (offset-aware ones are shifted by
    ``tz_offset``), bare ``HH:MM`` clock times on ``date``, or date-only
    values for all-day events. An all-day end equal to its start date covers
    that whole day.
    """
    on_date = parse_date(busy.get('date') or busy['start'])
    start = _to_local_naive(busy.get('start') or on_date.isoformat(), on_date, tz_offset, False)
    end_value = busy.get('end') or busy.get('start') or on_date.isoformat()
    end = _to_local_naive(end_value, on_date, tz_offset, True)
    if end <= start:
        # Zero-length or inverted entries block through the end of the start day
        end = datetime.combine(start.date() + timedelta(days=1), datetime.min.time())
    return start, end


def overlaps(slot_start: datetime, slot_end: datetime, busy_start: datetime, busy_end: datetime) -> bool:
    """Half-open interval overlap."""
    return slot_start < busy_end and slot_end > busy_start


def _avg_temp(day: Dict, start: int, end: int, hourly_forecast, tz_offset: int) -> Optional[int]:
    temps = []
    for hour in hourly_forecast or []:
        local = to_local(hour.get('hour'), tz_offset)
        if local is None or local.date().isoformat() != day['date']:
            continue
        if start <= local.hour * 60 + local.minute < end and hour.get('temp_f') is not None:
            temps.append(float(hour['temp_f']))
    if temps:
        return round(sum(temps) / len(temps))
    day_f = (day.get('forecast') or {}).get('day_f')
    return round(day_f) if day_f is not None else None


def generate_windows(scored_days: List[Dict], ride_slots: Optional[List[Dict]] = None,
                     busy_intervals: Optional[List[Dict]] = None, tz_offset: int = 0,
                     hourly_forecast: Optional[List[Dict]] = None) -> List[Dict]:
    """
    Build SuggestedRideWindow dicts for every non-red scored day.

    Args:
        scored_days: Output of ``score_days``.
        ride_slots: RideScheduleSlot dicts (day_of_week 0 = Sunday).
        busy_intervals: ``{date, start, end}`` dicts from the external calendar.
        tz_offset: Forecast location offset from UTC in seconds.
        hourly_forecast: Optional hourly data for per-window temperatures.

    Returns:
        List of window dicts ordered by date then start time, each with
        ``ical_uid=None``.
    """
    busy = []
    for interval in busy_intervals or []:
        try:
            busy.append(normalize_busy(interval, tz_offset))
        except (KeyError, TypeError, ValueError) as e:
            # Unreadable times block the entry's whole date
            try:
                blocked = parse_date(interval.get('date'))
            except (AttributeError, TypeError, ValueError):
                logger.warning(f"Skipping busy interval with no usable date {interval!r}: {e}")
                continue
            logger.warning(f"Blocking {blocked} for unparseable busy interval {interval!r}: {e}")
            busy.append(_whole_day(blocked))

    windows = []
    for day in scored_days:
        if day['score'] == 'red':
            continue

        day_date = parse_date(day['date'])
        midnight = datetime.combine(day_date, datetime.min.time())
        sunrise, sunset = _daylight(day, tz_offset)

        for start, end in candidate_slots(day, ride_slots, tz_offset):
            if start <= sunrise or end > sunset:
                continue

            slot_start = midnight + timedelta(minutes=start)
            slot_end = midnight + timedelta(minutes=end)
            if any(overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in busy):
                continue

            windows.append({
                'date': day['date'],
                'start_time': format_clock(start),
                'end_time': format_clock(end),
                'weather_score': day['score'],
                'weather_notes': list(day.get('reasons') or []) + list(day.get('notes') or []),
                'avg_temp_f': _avg_temp(day, start, end, hourly_forecast, tz_offset),
                'ical_uid': None,
            })

    windows.sort(key=lambda w: (w['date'], w['start_time']))
    return windows
