"""
Weekly ride schedule for Barnbook.
Recurring availability slots (day_of_week 0 = Sunday .. 6 = Saturday) that
seed suggested ride windows.
"""

import logging

from db import get_db
from footing.helpers import parse_clock, format_clock

logger = logging.getLogger(__name__)

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def day_name(day_of_week):
    return DAY_NAMES[day_of_week] if 0 <= day_of_week < len(DAY_NAMES) else ''


def init_ride_schedule_table():
    """Create the ride_schedule table."""
    with get_db() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS ride_schedule (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_ride_schedule_dow ON ride_schedule(day_of_week, start_time)')

    logger.info("Ride schedule table initialized")


def _validate_slot(data):
    day = data.get('day_of_week')
    if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
        raise ValueError("day_of_week must be an integer 0 (Sunday) through 6 (Saturday)")
    try:
        start = parse_clock(data.get('start_time', ''))
        end = parse_clock(data.get('end_time', ''))
    except ValueError as e:
        raise ValueError(f"Invalid slot time: {e}") from None
    if end <= start:
        raise ValueError("end_time must be after start_time")
    return day, format_clock(start), format_clock(end)


def get_schedule():
    """All slots ordered by weekday then start time."""
    with get_db() as conn:
        rows = conn.execute(
            'SELECT id, day_of_week, start_time, end_time FROM ride_schedule '
            'ORDER BY day_of_week, start_time'
        ).fetchall()
    return [dict(r) for r in rows]


def create_slot(data):
    """Add a weekly slot. Returns the new slot dict."""
    day, start, end = _validate_slot(data)
    with get_db() as conn:
        cursor = conn.execute(
            'INSERT INTO ride_schedule (day_of_week, start_time, end_time) VALUES (?, ?, ?)',
            (day, start, end)
        )
        slot_id = cursor.lastrowid
    return {'id': slot_id, 'day_of_week': day, 'start_time': start, 'end_time': end}


def delete_slot(slot_id):
    with get_db() as conn:
        cursor = conn.execute('DELETE FROM ride_schedule WHERE id = ?', (slot_id,))
        return cursor.rowcount > 0
