"""
Suggested ride windows for Barnbook.

Windows are a point-in-time recomputation: every sync deletes the whole
set and inserts the fresh batch in one transaction, so readers see either
the previous run or the new one, never a mix. Individual rows are removed
when the user approves or dismisses them.
"""

import json
import logging

import weather_service
from db import get_db
from footing import generate_windows
from ride_days import load_scoring_inputs, score_from_inputs, record_snapshots

logger = logging.getLogger(__name__)

_COLUMNS = ('id, date, start_time, end_time, weather_score, weather_notes, '
            'avg_temp_f, ical_uid, created_at')


def init_ride_windows_table():
    """Create the suggested_ride_windows table."""
    with get_db() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS suggested_ride_windows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                weather_score TEXT NOT NULL,
                weather_notes TEXT,
                avg_temp_f REAL,
                ical_uid TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_ride_windows_date ON suggested_ride_windows(date, start_time)')

    logger.info("Suggested ride windows table initialized")


def _row_to_window(row):
    if row is None:
        return None
    d = dict(row)
    if isinstance(d.get('weather_notes'), str):
        try:
            d['weather_notes'] = json.loads(d['weather_notes'])
        except (json.JSONDecodeError, TypeError):
            d['weather_notes'] = [d['weather_notes']]
    elif d.get('weather_notes') is None:
        d['weather_notes'] = []
    return d


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def replace_suggested_windows(windows):
    """
    Atomically replace every suggested window with ``windows``.

    Any failure rolls back to the previous set.

    Returns:
        The inserted windows with their new ids.
    """
    with get_db() as conn:
        conn.execute('DELETE FROM suggested_ride_windows')
        ids = []
        for w in windows:
            cursor = conn.execute(
                '''INSERT INTO suggested_ride_windows
                       (date, start_time, end_time, weather_score, weather_notes, avg_temp_f, ical_uid)
                   VALUES (?, ?, ?, ?, ?, ?, ?)''',
                (w['date'], w['start_time'], w['end_time'], w['weather_score'],
                 json.dumps(w.get('weather_notes') or []), w.get('avg_temp_f'), w.get('ical_uid'))
            )
            ids.append(cursor.lastrowid)

    logger.info(f"Replaced suggested ride windows ({len(ids)} windows)")
    return [dict(w, id=window_id) for w, window_id in zip(windows, ids)]


def get_suggested_windows(from_date=None, to_date=None):
    sql = f'SELECT {_COLUMNS} FROM suggested_ride_windows'
    clauses, params = [], []
    if from_date:
        clauses.append('date >= ?')
        params.append(from_date)
    if to_date:
        clauses.append('date <= ?')
        params.append(to_date)
    if clauses:
        sql += ' WHERE ' + ' AND '.join(clauses)
    sql += ' ORDER BY date, start_time'

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_window(r) for r in rows]


def get_suggested_window(window_id):
    with get_db() as conn:
        row = conn.execute(
            f'SELECT {_COLUMNS} FROM suggested_ride_windows WHERE id = ?', (window_id,)
        ).fetchone()
    return _row_to_window(row)


def delete_suggested_window(window_id):
    with get_db() as conn:
        cursor = conn.execute('DELETE FROM suggested_ride_windows WHERE id = ?', (window_id,))
        return cursor.rowcount > 0


def set_window_ical_uid(window_id, ical_uid):
    with get_db() as conn:
        conn.execute('UPDATE suggested_ride_windows SET ical_uid = ? WHERE id = ?', (ical_uid, window_id))


# ---------------------------------------------------------------------------
# External calendar
# ---------------------------------------------------------------------------

def publish_windows(calendar_writer, windows=None):
    """
    Push windows without an ``ical_uid`` to an external calendar.

    ``calendar_writer(window)`` returns the created event's uid. A failed
    write is logged and leaves ``ical_uid`` NULL so a later run can retry.

    Returns:
        Number of windows written.
    """
    if windows is None:
        windows = get_suggested_windows()

    written = 0
    for window in windows:
        if window.get('ical_uid'):
            continue
        try:
            uid = calendar_writer(window)
        except Exception as e:
            logger.error(f"Failed to write ride window {window['date']} {window['start_time']} to calendar: {e}")
            continue
        if uid:
            set_window_ical_uid(window['id'], uid)
            written += 1
    return written


def approve_window(window_id, calendar_writer=None):
    """
    Accept a suggestion: optionally write it to the external calendar, then
    drop the suggestion row. A calendar failure does not block approval.

    Returns:
        The approved window dict, or None if it no longer exists.
    """
    window = get_suggested_window(window_id)
    if window is None:
        return None

    if calendar_writer is not None and not window.get('ical_uid'):
        try:
            window['ical_uid'] = calendar_writer(window)
        except Exception as e:
            logger.error(f"Failed to write approved ride window to calendar, kept locally: {e}")

    delete_suggested_window(window_id)
    return window


def dismiss_window(window_id, calendar_deleter=None):
    """Reject a suggestion, removing any calendar event already written for it."""
    window = get_suggested_window(window_id)
    if window is None:
        return False

    if window.get('ical_uid') and calendar_deleter is not None:
        try:
            calendar_deleter(window['ical_uid'])
        except Exception as e:
            logger.error(f"Failed to delete calendar event {window['ical_uid']}: {e}")

    return delete_suggested_window(window_id)


# ---------------------------------------------------------------------------
# Sync pass
# ---------------------------------------------------------------------------

def sync_ride_windows(busy_intervals=None, forecast_source=weather_service, now=None,
                      calendar_writer=None):
    """
    Recompute and store suggested ride windows for the forecast horizon.

    Args:
        busy_intervals: ``{date, start, end}`` dicts from the external calendar.
        forecast_source: object with is_configured/get_forecast/get_recent_rain.
        now: reference instant for moisture estimation.
        calendar_writer: optional callable pushing each new window to an
            external calendar.

    Returns:
        The stored windows.
    """
    inputs = load_scoring_inputs(forecast_source, now)
    scored = score_from_inputs(inputs)
    record_snapshots(scored, inputs['settings']['footing_dry_hours_per_inch'])

    forecast = inputs['forecast']
    windows = generate_windows(
        scored,
        inputs['ride_slots'],
        busy_intervals or [],
        tz_offset=forecast.get('timezone_offset', 0),
        hourly_forecast=forecast.get('hourly'),
    )
    stored = replace_suggested_windows(windows)

    if calendar_writer is not None:
        publish_windows(calendar_writer, stored)
        stored = get_suggested_windows()

    return stored
