"""
Footing feedback for Barnbook.

Riders report the footing they actually found (good / soft / unsafe). Each
report copies the prediction snapshot for its date, so it can be graded
later even after that snapshot is overwritten or pruned. Reports are
append-only; when a date has several, the most recent one counts.
"""

import logging

from db import get_db
from footing.accuracy import VALID_FOOTING, summarize
from footing.helpers import parse_date
from footing.tuner import schedule_tune
from weather_snapshots import get_snapshot

logger = logging.getLogger(__name__)

_COLUMNS = ('id, date, ride_session_id, actual_footing, predicted_score, '
            'predicted_moisture, drying_rate_at_time, created_at')

# Latest report per date
_LATEST_PER_DATE = '''
    SELECT {columns} FROM footing_feedback
    WHERE id IN (SELECT MAX(id) FROM footing_feedback GROUP BY date)
'''.format(columns=_COLUMNS)


def init_footing_feedback_table():
    """Create the footing_feedback table."""
    with get_db() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS footing_feedback (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL,
                ride_session_id TEXT,
                actual_footing TEXT NOT NULL,
                predicted_score TEXT,
                predicted_moisture REAL,
                drying_rate_at_time REAL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_footing_feedback_date ON footing_feedback(date)')

    logger.info("Footing feedback table initialized")


def _row_to_feedback(row):
    if row is None:
        return None
    d = dict(row)
    for key in ('predicted_moisture', 'drying_rate_at_time'):
        if d.get(key) is not None:
            d[key] = float(d[key])
    return d


def create_feedback(data, trigger_tune=True):
    """
    Record what the footing was actually like on a date.

    Args:
        data: dict with ``date`` and ``actual_footing`` (required) and an
              optional ``ride_session_id``.
        trigger_tune: queue a background drying-rate tune afterwards.

    Returns:
        The stored feedback dict.
    """
    actual = data.get('actual_footing')
    if actual not in VALID_FOOTING:
        raise ValueError(f"actual_footing must be one of {VALID_FOOTING}, got {actual!r}")
    if not data.get('date'):
        raise ValueError("date is required")
    try:
        feedback_date = parse_date(data['date']).isoformat()
    except ValueError:
        raise ValueError(f"Invalid date: {data['date']!r}") from None

    ride_session_id = data.get('ride_session_id') or None
    snapshot = get_snapshot(feedback_date)

    with get_db() as conn:
        cursor = conn.execute(
            '''INSERT INTO footing_feedback
                   (date, ride_session_id, actual_footing, predicted_score,
                    predicted_moisture, drying_rate_at_time)
               VALUES (?, ?, ?, ?, ?, ?)''',
            (
                feedback_date,
                str(ride_session_id) if ride_session_id is not None else None,
                actual,
                snapshot['score'] if snapshot else None,
                snapshot['predicted_moisture'] if snapshot else None,
                snapshot['drying_rate_at_time'] if snapshot else None,
            )
        )
        feedback_id = cursor.lastrowid
        row = conn.execute(f'SELECT {_COLUMNS} FROM footing_feedback WHERE id = ?', (feedback_id,)).fetchone()

    if snapshot is None:
        logger.info(f"Footing feedback for {feedback_date} has no prediction snapshot to grade against")

    if trigger_tune:
        schedule_tune()

    return _row_to_feedback(row)


def get_feedback_for_date(feedback_date):
    """Most recent report for a date, or None."""
    with get_db() as conn:
        row = conn.execute(
            f'SELECT {_COLUMNS} FROM footing_feedback WHERE date = ? ORDER BY id DESC LIMIT 1',
            (parse_date(feedback_date).isoformat(),)
        ).fetchone()
    return _row_to_feedback(row)


def get_recent_feedback(limit=10, drying_rate=None):
    """
    Latest report per date, newest dates first.

    Args:
        limit: max number of dates.
        drying_rate: only reports whose prediction used this drying rate.
    """
    sql = _LATEST_PER_DATE
    params = []
    if drying_rate is not None:
        sql += ' AND ABS(drying_rate_at_time - ?) < 0.000001'
        params.append(float(drying_rate))
    sql += ' ORDER BY date DESC LIMIT ?'
    params.append(int(limit))

    with get_db() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [_row_to_feedback(r) for r in rows]


def get_accuracy_stats():
    """
    Grade every date's latest report against its prediction.

    Returns:
        dict with total, correct, too_conservative, too_aggressive,
        accuracy_pct (None below 5 samples) and a per-score breakdown.
    """
    with get_db() as conn:
        rows = conn.execute(
            _LATEST_PER_DATE + ' AND predicted_score IS NOT NULL ORDER BY date DESC'
        ).fetchall()
    return summarize((r['predicted_score'], r['actual_footing']) for r in rows)
