"""
Prediction snapshots for Barnbook ride-day scoring.

One row per date records what the scorer predicted (score, moisture, and
the drying rate in effect) so later footing feedback can be graded against
the prediction actually made. Rows are overwritten on every scoring pass
and pruned after a retention horizon.
"""

import json
import logging
from datetime import date, timedelta

from config import Config
from db import get_db
from footing.helpers import parse_date

logger = logging.getLogger(__name__)


def init_weather_snapshots_table():
    """Create the weather_prediction_snapshots table."""
    with get_db() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS weather_prediction_snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                date TEXT NOT NULL UNIQUE,
                score TEXT NOT NULL,
                reasons TEXT,
                predicted_moisture REAL,
                predicted_hours_to_dry REAL,
                forecast_day_f REAL,
                forecast_high_f REAL,
                forecast_rain_inches REAL,
                forecast_clouds_pct REAL,
                forecast_wind_mph REAL,
                drying_rate_at_time REAL NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

    logger.info("Weather snapshot table initialized")


def _row_to_snapshot(row):
    if row is None:
        return None
    d = dict(row)
    if isinstance(d.get('reasons'), str):
        try:
            d['reasons'] = json.loads(d['reasons'])
        except (json.JSONDecodeError, TypeError):
            d['reasons'] = []
    return d


def upsert_snapshot(scored_day, moisture, drying_rate):
    """Record (or overwrite) the prediction for ``scored_day['date']``.

    ``moisture`` may be None or unknown; the moisture columns are then NULL.
    """
    forecast = scored_day.get('forecast') or {}
    known = moisture is not None and moisture.get('known')
    with get_db() as conn:
        conn.execute('''
            INSERT INTO weather_prediction_snapshots
                (date, score, reasons, predicted_moisture, predicted_hours_to_dry,
                 forecast_day_f, forecast_high_f, forecast_rain_inches, forecast_clouds_pct,
                 forecast_wind_mph, drying_rate_at_time)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (date) DO UPDATE SET
                score = excluded.score,
                reasons = excluded.reasons,
                predicted_moisture = excluded.predicted_moisture,
                predicted_hours_to_dry = excluded.predicted_hours_to_dry,
                forecast_day_f = excluded.forecast_day_f,
                forecast_high_f = excluded.forecast_high_f,
                forecast_rain_inches = excluded.forecast_rain_inches,
                forecast_clouds_pct = excluded.forecast_clouds_pct,
                forecast_wind_mph = excluded.forecast_wind_mph,
                drying_rate_at_time = excluded.drying_rate_at_time,
                created_at = CURRENT_TIMESTAMP
        ''', (
            scored_day['date'],
            scored_day['score'],
            json.dumps(scored_day.get('reasons') or []),
            moisture['current_moisture'] if known else None,
            moisture.get('hours_to_dry') if known else None,
            forecast.get('day_f'),
            forecast.get('high_f'),
            forecast.get('precipitation_inches'),
            forecast.get('clouds_pct'),
            forecast.get('wind_speed_mph'),
            float(drying_rate),
        ))


def get_snapshot(snapshot_date):
    with get_db() as conn:
        row = conn.execute(
            '''SELECT date, score, reasons, predicted_moisture, predicted_hours_to_dry,
                      forecast_day_f, forecast_high_f, forecast_rain_inches, forecast_clouds_pct,
                      forecast_wind_mph, drying_rate_at_time, created_at
               FROM weather_prediction_snapshots WHERE date = ?''',
            (parse_date(snapshot_date).isoformat(),)
        ).fetchone()
    return _row_to_snapshot(row)


def prune_snapshots(retention_days=None, today=None):
    """Delete snapshots dated more than ``retention_days`` before ``today``.

    ``retention_days`` defaults to ``Config.SNAPSHOT_RETENTION_DAYS``.

    Returns:
        Number of rows removed.
    """
    if retention_days is None:
        retention_days = Config.SNAPSHOT_RETENTION_DAYS
    today = parse_date(today) if today is not None else date.today()
    cutoff = (today - timedelta(days=retention_days)).isoformat()
    with get_db() as conn:
        cursor = conn.execute('DELETE FROM weather_prediction_snapshots WHERE date < ?', (cutoff,))
        removed = cursor.rowcount
    if removed:
        logger.info(f"Pruned {removed} weather snapshots older than {cutoff}")
    return removed
