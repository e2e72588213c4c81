"""
Footing Engine Package
========================
Ride-day scoring for Barnbook. Re-exports the public names so callers can:
    from footing import score_days, generate_windows
"""

import logging

logger = logging.getLogger(__name__)

# ── Helpers ────────────────────────────────────────────────────────────────
from footing.helpers import DEFAULT_SETTINGS, day_of_week, get_local_hour

# ── Pure rules ─────────────────────────────────────────────────────────────
from footing.moisture import estimate_moisture, estimate_future_moisture
from footing.scoring import score_day, score_days, INDOOR_OVERRIDABLE
from footing.windows import generate_windows
from footing.alerts import get_alerts
from footing.accuracy import ACCURACY_TABLE, VALID_FOOTING, classify_feedback

# ── Feedback loop ──────────────────────────────────────────────────────────
from footing.worker import BackgroundWorker, background
from footing.tuner import check_and_tune_drying_rate, run_tuner_safely, schedule_tune
