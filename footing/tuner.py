"""
Footing Engine — Drying-Rate Auto-Tuner
=========================================
Nudges ``footing_dry_hours_per_inch`` toward what riders actually report.

Only feedback graded against predictions made with the *current* rate is
considered, so one batch of evidence moves the rate at most once; after a
tune, fresh feedback has to accumulate before the next step. Writes go
through a compare-and-swap on the settings version, so concurrent runs can
lose a race but never corrupt the value.
"""

import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from footing.accuracy import classify_feedback, TOO_AGGRESSIVE, TOO_CONSERVATIVE
from footing.helpers import parse_datetime
from footing.worker import background

logger = logging.getLogger(__name__)

MIN_FEEDBACK_COUNT = 5
FEEDBACK_WINDOW = 10
AGREEMENT_THRESHOLD = 0.6
ADJUSTMENT_STEP = 5.0
MIN_DRYING_RATE = 4.0
MAX_DRYING_RATE = 168.0
TUNE_COOLDOWN = timedelta(hours=24)


def _result(adjusted, reason, old_rate=None, new_rate=None) -> Dict:
    return {'adjusted': adjusted, 'reason': reason, 'old_rate': old_rate, 'new_rate': new_rate}


def propose_rate(old_rate: float, too_aggressive: int, too_conservative: int, total: int) -> Optional[float]:
    """
    Pure decision step: the new rate, or None for no change.

    A model that keeps calling the ground better than it is dries too fast,
    so the rate (hours per inch) goes up; the reverse brings it down.
    """
    if total <= 0:
        return None
    if too_aggressive / total >= AGREEMENT_THRESHOLD:
        return min(MAX_DRYING_RATE, old_rate + ADJUSTMENT_STEP)
    if too_conservative / total >= AGREEMENT_THRESHOLD:
        return max(MIN_DRYING_RATE, old_rate - ADJUSTMENT_STEP)
    return None


def _is_sane(old_rate: float, new_rate: float, direction: int) -> bool:
    if not isinstance(new_rate, (int, float)) or not math.isfinite(new_rate) or new_rate <= 0:
        return False
    return (new_rate - old_rate) * direction > 0


def check_and_tune_drying_rate(now: Optional[datetime] = None) -> Dict:
    """
    Inspect recent feedback and adjust the drying rate on a clear bias.

    Returns:
        dict with ``adjusted`` (bool), ``reason``, ``old_rate``, ``new_rate``.
    """
    from weather_settings import get_settings, compare_and_set_drying_rate
    from footing_feedback import get_recent_feedback

    now = parse_datetime(now) if now is not None else datetime.now(timezone.utc)

    settings = get_settings()
    if not settings.get('auto_tune_drying_rate'):
        return _result(False, "auto-tune disabled")

    last_tuned = parse_datetime(settings.get('last_tuned_at'))
    if last_tuned is not None and now - last_tuned < TUNE_COOLDOWN:
        return _result(False, "already tuned today")

    old_rate = float(settings['footing_dry_hours_per_inch'])
    recent = get_recent_feedback(limit=FEEDBACK_WINDOW, drying_rate=old_rate)
    graded = [f for f in recent if f.get('predicted_score')]
    if len(graded) < MIN_FEEDBACK_COUNT:
        return _result(False, f"need {MIN_FEEDBACK_COUNT} feedbacks, have {len(graded)}")

    too_aggressive = 0
    too_conservative = 0
    for f in graded:
        c = classify_feedback(f['predicted_score'], f['actual_footing'])
        if c == TOO_AGGRESSIVE:
            too_aggressive += 1
        elif c == TOO_CONSERVATIVE:
            too_conservative += 1

    new_rate = propose_rate(old_rate, too_aggressive, too_conservative, len(graded))
    if new_rate is None:
        return _result(False, "no clear trend", old_rate)

    direction = 1 if too_aggressive > too_conservative else -1
    if new_rate in (MIN_DRYING_RATE, MAX_DRYING_RATE) and (new_rate - old_rate) * direction <= 0:
        # Already at, or stored beyond, the clamp in the direction of the bias
        logger.info(f"Drying rate {old_rate} h/in is at its limit; bias left uncorrected")
        return _result(False, "rate at limit", old_rate)

    if not _is_sane(old_rate, new_rate, direction):
        logger.error(f"Tuning anomaly: discarded drying rate {new_rate!r} (was {old_rate})")
        return _result(False, "tuning anomaly", old_rate, new_rate)

    if not compare_and_set_drying_rate(settings['version'], new_rate, tuned_at=now):
        logger.warning("Drying-rate tune lost a race with another settings write; skipped")
        return _result(False, "settings changed concurrently", old_rate, new_rate)

    logger.info(
        f"Drying rate tuned {old_rate} -> {new_rate} h/in "
        f"({too_aggressive} too aggressive, {too_conservative} too conservative of {len(graded)})"
    )
    return _result(True, "tuned", old_rate, new_rate)


def run_tuner_safely(now: Optional[datetime] = None) -> Optional[Dict]:
    """Run the tuner, logging instead of raising on any failure."""
    try:
        return check_and_tune_drying_rate(now=now)
    except Exception as e:
        logger.error(f"Auto-tune check failed: {e}", exc_info=True)
        return None


def schedule_tune():
    """Fire-and-forget: queue a tuner run on the background worker."""
    background.submit('tune_drying_rate', run_tuner_safely)
