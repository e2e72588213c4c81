"""
Footing Engine — Prediction Accuracy
======================================
Grades a predicted day score against the footing a rider actually found.

The table below is the single source of truth for what counts as a match.
The auto-tuner reads its bias from the two mismatch classes:
``too_aggressive`` means the model called the ground better than it was
(it dries too fast), ``too_conservative`` means it called it worse.
"""

from typing import Dict, Iterable, Optional

VALID_FOOTING = ['good', 'soft', 'unsafe']
VALID_SCORES = ['green', 'yellow', 'red']

CORRECT = 'correct'
TOO_CONSERVATIVE = 'too_conservative'
TOO_AGGRESSIVE = 'too_aggressive'

ACCURACY_TABLE = {
    ('green', 'good'): CORRECT,
    ('green', 'soft'): TOO_AGGRESSIVE,
    ('green', 'unsafe'): TOO_AGGRESSIVE,
    ('yellow', 'good'): TOO_CONSERVATIVE,
    ('yellow', 'soft'): CORRECT,
    ('yellow', 'unsafe'): TOO_AGGRESSIVE,
    ('red', 'good'): TOO_CONSERVATIVE,
    ('red', 'soft'): TOO_CONSERVATIVE,
    ('red', 'unsafe'): CORRECT,
}

# Minimum graded samples before an accuracy percentage is reported
MIN_SAMPLES_FOR_PCT = 5


def classify_feedback(predicted_score: str, actual_footing: str) -> str:
    """Look up a (predicted, actual) pair in ACCURACY_TABLE."""
    try:
        return ACCURACY_TABLE[(predicted_score, actual_footing)]
    except KeyError:
        raise ValueError(
            f"Cannot grade predicted_score={predicted_score!r} against actual_footing={actual_footing!r}"
        ) from None


def summarize(pairs: Iterable) -> Dict:
    """Tally (predicted_score, actual_footing) pairs into accuracy stats."""
    counts = {CORRECT: 0, TOO_CONSERVATIVE: 0, TOO_AGGRESSIVE: 0}
    by_score = {score: {CORRECT: 0, TOO_CONSERVATIVE: 0, TOO_AGGRESSIVE: 0} for score in VALID_SCORES}

    for predicted, actual in pairs:
        classification = classify_feedback(predicted, actual)
        counts[classification] += 1
        by_score[predicted][classification] += 1

    total = sum(counts.values())
    accuracy_pct: Optional[int] = None
    if total >= MIN_SAMPLES_FOR_PCT:
        accuracy_pct = round(counts[CORRECT] / total * 100)

    return {
        'total': total,
        'correct': counts[CORRECT],
        'too_conservative': counts[TOO_CONSERVATIVE],
        'too_aggressive': counts[TOO_AGGRESSIVE],
        'accuracy_pct': accuracy_pct,
        'by_score': by_score,
    }
