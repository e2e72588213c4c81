"""Tests for footing/tuner.py: drying-rate auto-tuning from feedback."""

import logging
from datetime import date, timedelta

import pytest
import weather_settings
from db import get_db
from footing import tuner, background
from footing.tuner import propose_rate, check_and_tune_drying_rate, run_tuner_safely
from footing_feedback import create_feedback
from weather_settings import get_settings, update_settings
from weather_snapshots import upsert_snapshot

NOW = "2026-10-19T12:00:00+00:00"


def record(outcomes, rate=12.0, start=date(2026, 10, 1)):
    """Snapshot + feedback for consecutive dates; outcomes are (score, actual)."""
    for i, (score, actual) in enumerate(outcomes):
        day = (start + timedelta(days=i)).isoformat()
        upsert_snapshot({"date": day, "score": score, "reasons": [], "forecast": {}}, None, rate)
        create_feedback({"date": day, "actual_footing": actual}, trigger_tune=False)


# ── Decision rule ──

class TestProposeRate:
    def test_aggressive_majority_slows_drying(self):
        assert propose_rate(12.0, 6, 0, 10) == 17.0

    def test_conservative_majority_speeds_drying(self):
        assert propose_rate(12.0, 0, 6, 10) == 7.0

    def test_no_majority(self):
        assert propose_rate(12.0, 5, 5, 10) is None
        assert propose_rate(12.0, 3, 3, 10) is None

    def test_clamped(self):
        assert propose_rate(166.0, 10, 0, 10) == 168.0
        assert propose_rate(6.0, 0, 10, 10) == 4.0

    def test_no_samples(self):
        assert propose_rate(12.0, 0, 0, 0) is None


# ── Full check ──

class TestCheckAndTune:
    def test_consistent_soft_reports_raise_rate(self, located):
        record([("green", "soft")] * 10)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["adjusted"] is True
        assert result["old_rate"] == 12.0
        assert result["new_rate"] == 17.0

        s = get_settings()
        assert s["footing_dry_hours_per_inch"] == 17.0
        assert s["footing_dry_hours_per_inch"] > 0
        assert s["last_tuned_at"].startswith("2026-10-19T12:00:00")

    def test_consistent_good_reports_lower_rate(self, located):
        record([("red", "good")] * 6)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["new_rate"] == 7.0

    def test_balanced_feedback_leaves_rate(self, located):
        record([("green", "good")] * 4 + [("green", "soft")] * 3 + [("yellow", "good")] * 3)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["adjusted"] is False
        assert result["reason"] == "no clear trend"
        assert get_settings()["footing_dry_hours_per_inch"] == 12.0

    def test_needs_five_samples(self, located):
        record([("green", "soft")] * 4)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["adjusted"] is False
        assert result["reason"] == "need 5 feedbacks, have 4"

    def test_disabled(self, located):
        update_settings({"auto_tune_drying_rate": False})
        record([("green", "soft")] * 10)
        assert check_and_tune_drying_rate(now=NOW)["reason"] == "auto-tune disabled"
        assert get_settings()["footing_dry_hours_per_inch"] == 12.0

    def test_cooldown_and_fresh_evidence(self, located):
        record([("green", "soft")] * 10)
        assert check_and_tune_drying_rate(now=NOW)["adjusted"] is True

        later = check_and_tune_drying_rate(now="2026-10-19T18:00:00+00:00")
        assert later["reason"] == "already tuned today"

        # Feedback graded against the old rate no longer counts
        next_day = check_and_tune_drying_rate(now="2026-10-20T13:00:00+00:00")
        assert next_day["reason"] == "need 5 feedbacks, have 0"
        assert get_settings()["footing_dry_hours_per_inch"] == 17.0

    def test_only_current_rate_feedback_counts(self, located):
        record([("green", "soft")] * 10, rate=48.0)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["reason"] == "need 5 feedbacks, have 0"

    def test_clamped_at_floor(self, located):
        update_settings({"footing_dry_hours_per_inch": 4.0})
        record([("red", "good")] * 10, rate=4.0)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["adjusted"] is False
        assert result["reason"] == "rate at limit"
        assert get_settings()["footing_dry_hours_per_inch"] == 4.0

    def test_stored_rate_beyond_ceiling_is_at_limit(self, located, caplog):
        with get_db() as conn:
            conn.execute("UPDATE weather_settings SET footing_dry_hours_per_inch = 200.0")
        record([("green", "soft")] * 10, rate=200.0)
        with caplog.at_level(logging.ERROR, logger="footing.tuner"):
            result = check_and_tune_drying_rate(now=NOW)
        assert result["reason"] == "rate at limit"
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert get_settings()["footing_dry_hours_per_inch"] == 200.0

    def test_stored_rate_beyond_ceiling_can_come_down(self, located):
        with get_db() as conn:
            conn.execute("UPDATE weather_settings SET footing_dry_hours_per_inch = 200.0")
        record([("red", "good")] * 10, rate=200.0)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["new_rate"] == 195.0
        assert get_settings()["footing_dry_hours_per_inch"] == 195.0

    def test_wrong_direction_discarded(self, located, monkeypatch):
        monkeypatch.setattr(tuner, "propose_rate", lambda *args: 7.0)
        record([("green", "soft")] * 10)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["reason"] == "tuning anomaly"
        assert get_settings()["footing_dry_hours_per_inch"] == 12.0

    def test_lost_race_changes_nothing(self, located, monkeypatch):
        record([("green", "soft")] * 10)
        real_cas = weather_settings.compare_and_set_drying_rate

        def racing_cas(*args, **kwargs):
            update_settings({"wind_cutoff_mph": 30})
            return real_cas(*args, **kwargs)

        monkeypatch.setattr(weather_settings, "compare_and_set_drying_rate", racing_cas)
        result = check_and_tune_drying_rate(now=NOW)
        assert result["reason"] == "settings changed concurrently"
        s = get_settings()
        assert s["footing_dry_hours_per_inch"] == 12.0
        assert s["wind_cutoff_mph"] == 30


# ── Background scheduling ──

class TestBackgroundTune:
    def test_failures_are_swallowed(self, monkeypatch):
        def boom(now=None):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(tuner, "check_and_tune_drying_rate", boom)
        assert run_tuner_safely() is None

    def test_feedback_triggers_tune(self, located):
        for i in range(5):
            day = f"2026-10-0{i + 1}"
            upsert_snapshot({"date": day, "score": "green", "reasons": [], "forecast": {}}, None, 12.0)
            create_feedback({"date": day, "actual_footing": "unsafe"})
        background.drain()
        assert get_settings()["footing_dry_hours_per_inch"] == 17.0
