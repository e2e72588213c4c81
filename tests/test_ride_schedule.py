"""Tests for ride_schedule.py"""

import pytest
from ride_schedule import create_slot, delete_slot, get_schedule, day_name


class TestRideSchedule:
    def test_create_normalizes_times(self, clean_db):
        slot = create_slot({"day_of_week": 1, "start_time": "16:00", "end_time": "18:30"})
        assert slot["start_time"] == "16:00:00"
        assert slot["end_time"] == "18:30:00"
        assert get_schedule() == [slot]

    def test_ordered_by_day_then_start(self, clean_db):
        create_slot({"day_of_week": 3, "start_time": "08:00", "end_time": "09:00"})
        create_slot({"day_of_week": 1, "start_time": "17:00", "end_time": "18:00"})
        create_slot({"day_of_week": 1, "start_time": "07:00", "end_time": "08:00"})
        assert [(s["day_of_week"], s["start_time"]) for s in get_schedule()] == [
            (1, "07:00:00"), (1, "17:00:00"), (3, "08:00:00"),
        ]

    @pytest.mark.parametrize("data", [
        {"day_of_week": 7, "start_time": "08:00", "end_time": "09:00"},
        {"day_of_week": "1", "start_time": "08:00", "end_time": "09:00"},
        {"day_of_week": 1, "start_time": "09:00", "end_time": "08:00"},
        {"day_of_week": 1, "start_time": "25:00", "end_time": "26:00"},
        {"day_of_week": 1, "start_time": "08:00"},
    ])
    def test_invalid_slots(self, clean_db, data):
        with pytest.raises(ValueError):
            create_slot(data)
        assert get_schedule() == []

    def test_delete(self, clean_db):
        slot = create_slot({"day_of_week": 0, "start_time": "10:00", "end_time": "11:00"})
        assert delete_slot(slot["id"]) is True
        assert delete_slot(slot["id"]) is False

    def test_day_names_start_on_sunday(self):
        assert day_name(0) == "Sunday"
        assert day_name(6) == "Saturday"
        assert day_name(9) == ""
