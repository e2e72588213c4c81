"""Tests for footing/alerts.py"""

import pytest
from footing.alerts import get_alerts


def types(alerts):
    return [a["type"] for a in alerts]


class TestGetAlerts:
    def test_mild_conditions_no_alerts(self, settings):
        current = {"temperature_f": 60, "wind_speed_mph": 5, "precipitation_inches": 0}
        assert get_alerts(current, settings) == []

    def test_empty_current(self, settings):
        assert get_alerts({}, settings) == []

    def test_cold_at_threshold(self, settings):
        alerts = get_alerts({"temperature_f": 20}, settings)
        assert types(alerts) == ["cold"]
        assert alerts[0]["severity"] == "red"
        assert alerts[0]["value"] == 20

    def test_blanket_warning_above_cold(self, settings):
        alerts = get_alerts({"temperature_f": 28}, settings)
        assert types(alerts) == ["blanket"]
        assert alerts[0]["severity"] == "yellow"

    def test_heat(self, settings):
        alerts = get_alerts({"temperature_f": 97}, settings)
        assert types(alerts) == ["heat"]
        assert "water" in alerts[0]["message"]

    def test_several_alerts_at_once(self, settings):
        current = {"temperature_f": 15, "wind_speed_mph": 25, "precipitation_inches": 0.05}
        alerts = get_alerts(current, settings)
        assert types(alerts) == ["cold", "wind", "rain"]
        assert [a["severity"] for a in alerts] == ["red", "red", "yellow"]

    @pytest.mark.parametrize("wind, expected", [(24, []), (25, ["wind"]), (40, ["wind"])])
    def test_wind_threshold_inclusive(self, settings, wind, expected):
        assert types(get_alerts({"wind_speed_mph": wind}, settings)) == expected
