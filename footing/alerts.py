"""
Footing Engine — Alert Rules
==============================
Current-condition hazard checks, independent of day scoring.
"""

from typing import Dict, List

from footing.helpers import setting


def get_alerts(current: Dict, settings: Dict) -> List[Dict]:
    """
    Flag cold, heat, wind and active-rain hazards for right now.

    Thresholds are inclusive. Several alerts may fire at once; each carries
    its ``type``, ``severity`` ("red"/"yellow"), ``message`` and the
    triggering ``value``.
    """
    alerts = []
    if not current:
        return alerts

    temp = current.get('temperature_f')
    wind = current.get('wind_speed_mph')
    precip = float(current.get('precipitation_inches') or 0)
    cold = float(setting(settings, 'cold_alert_temp_f'))
    margin = float(setting(settings, 'temp_caution_margin_f'))

    if temp is not None:
        if temp <= cold:
            alerts.append({
                'type': 'cold',
                'severity': 'red',
                'message': f"Current temp {temp}°F - consider blanketing",
                'value': temp,
            })
        elif temp <= cold + margin:
            alerts.append({
                'type': 'blanket',
                'severity': 'yellow',
                'message': f"Temp dropping to {temp}°F - check blanket needs",
                'value': temp,
            })

        if temp >= float(setting(settings, 'heat_alert_temp_f')):
            alerts.append({
                'type': 'heat',
                'severity': 'red',
                'message': f"Current temp {temp}°F - limit exercise, ensure water access",
                'value': temp,
            })

    if wind is not None and wind >= float(setting(settings, 'wind_cutoff_mph')):
        alerts.append({
            'type': 'wind',
            'severity': 'red',
            'message': f"Wind at {wind} mph - secure loose items",
            'value': wind,
        })

    if precip > 0:
        alerts.append({
            'type': 'rain',
            'severity': 'yellow',
            'message': "Active precipitation - footing may be affected",
            'value': precip,
        })

    return alerts
