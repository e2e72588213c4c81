"""
Recompute suggested ride windows from cron.

Usage:
    python scripts/sync_ride_windows.py [--busy busy.json]

busy.json is a list of {"date", "start", "end"} intervals exported from the
external calendar; without it every daylight slot is considered free.
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logging_config import configure_logging
from ride_days import init_tables
from ride_schedule import day_name
from ride_windows import sync_ride_windows
from footing.helpers import day_of_week
from weather_service import WeatherNotConfiguredError

logger = configure_logging()


def main():
    parser = argparse.ArgumentParser(description="Recompute suggested ride windows")
    parser.add_argument('--busy', help="JSON file of busy intervals")
    args = parser.parse_args()

    busy = []
    if args.busy:
        with open(args.busy) as f:
            busy = json.load(f)

    init_tables()
    try:
        windows = sync_ride_windows(busy)
    except WeatherNotConfiguredError as e:
        logger.error(f"Ride window sync skipped: {e}")
        return 2

    for w in windows:
        print(f"{day_name(day_of_week(w['date']))} {w['date']} "
              f"{w['start_time'][:5]}-{w['end_time'][:5]}  [{w['weather_score']}]")
    logger.info(f"Ride window sync complete: {len(windows)} windows")
    return 0


if __name__ == '__main__':
    sys.exit(main())
