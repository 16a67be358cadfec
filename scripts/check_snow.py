#!/usr/bin/env python3
"""Evaluate the snow sensors for a location once.

Fetches a forecast, absorbs it into the observation history and prints
the snow snapshot plus the value of every configured sensor.

Usage
-----
Set environment variables and run::

    export SNOWSENSE_API_KEY="your-openweathermap-key"
    export SNOWSENSE_LOCATION="New York,NY,US"
    python scripts/check_snow.py --before 3 --after 2

Options::

    --location LOC      Override SNOWSENSE_LOCATION
    --storage DIR       Keep observation history in DIR
    --before HOURS      Sensor: snowy this many hours before snow starts
    --after HOURS       Sensor: snowy this many hours after snow stops
    --consecutive HOURS Sensor: minimum upcoming snowy hours
    --json              Output machine-readable JSON
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from snowsense import DeviceConfig, OpenWeatherMapClient, SnowSenseConfig, SnowSenseError, SnowWatch  # noqa: E402


async def main() -> int:
    parser = argparse.ArgumentParser(description="Evaluate snowsense sensors for a location once.")
    parser.add_argument("--location", help="Location override (city,state,country / zip / lat,lon)")
    parser.add_argument("--storage", help="Directory for the observation history file")
    parser.add_argument("--before", type=float, default=3.0, help="Hours before snow is snowy")
    parser.add_argument("--after", type=float, default=2.0, help="Hours after snow is snowy")
    parser.add_argument("--consecutive", type=float, default=0.0, help="Consecutive future hours required")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {"debug": args.verbose}
    if args.location:
        overrides["location"] = args.location
    if args.storage:
        overrides["storage_path"] = args.storage
    config = SnowSenseConfig.from_env(**overrides)

    devices = list(config.sensors) or [
        DeviceConfig(
            display_name="cli",
            hours_before_snow_is_snowy=args.before,
            hours_after_snow_is_snowy=args.after,
            consecutive_hours_future_is_snowy=args.consecutive,
        )
    ]

    async with OpenWeatherMapClient(config) as client:
        watch = SnowWatch(config, client)
        try:
            await watch.update_prediction_status()
        except SnowSenseError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

    values = watch.get_snow_sense_values()
    sensors = {device.display_name: watch.snow_sensor_value(device) for device in devices}

    if args.json_mode:
        print(json.dumps({"values": values.model_dump(), "sensors": sensors}, indent=2))
        return 0

    print(f"location            : {config.location}")
    print(f"snowing now         : {values.snowing_now}")
    print(f"hours until snow    : {values.next_snow_time}")
    print(f"future snowy hours  : {values.future_consecutive_hours}")
    print(f"hours since snow    : {values.last_snow_time}")
    print(f"past snowy hours    : {values.past_consecutive_hours}")
    for name, value in sensors.items():
        print(f"sensor {name:<13}: {'SNOWY' if value else 'clear'}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
