#!/usr/bin/env python3
"""
annotate_sunrise.py
===================
Add the sunrise time on ``--date`` (default 2026-01-01, 初日の出) and the wait
from the last train to sunrise to every station.

Properties added: ``sunrise_time``, ``wait_hours``, ``wait_minutes``,
``wait_label``.  Wait fields are ``null`` when there is no last train or no
sunrise that day.
"""
from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from .geo import GeoPoint, station_center
from .stations_io import (
    STATION_KEY,
    StationDataError,
    read_feature_collection,
    station_label,
    with_properties,
    write_feature_collection,
)
from .sunrise import NEW_YEAR_2026, calculate_sunrise, calculate_wait_time, format_wait_time


def sunrise_properties(center: GeoPoint, last_train_arrival: Optional[str], day: date) -> Dict[str, Any]:
    sunrise = calculate_sunrise(center.lat, center.lon, day)
    wait = calculate_wait_time(last_train_arrival, sunrise)
    return {
        "sunrise_time": sunrise,
        "wait_hours": wait.hours if wait else None,
        "wait_minutes": wait.minutes if wait else None,
        "wait_label": format_wait_time(wait),
    }


def annotate_features(features: List[dict], day: date = NEW_YEAR_2026) -> List[dict]:
    out: List[dict] = []
    for feature in features:
        center = station_center((feature.get("geometry") or {}).get("coordinates"))
        if center is None:
            print(f"⚠️  skipping {station_label(feature)}: empty or malformed geometry", file=sys.stderr)
            continue
        arrival = (feature.get("properties") or {}).get("last_train_arrival")
        out.append(with_properties(feature, **sunrise_properties(center, arrival, day)))
    return out


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Add sunrise and wait times to stations.")
    p.add_argument("-s", "--stations", type=Path,
                   default=Path("station-data/N02-22_Station_ese_coast_open_sea_with_trains.geojson"))
    p.add_argument("-d", "--date", type=date.fromisoformat, default=NEW_YEAR_2026, help="YYYY-MM-DD (default 2026-01-01)")
    p.add_argument("-o", "--outfile", type=Path, default=Path("public/data/stations_with_last_train.geojson"))
    args = p.parse_args(argv)

    try:
        data = read_feature_collection(args.stations)
    except StationDataError as e:
        raise SystemExit(f"❌ {e}")

    features = annotate_features(data["features"], args.date)
    for f in features:
        props = f["properties"]
        print(f"  {props.get(STATION_KEY)}: 日の出 {props['sunrise_time']} / 待ち {props['wait_label']}")

    write_feature_collection(args.outfile, {**data, "features": features})
    print(f"\n✅ {len(features)} stations written to {args.outfile} (date {args.date})")


if __name__ == "__main__":
    main()
