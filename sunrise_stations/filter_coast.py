#!/usr/bin/env python3
"""
filter_coast.py
===============
From the Tokyo-radius stations, keep those with coastline within
``--max-distance`` (default 2 km) towards the east-south-east, then drop
those whose ray meets another shore within ``--nearby-land`` (default 5 km)
past the first crossing.

Two files are written:
  * ``--near-out``     stations passing the near-coast test
                       (+ ``distance_to_ese_coast_km``)
  * ``--open-sea-out`` the subset facing open sea (the map's data file)
"""
from __future__ import annotations

import argparse
from collections import Counter
from pathlib import Path
from typing import List

from .coastline import (
    BEARING_ESE,
    COASTLINE_DIRS,
    MAX_DISTANCE_KM,
    NEARBY_LAND_KM,
    RAY_LENGTH_KM,
    CoastlineDataError,
    filter_coastal_stations,
    load_coastlines,
)
from .stations_io import (
    LINE_KEY,
    STATION_KEY,
    StationDataError,
    feature_collection,
    read_feature_collection,
    write_feature_collection,
)


def _print_by_line(features: List[dict], detail_key: str, limit: int = 10) -> None:
    by_line = Counter(f["properties"].get(LINE_KEY, "?") for f in features)
    for line, count in by_line.most_common(limit):
        print(f"  {line}: {count} 駅")
        for f in features:
            props = f["properties"]
            if props.get(LINE_KEY, "?") == line:
                print(f"    - {props.get(STATION_KEY)} ({detail_key} {props.get(detail_key)} km)")


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Keep stations facing open sea to the east-south-east.")
    p.add_argument("-s", "--stations", type=Path, default=Path("station-data/N02-22_Station_tokyo_200km.geojson"))
    p.add_argument("-c", "--coastline-dir", type=Path, action="append", default=None,
                   help="Directory holding a C23 coastline shapefile (repeatable)")
    p.add_argument("-b", "--bearing", type=float, default=BEARING_ESE, help="Ray bearing in degrees (default 112.5)")
    p.add_argument("--max-distance", type=float, default=MAX_DISTANCE_KM, help="Near-coast threshold in km")
    p.add_argument("--nearby-land", type=float, default=NEARBY_LAND_KM, help="Opposite-shore threshold in km")
    p.add_argument("--ray-length", type=float, default=RAY_LENGTH_KM, help="Ray length in km")
    p.add_argument("--near-out", type=Path, default=Path("station-data/N02-22_Station_ese_coast_2km.geojson"))
    p.add_argument("--open-sea-out", type=Path, default=Path("station-data/N02-22_Station_ese_coast_open_sea.geojson"))
    p.add_argument("-v", "--verbose", action="store_true", help="Print every kept / excluded station")
    args = p.parse_args(argv)

    if args.ray_length < args.max_distance + args.nearby_land:
        raise SystemExit("❌ --ray-length must be at least --max-distance + --nearby-land")

    print(f"▶️  bearing {args.bearing}°, near coast <= {args.max_distance} km, opposite shore <= {args.nearby_land} km\n")

    try:
        polylines = load_coastlines(args.coastline_dir or [Path(d) for d in COASTLINE_DIRS])
        data = read_feature_collection(args.stations)
    except (CoastlineDataError, StationDataError) as e:
        raise SystemExit(f"❌ {e}")

    features = data["features"]
    result = filter_coastal_stations(
        features,
        polylines,
        bearing_deg=args.bearing,
        max_distance_km=args.max_distance,
        nearby_land_km=args.nearby_land,
        ray_length_km=args.ray_length,
        verbose=args.verbose,
    )

    write_feature_collection(args.near_out, feature_collection("N02-22_Station_ESE_Coast_2km", result.near_coast))
    write_feature_collection(args.open_sea_out, feature_collection("N02-22_Station_ESE_Coast_Open_Sea", result.open_sea))

    print("\n=== summary ===")
    print(f"input stations:        {len(features)}")
    print(f"skipped (geometry):    {len(result.skipped)}")
    print(f"coast within {args.max_distance:g} km:    {len(result.near_coast)}")
    print(f"open sea:              {len(result.open_sea)}")
    print(f"excluded (land ahead): {len(result.excluded)}")

    if result.open_sea:
        print("\nopen-sea stations by line:")
        _print_by_line(result.open_sea, "distance_to_ese_coast_km")
    if result.excluded:
        print("\nexcluded stations by line:")
        _print_by_line(result.excluded, "distance_to_nearby_land_km")

    print(f"\n✅ written to {args.near_out} and {args.open_sea_out}")


if __name__ == "__main__":
    main()
