#!/usr/bin/env python3
"""
filter_near_tokyo.py
====================
Keep every station whose representative point lies within *radius* (default
200 km) of Tokyo station and record ``distance_km_from_tokyo`` (3 decimals).

Input is the national N02 station GeoJSON (each station a short LineString
of its platform track).  Features without usable geometry are skipped with a
warning.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Tuple

import numpy as np

from .geo import TOKYO_STATION, GeoPoint, geometry_to_point, haversine_np
from .stations_io import (
    StationDataError,
    read_feature_collection,
    station_label,
    with_properties,
    write_feature_collection,
)

SEARCH_RADIUS_KM = 200.0


def filter_within_radius(
    features: List[dict],
    *,
    origin: GeoPoint = TOKYO_STATION,
    radius_km: float = SEARCH_RADIUS_KM,
) -> Tuple[List[dict], List[dict]]:
    """Return ``(kept, skipped)``; kept features carry ``distance_km_from_tokyo``."""
    usable: List[dict] = []
    points: List[GeoPoint] = []
    skipped: List[dict] = []
    for feature in features:
        pt = geometry_to_point(feature.get("geometry"))
        if pt is None:
            print(f"⚠️  skipping {station_label(feature)}: no usable geometry", file=sys.stderr)
            skipped.append(feature)
            continue
        usable.append(feature)
        points.append(pt)

    if not usable:
        return [], skipped

    dists = haversine_np(
        origin.lat,
        origin.lon,
        np.array([p.lat for p in points]),
        np.array([p.lon for p in points]),
    )
    kept = [
        with_properties(f, distance_km_from_tokyo=round(float(d), 3))
        for f, d in zip(usable, dists)
        if d <= radius_km
    ]
    return kept, skipped


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Keep stations within a radius of Tokyo station.")
    p.add_argument("-s", "--stations", type=Path, default=Path("N02-22_GML/UTF-8/N02-22_Station.geojson"))
    p.add_argument("-r", "--radius", type=float, default=SEARCH_RADIUS_KM, help="Radius in km (default 200)")
    p.add_argument("-o", "--outfile", type=Path, default=Path("station-data/N02-22_Station_tokyo_200km.geojson"))
    args = p.parse_args(argv)

    try:
        data = read_feature_collection(args.stations)
    except StationDataError as e:
        raise SystemExit(f"❌ {e}")

    kept, skipped = filter_within_radius(data["features"], radius_km=args.radius)
    write_feature_collection(args.outfile, {**data, "features": kept})

    print(f"✅ {len(kept)} of {len(data['features'])} stations within {args.radius:g} km written to {args.outfile}")
    if skipped:
        print(f"   ({len(skipped)} skipped for missing geometry)")


if __name__ == "__main__":
    main()
