#!/usr/bin/env python3
"""
build_station_kml.py
====================
Generate a KML that combines
  • station placemarks (coast distance, last train, sunrise, wait)
  • the ray from each station towards the coastline crossing
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List

import simplekml

from .coastline import BEARING_ESE
from .geo import destination_point, station_center
from .stations_io import (
    LINE_KEY,
    OPERATOR_KEY,
    STATION_KEY,
    StationDataError,
    read_feature_collection,
)

STATION_ICON = "http://maps.google.com/mapfiles/kml/paddle/red-circle.png"


def describe(props: dict) -> str:
    lines = [
        f"{props.get(LINE_KEY, '')} / {props.get(OPERATOR_KEY, '')}",
        f"海岸線まで {props.get('distance_to_ese_coast_km', '-')} km",
    ]
    if props.get("last_train_arrival"):
        lines.append(f"終電 {props['last_train_arrival']} ({props.get('last_train_info', '')})")
    if props.get("sunrise_time"):
        lines.append(f"日の出 {props['sunrise_time']}")
    if props.get("wait_label"):
        lines.append(f"待ち時間 {props['wait_label']}")
    return "\n".join(lines)


def build_kml(features: List[dict], bearing_deg: float = BEARING_ESE) -> simplekml.Kml:
    kml = simplekml.Kml()

    station_style = simplekml.Style()
    station_style.iconstyle.icon.href = STATION_ICON
    station_style.iconstyle.scale = 1.2

    ray_style = simplekml.Style()
    ray_style.linestyle.color = simplekml.Color.changealphaint(200, simplekml.Color.orange)
    ray_style.linestyle.width = 3

    for f in features:
        props = f.get("properties") or {}
        center = station_center((f.get("geometry") or {}).get("coordinates"))
        if center is None:
            continue
        name = str(props.get(STATION_KEY, ""))

        pnt = kml.newpoint(name=name, coords=[center.lonlat()])
        pnt.description = describe(props)
        pnt.style = station_style

        coast_km = props.get("distance_to_ese_coast_km")
        if coast_km is not None:
            end = destination_point(center, bearing_deg, float(coast_km))
            ray = kml.newlinestring(name=f"{name} → 海岸線", coords=[center.lonlat(), end.lonlat()])
            ray.style = ray_style
    return kml


def main(argv: List[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Create KML with stations and their rays to the coast")
    ap.add_argument("-s", "--stations", type=Path, default=Path("public/data/stations_with_last_train.geojson"))
    ap.add_argument("-o", "--outfile", default="stations_ese_coast.kml", help="Output KML filename")
    ap.add_argument("-b", "--bearing", type=float, default=BEARING_ESE)
    args = ap.parse_args(argv)

    try:
        data = read_feature_collection(args.stations)
    except StationDataError as e:
        raise SystemExit(f"❌ {e}")

    kml = build_kml(data["features"], args.bearing)
    kml.save(args.outfile)
    print(f"✅ KML written to {args.outfile}")


if __name__ == "__main__":
    main()
