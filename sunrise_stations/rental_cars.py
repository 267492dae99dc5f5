#!/usr/bin/env python3
"""
rental_cars.py
==============
List rental-car offices (国交省 貸渡実績報告書 CSV) within ``--radius``
(default 1 km) of an open-sea station, for the morning after sunrise.

Each office is matched to its nearest station; offices are deduplicated by
office id + coordinates on input and by coordinates on output.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from .geo import GeoPoint, haversine_np, station_center
from .stations_io import (
    LINE_KEY,
    OPERATOR_KEY,
    STATION_KEY,
    StationDataError,
    feature_collection,
    read_feature_collection,
    write_feature_collection,
)

RADIUS_KM = 1.0

REQUIRED_COLUMNS = [
    "ADDRESS_LATITUDE",
    "ADDRESS_LONGITUDE",
    "OFFICE_VEHICLE_ALLOCATION_LIST_OFFICE_ID",
]
OPTIONAL_COLUMNS = [
    "OPERATOR_ID",
    "ADDRESS",
    "OFFICE_VEHICLE_ALLOCATION_LIST_LOCATION",
    "PASSENGER_CAR_VEHICLE_COUNT",
    "OWNED_VEHICLES_PASSENGER",
    "OWNED_VEHICLES_TOTAL",
    "PREFECTURE_NAME",
    "CITY_WARD_TOWN_NAME",
]


def unique_station_centers(features: List[dict]) -> pd.DataFrame:
    """One row per station name (first occurrence wins) with its center point."""
    rows: Dict[str, dict] = {}
    for f in features:
        props = f.get("properties") or {}
        name = props.get(STATION_KEY)
        if not name or name in rows:
            continue
        center = station_center((f.get("geometry") or {}).get("coordinates"))
        if center is None:
            continue
        rows[name] = {
            "station": name,
            "operator": props.get(OPERATOR_KEY, ""),
            "line": props.get(LINE_KEY, ""),
            "lat": center.lat,
            "lon": center.lon,
        }
    return pd.DataFrame(list(rows.values()), columns=["station", "operator", "line", "lat", "lon"])


def clean_offices(raw: pd.DataFrame) -> pd.DataFrame:
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing:
        raise StationDataError(f"rental-car CSV is missing column(s): {', '.join(missing)}")

    df = raw.copy()
    for c in OPTIONAL_COLUMNS:
        df[c] = df[c].fillna("") if c in df.columns else ""
    df["lat"] = pd.to_numeric(df["ADDRESS_LATITUDE"], errors="coerce")
    df["lon"] = pd.to_numeric(df["ADDRESS_LONGITUDE"], errors="coerce")
    for c in ("PASSENGER_CAR_VEHICLE_COUNT", "OWNED_VEHICLES_PASSENGER", "OWNED_VEHICLES_TOTAL"):
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0).astype(int)
    df["office_id"] = df["OFFICE_VEHICLE_ALLOCATION_LIST_OFFICE_ID"].fillna("").astype(str).str.strip()

    ok = df["lat"].notna() & df["lon"].notna() & (df["lat"] != 0) & (df["lon"] != 0) & (df["office_id"] != "")
    return df[ok].drop_duplicates(subset=["office_id", "lat", "lon"])


def offices_near_stations(offices: pd.DataFrame, stations: pd.DataFrame, radius_km: float = RADIUS_KM) -> List[dict]:
    if offices.empty or stations.empty:
        return []

    st_lats = stations["lat"].to_numpy()
    st_lons = stations["lon"].to_numpy()

    features: List[dict] = []
    seen = set()
    for _, office in offices.iterrows():
        dists = haversine_np(office["lat"], office["lon"], st_lats, st_lons)
        i = int(np.argmin(dists))
        if dists[i] > radius_km:
            continue
        key = (office["lat"], office["lon"])
        if key in seen:
            continue
        seen.add(key)

        st = stations.iloc[i]
        features.append({
            "type": "Feature",
            "properties": {
                "office_id": office["office_id"],
                "address": office["ADDRESS"] or office["OFFICE_VEHICLE_ALLOCATION_LIST_LOCATION"],
                "prefecture": office["PREFECTURE_NAME"],
                "city": office["CITY_WARD_TOWN_NAME"],
                "passenger_car_count": int(office["OWNED_VEHICLES_PASSENGER"] or office["PASSENGER_CAR_VEHICLE_COUNT"]),
                "owned_vehicles_total": int(office["OWNED_VEHICLES_TOTAL"]),
                "nearest_station": st["station"],
                "nearest_station_operator": st["operator"],
                "nearest_station_line": st["line"],
                "distance_to_station_km": round(float(dists[i]), 3),
            },
            "geometry": {"type": "Point", "coordinates": [float(office["lon"]), float(office["lat"])]},
        })
    return features


def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Rental-car offices near the open-sea stations.")
    p.add_argument("-s", "--stations", type=Path, default=Path("public/data/N02-22_Station_ese_coast_open_sea.geojson"))
    p.add_argument("-c", "--offices", type=Path, default=Path("kokudokoutsusho/01_kashiwatashijissekihoukokusho.csv"))
    p.add_argument("-r", "--radius", type=float, default=RADIUS_KM, help="Radius in km (default 1)")
    p.add_argument("-o", "--outfile", type=Path, default=Path("public/data/rental_car_offices_near_stations.geojson"))
    args = p.parse_args(argv)

    try:
        data = read_feature_collection(args.stations)
    except StationDataError as e:
        raise SystemExit(f"❌ {e}")

    if not args.offices.exists():
        raise SystemExit(f"❌ rental-car CSV not found: {args.offices}")
    try:
        raw = pd.read_csv(args.offices, dtype=str, encoding="utf-8-sig")
        offices = clean_offices(raw)
    except (StationDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise SystemExit(f"❌ failed to read rental-car CSV: {e}")

    stations = unique_station_centers(data["features"])
    print(f"▶️  {len(stations)} unique stations, {len(offices)} offices with coordinates ({len(raw)} rows)")

    features = offices_near_stations(offices, stations, args.radius)
    write_feature_collection(args.outfile, feature_collection("Rental_Car_Offices_Near_Stations", features))

    counts = pd.Series([f["properties"]["nearest_station"] for f in features], dtype="object").value_counts()
    for station, n in counts.head(20).items():
        print(f"  {station}: {n}件")
    if not features:
        print("⚠️  no offices within radius", file=sys.stderr)
    print(f"\n✅ {len(features)} offices within {args.radius:g} km written to {args.outfile}")


if __name__ == "__main__":
    main()
