#!/usr/bin/env python3
"""
last_train.py
=============
Annotate the open-sea stations with the last train that reaches them.

The station GeoJSON uses Japanese display names (``N02_005``) while ODPT
timetables use dotted romanised identifiers such as
``odpt.Station:JR-East.Sotobo.Katsuura``.  A hand-maintained mapping ties the
two together; it is passed in explicitly (see :func:`default_name_mapping`
and ``--mapping``).

For every mapped station the latest train over all mapped
(railway, station) keys and all calendars is kept.  Times are ranked on the
service-day clock, so ``00:19`` is later than ``23:50``.

Output properties: ``last_train_arrival`` ("HH:MM") and ``last_train_info``
("<train type> <train number>").
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import jpholiday
import pandas as pd

from .stations_io import (
    OPERATOR_KEY,
    STATION_KEY,
    StationDataError,
    read_feature_collection,
    station_label,
    with_properties,
    write_feature_collection,
)
from .sunrise import service_minutes

JR_EAST = "JREast"
KEIKYU = "Keikyu"

# N02_004 names of the operators we have timetables for
OPERATOR_NAMES = {
    JR_EAST: "東日本旅客鉄道",
    KEIKYU: "京浜急行電鉄",
}

CALENDAR_WEEKDAY = "Weekday"
CALENDAR_SATURDAY_HOLIDAY = "SaturdayHoliday"

FRAME_COLUMNS = ["operator", "railway", "station", "calendar", "time", "minutes", "train_type", "train_number"]


@dataclass(frozen=True)
class StationMapping:
    romaji: str
    railway: str
    operator: str

    @property
    def key(self) -> Tuple[str, str, str]:
        return self.operator, self.railway, self.romaji


NameMapping = Mapping[str, Tuple[StationMapping, ...]]


# ---------------------------------------------------------------------------
# Name mapping
# ---------------------------------------------------------------------------

def _freeze(table: Dict[str, List[StationMapping]]) -> NameMapping:
    return MappingProxyType({name: tuple(ms) for name, ms in table.items()})


def default_name_mapping() -> NameMapping:
    """駅名 -> ODPT (romaji, railway, operator) for the coastal stations we know of."""
    jr = lambda romaji, railway: StationMapping(romaji, railway, JR_EAST)  # noqa: E731
    kq = lambda romaji, railway: StationMapping(romaji, railway, KEIKYU)  # noqa: E731
    return _freeze({
        # 常磐線
        "日立": [jr("Hitachi", "Joban")],
        "常陸多賀": [jr("HitachiTaga", "Joban")],
        "小木津": [jr("Ogitsu", "Joban")],
        "南中郷": [jr("MinamiNakago", "Joban")],
        "磯原": [jr("Isohara", "Joban")],
        "高萩": [jr("Takahagi", "Joban")],
        # 京葉線
        "市川塩浜": [jr("Ichikawashiohama", "Keiyo")],
        # 外房線
        "三門": [jr("Mikado", "Sotobo")],
        "安房鴨川": [jr("AwaKamogawa", "Sotobo"), jr("AwaKamogawa", "Uchibo")],
        "鵜原": [jr("Ubara", "Sotobo")],
        "行川アイランド": [jr("NamegawaIsland", "Sotobo")],
        "東浪見": [jr("Torami", "Sotobo")],
        "浪花": [jr("Namihana", "Sotobo")],
        "勝浦": [jr("Katsuura", "Sotobo")],
        "上総興津": [jr("KazusaOkitsu", "Sotobo")],
        # 内房線
        "千歳": [jr("Chitose", "Uchibo")],
        "南三原": [jr("Minamihara", "Uchibo")],
        "千倉": [jr("Chikura", "Uchibo")],
        "和田浦": [jr("Wadaura", "Uchibo")],
        # 東海道線
        "国府津": [jr("Kozu", "Tokaido")],
        "大磯": [jr("Oiso", "Tokaido")],
        "早川": [jr("Hayakawa", "Tokaido")],
        "二宮": [jr("Ninomiya", "Tokaido")],
        "小田原": [jr("Odawara", "Tokaido")],
        "根府川": [jr("Nebukawa", "Tokaido")],
        "鴨宮": [jr("Kamonomiya", "Tokaido")],
        "湯河原": [jr("Yugawara", "Tokaido")],
        "真鶴": [jr("Manazuru", "Tokaido")],
        # 京急久里浜線
        "YRP野比": [kq("YrpNobi", "Kurihama")],
        "津久井浜": [kq("Tsukuihama", "Kurihama")],
        "京急長沢": [kq("KeikyuNagasawa", "Kurihama")],
        "三浦海岸": [kq("Miurakaigan", "Kurihama")],
        # 京急空港線
        "羽田空港第1・第2ターミナル": [kq("HanedaAirportTerminal1and2", "Airport")],
        # 京急本線
        "浦賀": [kq("Uraga", "Main")],
    })


def load_name_mapping(path: Path) -> NameMapping:
    """Read a mapping CSV with columns ``station,romaji,railway,operator``."""
    try:
        df = pd.read_csv(path, dtype=str, encoding="utf-8-sig").dropna()
    except (OSError, ValueError) as e:
        raise StationDataError(f"failed to read mapping CSV {path}: {e}") from e
    missing = {"station", "romaji", "railway", "operator"} - set(df.columns)
    if missing:
        raise StationDataError(f"mapping CSV {path} is missing column(s): {', '.join(sorted(missing))}")

    table: Dict[str, List[StationMapping]] = {}
    for row in df.itertuples(index=False):
        table.setdefault(row.station.strip(), []).append(
            StationMapping(row.romaji.strip(), row.railway.strip(), row.operator.strip())
        )
    return _freeze(table)


# ---------------------------------------------------------------------------
# Timetables
# ---------------------------------------------------------------------------

def _last_segment(identifier: Optional[str]) -> Optional[str]:
    """``odpt.Station:JR-East.Sotobo.Katsuura`` -> ``Katsuura`` (needs >= 3 segments)."""
    parts = (identifier or "").split(".")
    return parts[-1] if len(parts) >= 3 else None


def timetables_to_frame(entries: Iterable[dict], operator: str) -> pd.DataFrame:
    """Flatten ODPT ``odpt:StationTimetable`` entries into one row per train."""
    rows = []
    for tt in entries:
        station = _last_segment(tt.get("odpt:station"))
        railway = _last_segment(tt.get("odpt:railway"))
        if station is None or railway is None:
            continue
        calendar = (tt.get("odpt:calendar") or "").split(":")[-1]

        for obj in tt.get("odpt:stationTimetableObject") or []:
            time = obj.get("odpt:departureTime") or obj.get("odpt:arrivalTime")
            if not time:
                continue
            try:
                minutes = service_minutes(time)
            except ValueError:
                print(f"⚠️  bad time {time!r} at {railway}.{station}", file=sys.stderr)
                continue
            rows.append({
                "operator": operator,
                "railway": railway,
                "station": station,
                "calendar": calendar,
                "time": time,
                "minutes": minutes,
                "train_type": (obj.get("odpt:trainType") or "").split(".")[-1],
                "train_number": obj.get("odpt:trainNumber") or "",
            })
    return pd.DataFrame(rows, columns=FRAME_COLUMNS).astype({"minutes": "int64"})


def load_timetables(paths: Mapping[str, Path]) -> pd.DataFrame:
    """Read one timetable JSON per operator and concatenate them."""
    frames = []
    for operator, path in paths.items():
        try:
            entries = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StationDataError(f"failed to read timetable {path}: {e}") from e
        df = timetables_to_frame(entries, operator)
        print(f"  · {operator}: {len(entries)} timetables / {len(df)} trains")
        if not df.empty:
            frames.append(df)
    if not frames:
        return timetables_to_frame([], "")
    return pd.concat(frames, ignore_index=True)


def calendar_for(day: date) -> str:
    """ODPT calendar that applies on *day* (土日祝 -> SaturdayHoliday)."""
    if day.weekday() >= 5 or jpholiday.is_holiday(day):
        return CALENDAR_SATURDAY_HOLIDAY
    return CALENDAR_WEEKDAY


def restrict_to_date(frame: pd.DataFrame, day: date) -> pd.DataFrame:
    wanted = calendar_for(day)
    if wanted == CALENDAR_SATURDAY_HOLIDAY:
        ok = {CALENDAR_SATURDAY_HOLIDAY, "Saturday" if day.weekday() == 5 else "Holiday"}
    else:
        ok = {CALENDAR_WEEKDAY}
    return frame[frame["calendar"].isin(ok)]


def latest_trains(frame: pd.DataFrame) -> pd.DataFrame:
    """Latest train per (operator, railway, station) on the service-day clock."""
    if frame.empty:
        return frame.copy()
    idx = frame.groupby(["operator", "railway", "station"])["minutes"].idxmax()
    return frame.loc[idx].set_index(["operator", "railway", "station"])


# ---------------------------------------------------------------------------
# Cross-reference
# ---------------------------------------------------------------------------

@dataclass
class LastTrainReport:
    features: List[dict]
    matched: List[str]
    unmatched: List[str]
    no_timetable: List[str]


def annotate_last_trains(features: Iterable[dict], frame: pd.DataFrame, mapping: NameMapping) -> LastTrainReport:
    latest = latest_trains(frame)
    out: List[dict] = []
    matched: List[str] = []
    unmatched: List[str] = []
    no_timetable: List[str] = []

    for feature in features:
        props = feature.get("properties") or {}
        name = props.get(STATION_KEY)
        mappings = mapping.get(name)
        if not mappings:
            if props.get(OPERATOR_KEY) in OPERATOR_NAMES.values():
                unmatched.append(station_label(feature))
            out.append(feature)
            continue

        keys = [m.key for m in mappings if m.key in latest.index]
        if not keys:
            no_timetable.append(station_label(feature))
            out.append(feature)
            continue

        best = latest.loc[keys].sort_values("minutes").iloc[-1]
        info = f"{best['train_type']} {best['train_number']}".strip()
        out.append(with_properties(feature, last_train_arrival=best["time"], last_train_info=info))
        matched.append(f"{station_label(feature)}: {best['time']} ({info})")

    return LastTrainReport(out, matched, unmatched, no_timetable)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Add last-train arrival times to the open-sea stations.")
    p.add_argument("-s", "--stations", type=Path, default=Path("station-data/N02-22_Station_ese_coast_open_sea.geojson"))
    p.add_argument("--jreast", type=Path, default=Path("train-timetables/odpt_StationTimetable-jreast-combined.json"))
    p.add_argument("--keikyu", type=Path, default=Path("train-timetables/odpt_StationTimetable-keikyu.json"))
    p.add_argument("-m", "--mapping", type=Path, default=None, help="CSV station,romaji,railway,operator (default: built-in table)")
    p.add_argument("-d", "--date", type=date.fromisoformat, default=None, help="Only use the calendar valid on this date (YYYY-MM-DD)")
    p.add_argument("-o", "--outfile", type=Path, default=Path("station-data/N02-22_Station_ese_coast_open_sea_with_trains.geojson"))
    args = p.parse_args(argv)

    try:
        data = read_feature_collection(args.stations)
        mapping = load_name_mapping(args.mapping) if args.mapping else default_name_mapping()
        frame = load_timetables({JR_EAST: args.jreast, KEIKYU: args.keikyu})
    except StationDataError as e:
        raise SystemExit(f"❌ {e}")

    if args.date is not None:
        frame = restrict_to_date(frame, args.date)
        print(f"▶️  calendar {calendar_for(args.date)} ({args.date}): {len(frame)} trains")

    report = annotate_last_trains(data["features"], frame, mapping)
    for line in report.matched:
        print(f"✓ {line}")
    for label in report.no_timetable:
        print(f"⚠️  no timetable for {label}", file=sys.stderr)

    print(f"\nMatched stations: {len(report.matched)}")
    print(f"Unmatched stations (need mapping): {len(report.unmatched)}")
    for label in report.unmatched:
        print("  -", label)

    write_feature_collection(args.outfile, {**data, "features": report.features})
    print(f"\n✅ written to {args.outfile}")


if __name__ == "__main__":
    main()
