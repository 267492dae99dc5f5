"""Read / write the station GeoJSON files passed between pipeline stages."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

# N02 (国土数値情報 鉄道データ) property keys
LINE_KEY = "N02_003"      # 路線名
OPERATOR_KEY = "N02_004"  # 事業者名
STATION_KEY = "N02_005"   # 駅名


class StationDataError(ValueError):
    """Station input is missing or not a GeoJSON FeatureCollection."""


def read_feature_collection(path: Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise StationDataError(f"station file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StationDataError(f"failed to read station file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise StationDataError(f"{path} is not a GeoJSON FeatureCollection")
    return data


def feature_collection(name: str, features: List[dict]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "name": name, "features": features}


def write_feature_collection(path: Path, data: Dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def station_label(feature: dict) -> str:
    """``駅名 (路線名)`` for progress output."""
    props = feature.get("properties") or {}
    return f"{props.get(STATION_KEY, '?')} ({props.get(LINE_KEY, '?')})"


def with_properties(feature: dict, **extra: Any) -> dict:
    """Copy of *feature* with *extra* merged into its properties."""
    return {**feature, "properties": {**(feature.get("properties") or {}), **extra}}
