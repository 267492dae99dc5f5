"""
coastline.py
============
Cast a fixed-bearing ray from each station and look for coastline crossings.

Strategy
--------
* Coastlines (国土数値情報 C23 海岸線) are loaded once per run into plain
  polylines of ``(lon, lat)`` vertices, each with a bounding box so rays only
  test polylines they can actually reach.
* One ray of ``ray_length_km`` is cast per station.  Its hits, sorted by
  distance, give both the distance to the coast and the open-sea verdict:
    - **near coast**: nearest hit <= ``max_distance_km``
    - **open sea**: no second hit within ``nearby_land_km`` past the first
      (a second crossing means the opposite shore of a bay or channel).
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import geopandas as gpd
import numpy as np
from shapely.geometry import LineString, MultiLineString, MultiPolygon, Polygon

from .geo import GeoPoint, destination_point, haversine_km, segment_intersect, station_center
from .stations_io import station_label, with_properties

BEARING_ESE = 112.5          # 東南東, degrees clockwise from north
MAX_DISTANCE_KM = 2.0        # near-coast threshold
NEARBY_LAND_KM = 5.0         # opposite shore threshold past the first crossing
RAY_LENGTH_KM = 50.0
DUPLICATE_TOLERANCE_KM = 0.001  # hits closer than 1 m are the same crossing

# C23 coastline shapefile directories (茨城, 千葉, 東京, 神奈川)
COASTLINE_DIRS = (
    "coast-line/C23-06_08_GML",
    "coast-line/C23-06_12_GML",
    "coast-line/C23-06_13_GML",
    "coast-line/C23-06_14_GML",
)


class CoastlineDataError(ValueError):
    """Coastline source data is missing or unreadable."""


@dataclass(frozen=True)
class Polyline:
    coords: np.ndarray  # shape (n, 2), columns lon, lat
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @classmethod
    def from_coords(cls, coords: Sequence[Sequence[float]]) -> Optional["Polyline"]:
        arr = np.asarray(coords, dtype=float)
        if arr.ndim != 2 or arr.shape[0] < 2 or arr.shape[1] < 2:
            return None
        arr = arr[:, :2]
        return cls(
            coords=arr,
            min_lon=float(np.nanmin(arr[:, 0])),
            min_lat=float(np.nanmin(arr[:, 1])),
            max_lon=float(np.nanmax(arr[:, 0])),
            max_lat=float(np.nanmax(arr[:, 1])),
        )

    def may_cross(self, a: GeoPoint, b: GeoPoint) -> bool:
        return not (
            max(a.lon, b.lon) < self.min_lon
            or min(a.lon, b.lon) > self.max_lon
            or max(a.lat, b.lat) < self.min_lat
            or min(a.lat, b.lat) > self.max_lat
        )


@dataclass(frozen=True)
class CoastlineHit:
    point: GeoPoint
    distance_km: float


@dataclass(frozen=True)
class CoastClassification:
    distance_to_coast_km: Optional[float]
    near_coast: bool
    distance_to_nearby_land_km: Optional[float]
    open_sea: bool


@dataclass
class CoastFilterResult:
    near_coast: List[dict] = field(default_factory=list)
    open_sea: List[dict] = field(default_factory=list)
    excluded: List[dict] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _geometry_lines(geom) -> List[Sequence[Sequence[float]]]:
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, LineString):
        return [list(geom.coords)]
    if isinstance(geom, MultiLineString):
        return [list(g.coords) for g in geom.geoms]
    if isinstance(geom, (Polygon, MultiPolygon)):
        return _geometry_lines(geom.boundary)
    return []


def polylines_from_geometries(geometries: Iterable) -> List[Polyline]:
    """Flatten shapely geometries into :class:`Polyline` objects, dropping unusable parts."""
    lines: List[Polyline] = []
    for geom in geometries:
        for coords in _geometry_lines(geom):
            pl = Polyline.from_coords(coords)
            if pl is not None:
                lines.append(pl)
    return lines


def load_coastlines(dirs: Iterable[Path]) -> List[Polyline]:
    """Read the first ``.shp`` of every directory in *dirs* into polylines."""
    polylines: List[Polyline] = []
    for d in map(Path, dirs):
        if not d.is_dir():
            raise CoastlineDataError(f"coastline directory not found: {d}")
        shp = next(iter(sorted(d.glob("*.shp"))), None)
        if shp is None:
            raise CoastlineDataError(f"no shapefile in {d}")

        print(f"  · reading {shp}")
        try:
            gdf = gpd.read_file(shp)
        except Exception as e:
            raise CoastlineDataError(f"failed to read {shp}: {e}") from e
        if gdf.crs is not None and gdf.crs.is_projected:
            gdf = gdf.to_crs(epsg=4326)

        lines = polylines_from_geometries(gdf.geometry)
        print(f"    -> {len(gdf)} features / {len(lines)} polylines")
        polylines.extend(lines)

    if not polylines:
        raise CoastlineDataError("no coastline data could be loaded")
    print(f"✅ {len(polylines)} coastline polylines loaded\n")
    return polylines


# ---------------------------------------------------------------------------
# Ray cast
# ---------------------------------------------------------------------------

def _dedupe(hits: List[CoastlineHit]) -> List[CoastlineHit]:
    out: List[CoastlineHit] = []
    for h in hits:
        if out and h.distance_km - out[-1].distance_km <= DUPLICATE_TOLERANCE_KM:
            continue
        out.append(h)
    return out


def coastline_intersections(
    center: GeoPoint,
    polylines: Sequence[Polyline],
    *,
    bearing_deg: float = BEARING_ESE,
    ray_length_km: float = RAY_LENGTH_KM,
) -> List[CoastlineHit]:
    """All crossings of the ray with *polylines*, nearest first."""
    ray_end = destination_point(center, bearing_deg, ray_length_km)

    hits: List[CoastlineHit] = []
    for pl in polylines:
        if not pl.may_cross(center, ray_end):
            continue
        coords = pl.coords
        for i in range(len(coords) - 1):
            a = GeoPoint(coords[i, 1], coords[i, 0])
            b = GeoPoint(coords[i + 1, 1], coords[i + 1, 0])
            p = segment_intersect(center, ray_end, a, b)
            if p is not None:
                hits.append(CoastlineHit(p, haversine_km(center, p)))

    hits.sort(key=lambda h: h.distance_km)
    return _dedupe(hits)


def classify_station(
    center: GeoPoint,
    polylines: Sequence[Polyline],
    *,
    bearing_deg: float = BEARING_ESE,
    max_distance_km: float = MAX_DISTANCE_KM,
    nearby_land_km: float = NEARBY_LAND_KM,
    ray_length_km: float = RAY_LENGTH_KM,
) -> CoastClassification:
    if ray_length_km < max_distance_km + nearby_land_km:
        raise ValueError(
            f"ray length {ray_length_km} km must cover max distance + nearby land "
            f"({max_distance_km + nearby_land_km} km)"
        )

    hits = coastline_intersections(center, polylines, bearing_deg=bearing_deg, ray_length_km=ray_length_km)
    if not hits:
        return CoastClassification(None, False, None, False)

    first = hits[0].distance_km
    near = first <= max_distance_km

    gap: Optional[float] = None
    if len(hits) >= 2:
        between = hits[1].distance_km - first
        if between <= nearby_land_km:
            gap = between

    return CoastClassification(
        distance_to_coast_km=first,
        near_coast=near,
        distance_to_nearby_land_km=gap,
        open_sea=near and gap is None,
    )


def filter_coastal_stations(
    features: Iterable[dict],
    polylines: Sequence[Polyline],
    *,
    bearing_deg: float = BEARING_ESE,
    max_distance_km: float = MAX_DISTANCE_KM,
    nearby_land_km: float = NEARBY_LAND_KM,
    ray_length_km: float = RAY_LENGTH_KM,
    verbose: bool = False,
) -> CoastFilterResult:
    """Near-coast pass followed by the open-sea refinement on its survivors."""
    result = CoastFilterResult()
    for feature in features:
        geometry = feature.get("geometry") or {}
        center = station_center(geometry.get("coordinates"))
        if center is None:
            print(f"⚠️  skipping {station_label(feature)}: empty or malformed geometry", file=sys.stderr)
            result.skipped.append(feature)
            continue

        c = classify_station(
            center,
            polylines,
            bearing_deg=bearing_deg,
            max_distance_km=max_distance_km,
            nearby_land_km=nearby_land_km,
            ray_length_km=ray_length_km,
        )
        if not c.near_coast:
            continue

        near = with_properties(feature, distance_to_ese_coast_km=round(c.distance_to_coast_km, 3))
        result.near_coast.append(near)

        if c.open_sea:
            result.open_sea.append(near)
            if verbose:
                print(f"✓ {station_label(feature)} - 海岸線まで {c.distance_to_coast_km:.3f} km, 開けた海")
        else:
            result.excluded.append(with_properties(
                near,
                has_nearby_land_beyond_coast=True,
                distance_to_nearby_land_km=round(c.distance_to_nearby_land_km, 3),
            ))
            if verbose:
                print(f"✗ {station_label(feature)} - 対岸まで {c.distance_to_nearby_land_km:.3f} km")
    return result
