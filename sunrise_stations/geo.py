"""
geo.py
======
Spherical-earth helpers shared by every pipeline stage.

All distances are kilometres, all angles decimal degrees (WGS-84 assumed).
Coordinates coming from GeoJSON / shapefiles are ``(lon, lat)`` ordered;
:class:`GeoPoint` is ``(lat, lon)`` so call sites stay readable.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0  # spherical mean radius

# Tokyo station (丸の内駅舎)
TOKYO_STATION_LAT = 35.681236
TOKYO_STATION_LON = 139.767125


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    @classmethod
    def from_lonlat(cls, coord: Sequence[float]) -> "GeoPoint":
        """Build from a GeoJSON ``[lon, lat, ...]`` position."""
        return cls(lat=float(coord[1]), lon=float(coord[0]))

    def lonlat(self) -> tuple[float, float]:
        return self.lon, self.lat


TOKYO_STATION = GeoPoint(TOKYO_STATION_LAT, TOKYO_STATION_LON)


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between *a* and *b* in km."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlmb = math.radians(b.lon - a.lon)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def haversine_np(lat1: float, lon1: float, lats2: np.ndarray, lons2: np.ndarray) -> np.ndarray:
    """Vectorised Haversine distance from one point to many (in km)."""
    lat1_rad, lon1_rad = map(math.radians, (lat1, lon1))
    lats2_rad = np.radians(lats2)
    lons2_rad = np.radians(lons2)

    dlat = lats2_rad - lat1_rad
    dlon = lons2_rad - lon1_rad

    a = (
        np.sin(dlat / 2) ** 2
        + np.cos(lat1_rad) * np.cos(lats2_rad) * np.sin(dlon / 2) ** 2
    )
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return EARTH_RADIUS_KM * c


def destination_point(origin: GeoPoint, bearing_deg: float, distance_km: float) -> GeoPoint:
    """Return the point reached by moving *distance_km* at *bearing_deg* from *origin*."""
    bearing = math.radians(bearing_deg)
    lat1 = math.radians(origin.lat)
    lon1 = math.radians(origin.lon)
    ang_dist = distance_km / EARTH_RADIUS_KM
    lat2 = math.asin(math.sin(lat1) * math.cos(ang_dist) + math.cos(lat1) * math.sin(ang_dist) * math.cos(bearing))
    lon2 = lon1 + math.atan2(math.sin(bearing) * math.sin(ang_dist) * math.cos(lat1),
                             math.cos(ang_dist) - math.sin(lat1) * math.sin(lat2))
    return GeoPoint(math.degrees(lat2), math.degrees(lon2))


# ---------------------------------------------------------------------------
# Planar segment intersection
# ---------------------------------------------------------------------------

def segment_intersect(
    ray_start: GeoPoint,
    ray_end: GeoPoint,
    seg_a: GeoPoint,
    seg_b: GeoPoint,
) -> Optional[GeoPoint]:
    """Intersection of segment *ray_start*-*ray_end* with *seg_a*-*seg_b*.

    Works on the lon/lat plane, which is fine at the tens-of-km scale used
    here.  Returns ``None`` for parallel, collinear, zero-length or
    non-overlapping segments.
    """
    x1, y1 = ray_start.lon, ray_start.lat
    x2, y2 = ray_end.lon, ray_end.lat
    x3, y3 = seg_a.lon, seg_a.lat
    x4, y4 = seg_b.lon, seg_b.lat

    denom = (y4 - y3) * (x2 - x1) - (x4 - x3) * (y2 - y1)
    if denom == 0:
        return None

    ua = ((x4 - x3) * (y1 - y3) - (y4 - y3) * (x1 - x3)) / denom
    ub = ((x2 - x1) * (y1 - y3) - (y2 - y1) * (x1 - x3)) / denom
    if not (0.0 <= ua <= 1.0 and 0.0 <= ub <= 1.0):
        return None

    return GeoPoint(y1 + ua * (y2 - y1), x1 + ua * (x2 - x1))


# ---------------------------------------------------------------------------
# Representative points of station geometries
# ---------------------------------------------------------------------------

def station_center(coords: Sequence[Sequence[float]] | None) -> Optional[GeoPoint]:
    """Middle vertex of a station's track LineString, ``None`` if unusable."""
    if not coords:
        return None
    mid = coords[len(coords) // 2]
    try:
        return GeoPoint.from_lonlat(mid)
    except (TypeError, IndexError, ValueError):
        return None


def _average(coords: Sequence[Sequence[float]]) -> Optional[GeoPoint]:
    if not coords:
        return None
    lons = [float(c[0]) for c in coords]
    lats = [float(c[1]) for c in coords]
    return GeoPoint(sum(lats) / len(lats), sum(lons) / len(lons))


def geometry_to_point(geometry: dict | None) -> Optional[GeoPoint]:
    """Representative point for any GeoJSON geometry (vertex average for lines/polygons)."""
    if not geometry:
        return None
    gtype = geometry.get("type")
    coords = geometry.get("coordinates")
    if not coords:
        return None

    try:
        if gtype == "Point":
            return GeoPoint.from_lonlat(coords)
        if gtype == "MultiPoint":
            return GeoPoint.from_lonlat(coords[0])
        if gtype == "LineString":
            return _average(coords)
        if gtype == "MultiLineString":
            return _average([c for line in coords for c in line])
        if gtype == "Polygon":
            return _average(coords[0])
        if gtype == "MultiPolygon":
            return _average([c for poly in coords for ring in poly for c in ring])
    except (TypeError, IndexError, ValueError):
        return None
    return None
