"""
sunrise.py
==========
Sunrise time for a station and the wait from the last train until sunrise.

The sunrise is the usual approximate solar-position method (declination +
hour angle, two-harmonic equation of time) referenced to Japan Standard Time
(standard meridian 135°E).  Accuracy is a minute or two, plenty for deciding
whether to take the last train out.

Clock strings are ``"HH:MM"``.  Timetables write after-midnight trains as
``00:xx``-``03:xx`` (sometimes ``24:xx``), which belong to the previous
service day; :func:`service_minutes` applies that convention.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

NO_SUNRISE = "日の出なし"   # polar night: the sun never rises
NO_SUNSET = "日没なし"      # polar day: the sun never sets
SENTINELS = (NO_SUNRISE, NO_SUNSET)

STANDARD_MERIDIAN = 135.0   # JST
SUNRISE_ALTITUDE = -0.833   # refraction + solar disc radius, degrees
SERVICE_DAY_START_HOUR = 4  # 0:00-3:59 counts as 24:00-27:59
MINUTES_PER_DAY = 24 * 60

NEW_YEAR_2026 = date(2026, 1, 1)

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True)
class WaitTime:
    hours: int
    minutes: int

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes


# ---------------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------------

def parse_clock(text: Optional[str]) -> Optional[int]:
    """``"HH:MM"`` -> minutes since its own midnight, ``None`` if not a clock time."""
    if not text:
        return None
    m = _CLOCK_RE.match(text)
    if not m:
        return None
    hours, minutes = int(m.group(1)), int(m.group(2))
    if minutes >= 60:
        return None
    return hours * 60 + minutes


def service_minutes(text: str) -> int:
    """Minutes since the start of the service day (``00:19`` -> 24:19 -> 1459)."""
    minutes = parse_clock(text)
    if minutes is None:
        raise ValueError(f"not a clock time: {text!r}")
    if minutes < SERVICE_DAY_START_HOUR * 60:
        minutes += MINUTES_PER_DAY
    return minutes


def format_clock(minutes: float) -> str:
    """Minutes from midnight (may be negative or >= 24h) -> ``"HH:MM"`` in 00:00-23:59."""
    total = math.floor(minutes + 0.5) % MINUTES_PER_DAY
    return f"{total // 60:02d}:{total % 60:02d}"


# ---------------------------------------------------------------------------
# Sunrise
# ---------------------------------------------------------------------------

def sunrise_minutes(lat: float, lon: float, day: date) -> Union[float, str]:
    """Sunrise as minutes from local (JST) midnight, or a polar sentinel.

    The value is not wrapped into a single day; west of the standard meridian
    at high latitudes it can exceed 1440 or drop below 0.
    """
    day_of_year = day.timetuple().tm_yday
    b = math.radians((360 / 365) * (day_of_year - 81))

    declination = math.radians(23.45 * math.sin(b))
    lat_rad = math.radians(lat)

    cos_h = (math.sin(math.radians(SUNRISE_ALTITUDE)) - math.sin(lat_rad) * math.sin(declination)) / (
        math.cos(lat_rad) * math.cos(declination)
    )
    if cos_h > 1:
        return NO_SUNRISE
    if cos_h < -1:
        return NO_SUNSET

    hour_angle = math.degrees(math.acos(cos_h))
    equation_of_time = 9.87 * math.sin(2 * b) - 7.53 * math.cos(b) - 1.5 * math.sin(b)
    longitude_correction = (STANDARD_MERIDIAN - lon) * 4

    solar_noon = 12 * 60 + longitude_correction - equation_of_time
    return solar_noon - hour_angle * 4


def calculate_sunrise(lat: float, lon: float, day: date = NEW_YEAR_2026) -> str:
    """Sunrise ``"HH:MM"`` (JST) for (lat, lon) on *day*, or a polar sentinel."""
    minutes = sunrise_minutes(lat, lon, day)
    if isinstance(minutes, str):
        return minutes
    return format_clock(minutes)


# ---------------------------------------------------------------------------
# Wait time
# ---------------------------------------------------------------------------

def calculate_wait_time(last_train_arrival: Optional[str], sunrise_time: Optional[str]) -> Optional[WaitTime]:
    """Time from tonight's last train until tomorrow's sunrise.

    >>> calculate_wait_time("00:19", "06:50")
    WaitTime(hours=6, minutes=31)
    """
    if sunrise_time in SENTINELS:
        return None
    arrival = parse_clock(last_train_arrival)
    sunrise = parse_clock(sunrise_time)
    if arrival is None or sunrise is None:
        return None

    if sunrise < arrival:
        sunrise += MINUTES_PER_DAY
    wait = (sunrise - arrival) % MINUTES_PER_DAY
    return WaitTime(hours=wait // 60, minutes=wait % 60)


def format_wait_time(wait: Optional[WaitTime]) -> str:
    if wait is None:
        return "計算不可"
    return f"{wait.hours}時間{wait.minutes}分"
