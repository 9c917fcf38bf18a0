"""Bounding box, date range and polygon helpers shared by all providers.

Canonical bbox order everywhere in this project is
[min_lon, min_lat, max_lon, max_lat] in WGS84 degrees.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Sequence, Union

DateLike = Union[str, date]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lon/lat rectangle"""

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def __post_init__(self):
        values = self.as_list()
        if not all(math.isfinite(v) for v in values):
            raise ValueError("bbox values must be finite numbers")
        if not (-180.0 <= self.min_lon <= 180.0 and -180.0 <= self.max_lon <= 180.0):
            raise ValueError("bbox longitudes must be within [-180, 180]")
        if not (-90.0 <= self.min_lat <= 90.0 and -90.0 <= self.max_lat <= 90.0):
            raise ValueError("bbox latitudes must be within [-90, 90]")
        if self.min_lon > self.max_lon:
            raise ValueError(f"bbox min_lon ({self.min_lon}) is greater than max_lon ({self.max_lon})")
        if self.min_lat > self.max_lat:
            raise ValueError(f"bbox min_lat ({self.min_lat}) is greater than max_lat ({self.max_lat})")

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "BoundingBox":
        """Build from [min_lon, min_lat, max_lon, max_lat]."""
        if len(values) != 4:
            raise ValueError("bbox must have exactly 4 values [min_lon, min_lat, max_lon, max_lat]")
        for v in values:
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"bbox values must be numbers, got {v!r}")
        return cls(*(float(v) for v in values))

    def as_list(self) -> list[float]:
        return [self.min_lon, self.min_lat, self.max_lon, self.max_lat]

    def __iter__(self) -> Iterator[float]:
        return iter(self.as_list())


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range used for catalog search"""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"date range start ({self.start}) is after end ({self.end})")

    def to_interval(self) -> str:
        """RFC 3339 interval covering both days completely."""
        return f"{day_start(self.start)}/{day_end(self.end)}"


def parse_date(value: DateLike) -> date:
    """Parse YYYY-MM-DD (or the date part of an ISO timestamp)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip().split("T")[0], "%Y-%m-%d").date()


def day_start(value: DateLike) -> str:
    if isinstance(value, str) and "T" in value:
        return value
    return f"{parse_date(value).isoformat()}T00:00:00Z"


def day_end(value: DateLike) -> str:
    if isinstance(value, str) and "T" in value:
        return value
    return f"{parse_date(value).isoformat()}T23:59:59Z"


def polygon_from_bbox(bbox: BoundingBox) -> dict:
    """
    Convert a bbox to a closed GeoJSON Polygon (WGS84, [lon, lat] pairs).

    The ring is counter-clockwise starting at the south-west corner:
    SW -> SE -> NE -> NW -> SW.
    """
    min_lon, min_lat, max_lon, max_lat = bbox.as_list()
    return {
        "type": "Polygon",
        "coordinates": [[
            [min_lon, min_lat],
            [max_lon, min_lat],
            [max_lon, max_lat],
            [min_lon, max_lat],
            [min_lon, min_lat],
        ]],
    }


def nominatim_bbox_to_bbox(raw: Sequence[Union[str, float]]) -> BoundingBox:
    """
    Normalize Nominatim's boundingbox [min_lat, max_lat, min_lon, max_lon]
    (strings) into the canonical BoundingBox.
    """
    if raw is None or len(raw) != 4:
        raise ValueError("Invalid Nominatim bbox: expected 4 values")
    try:
        lat_a, lat_b, lon_a, lon_b = (float(v) for v in raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid Nominatim bbox: {list(raw)!r}")

    return BoundingBox(
        min_lon=min(lon_a, lon_b),
        min_lat=min(lat_a, lat_b),
        max_lon=max(lon_a, lon_b),
        max_lat=max(lat_a, lat_b),
    )
