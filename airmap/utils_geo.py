"""Geospatial helpers: the supported service region and coordinate parsing."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

from shapely.geometry import Point, Polygon

from .entities import GeoPoint, ValidationError

MISSING_COORDINATES = 'Missing "lat" or "lon" parameters.'

# Closed ring, first vertex repeated last.
CALIFORNIA_POLYGON: Tuple[GeoPoint, ...] = (
    GeoPoint(41.9727325, -120.0091050),
    GeoPoint(41.8898826, -124.6045661),
    GeoPoint(33.9044735, -120.4462801),
    GeoPoint(32.6184122, -117.1073262),
    GeoPoint(32.6554188, -114.2955756),
    GeoPoint(34.3047333, -114.1637748),
    GeoPoint(35.0995465, -114.7349117),
    GeoPoint(39.0254518, -120.0948112),
    GeoPoint(41.9727325, -120.0091050),
)

INITIAL_CENTER = GeoPoint(36.7783, -119.4179)


class ServiceRegion:
    """Read-only polygon used to decide whether a point gets enriched.

    Points lying exactly on the boundary count as inside.
    """

    def __init__(self, vertices: Sequence[GeoPoint]):
        if len(vertices) < 4:
            raise ValueError("A service region needs at least three distinct vertices")
        if vertices[0] != vertices[-1]:
            raise ValueError("Service region polygon must be closed (first vertex == last vertex)")
        self.vertices: Tuple[GeoPoint, ...] = tuple(vertices)
        self._polygon = Polygon([(v.lon, v.lat) for v in self.vertices])
        if not self._polygon.is_valid:
            raise ValueError("Service region polygon is not a valid simple polygon")

    def contains(self, point: GeoPoint) -> bool:
        return bool(self._polygon.covers(Point(point.lon, point.lat)))

    __contains__ = contains


CALIFORNIA = ServiceRegion(CALIFORNIA_POLYGON)


def is_in_region(point: GeoPoint, region: ServiceRegion = CALIFORNIA) -> bool:
    return region.contains(point)


@dataclass(frozen=True)
class BBox:
    min_lng: float
    min_lat: float
    max_lng: float
    max_lat: float

    def as_list(self) -> list:
        return [self.min_lng, self.min_lat, self.max_lng, self.max_lat]


def parse_finite(raw: Optional[str], name: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f'"{name}" must be a number.') from exc
    if not math.isfinite(value):
        raise ValidationError(f'"{name}" must be a finite number.')
    return value


def parse_bbox(raw: str) -> BBox:
    """Parse ``minLng,minLat,maxLng,maxLat`` into a :class:`BBox`."""
    parts = raw.split(",")
    if len(parts) != 4:
        raise ValidationError('Invalid "bbox" parameter format.')
    try:
        min_lng, min_lat, max_lng, max_lat = [parse_finite(p, "bbox") for p in parts]
    except ValidationError as exc:
        raise ValidationError('Invalid "bbox" parameter format.') from exc
    if min_lng > max_lng or min_lat > max_lat:
        raise ValidationError('"bbox" minimums must not exceed maximums.')
    return BBox(min_lng, min_lat, max_lng, max_lat)


def parse_point(args: Mapping[str, str]) -> GeoPoint:
    """Read ``lat``/``lon`` from query arguments."""
    lat_raw: Optional[str] = args.get("lat")
    lon_raw: Optional[str] = args.get("lon")
    if not lat_raw or not lon_raw:
        raise ValidationError(MISSING_COORDINATES)
    return GeoPoint(parse_finite(lat_raw, "lat"), parse_finite(lon_raw, "lon"))


__all__ = [
    "BBox",
    "CALIFORNIA",
    "CALIFORNIA_POLYGON",
    "INITIAL_CENTER",
    "MISSING_COORDINATES",
    "ServiceRegion",
    "is_in_region",
    "parse_bbox",
    "parse_finite",
    "parse_point",
]
