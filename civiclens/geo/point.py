"""
Request-scoped spatial value objects.

Points follow the GeoJSON convention when built from an ordered pair:
``[longitude, latitude]``. Nothing here clamps; bad input raises.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from civiclens.utils.exceptions import InvalidCoordinate, InvalidParameter


def _coerce(value, label: str) -> float:
    if value is None or value == '':
        raise InvalidCoordinate(f"{label} is required")
    if isinstance(value, bool):
        raise InvalidCoordinate(f"{label} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"{label} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise InvalidCoordinate(f"{label} must be a finite number")
    return number


@dataclass(frozen=True)
class SpatialPoint:
    """A (longitude, latitude) pair in decimal degrees, WGS84."""

    longitude: float
    latitude: float

    def __post_init__(self):
        longitude = _coerce(self.longitude, 'Longitude')
        latitude = _coerce(self.latitude, 'Latitude')

        if not (-90 <= latitude <= 90):
            raise InvalidCoordinate("Latitude must be between -90 and 90 degrees")
        if not (-180 <= longitude <= 180):
            raise InvalidCoordinate("Longitude must be between -180 and 180 degrees")

        object.__setattr__(self, 'longitude', longitude)
        object.__setattr__(self, 'latitude', latitude)

    @classmethod
    def from_coordinates(cls, coordinates: Sequence) -> 'SpatialPoint':
        """Build from a GeoJSON ``[longitude, latitude]`` pair."""
        if isinstance(coordinates, (str, bytes)) or not isinstance(coordinates, Sequence):
            raise InvalidCoordinate("Coordinates must be a [longitude, latitude] pair")
        if len(coordinates) != 2:
            raise InvalidCoordinate("Coordinates must contain exactly longitude and latitude")
        return cls(longitude=coordinates[0], latitude=coordinates[1])

    @classmethod
    def from_lat_lng(cls, latitude, longitude) -> 'SpatialPoint':
        return cls(longitude=longitude, latitude=latitude)

    @classmethod
    def is_valid(cls, latitude, longitude) -> bool:
        try:
            cls(longitude=longitude, latitude=latitude)
        except InvalidCoordinate:
            return False
        return True

    @property
    def coordinates(self):
        return [self.longitude, self.latitude]

    def to_geojson(self):
        return {'type': 'Point', 'coordinates': self.coordinates}

    def to_dict(self):
        return {'latitude': self.latitude, 'longitude': self.longitude}


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lon rectangle.

    Boxes crossing the antimeridian (``southwest.longitude > northeast.longitude``)
    are rejected rather than answered incorrectly.
    """

    southwest: SpatialPoint
    northeast: SpatialPoint

    def __post_init__(self):
        if self.southwest.latitude > self.northeast.latitude:
            raise InvalidParameter("Southwest latitude must not exceed northeast latitude")
        if self.southwest.longitude > self.northeast.longitude:
            raise InvalidParameter(
                "Bounding boxes crossing the antimeridian are not supported; "
                "split the viewport into two boxes"
            )

    @classmethod
    def from_corners(cls, sw_lat, sw_lng, ne_lat, ne_lng) -> 'BoundingBox':
        return cls(
            southwest=SpatialPoint(longitude=sw_lng, latitude=sw_lat),
            northeast=SpatialPoint(longitude=ne_lng, latitude=ne_lat),
        )

    def contains(self, point: SpatialPoint) -> bool:
        return (
            self.southwest.latitude <= point.latitude <= self.northeast.latitude
            and self.southwest.longitude <= point.longitude <= self.northeast.longitude
        )

    def to_dict(self):
        return {
            'southwest': self.southwest.to_dict(),
            'northeast': self.northeast.to_dict(),
        }


@dataclass(frozen=True)
class RadiusQuery:
    center: SpatialPoint
    radius_meters: float
    limit: Optional[int] = None

    def __post_init__(self):
        try:
            radius = float(self.radius_meters)
        except (TypeError, ValueError):
            raise InvalidParameter("Radius must be a valid number")
        if math.isnan(radius) or radius <= 0:
            raise InvalidParameter("Radius must be greater than zero")
        object.__setattr__(self, 'radius_meters', radius)

        if self.limit is not None:
            try:
                limit = int(self.limit)
            except (TypeError, ValueError):
                raise InvalidParameter("Limit must be a valid integer")
            if isinstance(self.limit, bool) or limit < 1:
                raise InvalidParameter("Limit must be at least 1")

    @classmethod
    def from_km(cls, center: SpatialPoint, radius_km, limit=None) -> 'RadiusQuery':
        """Kilometres are converted to whole metres before reaching the index."""
        try:
            radius_km = float(radius_km)
        except (TypeError, ValueError):
            raise InvalidParameter("Radius must be a valid number")
        return cls(center=center, radius_meters=round(radius_km * 1000), limit=limit)

    @property
    def radius_km(self) -> float:
        return self.radius_meters / 1000
