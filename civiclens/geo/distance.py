from math import atan2, cos, radians, sin, sqrt

from civiclens.geo.point import SpatialPoint

EARTH_RADIUS_KM = 6371
KM_TO_MILES = 0.621371


def haversine_km(a: SpatialPoint, b: SpatialPoint) -> float:
    """Great-circle distance in kilometres between two points."""
    d_lat = radians(b.latitude - a.latitude)
    d_lon = radians(b.longitude - a.longitude)

    h = (
        sin(d_lat / 2) ** 2
        + cos(radians(a.latitude)) * cos(radians(b.latitude)) * sin(d_lon / 2) ** 2
    )
    # Floating point drift can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(h), sqrt(1 - h))


def haversine_m(a: SpatialPoint, b: SpatialPoint) -> float:
    return haversine_km(a, b) * 1000


def km_to_miles(km: float) -> float:
    return round(km * KM_TO_MILES, 3)


def distance_between(a: SpatialPoint, b: SpatialPoint):
    """Distance payload used by the stand-alone distance endpoint."""
    distance_km = haversine_km(a, b)
    return {
        'distance_km': round(distance_km, 3),
        'distance_miles': km_to_miles(distance_km),
    }
