from civiclens.geo.point import SpatialPoint, BoundingBox, RadiusQuery
from civiclens.geo.distance import haversine_km, haversine_m, km_to_miles, distance_between

__all__ = [
    'SpatialPoint',
    'BoundingBox',
    'RadiusQuery',
    'haversine_km',
    'haversine_m',
    'km_to_miles',
    'distance_between',
]
