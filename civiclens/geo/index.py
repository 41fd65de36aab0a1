"""
Spatial index over located entities.

Any mapped model with ``latitude``/``longitude`` columns and a single-column
primary key can be queried. The index never caches entities: every call
re-issues a query against live storage, so inserts, moves and deletes are
visible on the next request.

Two backends:

``PostGISIndex``
    GiST expression indexes over ``ST_MakePoint(longitude, latitude)``;
    radius queries run ``ST_DWithin``/``ST_Distance`` on geography using the
    sphere, box queries run ``ST_Covers`` against an envelope.

``LatLngRangeIndex``
    Fallback for databases without PostGIS (SQLite in tests). A b-tree range
    over latitude/longitude narrows candidates to the bounding rectangle of
    the search circle, then distances are computed in Python with haversine.
"""

import logging
from math import asin, cos, degrees, pi, radians, sin

from flask import current_app
from geoalchemy2 import Geography
from sqlalchemy import DDL, cast, event, func, inspect, or_

from civiclens import db
from civiclens.geo.distance import EARTH_RADIUS_KM, haversine_m
from civiclens.geo.point import BoundingBox, SpatialPoint

logger = logging.getLogger(__name__)

SRID = 4326
POINT_GEOGRAPHY = Geography(geometry_type='POINT', srid=SRID)

# Padding (radians) so float rounding never drops a candidate on the rectangle edge
_EDGE_PADDING = 1e-9


def point_geometry(longitude, latitude):
    return func.ST_SetSRID(func.ST_MakePoint(longitude, latitude), SRID)


def point_geography(longitude, latitude):
    return cast(point_geometry(longitude, latitude), POINT_GEOGRAPHY)


def register_spatial_indexes(table):
    """Create GiST expression indexes for ``table`` when it is created on PostgreSQL."""
    expression = f'ST_SetSRID(ST_MakePoint(longitude, latitude), {SRID})'
    indexed = {
        'geom': expression,
        'geog': f'({expression})::geography(POINT,{SRID})',
    }
    for suffix, indexed_expression in indexed.items():
        event.listen(
            table,
            'after_create',
            DDL(
                f'CREATE INDEX IF NOT EXISTS ix_{table.name}_point_{suffix} '
                f'ON {table.name} USING GIST (({indexed_expression}))'
            ).execute_if(dialect='postgresql'),
        )


def _primary_key(model):
    return inspect(model).primary_key[0]


class SpatialIndex:
    """Common query plumbing for both backends."""

    name = 'abstract'

    def within_radius(self, model, center: SpatialPoint, radius_meters, criteria=(), exclude_id=None):
        """Yield ``(entity, distance_meters)`` ascending by distance."""
        raise NotImplementedError

    def within_box(self, model, box: BoundingBox, criteria=()):
        """Yield entities inside ``box`` in primary-key order."""
        raise NotImplementedError

    def _base_query(self, model, criteria=(), exclude_id=None):
        query = db.session.query(model).filter(
            model.latitude.isnot(None),
            model.longitude.isnot(None),
            *criteria
        )
        if exclude_id is not None:
            query = query.filter(_primary_key(model) != exclude_id)
        return query


class PostGISIndex(SpatialIndex):
    name = 'postgis'

    def radius_query(self, model, center, radius_meters, criteria=(), exclude_id=None):
        center_geography = point_geography(center.longitude, center.latitude)
        entity_geography = point_geography(model.longitude, model.latitude)
        # use_spheroid=false keeps distances on the same sphere as haversine
        distance = func.ST_Distance(entity_geography, center_geography, False).label('distance_meters')

        return self._base_query(model, criteria, exclude_id).filter(
            func.ST_DWithin(entity_geography, center_geography, radius_meters, False)
        ).add_columns(distance).order_by(distance, _primary_key(model))

    def box_query(self, model, box, criteria=()):
        envelope = func.ST_MakeEnvelope(
            box.southwest.longitude, box.southwest.latitude,
            box.northeast.longitude, box.northeast.latitude,
            SRID
        )
        return self._base_query(model, criteria).filter(
            func.ST_Covers(envelope, point_geometry(model.longitude, model.latitude))
        ).order_by(_primary_key(model))

    def within_radius(self, model, center, radius_meters, criteria=(), exclude_id=None):
        query = self.radius_query(model, center, radius_meters, criteria, exclude_id)
        for entity, distance_meters in query.yield_per(500):
            yield entity, float(distance_meters)

    def within_box(self, model, box, criteria=()):
        yield from self.box_query(model, box, criteria).yield_per(500)


def search_rectangle(center: SpatialPoint, radius_meters):
    """Latitude range and longitude ranges (degrees) enclosing the search circle.

    Returns ``(lat_range, lon_ranges)``; ``lon_ranges`` is None when the circle
    covers a pole, and holds two ranges when it crosses the antimeridian.
    """
    angular = radius_meters / (EARTH_RADIUS_KM * 1000) + _EDGE_PADDING
    lat = radians(center.latitude)
    lon = radians(center.longitude)
    min_lat, max_lat = lat - angular, lat + angular

    if min_lat <= -pi / 2 or max_lat >= pi / 2:
        lat_range = (degrees(max(min_lat, -pi / 2)), degrees(min(max_lat, pi / 2)))
        return lat_range, None

    delta_lon = asin(min(1.0, sin(angular) / cos(lat))) + _EDGE_PADDING
    min_lon, max_lon = lon - delta_lon, lon + delta_lon

    if min_lon < -pi:
        lon_ranges = [(min_lon + 2 * pi, pi), (-pi, max_lon)]
    elif max_lon > pi:
        lon_ranges = [(min_lon, pi), (-pi, max_lon - 2 * pi)]
    else:
        lon_ranges = [(min_lon, max_lon)]

    return (
        (degrees(min_lat), degrees(max_lat)),
        [(degrees(low), degrees(high)) for low, high in lon_ranges],
    )


class LatLngRangeIndex(SpatialIndex):
    name = 'fallback'

    def __init__(self):
        logger.warning(
            "PostGIS spatial index unavailable; using lat/lng range index with "
            "in-process haversine refinement. Radius queries cost O(candidates in "
            "bounding rectangle) and are not suitable for production load."
        )

    def within_radius(self, model, center, radius_meters, criteria=(), exclude_id=None):
        lat_range, lon_ranges = search_rectangle(center, radius_meters)

        query = self._base_query(model, criteria, exclude_id).filter(
            model.latitude.between(*lat_range)
        )
        if lon_ranges is not None:
            query = query.filter(or_(*[model.longitude.between(low, high) for low, high in lon_ranges]))

        pk = _primary_key(model).key
        matches = []
        for entity in query:
            if not SpatialPoint.is_valid(entity.latitude, entity.longitude):
                continue
            point = SpatialPoint(longitude=entity.longitude, latitude=entity.latitude)
            distance_meters = haversine_m(center, point)
            if distance_meters <= radius_meters:
                matches.append((distance_meters, str(getattr(entity, pk)), entity))

        matches.sort(key=lambda match: (match[0], match[1]))
        for distance_meters, _, entity in matches:
            yield entity, distance_meters

    def within_box(self, model, box, criteria=()):
        query = self._base_query(model, criteria).filter(
            model.latitude.between(box.southwest.latitude, box.northeast.latitude),
            model.longitude.between(box.southwest.longitude, box.northeast.longitude),
        ).order_by(_primary_key(model))

        yield from query


BACKENDS = {
    PostGISIndex.name: PostGISIndex,
    LatLngRangeIndex.name: LatLngRangeIndex,
}


def get_spatial_index() -> SpatialIndex:
    """Spatial index for the current app, built once per application."""
    index = current_app.extensions.get('civiclens_spatial_index')
    if index is not None:
        return index

    backend = current_app.config.get('SPATIAL_INDEX_BACKEND', 'auto')
    dialect = db.engine.dialect.name

    if backend == 'auto':
        backend = PostGISIndex.name if dialect == 'postgresql' else LatLngRangeIndex.name
    if backend == PostGISIndex.name and dialect != 'postgresql':
        raise RuntimeError(f"PostGIS spatial index requires PostgreSQL, not {dialect}")
    if backend not in BACKENDS:
        raise ValueError(f"Unknown spatial index backend: {backend}")

    index = BACKENDS[backend]()
    current_app.extensions['civiclens_spatial_index'] = index
    logger.info("Spatial index backend: %s", index.name)
    return index
