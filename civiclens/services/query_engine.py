"""
Radius, bounding-box and distance queries over users and issues.

Attribute filters (status, priority, category) are pushed down into the
spatial query. Visibility is not: the caller hands in a predicate from the
authorization layer and it is applied to each spatial match before the
limit is counted.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from flask import current_app

from civiclens.geo.distance import distance_between
from civiclens.geo.index import get_spatial_index
from civiclens.geo.point import BoundingBox, RadiusQuery, SpatialPoint
from civiclens.models.issue import Issue
from civiclens.models.user import User
from civiclens.utils.validators import (
    clamp_limit, validate_optional_uuid, validate_priority, validate_radius_km, validate_status
)

logger = logging.getLogger(__name__)

Visibility = Callable[[Issue], bool]


def public_only(issue: Issue) -> bool:
    """Visibility for unauthenticated callers."""
    return bool(issue.is_public)


@dataclass(frozen=True)
class IssueFilters:
    status: Optional[str] = None
    priority: Optional[str] = None
    category_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        object.__setattr__(self, 'status', validate_status(self.status))
        object.__setattr__(self, 'priority', validate_priority(self.priority))
        object.__setattr__(self, 'category_id', validate_optional_uuid(self.category_id, 'Category ID'))

    def criteria(self):
        criteria = []
        if self.status:
            criteria.append(Issue.status == self.status)
        if self.priority:
            criteria.append(Issue.priority == self.priority)
        if self.category_id:
            criteria.append(Issue.category_id == self.category_id)
        return criteria

    def to_dict(self):
        return {
            'status': self.status,
            'priority': self.priority,
            'category': str(self.category_id) if self.category_id else None,
        }


@dataclass
class Located:
    """A spatial match with its distance from the query center."""

    entity: object
    distance_meters: float = field(default=0.0)

    @property
    def distance_km(self):
        return round(self.distance_meters / 1000, 3)

    def to_dict(self):
        data = self.entity.to_dict()
        data['distance_meters'] = round(self.distance_meters, 1)
        data['distance_km'] = self.distance_km
        return data


def as_point(value) -> SpatialPoint:
    if isinstance(value, SpatialPoint):
        return value
    return SpatialPoint.from_coordinates(value)


class SpatialQueryEngine:
    """Read-only query modes over the spatial index."""

    def __init__(self, index=None, min_radius_km=0.01, max_radius_km=100,
                 users_limit=(1, 200, 50), issues_limit=(1, 500, 50), bounds_limit=(1, 2000, 500)):
        self.index = index
        self.min_radius_km = min_radius_km
        self.max_radius_km = max_radius_km
        self.users_limit = users_limit
        self.issues_limit = issues_limit
        self.bounds_limit = bounds_limit

    @classmethod
    def from_app(cls, app=None):
        app = app or current_app
        return cls(
            index=get_spatial_index(),
            min_radius_km=app.config['MIN_SEARCH_RADIUS_KM'],
            max_radius_km=app.config['MAX_SEARCH_RADIUS_KM'],
            users_limit=app.config['NEARBY_USERS_LIMIT'],
            issues_limit=app.config['NEARBY_ISSUES_LIMIT'],
            bounds_limit=app.config['BOUNDS_LIMIT'],
        )

    @property
    def spatial_index(self):
        if self.index is None:
            self.index = get_spatial_index()
        return self.index

    def radius_query(self, center, radius_km, limit=None) -> RadiusQuery:
        """Validate a radius in km and convert it to a metre-based query."""
        radius_km = validate_radius_km(radius_km, self.min_radius_km, self.max_radius_km)
        return RadiusQuery.from_km(as_point(center), radius_km, limit=limit)

    def issues_within(self, query: RadiusQuery, filters: Optional[IssueFilters] = None):
        """All issues within ``query`` ordered by distance; no visibility, no limit."""
        criteria = filters.criteria() if filters else ()
        return self.spatial_index.within_radius(Issue, query.center, query.radius_meters, criteria=criteria)

    def find_nearby_users(self, center, radius_km, limit=None, exclude_user_id=None):
        """Active users within ``radius_km`` of ``center``, nearest first, never the caller."""
        limit = clamp_limit(limit, self.users_limit)
        query = self.radius_query(center, radius_km, limit)
        exclude_user_id = validate_optional_uuid(exclude_user_id, 'User ID')

        logger.debug(
            "Nearby users: center=%s radius_m=%s limit=%s",
            query.center.coordinates, query.radius_meters, limit
        )

        results = []
        matches = self.spatial_index.within_radius(
            User, query.center, query.radius_meters,
            criteria=[User.is_active.is_(True)],
            exclude_id=exclude_user_id,
        )
        for user, distance_meters in matches:
            results.append(Located(user, distance_meters))
            if len(results) >= limit:
                break

        logger.info("Nearby users found: %d", len(results))
        return results

    def find_nearby_issues(self, center, radius_km, filters: Optional[IssueFilters] = None,
                           visibility: Optional[Visibility] = None, limit=None):
        """Issues within ``radius_km`` matching ``filters`` and ``visibility``, nearest first."""
        limit = clamp_limit(limit, self.issues_limit)
        query = self.radius_query(center, radius_km, limit)
        visible = visibility or public_only

        logger.debug(
            "Nearby issues: center=%s radius_m=%s filters=%s limit=%s",
            query.center.coordinates, query.radius_meters, filters, limit
        )

        results = []
        for issue, distance_meters in self.issues_within(query, filters):
            if not visible(issue):
                continue
            results.append(Located(issue, distance_meters))
            if len(results) >= limit:
                break

        logger.info("Nearby issues found: %d", len(results))
        return results

    def find_issues_in_bounds(self, box: BoundingBox, filters: Optional[IssueFilters] = None,
                              visibility: Optional[Visibility] = None, limit=None):
        """Issues inside ``box`` in storage order; no distance field."""
        limit = clamp_limit(limit, self.bounds_limit)
        visible = visibility or public_only
        criteria = filters.criteria() if filters else ()

        logger.debug("Issues in bounds: box=%s filters=%s limit=%s", box.to_dict(), filters, limit)

        results = []
        for issue in self.spatial_index.within_box(Issue, box, criteria=criteria):
            if not visible(issue):
                continue
            results.append(issue)
            if len(results) >= limit:
                break

        logger.info("Issues in bounds found: %d", len(results))
        return results

    def distance_between(self, point_a, point_b):
        return distance_between(as_point(point_a), as_point(point_b))
