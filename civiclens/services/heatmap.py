import logging
from typing import Optional

from flask import current_app

from civiclens import db
from civiclens.geo.index import get_spatial_index
from civiclens.geo.point import BoundingBox, SpatialPoint
from civiclens.models.issue import Issue
from civiclens.services.query_engine import IssueFilters, Visibility, public_only
from civiclens.utils.validators import clamp_limit

logger = logging.getLogger(__name__)

PRIORITY_WEIGHTS = {
    'urgent': 3,
    'high': 2,
}


def heatmap_weight(priority) -> int:
    return PRIORITY_WEIGHTS.get(priority, 1)


class HeatmapExtractor:
    """Weighted point samples for the map heat layer."""

    def __init__(self, index=None, limit_bounds=(1, 2000, 500)):
        self.index = index
        self.limit_bounds = limit_bounds

    @classmethod
    def from_app(cls, app=None):
        app = app or current_app
        return cls(index=get_spatial_index(), limit_bounds=app.config['HEATMAP_LIMIT'])

    def _candidates(self, box: Optional[BoundingBox], criteria):
        if box is not None:
            index = self.index or get_spatial_index()
            return index.within_box(Issue, box, criteria=criteria)
        return db.session.query(Issue).filter(*criteria).order_by(Issue.issue_id)

    def extract_heatmap(self, box: Optional[BoundingBox] = None, filters: Optional[IssueFilters] = None,
                        visibility: Optional[Visibility] = None, limit=None):
        """Return ``[{lat, lng, weight, status}]``; order carries no meaning."""
        limit = clamp_limit(limit, self.limit_bounds)
        visible = visibility or public_only
        criteria = filters.criteria() if filters else ()

        points = []
        for issue in self._candidates(box, criteria):
            if not SpatialPoint.is_valid(issue.latitude, issue.longitude):
                continue
            if not visible(issue):
                continue
            points.append({
                'lat': issue.latitude,
                'lng': issue.longitude,
                'weight': heatmap_weight(issue.priority),
                'status': issue.status,
            })
            if len(points) >= limit:
                break

        logger.info("Heatmap points: %d", len(points))
        return points
