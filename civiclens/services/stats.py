"""
Grouped counts over issues, optionally scoped to a radius and a time window.

Everything here is read-only except :meth:`StatsAggregator.category_stats`,
which refreshes the cached ``issue_count``/``resolved_count`` columns on the
category row.
"""

import logging
from collections import Counter
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from civiclens import db
from civiclens.geo.point import RadiusQuery
from civiclens.models.category import Category
from civiclens.models.issue import PRIORITIES, STATUSES, Issue
from civiclens.models.user import User
from civiclens.services.query_engine import SpatialQueryEngine
from civiclens.utils.exceptions import InvalidParameter, NotFound
from civiclens.utils.validators import validate_uuid

logger = logging.getLogger(__name__)

TOP_CATEGORIES = 10
TIMELINE_BUCKETS = {
    'day': '%Y-%m-%d',
    'month': '%Y-%m',
}


def _status_key(status):
    return status.replace('-', '_')


class StatsAggregator:
    def __init__(self, engine: Optional[SpatialQueryEngine] = None):
        self.engine = engine or SpatialQueryEngine()

    @classmethod
    def from_app(cls, app=None):
        return cls(engine=SpatialQueryEngine.from_app(app))

    def scope_criteria(self, spatial: Optional[RadiusQuery] = None, temporal=None):
        """SQL criteria restricting issues to ``spatial`` and ``temporal`` scope."""
        criteria = []
        if temporal:
            start, end = temporal
            if start is not None:
                criteria.append(Issue.created_at >= start)
            if end is not None:
                criteria.append(Issue.created_at <= end)

        if spatial is not None:
            issue_ids = [issue.issue_id for issue, _ in self.engine.issues_within(spatial)]
            criteria.append(Issue.issue_id.in_(issue_ids))

        return criteria

    def _grouped_counts(self, column, criteria, keys):
        counts = dict.fromkeys(keys, 0)
        rows = db.session.query(column, func.count(Issue.issue_id)).filter(*criteria).group_by(column)
        for key, count in rows:
            counts[key] = count
        return counts

    def _top_categories(self, criteria):
        count = func.count(Issue.issue_id).label('count')
        rows = (
            db.session.query(Issue.category_id, count)
            .filter(*criteria)
            .group_by(Issue.category_id)
            .order_by(count.desc(), Issue.category_id)
            .limit(TOP_CATEGORIES)
            .all()
        )
        if not rows:
            return []

        categories = {
            category.category_id: category
            for category in Category.query.filter(Category.category_id.in_([row[0] for row in rows]))
        }
        top = []
        for category_id, total in rows:
            category = categories.get(category_id)
            entry = {'category_id': str(category_id), 'count': total}
            if category is not None:
                entry.update({
                    'name': category.name,
                    'display_name': category.display_name,
                    'icon': category.icon,
                    'color': category.color,
                })
            top.append(entry)
        return top

    def issue_stats(self, spatial: Optional[RadiusQuery] = None, temporal=None):
        """Totals by status, priority and category plus engagement averages."""
        criteria = self.scope_criteria(spatial, temporal)

        total, avg_views, avg_upvotes = db.session.query(
            func.count(Issue.issue_id),
            func.avg(Issue.views),
            func.avg(Issue.stats_upvotes),
        ).filter(*criteria).one()

        return {
            'total': total,
            'per_status': self._grouped_counts(Issue.status, criteria, STATUSES),
            'per_priority': self._grouped_counts(Issue.priority, criteria, PRIORITIES),
            'per_category': self._top_categories(criteria),
            'avg_views': round(float(avg_views or 0), 2),
            'avg_upvotes': round(float(avg_upvotes or 0), 2),
        }

    def category_stats(self, category_id):
        """Status breakdown for one category; refreshes its cached counters."""
        category = db.session.get(Category, validate_uuid(category_id, 'Category ID'))
        if category is None:
            raise NotFound("Category not found")

        counts = self._grouped_counts(Issue.status, [Issue.category_id == category.category_id], STATUSES)
        statistics = {'total': sum(counts.values())}
        statistics.update({_status_key(status): count for status, count in counts.items()})

        category.issue_count = statistics['total']
        category.resolved_count = statistics['resolved'] + statistics['closed']
        result = {'category': category.to_dict(), 'statistics': statistics}

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to refresh cached counters for category %s", category_id)

        return result

    def location_stats(self, center, radius_km):
        """Issue and user activity around a point."""
        query = self.engine.radius_query(center, radius_km)
        issues = self.issue_stats(spatial=query)

        active_users = sum(
            1 for _ in self.engine.spatial_index.within_radius(
                User, query.center, query.radius_meters, criteria=[User.is_active.is_(True)]
            )
        )

        return {
            'location': {
                'center': query.center.to_geojson(),
                'radius_km': query.radius_km,
            },
            'issues': issues,
            'users': {'active_nearby': active_users},
            'categories': issues['per_category'],
        }

    def all_categories_stats(self):
        """Per-category status breakdown for every active category, busiest first."""
        rows = db.session.query(
            Issue.category_id, Issue.status, func.count(Issue.issue_id)
        ).group_by(Issue.category_id, Issue.status)

        by_category = {}
        for category_id, status, count in rows:
            by_category.setdefault(category_id, Counter())[status] = count

        stats = []
        for category in Category.query.filter(Category.is_active.is_(True)):
            counts = by_category.get(category.category_id, Counter())
            entry = {'category': category.to_summary(), 'total': sum(counts.values())}
            entry.update({_status_key(status): counts.get(status, 0) for status in STATUSES})
            stats.append(entry)

        stats.sort(key=lambda entry: (-entry['total'], entry['category']['name']))
        return stats

    def issue_timeline(self, spatial: Optional[RadiusQuery] = None, temporal=None, bucket='day'):
        """Issue counts grouped by creation day or month, oldest first."""
        if bucket not in TIMELINE_BUCKETS:
            raise InvalidParameter(f"Invalid bucket. Must be one of: {', '.join(TIMELINE_BUCKETS)}")

        date_format = TIMELINE_BUCKETS[bucket]
        criteria = self.scope_criteria(spatial, temporal)
        counts = Counter(
            created_at.strftime(date_format)
            for (created_at,) in db.session.query(Issue.created_at).filter(*criteria)
        )
        return [{'bucket': key, 'count': counts[key]} for key in sorted(counts)]
