from flask import Blueprint
from flask_jwt_extended import jwt_required

from civiclens import limiter
from civiclens.services.stats import StatsAggregator
from civiclens.utils.error_handlers import create_success_response

categories_bp = Blueprint('categories', __name__)


@categories_bp.route('/stats/all', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def all_category_stats():
    """Status breakdown for every active category, busiest first."""
    stats = StatsAggregator.from_app().all_categories_stats()
    return create_success_response(data=stats, meta={'count': len(stats)})


@categories_bp.route('/<category_id>/stats', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def category_stats(category_id):
    """Status breakdown for one category. Refreshes its cached counters."""
    return create_success_response(data=StatsAggregator.from_app().category_stats(category_id))
