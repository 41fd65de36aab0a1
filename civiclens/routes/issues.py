from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required

from civiclens import limiter
from civiclens.services import interactions
from civiclens.services.stats import StatsAggregator
from civiclens.utils.auth import get_current_user, require_current_user
from civiclens.utils.error_handlers import create_error_response, create_success_response
from civiclens.utils.exceptions import PermissionDenied
from civiclens.utils.validators import parse_float_param, validate_coordinates, validate_date_range

issues_bp = Blueprint('issues', __name__)


def _visible_issue(issue_id, user):
    issue = interactions.get_issue(issue_id)
    if not issue.can_view(user):
        raise PermissionDenied("You do not have permission to access this issue")
    return issue


def _scope(aggregator):
    """Optional radius and creation-date scope from the query string."""
    spatial = None
    if request.args.get('latitude') not in (None, '') or request.args.get('longitude') not in (None, ''):
        center = validate_coordinates(request.args.get('latitude'), request.args.get('longitude'))
        radius_km = parse_float_param(
            request.args.get('radius'), current_app.config['DEFAULT_SEARCH_RADIUS_KM']
        )
        spatial = aggregator.engine.radius_query(center, radius_km)

    temporal = validate_date_range(request.args.get('startDate'), request.args.get('endDate'))
    if temporal == (None, None):
        temporal = None
    return spatial, temporal


@issues_bp.route('/stats', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def issue_stats():
    """Issue breakdown, optionally scoped to a radius and date range."""
    aggregator = StatsAggregator.from_app()
    spatial, temporal = _scope(aggregator)
    return create_success_response(data=aggregator.issue_stats(spatial=spatial, temporal=temporal))


@issues_bp.route('/timeline', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def issue_timeline():
    """Issue counts by creation day or month."""
    aggregator = StatsAggregator.from_app()
    spatial, temporal = _scope(aggregator)
    bucket = request.args.get('bucket', 'day')
    timeline = aggregator.issue_timeline(spatial=spatial, temporal=temporal, bucket=bucket)
    return create_success_response(data=timeline, meta={'bucket': bucket, 'count': len(timeline)})


@issues_bp.route('/<issue_id>', methods=['GET'])
@jwt_required(optional=True)
def get_issue(issue_id):
    """Issue detail. Every fetch counts one view."""
    user = get_current_user()
    issue = _visible_issue(issue_id, user)

    interactions.record_view(issue)

    data = issue.to_dict(include_comments=True, viewer=user)
    if user is not None:
        vote = issue.vote_of(user.user_id)
        data['user_vote'] = vote.vote_type if vote else None
        data['is_following'] = issue.follower_entry(user.user_id) is not None

    response, status_code = create_success_response(data=data)
    response.headers['Cache-Control'] = 'no-store'
    return response, status_code


@issues_bp.route('/<issue_id>/vote', methods=['POST'])
@jwt_required()
@limiter.limit("60 per minute")
def vote(issue_id):
    """Upvote or downvote; repeating the same vote withdraws it."""
    user = require_current_user()
    data = request.get_json(silent=True)
    if not data:
        return create_error_response('Invalid Request', 'Request body is required', 400)

    _visible_issue(issue_id, user)
    issue, vote_type = interactions.toggle_vote(issue_id, user.user_id, data.get('vote_type'))

    return create_success_response(
        data={'vote_type': vote_type, 'stats': issue.stats},
        message='Vote recorded' if vote_type else 'Vote removed'
    )


@issues_bp.route('/<issue_id>/vote', methods=['DELETE'])
@jwt_required()
@limiter.limit("60 per minute")
def remove_vote(issue_id):
    user = require_current_user()
    _visible_issue(issue_id, user)
    issue, removed = interactions.remove_vote(issue_id, user.user_id)

    if not removed:
        return create_error_response('Not Voted', 'You have not voted on this issue', 400)

    return create_success_response(data={'stats': issue.stats}, message='Vote removed')


@issues_bp.route('/<issue_id>/vote/status', methods=['GET'])
@jwt_required()
def vote_status(issue_id):
    user = require_current_user()
    _visible_issue(issue_id, user)
    return create_success_response(data=interactions.vote_status(issue_id, user.user_id))


@issues_bp.route('/<issue_id>/follow', methods=['POST'])
@jwt_required()
@limiter.limit("60 per minute")
def follow(issue_id):
    """Follow or unfollow an issue."""
    user = require_current_user()
    _visible_issue(issue_id, user)
    issue, following = interactions.toggle_follow(issue_id, user.user_id)

    return create_success_response(
        data={'is_following': following, 'follower_count': issue.stats_follower_count},
        message='Issue followed' if following else 'Issue unfollowed'
    )


@issues_bp.route('/<issue_id>/follow/status', methods=['GET'])
@jwt_required()
def follow_status(issue_id):
    user = require_current_user()
    _visible_issue(issue_id, user)
    return create_success_response(data=interactions.follow_status(issue_id, user.user_id))


@issues_bp.route('/<issue_id>/comments', methods=['POST'])
@jwt_required()
@limiter.limit("30 per minute")
def add_comment(issue_id):
    """Comment on an issue. Internal comments are limited to staff."""
    user = require_current_user()
    data = request.get_json(silent=True)
    if not data:
        return create_error_response('Invalid Request', 'Request body is required', 400)

    _visible_issue(issue_id, user)
    is_internal = bool(data.get('is_internal')) and user.role in ('authority', 'admin')
    issue, comment = interactions.add_comment(issue_id, user.user_id, data.get('text'), is_internal)

    return create_success_response(
        data={'comment': comment.to_dict(), 'stats': issue.stats},
        message='Comment added successfully',
        status_code=201
    )


@issues_bp.route('/<issue_id>/comments/<comment_id>', methods=['DELETE'])
@jwt_required()
def delete_comment(issue_id, comment_id):
    user = require_current_user()
    _visible_issue(issue_id, user)
    issue = interactions.delete_comment(issue_id, comment_id, user)
    return create_success_response(data={'stats': issue.stats}, message='Comment deleted successfully')
