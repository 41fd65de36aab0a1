from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required

from civiclens import limiter
from civiclens.services.heatmap import HeatmapExtractor
from civiclens.services.query_engine import IssueFilters, SpatialQueryEngine
from civiclens.services.stats import StatsAggregator
from civiclens.utils.auth import get_current_user, require_current_user, visibility_for
from civiclens.utils.error_handlers import create_success_response
from civiclens.utils.validators import clamp_limit, parse_float_param, validate_bounds, validate_coordinates

location_bp = Blueprint('location', __name__)


def _center_and_radius():
    center = validate_coordinates(request.args.get('latitude'), request.args.get('longitude'))
    radius_km = parse_float_param(
        request.args.get('radius'), current_app.config['DEFAULT_SEARCH_RADIUS_KM']
    )
    return center, radius_km


def _filters():
    return IssueFilters(
        status=request.args.get('status'),
        priority=request.args.get('priority'),
        category_id=request.args.get('category'),
    )


def _effective_limit(bounds):
    return clamp_limit(request.args.get('limit'), bounds)


def _bounds(required):
    return validate_bounds(
        request.args.get('swLat'), request.args.get('swLng'),
        request.args.get('neLat'), request.args.get('neLng'),
        required=required,
    )


@location_bp.route('/users/nearby', methods=['GET'])
@jwt_required()
@limiter.limit("100 per hour")
def nearby_users():
    """Active users near a point, excluding the caller."""
    user = require_current_user()
    center, radius_km = _center_and_radius()
    engine = SpatialQueryEngine.from_app()

    current_app.logger.debug(f'Nearby users: {center.to_dict()} radius={radius_km}km')
    results = engine.find_nearby_users(
        center, radius_km, limit=request.args.get('limit'), exclude_user_id=user.user_id
    )

    return create_success_response(
        data=[result.to_dict() for result in results],
        meta={
            'count': len(results),
            'center': center.to_dict(),
            'radius_km': radius_km,
            'unit': 'km',
            'limit': _effective_limit(engine.users_limit),
        }
    )


@location_bp.route('/issues/nearby', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("200 per hour")
def nearby_issues():
    """Issues near a point, nearest first."""
    center, radius_km = _center_and_radius()
    filters = _filters()
    engine = SpatialQueryEngine.from_app()

    results = engine.find_nearby_issues(
        center, radius_km,
        filters=filters,
        visibility=visibility_for(get_current_user()),
        limit=request.args.get('limit'),
    )

    return create_success_response(
        data=[result.to_dict() for result in results],
        meta={
            'count': len(results),
            'center': center.to_dict(),
            'radius_km': radius_km,
            'radius_meters': round(radius_km * 1000),
            'unit': 'km',
            'limit': _effective_limit(engine.issues_limit),
            'filters': filters.to_dict(),
        }
    )


@location_bp.route('/issues/bounds', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("300 per hour")
def issues_in_bounds():
    """Issues inside the map viewport."""
    box = _bounds(required=True)
    filters = _filters()
    engine = SpatialQueryEngine.from_app()

    issues = engine.find_issues_in_bounds(
        box,
        filters=filters,
        visibility=visibility_for(get_current_user()),
        limit=request.args.get('limit'),
    )

    return create_success_response(
        data=[issue.to_summary() for issue in issues],
        meta={
            'count': len(issues),
            'bounds': box.to_dict(),
            'limit': _effective_limit(engine.bounds_limit),
            'filters': filters.to_dict(),
        }
    )


@location_bp.route('/heatmap', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("300 per hour")
def heatmap():
    """Weighted issue points, optionally inside a viewport."""
    box = _bounds(required=False)
    filters = IssueFilters(status=request.args.get('status'), category_id=request.args.get('category'))

    points = HeatmapExtractor.from_app().extract_heatmap(
        box=box,
        filters=filters,
        visibility=visibility_for(get_current_user()),
        limit=request.args.get('limit'),
    )

    return create_success_response(
        data=points,
        meta={
            'count': len(points),
            'bounds': box.to_dict() if box else None,
            'filters': filters.to_dict(),
        }
    )


@location_bp.route('/stats', methods=['GET'])
@jwt_required(optional=True)
@limiter.limit("100 per hour")
def location_stats():
    """Issue, user and category activity around a point."""
    center, radius_km = _center_and_radius()
    stats = StatsAggregator.from_app().location_stats(center, radius_km)
    return create_success_response(data=stats)


@location_bp.route('/distance', methods=['GET'])
def distance():
    """Great-circle distance between two points."""
    origin = validate_coordinates(request.args.get('lat1'), request.args.get('lng1'))
    destination = validate_coordinates(request.args.get('lat2'), request.args.get('lng2'))

    data = SpatialQueryEngine().distance_between(origin, destination)
    data.update({
        'unit': 'km',
        'from': origin.to_dict(),
        'to': destination.to_dict(),
    })
    return create_success_response(data=data)


@location_bp.route('/reverse-geocode', methods=['GET'])
def reverse_geocode():
    """Address lookup placeholder until a geocoding provider is configured."""
    point = validate_coordinates(request.args.get('latitude'), request.args.get('longitude'))
    return create_success_response(
        data={
            'latitude': point.latitude,
            'longitude': point.longitude,
            'address': 'Geocoding service not configured',
            'city': None,
            'state': None,
            'country': None,
            'postal_code': None,
        },
        message='Geocoding service not configured'
    )
