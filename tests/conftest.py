"""
Shared fixtures for the CivicLens tests.

Tests run against in-memory SQLite with the lat/lng range spatial index, so
no PostgreSQL/PostGIS or Redis is needed.
"""

import math

import pytest
from flask_jwt_extended import create_access_token

from civiclens import create_app, db
from civiclens.geo.distance import EARTH_RADIUS_KM
from civiclens.geo.point import SpatialPoint
from civiclens.models import Category, Issue, User

DHAKA = SpatialPoint.from_lat_lng(23.8103, 90.4125)


def north_of(point, km):
    """Point ``km`` due north of ``point``; haversine distance is exactly ``km``."""
    return SpatialPoint(
        longitude=point.longitude,
        latitude=point.latitude + math.degrees(km / EARTH_RADIUS_KM),
    )


@pytest.fixture()
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    def _make(email, point=None, **kwargs):
        user = User(kwargs.pop('name', email.split('@')[0].title()), email, **kwargs)
        if point is not None:
            user.latitude = point.latitude
            user.longitude = point.longitude
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def citizen(make_user):
    return make_user('citizen@civiclens.app', DHAKA)


@pytest.fixture()
def neighbour(make_user):
    return make_user('neighbour@civiclens.app', north_of(DHAKA, 1))


@pytest.fixture()
def admin(make_user):
    return make_user('admin@civiclens.app', role='admin')


@pytest.fixture()
def make_category(app):
    def _make(name, **kwargs):
        category = Category(name, kwargs.pop('display_name', name.title()), **kwargs)
        db.session.add(category)
        db.session.commit()
        return category
    return _make


@pytest.fixture()
def category(make_category):
    return make_category('infrastructure', icon='🏗️', color='#3b82f6')


@pytest.fixture()
def make_issue(citizen, category):
    def _make(point, title='Pothole', **kwargs):
        issue = Issue(
            title,
            f'{title} reported for testing',
            kwargs.pop('category_id', category.category_id),
            kwargs.pop('reported_by_id', citizen.user_id),
            point,
            **kwargs
        )
        db.session.add(issue)
        db.session.commit()
        return issue
    return _make


@pytest.fixture()
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.user_id))
        return {'Authorization': f'Bearer {token}'}
    return _headers
