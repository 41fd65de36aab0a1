import pytest

from civiclens import db
from civiclens.geo.point import BoundingBox, SpatialPoint
from civiclens.services.query_engine import IssueFilters, SpatialQueryEngine
from civiclens.utils.exceptions import InvalidCoordinate, InvalidParameter

from tests.conftest import DHAKA, north_of


@pytest.fixture()
def engine(app):
    return SpatialQueryEngine.from_app()


@pytest.fixture()
def ring(make_issue):
    """Issues 1, 4 and 6 km north of Dhaka."""
    return [make_issue(north_of(DHAKA, km), title=f'{km} km away') for km in (1, 4, 6)]


class TestFindNearbyIssues:
    def test_radius_example(self, engine, ring):
        results = engine.find_nearby_issues(DHAKA, 5)

        assert [result.entity for result in results] == ring[:2]
        assert [result.distance_km for result in results] == [1.0, 4.0]

    def test_distance_fields(self, engine, ring):
        data = engine.find_nearby_issues(DHAKA, 5)[0].to_dict()
        assert data['distance_km'] == 1.0
        assert data['distance_meters'] == pytest.approx(1000, abs=0.1)
        assert data['title'] == '1 km away'

    def test_center_as_geojson_pair(self, engine, ring):
        results = engine.find_nearby_issues([DHAKA.longitude, DHAKA.latitude], 5)
        assert len(results) == 2

    def test_empty_result_is_not_an_error(self, engine):
        assert engine.find_nearby_issues(DHAKA, 5) == []

    def test_filters_are_applied(self, engine, make_issue, make_category, category):
        roads = make_category('transportation')
        make_issue(north_of(DHAKA, 1), status='resolved')
        urgent = make_issue(north_of(DHAKA, 2), priority='urgent')
        other = make_issue(north_of(DHAKA, 3), category_id=roads.category_id)

        open_only = engine.find_nearby_issues(DHAKA, 5, filters=IssueFilters(status='open'))
        assert [r.entity for r in open_only] == [urgent, other]

        by_priority = engine.find_nearby_issues(DHAKA, 5, filters=IssueFilters(priority='urgent'))
        assert [r.entity for r in by_priority] == [urgent]

        by_category = engine.find_nearby_issues(
            DHAKA, 5, filters=IssueFilters(category_id=str(roads.category_id))
        )
        assert [r.entity for r in by_category] == [other]

    def test_anonymous_callers_see_public_issues_only(self, engine, make_issue):
        public = make_issue(north_of(DHAKA, 1))
        make_issue(north_of(DHAKA, 2), is_public=False)

        assert [r.entity for r in engine.find_nearby_issues(DHAKA, 5)] == [public]

    def test_visibility_is_applied_before_the_limit(self, engine, make_issue):
        make_issue(north_of(DHAKA, 1), is_public=False)
        make_issue(north_of(DHAKA, 2), is_public=False)
        visible = make_issue(north_of(DHAKA, 3))

        results = engine.find_nearby_issues(DHAKA, 5, limit=1)
        assert [r.entity for r in results] == [visible]

    def test_custom_visibility_predicate(self, engine, make_issue):
        private = make_issue(north_of(DHAKA, 1), is_public=False)
        results = engine.find_nearby_issues(DHAKA, 5, visibility=lambda issue: True)
        assert [r.entity for r in results] == [private]

    def test_limit_is_clamped(self, engine, ring):
        assert len(engine.find_nearby_issues(DHAKA, 10, limit=0)) == 1
        assert len(engine.find_nearby_issues(DHAKA, 10, limit=10000)) == 3
        assert len(engine.find_nearby_issues(DHAKA, 10, limit='lots')) == 3

    @pytest.mark.parametrize('radius', [0, -1, 0.001, 101, 'far'])
    def test_radius_out_of_range_is_rejected(self, engine, radius):
        with pytest.raises(InvalidParameter):
            engine.find_nearby_issues(DHAKA, radius)

    def test_invalid_center_is_rejected(self, engine):
        with pytest.raises(InvalidCoordinate):
            engine.find_nearby_issues([200, 0], 5)

    def test_invalid_filter_is_rejected(self):
        with pytest.raises(InvalidParameter):
            IssueFilters(status='pending')
        with pytest.raises(InvalidParameter):
            IssueFilters(category_id='not-a-uuid')


class TestFindNearbyUsers:
    def test_excludes_caller_and_inactive(self, engine, make_user, citizen, neighbour):
        make_user('dormant@civiclens.app', north_of(DHAKA, 2), is_active=False)
        far = make_user('far@civiclens.app', north_of(DHAKA, 3))

        results = engine.find_nearby_users(DHAKA, 5, exclude_user_id=citizen.user_id)
        assert [r.entity for r in results] == [neighbour, far]

    def test_excluded_id_may_be_a_string(self, engine, citizen, neighbour):
        results = engine.find_nearby_users(DHAKA, 5, exclude_user_id=str(citizen.user_id))
        assert citizen not in [r.entity for r in results]

    def test_limit(self, engine, citizen, neighbour):
        assert len(engine.find_nearby_users(DHAKA, 5, limit=1)) == 1

    def test_moved_user_is_found_at_new_location(self, engine, citizen, admin):
        assert admin not in [r.entity for r in engine.find_nearby_users(DHAKA, 5)]

        admin.update_location(north_of(DHAKA, 2), address='Gulshan 2')

        results = engine.find_nearby_users(DHAKA, 5, exclude_user_id=citizen.user_id)
        assert [r.entity for r in results] == [admin]
        assert results[0].to_dict()['location']['address'] == 'Gulshan 2'


class TestFindIssuesInBounds:
    def test_only_issues_inside(self, engine, ring):
        box = BoundingBox(
            southwest=SpatialPoint(longitude=DHAKA.longitude - 0.01, latitude=DHAKA.latitude),
            northeast=SpatialPoint(longitude=DHAKA.longitude + 0.01, latitude=north_of(DHAKA, 5).latitude),
        )
        issues = engine.find_issues_in_bounds(box)
        assert set(issues) == set(ring[:2])
        for issue in issues:
            assert box.contains(issue.point)

    def test_filters_and_visibility(self, engine, make_issue):
        make_issue(north_of(DHAKA, 1), is_public=False)
        resolved = make_issue(north_of(DHAKA, 2), status='resolved')
        make_issue(north_of(DHAKA, 3))

        box = BoundingBox.from_corners(23.0, 90.0, 24.5, 91.0)
        issues = engine.find_issues_in_bounds(box, filters=IssueFilters(status='resolved'))
        assert issues == [resolved]

    def test_limit_is_clamped(self, engine, ring):
        box = BoundingBox.from_corners(23.0, 90.0, 24.5, 91.0)
        assert len(engine.find_issues_in_bounds(box, limit=2)) == 2
        assert len(engine.find_issues_in_bounds(box, limit=-5)) == 1


class TestDistanceBetween:
    def test_payload(self, engine):
        result = engine.distance_between(DHAKA, north_of(DHAKA, 2))
        assert result == {'distance_km': 2.0, 'distance_miles': 1.243}

    def test_no_storage_needed(self):
        engine = SpatialQueryEngine()
        assert engine.distance_between([0, 0], [0, 0])['distance_km'] == 0


def test_deleted_issue_disappears(engine, ring):
    db.session.delete(ring[0])
    db.session.commit()
    assert [r.entity for r in engine.find_nearby_issues(DHAKA, 5)] == [ring[1]]
