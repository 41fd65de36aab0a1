import pytest

from civiclens import db
from civiclens.models import Category

from tests.conftest import DHAKA, north_of


def nearby_params(**extra):
    params = {'latitude': DHAKA.latitude, 'longitude': DHAKA.longitude}
    params.update(extra)
    return params


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'


class TestLocationRoutes:
    def test_nearby_issues(self, client, make_issue):
        for km in (1, 4, 6):
            make_issue(north_of(DHAKA, km), title=f'{km} km')

        response = client.get('/api/location/issues/nearby', query_string=nearby_params(radius=5))
        body = response.get_json()

        assert response.status_code == 200
        assert body['success'] is True
        assert [issue['title'] for issue in body['data']] == ['1 km', '4 km']
        assert body['data'][0]['distance_km'] == 1.0
        assert body['meta']['radius_meters'] == 5000
        assert body['meta']['limit'] == 50

    def test_private_issue_visible_to_reporter_only(self, client, make_issue, citizen, neighbour, auth_headers):
        make_issue(north_of(DHAKA, 1), is_public=False)
        url = '/api/location/issues/nearby'

        assert client.get(url, query_string=nearby_params()).get_json()['data'] == []
        assert client.get(url, query_string=nearby_params(), headers=auth_headers(neighbour)).get_json()['data'] == []
        assert len(client.get(url, query_string=nearby_params(), headers=auth_headers(citizen)).get_json()['data']) == 1

    def test_invalid_coordinate(self, client):
        response = client.get('/api/location/issues/nearby', query_string={'latitude': 95, 'longitude': 90})
        body = response.get_json()
        assert response.status_code == 400
        assert body['error'] == 'Invalid Coordinate'
        assert body['status_code'] == 400

    def test_missing_coordinate(self, client):
        response = client.get('/api/location/issues/nearby', query_string={'latitude': 23.8})
        assert response.status_code == 400

    def test_radius_out_of_range(self, client):
        response = client.get('/api/location/issues/nearby', query_string=nearby_params(radius=500))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid Parameter'

    def test_invalid_status_filter(self, client):
        response = client.get('/api/location/issues/nearby', query_string=nearby_params(status='pending'))
        assert response.status_code == 400

    def test_nearby_users_requires_auth(self, client):
        response = client.get('/api/location/users/nearby', query_string=nearby_params())
        assert response.status_code == 401

    def test_nearby_users_excludes_caller(self, client, citizen, neighbour, auth_headers):
        response = client.get(
            '/api/location/users/nearby', query_string=nearby_params(), headers=auth_headers(citizen)
        )
        body = response.get_json()
        assert response.status_code == 200
        assert [user['user_id'] for user in body['data']] == [str(neighbour.user_id)]

    def test_bounds(self, client, make_issue):
        make_issue(north_of(DHAKA, 1))
        make_issue(north_of(DHAKA, 100))

        response = client.get('/api/location/issues/bounds', query_string={
            'swLat': 23.7, 'swLng': 90.3, 'neLat': 23.9, 'neLng': 90.5,
        })
        body = response.get_json()
        assert response.status_code == 200
        assert body['meta']['count'] == 1
        assert 'distance_km' not in body['data'][0]

    def test_bounds_require_all_corners(self, client):
        response = client.get('/api/location/issues/bounds', query_string={'swLat': 23.7})
        assert response.status_code == 400

    def test_bounds_crossing_antimeridian(self, client):
        response = client.get('/api/location/issues/bounds', query_string={
            'swLat': -10, 'swLng': 170, 'neLat': 10, 'neLng': -170,
        })
        assert response.status_code == 400

    def test_heatmap(self, client, make_issue):
        make_issue(north_of(DHAKA, 1), priority='urgent')
        make_issue(north_of(DHAKA, 2), priority='high')

        body = client.get('/api/location/heatmap').get_json()
        assert sorted(point['weight'] for point in body['data']) == [2, 3]
        assert body['meta']['bounds'] is None

    def test_location_stats(self, client, make_issue, citizen):
        make_issue(north_of(DHAKA, 1))
        body = client.get('/api/location/stats', query_string=nearby_params(radius=2)).get_json()

        assert body['data']['issues']['total'] == 1
        assert body['data']['users']['active_nearby'] == 1

    def test_distance(self, client):
        response = client.get('/api/location/distance', query_string={
            'lat1': 23.8103, 'lng1': 90.4125, 'lat2': 23.7465, 'lng2': 90.3563,
        })
        data = response.get_json()['data']
        assert data['distance_km'] == pytest.approx(9.11, abs=0.05)
        assert data['unit'] == 'km'

    def test_reverse_geocode_placeholder(self, client):
        body = client.get('/api/location/reverse-geocode', query_string=nearby_params()).get_json()
        assert body['data']['address'] == 'Geocoding service not configured'


class TestIssueRoutes:
    @pytest.fixture()
    def issue(self, make_issue):
        return make_issue(north_of(DHAKA, 1))

    def test_detail_counts_a_view_and_is_not_cached(self, client, issue):
        first = client.get(f'/api/issues/{issue.issue_id}')
        second = client.get(f'/api/issues/{issue.issue_id}')

        assert first.headers['Cache-Control'] == 'no-store'
        assert first.get_json()['data']['stats']['views'] == 1
        assert second.get_json()['data']['stats']['views'] == 2

    def test_detail_unknown_issue(self, client, app):
        response = client.get('/api/issues/7b0a9d52-4d4c-4a8e-9a43-2f9f0d7d1c11')
        assert response.status_code == 404

    def test_detail_private_issue(self, client, make_issue, citizen, auth_headers):
        issue = make_issue(north_of(DHAKA, 1), is_public=False)
        assert client.get(f'/api/issues/{issue.issue_id}').status_code == 403
        assert client.get(f'/api/issues/{issue.issue_id}', headers=auth_headers(citizen)).status_code == 200

    def test_vote_toggle(self, client, issue, neighbour, auth_headers):
        url = f'/api/issues/{issue.issue_id}/vote'
        headers = auth_headers(neighbour)

        body = client.post(url, json={'vote_type': 'upvote'}, headers=headers).get_json()
        assert body['data']['vote_type'] == 'upvote'
        assert body['data']['stats']['upvotes'] == 1

        body = client.post(url, json={'vote_type': 'upvote'}, headers=headers).get_json()
        assert body['data']['vote_type'] is None
        assert body['data']['stats']['upvotes'] == 0

    def test_vote_requires_body(self, client, issue, neighbour, auth_headers):
        response = client.post(f'/api/issues/{issue.issue_id}/vote', headers=auth_headers(neighbour))
        assert response.status_code == 400

    def test_vote_requires_auth(self, client, issue):
        response = client.post(f'/api/issues/{issue.issue_id}/vote', json={'vote_type': 'upvote'})
        assert response.status_code == 401

    def test_remove_vote_and_status(self, client, issue, neighbour, auth_headers):
        headers = auth_headers(neighbour)
        client.post(f'/api/issues/{issue.issue_id}/vote', json={'vote_type': 'downvote'}, headers=headers)

        status = client.get(f'/api/issues/{issue.issue_id}/vote/status', headers=headers).get_json()
        assert status['data']['vote_type'] == 'downvote'

        assert client.delete(f'/api/issues/{issue.issue_id}/vote', headers=headers).status_code == 200
        assert client.delete(f'/api/issues/{issue.issue_id}/vote', headers=headers).status_code == 400

    def test_follow(self, client, issue, neighbour, auth_headers):
        headers = auth_headers(neighbour)
        body = client.post(f'/api/issues/{issue.issue_id}/follow', headers=headers).get_json()
        assert body['data'] == {'is_following': True, 'follower_count': 1}

        status = client.get(f'/api/issues/{issue.issue_id}/follow/status', headers=headers).get_json()
        assert status['data']['is_following'] is True

    def test_comments(self, client, issue, neighbour, citizen, auth_headers):
        response = client.post(
            f'/api/issues/{issue.issue_id}/comments',
            json={'text': 'Still there', 'is_internal': True},
            headers=auth_headers(neighbour),
        )
        body = response.get_json()
        assert response.status_code == 201
        assert body['data']['comment']['is_internal'] is False
        assert body['data']['stats']['comment_count'] == 1

        comment_id = body['data']['comment']['comment_id']
        url = f'/api/issues/{issue.issue_id}/comments/{comment_id}'
        assert client.delete(url, headers=auth_headers(citizen)).status_code == 403
        assert client.delete(url, headers=auth_headers(neighbour)).status_code == 200

    def test_comment_on_issue_no_longer_visible(self, client, issue, neighbour, auth_headers):
        headers = auth_headers(neighbour)
        body = client.post(
            f'/api/issues/{issue.issue_id}/comments', json={'text': 'Hidden soon'}, headers=headers
        ).get_json()
        comment_id = body['data']['comment']['comment_id']

        issue.is_public = False
        db.session.commit()

        response = client.delete(f'/api/issues/{issue.issue_id}/comments/{comment_id}', headers=headers)
        assert response.status_code == 403

    def test_stats(self, client, issue):
        body = client.get('/api/issues/stats', query_string=nearby_params(radius=5)).get_json()
        assert body['data']['total'] == 1
        assert body['data']['per_status']['open'] == 1

    def test_stats_rejects_inverted_dates(self, client):
        response = client.get('/api/issues/stats', query_string={
            'startDate': '2024-05-01', 'endDate': '2024-04-01',
        })
        assert response.status_code == 400

    def test_timeline(self, client, issue):
        body = client.get('/api/issues/timeline', query_string={'bucket': 'month'}).get_json()
        assert body['meta']['bucket'] == 'month'
        assert sum(entry['count'] for entry in body['data']) == 1


class TestCategoryRoutes:
    def test_category_stats(self, client, make_issue, category):
        make_issue(north_of(DHAKA, 1))
        make_issue(north_of(DHAKA, 2), status='resolved')

        body = client.get(f'/api/categories/{category.category_id}/stats').get_json()
        assert body['data']['statistics']['total'] == 2

        db.session.expire_all()
        assert db.session.get(Category, category.category_id).resolved_count == 1

    def test_unknown_category(self, client, app):
        response = client.get('/api/categories/7b0a9d52-4d4c-4a8e-9a43-2f9f0d7d1c11/stats')
        assert response.status_code == 404
        assert response.get_json()['error'] == 'Not Found'

    def test_all_categories(self, client, make_issue, category):
        make_issue(north_of(DHAKA, 1))
        body = client.get('/api/categories/stats/all').get_json()
        assert body['meta']['count'] == 1
        assert body['data'][0]['total'] == 1
