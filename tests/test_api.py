"""
Integration tests for the /api blueprint using Flask's test client.

Runs against an in-memory store; the content provider is patched.
"""

import unittest
from unittest.mock import patch
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from prometheus_client import REGISTRY

from hifz_tracker.app import create_app
from hifz_tracker.utils.errors import ContentFetchError
from hifz_tracker.utils.storage import MemoryStore, Repository

AL_IKHLAS = {'number': 112, 'verse_count': 4, 'name': 'Al-Ikhlas', 'native_name': 'سُورَةُ الإخلاص'}


class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.repo = Repository(MemoryStore())
        self.app = create_app(repo=self.repo)
        self.app.config['TESTING'] = True
        self.client = self.app.test_client()

    @patch('hifz_tracker.services.content_service.get_chapter_meta')
    def create_plan(self, mock_meta, ayahs_per_day=2, start_date='2025-03-01'):
        mock_meta.return_value = AL_IKHLAS
        response = self.client.post('/api/plans', json={
            'surah_number': 112, 'ayahs_per_day': ayahs_per_day, 'start_date': start_date
        })
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()

    def memorize(self, plan_id, ayah, when):
        return self.client.post(f'/api/plans/{plan_id}/memorize', json={
            'surah_number': 112, 'ayah_number': ayah, 'when': when
        })


class TestHealthAndErrors(ApiTestCase):

    def test_health(self):
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['status'], 'healthy')

    def test_unknown_route_is_json_404(self):
        response = self.client.get('/api/nope')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error'], 'Not found')

    def test_wrong_method_is_json_405(self):
        response = self.client.patch('/api/settings')
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.get_json()['error'], 'Method not allowed')

    def test_unexpected_error_is_logged_json_500(self):
        with patch.object(self.repo, 'load_plans', side_effect=RuntimeError('disk gone')):
            with self.assertLogs(self.app.logger, level='ERROR') as logs:
                response = self.client.get('/api/plans', headers={'X-Request-ID': 'trace-500'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'Internal server error')
        record = logs.records[0]
        self.assertEqual(record.path, '/api/plans')
        self.assertEqual(record.request_id, 'trace-500')
        self.assertEqual(record.error_type, 'RuntimeError')

    def test_request_id_is_echoed(self):
        response = self.client.get('/api/health', headers={'X-Request-ID': 'trace-123'})
        self.assertEqual(response.headers['X-Request-ID'], 'trace-123')

    def test_metrics_endpoint(self):
        self.create_plan()
        response = self.client.get('/metrics')

        self.assertEqual(response.status_code, 200)
        body = response.get_data(as_text=True)
        self.assertIn('hifz_plans_created_total', body)
        self.assertIn('hifz_http_requests_total', body)

    def test_requests_are_counted_per_blueprint_endpoint(self):
        labels = {'method': 'GET', 'endpoint': 'api.health_check'}
        before = REGISTRY.get_sample_value('hifz_http_requests_total', dict(labels, status_code='200')) or 0

        self.client.get('/api/health')
        self.client.get('/metrics')

        after = REGISTRY.get_sample_value('hifz_http_requests_total', dict(labels, status_code='200'))
        self.assertEqual(after - before, 1)
        self.assertEqual(REGISTRY.get_sample_value('hifz_http_requests_in_flight', labels), 0)
        # scrapes are not tracked
        self.assertIsNone(REGISTRY.get_sample_value(
            'hifz_http_requests_total', {'method': 'GET', 'endpoint': 'metrics', 'status_code': '200'}))


class TestPlanEndpoints(ApiTestCase):

    def test_create_and_list(self):
        plan = self.create_plan()

        self.assertTrue(plan['active'])
        self.assertEqual(plan['surah_name'], 'Al-Ikhlas')
        self.assertEqual([e['date'] for e in plan['schedule']],
                         ['2025-03-01', '2025-03-01', '2025-03-02', '2025-03-02'])

        listing = self.client.get('/api/plans').get_json()
        self.assertEqual(listing['active_plan_id'], plan['id'])
        self.assertEqual([p['id'] for p in listing['plans']], [plan['id']])

        self.assertEqual(self.client.get('/api/plans/active').get_json()['id'], plan['id'])
        self.assertEqual(self.client.get(f"/api/plans/{plan['id']}").status_code, 200)

    @patch('hifz_tracker.services.content_service.get_chapter_meta')
    def test_pace_out_of_range(self, mock_meta):
        mock_meta.return_value = AL_IKHLAS
        response = self.client.post('/api/plans', json={'surah_number': 112, 'ayahs_per_day': 11})

        self.assertEqual(response.status_code, 400)
        self.assertIn('ayahs_per_day', response.get_json()['message'])

    def test_missing_surah_number(self):
        response = self.client.post('/api/plans', json={'ayahs_per_day': 1})
        self.assertEqual(response.status_code, 400)

    @patch('hifz_tracker.services.content_service.get_chapter_meta')
    def test_content_provider_down(self, mock_meta):
        mock_meta.side_effect = ContentFetchError('unreachable')
        response = self.client.post('/api/plans', json={'surah_number': 112})

        self.assertEqual(response.status_code, 502)
        self.assertEqual(self.client.get('/api/plans').get_json()['plans'], [])

    def test_activate_and_delete(self):
        first = self.create_plan()
        second = self.create_plan()
        self.assertEqual(self.client.get('/api/plans/active').get_json()['id'], second['id'])

        response = self.client.post(f"/api/plans/{first['id']}/activate")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get('/api/plans/active').get_json()['id'], first['id'])

        self.assertEqual(self.client.delete(f"/api/plans/{first['id']}").status_code, 200)
        self.assertEqual(self.client.get('/api/plans/active').status_code, 404)
        self.assertEqual(self.client.delete(f"/api/plans/{first['id']}").status_code, 404)
        self.assertEqual(self.client.post('/api/plans/missing/activate').status_code, 404)


class TestDailyWorkEndpoints(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.plan_id = self.create_plan()['id']

    def test_tasks_then_memorize(self):
        tasks = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-01T08:00:00').get_json()
        self.assertEqual([t['ayah_number'] for t in tasks['hafazan']], [1])

        response = self.memorize(self.plan_id, 1, '2025-03-01T09:00:00')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['memorized'])

        tasks = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-01T10:00:00').get_json()
        self.assertEqual([t['ayah_number'] for t in tasks['hafazan']], [2])
        self.assertEqual([t['ayah_number'] for t in tasks['completed_hafazan']], [1])

        progress = self.client.get(f'/api/plans/{self.plan_id}/progress').get_json()
        self.assertEqual(progress, {'completed': 1, 'total': 4, 'percentage': 25.0})

        ranges = self.client.get(f'/api/plans/{self.plan_id}/review-ranges').get_json()['ranges']
        self.assertEqual(ranges, [{'surah_number': 112, 'start_ayah': 1, 'end_ayah': 1, 'ayahs': [1]}])

    def test_memorize_outside_surah(self):
        self.assertEqual(self.memorize(self.plan_id, 5, '2025-03-01T09:00:00').status_code, 400)

    def test_unknown_plan(self):
        self.assertEqual(self.client.get('/api/plans/missing/tasks').status_code, 404)
        self.assertEqual(self.memorize('missing', 1, '2025-03-01T09:00:00').status_code, 404)
        response = self.client.post('/api/plans/missing/murajaah', json={'surah_number': 112, 'ayah_number': 1})
        self.assertEqual(response.status_code, 404)

    def test_bad_timestamp(self):
        response = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=yesterday')
        self.assertEqual(response.status_code, 400)

    def test_range_murajaah_rebooks(self):
        self.memorize(self.plan_id, 1, '2025-03-01T09:00:00')
        self.memorize(self.plan_id, 2, '2025-03-01T09:05:00')

        due = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-08T08:00:00').get_json()
        self.assertEqual([(t['start_ayah'], t['end_ayah']) for t in due['murajaah']], [(1, 2)])

        response = self.client.post(f'/api/plans/{self.plan_id}/murajaah', json={
            'surah_number': 112, 'start_ayah': 1, 'end_ayah': 2, 'when': '2025-03-08T10:00:00'
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['next_review']['date'].startswith('2025-03-15T10:00:00'))

        done = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-08T11:00:00').get_json()
        self.assertEqual(done['murajaah'], [])
        self.assertEqual(len(done['completed_murajaah']), 1)

    def test_calendar(self):
        response = self.client.get(f'/api/plans/{self.plan_id}/calendar?month=3&year=2025')
        data = response.get_json()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(sorted(data['days']), ['1', '2'])
        self.assertEqual(len(data['days']['1']), 2)

        self.assertEqual(self.client.get(f'/api/plans/{self.plan_id}/calendar?month=13&year=2025').status_code, 400)


class TestStatsEndpoints(ApiTestCase):

    def setUp(self):
        super().setUp()
        # 4 ayahs at 2/day: original end Mar 2
        self.plan_id = self.create_plan()['id']

    def test_streaks(self):
        self.memorize(self.plan_id, 1, '2025-03-01T09:00:00')
        self.memorize(self.plan_id, 2, '2025-03-02T09:00:00')

        data = self.client.get(f'/api/plans/{self.plan_id}/streaks?today=2025-03-03').get_json()
        self.assertEqual((data['current'], data['longest']), (2, 2))

    def test_completion_lifecycle(self):
        status = self.client.get(f'/api/plans/{self.plan_id}/completion').get_json()
        self.assertEqual(status, {'completed': False, 'progress': 0, 'total': 4})
        self.assertEqual(self.client.post(f'/api/plans/{self.plan_id}/complete').status_code, 409)
        self.assertEqual(self.client.get(f'/api/plans/{self.plan_id}/next-steps').status_code, 404)

        for ayah in range(1, 5):
            self.memorize(self.plan_id, ayah, f'2025-02-26T09:0{ayah}:00')

        status = self.client.get(f'/api/plans/{self.plan_id}/completion').get_json()
        self.assertTrue(status['completed'])
        # Mar 2 00:00 minus Feb 26 09:04 is 3.6 days
        self.assertEqual(status['days_early'], 4)
        self.assertEqual(status['achievement_level'], 'great')

        response = self.client.post(f'/api/plans/{self.plan_id}/complete', json={'when': '2025-02-26T10:00:00'})
        data = response.get_json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(data['achievement_level'], 'great')
        self.assertEqual([s['number'] for s in data['next_steps']['suggested_surahs']], [2, 18, 36])
        self.assertEqual(self.client.get(f'/api/plans/{self.plan_id}').get_json()['status'], 'completed')

    def test_missing_plan(self):
        self.assertEqual(self.client.get('/api/plans/missing/completion').status_code, 404)
        self.assertEqual(self.client.post('/api/plans/missing/complete').status_code, 404)


class TestSettingsEndpoints(ApiTestCase):

    def test_get_defaults(self):
        data = self.client.get('/api/settings').get_json()
        self.assertEqual(data['general']['murajaah_frequency'], 7)
        self.assertEqual(data['hafazan']['visible_sets'], 3)

    def test_partial_update_is_held_and_persisted(self):
        response = self.client.put('/api/settings', json={'general': {'murajaah_frequency': 3}})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['general']['murajaah_frequency'], 3)
        self.assertEqual(response.get_json()['general']['murajaah_range_size'], 5)

        self.assertEqual(self.client.get('/api/settings').get_json()['general']['murajaah_frequency'], 3)
        self.assertEqual(self.repo.load_settings().murajaah_frequency, 3)

    def test_invalid_update(self):
        response = self.client.put('/api/settings', json={'murajaah': {'hidden_sets': 0}})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get('/api/settings').get_json()['murajaah']['hidden_sets'], 1)


class TestActivityEndpoints(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.plan_id = self.create_plan()['id']
        tasks = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-01T08:00:00').get_json()
        self.task = tasks['hafazan'][0]

    def start(self):
        response = self.client.post('/api/activities', json=dict(self.task, now='2025-03-01T08:00:00'))
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()

    def test_drill_flow(self):
        activity = self.start()
        self.assertEqual(activity['total_reps'], 8)
        self.assertEqual(activity['resume'], {'set': 1, 'repetition': 1, 'phase': 'visible'})

        for _ in range(3):
            activity = self.client.post(f"/api/activities/{activity['id']}/repetition",
                                        json={'now': '2025-03-01T08:01:00'}).get_json()
        self.assertEqual(activity['completed_reps'], 3)
        self.assertEqual(activity['resume'], {'set': 2, 'repetition': 1, 'phase': 'visible'})

        response = self.client.post(f"/api/activities/{activity['id']}/complete",
                                    json={'now': '2025-03-01T08:05:00'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['completed'])

        tasks = self.client.get(f'/api/plans/{self.plan_id}/tasks?now=2025-03-01T08:10:00').get_json()
        self.assertEqual([t['ayah_number'] for t in tasks['completed_hafazan']], [1])

        completed = self.client.get('/api/activities?filter=completed').get_json()
        self.assertEqual(completed['count'], 1)

    def test_abandon_and_resume(self):
        activity = self.start()
        self.client.post(f"/api/activities/{activity['id']}/repetition", json={'now': '2025-03-01T08:01:00'})
        response = self.client.post(f"/api/activities/{activity['id']}/abandon",
                                    json={'now': '2025-03-01T08:02:00'})

        self.assertFalse(response.get_json()['completed'])
        fetched = self.client.get(f"/api/activities/{activity['id']}").get_json()
        self.assertEqual(fetched['completed_reps'], 1)
        self.assertEqual(fetched['duration'], 120)
        self.assertEqual(fetched['resume']['repetition'], 2)

        incomplete = self.client.get('/api/activities?filter=incomplete').get_json()
        self.assertEqual(incomplete['count'], 1)

    def test_invalid_filter_and_missing_activity(self):
        self.assertEqual(self.client.get('/api/activities?filter=old').status_code, 400)
        self.assertEqual(self.client.get('/api/activities/missing').status_code, 404)
        self.assertEqual(self.client.post('/api/activities/missing/complete').status_code, 404)


if __name__ == '__main__':
    unittest.main()
