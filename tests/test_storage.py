"""
Unit tests for the key-value stores and the Repository facade.

The Postgres store is exercised with the psycopg2 helpers patched out.
"""

import unittest
from unittest.mock import patch
from datetime import date, datetime
import json
import shutil
import sys
import os
import tempfile

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from hifz_tracker.models import Activity, PlanBook, Settings, VerseProgress
from hifz_tracker.services.plan_service import create_plan
from hifz_tracker.utils.database import PostgresStore
from hifz_tracker.utils.storage import JsonFileStore, MemoryStore, Repository, create_store
from hifz_tracker.utils.timezone_utils import as_aware


def at(*args):
    return as_aware(datetime(*args))



class TestMemoryStore(unittest.TestCase):

    def test_values_are_copied(self):
        store = MemoryStore()
        value = {'sessions': []}
        store.write('k', value)
        value['sessions'].append(1)

        read = store.read('k')
        self.assertEqual(read, {'sessions': []})
        read['sessions'].append(2)
        self.assertEqual(store.read('k'), {'sessions': []})

    def test_missing_key(self):
        self.assertIsNone(MemoryStore().read('plans'))


class TestJsonFileStore(unittest.TestCase):

    def setUp(self):
        self.data_dir = tempfile.mkdtemp()
        self.store = JsonFileStore(self.data_dir)

    def tearDown(self):
        shutil.rmtree(self.data_dir, ignore_errors=True)

    def test_write_then_read(self):
        self.store.write('plans', {'active_plan_id': None, 'plans': [], 'name': 'الفاتحة'})

        self.assertEqual(self.store.read('plans'), {'active_plan_id': None, 'plans': [], 'name': 'الفاتحة'})
        self.assertTrue(os.path.exists(os.path.join(self.data_dir, 'plans.json')))
        # no temp files left behind
        self.assertEqual(os.listdir(self.data_dir), ['plans.json'])

    def test_missing_file(self):
        self.assertIsNone(self.store.read('progress'))

    def test_corrupt_file_reads_as_missing(self):
        with open(os.path.join(self.data_dir, 'progress.json'), 'w') as f:
            f.write('{"p_1_1": {')

        self.assertIsNone(self.store.read('progress'))
        self.assertEqual(Repository(self.store).load_progress(), {})

    def test_failed_write_keeps_previous_file(self):
        self.store.write('settings', {'general': {'murajaah_frequency': 3}})

        with self.assertRaises(TypeError):
            self.store.write('settings', {'bad': object()})

        self.assertEqual(self.store.read('settings'), {'general': {'murajaah_frequency': 3}})
        self.assertEqual(os.listdir(self.data_dir), ['settings.json'])


class TestCreateStore(unittest.TestCase):

    def test_backends(self):
        self.assertIsInstance(create_store('memory'), MemoryStore)

        data_dir = tempfile.mkdtemp()
        try:
            self.assertIsInstance(create_store('json', data_dir=data_dir), JsonFileStore)
        finally:
            shutil.rmtree(data_dir, ignore_errors=True)

        store = create_store('postgres', database_url='postgresql://u:p@localhost/db')
        self.assertIsInstance(store, PostgresStore)
        self.assertEqual(store.database_url, 'postgresql://u:p@localhost/db')

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_store('sqlite')


class TestRepository(unittest.TestCase):

    def setUp(self):
        self.repo = Repository(MemoryStore())

    def test_empty_defaults(self):
        self.assertEqual(self.repo.load_plans(), PlanBook())
        self.assertEqual(self.repo.load_progress(), {})
        self.assertEqual(self.repo.load_review_sessions(), {})
        self.assertEqual(self.repo.load_settings(), Settings.from_dict())
        self.assertEqual(self.repo.load_activities(), [])

    def test_wrong_shape_falls_back_to_default(self):
        self.repo.store.write('plans', ['not', 'a', 'dict'])
        self.repo.store.write('activities', {'not': 'a list'})

        self.assertEqual(self.repo.load_plans(), PlanBook())
        self.assertEqual(self.repo.load_activities(), [])

    def test_plans_persist_in_documented_shape(self):
        chapter = {'number': 112, 'verse_count': 4, 'name': 'Al-Ikhlas', 'native_name': 'الإخلاص'}
        plan = create_plan(self.repo, chapter, date(2025, 3, 1), 2, now=at(2025, 3, 1, 8, 0))

        raw = self.repo.store.read('plans')
        self.assertEqual(raw['active_plan_id'], plan.id)
        self.assertEqual(raw['plans'][0]['schedule'][2],
                         {'date': '2025-03-02', 'surah_number': 112, 'ayah_number': 3})
        self.assertEqual(self.repo.load_plans().plans, [plan])

    def test_progress_keyed_by_plan_surah_ayah(self):
        record = VerseProgress(plan_id='p1', surah_number=1, ayah_number=2, memorized=True,
                               memorized_at=at(2025, 3, 1, 9, 0), date=date(2025, 3, 1))
        self.repo.save_progress({record.key: record})

        self.assertEqual(list(self.repo.store.read('progress')), ['p1_1_2'])
        self.assertEqual(self.repo.load_progress(), {'p1_1_2': record})

    def test_activities_ignore_unknown_fields(self):
        self.repo.store.write('activities', [{
            'id': 'a1', 'plan_id': 'p1', 'surah_number': 1, 'session_type': 'hafazan',
            'start_time': '2025-03-01T08:00:00', 'total_reps': 8, 'legacy_field': True,
        }])

        activities = self.repo.load_activities()
        self.assertEqual(len(activities), 1)
        self.assertIsInstance(activities[0], Activity)
        self.assertEqual(activities[0].start_time, at(2025, 3, 1, 8, 0))


class TestPostgresStore(unittest.TestCase):

    @patch('hifz_tracker.utils.database.db_execute')
    @patch('hifz_tracker.utils.database.db_fetch_one')
    def test_read_returns_stored_value(self, mock_fetch_one, mock_execute):
        mock_fetch_one.return_value = {'value': {'plans': [], 'active_plan_id': None}}
        store = PostgresStore('postgresql://test')

        self.assertEqual(store.read('plans'), {'plans': [], 'active_plan_id': None})

        # table is created once, before the first query
        self.assertEqual(mock_execute.call_count, 1)
        self.assertIn('CREATE TABLE IF NOT EXISTS kv_store', mock_execute.call_args[0][0])
        query, params = mock_fetch_one.call_args[0]
        self.assertIn('SELECT value FROM kv_store', query)
        self.assertEqual(params, ('plans',))

    @patch('hifz_tracker.utils.database.db_execute')
    @patch('hifz_tracker.utils.database.db_fetch_one')
    def test_read_missing_key(self, mock_fetch_one, mock_execute):
        mock_fetch_one.return_value = None
        self.assertIsNone(PostgresStore('postgresql://test').read('progress'))

    @patch('hifz_tracker.utils.database.db_execute')
    def test_write_upserts_json(self, mock_execute):
        store = PostgresStore('postgresql://test')
        store.write('settings', {'general': {'murajaah_frequency': 3}})
        store.write('settings', {'general': {'murajaah_frequency': 4}})

        # one CREATE TABLE plus two upserts
        self.assertEqual(mock_execute.call_count, 3)
        query, params = mock_execute.call_args[0]
        self.assertIn('ON CONFLICT (key) DO UPDATE', query)
        self.assertEqual(params[0], 'settings')
        self.assertEqual(params[1].adapted, {'general': {'murajaah_frequency': 4}})
        self.assertTrue(mock_execute.call_args[1]['commit'])

    @patch('hifz_tracker.utils.database.get_db_connection')
    def test_cursor_rolls_back_on_error(self, mock_connect):
        conn = mock_connect.return_value
        cursor = conn.cursor.return_value
        cursor.execute.side_effect = RuntimeError('boom')

        from hifz_tracker.utils.database import db_execute
        with self.assertRaises(RuntimeError):
            db_execute('UPDATE kv_store SET value = %s', ('{}',), commit=True)

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        cursor.close.assert_called_once()
        conn.close.assert_called_once()


if __name__ == '__main__':
    unittest.main()
