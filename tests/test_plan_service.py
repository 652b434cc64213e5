"""
Unit tests for plan_service.py
"""

import unittest
from datetime import date, datetime
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from hifz_tracker.services.plan_service import (
    create_plan,
    delete_plan,
    get_active_plan,
    get_plan,
    list_plans,
    set_active_plan,
    update_plan,
)
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.storage import MemoryStore, Repository
from hifz_tracker.utils.timezone_utils import as_aware


def at(*args):
    return as_aware(datetime(*args))


NOW = at(2025, 3, 1, 8, 0)
AN_NABA = {'number': 78, 'verse_count': 40, 'name': 'An-Naba', 'native_name': 'النبإ'}
AL_IKHLAS = {'number': 112, 'verse_count': 4, 'name': 'Al-Ikhlas', 'native_name': 'الإخلاص'}


class TestCreatePlan(unittest.TestCase):

    def setUp(self):
        self.repo = Repository(MemoryStore())

    def test_creates_schedule_and_identity(self):
        plan = create_plan(self.repo, AN_NABA, date(2025, 3, 2), 3, now=NOW)

        self.assertEqual(plan.id, str(int(NOW.timestamp() * 1000)))
        self.assertEqual(plan.surah_number, 78)
        self.assertEqual(plan.surah_name, 'An-Naba')
        self.assertEqual(plan.surah_name_arabic, 'النبإ')
        self.assertEqual(plan.total_ayahs, 40)
        self.assertEqual(plan.start_date, date(2025, 3, 2))
        self.assertEqual(len(plan.schedule), 40)
        # 40 ayahs at 3/day -> 14 days
        self.assertEqual(plan.original_end_date, date(2025, 3, 15))
        self.assertEqual(plan.created_at, NOW)
        self.assertEqual(plan.status, 'in-progress')
        self.assertEqual(plan.review_schedule, [])

        self.assertEqual(get_plan(self.repo, plan.id), plan)

    def test_new_plan_becomes_active(self):
        first = create_plan(self.repo, AN_NABA, date(2025, 3, 2), 1, now=NOW)
        second = create_plan(self.repo, AL_IKHLAS, date(2025, 3, 2), 1, now=NOW)

        self.assertNotEqual(first.id, second.id, "ids must stay unique within the same millisecond")
        self.assertEqual(get_active_plan(self.repo).id, second.id)
        self.assertEqual([p.id for p in list_plans(self.repo)], [first.id, second.id])

    def test_pace_bounds(self):
        for pace in (0, 11, -1):
            with self.assertRaises(ValidationError):
                create_plan(self.repo, AN_NABA, date(2025, 3, 2), pace, now=NOW)
        with self.assertRaises(ValidationError):
            create_plan(self.repo, AN_NABA, date(2025, 3, 2), 'fast', now=NOW)

        self.assertEqual(list_plans(self.repo), [])

    def test_pace_limits_are_inclusive(self):
        create_plan(self.repo, AL_IKHLAS, date(2025, 3, 2), 1, now=NOW)
        plan = create_plan(self.repo, AN_NABA, date(2025, 3, 2), 10, now=NOW)
        self.assertEqual(plan.original_end_date, date(2025, 3, 5))

    def test_empty_surah_rejected(self):
        with self.assertRaises(ValidationError):
            create_plan(self.repo, dict(AN_NABA, verse_count=0), date(2025, 3, 2), 1, now=NOW)


class TestPlanManagement(unittest.TestCase):

    def setUp(self):
        self.repo = Repository(MemoryStore())
        self.first = create_plan(self.repo, AN_NABA, date(2025, 3, 2), 1, now=NOW)
        self.second = create_plan(self.repo, AL_IKHLAS, date(2025, 3, 2), 1, now=NOW)

    def test_set_active_plan(self):
        self.assertEqual(set_active_plan(self.repo, self.first.id).id, self.first.id)
        self.assertEqual(get_active_plan(self.repo).id, self.first.id)

    def test_set_active_unknown_keeps_current(self):
        self.assertIsNone(set_active_plan(self.repo, 'missing'))
        self.assertEqual(get_active_plan(self.repo).id, self.second.id)

    def test_update_plan(self):
        updated = update_plan(self.repo, self.first.id, surah_name='The Tidings')

        self.assertEqual(updated.surah_name, 'The Tidings')
        self.assertEqual(get_plan(self.repo, self.first.id).surah_name, 'The Tidings')
        self.assertIsNone(update_plan(self.repo, 'missing', surah_name='x'))

    def test_update_rejects_structural_fields(self):
        with self.assertRaises(ValidationError):
            update_plan(self.repo, self.first.id, schedule=[])

    def test_delete_active_plan_clears_reference(self):
        self.assertTrue(delete_plan(self.repo, self.second.id))

        self.assertIsNone(get_plan(self.repo, self.second.id))
        self.assertIsNone(get_active_plan(self.repo))
        self.assertEqual([p.id for p in list_plans(self.repo)], [self.first.id])

    def test_delete_other_plan_keeps_active(self):
        self.assertTrue(delete_plan(self.repo, self.first.id))
        self.assertEqual(get_active_plan(self.repo).id, self.second.id)

    def test_delete_missing(self):
        self.assertFalse(delete_plan(self.repo, 'missing'))
        self.assertEqual(len(list_plans(self.repo)), 2)


if __name__ == '__main__':
    unittest.main()
