"""
Analytics Service

Derived, read-only views over a plan's progress:
- Plan completion detection and how many days ahead of schedule it finished
- Achievement level from days early
- Current and longest memorization streaks
- Next-step suggestions after a finished plan
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Union
import logging
import math

from hifz_tracker.config.config import (
    ACHIEVEMENT_TIERS, DEFAULT_ACHIEVEMENT, MAX_SUGGESTIONS, MEDIUM_SURAH_MAX_AYAHS,
    NEXT_SURAH_SUGGESTIONS, SHORT_SURAH_MAX_AYAHS,
)
from hifz_tracker.models import Plan
from hifz_tracker.services.progress_service import get_completed_verses
from hifz_tracker.utils.timezone_utils import (
    aware_or_now, get_today_in_timezone, midnight_in_zone_of,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def is_plan_completed(repo, plan_id: str) -> bool:
    plan = repo.load_plans().find(plan_id)
    if plan is None:
        return False
    return len(get_completed_verses(repo, plan_id)) >= plan.total_ayahs


def get_plan_completion_status(repo, plan_id: str) -> Optional[Dict]:
    """
    Completion details of a plan.

    The completion moment is the latest memorized_at among the plan's ayahs;
    it is compared with the start of the originally scheduled last day:
    days_early = ceil((original_end - completion) / 1 day).

    Returns:
        None for an unknown plan,
        {'completed': False, 'progress', 'total'} while in progress, or
        {'completed': True, 'completion_date', 'original_end_date', 'days_early',
         'completed_early', 'total_ayahs', 'surah_name'}
    """
    plan = repo.load_plans().find(plan_id)
    if plan is None:
        return None

    completed = get_completed_verses(repo, plan_id)
    if len(completed) < plan.total_ayahs or not plan.schedule:
        return {
            'completed': False,
            'progress': len(completed),
            'total': plan.total_ayahs,
        }

    completion_moment = max(record.memorized_at for record in completed)
    original_end = midnight_in_zone_of(plan.original_end_date, completion_moment)

    days_early = math.ceil((original_end - completion_moment).total_seconds() / SECONDS_PER_DAY)
    completed_early = days_early > 0

    return {
        'completed': True,
        'completion_date': completion_moment.isoformat(),
        'original_end_date': original_end.isoformat(),
        'days_early': days_early if completed_early else 0,
        'completed_early': completed_early,
        'total_ayahs': plan.total_ayahs,
        'surah_name': plan.surah_name,
    }


def calculate_achievement_level(days_early: Union[int, Dict]) -> str:
    """
    Tier for finishing days_early days ahead of schedule.

    >= 14 exceptional, >= 7 excellent, >= 3 great, >= 1 good, otherwise completed.
    Also accepts a completion status dict.
    """
    if isinstance(days_early, dict):
        days_early = days_early.get('days_early') or 0

    for threshold, level in ACHIEVEMENT_TIERS:
        if days_early >= threshold:
            return level
    return DEFAULT_ACHIEVEMENT


def get_streak_data(repo, plan_id: str, today: date = None) -> Dict[str, int]:
    """
    Current and longest runs of consecutive days with at least one ayah memorized.

    The current streak only counts when the latest memorization day is today or
    yesterday; otherwise it is 0 however long the earlier run was. The longest
    streak is the longest run anywhere in the history.
    """
    today = today or get_today_in_timezone()

    dates = sorted({record.date for record in get_completed_verses(repo, plan_id)}, reverse=True)
    if not dates:
        return {'current': 0, 'longest': 0}

    current = 0
    if (today - dates[0]).days <= 1:
        current = 1
        for newer, older in zip(dates, dates[1:]):
            if (newer - older).days == 1:
                current += 1
            else:
                break

    longest = 1
    run = 1
    for newer, older in zip(dates, dates[1:]):
        if (newer - older).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return {'current': current, 'longest': longest}


def mark_plan_completed(repo, plan_id: str, when: datetime = None) -> Union[Dict, bool]:
    """
    Persist completion on a finished plan and release the active-plan reference.

    Returns:
        The completion status dict, or False if the plan is missing or unfinished
    """
    when = aware_or_now(when)

    status = get_plan_completion_status(repo, plan_id)
    if not status or not status['completed']:
        return False

    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        return False

    plan.status = 'completed'
    plan.completed_at = when
    plan.days_early = status['days_early']
    plan.completed_early = status['completed_early']
    if book.active_plan_id == plan_id:
        book.active_plan_id = None
    repo.save_plans(book)

    logger.info(f"Plan completed: plan_id='{plan_id}', days_early={status['days_early']}")
    return status


def get_suggested_next_surahs(plan: Optional[Plan]) -> List[Dict]:
    if plan is None:
        return []

    if plan.total_ayahs <= SHORT_SURAH_MAX_AYAHS:
        suggestions = NEXT_SURAH_SUGGESTIONS['short']
    elif plan.total_ayahs <= MEDIUM_SURAH_MAX_AYAHS:
        suggestions = NEXT_SURAH_SUGGESTIONS['medium']
    else:
        suggestions = NEXT_SURAH_SUGGESTIONS['long']

    return [dict(s) for s in suggestions[:MAX_SUGGESTIONS]]


def get_next_step_suggestions(repo, plan_id: str) -> Optional[Dict]:
    status = get_plan_completion_status(repo, plan_id)
    if not status or not status['completed']:
        return None

    book = repo.load_plans()
    other_plans = [p for p in book.plans if p.id != plan_id and p.status != 'completed']

    return {
        'can_create_new_plan': True,
        'has_other_plans': len(other_plans) > 0,
        'suggested_surahs': get_suggested_next_surahs(book.find(plan_id)),
        'murajaah_continues': True,
        'achievement_level': calculate_achievement_level(status['days_early']),
    }
