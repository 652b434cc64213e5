"""
Today's task planner.

Computes what the learner should do on a given day from the plan's static
hafazan schedule, its murajaah bookings and the recorded progress. Nothing is
cached; every call re-reads the current state.
"""

from datetime import datetime
from typing import Any, Dict
import logging

from hifz_tracker.models import ReviewScheduleEntry, ScheduleEntry
from hifz_tracker.services.progress_service import get_verse_completion_time, is_memorized
from hifz_tracker.services.review_service import find_session_on
from hifz_tracker.utils.timezone_utils import aware_or_now

logger = logging.getLogger(__name__)


def empty_tasks() -> Dict[str, Any]:
    return {
        'hafazan': [],
        'murajaah': [],
        'completed_hafazan': [],
        'completed_murajaah': [],
        'can_progress': False,
    }


def _hafazan_task(plan_id: str, entry: ScheduleEntry) -> Dict[str, Any]:
    task = entry.to_dict()
    task.update({'plan_id': plan_id, 'session_type': 'hafazan'})
    return task


def _murajaah_task(plan_id: str, entry: ReviewScheduleEntry) -> Dict[str, Any]:
    task = entry.to_dict()
    task.update({'plan_id': plan_id, 'session_type': 'murajaah'})
    return task


def get_today_tasks(repo, plan_id: str, now: datetime = None) -> Dict[str, Any]:
    """
    Build today's hafazan and murajaah tasks for a plan.

    Hafazan:
    - Pending: the single earliest scheduled ayah dated today or earlier that
      is not memorized yet, so overdue work is always surfaced before new work.
    - Completed: ayahs scheduled for today that are already memorized.
    - Progression: only when nothing is pending, the earliest future ayah
      not yet memorized is offered as next_ayah and can_progress is True.

    Murajaah:
    - Only bookings dated exactly today. A booking whose day passed without a
      review is not carried forward.
    - Split into pending and completed by whether the range (or legacy single
      ayah) has a session recorded today.

    Returns:
        {
            'hafazan': [task], 'murajaah': [task],
            'completed_hafazan': [task], 'completed_murajaah': [task],
            'can_progress': bool,
            'next_ayah': task   # only when can_progress
        }
        The same shape with empty lists for an unknown plan.
    """
    now = aware_or_now(now)
    today = now.date()

    plan = repo.load_plans().find(plan_id)
    if plan is None:
        logger.warning(f"get_today_tasks: plan_id='{plan_id}' not found")
        return empty_tasks()

    tasks = empty_tasks()
    progress = repo.load_progress()

    def memorized(entry):
        return is_memorized(repo, plan_id, entry.surah_number, entry.ayah_number, progress)

    pending = [entry for entry in plan.schedule if entry.date <= today and not memorized(entry)]
    if pending:
        earliest = sorted(pending, key=lambda e: e.date)[0]
        tasks['hafazan'].append(_hafazan_task(plan_id, earliest))

    for entry in plan.schedule:
        if entry.date == today and memorized(entry):
            task = _hafazan_task(plan_id, entry)
            completed_at = get_verse_completion_time(repo, plan_id, entry.surah_number,
                                                     entry.ayah_number, progress)
            task.update({'completed': True, 'completed_at': completed_at.isoformat()})
            tasks['completed_hafazan'].append(task)

    if not pending:
        upcoming = next((entry for entry in plan.schedule
                         if entry.date > today and not memorized(entry)), None)
        if upcoming is not None:
            tasks['can_progress'] = True
            tasks['next_ayah'] = _hafazan_task(plan_id, upcoming)

    sessions = repo.load_review_sessions()
    for entry in plan.review_schedule:
        if entry.date.date() != today:
            continue

        history = sessions.get(entry.target.history_key(plan_id, entry.surah_number), {'sessions': []})
        session = find_session_on(history, today)
        task = _murajaah_task(plan_id, entry)
        if session:
            task.update({'completed': True, 'completed_at': session['completed_at']})
            tasks['completed_murajaah'].append(task)
        else:
            tasks['murajaah'].append(task)

    return tasks
