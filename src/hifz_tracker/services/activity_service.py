"""
Activity log and drill session lifecycle.

A drill session is one Activity: started from a today's task, advanced one
repetition at a time, and either abandoned (progress kept for resuming) or
completed. Completion hands off to the progress or review service, which is
where memorization state and murajaah bookings actually change.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from hifz_tracker.config.config import SESSION_TYPES
from hifz_tracker.models import Activity, SessionSettings, Settings
from hifz_tracker.services.progress_service import mark_memorized
from hifz_tracker.services.review_service import mark_murajaah_complete, on_review_completed
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.timezone_utils import aware_or_now

logger = logging.getLogger(__name__)

ACTIVITY_FILTERS = ('hafazan', 'murajaah', 'completed', 'incomplete')


# ============================================================================
# ACTIVITY LOG
# ============================================================================

def add_activity(repo, activity: Activity) -> Activity:
    activities = repo.load_activities()
    activities.append(activity)
    repo.save_activities(activities)
    return activity


def get_activity(repo, activity_id: str) -> Optional[Activity]:
    return next((a for a in repo.load_activities() if a.id == activity_id), None)


def update_activity(repo, activity_id: str, **changes) -> Optional[Activity]:
    activities = repo.load_activities()
    for index, activity in enumerate(activities):
        if activity.id == activity_id:
            activities[index] = activity.updated(**changes)
            repo.save_activities(activities)
            return activities[index]

    logger.warning(f"update_activity ignored: activity_id='{activity_id}' not found")
    return None


def list_activities(repo, activity_filter: str = None) -> List[Activity]:
    """
    Activities newest first.

    Args:
        activity_filter: 'hafazan', 'murajaah', 'completed', 'incomplete' or None for all
    """
    if activity_filter and activity_filter not in ACTIVITY_FILTERS:
        raise ValidationError(f"Invalid filter: {activity_filter}. Must be one of: {', '.join(ACTIVITY_FILTERS)}")

    activities = repo.load_activities()
    if activity_filter in SESSION_TYPES:
        activities = [a for a in activities if a.session_type == activity_filter]
    elif activity_filter == 'completed':
        activities = [a for a in activities if a.completed]
    elif activity_filter == 'incomplete':
        activities = [a for a in activities if not a.completed]

    return sorted(activities, key=lambda a: a.start_time, reverse=True)


# ============================================================================
# DRILL SESSIONS
# ============================================================================

def _new_activity_id(repo, now: datetime) -> str:
    taken = {a.id for a in repo.load_activities()}
    candidate = int(now.timestamp() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def _elapsed_seconds(activity: Activity, now: datetime) -> int:
    return max(0, int((now - activity.start_time).total_seconds()))


def start_session(repo, settings: Settings, task: Dict[str, Any], now: datetime = None,
                  surah_name: str = '') -> Activity:
    """
    Open a drill session for a hafazan or murajaah task.

    The task is a today's-task dict: plan_id, surah_number, session_type and
    either ayah_number or start_ayah/end_ayah.
    """
    now = aware_or_now(now)

    session_type = task.get('session_type', 'hafazan')
    if session_type not in SESSION_TYPES:
        raise ValidationError(f"Invalid session type: {session_type}. Must be one of: {', '.join(SESSION_TYPES)}")
    for required in ('plan_id', 'surah_number'):
        if task.get(required) is None:
            raise ValidationError(f"Task is missing '{required}'")

    start_ayah = task.get('start_ayah')
    end_ayah = task.get('end_ayah')
    ayah_number = task.get('ayah_number')
    if start_ayah is None and ayah_number is None:
        raise ValidationError("Task needs either 'ayah_number' or 'start_ayah'/'end_ayah'")
    if start_ayah is not None and end_ayah is None:
        end_ayah = start_ayah

    activity = Activity(
        id=_new_activity_id(repo, now),
        plan_id=str(task['plan_id']),
        surah_number=int(task['surah_number']),
        session_type=session_type,
        start_time=now,
        total_reps=settings.for_session(session_type).total_reps,
        surah_name=surah_name or task.get('surah_name', ''),
        ayah_number=ayah_number,
        start_ayah=start_ayah,
        end_ayah=end_ayah,
        is_range=start_ayah is not None and start_ayah != end_ayah,
    )
    add_activity(repo, activity)

    logger.info(f"Session started: activity_id='{activity.id}', type={session_type}, "
                f"plan_id='{activity.plan_id}', total_reps={activity.total_reps}")
    return activity


def record_repetition(repo, activity_id: str, now: datetime = None) -> Optional[Activity]:
    """Count one finished repetition, never past total_reps."""
    now = aware_or_now(now)

    activity = get_activity(repo, activity_id)
    if activity is None:
        return None
    return update_activity(repo, activity_id,
                           completed_reps=min(activity.completed_reps + 1, activity.total_reps),
                           duration=_elapsed_seconds(activity, now))


def abandon_session(repo, activity_id: str, now: datetime = None) -> Optional[Activity]:
    """Leave a session incomplete; the repetition count is kept for resuming."""
    now = aware_or_now(now)

    activity = get_activity(repo, activity_id)
    if activity is None:
        return None

    logger.info(f"Session abandoned: activity_id='{activity_id}', "
                f"reps={activity.completed_reps}/{activity.total_reps}")
    return update_activity(repo, activity_id, completed=False,
                           duration=_elapsed_seconds(activity, now))


def reset_session(repo, activity_id: str, now: datetime = None) -> Optional[Activity]:
    now = aware_or_now(now)
    return update_activity(repo, activity_id, completed_reps=0, completed=False,
                           duration=0, start_time=now)


def complete_session(repo, settings: Settings, activity_id: str, now: datetime = None) -> Optional[Activity]:
    """
    Finish a session and apply its effect.

    - hafazan: the ayah is marked memorized (which books its range's murajaah)
    - murajaah of a range: the range review is recorded and rebooked
    - murajaah of a single ayah: recorded under the ayah's own history
    """
    now = aware_or_now(now)

    activity = get_activity(repo, activity_id)
    if activity is None:
        logger.warning(f"complete_session ignored: activity_id='{activity_id}' not found")
        return None
    if activity.completed:
        logger.warning(f"complete_session ignored: activity_id='{activity_id}' already completed")
        return activity

    activity = update_activity(repo, activity_id, completed=True,
                               completed_reps=activity.total_reps,
                               duration=_elapsed_seconds(activity, now))

    if activity.session_type == 'hafazan':
        ayah = activity.ayah_number if activity.ayah_number is not None else activity.start_ayah
        mark_memorized(repo, settings, activity.plan_id, activity.surah_number, ayah, when=now)
    elif activity.start_ayah is not None:
        on_review_completed(repo, settings, activity.plan_id, activity.surah_number,
                            activity.start_ayah, activity.end_ayah, when=now)
    else:
        mark_murajaah_complete(repo, settings, activity.plan_id, activity.surah_number,
                               activity.ayah_number, when=now)

    logger.info(f"Session completed: activity_id='{activity_id}', type={activity.session_type}, "
                f"duration={activity.duration}s")
    return activity


def resume_position(completed_reps: int, session_settings: SessionSettings) -> Dict[str, Any]:
    """
    Where a drill resumes after completed_reps repetitions.

    Each set is reps_per_set = visible + hidden repetitions; the first
    repetitions_per_visible_set of a set are recited with the text visible.

    Example (2 visible + 1 hidden per set):
        completed_reps=4 -> {'set': 2, 'repetition': 2, 'phase': 'visible'}
        completed_reps=5 -> {'set': 2, 'repetition': 3, 'phase': 'hidden'}
    """
    reps_per_set = max(session_settings.reps_per_set, 1)
    repetition = completed_reps % reps_per_set + 1
    phase = 'visible' if repetition <= session_settings.repetitions_per_visible_set else 'hidden'

    return {
        'set': completed_reps // reps_per_set + 1,
        'repetition': repetition,
        'phase': phase,
    }
