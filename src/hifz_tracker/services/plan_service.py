import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from hifz_tracker.config.config import MAX_AYAHS_PER_DAY, MIN_AYAHS_PER_DAY
from hifz_tracker.middleware.metrics import plans_created_total
from hifz_tracker.models import Plan
from hifz_tracker.services.schedule_service import build_schedule
from hifz_tracker.utils.errors import ValidationError
from hifz_tracker.utils.timezone_utils import aware_or_now

logger = logging.getLogger(__name__)

# Fields callers may change through update_plan
UPDATABLE_FIELDS = {'surah_name', 'surah_name_arabic', 'status', 'completed_at',
                    'days_early', 'completed_early'}


def _new_plan_id(existing_ids, now: datetime) -> str:
    """Creation-time milliseconds, bumped past any id already taken."""
    candidate = int(now.timestamp() * 1000)
    while str(candidate) in existing_ids:
        candidate += 1
    return str(candidate)


def create_plan(repo, chapter_meta: Dict, start_date: Union[date, datetime, str],
                ayahs_per_day: int = 1, now: datetime = None) -> Plan:
    """
    Create a hafazan plan for one surah and make it the active plan.

    Args:
        chapter_meta: {'number', 'verse_count', 'name', 'native_name'} from the content provider
        start_date: Day the first ayahs are due
        ayahs_per_day: Pace, 1..10

    Raises:
        ValidationError: pace out of range or empty surah
    """
    now = aware_or_now(now)

    try:
        ayahs_per_day = int(ayahs_per_day)
    except (TypeError, ValueError):
        raise ValidationError(f"ayahs_per_day must be an integer, got {ayahs_per_day!r}")
    if not MIN_AYAHS_PER_DAY <= ayahs_per_day <= MAX_AYAHS_PER_DAY:
        raise ValidationError(
            f"ayahs_per_day must be between {MIN_AYAHS_PER_DAY} and {MAX_AYAHS_PER_DAY}, got {ayahs_per_day}")

    total_ayahs = int(chapter_meta.get('verse_count') or 0)
    if total_ayahs < 1:
        raise ValidationError(f"Surah {chapter_meta.get('number')} has no ayahs to schedule")

    surah_number = int(chapter_meta['number'])
    schedule = build_schedule(total_ayahs, start_date, ayahs_per_day, surah_number)

    book = repo.load_plans()
    plan = Plan(
        id=_new_plan_id({p.id for p in book.plans}, now),
        surah_number=surah_number,
        surah_name=chapter_meta.get('name', ''),
        surah_name_arabic=chapter_meta.get('native_name', ''),
        total_ayahs=total_ayahs,
        start_date=schedule[0].date,
        ayahs_per_day=ayahs_per_day,
        schedule=schedule,
        created_at=now,
    )
    book.plans.append(plan)
    book.active_plan_id = plan.id
    repo.save_plans(book)

    plans_created_total.inc()
    logger.info(f"Plan created: plan_id='{plan.id}', surah={surah_number}, ayahs={total_ayahs}, "
                f"pace={ayahs_per_day}/day, ends={plan.original_end_date.isoformat()}")
    return plan


def list_plans(repo) -> List[Plan]:
    return repo.load_plans().plans


def get_plan(repo, plan_id: str) -> Optional[Plan]:
    return repo.load_plans().find(plan_id)


def get_active_plan(repo) -> Optional[Plan]:
    book = repo.load_plans()
    if book.active_plan_id is None:
        return None
    return book.find(book.active_plan_id)


def set_active_plan(repo, plan_id: str) -> Optional[Plan]:
    """Point the single active-plan reference at plan_id; None (and no change) if unknown."""
    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        return None

    book.active_plan_id = plan.id
    repo.save_plans(book)
    logger.info(f"Active plan set: plan_id='{plan_id}'")
    return plan


def update_plan(repo, plan_id: str, **changes) -> Optional[Plan]:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update plan fields: {', '.join(sorted(unknown))}")

    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        return None

    for name, value in changes.items():
        setattr(plan, name, value)
    repo.save_plans(book)
    return plan


def delete_plan(repo, plan_id: str) -> bool:
    book = repo.load_plans()
    remaining = [p for p in book.plans if p.id != plan_id]
    if len(remaining) == len(book.plans):
        return False

    book.plans = remaining
    if book.active_plan_id == plan_id:
        book.active_plan_id = None
    repo.save_plans(book)
    logger.info(f"Plan deleted: plan_id='{plan_id}'")
    return True
