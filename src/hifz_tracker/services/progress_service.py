"""
Progress service - per-ayah memorization state of a plan.

Records which ayahs have finished their hafazan drill and derives the runs of
consecutively memorized ayahs that murajaah ranges are cut from.
"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

from hifz_tracker.models import ReviewRange, Settings, VerseProgress, progress_key
from hifz_tracker.middleware.metrics import ayahs_memorized_total
from hifz_tracker.utils.timezone_utils import aware_or_now

logger = logging.getLogger(__name__)


def mark_memorized(repo, settings: Settings, plan_id: str, surah_number: int,
                   ayah_number: int, when: datetime = None) -> Optional[VerseProgress]:
    """
    Record an ayah as memorized and book the murajaah of the range now holding it.

    Re-marking the same ayah overwrites its record.

    Returns:
        The stored VerseProgress, or None if the plan no longer exists
    """
    from hifz_tracker.services.review_service import on_verse_memorized

    when = aware_or_now(when)

    if repo.load_plans().find(plan_id) is None:
        logger.warning(f"mark_memorized ignored: plan_id='{plan_id}' not found")
        return None

    record = VerseProgress(
        plan_id=plan_id,
        surah_number=surah_number,
        ayah_number=ayah_number,
        memorized=True,
        memorized_at=when,
        date=when.date(),
    )

    progress = repo.load_progress()
    progress[record.key] = record
    repo.save_progress(progress)

    ayahs_memorized_total.inc()
    logger.info(f"Ayah memorized: plan_id='{plan_id}', surah={surah_number}, ayah={ayah_number}")

    on_verse_memorized(repo, settings, plan_id, surah_number, ayah_number, when)
    return record


def is_memorized(repo, plan_id: str, surah_number: int, ayah_number: int,
                 progress: Dict[str, VerseProgress] = None) -> bool:
    if progress is None:
        progress = repo.load_progress()
    record = progress.get(progress_key(plan_id, surah_number, ayah_number))
    return bool(record and record.memorized)


def get_verse_completion_time(repo, plan_id: str, surah_number: int, ayah_number: int,
                              progress: Dict[str, VerseProgress] = None) -> Optional[datetime]:
    if progress is None:
        progress = repo.load_progress()
    record = progress.get(progress_key(plan_id, surah_number, ayah_number))
    return record.memorized_at if record else None


def get_completed_verses(repo, plan_id: str,
                         progress: Dict[str, VerseProgress] = None) -> List[VerseProgress]:
    """Unordered snapshot of the plan's memorized ayahs."""
    if progress is None:
        progress = repo.load_progress()
    return [record for record in progress.values()
            if record.plan_id == plan_id and record.memorized]


def get_memorized_ranges(repo, plan_id: str,
                         progress: Dict[str, VerseProgress] = None) -> List[ReviewRange]:
    """
    Merge memorized ayahs into maximal runs of consecutive ayah numbers.

    Ayahs of different surahs never merge, even when numerically adjacent.

    Example:
        memorized {1, 2, 3, 5, 6, 9} -> ranges 1-3, 5-6, 9-9
    """
    completed = sorted(get_completed_verses(repo, plan_id, progress),
                       key=lambda r: (r.surah_number, r.ayah_number))
    if not completed:
        return []

    ranges = []
    run = [completed[0]]
    for previous, current in zip(completed, completed[1:]):
        if (current.surah_number == previous.surah_number
                and current.ayah_number == previous.ayah_number + 1):
            run.append(current)
        else:
            ranges.append(_to_range(run))
            run = [current]
    ranges.append(_to_range(run))

    return ranges


def _to_range(run: List[VerseProgress]) -> ReviewRange:
    return ReviewRange(
        surah_number=run[0].surah_number,
        start_ayah=run[0].ayah_number,
        end_ayah=run[-1].ayah_number,
        ayahs=tuple(run),
    )


def get_progress(repo, plan_id: str) -> Dict:
    """Memorized/total counts for a plan; zeros when the plan is missing."""
    plan = repo.load_plans().find(plan_id)
    if plan is None:
        return {'completed': 0, 'total': 0, 'percentage': 0}

    completed = len(get_completed_verses(repo, plan_id))
    total = plan.total_ayahs
    percentage = (completed / total) * 100 if total > 0 else 0

    return {'completed': completed, 'total': total, 'percentage': percentage}


def get_calendar_data(repo, plan_id: str, month: int, year: int) -> Dict[int, List[Dict]]:
    """
    Schedule entries falling in one month, grouped by day of month.

    Args:
        month: 1..12

    Returns:
        {day: [{'surah_number', 'ayah_number', 'completed'}]}
    """
    plan = repo.load_plans().find(plan_id)
    if plan is None:
        return {}

    progress = repo.load_progress()
    calendar_data = {}
    for entry in plan.schedule:
        if entry.date.month == month and entry.date.year == year:
            calendar_data.setdefault(entry.date.day, []).append({
                'surah_number': entry.surah_number,
                'ayah_number': entry.ayah_number,
                'completed': is_memorized(repo, plan_id, entry.surah_number, entry.ayah_number, progress),
            })

    return calendar_data
