"""
Murajaah (review) scheduling service.

Memorized ayahs are reviewed in ranges: maximal runs of consecutive memorized
ayahs, cut into chunks of at most `murajaah_range_size` ayahs. Ranges have no
stored identity; they are re-derived from the progress records on every call
(O(memorized ayahs)), because catch-up work can complete ayahs out of
order and shift range boundaries. The (surah, start, end) triple is the
natural key under which a range's bookings and history are kept.

Each range carries one recurring booking in the plan's review_schedule. A
completed review appends to the range's history and books the next review
`murajaah_frequency` days after the completion.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
import logging

from hifz_tracker.models import (
    Plan, ReviewRange, ReviewScheduleEntry, Settings, VerseProgress, VerseRange,
    progress_key, range_key,
)
from hifz_tracker.middleware.metrics import reviews_completed_total
from hifz_tracker.services.progress_service import get_memorized_ranges
from hifz_tracker.utils.timezone_utils import as_aware, aware_or_now

logger = logging.getLogger(__name__)

DEFAULT_RANGE_SIZE = 5


def get_review_ranges(repo, plan_id: str, max_size: int = None, settings: Settings = None,
                      progress: Dict[str, VerseProgress] = None) -> List[ReviewRange]:
    """
    Cut the plan's memorized runs into review ranges of at most max_size ayahs.

    max_size defaults to settings.murajaah_range_size (5 without settings).
    A 12-ayah run with max_size 5 gives ranges of 5, 5 and 2 ayahs; a run of
    exactly max_size is kept whole.
    """
    if not max_size:
        max_size = (settings.murajaah_range_size if settings else None) or DEFAULT_RANGE_SIZE

    review_ranges = []
    for run in get_memorized_ranges(repo, plan_id, progress):
        if run.size <= max_size:
            review_ranges.append(run)
            continue

        for start in range(run.start_ayah, run.end_ayah + 1, max_size):
            end = min(start + max_size - 1, run.end_ayah)
            review_ranges.append(ReviewRange(
                surah_number=run.surah_number,
                start_ayah=start,
                end_ayah=end,
                ayahs=tuple(a for a in run.ayahs if start <= a.ayah_number <= end),
            ))

    return review_ranges


def _book_review(plan: Plan, surah_number: int, start_ayah: int, end_ayah: int,
                 review_date: datetime, now: datetime) -> ReviewScheduleEntry:
    """Replace the range's future bookings with one at review_date; past bookings stay as history."""
    plan.review_schedule = [
        entry for entry in plan.review_schedule
        if not (entry.matches(surah_number, start_ayah, end_ayah) and entry.date > now)
    ]

    entry = ReviewScheduleEntry(
        date=review_date,
        surah_number=surah_number,
        target=VerseRange(start_ayah, end_ayah),
        range_key=range_key(plan.id, surah_number, start_ayah, end_ayah),
    )
    plan.review_schedule.append(entry)
    return entry


def _supersede_regrouped(plan: Plan, review_ranges: List[ReviewRange], surah_number: int,
                         now: datetime) -> Tuple[int, Dict[Tuple[int, int], datetime]]:
    """
    Drop the surah's future bookings for ranges that no longer exist.

    A new ayah can join two runs or shift every chunk boundary of a run, so
    after regrouping the old bookings may name ranges that are gone. Their
    ayahs must stay booked: every current range overlapping a dropped booking,
    and not already booked, is returned with the earliest date those ayahs
    were due.

    Returns:
        (number of dropped bookings, {(start_ayah, end_ayah): due date})
    """
    current = {(r.start_ayah, r.end_ayah) for r in review_ranges if r.surah_number == surah_number}

    def in_surah_future(entry):
        return (isinstance(entry.target, VerseRange)
                and entry.surah_number == surah_number
                and entry.date > now)

    kept = []
    dropped = []
    for entry in plan.review_schedule:
        if in_surah_future(entry) and (entry.target.start, entry.target.end) not in current:
            dropped.append(entry)
        else:
            kept.append(entry)
    plan.review_schedule = kept

    booked = {(e.target.start, e.target.end) for e in kept if in_surah_future(e)}
    rebook = {}
    for entry in dropped:
        for start, end in current - booked:
            if start <= entry.target.end and end >= entry.target.start:
                due = rebook.get((start, end))
                if due is None or entry.date < due:
                    rebook[(start, end)] = entry.date
    return len(dropped), rebook


def schedule_range_review(repo, plan_id: str, surah_number: int, start_ayah: int, end_ayah: int,
                          review_date: datetime, now: datetime = None) -> Optional[ReviewScheduleEntry]:
    """
    Upsert the single future booking for one exact range.

    Any booking for the same range dated after `now` is removed first, so two
    calls in a row leave only the second date. Returns None if the plan is gone.
    """
    now = aware_or_now(now)
    review_date = as_aware(review_date)

    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        logger.warning(f"schedule_range_review ignored: plan_id='{plan_id}' not found")
        return None

    entry = _book_review(plan, surah_number, start_ayah, end_ayah, review_date, now)
    repo.save_plans(book)

    logger.info(f"Murajaah booked: plan_id='{plan_id}', surah={surah_number}, "
                f"ayahs={start_ayah}-{end_ayah}, date={review_date.isoformat()}")
    return entry


def on_verse_memorized(repo, settings: Settings, plan_id: str, surah_number: int,
                       ayah_number: int, when: datetime) -> Optional[ReviewScheduleEntry]:
    """
    Book the first murajaah of the range that now contains the memorized ayah.

    The review falls murajaah_frequency days after `when`. No-op when murajaah
    is disabled, the plan is gone, or no range contains the ayah.
    """
    if not settings.general.enable_murajaah:
        return None
    when = as_aware(when)

    book = repo.load_plans()
    plan = book.find(plan_id)
    if plan is None:
        return None

    review_ranges = get_review_ranges(repo, plan_id, settings=settings)
    containing = next(
        (r for r in review_ranges if r.contains(surah_number, ayah_number)),
        None
    )
    if containing is None:
        logger.warning(f"No review range contains surah={surah_number} ayah={ayah_number} "
                       f"for plan_id='{plan_id}'")
        return None

    review_date = when + timedelta(days=settings.murajaah_frequency)
    dropped, rebook = _supersede_regrouped(plan, review_ranges, surah_number, when)
    for (start_ayah, end_ayah), due in sorted(rebook.items()):
        if (start_ayah, end_ayah) != (containing.start_ayah, containing.end_ayah):
            _book_review(plan, surah_number, start_ayah, end_ayah, due, when)
    entry = _book_review(plan, containing.surah_number, containing.start_ayah,
                         containing.end_ayah, review_date, when)
    repo.save_plans(book)

    logger.info(f"Murajaah booked: plan_id='{plan_id}', surah={surah_number}, "
                f"ayahs={containing.start_ayah}-{containing.end_ayah}, date={review_date.isoformat()}, "
                f"superseded={dropped}, rebooked={len(rebook)}")
    return entry


def _append_session(repo, key: str, when: datetime, **extra) -> None:
    sessions = repo.load_review_sessions()
    history = sessions.setdefault(key, {'sessions': []})
    session = {'completed_at': when.isoformat(), 'date': when.date().isoformat()}
    session.update(extra)
    history['sessions'].append(session)
    repo.save_review_sessions(sessions)


def on_review_completed(repo, settings: Settings, plan_id: str, surah_number: int,
                        start_ayah: int, end_ayah: int, when: datetime = None) -> Optional[ReviewScheduleEntry]:
    """
    Record a completed range murajaah and book the same range again.

    Reviews recur indefinitely: the next one is always murajaah_frequency
    days after this completion.
    """
    when = aware_or_now(when)

    if repo.load_plans().find(plan_id) is None:
        logger.warning(f"on_review_completed ignored: plan_id='{plan_id}' not found")
        return None

    _append_session(repo, range_key(plan_id, surah_number, start_ayah, end_ayah), when,
                    start_ayah=start_ayah, end_ayah=end_ayah)
    reviews_completed_total.labels(target='range').inc()

    next_date = when + timedelta(days=settings.murajaah_frequency)
    return schedule_range_review(repo, plan_id, surah_number, start_ayah, end_ayah, next_date, now=when)


def mark_murajaah_complete(repo, settings: Settings, plan_id: str, surah_number: int,
                           ayah_number: int, when: datetime = None) -> Optional[ReviewScheduleEntry]:
    """
    Record a single-ayah murajaah and book the range that currently holds the ayah.
    """
    when = aware_or_now(when)

    if repo.load_plans().find(plan_id) is None:
        logger.warning(f"mark_murajaah_complete ignored: plan_id='{plan_id}' not found")
        return None

    _append_session(repo, progress_key(plan_id, surah_number, ayah_number), when)
    reviews_completed_total.labels(target='single').inc()

    containing = next(
        (r for r in get_review_ranges(repo, plan_id, settings=settings)
         if r.contains(surah_number, ayah_number)),
        None
    )
    if containing is None:
        return None

    next_date = when + timedelta(days=settings.murajaah_frequency)
    return schedule_range_review(repo, plan_id, surah_number, containing.start_ayah,
                                 containing.end_ayah, next_date, now=when)


def get_range_history(repo, plan_id: str, surah_number: int, start_ayah: int, end_ayah: int) -> Dict:
    return repo.load_review_sessions().get(
        range_key(plan_id, surah_number, start_ayah, end_ayah), {'sessions': []})


def get_verse_review_history(repo, plan_id: str, surah_number: int, ayah_number: int) -> Dict:
    return repo.load_review_sessions().get(
        progress_key(plan_id, surah_number, ayah_number), {'sessions': []})


def find_session_on(history: Dict, day: date) -> Optional[Dict]:
    """First recorded session completed on the given calendar day."""
    for session in history.get('sessions', []):
        if datetime.fromisoformat(session['completed_at']).date() == day:
            return session
    return None
