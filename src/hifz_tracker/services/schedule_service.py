"""
Schedule service for hafazan plans.

Turns a surah length, a start date and a pace into the day-by-day list of
ayahs to memorize. The result is static: it is computed once when a plan is
created and never regenerated.
"""

from datetime import date, datetime, timedelta
from typing import List, Union

from hifz_tracker.models import ScheduleEntry, parse_date


def build_schedule(total_ayahs: int, start_date: Union[date, datetime, str],
                   ayahs_per_day: int, surah_number: int) -> List[ScheduleEntry]:
    """
    Pure function assigning ayahs 1..total_ayahs to consecutive calendar days.

    Each day starting at start_date receives `ayahs_per_day` consecutive ayahs;
    the final day receives whatever remains. Only the calendar date of
    start_date matters, never its time of day.

    Args:
        total_ayahs: Number of ayahs in the surah
        start_date: First day of the plan
        ayahs_per_day: Pace; values below 1 are treated as 1
        surah_number: Surah the ayahs belong to

    Returns:
        Ordered list of ScheduleEntry, one per ayah

    Example:
        >>> [(e.date.day, e.ayah_number) for e in build_schedule(7, date(2024, 1, 1), 3, 1)]
        [(1, 1), (1, 2), (1, 3), (2, 4), (2, 5), (2, 6), (3, 7)]
    """
    day = parse_date(start_date)
    pace = max(1, int(ayahs_per_day))

    schedule = []
    for ayah_number in range(1, max(0, int(total_ayahs)) + 1):
        day_offset = (ayah_number - 1) // pace
        schedule.append(ScheduleEntry(
            date=day + timedelta(days=day_offset),
            surah_number=surah_number,
            ayah_number=ayah_number,
        ))

    return schedule
