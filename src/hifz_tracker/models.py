"""
Typed records for plans, progress, review schedules, settings and activities.

Every record converts to and from the JSON-serializable dict shape that is
persisted in the key-value store. Dates are stored as ISO 'YYYY-MM-DD'
strings, timestamps as ISO datetimes.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
import copy

from hifz_tracker.config.config import DEFAULT_SETTINGS
from hifz_tracker.utils.timezone_utils import as_aware


def parse_date(value: Union[str, date, datetime]) -> date:
    """Accept a date, a datetime or an ISO string (date or datetime) and return the calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def parse_datetime(value: Union[str, datetime]) -> datetime:
    """Timezone-aware datetime; naive values are read in the configured zone."""
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    return as_aware(value)


def progress_key(plan_id: str, surah_number: int, ayah_number: int) -> str:
    return f"{plan_id}_{surah_number}_{ayah_number}"


def range_key(plan_id: str, surah_number: int, start_ayah: int, end_ayah: int) -> str:
    return f"{plan_id}_{surah_number}_{start_ayah}_{end_ayah}"


# ============================================================================
# SCHEDULE
# ============================================================================

@dataclass(frozen=True)
class ScheduleEntry:
    """One ayah assigned to one calendar day of a plan's hafazan schedule."""

    date: date
    surah_number: int
    ayah_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'surah_number': self.surah_number,
            'ayah_number': self.ayah_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleEntry':
        return cls(
            date=parse_date(data['date']),
            surah_number=int(data['surah_number']),
            ayah_number=int(data['ayah_number']),
        )


@dataclass(frozen=True)
class SingleVerse:
    """Review target left over from per-ayah murajaah scheduling."""

    ayah: int

    @property
    def start(self) -> int:
        return self.ayah

    @property
    def end(self) -> int:
        return self.ayah

    def history_key(self, plan_id: str, surah_number: int) -> str:
        return progress_key(plan_id, surah_number, self.ayah)

    def to_fields(self) -> Dict[str, int]:
        return {'ayah_number': self.ayah}


@dataclass(frozen=True)
class VerseRange:
    """Review target covering consecutive ayahs start..end (inclusive)."""

    start: int
    end: int

    def history_key(self, plan_id: str, surah_number: int) -> str:
        return range_key(plan_id, surah_number, self.start, self.end)

    def to_fields(self) -> Dict[str, int]:
        return {'start_ayah': self.start, 'end_ayah': self.end}


ReviewTarget = Union[SingleVerse, VerseRange]


@dataclass(frozen=True)
class ReviewScheduleEntry:
    """A murajaah session booked for a given moment."""

    date: datetime
    surah_number: int
    target: ReviewTarget
    range_key: str

    def matches(self, surah_number: int, start_ayah: int, end_ayah: int) -> bool:
        return (isinstance(self.target, VerseRange)
                and self.surah_number == surah_number
                and self.target.start == start_ayah
                and self.target.end == end_ayah)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'date': self.date.isoformat(),
            'surah_number': self.surah_number,
            'type': 'murajaah',
            'range_key': self.range_key,
        }
        data.update(self.target.to_fields())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReviewScheduleEntry':
        if data.get('start_ayah') and data.get('end_ayah'):
            target = VerseRange(int(data['start_ayah']), int(data['end_ayah']))
        else:
            target = SingleVerse(int(data['ayah_number']))
        return cls(
            date=parse_datetime(data['date']),
            surah_number=int(data['surah_number']),
            target=target,
            range_key=data.get('range_key', ''),
        )


# ============================================================================
# PLAN
# ============================================================================

@dataclass
class Plan:
    id: str
    surah_number: int
    surah_name: str
    surah_name_arabic: str
    total_ayahs: int
    start_date: date
    ayahs_per_day: int
    schedule: List[ScheduleEntry] = field(default_factory=list)
    review_schedule: List[ReviewScheduleEntry] = field(default_factory=list)
    created_at: Optional[datetime] = None
    status: str = 'in-progress'
    completed_at: Optional[datetime] = None
    days_early: Optional[int] = None
    completed_early: Optional[bool] = None

    @property
    def original_end_date(self) -> Optional[date]:
        return self.schedule[-1].date if self.schedule else None

    def to_dict(self, active: Optional[bool] = None) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'surah_number': self.surah_number,
            'surah_name': self.surah_name,
            'surah_name_arabic': self.surah_name_arabic,
            'total_ayahs': self.total_ayahs,
            'start_date': self.start_date.isoformat(),
            'ayahs_per_day': self.ayahs_per_day,
            'schedule': [entry.to_dict() for entry in self.schedule],
            'review_schedule': [entry.to_dict() for entry in self.review_schedule],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'status': self.status,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'days_early': self.days_early,
            'completed_early': self.completed_early,
        }
        if active is not None:
            data['active'] = active
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Plan':
        return cls(
            id=str(data['id']),
            surah_number=int(data['surah_number']),
            surah_name=data.get('surah_name', ''),
            surah_name_arabic=data.get('surah_name_arabic', ''),
            total_ayahs=int(data['total_ayahs']),
            start_date=parse_date(data['start_date']),
            ayahs_per_day=int(data.get('ayahs_per_day', 1)),
            schedule=[ScheduleEntry.from_dict(e) for e in data.get('schedule', [])],
            review_schedule=[ReviewScheduleEntry.from_dict(e) for e in data.get('review_schedule', [])],
            created_at=parse_datetime(data['created_at']) if data.get('created_at') else None,
            status=data.get('status', 'in-progress'),
            completed_at=parse_datetime(data['completed_at']) if data.get('completed_at') else None,
            days_early=data.get('days_early'),
            completed_early=data.get('completed_early'),
        )


@dataclass
class PlanBook:
    """All plans plus the single active-plan reference."""

    plans: List[Plan] = field(default_factory=list)
    active_plan_id: Optional[str] = None

    def find(self, plan_id: str) -> Optional[Plan]:
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'active_plan_id': self.active_plan_id,
            'plans': [plan.to_dict() for plan in self.plans],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PlanBook':
        if not data:
            return cls()
        return cls(
            plans=[Plan.from_dict(p) for p in data.get('plans', [])],
            active_plan_id=data.get('active_plan_id'),
        )


# ============================================================================
# PROGRESS AND REVIEW HISTORY
# ============================================================================

@dataclass(frozen=True)
class VerseProgress:
    plan_id: str
    surah_number: int
    ayah_number: int
    memorized: bool
    memorized_at: datetime
    date: date
    type: str = 'hafazan'

    @property
    def key(self) -> str:
        return progress_key(self.plan_id, self.surah_number, self.ayah_number)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'plan_id': self.plan_id,
            'surah_number': self.surah_number,
            'ayah_number': self.ayah_number,
            'memorized': self.memorized,
            'memorized_at': self.memorized_at.isoformat(),
            'date': self.date.isoformat(),
            'type': self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VerseProgress':
        return cls(
            plan_id=str(data['plan_id']),
            surah_number=int(data['surah_number']),
            ayah_number=int(data['ayah_number']),
            memorized=bool(data.get('memorized', True)),
            memorized_at=parse_datetime(data['memorized_at']),
            date=parse_date(data['date']),
            type=data.get('type', 'hafazan'),
        )


@dataclass(frozen=True)
class ReviewRange:
    """Consecutive memorized ayahs of one surah, derived on demand."""

    surah_number: int
    start_ayah: int
    end_ayah: int
    ayahs: tuple = ()

    @property
    def size(self) -> int:
        return self.end_ayah - self.start_ayah + 1

    def contains(self, surah_number: int, ayah_number: int) -> bool:
        return self.surah_number == surah_number and self.start_ayah <= ayah_number <= self.end_ayah

    def to_dict(self) -> Dict[str, Any]:
        return {
            'surah_number': self.surah_number,
            'start_ayah': self.start_ayah,
            'end_ayah': self.end_ayah,
            'ayahs': [a.ayah_number for a in self.ayahs],
        }


# ============================================================================
# SETTINGS
# ============================================================================

@dataclass(frozen=True)
class SessionSettings:
    """Visible/hidden repetition sets for one session type."""

    visible_sets: int
    repetitions_per_visible_set: int
    hidden_sets: int
    repetitions_per_hidden_set: int

    @property
    def total_reps(self) -> int:
        return (self.visible_sets * self.repetitions_per_visible_set
                + self.hidden_sets * self.repetitions_per_hidden_set)

    @property
    def reps_per_set(self) -> int:
        return self.repetitions_per_visible_set + self.repetitions_per_hidden_set

    @property
    def total_sets(self) -> int:
        return max(self.visible_sets, self.hidden_sets)


@dataclass(frozen=True)
class GeneralSettings:
    auto_play_audio: bool
    show_audio_player: bool
    show_transliteration: bool
    show_translation: bool
    enable_murajaah: bool
    murajaah_frequency: int
    murajaah_range_size: int


@dataclass(frozen=True)
class Settings:
    hafazan: SessionSettings
    murajaah: SessionSettings
    general: GeneralSettings

    @property
    def murajaah_frequency(self) -> int:
        return self.general.murajaah_frequency

    @property
    def murajaah_range_size(self) -> int:
        return self.general.murajaah_range_size

    def for_session(self, session_type: str) -> SessionSettings:
        return self.murajaah if session_type == 'murajaah' else self.hafazan

    def to_dict(self) -> Dict[str, Any]:
        return {
            section: {f.name: getattr(getattr(self, section), f.name)
                      for f in fields(getattr(self, section))}
            for section in ('hafazan', 'murajaah', 'general')
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> 'Settings':
        """Build settings from a (possibly partial) dict merged over the defaults."""
        merged = copy.deepcopy(DEFAULT_SETTINGS)
        for section, values in (data or {}).items():
            if section in merged and isinstance(values, dict):
                merged[section].update({k: v for k, v in values.items() if k in merged[section]})
        return cls(
            hafazan=SessionSettings(**merged['hafazan']),
            murajaah=SessionSettings(**merged['murajaah']),
            general=GeneralSettings(**merged['general']),
        )


# ============================================================================
# ACTIVITY
# ============================================================================

@dataclass
class Activity:
    """Audit/resume record of one drill session."""

    id: str
    plan_id: str
    surah_number: int
    session_type: str
    start_time: datetime
    total_reps: int
    surah_name: str = ''
    ayah_number: Optional[int] = None
    start_ayah: Optional[int] = None
    end_ayah: Optional[int] = None
    is_range: bool = False
    completed_reps: int = 0
    completed: bool = False
    duration: int = 0  # seconds

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['start_time'] = self.start_time.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Activity':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values['start_time'] = parse_datetime(values['start_time'])
        return cls(**values)

    def updated(self, **changes) -> 'Activity':
        return replace(self, **changes)
