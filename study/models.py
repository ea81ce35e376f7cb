"""Data models for the study tracker: Course, Note and DailyEntry dataclasses."""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from study.errors import ValidationViolation
from study.kinds import CodeLanguage, EntityKind

MIN_LEVEL = 1
MAX_LEVEL = 5
MAX_STUDY_MINUTES = 24 * 60

# Fields the store assigns itself; callers never write them.
SYSTEM_FIELDS = ('id', 'created_at', 'updated_at')


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Optional[datetime]) -> str:
    """Render a datetime as an ISO-8601 UTC string (naive values are taken as UTC)."""
    if value is None:
        return ''
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def clamp_level(value: float) -> int:
    """Round an understanding/mood value and clamp it into [1, 5]."""
    return max(MIN_LEVEL, min(MAX_LEVEL, int(round(value))))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_level(name: str, value: Any) -> int:
    if not _is_int(value) or not MIN_LEVEL <= value <= MAX_LEVEL:
        raise ValidationViolation(f"{name} must be an integer in [1, 5], got {value!r}")
    return value


def check_date(value: Any) -> str:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValidationViolation(f"date must be an ISO date (YYYY-MM-DD), got {value!r}")


def validate_fields(kind: EntityKind, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Structural checks on a (possibly partial) field dict.

    Only bounded ordinals and the date key are checked; business rules are
    enforced by the callers. Returns a normalized copy without system fields.
    """
    clean = {k: v for k, v in fields.items() if k not in SYSTEM_FIELDS}
    if kind == EntityKind.NOTES:
        if 'understanding_level' in clean:
            check_level('understanding_level', clean['understanding_level'])
        if 'code_language' in clean:
            clean['code_language'] = CodeLanguage.coerce(clean['code_language']).value
        if 'flag' in clean:
            clean['flag'] = bool(clean['flag'])
    elif kind == EntityKind.DAILY_ENTRIES:
        if 'mood' in clean:
            check_level('mood', clean['mood'])
        if 'study_time' in clean:
            minutes = clean['study_time']
            if not _is_int(minutes) or not 0 <= minutes <= MAX_STUDY_MINUTES:
                raise ValidationViolation(
                    f"study_time must be minutes in [0, {MAX_STUDY_MINUTES}], got {minutes!r}"
                )
        if 'date' in clean:
            clean['date'] = check_date(clean['date'])
    elif kind == EntityKind.COURSES:
        for key in ('links', 'topics'):
            if key in clean:
                clean[key] = [str(v) for v in (clean[key] or [])]
    return clean


@dataclass
class Course:
    """A course the user follows. Owns its notes by convention only."""
    id: str
    title: str = ''
    instructor: str = ''
    links: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Course':
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Note:
    """
    A question/answer note under a course.

    course_id is a lookup reference; the course may have been deleted.
    understanding_level is an ordinal in [1, 5].
    """
    id: str
    course_id: str
    question: str = ''
    answer: str = ''
    code_snippet: Optional[str] = None
    code_language: str = CodeLanguage.PLAINTEXT.value
    understanding_level: int = 3
    flag: bool = False
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Note':
        known = cls.__dataclass_fields__
        data = {k: v for k, v in data.items() if k in known}
        if 'code_language' in data:
            data['code_language'] = CodeLanguage.coerce(data['code_language']).value
        return cls(**data)


@dataclass
class DailyEntry:
    """Study minutes and mood for one calendar date. date is unique per user."""
    id: str
    date: str
    study_time: int = 0
    mood: int = 3
    notes: str = ''
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'DailyEntry':
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


MODEL_FOR_KIND = {
    EntityKind.COURSES: Course,
    EntityKind.NOTES: Note,
    EntityKind.DAILY_ENTRIES: DailyEntry,
}


def content_fields(entity) -> Dict[str, Any]:
    """User-owned fields of an entity, i.e. everything but id and timestamps."""
    return {k: v for k, v in entity.to_dict().items() if k not in SYSTEM_FIELDS}
