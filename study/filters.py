"""
List filters and default orderings shared by both backends.

The local backend applies these in memory; the remote backend translates the
same dataclasses into SQL predicates. Both must agree on membership and order.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from study.models import Course, DailyEntry, Note


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


@dataclass
class NoteFilters:
    course_id: Optional[str] = None
    understanding_level: Optional[int] = None
    flagged: Optional[bool] = None
    code_language: Optional[str] = None
    search: Optional[str] = None

    def matches(self, note: Note) -> bool:
        if self.course_id is not None and note.course_id != self.course_id:
            return False
        if self.understanding_level is not None and note.understanding_level != self.understanding_level:
            return False
        if self.flagged is not None and note.flag != self.flagged:
            return False
        if self.code_language is not None and note.code_language != self.code_language:
            return False
        if self.search:
            term = self.search.lower()
            if not (_contains(note.question, term)
                    or _contains(note.answer, term)
                    or _contains(note.code_snippet, term)):
                return False
        return True


@dataclass
class CourseFilters:
    search: Optional[str] = None
    instructor: Optional[str] = None

    def matches(self, course: Course) -> bool:
        if self.instructor is not None and course.instructor != self.instructor:
            return False
        if self.search:
            term = self.search.lower()
            if not (_contains(course.title, term) or _contains(course.instructor, term)):
                return False
        return True


@dataclass
class DailyEntryFilters:
    date: Optional[str] = None
    since: Optional[str] = None  # inclusive
    until: Optional[str] = None  # inclusive

    def matches(self, entry: DailyEntry) -> bool:
        if self.date is not None and entry.date != self.date:
            return False
        if self.since is not None and entry.date < self.since:
            return False
        if self.until is not None and entry.date > self.until:
            return False
        return True


def sort_notes(notes: Iterable[Note]) -> List[Note]:
    """Newest first; ties broken by question ascending."""
    ordered = sorted(notes, key=lambda n: n.question)
    ordered.sort(key=lambda n: n.created_at, reverse=True)
    return ordered


def sort_courses(courses: Iterable[Course]) -> List[Course]:
    """Title ascending; ties broken by creation time."""
    return sorted(courses, key=lambda c: (c.title, c.created_at))


def sort_daily_entries(entries: Iterable[DailyEntry]) -> List[DailyEntry]:
    """Most recent date first."""
    return sorted(entries, key=lambda e: e.date, reverse=True)


def visible_notes(notes: Iterable[Note], courses: Iterable[Course]) -> List[Note]:
    """Drop notes whose course no longer exists (deleted elsewhere)."""
    course_ids = {c.id for c in courses}
    return [n for n in notes if n.course_id in course_ids]
