"""Overview and chart analytics for the study tracker."""

from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from study.models import Course, DailyEntry, Note, clamp_level

LEVELS = (1, 2, 3, 4, 5)
MOOD_LABELS = {
    1: 'Very low',
    2: 'Low',
    3: 'Neutral',
    4: 'Good',
    5: 'Great',
}


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def _by_date(entries: Sequence[DailyEntry]) -> List[DailyEntry]:
    """Entries with a valid date, oldest first."""
    return sorted(
        (e for e in entries if _parse_date(e.date) is not None),
        key=lambda e: e.date,
    )


def overview_stats(
    courses: Sequence[Course],
    notes: Sequence[Note],
    entries: Sequence[DailyEntry],
    today: Optional[date] = None,
    window_days: int = 30,
) -> Dict:
    """
    Headline numbers for the overview page.

    Study time only counts entries from the last `window_days` days.
    """
    today = today or date.today()
    cutoff = today - timedelta(days=window_days)
    avg = (
        round(sum(clamp_level(n.understanding_level) for n in notes) / len(notes), 1)
        if notes else 0.0
    )
    minutes = sum(
        e.study_time for e in entries
        if (_parse_date(e.date) or date.min) >= cutoff
    )
    return {
        'total_courses': len(courses),
        'total_notes': len(notes),
        'avg_understanding': avg,
        'total_study_minutes': minutes,
        'total_study_hours': round(minutes / 60),
    }


def understanding_distribution(notes: Sequence[Note]) -> Dict:
    """
    Count of notes per understanding level.

    Returns:
        {
            levels: [{level, count, percent}, ...],  # always levels 1..5
            total, at_risk (1-2), strong (4-5), avg
        }
    """
    counts = {lvl: 0 for lvl in LEVELS}
    for note in notes:
        counts[clamp_level(note.understanding_level)] += 1
    total = sum(counts.values())

    levels = [
        {
            'level': lvl,
            'count': counts[lvl],
            'percent': round(counts[lvl] / total * 100, 1) if total else 0.0,
        }
        for lvl in LEVELS
    ]
    avg = round(sum(lvl * c for lvl, c in counts.items()) / total, 1) if total else 0.0
    return {
        'levels': levels,
        'total': total,
        'at_risk': counts[1] + counts[2],
        'strong': counts[4] + counts[5],
        'avg': avg,
    }


def course_progress(
    courses: Sequence[Course],
    notes: Sequence[Note],
    top_n: int = 6,
) -> Dict:
    """Average understanding per course, best first. Courses without notes are left out."""
    by_course: Dict[str, List[int]] = {}
    for note in notes:
        by_course.setdefault(note.course_id, []).append(clamp_level(note.understanding_level))

    rows = []
    for course in courses:
        levels = by_course.get(course.id)
        if not levels:
            continue
        rows.append({
            'course_id': course.id,
            'title': course.title,
            'understanding': round(sum(levels) / len(levels), 1),
            'note_count': len(levels),
        })
    rows.sort(key=lambda r: r['understanding'], reverse=True)
    rows = rows[:top_n]

    if not rows:
        return {
            'courses': [],
            'best_course': None,
            'avg_understanding': 0.0,
            'total_notes': 0,
            'excellent_courses': 0,
            'struggling_courses': 0,
        }
    return {
        'courses': rows,
        'best_course': rows[0]['title'],
        'avg_understanding': round(sum(r['understanding'] for r in rows) / len(rows), 1),
        'total_notes': sum(r['note_count'] for r in rows),
        'excellent_courses': sum(1 for r in rows if r['understanding'] >= 4),
        'struggling_courses': sum(1 for r in rows if r['understanding'] < 3),
    }


def _trend(recent: List[float], previous: List[float], up: str, down: str) -> str:
    recent_avg = sum(recent) / len(recent) if recent else 0.0
    previous_avg = sum(previous) / len(previous) if previous else 0.0
    # 10% dead band so small fluctuations read as stable
    if recent_avg > previous_avg * 1.1:
        return up
    if recent_avg < previous_avg * 0.9:
        return down
    return 'stable'


def _split_weeks(entries: List[DailyEntry], today: date):
    """(last 7 calendar days, the 7 days before that)"""
    week_start = today - timedelta(days=6)
    fortnight_start = today - timedelta(days=13)
    recent, previous = [], []
    for e in entries:
        d = _parse_date(e.date)
        if d >= week_start:
            recent.append(e)
        elif d >= fortnight_start:
            previous.append(e)
    return recent, previous


def study_time_stats(
    entries: Sequence[DailyEntry],
    today: Optional[date] = None,
) -> Optional[Dict]:
    """Insights for the study time chart over the last 14 entries. None without entries."""
    today = today or date.today()
    recent14 = _by_date(entries)[-14:]
    if not recent14:
        return None

    hours = [round(e.study_time / 60, 1) for e in recent14]
    total = round(sum(hours), 1)
    best = max(range(len(recent14)), key=lambda i: (hours[i], -i))
    fortnight_start = today - timedelta(days=13)
    studied = {
        e.date for e, h in zip(recent14, hours)
        if h > 0 and _parse_date(e.date) >= fortnight_start
    }
    last_week, prev_week = _split_weeks(recent14, today)

    return {
        'days': [{'date': e.date, 'minutes': e.study_time, 'hours': h} for e, h in zip(recent14, hours)],
        'total_hours': total,
        'avg_hours_per_day': round(total / len(recent14), 1),
        'best_day': recent14[best].date,
        'best_hours': hours[best],
        'study_days': sum(1 for h in hours if h > 0),
        'consistency_pct': round(len(studied) / 14 * 100),
        'weekly_trend': _trend(
            [e.study_time / 60 for e in last_week],
            [e.study_time / 60 for e in prev_week],
            'increasing', 'decreasing',
        ),
    }


def mood_stats(
    entries: Sequence[DailyEntry],
    today: Optional[date] = None,
) -> Optional[Dict]:
    """Insights for the mood chart over the last 21 entries with a valid mood."""
    today = today or date.today()
    rated = [e for e in _by_date(entries) if 1 <= e.mood <= 5][-21:]
    if not rated:
        return None

    moods = [e.mood for e in rated]
    # first occurrence wins on ties
    best = max(range(len(rated)), key=lambda i: (moods[i], -i))
    worst = min(range(len(rated)), key=lambda i: (moods[i], i))

    counts: Dict[int, int] = {}
    for m in moods:
        counts[m] = counts.get(m, 0) + 1
    dominant, top = 3, 0
    for mood in sorted(counts):
        if counts[mood] > top:
            dominant, top = mood, counts[mood]

    last_week, prev_week = _split_weeks(rated, today)
    return {
        'avg_mood': round(sum(moods) / len(moods), 1),
        'best_day': rated[best].date,
        'worst_day': rated[worst].date,
        'dominant_mood': dominant,
        'dominant_mood_label': MOOD_LABELS[dominant],
        'weekly_trend': _trend(
            [e.mood for e in last_week],
            [e.mood for e in prev_week],
            'improving', 'declining',
        ),
    }
