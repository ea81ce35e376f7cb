"""
Rootly study tracker CLI over the local (offline) store.

Usage:
    python -m study.cli [--storage PATH] courses
    python -m study.cli notes [--course ID] [--flagged] [--search TEXT]
    python -m study.cli entries
    python -m study.cli add-entry 2026-01-31 90 4 [--notes "..."]
    python -m study.cli review [--course ID] [--flagged] [--no-shuffle] [--limit N]
    python -m study.cli stats
    python -m study.cli reset [--keep-flag]
"""

import argparse
import logging
import sys
from pathlib import Path

from server.config import Settings
from study import analytics
from study.auth import AnonymousAuthClient
from study.context import DataAccess, DataContext
from study.errors import NotAuthenticated, StoreError
from study.filters import NoteFilters, visible_notes
from study.kv import JsonFileStorage
from study.mode import ModeResolver
from study.session import (
    CheckpointStore,
    ReviewSession,
    ReviewState,
    select_review_notes,
)
from study.storage import LocalStore, clear_local_data, reset_local_storage


def _offline(session):
    raise NotAuthenticated("the CLI only works on local storage")


def _local(args) -> LocalStore:
    return LocalStore(JsonFileStorage(Path(args.storage)))


def _context(args) -> DataContext:
    """Resolve the local context; seeds demo data on first use."""
    resolver = ModeResolver(AnonymousAuthClient(), _local(args))
    return DataAccess(resolver, _offline).context()


def cmd_courses(args, ask=input, say=print):
    """List courses."""
    ctx = _context(args)
    courses = ctx.courses.list()
    if not courses:
        say("No courses yet.")
        return 0
    notes = ctx.notes.list()
    say(f"\n{len(courses)} course(s):\n")
    for c in courses:
        count = sum(1 for n in notes if n.course_id == c.id)
        say(f"  {c.title}  ({c.instructor or 'no instructor'})  notes={count}")
        say(f"     id={c.id}")
    return 0


def cmd_notes(args, ask=input, say=print):
    """List notes, optionally filtered."""
    ctx = _context(args)
    filters = NoteFilters(
        course_id=args.course,
        flagged=True if args.flagged else None,
        search=args.search,
    )
    notes = visible_notes(ctx.notes.list(filters), ctx.courses.list())
    if not notes:
        say("No notes match.")
        return 0
    say(f"\n{len(notes)} note(s):\n")
    for n in notes:
        flag = " [flagged]" if n.flag else ""
        say(f"  [{n.understanding_level}/5]{flag} {n.question[:80]}")
    return 0


def cmd_entries(args, ask=input, say=print):
    """List daily entries, newest first."""
    ctx = _context(args)
    entries = ctx.daily_entries.list()
    if not entries:
        say("No daily entries yet.")
        return 0
    for e in entries:
        say(f"  {e.date}  {e.study_time:>4} min  mood={e.mood}  {e.notes[:60]}")
    return 0


def cmd_add_entry(args, ask=input, say=print):
    """Create or update the entry for a date."""
    ctx = _context(args)
    try:
        entry = ctx.daily_entries.create({
            'date': args.date,
            'study_time': args.minutes,
            'mood': args.mood,
            'notes': args.notes or '',
        })
    except StoreError as e:
        say(f"Could not save entry: {e}")
        return 1
    say(f"Saved {entry.date}: {entry.study_time} min, mood {entry.mood}")
    return 0


def _ask(ask, prompt):
    """None on EOF / Ctrl-C."""
    try:
        return ask(prompt)
    except (EOFError, KeyboardInterrupt):
        return None


def _print_summary(session, say):
    summary = session.summary()
    say(f"\n{'=' * 60}")
    say("SESSION COMPLETE")
    say(f"{'=' * 60}")
    say(f"  Reviewed:  {summary.total}")
    say(f"  Improved:  {summary.improved}")
    say(f"  Regressed: {summary.regressed}")
    say(f"  Unchanged: {summary.unchanged}")
    say(f"  Accuracy:  {summary.accuracy_pct}%")
    say(f"  Time:      {summary.minutes}m {summary.seconds}s")
    weakest = [r for r in summary.weakest if r.next <= 2]
    if weakest:
        by_id = {n.id: n for n in session.snapshot_notes()}
        say("  Needs work:")
        for r in weakest[:5]:
            note = by_id.get(r.note_id)
            say(f"    [{r.next}/5] {note.question[:70] if note else r.note_id}")


def cmd_review(args, ask=input, say=print):
    """
    Interactive review. Progress is checkpointed after every answer, so
    quitting with 'q' (or Ctrl-C) and running review again resumes.
    """
    ctx = _context(args)
    local = ctx.store
    session = ReviewSession(ctx.notes, CheckpointStore(local.storage))
    live = visible_notes(ctx.notes.list(), ctx.courses.list())

    if session.resume(live):
        say(f"Resuming session at note {session.current_index + 1} of {session.total}.")
    else:
        candidates = select_review_notes(
            live,
            course_id=args.course,
            flagged=True if args.flagged else None,
            shuffle=not args.no_shuffle,
            limit=args.limit,
        )
        if not candidates:
            say("No notes to review.")
            return 0
        session.start(candidates)
        say(f"\nREVIEW: {session.total} note(s)")

    while session.state == ReviewState.IN_PROGRESS:
        note = session.current_note
        say(f"\n[{session.current_index + 1}/{session.total}] {note.question}")
        if note.code_snippet:
            say(f"  ({note.code_language})\n{note.code_snippet}")

        choice = _ask(ask, "Enter=reveal, s=skip, e=end, q=quit: ")
        if choice is None or choice.strip().lower() == 'q':
            say("\nProgress saved. Run review again to resume.")
            return 0
        choice = choice.strip().lower()
        if choice == 'e':
            session.end()
            say("Session ended.")
            return 0
        if choice == 's':
            session.skip()
            continue

        session.reveal_answer()
        say(f"  Answer: {note.answer}")
        while True:
            raw = _ask(ask, f"Understanding 1-5 (was {note.understanding_level}): ")
            if raw is None:
                say("\nProgress saved. Run review again to resume.")
                return 0
            try:
                level = int(raw.strip())
            except ValueError:
                say("  Enter a number from 1 to 5.")
                continue
            try:
                session.record_response(level)
                break
            except StoreError as e:
                say(f"  Could not save: {e}")

    if session.state == ReviewState.COMPLETED:
        _print_summary(session, say)
    else:
        say("\nSession ended on a skipped note; nothing to summarize.")
    session.close()
    return 0


def cmd_stats(args, ask=input, say=print):
    """Overview numbers and chart insights."""
    ctx = _context(args)
    courses = ctx.courses.list()
    notes = visible_notes(ctx.notes.list(), courses)
    entries = ctx.daily_entries.list()

    overview = analytics.overview_stats(courses, notes, entries)
    say(f"\nStorage: {args.storage}")
    say(f"  Courses:            {overview['total_courses']}")
    say(f"  Notes:              {overview['total_notes']}")
    say(f"  Avg understanding:  {overview['avg_understanding']}")
    say(f"  Study time (30d):   {overview['total_study_hours']}h")

    dist = analytics.understanding_distribution(notes)
    if dist['total']:
        say("  Understanding:")
        for row in dist['levels']:
            say(f"    {row['level']}: {row['count']} ({row['percent']}%)")
        say(f"  At risk: {dist['at_risk']}  Strong: {dist['strong']}")

    progress = analytics.course_progress(courses, notes)
    if progress['courses']:
        say("  By course:")
        for row in progress['courses']:
            say(f"    {row['title']}: {row['understanding']} ({row['note_count']} notes)")

    study = analytics.study_time_stats(entries)
    if study:
        say(f"  Study: {study['total_hours']}h over {study['study_days']} day(s), "
            f"consistency {study['consistency_pct']}%, trend {study['weekly_trend']}")
    mood = analytics.mood_stats(entries)
    if mood:
        say(f"  Mood: avg {mood['avg_mood']}, mostly {mood['dominant_mood_label']}, "
            f"trend {mood['weekly_trend']}")
    return 0


def cmd_reset(args, ask=input, say=print):
    """Clear local data (re-seeds on next use unless --keep-flag)."""
    store = _local(args)
    if args.keep_flag:
        clear_local_data(store)
        say("Local data cleared.")
    else:
        reset_local_storage(store)
        say("Local data cleared; demo data will be restored on next use.")
    return 0


COMMANDS = {
    'courses': cmd_courses,
    'notes': cmd_notes,
    'entries': cmd_entries,
    'add-entry': cmd_add_entry,
    'review': cmd_review,
    'stats': cmd_stats,
    'reset': cmd_reset,
}


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rootly -- study tracker on local storage",
        prog="python -m study.cli",
    )
    parser.add_argument(
        '--storage', default=str(settings.local_storage_path),
        help=f"Path to the local storage JSON file (default: {settings.local_storage_path})",
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('courses', help='List courses')

    notes_parser = subparsers.add_parser('notes', help='List notes')
    notes_parser.add_argument('--course', default=None, help='Filter by course id')
    notes_parser.add_argument('--flagged', action='store_true', help='Only flagged notes')
    notes_parser.add_argument('--search', default=None, help='Text in question, answer or code')

    subparsers.add_parser('entries', help='List daily entries')

    add_parser = subparsers.add_parser('add-entry', help='Create or update a daily entry')
    add_parser.add_argument('date', help='YYYY-MM-DD')
    add_parser.add_argument('minutes', type=int, help='Minutes studied')
    add_parser.add_argument('mood', type=int, help='Mood 1-5')
    add_parser.add_argument('--notes', default='', help='Free-form notes')

    review_parser = subparsers.add_parser('review', help='Run interactive review session')
    review_parser.add_argument('--course', default=None, help='Only notes of this course id')
    review_parser.add_argument('--flagged', action='store_true', help='Only flagged notes')
    review_parser.add_argument('--no-shuffle', action='store_true', help='Keep newest-first order')
    review_parser.add_argument('--limit', type=int, default=settings.review_default_limit,
                               help=f'Max notes (default: {settings.review_default_limit})')

    subparsers.add_parser('stats', help='Show overview statistics')

    reset_parser = subparsers.add_parser('reset', help='Clear local data')
    reset_parser.add_argument('--keep-flag', action='store_true',
                              help='Keep the initialized flag (no demo re-seed)')
    return parser


def main(argv=None, ask=input, say=print) -> int:
    settings = Settings()
    logging.basicConfig(level=settings.log_level)
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1
    return command(args, ask=ask, say=say)


if __name__ == '__main__':
    sys.exit(main())
