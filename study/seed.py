"""Demonstration dataset for first-time users, usable against either backend."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from study.backend import StorageBackend
from study.errors import StoreError
from study.storage import LocalStore

logger = logging.getLogger("rootly.seed")

SEED_COURSES: List[Dict] = [
    {
        'instructor': 'Sarah Daniels',
        'title': 'Ultimate React & Next.js',
        'links': [
            'https://nextjs.org/docs',
            'https://react.dev/learn',
            'https://nextjs.org/learn',
        ],
        'topics': ['React', 'Next.js', 'Routing', 'Data Fetching',
                   'Server Components', 'Client Components'],
    },
    {
        'instructor': 'Aamir Patel',
        'title': 'Complete MongoDB',
        'links': [
            'https://www.mongodb.com/docs',
            'https://www.mongodb.com/developer',
            'https://university.mongodb.com',
        ],
        'topics': ['Documents', 'Indexes', 'Aggregation', 'Schema Design',
                   'Transactions', 'Replication'],
    },
]


def seed_notes(react_course_id: str, mongo_course_id: str) -> List[Dict]:
    """Six notes: four for the React course, two for the MongoDB course."""
    return [
        {
            'course_id': react_course_id,
            'question': 'What is the difference between useState and useRef?',
            'answer': ("useState triggers a re-render when the state changes and is ideal "
                       "for UI state. useRef stores a mutable value that persists across "
                       "renders without causing a re-render; it's ideal for DOM refs and "
                       "instance variables."),
            'code_snippet': "const [count, setCount] = useState(0);\nconst inputRef = useRef(null);",
            'code_language': 'tsx',
            'understanding_level': 4,
            'flag': False,
        },
        {
            'course_id': react_course_id,
            'question': 'How do you create a page in the Next.js App Router?',
            'answer': ("Place a page.tsx file under a route folder (e.g., app/about/page.tsx). "
                       "The folder path defines the route. You can also use dynamic routes "
                       "with [slug] folders."),
            'code_snippet': ("// app/about/page.tsx\nexport default function AboutPage() {\n"
                             "  return <main>About</main>;\n}"),
            'code_language': 'tsx',
            'understanding_level': 5,
            'flag': False,
        },
        {
            'course_id': react_course_id,
            'question': 'What is useEffect cleanup?',
            'answer': ("Return a function from useEffect to clean subscriptions/timers. React "
                       "calls it before the effect re-runs or during unmount. This prevents "
                       "memory leaks."),
            'code_snippet': ("useEffect(() => {\n  const id = setInterval(() => console.log('tick'), 1000);\n"
                             "  return () => clearInterval(id);\n}, []);"),
            'code_language': 'tsx',
            'understanding_level': 3,
            'flag': True,
        },
        {
            'course_id': react_course_id,
            'question': 'What are Server Components vs Client Components in Next.js?',
            'answer': ("Server Components render on the server and can access databases "
                       "directly. Client Components run in the browser and can use hooks and "
                       "interactivity. Use 'use client' directive for Client Components."),
            'code_snippet': ("// Client Component\n'use client';\nexport function ClientButton() {\n"
                             "  const [count, setCount] = useState(0);\n"
                             "  return <button onClick={() => setCount(count + 1)}>{count}</button>;\n}"),
            'code_language': 'tsx',
            'understanding_level': 4,
            'flag': False,
        },
        {
            'course_id': mongo_course_id,
            'question': 'What is the difference between find() and findOne() in MongoDB?',
            'answer': ("find() returns a cursor that can iterate over multiple documents "
                       "matching the query. findOne() returns a single document or null. Use "
                       "findOne() when you expect exactly one result."),
            'code_snippet': ("const users = await db.collection('users').find({ age: { $gt: 18 } });\n"
                             "const user = await db.collection('users').findOne({ email: 'test@example.com' });"),
            'code_language': 'javascript',
            'understanding_level': 4,
            'flag': False,
        },
        {
            'course_id': mongo_course_id,
            'question': 'How do you create an index in MongoDB?',
            'answer': ("Use createIndex() method with the field(s) to index. Indexes improve "
                       "query performance. You can create single field, compound, or text indexes."),
            'code_snippet': ("await db.collection('users').createIndex({ email: 1 });\n"
                             "await db.collection('users').createIndex({ email: 1, age: -1 });"),
            'code_language': 'javascript',
            'understanding_level': 3,
            'flag': True,
        },
    ]


# (days before today, minutes, mood, notes)
_SEED_ENTRY_DATA = [
    (6, 45, 4, 'Started learning React hooks. useState is clearer now.'),
    (4, 60, 5, 'Built my first Next.js page. Server Components are powerful!'),
    (2, 35, 3, 'MongoDB indexes are tricky. Need to review aggregation pipeline.'),
    (0, 50, 4, 'Great progress today! Understanding both React and MongoDB better.'),
]


def seed_daily_entries(today: Optional[date] = None) -> List[Dict]:
    if today is None:
        today = date.today()
    return [
        {
            'date': (today - timedelta(days=days_ago)).isoformat(),
            'study_time': minutes,
            'mood': mood,
            'notes': text,
        }
        for days_ago, minutes, mood, text in _SEED_ENTRY_DATA
    ]


def seed_backend(store: StorageBackend, today: Optional[date] = None) -> Dict[str, int]:
    """
    Write the demo dataset into store.

    Course failures propagate (nothing useful can be seeded without them);
    note and daily-entry failures are logged and skipped.
    Returns counts of what was written.
    """
    courses = [store.courses.create(c) for c in SEED_COURSES]
    if len(courses) >= 2:
        notes = seed_notes(courses[0].id, courses[1].id)
    else:
        notes = seed_notes(courses[0].id, courses[0].id)

    written = {'courses': len(courses), 'notes': 0, 'daily_entries': 0}
    for fields in notes:
        try:
            store.notes.create(fields)
            written['notes'] += 1
        except StoreError as e:
            logger.error("Error seeding note %r: %s", fields['question'], e)
    for fields in seed_daily_entries(today):
        try:
            store.daily_entries.create(fields)
            written['daily_entries'] += 1
        except StoreError as e:
            logger.error("Error seeding daily entry %s: %s", fields['date'], e)
    return written


def seed_local_store(store: LocalStore, today: Optional[date] = None) -> bool:
    """Seed the local store once per client. Returns True if data was written."""
    if store.is_initialized():
        return False
    seed_backend(store, today)
    store.mark_initialized()
    logger.info("Seeded local storage with demo data")
    return True


def seed_remote_store(store: StorageBackend, today: Optional[date] = None) -> bool:
    """Seed a tenant that has no courses yet. Returns True if data was written."""
    if store.courses.exists():
        return False
    seed_backend(store, today)
    return True
