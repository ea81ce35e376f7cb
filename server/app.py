"""FastAPI application -- auth and per-user study data routes for Rootly."""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Cookie, Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from server.__version__ import __version__
from server.auth import SESSION_COOKIE, get_current_user, get_store
from server.config import Settings
from server.dependencies import get_db_factory, get_settings
from server.schemas import (
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    DailyEntryCreate,
    DailyEntryResponse,
    DailyEntryUpdate,
    LoginRequest,
    NoteCreate,
    NoteResponse,
    NoteUpdate,
    OverviewResponse,
    RegisterRequest,
    SeedResponse,
    UserResponse,
)
from server.services import auth_service
from server.services.remote_store import RemoteStore
from study import analytics
from study.errors import BackendUnavailable, NotAuthenticated, NotFound, StoreError, ValidationViolation
from study.filters import CourseFilters, DailyEntryFilters, NoteFilters
from study.seed import seed_remote_store

logger = logging.getLogger("rootly.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: configure logging and create tables."""
    from server.db.session import init_db
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    init_db(settings)
    logger.info("Startup: database ready (%s)", settings.database_url.split("://", 1)[0])
    yield
    logger.info("Shutdown: complete")


app = FastAPI(title="Rootly", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(e: StoreError) -> HTTPException:
    """Map a data-layer failure to its HTTP status."""
    if isinstance(e, NotAuthenticated):
        return HTTPException(status_code=401, detail=str(e) or "Not authenticated")
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationViolation):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, BackendUnavailable):
        logger.error("Backend unavailable: %s", e)
        return HTTPException(status_code=503, detail="Storage backend unavailable")
    logger.exception("Unexpected store error")
    return HTTPException(status_code=500, detail="Internal error")


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        secure=False,
        samesite="lax",
    )


# ---- Auth ----

@app.post("/auth/register", response_model=UserResponse)
def auth_register(
    body: RegisterRequest,
    response: Response,
    factory: sessionmaker = Depends(get_db_factory),
    settings: Settings = Depends(get_settings),
):
    db = factory()
    try:
        try:
            user = auth_service.register_user(db, body.email, body.password)
            token = auth_service.create_session(db, user.id, settings.session_ttl_hours)
            db.commit()
        except ValueError as e:
            db.rollback()
            raise HTTPException(status_code=400, detail=str(e))
        _set_session_cookie(response, token, settings)
        return {"id": user.id, "email": user.email}
    finally:
        db.close()


@app.post("/auth/login", response_model=UserResponse)
def auth_login(
    body: LoginRequest,
    response: Response,
    factory: sessionmaker = Depends(get_db_factory),
    settings: Settings = Depends(get_settings),
):
    db = factory()
    try:
        user = auth_service.authenticate(db, body.email, body.password)
        if user is None:
            raise HTTPException(status_code=401, detail="Invalid email or password")
        token = auth_service.create_session(db, user.id, settings.session_ttl_hours)
        db.commit()
        _set_session_cookie(response, token, settings)
        return {"id": user.id, "email": user.email}
    finally:
        db.close()


@app.post("/auth/logout")
def auth_logout(
    response: Response,
    rootly_session: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
    factory: sessionmaker = Depends(get_db_factory),
):
    if rootly_session:
        db = factory()
        try:
            auth_service.logout_session(db, rootly_session)
            db.commit()
        finally:
            db.close()
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@app.get("/auth/me", response_model=UserResponse)
def auth_me(user=Depends(get_current_user)):
    return {"id": user.id, "email": user.email}


# ---- Health (no dependencies, always fast) ----

@app.get("/health")
def health():
    return {"ok": True}


# ---- Courses ----

@app.get("/courses", response_model=list[CourseResponse])
def list_courses(
    search: Optional[str] = None,
    instructor: Optional[str] = None,
    store: RemoteStore = Depends(get_store),
):
    try:
        courses = store.courses.list(CourseFilters(search=search, instructor=instructor))
    except StoreError as e:
        raise _http_error(e)
    return [c.to_dict() for c in courses]


@app.get("/courses/{course_id}", response_model=CourseResponse)
def get_course(course_id: str, store: RemoteStore = Depends(get_store)):
    try:
        return store.courses.require(course_id).to_dict()
    except StoreError as e:
        raise _http_error(e)


@app.post("/courses", response_model=CourseResponse)
def create_course(body: CourseCreate, store: RemoteStore = Depends(get_store)):
    try:
        return store.courses.create(body.model_dump()).to_dict()
    except StoreError as e:
        raise _http_error(e)


@app.patch("/courses/{course_id}", response_model=CourseResponse)
def update_course(course_id: str, body: CourseUpdate, store: RemoteStore = Depends(get_store)):
    fields = body.model_dump(exclude_unset=True)
    try:
        course = store.courses.update(course_id, fields)
    except StoreError as e:
        raise _http_error(e)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course.to_dict()


@app.delete("/courses/{course_id}")
def delete_course(course_id: str, store: RemoteStore = Depends(get_store)):
    try:
        deleted = store.courses.delete(course_id)
    except StoreError as e:
        raise _http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"ok": True}


# ---- Notes ----

@app.get("/notes", response_model=list[NoteResponse])
def list_notes(
    course_id: Optional[str] = None,
    understanding_level: Optional[int] = None,
    flagged: Optional[bool] = None,
    code_language: Optional[str] = None,
    search: Optional[str] = None,
    store: RemoteStore = Depends(get_store),
):
    filters = NoteFilters(
        course_id=course_id,
        understanding_level=understanding_level,
        flagged=flagged,
        code_language=code_language,
        search=search,
    )
    try:
        notes = store.notes.list(filters)
    except StoreError as e:
        raise _http_error(e)
    return [n.to_dict() for n in notes]


@app.get("/notes/{note_id}", response_model=NoteResponse)
def get_note(note_id: str, store: RemoteStore = Depends(get_store)):
    try:
        return store.notes.require(note_id).to_dict()
    except StoreError as e:
        raise _http_error(e)


@app.post("/notes", response_model=NoteResponse)
def create_note(body: NoteCreate, store: RemoteStore = Depends(get_store)):
    try:
        return store.notes.create(body.model_dump()).to_dict()
    except StoreError as e:
        raise _http_error(e)


@app.patch("/notes/{note_id}", response_model=NoteResponse)
def update_note(note_id: str, body: NoteUpdate, store: RemoteStore = Depends(get_store)):
    fields = body.model_dump(exclude_unset=True)
    try:
        note = store.notes.update(note_id, fields)
    except StoreError as e:
        raise _http_error(e)
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note.to_dict()


@app.delete("/notes/{note_id}")
def delete_note(note_id: str, store: RemoteStore = Depends(get_store)):
    try:
        deleted = store.notes.delete(note_id)
    except StoreError as e:
        raise _http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Note not found")
    return {"ok": True}


# ---- Daily entries ----

@app.get("/daily-entries", response_model=list[DailyEntryResponse])
def list_daily_entries(
    date: Optional[str] = None,
    since: Optional[str] = None,
    until: Optional[str] = None,
    store: RemoteStore = Depends(get_store),
):
    try:
        entries = store.daily_entries.list(DailyEntryFilters(date=date, since=since, until=until))
    except StoreError as e:
        raise _http_error(e)
    return [e.to_dict() for e in entries]


@app.post("/daily-entries", response_model=DailyEntryResponse)
def upsert_daily_entry(body: DailyEntryCreate, store: RemoteStore = Depends(get_store)):
    """Create the entry for body.date, or update it if that date already has one."""
    try:
        return store.daily_entries.create(body.model_dump()).to_dict()
    except StoreError as e:
        raise _http_error(e)


@app.patch("/daily-entries/{entry_id}", response_model=DailyEntryResponse)
def update_daily_entry(entry_id: str, body: DailyEntryUpdate, store: RemoteStore = Depends(get_store)):
    fields = body.model_dump(exclude_unset=True)
    try:
        entry = store.daily_entries.update(entry_id, fields)
    except StoreError as e:
        raise _http_error(e)
    if entry is None:
        raise HTTPException(status_code=404, detail="Daily entry not found")
    return entry.to_dict()


@app.delete("/daily-entries/{entry_id}")
def delete_daily_entry(entry_id: str, store: RemoteStore = Depends(get_store)):
    try:
        deleted = store.daily_entries.delete(entry_id)
    except StoreError as e:
        raise _http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Daily entry not found")
    return {"ok": True}


# ---- Seed / stats ----

@app.post("/seed", response_model=SeedResponse)
def seed(store: RemoteStore = Depends(get_store)):
    """Write the demo dataset for a user with no courses yet."""
    try:
        seeded = seed_remote_store(store)
        counts = {
            "courses": store.courses.count(),
            "notes": store.notes.count(),
            "daily_entries": store.daily_entries.count(),
        }
    except StoreError as e:
        raise _http_error(e)
    if seeded:
        logger.info("Seeded demo data for user %s", store.user_id)
    return {"seeded": seeded, "counts": counts}


@app.get("/stats/overview", response_model=OverviewResponse)
def stats_overview(store: RemoteStore = Depends(get_store)):
    try:
        courses = store.courses.list()
        notes = store.notes.list()
        entries = store.daily_entries.list()
    except StoreError as e:
        raise _http_error(e)
    return {
        **analytics.overview_stats(courses, notes, entries),
        "understanding": analytics.understanding_distribution(notes),
        "course_progress": analytics.course_progress(courses, notes),
        "study_time": analytics.study_time_stats(entries),
        "mood": analytics.mood_stats(entries),
    }
