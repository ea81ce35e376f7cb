"""Pydantic request/response schemas for the Rootly API."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ---- Auth ----

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: str
    email: str


# ---- Courses ----

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    instructor: str = Field(default="", max_length=255)
    links: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=512)
    instructor: Optional[str] = Field(default=None, max_length=255)
    links: Optional[List[str]] = None
    topics: Optional[List[str]] = None


class CourseResponse(BaseModel):
    id: str
    title: str
    instructor: str
    links: List[str]
    topics: List[str]
    created_at: str
    updated_at: str


# ---- Notes ----

class NoteCreate(BaseModel):
    course_id: str = Field(..., min_length=1)
    question: str = ""
    answer: str = ""
    code_snippet: Optional[str] = None
    code_language: str = "plaintext"
    understanding_level: int = 3
    flag: bool = False


class NoteUpdate(BaseModel):
    course_id: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    code_snippet: Optional[str] = None
    code_language: Optional[str] = None
    understanding_level: Optional[int] = None
    flag: Optional[bool] = None


class NoteResponse(BaseModel):
    id: str
    course_id: str
    question: str
    answer: str
    code_snippet: Optional[str] = None
    code_language: str
    understanding_level: int
    flag: bool
    created_at: str
    updated_at: str


# ---- Daily entries ----

class DailyEntryCreate(BaseModel):
    date: str = Field(..., min_length=10, max_length=10)
    study_time: int = 0
    mood: int = 3
    notes: str = ""


class DailyEntryUpdate(BaseModel):
    date: Optional[str] = None
    study_time: Optional[int] = None
    mood: Optional[int] = None
    notes: Optional[str] = None


class DailyEntryResponse(BaseModel):
    id: str
    date: str
    study_time: int
    mood: int
    notes: str
    created_at: str
    updated_at: str


# ---- Seed / stats ----

class SeedResponse(BaseModel):
    seeded: bool
    counts: Dict[str, int] = Field(default_factory=dict)


class OverviewResponse(BaseModel):
    total_courses: int
    total_notes: int
    avg_understanding: float
    total_study_minutes: int
    total_study_hours: int
    understanding: Dict[str, Any]
    course_progress: Dict[str, Any]
    study_time: Optional[Dict[str, Any]] = None
    mood: Optional[Dict[str, Any]] = None
