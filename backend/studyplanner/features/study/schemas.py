"""
Study feature: Pydantic models for homework, calendar events, grades and timetable.

Attributes are snake_case in Python and camelCase on the JSON surface
(``dueDate``, ``assessmentName``...). Either name is accepted on input.
"""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ── Enums ────────────────────────────────────────────────
class HomeworkStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    NEEDS_REVISION = "Needs Revision"
    COMPLETED = "Completed"
    SUBMITTED = "Submitted"


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class EventType(str, Enum):
    EVENT = "Event"
    EXAM = "Exam"
    QUIZ = "Quiz"
    HOMEWORK_DUE = "Homework Due"
    PROJECT = "Project"
    ASSIGNMENT = "Assignment"


class GradeType(str, Enum):
    EXAM = "Exam"
    ASSIGNMENT = "Assignment"
    QUIZ = "Quiz"
    PROJECT = "Project"


FINISHED_STATUSES = (HomeworkStatus.COMPLETED, HomeworkStatus.SUBMITTED)


# ── Homework ─────────────────────────────────────────────
class HomeworkCreate(CamelModel):
    """Request to create a homework assignment."""
    subject: str
    assignment: str
    due_date: dt.datetime
    assigned_date: dt.date | None = None
    status: HomeworkStatus = HomeworkStatus.NOT_STARTED
    priority: Priority = Priority.MEDIUM
    notes: str = ""
    submission_link: str | None = None


class HomeworkUpdate(CamelModel):
    """Partial update; only fields that are set are written."""
    subject: str | None = None
    assignment: str | None = None
    due_date: dt.datetime | None = None
    assigned_date: dt.date | None = None
    status: HomeworkStatus | None = None
    priority: Priority | None = None
    notes: str | None = None
    submission_link: str | None = None


class Homework(HomeworkCreate):
    id: str


# ── Calendar events ──────────────────────────────────────
class CalendarEventCreate(CamelModel):
    """Request to create a calendar event. Exams must name a subject."""
    date: dt.date
    time: str = ""
    event_type: EventType = EventType.EVENT
    subject: str = ""
    description: str = ""
    location: str = ""
    reminder_set: bool = False
    preparation_checklist: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def exam_needs_subject(self):
        if self.event_type == EventType.EXAM and not self.subject.strip():
            raise ValueError("Subject is required for exams")
        return self


class CalendarEventUpdate(CamelModel):
    date: dt.date | None = None
    time: str | None = None
    event_type: EventType | None = None
    subject: str | None = None
    description: str | None = None
    location: str | None = None
    reminder_set: bool | None = None
    preparation_checklist: list[str] | None = None


class CalendarEvent(CamelModel):
    """Stored event. Not re-validated: rows may predate the exam rule."""
    id: str
    date: dt.date
    time: str = ""
    event_type: EventType = EventType.EVENT
    subject: str = ""
    description: str = ""
    location: str = ""
    reminder_set: bool = False
    preparation_checklist: list[str] = Field(default_factory=list)


# ── Grades ───────────────────────────────────────────────
class GradeCreate(CamelModel):
    """Request to log a grade. ``grade`` is filled from the percentage when omitted."""
    subject: str
    assessment_name: str
    type: GradeType = GradeType.ASSIGNMENT
    max_marks: float = Field(gt=0)
    marks_obtained: float = Field(ge=0)
    grade: str = ""
    date_graded: dt.date
    feedback: str = ""
    weight: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def marks_within_bounds(self):
        if self.marks_obtained > self.max_marks:
            raise ValueError("marks_obtained cannot exceed max_marks")
        return self


class GradeUpdate(CamelModel):
    subject: str | None = None
    assessment_name: str | None = None
    type: GradeType | None = None
    max_marks: float | None = Field(default=None, gt=0)
    marks_obtained: float | None = Field(default=None, ge=0)
    grade: str | None = None
    date_graded: dt.date | None = None
    feedback: str | None = None
    weight: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def marks_within_bounds(self):
        if (
            self.marks_obtained is not None
            and self.max_marks is not None
            and self.marks_obtained > self.max_marks
        ):
            raise ValueError("marks_obtained cannot exceed max_marks")
        return self


class Grade(CamelModel):
    id: str
    subject: str
    assessment_name: str
    type: GradeType = GradeType.ASSIGNMENT
    max_marks: float
    marks_obtained: float
    grade: str = ""
    date_graded: dt.date
    feedback: str = ""
    weight: float = 1.0


# ── Timetable ────────────────────────────────────────────
DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
PERIODS = range(1, 9)


class TimetableSlot(CamelModel):
    """What occupies one (day, period) cell."""
    subject: str = ""
    teacher: str = ""
    room: str = ""
    start_time: str = ""
    end_time: str = ""

    def is_empty(self) -> bool:
        return not (self.subject or self.teacher or self.room)


class TimetableEntry(TimetableSlot):
    id: str
    day: str
    period: int


# ── Store state ──────────────────────────────────────────
class StoreState(CamelModel):
    user_id: str | None = None
    loading: bool = False
    error: str | None = None
    error_kind: str | None = None
    homework_count: int = 0
    calendar_event_count: int = 0
    grade_count: int = 0
    timetable_count: int = 0
