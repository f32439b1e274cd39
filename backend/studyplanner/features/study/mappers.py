"""
Study feature: row <-> model mapping, one pair per table.

Rows are the dicts PostgREST returns (snake_case columns plus ``user_id`` and
bookkeeping columns). Missing text columns come back as NULL and are read as
empty strings so the models stay total.
"""

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel

from studyplanner.features.study.schemas import (
    CalendarEvent,
    CalendarEventCreate,
    EventType,
    Grade,
    GradeCreate,
    GradeType,
    Homework,
    HomeworkCreate,
    HomeworkStatus,
    Priority,
    TimetableEntry,
    TimetableSlot,
)


def _column_value(value: Any) -> Any:
    """Python value → JSON-safe column value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [_column_value(v) for v in value]
    return value


def partial_row(update: BaseModel) -> dict:
    """Columns for a partial update: only fields that were given a value."""
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    return {field: _column_value(value) for field, value in changes.items()}


def partial_changes(update: BaseModel) -> dict:
    """Same fields as ``partial_row`` but as Python values, for merging into models."""
    return {
        field: getattr(update, field)
        for field in update.model_dump(exclude_unset=True, exclude_none=True)
    }


# ── Homework ─────────────────────────────────────────────
def homework_from_row(row: dict) -> Homework:
    return Homework(
        id=str(row["id"]),
        subject=row.get("subject") or "",
        assignment=row.get("assignment") or "",
        due_date=row["due_date"],
        assigned_date=row.get("assigned_date"),
        status=row.get("status") or HomeworkStatus.NOT_STARTED,
        priority=row.get("priority") or Priority.MEDIUM,
        notes=row.get("notes") or "",
        submission_link=row.get("submission_link"),
    )


def homework_to_row(homework: HomeworkCreate, user_id: str) -> dict:
    return {
        "user_id": user_id,
        "subject": homework.subject,
        "assignment": homework.assignment,
        "due_date": _column_value(homework.due_date),
        "assigned_date": _column_value(homework.assigned_date),
        "status": homework.status.value,
        "priority": homework.priority.value,
        "notes": homework.notes,
        "submission_link": homework.submission_link,
    }


# ── Calendar events ──────────────────────────────────────
def calendar_event_from_row(row: dict) -> CalendarEvent:
    return CalendarEvent(
        id=str(row["id"]),
        date=row["date"],
        time=row.get("time") or "",
        event_type=row.get("event_type") or EventType.EVENT,
        subject=row.get("subject") or "",
        description=row.get("description") or "",
        location=row.get("location") or "",
        reminder_set=bool(row.get("reminder_set")),
        preparation_checklist=list(row.get("preparation_checklist") or []),
    )


def calendar_event_to_row(event: CalendarEventCreate, user_id: str) -> dict:
    return {
        "user_id": user_id,
        "date": _column_value(event.date),
        "time": event.time,
        "event_type": event.event_type.value,
        "subject": event.subject,
        "description": event.description,
        "location": event.location,
        "reminder_set": event.reminder_set,
        "preparation_checklist": list(event.preparation_checklist),
    }


# ── Grades ───────────────────────────────────────────────
def grade_from_row(row: dict) -> Grade:
    weight = row.get("weight")
    return Grade(
        id=str(row["id"]),
        subject=row.get("subject") or "",
        assessment_name=row.get("assessment_name") or "",
        type=row.get("type") or GradeType.ASSIGNMENT,
        max_marks=row.get("max_marks") or 0,
        marks_obtained=row.get("marks_obtained") or 0,
        grade=row.get("grade") or "",
        date_graded=row["date_graded"],
        feedback=row.get("feedback") or "",
        weight=1.0 if weight is None else weight,
    )


def grade_to_row(grade: GradeCreate, user_id: str) -> dict:
    return {
        "user_id": user_id,
        "subject": grade.subject,
        "assessment_name": grade.assessment_name,
        "type": grade.type.value,
        "max_marks": grade.max_marks,
        "marks_obtained": grade.marks_obtained,
        "grade": grade.grade,
        "date_graded": _column_value(grade.date_graded),
        "feedback": grade.feedback,
        "weight": grade.weight,
    }


# ── Timetable ────────────────────────────────────────────
def timetable_entry_from_row(row: dict) -> TimetableEntry:
    return TimetableEntry(
        id=str(row["id"]),
        day=row["day"],
        period=int(row["period"]),
        subject=row.get("subject") or "",
        teacher=row.get("teacher") or "",
        room=row.get("room") or "",
        start_time=row.get("start_time") or "",
        end_time=row.get("end_time") or "",
    )


def timetable_slot_to_row(slot: TimetableSlot) -> dict:
    """Columns describing what is in a slot, without its coordinates."""
    return {
        "subject": slot.subject,
        "teacher": slot.teacher,
        "room": slot.room,
        "start_time": slot.start_time,
        "end_time": slot.end_time,
    }


def timetable_entry_to_row(day: str, period: int, slot: TimetableSlot, user_id: str) -> dict:
    return {
        "user_id": user_id,
        "day": day,
        "period": period,
        **timetable_slot_to_row(slot),
    }
