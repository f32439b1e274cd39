"""
Dashboard feature: derived figures computed from the loaded collections.

All functions are pure. "today" / "now" are parameters so callers (and tests)
control the clock.
"""

import datetime as dt
from collections.abc import Iterable

from studyplanner.features.study.schemas import (
    FINISHED_STATUSES,
    CalendarEvent,
    Grade,
    Homework,
)

LETTER_GRADE_BANDS = (
    (90, "A*"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
    (40, "E"),
)


def _as_date(when: dt.date | dt.datetime) -> dt.date:
    return when.date() if isinstance(when, dt.datetime) else when


def _naive_local(when: dt.datetime) -> dt.datetime:
    if when.tzinfo is None:
        return when
    return when.astimezone().replace(tzinfo=None)


# ── Dates ────────────────────────────────────────────────
def days_left(when: dt.date | dt.datetime, today: dt.date | None = None) -> int:
    """Whole calendar days from today until ``when``. Negative once past."""
    today = today or dt.date.today()
    if isinstance(when, dt.datetime):
        when = _naive_local(when)
    return (_as_date(when) - today).days


def is_overdue(when: dt.date | dt.datetime, now: dt.datetime | None = None) -> bool:
    """A dated item is overdue from the day after; a timed item from its moment."""
    now = _naive_local(now or dt.datetime.now())
    if isinstance(when, dt.datetime):
        return _naive_local(when) < now
    return when < now.date()


# ── Grades ───────────────────────────────────────────────
def calculate_percentage(marks_obtained: float, max_marks: float) -> int:
    if max_marks <= 0:
        return 0
    return round(marks_obtained / max_marks * 100)


def letter_grade(percentage: float) -> str:
    for threshold, letter in LETTER_GRADE_BANDS:
        if percentage >= threshold:
            return letter
    return "U"


def weighted_average(grades: Iterable[Grade]) -> float:
    """Weight-averaged percentage across grades, 0 when there is nothing to weigh."""
    total = 0.0
    total_weight = 0.0
    for g in grades:
        if g.max_marks <= 0:
            continue
        total += g.marks_obtained / g.max_marks * 100 * g.weight
        total_weight += g.weight
    if total_weight <= 0:
        return 0.0
    return round(total / total_weight, 1)


def subject_average(grades: Iterable[Grade], subject: str) -> float:
    return weighted_average(g for g in grades if g.subject == subject)


def subject_averages(grades: list[Grade]) -> dict[str, float]:
    subjects = sorted({g.subject for g in grades})
    return {s: subject_average(grades, s) for s in subjects}


# ── Homework / events ────────────────────────────────────
def active_homework(homework: Iterable[Homework]) -> list[Homework]:
    return [hw for hw in homework if hw.status not in FINISHED_STATUSES]


def overdue_homework(homework: Iterable[Homework], now: dt.datetime | None = None) -> list[Homework]:
    return [hw for hw in active_homework(homework) if is_overdue(hw.due_date, now)]


def upcoming_events(events: Iterable[CalendarEvent], now: dt.datetime | None = None) -> list[CalendarEvent]:
    return sorted(
        (ev for ev in events if not is_overdue(ev.date, now)),
        key=lambda ev: ev.date,
    )


def upcoming_items(
    homework: list[Homework],
    events: list[CalendarEvent],
    now: dt.datetime | None = None,
    days: int = 7,
    limit: int = 5,
) -> list[dict]:
    """Active homework and upcoming events due within ``days``, soonest first."""
    now = now or dt.datetime.now()
    today = _naive_local(now).date()

    items = [
        {
            "kind": "homework",
            "id": hw.id,
            "title": hw.assignment,
            "description": hw.subject,
            "date": _as_date(_naive_local(hw.due_date)),
        }
        for hw in active_homework(homework)
    ]
    items += [
        {
            "kind": "event",
            "id": ev.id,
            "title": ev.subject or ev.event_type.value,
            "description": ev.description,
            "date": ev.date,
        }
        for ev in upcoming_events(events, now)
    ]

    selected = []
    for item in sorted(items, key=lambda i: i["date"]):
        remaining = days_left(item["date"], today)
        if 0 <= remaining <= days:
            selected.append({**item, "days_left": remaining})
    return selected[:limit]


def dashboard_summary(
    homework: list[Homework],
    events: list[CalendarEvent],
    grades: list[Grade],
    now: dt.datetime | None = None,
) -> dict:
    now = now or dt.datetime.now()
    return {
        "has_data": bool(homework or events or grades),
        "active_homework": len(active_homework(homework)),
        "overdue_homework": len(overdue_homework(homework, now)),
        "upcoming_events": len(upcoming_events(events, now)),
        "overall_average": weighted_average(grades),
        "subject_averages": subject_averages(grades),
        "next_seven_days": upcoming_items(homework, events, now),
    }
