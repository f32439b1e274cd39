"""
Study feature: API routes for homework, calendar events, grades and timetable.

Reads are served from the in-memory store; writes go through the store's
write-through operations. A failed write is reported from the store's error slot.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, status

from studyplanner.core.dependencies import get_signed_in_store, get_store
from studyplanner.core.exceptions import (
    InvalidInputError,
    TransientBackendError,
    app_error_to_http,
)
from studyplanner.features.study.schemas import (
    DAYS,
    CalendarEvent,
    CalendarEventCreate,
    CalendarEventUpdate,
    Grade,
    GradeCreate,
    GradeUpdate,
    Homework,
    HomeworkCreate,
    HomeworkUpdate,
    StoreState,
    TimetableEntry,
    TimetableSlot,
)
from studyplanner.features.study.store import StudyStore

router = APIRouter()


def _store_failure(store: StudyStore) -> HTTPException:
    error = store.last_error or TransientBackendError(store.error or "Request failed")
    return app_error_to_http(error)


def _require_existing(items: list, item_id: str, label: str):
    found = next((item for item in items if item.id == item_id), None)
    if found is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return found


def _check_day(day: str) -> str:
    if day not in DAYS:
        raise app_error_to_http(InvalidInputError(
            f"Unknown day: {day}", detail=f"Expected one of {', '.join(DAYS)}",
        ))
    return day


# ── Store ────────────────────────────────────────────────
@router.get("/state", response_model=StoreState)
async def get_state(store: StudyStore = Depends(get_store)):
    return store.state()


@router.post("/reload", response_model=StoreState)
async def reload(store: StudyStore = Depends(get_signed_in_store)):
    """Reload every collection from Supabase."""
    await store.load()
    if store.error:
        raise _store_failure(store)
    return store.state()


# ── Homework ─────────────────────────────────────────────
@router.get("/homework", response_model=list[Homework])
async def list_homework(store: StudyStore = Depends(get_signed_in_store)):
    return store.homework


@router.post("/homework", response_model=Homework, status_code=status.HTTP_201_CREATED)
async def add_homework(data: HomeworkCreate, store: StudyStore = Depends(get_signed_in_store)):
    created = await store.add_homework(data)
    if created is None:
        raise _store_failure(store)
    return created


@router.patch("/homework/{homework_id}", response_model=Homework)
async def update_homework(
    homework_id: str,
    data: HomeworkUpdate,
    store: StudyStore = Depends(get_signed_in_store),
):
    _require_existing(store.homework, homework_id, "Homework")
    if not await store.update_homework(homework_id, data):
        raise _store_failure(store)
    return _require_existing(store.homework, homework_id, "Homework")


@router.delete("/homework/{homework_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_homework(homework_id: str, store: StudyStore = Depends(get_signed_in_store)):
    _require_existing(store.homework, homework_id, "Homework")
    if not await store.delete_homework(homework_id):
        raise _store_failure(store)


# ── Calendar events ──────────────────────────────────────
@router.get("/calendar-events", response_model=list[CalendarEvent])
async def list_calendar_events(store: StudyStore = Depends(get_signed_in_store)):
    return store.calendar_events


@router.post("/calendar-events", response_model=CalendarEvent, status_code=status.HTTP_201_CREATED)
async def add_calendar_event(
    data: CalendarEventCreate,
    store: StudyStore = Depends(get_signed_in_store),
):
    created = await store.add_calendar_event(data)
    if created is None:
        raise _store_failure(store)
    return created


@router.patch("/calendar-events/{event_id}", response_model=CalendarEvent)
async def update_calendar_event(
    event_id: str,
    data: CalendarEventUpdate,
    store: StudyStore = Depends(get_signed_in_store),
):
    _require_existing(store.calendar_events, event_id, "Event")
    if not await store.update_calendar_event(event_id, data):
        raise _store_failure(store)
    return _require_existing(store.calendar_events, event_id, "Event")


@router.delete("/calendar-events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_calendar_event(event_id: str, store: StudyStore = Depends(get_signed_in_store)):
    _require_existing(store.calendar_events, event_id, "Event")
    if not await store.delete_calendar_event(event_id):
        raise _store_failure(store)


# ── Grades ───────────────────────────────────────────────
@router.get("/grades", response_model=list[Grade])
async def list_grades(store: StudyStore = Depends(get_signed_in_store)):
    return store.grades


@router.post("/grades", response_model=Grade, status_code=status.HTTP_201_CREATED)
async def add_grade(data: GradeCreate, store: StudyStore = Depends(get_signed_in_store)):
    created = await store.add_grade(data)
    if created is None:
        raise _store_failure(store)
    return created


@router.patch("/grades/{grade_id}", response_model=Grade)
async def update_grade(
    grade_id: str,
    data: GradeUpdate,
    store: StudyStore = Depends(get_signed_in_store),
):
    _require_existing(store.grades, grade_id, "Grade")
    if not await store.update_grade(grade_id, data):
        raise _store_failure(store)
    return _require_existing(store.grades, grade_id, "Grade")


@router.delete("/grades/{grade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grade(grade_id: str, store: StudyStore = Depends(get_signed_in_store)):
    _require_existing(store.grades, grade_id, "Grade")
    if not await store.delete_grade(grade_id):
        raise _store_failure(store)


# ── Timetable ────────────────────────────────────────────
@router.get("/timetable", response_model=list[TimetableEntry])
async def list_timetable(store: StudyStore = Depends(get_signed_in_store)):
    return sorted(store.timetable, key=lambda e: (DAYS.index(e.day) if e.day in DAYS else len(DAYS), e.period))


@router.put("/timetable/{day}/{period}", response_model=TimetableEntry | None)
async def put_timetable_slot(
    data: TimetableSlot,
    day: str,
    period: int = Path(ge=1, le=8),
    store: StudyStore = Depends(get_signed_in_store),
):
    """Set what is taught in a slot. An empty slot clears it and returns null."""
    _check_day(day)
    if not await store.update_timetable(day, period, data):
        raise _store_failure(store)
    return store.timetable_entry(day, period)


@router.delete("/timetable/{day}/{period}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_timetable_slot(
    day: str,
    period: int = Path(ge=1, le=8),
    store: StudyStore = Depends(get_signed_in_store),
):
    _check_day(day)
    if not await store.update_timetable(day, period, None):
        raise _store_failure(store)
