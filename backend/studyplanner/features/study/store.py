"""
Study feature: in-memory store of the signed-in user's homework, calendar
events, grades and timetable, kept write-through with Supabase.

Rules:
  - Local collections change only after the remote write succeeded.
  - Collections are dropped and reloaded whenever the user identity changes.
  - Every operation catches its own failures and reports them through the
    single ``error`` slot; nothing propagates to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from supabase import AsyncClient

from studyplanner.core.exceptions import (
    AppBaseError,
    ErrorKind,
    InvalidInputError,
    SessionExpiredError,
    TransientBackendError,
    classify_error,
    error_message,
    is_refresh_token_error,
)
from studyplanner.features.auth.session import SessionManager
from studyplanner.features.dashboard.stats import calculate_percentage, letter_grade
from studyplanner.features.study import mappers
from studyplanner.features.study.schemas import (
    CalendarEvent,
    CalendarEventCreate,
    CalendarEventUpdate,
    EventType,
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

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Table:
    name: str
    attr: str
    label: str
    from_row: Callable[[dict], Any]
    to_row: Callable[[Any, str], dict] | None
    order: tuple[str, bool] | None  # (column, descending)


HOMEWORK = _Table(
    "homework", "homework", "homework",
    mappers.homework_from_row, mappers.homework_to_row, ("due_date", False),
)
CALENDAR_EVENTS = _Table(
    "calendar_events", "calendar_events", "calendar event",
    mappers.calendar_event_from_row, mappers.calendar_event_to_row, ("date", False),
)
GRADES = _Table(
    "grades", "grades", "grade",
    mappers.grade_from_row, mappers.grade_to_row, ("date_graded", True),
)
TIMETABLE = _Table(
    "timetable", "timetable", "timetable",
    mappers.timetable_entry_from_row, None, None,
)

ALL_TABLES = (HOMEWORK, CALENDAR_EVENTS, GRADES, TIMETABLE)


class StudyStore:
    """Per-user cache of the four study collections."""

    def __init__(self, db: AsyncClient, sessions: SessionManager, load_timeout: float = 10.0):
        self.db = db
        self.sessions = sessions
        self.load_timeout = load_timeout

        self.user_id: str | None = None
        self.homework: list[Homework] = []
        self.calendar_events: list[CalendarEvent] = []
        self.grades: list[Grade] = []
        self.timetable: list[TimetableEntry] = []
        self.loading = False
        self.error: str | None = None
        self.error_kind: ErrorKind | None = None
        self.last_error: AppBaseError | None = None

        # Bumped on every load / user switch; results of older loads are dropped.
        self._generation = 0
        # Held across lookup and write so one (day, period) never gets two rows.
        self._timetable_lock = asyncio.Lock()

    # ── State ────────────────────────────────────────────

    def state(self) -> StoreState:
        return StoreState(
            user_id=self.user_id,
            loading=self.loading,
            error=self.error,
            error_kind=self.error_kind.value if self.error_kind else None,
            homework_count=len(self.homework),
            calendar_event_count=len(self.calendar_events),
            grade_count=len(self.grades),
            timetable_count=len(self.timetable),
        )

    def _set_error(self, error: AppBaseError) -> None:
        self.error = error.message
        self.error_kind = error.kind
        self.last_error = error

    def _clear_error(self) -> None:
        self.error = None
        self.error_kind = None
        self.last_error = None

    def _clear_collections(self) -> None:
        for table in ALL_TABLES:
            setattr(self, table.attr, [])

    # ── Loading ──────────────────────────────────────────

    async def set_user(self, user_id: str | None) -> None:
        """Switch the store to another user (or to nobody) and reload.

        The previous user's collections are dropped before anything is fetched,
        so a partial load never shows them under the new user.
        """
        changed = user_id != self.user_id
        self.user_id = user_id
        self._generation += 1

        if changed or user_id is None:
            self._clear_collections()
            self._clear_error()
        if user_id is None:
            self.loading = False
            return

        await self.load()

    async def load(self) -> None:
        """Load all four collections for the current user."""
        user_id = self.user_id
        if user_id is None:
            return

        self._generation += 1
        generation = self._generation
        self.loading = True
        self._clear_error()
        logger.info(f"Loading data for user {user_id}")

        try:
            await asyncio.wait_for(
                self._load_collections(user_id, generation),
                timeout=self.load_timeout,
            )
        except TimeoutError:
            if generation == self._generation:
                logger.error(f"Data loading timed out for user {user_id}")
                self._set_error(TransientBackendError(
                    f"Data loading timeout after {self.load_timeout:g} seconds"
                ))
        except Exception as e:
            if generation == self._generation:
                error = classify_error(e, "load data")
                logger.error(f"Error loading data: {error.message}")
                self._set_error(error)
        finally:
            if generation == self._generation:
                self.loading = False

    async def _load_collections(self, user_id: str, generation: int) -> None:
        await self._require_session()

        results = await asyncio.gather(
            *(self._fetch(table, user_id) for table in ALL_TABLES),
            return_exceptions=True,
        )
        if generation != self._generation:
            logger.info(f"Discarding stale load for user {user_id}")
            return

        first_error: AppBaseError | None = None
        for table, result in zip(ALL_TABLES, results):
            if isinstance(result, BaseException):
                error = classify_error(result, f"load {table.label}")
                logger.error(f"Error loading {table.name}: {error.message}")
                first_error = first_error or error
                continue
            setattr(self, table.attr, result)
            logger.info(f"Loaded {table.name}: {len(result)} items")

        if first_error is not None:
            raise first_error

    async def _fetch(self, table: _Table, user_id: str) -> list:
        query = self.db.table(table.name).select("*").eq("user_id", user_id)
        if table.order is not None:
            column, desc = table.order
            query = query.order(column, desc=desc)
        result = await query.execute()
        try:
            return [table.from_row(row) for row in result.data or []]
        except (KeyError, TypeError, ValueError) as e:
            raise TransientBackendError(
                f"Failed to load {table.label}: malformed response", detail=str(e)
            ) from e

    # ── Guards ───────────────────────────────────────────

    async def _require_session(self):
        """Session for the next remote call, or raise the re-authentication error."""
        session, error = await self.sessions.get_valid_session()
        if session is not None:
            return session
        if error is not None and not is_refresh_token_error(error):
            raise classify_error(error, "verify session")
        raise SessionExpiredError(detail=error_message(error) if error else None)

    async def _mutate(self, operation: str, action: Callable[[str], Awaitable[Any]]) -> Any:
        """Run a remote write for the current user behind the session guard.

        Returns the action's result, or None when the write did not happen.
        """
        user_id = self.user_id
        if user_id is None:
            return None

        try:
            await self._require_session()
            result = await action(user_id)
        except Exception as e:
            error = classify_error(e, operation)
            logger.error(f"Failed to {operation}: {error.message}")
            self._set_error(error)
            return None

        self._clear_error()
        return result

    def _is_current_user(self, user_id: str) -> bool:
        return self.user_id == user_id

    @staticmethod
    def _find(items: list, entity_id: str):
        return next((item for item in items if item.id == entity_id), None)

    def _reject(self, error: InvalidInputError) -> None:
        logger.warning(f"Rejected input: {error.message}")
        self._set_error(error)

    # ── Generic write-through operations ─────────────────

    async def _add(self, table: _Table, payload) -> Any:
        async def insert(user_id: str):
            result = await self.db.table(table.name).insert(table.to_row(payload, user_id)).execute()
            if not result.data:
                raise TransientBackendError(f"Failed to add {table.label}: no row returned")
            created = table.from_row(result.data[0])
            if self._is_current_user(user_id):
                setattr(self, table.attr, [*getattr(self, table.attr), created])
            return created

        return await self._mutate(f"add {table.label}", insert)

    async def _update(self, table: _Table, entity_id: str, update) -> bool:
        row = mappers.partial_row(update)
        changes = mappers.partial_changes(update)

        async def write(user_id: str):
            if row:
                await (
                    self.db.table(table.name)
                    .update(row)
                    .eq("id", entity_id)
                    .eq("user_id", user_id)
                    .execute()
                )
            if self._is_current_user(user_id):
                setattr(self, table.attr, [
                    item.model_copy(update=changes) if item.id == entity_id else item
                    for item in getattr(self, table.attr)
                ])
            return True

        return bool(await self._mutate(f"update {table.label}", write))

    async def _delete(self, table: _Table, entity_id: str) -> bool:
        async def remove(user_id: str):
            await (
                self.db.table(table.name)
                .delete()
                .eq("id", entity_id)
                .eq("user_id", user_id)
                .execute()
            )
            if self._is_current_user(user_id):
                setattr(self, table.attr, [
                    item for item in getattr(self, table.attr) if item.id != entity_id
                ])
            return True

        return bool(await self._mutate(f"delete {table.label}", remove))

    # ── Homework ─────────────────────────────────────────

    async def add_homework(self, homework: HomeworkCreate) -> Homework | None:
        return await self._add(HOMEWORK, homework)

    async def update_homework(self, homework_id: str, update: HomeworkUpdate) -> bool:
        return await self._update(HOMEWORK, homework_id, update)

    async def delete_homework(self, homework_id: str) -> bool:
        return await self._delete(HOMEWORK, homework_id)

    # ── Calendar events ──────────────────────────────────

    async def add_calendar_event(self, event: CalendarEventCreate) -> CalendarEvent | None:
        return await self._add(CALENDAR_EVENTS, event)

    async def update_calendar_event(self, event_id: str, update: CalendarEventUpdate) -> bool:
        """Apply ``update``; the merged event must still name a subject if it is an exam."""
        current = self._find(self.calendar_events, event_id)
        if current is not None:
            event_type = update.event_type or current.event_type
            subject = update.subject if update.subject is not None else current.subject
            if event_type == EventType.EXAM and not subject.strip():
                self._reject(InvalidInputError("Subject is required for exams"))
                return False
        return await self._update(CALENDAR_EVENTS, event_id, update)

    async def delete_calendar_event(self, event_id: str) -> bool:
        return await self._delete(CALENDAR_EVENTS, event_id)

    # ── Grades ───────────────────────────────────────────

    async def add_grade(self, grade: GradeCreate) -> Grade | None:
        if not grade.grade:
            percentage = calculate_percentage(grade.marks_obtained, grade.max_marks)
            grade = grade.model_copy(update={"grade": letter_grade(percentage)})
        return await self._add(GRADES, grade)

    async def update_grade(self, grade_id: str, update: GradeUpdate) -> bool:
        """Apply ``update`` checked against the stored marks.

        When the marks change and no letter is given, the letter is recomputed.
        """
        current = self._find(self.grades, grade_id)
        if current is not None:
            max_marks = update.max_marks if update.max_marks is not None else current.max_marks
            obtained = (
                update.marks_obtained if update.marks_obtained is not None else current.marks_obtained
            )
            if obtained > max_marks:
                self._reject(InvalidInputError(
                    "marks_obtained cannot exceed max_marks",
                    detail=f"{obtained:g} of {max_marks:g}",
                ))
                return False
            marks_changed = update.max_marks is not None or update.marks_obtained is not None
            if marks_changed and not update.grade:
                letter = letter_grade(calculate_percentage(obtained, max_marks))
                update = update.model_copy(update={"grade": letter})
        return await self._update(GRADES, grade_id, update)

    async def delete_grade(self, grade_id: str) -> bool:
        return await self._delete(GRADES, grade_id)

    # ── Timetable ────────────────────────────────────────

    def timetable_entry(self, day: str, period: int) -> TimetableEntry | None:
        return next(
            (e for e in self.timetable if e.day == day and e.period == period),
            None,
        )

    async def update_timetable(self, day: str, period: int, slot: TimetableSlot | None) -> bool:
        """Put ``slot`` at (day, period); None or an empty slot clears it.

        Clearing an empty slot is a no-op and makes no remote call.
        """
        if self.user_id is None:
            return False
        if slot is not None and slot.is_empty():
            slot = None

        async with self._timetable_lock:
            return await self._write_slot(day, period, slot)

    async def _write_slot(self, day: str, period: int, slot: TimetableSlot | None) -> bool:
        existing = self.timetable_entry(day, period)
        if slot is None and existing is None:
            return True

        async def write(user_id: str):
            if slot is None:
                await (
                    self.db.table(TIMETABLE.name)
                    .delete()
                    .eq("id", existing.id)
                    .eq("user_id", user_id)
                    .execute()
                )
                if self._is_current_user(user_id):
                    self.timetable = [e for e in self.timetable if e.id != existing.id]
                return True

            if existing is not None:
                await (
                    self.db.table(TIMETABLE.name)
                    .update(mappers.timetable_slot_to_row(slot))
                    .eq("id", existing.id)
                    .eq("user_id", user_id)
                    .execute()
                )
                updated = existing.model_copy(update=slot.model_dump())
                if self._is_current_user(user_id):
                    self.timetable = [updated if e.id == existing.id else e for e in self.timetable]
                return True

            result = await (
                self.db.table(TIMETABLE.name)
                .insert(mappers.timetable_entry_to_row(day, period, slot, user_id))
                .execute()
            )
            if not result.data:
                raise TransientBackendError("Failed to update timetable: no row returned")
            created = mappers.timetable_entry_from_row(result.data[0])
            if self._is_current_user(user_id):
                self.timetable = [*self.timetable, created]
            return True

        return bool(await self._mutate("update timetable", write))
