import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models.exam_session_model import ExamSession
from .clock import utcnow, is_real_time, add_minutes, minutes_between
from .errors import SchedulerError, NotFoundError, SessionConflictError, SessionValidationError, StoreError
from .ordering_service import ExamOrderEntry, build_progress, resolve_exam_order
from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    status: str
    session_id: int
    is_submitted: bool
    exam_string: Optional[str] = None


def _require_ids(**ids):
    missing = [name for name, value in ids.items() if value is None or value == ""]
    if missing:
        raise SessionValidationError("Missing required fields: " + ", ".join(missing), missing=missing)


class ExamSessionManager:
    """
    Lifecycle of exam sessions: create, batch-create, resume with auto-move,
    save, submit and verify.

    Each public operation is one unit of work on the store: it commits on
    success and rolls back on any failure. Store failures surface as
    StoreError; nothing is retried here.
    """

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = utcnow,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.clock = clock
        self.rng = rng

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context):
        try:
            yield
            await self.store.commit()
        except SchedulerError:
            await self.store.rollback()
            raise
        except IntegrityError as e:
            # concurrent creates colliding on the active-session index land here
            await self.store.rollback()
            logger.warning("Integrity conflict during %s %s: %s", operation, context, e.orig)
            raise StoreError(f"Store failure during {operation}", **context) from e
        except SQLAlchemyError as e:
            await self.store.rollback()
            logger.exception("Store failure during %s %s", operation, context)
            raise StoreError(f"Store failure during {operation}", **context) from e

    async def _require_schedule(self, schedule_id: int):
        schedule = await self.store.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("Exam schedule not found", exam_schedule_id=schedule_id)
        return schedule

    async def _require_exam(self, exam_id: int):
        exam = await self.store.get_exam(exam_id)
        if exam is None:
            raise NotFoundError("Exam not found", exam_id=exam_id)
        return exam

    async def _insert(self, schedule_id: int, exam_id: int, user_id: UUID, answers: Any, **fields) -> ExamSession:
        now = self.clock()
        return await self.store.insert(
            exam_schedule_id=schedule_id,
            exam_id=exam_id,
            user_id=user_id,
            answers=answers,
            is_submitted=False,
            last_save=now,
            created_at=now,
            updated_at=now,
            **fields,
        )

    async def _get_or_create_active(self, schedule_id: int, exam_id: int, user_id: UUID,
                                    answers: Any) -> Tuple[ExamSession, bool]:
        existing = await self.store.get_active(schedule_id, exam_id, user_id)
        if existing is not None:
            return existing, False

        schedule = await self._require_schedule(schedule_id)
        exam = await self._require_exam(exam_id)
        try:
            row = await self._insert(schedule_id, exam_id, user_id, answers,
                                     is_auto_move=bool(schedule.is_auto_move), minute_exam=exam.duration)
            return row, True
        except IntegrityError:
            # a concurrent request created the active session first
            await self.store.rollback()
            winner = await self.store.get_active(schedule_id, exam_id, user_id)
            if winner is None:
                raise
            logger.warning("Lost active-session race for exam_schedule_id=%s exam_id=%s user_id=%s, using session %s",
                           schedule_id, exam_id, user_id, winner.id)
            return winner, False

    async def create(self, schedule_id: int, exam_id: int, user_id: UUID, answers: Any) -> ExamSession:
        """Insert a new unsubmitted session. Callers check get_active_session first."""
        _require_ids(exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id)
        async with self._unit_of_work("create", exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id):
            row = await self._insert(schedule_id, exam_id, user_id, answers)
        return row

    async def create_batch(self, user_id: UUID, schedule_id: int, exam_ids: Sequence[int]) -> List[ExamSession]:
        """
        Create one session per exam, back to back on the schedule timeline.

        The first session starts at the schedule's start time, or now when the
        schedule is "open anytime"; each following session starts when the
        previous one ends. All rows are written in one transaction: a missing
        schedule or exam, or any store failure, leaves nothing behind.
        """
        _require_ids(exam_schedule_id=schedule_id, user_id=user_id)
        if not exam_ids:
            raise SessionValidationError("exam_ids must not be empty", exam_schedule_id=schedule_id)
        if len(set(exam_ids)) != len(exam_ids):
            raise SessionValidationError("Duplicate exam ids are not allowed", exam_schedule_id=schedule_id)

        sessions = []
        async with self._unit_of_work("create_batch", exam_schedule_id=schedule_id, user_id=user_id):
            schedule = await self._require_schedule(schedule_id)
            now = self.clock()
            anchor = schedule.start_time if is_real_time(schedule.start_time) else now

            for exam_id in exam_ids:
                exam = await self.store.get_exam(exam_id)
                if exam is None or exam.duration is None:
                    raise NotFoundError("Exam not found", exam_id=exam_id, exam_schedule_id=schedule_id)
                end = add_minutes(anchor, exam.duration)
                row = await self._insert(
                    schedule_id, exam_id, user_id, {},
                    start_time=anchor,
                    end_time=end,
                    minute_exam=minutes_between(anchor, end),
                    is_auto_move=bool(schedule.is_auto_move),
                )
                sessions.append(row)
                anchor = end

        logger.info("Created %d sessions for exam_schedule_id=%s user_id=%s", len(sessions), schedule_id, user_id)
        return sessions

    async def create_sessions(self, user_id: UUID, schedule_id: int,
                              exam_ids: Optional[Sequence[int]] = None) -> Tuple[List[ExamSession], bool]:
        """
        Return the learner's active sessions for the schedule, creating the
        whole batch first when there are none. The flag tells whether the
        batch was created by this call.
        """
        active = await self.list_sessions_for_schedule(schedule_id, user_id)
        if active:
            return active, False

        if exam_ids is None:
            exam_ids = [e.exam_id for e in await self.resolve_exam_order(schedule_id, user_id)]

        try:
            sessions = await self.create_batch(user_id, schedule_id, exam_ids)
        except StoreError as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            winners = await self.list_sessions_for_schedule(schedule_id, user_id)
            if not winners:
                raise
            logger.warning("Concurrent batch creation for exam_schedule_id=%s user_id=%s, returning existing sessions",
                           schedule_id, user_id)
            return winners, False
        return sessions, True

    async def get_active_session(self, schedule_id: int, exam_id: int, user_id: UUID) -> Optional[ExamSession]:
        async with self._unit_of_work("get_active_session", exam_schedule_id=schedule_id, exam_id=exam_id):
            row = await self.store.get_active(schedule_id, exam_id, user_id)
        return row

    async def resume_with_auto_move(self, row: ExamSession) -> ExamSession:
        """
        Restart an auto-move session's window at now when it is accessed
        before its nominal start. Once start_time <= now this is a no-op, so
        repeated calls move the window at most once.
        """
        now = self.clock()
        if not (row.is_auto_move and row.start_time is not None and now < row.start_time):
            return row

        new_end = add_minutes(now, row.minute_exam) if row.minute_exam is not None else None
        old_start = row.start_time
        async with self._unit_of_work("resume_with_auto_move", session_id=row.id):
            await self.store.update_times(row, now, new_end, now)
        logger.info("Auto-moved session %s from %s to %s", row.id, old_start, now)
        return row

    async def resume(self, schedule_id: int, exam_id: int, user_id: UUID) -> Optional[ExamSession]:
        row = await self.get_active_session(schedule_id, exam_id, user_id)
        if row is None:
            return None
        return await self.resume_with_auto_move(row)

    async def save_answers(self, schedule_id: int, exam_id: int, user_id: UUID, answers: Any) -> Tuple[ExamSession, bool]:
        """Replace the answers of the active session, creating it if needed."""
        _require_ids(exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id)
        if answers is None:
            raise SessionValidationError("Answers are required", exam_schedule_id=schedule_id, exam_id=exam_id)

        async with self._unit_of_work("save_answers", exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id):
            row, created = await self._get_or_create_active(schedule_id, exam_id, user_id, answers)
            if not created:
                await self.store.update_answers(row, answers, self.clock())
        return row, created

    async def submit(self, schedule_id: int, exam_id: int, user_id: UUID, answers: Any = None) -> ExamSession:
        """
        Mark the active session submitted. Without an active session one is
        created and submitted in the same transaction, which requires answers.
        """
        _require_ids(exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id)

        async with self._unit_of_work("submit", exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id):
            row = await self.store.get_active(schedule_id, exam_id, user_id)
            if row is None:
                if answers is None:
                    raise SessionValidationError("Answers are required for new session submission",
                                                 exam_schedule_id=schedule_id, exam_id=exam_id)
                row, _ = await self._get_or_create_active(schedule_id, exam_id, user_id, answers)
            await self.store.set_submitted(row, True, self.clock(),
                                           answers=answers if answers is not None else row.answers)
        logger.info("Submitted session %s (exam_schedule_id=%s exam_id=%s user_id=%s)", row.id, schedule_id, exam_id, user_id)
        return row

    async def verify(self, schedule_id: int, exam_id: int, user_id: UUID, questions_left: int,
                     session_id: Optional[int] = None) -> VerifyResult:
        """
        Reconcile the client's view of an exam with the server.

        With a session id the call only checks that it is the caller's active
        session. Otherwise the current session is reported, reopened when it
        is submitted but the client still has questions left, or created when
        there is none.
        """
        _require_ids(exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id)
        if questions_left is None:
            raise SessionValidationError("questions_left is required", exam_schedule_id=schedule_id, exam_id=exam_id)

        ctx = dict(exam_schedule_id=schedule_id, exam_id=exam_id, user_id=user_id)
        async with self._unit_of_work("verify", **ctx):
            exam = await self._require_exam(exam_id)
            exam_string = exam.exam_string

            if session_id is not None:
                active = await self.store.get_active(schedule_id, exam_id, user_id)
                if active is None or active.id != session_id:
                    logger.warning("Rejected stale session id %s for %s (current: %s)",
                                   session_id, ctx, active.id if active else None)
                    raise SessionConflictError("Session is not valid", session_id=session_id, **ctx)
                return VerifyResult("valid", active.id, active.is_submitted, exam_string)

            is_finished = questions_left <= 0
            current = await self.store.get_active(schedule_id, exam_id, user_id)
            if current is None:
                current = await self.store.get_latest(schedule_id, exam_id, user_id)

            if current is None:
                row, created = await self._get_or_create_active(schedule_id, exam_id, user_id, {})
                result = VerifyResult("created" if created else "success", row.id, row.is_submitted, exam_string)
            elif current.is_submitted and not is_finished:
                await self.store.set_submitted(current, False, self.clock())
                logger.warning("Reopened submitted session %s: client reports %s questions left", current.id, questions_left)
                result = VerifyResult("reopened", current.id, current.is_submitted, exam_string)
            else:
                result = VerifyResult("success", current.id, current.is_submitted, exam_string)
        return result

    async def list_sessions_for_schedule(self, schedule_id: int, user_id: UUID,
                                         include_submitted: bool = False) -> List[ExamSession]:
        async with self._unit_of_work("list_sessions_for_schedule", exam_schedule_id=schedule_id, user_id=user_id):
            rows = await self.store.list_for_schedule(schedule_id, user_id, include_submitted=include_submitted)
        return rows

    async def list_sessions_for_user(self, user_id: UUID) -> List[ExamSession]:
        async with self._unit_of_work("list_sessions_for_user", user_id=user_id):
            rows = await self.store.list_for_user(user_id)
        return rows

    async def list_sessions_for_exam(self, exam_id: int) -> List[ExamSession]:
        async with self._unit_of_work("list_sessions_for_exam", exam_id=exam_id):
            rows = await self.store.list_for_exam(exam_id)
        return rows

    async def resolve_exam_order(self, schedule_id: int, user_id: UUID) -> List[ExamOrderEntry]:
        async with self._unit_of_work("resolve_exam_order", exam_schedule_id=schedule_id, user_id=user_id):
            order = await resolve_exam_order(self.store, schedule_id, user_id, self.clock(), rng=self.rng)
        return order

    async def progress(self, schedule_id: int, user_id: UUID) -> Dict[str, Any]:
        """The learner's merged exam sequence and where to go next."""
        async with self._unit_of_work("progress", exam_schedule_id=schedule_id, user_id=user_id):
            schedule = await self._require_schedule(schedule_id)
            now = self.clock()
            order = await resolve_exam_order(self.store, schedule_id, user_id, now, rng=self.rng)
            sessions = await self.store.list_for_schedule(schedule_id, user_id, include_submitted=True)
            result = build_progress(schedule, order, sessions, now)
        return result
