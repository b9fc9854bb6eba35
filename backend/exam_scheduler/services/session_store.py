from typing import List, Optional
from uuid import UUID
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.exam_model import Exam
from ..models.schedule_model import ExamSchedule
from ..models.exam_session_model import ExamSession
from ..models.exam_order_model import ExamOrder


class SessionStore:
    """
    Persistence adapter for the session core.

    Every write only flushes; committing and rolling back belong to the
    caller's unit of work so a batch can span many inserts.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()

    # schedules and exams (read-only to the session core)

    async def get_schedule(self, schedule_id: int) -> Optional[ExamSchedule]:
        res = await self.session.execute(select(ExamSchedule).where(ExamSchedule.id == schedule_id))
        return res.scalar_one_or_none()

    async def get_exam(self, exam_id: int) -> Optional[Exam]:
        res = await self.session.execute(select(Exam).where(Exam.id == exam_id))
        return res.scalar_one_or_none()

    # sessions

    def _triple(self, schedule_id: int, exam_id: int, user_id: UUID):
        stmt = select(ExamSession).where(
            ExamSession.exam_schedule_id == schedule_id,
            ExamSession.exam_id == exam_id,
            ExamSession.user_id == user_id,
        )
        return stmt.order_by(ExamSession.last_save.desc(), ExamSession.id.desc()).limit(1)

    async def get_active(self, schedule_id: int, exam_id: int, user_id: UUID) -> Optional[ExamSession]:
        stmt = self._triple(schedule_id, exam_id, user_id).where(ExamSession.is_submitted == False)
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_latest(self, schedule_id: int, exam_id: int, user_id: UUID) -> Optional[ExamSession]:
        res = await self.session.execute(self._triple(schedule_id, exam_id, user_id))
        return res.scalar_one_or_none()

    async def list_for_schedule(self, schedule_id: int, user_id: UUID, include_submitted: bool = False) -> List[ExamSession]:
        stmt = select(ExamSession).where(ExamSession.exam_schedule_id == schedule_id, ExamSession.user_id == user_id)
        if not include_submitted:
            stmt = stmt.where(ExamSession.is_submitted == False)
        stmt = stmt.order_by(ExamSession.last_save.desc(), ExamSession.id.desc())
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_for_user(self, user_id: UUID) -> List[ExamSession]:
        stmt = select(ExamSession).where(ExamSession.user_id == user_id).order_by(ExamSession.last_save.desc(), ExamSession.id.desc())
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_for_exam(self, exam_id: int) -> List[ExamSession]:
        stmt = select(ExamSession).where(ExamSession.exam_id == exam_id).order_by(ExamSession.last_save.desc(), ExamSession.id.desc())
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def insert(self, **fields) -> ExamSession:
        # raises IntegrityError on flush when a second active row would exist
        row = ExamSession(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update_answers(self, row: ExamSession, answers, now: datetime) -> ExamSession:
        row.answers = answers
        row.last_save = now
        row.updated_at = now
        await self.session.flush()
        return row

    async def update_times(self, row: ExamSession, start_time: datetime, end_time: Optional[datetime], now: datetime) -> ExamSession:
        row.start_time = start_time
        row.end_time = end_time
        row.last_save = now
        row.updated_at = now
        await self.session.flush()
        return row

    async def set_submitted(self, row: ExamSession, is_submitted: bool, now: datetime, answers=None) -> ExamSession:
        if answers is not None:
            row.answers = answers
        row.is_submitted = is_submitted
        row.last_save = now
        row.updated_at = now
        await self.session.flush()
        return row

    # per-learner exam order

    async def get_exam_order(self, user_id: UUID, schedule_id: int) -> Optional[ExamOrder]:
        res = await self.session.execute(
            select(ExamOrder).where(ExamOrder.user_id == user_id, ExamOrder.exam_schedule_id == schedule_id)
        )
        return res.scalar_one_or_none()

    async def save_exam_order(self, user_id: UUID, schedule_id: int, exam_ids: List[int], now: datetime,
                              existing: Optional[ExamOrder] = None) -> ExamOrder:
        if existing is None:
            existing = ExamOrder(user_id=user_id, exam_schedule_id=schedule_id, created_at=now)
            self.session.add(existing)
        existing.exam_order = list(exam_ids)
        existing.updated_at = now
        await self.session.flush()
        return existing
