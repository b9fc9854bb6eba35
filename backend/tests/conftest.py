import random
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from exam_scheduler.db import Base
from exam_scheduler.models import user_model, exam_model, schedule_model, exam_session_model, exam_order_model  # noqa: F401
from exam_scheduler.models.exam_model import Exam
from exam_scheduler.models.exam_session_model import ExamSession
from exam_scheduler.models.schedule_model import ExamSchedule, exam_schedule_exams
from exam_scheduler.services.clock import SENTINEL_TIME
from exam_scheduler.services.session_service import ExamSessionManager
from exam_scheduler.services.session_store import SessionStore


NOW = datetime(2025, 3, 10, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class Seeder:
    """Writes fixtures through its own sessions so the code under test starts with a clean identity map."""

    def __init__(self, session_maker):
        self.session_maker = session_maker

    async def exams(self, *durations):
        async with self.session_maker() as s:
            exams = [
                Exam(name=f"Exam {i}", exam_string=f"exam-{uuid.uuid4().hex[:8]}", duration=d)
                for i, d in enumerate(durations, start=1)
            ]
            s.add_all(exams)
            await s.commit()
            return [e.id for e in exams]

    async def schedule(self, exam_ids, start_time=SENTINEL_TIME, end_time=SENTINEL_TIME,
                       is_auto_move=False, is_need_order_exam=False):
        async with self.session_maker() as s:
            schedule = ExamSchedule(
                name="Tryout",
                start_time=start_time,
                end_time=end_time,
                is_auto_move=is_auto_move,
                is_need_order_exam=is_need_order_exam,
            )
            s.add(schedule)
            await s.flush()
            rows = [{"exam_schedule_id": schedule.id, "exam_id": eid, "position": idx} for idx, eid in enumerate(exam_ids)]
            await s.execute(insert(exam_schedule_exams), rows)
            await s.commit()
            return schedule.id

    async def count_sessions(self, schedule_id=None, user_id=None, active_only=False):
        async with self.session_maker() as s:
            stmt = select(func.count()).select_from(ExamSession)
            if schedule_id is not None:
                stmt = stmt.where(ExamSession.exam_schedule_id == schedule_id)
            if user_id is not None:
                stmt = stmt.where(ExamSession.user_id == user_id)
            if active_only:
                stmt = stmt.where(ExamSession.is_submitted == False)
            res = await s.execute(stmt)
            return res.scalar_one()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def seeder(session_maker):
    return Seeder(session_maker)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def manager(db_session, clock):
    return ExamSessionManager(SessionStore(db_session), clock=clock, rng=random.Random(7))
