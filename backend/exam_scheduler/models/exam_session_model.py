from exam_scheduler.db import Base
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, Index, JSON, false
from sqlalchemy.dialects.postgresql import JSONB
from fastapi_users_db_sqlalchemy.generics import GUID
from exam_scheduler.services.clock import utcnow


# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
AnswersType = JSON().with_variant(JSONB(), "postgresql")


class ExamSession(Base):
    """One learner's attempt at one exam within one schedule.

    Answers are replaced wholesale on every save (last write wins), so the
    column is not wrapped in a mutable tracker.
    """
    __tablename__ = "exam_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    exam_schedule_id = Column(Integer, ForeignKey("exam_schedule.id", ondelete="CASCADE"), nullable=False, index=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    # null until the session is placed on the schedule timeline
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    minute_exam = Column(Integer, nullable=True)

    answers = Column(AnswersType, nullable=True, default=dict)
    is_submitted = Column(Boolean, nullable=False, default=False)
    is_auto_move = Column(Boolean, nullable=False, default=False)
    last_save = Column(DateTime, nullable=False, default=utcnow)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


# At most one unsubmitted session per (schedule, exam, user).
Index(
    "uq_exam_sessions_active",
    ExamSession.exam_schedule_id,
    ExamSession.exam_id,
    ExamSession.user_id,
    unique=True,
    postgresql_where=ExamSession.is_submitted == false(),
    sqlite_where=ExamSession.is_submitted == false(),
)
