from exam_scheduler.db import Base
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON, UniqueConstraint
from fastapi_users_db_sqlalchemy.generics import GUID
from exam_scheduler.services.clock import utcnow


class ExamOrder(Base):
    """Persisted shuffled exam order of a schedule for one learner."""
    __tablename__ = "exam_orders"
    __table_args__ = (UniqueConstraint('user_id', 'exam_schedule_id', name='uq_exam_order_user_schedule'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    exam_schedule_id = Column(Integer, ForeignKey("exam_schedule.id", ondelete="CASCADE"), nullable=False)
    exam_order = Column(JSON, nullable=False, default=list)  # list of exam ids
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)
