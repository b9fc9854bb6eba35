from exam_scheduler.db import Base


"""
ExamSchedule Model and ExamScheduleExams Junction Table
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | INTEGER | Primary Key |
| `name` | VARCHAR | |
| `description` | VARCHAR | |
| `start_time` | TIMESTAMP | naive UTC, year < 2000 means "open anytime" |
| `end_time` | TIMESTAMP | naive UTC, year < 2000 means "open anytime" |
| `is_auto_move` | BOOLEAN | Sessions restart their window on first access |
| `is_need_order_exam` | BOOLEAN | Shuffle exam order per learner |

### ExamScheduleExams (Junction)
| Column | Type | Notes |
| :--- | :--- | :--- |
| `exam_schedule_id` | INTEGER | FK -> ExamSchedule |
| `exam_id` | INTEGER | FK -> Exams |
| `position` | INTEGER | Declared order of the exam in the schedule |

Schedules are created administratively and are read-only to the session core.
"""

from sqlalchemy import Column, Boolean, Integer, String, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from exam_scheduler.services.clock import SENTINEL_TIME, utcnow


exam_schedule_exams = Table(
    "exam_schedule_exams",
    Base.metadata,
    Column("exam_schedule_id", Integer, ForeignKey("exam_schedule.id", ondelete="CASCADE"), primary_key=True),
    Column("exam_id", Integer, ForeignKey("exams.id"), primary_key=True),
    Column("position", Integer, nullable=False),
)


class ExamSchedule(Base):
    __tablename__ = "exam_schedule"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    start_time = Column(DateTime, nullable=False, default=SENTINEL_TIME)
    end_time = Column(DateTime, nullable=False, default=SENTINEL_TIME)
    is_auto_move = Column(Boolean, nullable=False, default=False)
    is_need_order_exam = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    # selectin so the ordered exam list is available without async lazy loads
    exams = relationship(
        "Exam",
        secondary=exam_schedule_exams,
        order_by=exam_schedule_exams.c.position,
        lazy="selectin",
    )
