from exam_scheduler.db import Base
from sqlalchemy import String


"""
Exams Model
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | INTEGER | Primary Key, canonical exam id inside the session core |
| `name` | VARCHAR | |
| `exam_string` | VARCHAR | Unique, stable external id used for routing |
| `duration` | INTEGER | In minutes |
| `created_at` | TIMESTAMP | naive UTC |

An exam is immutable once a session references it.
"""

from sqlalchemy import Column, Integer, DateTime
from exam_scheduler.services.clock import utcnow


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    exam_string = Column(String, nullable=False, unique=True, index=True)
    duration = Column(Integer, nullable=False)  # in minutes
    created_at = Column(DateTime, default=utcnow)
"""
The Example,

reading = Exam(name="Reading", exam_string="tryout-1-reading", duration=45)

reading.duration  # 45
reading.exam_string  # "tryout-1-reading"
"""
