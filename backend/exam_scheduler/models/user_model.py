from ..db import Base
from sqlalchemy import String
from sqlalchemy import Column, Enum as SQLAlchemyEnum
from fastapi_users.db import SQLAlchemyBaseUserTableUUID
import enum


"""
Users Model (fastapi-users UUID table plus profile columns)
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key, referenced by exam_sessions.user_id |
| `email` | VARCHAR | Unique |
| `full_name` | VARCHAR | |
| `role` | ENUM | `admin` manages exams/schedules, `student` takes them |
"""


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STUDENT = "student"


class User(SQLAlchemyBaseUserTableUUID, Base):
    __tablename__ = "users"
    full_name = Column(String)
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.STUDENT, nullable=False)
