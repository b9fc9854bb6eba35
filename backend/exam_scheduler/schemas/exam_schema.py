from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from datetime import datetime


class ExamCreate(BaseModel):
    name: str
    exam_string: str
    duration: int

    @field_validator("duration")
    @classmethod
    def duration_must_be_positive(cls, v):
        if v is None or v <= 0:
            raise ValueError("duration must be a positive integer (minutes)")
        return v

    @field_validator("exam_string")
    @classmethod
    def exam_string_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("exam_string must not be empty")
        return v.strip()


class ExamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    exam_string: str
    duration: int
    created_at: Optional[datetime] = None
