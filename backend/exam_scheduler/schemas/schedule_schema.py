from pydantic import BaseModel, ValidationInfo, field_validator
from typing import Optional, List
from datetime import datetime

from ..services.clock import is_real_time, to_naive_utc


class ScheduleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    # Selected exam IDs; the order in the list defines the declared exam order
    exam_ids: List[int]
    # omitted -> "open anytime" sentinel
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_auto_move: bool = False
    is_need_order_exam: bool = False

    @field_validator("exam_ids")
    @classmethod
    def exam_ids_unique(cls, v):
        if not v:
            raise ValueError("a schedule needs at least one exam")
        if len(set(v)) != len(v):
            raise ValueError("Duplicate exam IDs are not allowed")
        return v

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, v, info: ValidationInfo):
        start = info.data.get("start_time")
        start, end = to_naive_utc(start), to_naive_utc(v)
        if is_real_time(end) and is_real_time(start) and end < start:
            raise ValueError("end_time must not be before start_time")
        return v


class ScheduleRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    exam_ids: List[int] = []
    start_time: datetime
    end_time: datetime
    is_auto_move: bool
    is_need_order_exam: bool


class ExamOrderItem(BaseModel):
    exam_id: int
    name: str
    exam_string: str
    duration: int


class ExamOrderResponse(BaseModel):
    exam_schedule_id: int
    exam_order: List[ExamOrderItem]


class SequenceItem(BaseModel):
    exam_id: int
    name: str
    exam_string: str
    duration: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_submitted: bool
    session_id: Optional[int] = None
    is_effectively_submitted: bool
    is_past: bool
    is_current: bool


class ScheduleProgress(BaseModel):
    exam_schedule_id: int
    active_exam_id: Optional[int] = None
    next_exam_id: Optional[int] = None
    next_exam_string: Optional[str] = None
    all_completed: bool
    schedule_ended: bool
    sequence: List[SequenceItem]
