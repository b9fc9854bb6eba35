from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional, List
from uuid import UUID
from datetime import datetime


class SessionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    exam_schedule_id: int
    exam_id: int
    user_id: UUID
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    minute_exam: Optional[int] = None
    answers: Optional[Any] = None
    is_submitted: bool
    is_auto_move: bool
    last_save: datetime


class SessionSave(BaseModel):
    # exam ids arrive as text from some clients; pydantic coerces "12" -> 12
    exam_schedule_id: int
    exam_id: int
    answers: Optional[Any] = None


class SubmitPayload(BaseModel):
    exam_schedule_id: int
    exam_id: int
    answers: Optional[Any] = None


class BatchCreatePayload(BaseModel):
    exam_schedule_id: int
    # omitted -> the learner's resolved exam order for the schedule
    exam_ids: Optional[List[int]] = None


class BatchCreateResponse(BaseModel):
    message: str
    created: bool
    sessions: List[SessionRead]


class SaveResponse(BaseModel):
    message: str
    created: bool
    session: SessionRead


class VerifyPayload(BaseModel):
    exam_id: int
    exam_schedule_id: int
    questions_left: int
    session_id: Optional[int] = Field(default=None, description="Client-held session id to validate.")


class VerifyResponse(BaseModel):
    status: str
    session_id: int
    is_submitted: bool
    exam_string: Optional[str] = None
