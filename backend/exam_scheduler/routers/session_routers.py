from fastapi import APIRouter, Depends, HTTPException, status, Response
from typing import List
import logging

from ..dependencies import current_student, current_admin, get_session_manager, scheduler_http_error
from ..schemas.exam_session_schema import (
    SessionRead, SessionSave, SubmitPayload, BatchCreatePayload, BatchCreateResponse, SaveResponse,
    VerifyPayload, VerifyResponse,
)
from ..services.errors import SchedulerError
from ..services.exam_service import _session_to_read_dict
from ..services.session_service import ExamSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exam-sessions", tags=["Exam Sessions"])


@router.post("/batch", response_model=BatchCreateResponse)
async def create_sessions(payload: BatchCreatePayload, response: Response, user=Depends(current_student),
                          manager: ExamSessionManager = Depends(get_session_manager)):
    # returns the existing active sessions instead of creating duplicates
    try:
        sessions, created = await manager.create_sessions(user.id, payload.exam_schedule_id, payload.exam_ids)
    except SchedulerError as e:
        raise scheduler_http_error(e)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {
        'message': 'Exam sessions created successfully' if created else 'Active sessions already exist',
        'created': created,
        'sessions': [_session_to_read_dict(s) for s in sessions],
    }


@router.put("", response_model=SaveResponse)
async def save_session(payload: SessionSave, response: Response, user=Depends(current_student),
                       manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        row, created = await manager.save_answers(payload.exam_schedule_id, payload.exam_id, user.id, payload.answers)
    except SchedulerError as e:
        raise scheduler_http_error(e)

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {
        'message': 'Session created successfully' if created else 'Session updated successfully',
        'created': created,
        'session': _session_to_read_dict(row),
    }


@router.post("/submit", response_model=SessionRead)
async def submit_session(payload: SubmitPayload, user=Depends(current_student),
                         manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        row = await manager.submit(payload.exam_schedule_id, payload.exam_id, user.id, payload.answers)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    return _session_to_read_dict(row)


@router.get("/active", response_model=SessionRead)
async def get_active_session(exam_schedule_id: int, exam_id: int, user=Depends(current_student),
                             manager: ExamSessionManager = Depends(get_session_manager)):
    # resuming applies the auto-move window shift when due
    try:
        row = await manager.resume(exam_schedule_id, exam_id, user.id)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active session found")
    return _session_to_read_dict(row)


@router.post("/verify", response_model=VerifyResponse)
async def verify_session(payload: VerifyPayload, response: Response, user=Depends(current_student),
                         manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        result = await manager.verify(payload.exam_schedule_id, payload.exam_id, user.id,
                                      payload.questions_left, payload.session_id)
    except SchedulerError as e:
        raise scheduler_http_error(e)

    if result.status == "created":
        response.status_code = status.HTTP_201_CREATED
    return {
        'status': result.status,
        'session_id': result.session_id,
        'is_submitted': result.is_submitted,
        'exam_string': result.exam_string,
    }


@router.get("/schedule/{exam_schedule_id}", response_model=List[SessionRead])
async def list_schedule_sessions(exam_schedule_id: int, include_submitted: bool = False, user=Depends(current_student),
                                 manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        rows = await manager.list_sessions_for_schedule(exam_schedule_id, user.id, include_submitted=include_submitted)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    return [_session_to_read_dict(r) for r in rows]


@router.get("/me", response_model=List[SessionRead])
async def list_my_sessions(user=Depends(current_student), manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        rows = await manager.list_sessions_for_user(user.id)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    return [_session_to_read_dict(r) for r in rows]


@router.get("/exam/{exam_id}", response_model=List[SessionRead], dependencies=[Depends(current_admin)])
async def list_exam_sessions(exam_id: int, manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        rows = await manager.list_sessions_for_exam(exam_id)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    return [_session_to_read_dict(r) for r in rows]
