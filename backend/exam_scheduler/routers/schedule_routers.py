from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from sqlalchemy import select, insert
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..dependencies import current_admin, current_student, get_session_manager, scheduler_http_error
from ..models.exam_model import Exam
from ..models.schedule_model import ExamSchedule, exam_schedule_exams
from ..schemas.schedule_schema import ScheduleCreate, ScheduleRead, ExamOrderResponse, ScheduleProgress
from ..services.clock import SENTINEL_TIME, to_naive_utc
from ..services.errors import SchedulerError
from ..services.exam_service import _schedule_to_read_dict
from ..services.session_service import ExamSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.post("/", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED, dependencies=[Depends(current_admin)])
async def create_schedule(payload: ScheduleCreate, session: AsyncSession = Depends(get_async_session)):
    # verify exam ids exist
    res = await session.execute(select(Exam.id).where(Exam.id.in_(payload.exam_ids)))
    found = set(res.scalars().all())
    if len(found) != len(payload.exam_ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="One or more exam IDs are invalid")

    schedule = ExamSchedule(
        name=payload.name,
        description=payload.description,
        start_time=to_naive_utc(payload.start_time) or SENTINEL_TIME,
        end_time=to_naive_utc(payload.end_time) or SENTINEL_TIME,
        is_auto_move=payload.is_auto_move,
        is_need_order_exam=payload.is_need_order_exam,
    )
    session.add(schedule)
    await session.flush()

    rows = [{"exam_schedule_id": schedule.id, "exam_id": eid, "position": idx} for idx, eid in enumerate(payload.exam_ids)]
    await session.execute(insert(exam_schedule_exams), rows)
    await session.commit()

    logger.info("Created exam schedule %s with exams %s", schedule.id, payload.exam_ids)
    return _schedule_to_read_dict(schedule, list(payload.exam_ids))


@router.get("/", response_model=List[ScheduleRead], dependencies=[Depends(current_admin)])
async def list_schedules(session: AsyncSession = Depends(get_async_session)):
    res = await session.execute(select(ExamSchedule).order_by(ExamSchedule.id))
    return [_schedule_to_read_dict(s) for s in res.scalars().all()]


@router.get("/{schedule_id}", response_model=ScheduleRead, dependencies=[Depends(current_admin)])
async def get_schedule(schedule_id: int, session: AsyncSession = Depends(get_async_session)):
    res = await session.execute(select(ExamSchedule).where(ExamSchedule.id == schedule_id))
    schedule = res.scalar_one_or_none()
    if not schedule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam schedule not found")
    return _schedule_to_read_dict(schedule)


@router.get("/{schedule_id}/exam-order", response_model=ExamOrderResponse)
async def get_exam_order(schedule_id: int, user=Depends(current_student),
                         manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        order = await manager.resolve_exam_order(schedule_id, user.id)
    except SchedulerError as e:
        raise scheduler_http_error(e)
    return {
        'exam_schedule_id': schedule_id,
        'exam_order': [
            {'exam_id': o.exam_id, 'name': o.name, 'exam_string': o.exam_string, 'duration': o.duration}
            for o in order
        ],
    }


@router.get("/{schedule_id}/progress", response_model=ScheduleProgress)
async def get_progress(schedule_id: int, user=Depends(current_student),
                       manager: ExamSessionManager = Depends(get_session_manager)):
    try:
        return await manager.progress(schedule_id, user.id)
    except SchedulerError as e:
        raise scheduler_http_error(e)
