from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
import logging


from ..db import get_async_session
from ..models.exam_model import Exam
from ..schemas.exam_schema import ExamCreate, ExamRead
from ..services.exam_service import _exam_to_read_dict
from ..dependencies import current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("/", response_model=List[ExamRead], dependencies=[Depends(current_admin)])
async def get_all_exams(session: AsyncSession = Depends(get_async_session)):
    result = await session.execute(select(Exam).order_by(Exam.id))
    return [_exam_to_read_dict(exam) for exam in result.scalars().all()]


@router.post("/", response_model=ExamRead, status_code=status.HTTP_201_CREATED, dependencies=[Depends(current_admin)])
async def create_exam(payload: ExamCreate, session: AsyncSession = Depends(get_async_session)):
    exam = Exam(
        name=payload.name,
        exam_string=payload.exam_string,
        duration=payload.duration,
    )
    session.add(exam)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="exam_string is already in use")

    logger.info("Created exam %s (%s)", exam.id, exam.exam_string)
    return _exam_to_read_dict(exam)


@router.get("/{exam_id}", response_model=ExamRead, dependencies=[Depends(current_admin)])
async def get_exam(exam_id: int, session: AsyncSession = Depends(get_async_session)):
    result = await session.execute(select(Exam).where(Exam.id == exam_id))
    exam = result.scalar_one_or_none()
    if not exam:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    return _exam_to_read_dict(exam)
