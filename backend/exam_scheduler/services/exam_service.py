from typing import List
from exam_scheduler.models.exam_model import Exam
from exam_scheduler.models.schedule_model import ExamSchedule
from exam_scheduler.models.exam_session_model import ExamSession


def _exam_to_read_dict(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "name": exam.name,
        "exam_string": exam.exam_string,
        "duration": exam.duration,
        "created_at": exam.created_at,
    }


def _schedule_to_read_dict(schedule: ExamSchedule, exam_ids: List[int] | None = None) -> dict:
    if exam_ids is None:
        exam_ids = [e.id for e in schedule.exams]
    return {
        "id": schedule.id,
        "name": schedule.name,
        "description": schedule.description,
        "exam_ids": exam_ids or [],
        "start_time": schedule.start_time,
        "end_time": schedule.end_time,
        "is_auto_move": schedule.is_auto_move,
        "is_need_order_exam": schedule.is_need_order_exam,
    }


def _session_to_read_dict(row: ExamSession) -> dict:
    return {
        "id": row.id,
        "exam_schedule_id": row.exam_schedule_id,
        "exam_id": row.exam_id,
        "user_id": row.user_id,
        "start_time": row.start_time,
        "end_time": row.end_time,
        "minute_exam": row.minute_exam,
        "answers": row.answers,
        "is_submitted": row.is_submitted,
        "is_auto_move": row.is_auto_move,
        "last_save": row.last_save,
    }
