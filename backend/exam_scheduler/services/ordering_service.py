"""
Exam ordering within a schedule.

Everything except resolve_exam_order is a pure function over plain objects
exposing ``exam_id``, ``start_time``, ``end_time`` and ``is_submitted``, so
the same helpers work on ORM sessions and on merged sequence entries.
"""
import logging
import random
from dataclasses import dataclass, asdict
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from .clock import SENTINEL_TIME, is_real_time
from .errors import NotFoundError
from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class ExamOrderEntry:
    exam_id: int
    name: str
    exam_string: str
    duration: int


@dataclass
class SequenceEntry:
    exam_id: int
    name: str
    exam_string: str
    duration: Optional[int]
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    is_submitted: bool
    session_id: Optional[int] = None


async def resolve_exam_order(store: SessionStore, schedule_id: int, user_id: UUID, now: datetime,
                             rng: Optional[random.Random] = None) -> List[ExamOrderEntry]:
    """
    Return the exam order the learner takes the schedule in.

    Without ``is_need_order_exam`` this is the declared order. With it, the
    learner gets a shuffled order that is persisted on first access and
    reused afterwards; a persisted order whose exam set no longer matches the
    schedule is reshuffled. Writes are flushed only.
    """
    schedule = await store.get_schedule(schedule_id)
    if schedule is None:
        raise NotFoundError("Exam schedule not found", exam_schedule_id=schedule_id)

    exams = {e.id: e for e in schedule.exams}
    declared = [e.id for e in schedule.exams]

    if schedule.is_need_order_exam:
        saved = await store.get_exam_order(user_id, schedule_id)
        saved_ids = [int(i) for i in saved.exam_order] if saved is not None else None
        if saved_ids is not None and len(saved_ids) == len(declared) and set(saved_ids) == set(declared):
            order = saved_ids
        else:
            order = list(declared)
            (rng or random).shuffle(order)
            await store.save_exam_order(user_id, schedule_id, order, now, existing=saved)
            logger.info("Stored shuffled exam order for schedule_id=%s user_id=%s: %s", schedule_id, user_id, order)
    else:
        order = declared

    return [
        ExamOrderEntry(exam_id=exams[eid].id, name=exams[eid].name, exam_string=exams[eid].exam_string,
                       duration=exams[eid].duration)
        for eid in order
    ]


def _compare_start(a: Any, b: Any) -> int:
    # missing and sentinel start times sort after every real one
    a_ok = is_real_time(a.start_time)
    b_ok = is_real_time(b.start_time)
    if not a_ok and not b_ok:
        return 0
    if not a_ok:
        return 1
    if not b_ok:
        return -1
    if a.start_time < b.start_time:
        return -1
    if a.start_time > b.start_time:
        return 1
    return 0


def sort_by_start(items: Sequence[Any]) -> List[Any]:
    return sorted(items, key=cmp_to_key(_compare_start))


def compute_sequence(exam_order: Sequence[ExamOrderEntry], sessions: Sequence[Any]) -> List[SequenceEntry]:
    """
    Merge session timing into the exam order and sort by start time.

    An exam's unsubmitted session wins over its submitted history, so a
    retaken exam shows the current attempt rather than the finished one.
    """
    ordered_sessions = sort_by_start(sessions)
    merged = []
    for exam in exam_order:
        candidates = [s for s in ordered_sessions if int(s.exam_id) == exam.exam_id]
        match = next((s for s in candidates if not s.is_submitted), None)
        if match is None and candidates:
            match = candidates[0]
        if match is not None:
            merged.append(SequenceEntry(
                exam_id=exam.exam_id,
                name=exam.name,
                exam_string=exam.exam_string,
                duration=exam.duration,
                start_time=match.start_time,
                end_time=match.end_time,
                is_submitted=bool(match.is_submitted),
                session_id=getattr(match, "id", None),
            ))
        else:
            merged.append(SequenceEntry(
                exam_id=exam.exam_id,
                name=exam.name,
                exam_string=exam.exam_string,
                duration=exam.duration,
                start_time=SENTINEL_TIME,
                end_time=SENTINEL_TIME,
                is_submitted=False,
            ))
    return sort_by_start(merged)


def _position(sequence: Sequence[Any], exam_id: int) -> int:
    for idx, entry in enumerate(sequence):
        if entry.exam_id == exam_id:
            return idx
    return -1


def is_effectively_submitted(entry: Any, active_exam_id: Optional[int], sequence: Sequence[Any]) -> bool:
    """
    Submitted, or placed before the active exam in the sorted sequence.

    Exams the learner has already moved past count as completed even when
    their submit call never reached the server.
    """
    if entry.is_submitted:
        return True
    if active_exam_id is None:
        return False
    ordered = sort_by_start(sequence)
    return _position(ordered, entry.exam_id) < _position(ordered, active_exam_id)


def first_incomplete(sequence: Sequence[Any], active_exam_id: Optional[int]) -> Optional[Any]:
    ordered = sort_by_start(sequence)
    for entry in ordered:
        if not is_effectively_submitted(entry, active_exam_id, ordered):
            return entry
    return None


def all_completed(sessions: Sequence[Any]) -> bool:
    # no sessions means "not started", never "finished"
    return len(sessions) > 0 and all(s.is_submitted for s in sessions)


def active_exam_id(sessions: Sequence[Any]) -> Optional[int]:
    """Exam of the earliest unsubmitted session, else of the earliest session."""
    ordered = sort_by_start(sessions)
    if not ordered:
        return None
    current = next((s for s in ordered if not s.is_submitted), ordered[0])
    return int(current.exam_id)


def time_status(entry: Any, now: datetime) -> Tuple[bool, bool]:
    """(is_past, is_current) of an entry's window; both False when unscheduled or submitted."""
    if entry.is_submitted or not is_real_time(entry.start_time) or not is_real_time(entry.end_time):
        return False, False
    return now > entry.end_time, entry.start_time <= now <= entry.end_time


def is_schedule_ended(schedule: Any, sessions: Sequence[Any], now: datetime) -> bool:
    if sessions:
        return not any(
            s.end_time is not None and s.end_time >= now and not s.is_submitted
            for s in sessions
        )
    # an "anytime" schedule never ends on its own
    if not is_real_time(schedule.end_time):
        return False
    return now > schedule.end_time


def build_progress(schedule: Any, exam_order: Sequence[ExamOrderEntry], sessions: Sequence[Any],
                   now: datetime) -> Dict[str, Any]:
    sequence = compute_sequence(exam_order, sessions)
    active_id = active_exam_id(sessions)
    entries = []
    for entry in sequence:
        is_past, is_current = time_status(entry, now)
        item = asdict(entry)
        item.update({
            'is_effectively_submitted': is_effectively_submitted(entry, active_id, sequence),
            'is_past': is_past,
            'is_current': is_current,
        })
        entries.append(item)

    nxt = first_incomplete(sequence, active_id)
    return {
        'exam_schedule_id': schedule.id,
        'active_exam_id': active_id,
        'next_exam_id': nxt.exam_id if nxt else None,
        'next_exam_string': nxt.exam_string if nxt else None,
        'all_completed': all_completed(sessions),
        'schedule_ended': is_schedule_ended(schedule, sessions, now),
        'sequence': entries,
    }
