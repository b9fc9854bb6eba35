import random
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from exam_scheduler.services.clock import SENTINEL_TIME
from exam_scheduler.services.errors import NotFoundError
from exam_scheduler.services.ordering_service import (
    ExamOrderEntry, active_exam_id, all_completed, build_progress, compute_sequence, first_incomplete,
    is_effectively_submitted, is_schedule_ended, resolve_exam_order, time_status,
)
from exam_scheduler.services.session_store import SessionStore


T1 = datetime(2025, 5, 1, 10, 0, 0)
T2 = datetime(2025, 5, 1, 9, 0, 0)


def entry(exam_id, name=None):
    name = name or f"Exam {exam_id}"
    return ExamOrderEntry(exam_id=exam_id, name=name, exam_string=name.lower().replace(" ", "-"), duration=30)


def session(exam_id, start, end=None, submitted=False, id=None):
    return SimpleNamespace(id=id, exam_id=exam_id, start_time=start, end_time=end, is_submitted=submitted)


def test_sequence_puts_sentinel_after_real_times():
    # A has no session (sentinel), B starts at T1, C at T2 < T1
    order = [entry(1, "A"), entry(2, "B"), entry(3, "C")]
    sessions = [session(2, T1), session(3, T2)]

    seq = compute_sequence(order, sessions)

    assert [e.name for e in seq] == ["C", "B", "A"]
    assert seq[2].start_time == SENTINEL_TIME
    assert seq[2].is_submitted is False


def test_sequence_treats_missing_start_as_last_and_keeps_their_order():
    order = [entry(1), entry(2), entry(3), entry(4)]
    sessions = [session(1, None), session(2, T1), session(3, SENTINEL_TIME)]

    seq = compute_sequence(order, sessions)

    assert [e.exam_id for e in seq] == [2, 1, 3, 4]


def test_sequence_copies_session_state():
    order = [entry(1)]
    seq = compute_sequence(order, [session(1, T2, T1, submitted=True, id=9)])

    assert seq[0].start_time == T2
    assert seq[0].end_time == T1
    assert seq[0].is_submitted is True
    assert seq[0].session_id == 9


def test_sequence_prefers_open_attempt_over_submitted_history():
    order = [entry(1), entry(2)]
    sessions = [session(1, T2, submitted=True, id=1), session(2, T2 + timedelta(minutes=30), submitted=True, id=2),
                session(1, T1, id=3), session(2, T1 + timedelta(minutes=30), id=4)]

    seq = compute_sequence(order, sessions)

    assert [e.session_id for e in seq] == [3, 4]
    assert not any(e.is_submitted for e in seq)
    assert first_incomplete(seq, active_exam_id(sessions)).exam_id == 1


def test_sequence_falls_back_to_submitted_session():
    seq = compute_sequence([entry(1)], [session(1, T1, submitted=True, id=5)])

    assert seq[0].session_id == 5
    assert seq[0].is_submitted is True


def test_sequence_without_sessions_keeps_declared_order():
    order = [entry(3), entry(1), entry(2)]

    seq = compute_sequence(order, [])

    assert [e.exam_id for e in seq] == [3, 1, 2]
    assert all(e.start_time == SENTINEL_TIME and e.end_time == SENTINEL_TIME for e in seq)


def test_earlier_exams_count_as_submitted_once_learner_moved_on():
    order = [entry(1), entry(2), entry(3)]
    sessions = [session(1, T2), session(2, T2 + timedelta(minutes=30)), session(3, T2 + timedelta(minutes=60))]
    seq = compute_sequence(order, sessions)

    # learner is on exam 2 although exam 1 was never explicitly submitted
    assert is_effectively_submitted(seq[0], 2, seq) is True
    assert is_effectively_submitted(seq[1], 2, seq) is False
    assert is_effectively_submitted(seq[2], 2, seq) is False
    assert first_incomplete(seq, 2).exam_id == 2


def test_effective_submission_without_active_exam_uses_explicit_flag():
    order = [entry(1), entry(2)]
    seq = compute_sequence(order, [session(1, T2, submitted=True), session(2, T1)])

    assert is_effectively_submitted(seq[0], None, seq) is True
    assert is_effectively_submitted(seq[1], None, seq) is False
    # an active exam outside the sequence never makes anything lenient
    assert is_effectively_submitted(seq[1], 99, seq) is False
    assert first_incomplete(seq, None).exam_id == 2


def test_first_incomplete_none_when_everything_submitted():
    order = [entry(1), entry(2)]
    seq = compute_sequence(order, [session(1, T2, submitted=True), session(2, T1, submitted=True)])

    assert first_incomplete(seq, None) is None


def test_all_completed():
    assert all_completed([]) is False
    assert all_completed([session(1, T1, submitted=True), session(2, T2, submitted=True)]) is True
    assert all_completed([session(1, T1, submitted=True), session(2, T2)]) is False


def test_active_exam_is_earliest_unsubmitted():
    sessions = [session(1, T2, submitted=True), session(2, T1), session(3, None)]
    assert active_exam_id(sessions) == 2
    assert active_exam_id([session(1, T1, submitted=True)]) == 1
    assert active_exam_id([]) is None


def test_time_status():
    now = T2 + timedelta(minutes=10)
    current = session(1, T2, T2 + timedelta(minutes=30))
    past = session(2, T2 - timedelta(hours=1), T2 - timedelta(minutes=30))
    anytime = session(3, SENTINEL_TIME, SENTINEL_TIME)

    assert time_status(current, now) == (False, True)
    assert time_status(past, now) == (True, False)
    assert time_status(anytime, now) == (False, False)
    past.is_submitted = True
    assert time_status(past, now) == (False, False)


def test_schedule_ended():
    now = T1
    schedule = SimpleNamespace(end_time=T1 - timedelta(minutes=1))
    anytime = SimpleNamespace(end_time=SENTINEL_TIME)

    assert is_schedule_ended(schedule, [], now) is True
    assert is_schedule_ended(anytime, [], now) is False
    open_session = session(1, T2, T1 + timedelta(minutes=5))
    assert is_schedule_ended(schedule, [open_session], now) is False
    open_session.is_submitted = True
    assert is_schedule_ended(schedule, [open_session], now) is True


def test_progress_routes_to_next_exam():
    schedule = SimpleNamespace(id=5, end_time=SENTINEL_TIME)
    order = [entry(1), entry(2)]
    sessions = [session(1, T2, T2 + timedelta(minutes=30), submitted=True, id=11),
                session(2, T2 + timedelta(minutes=30), T2 + timedelta(minutes=60), id=12)]

    progress = build_progress(schedule, order, sessions, T2 + timedelta(minutes=40))

    assert progress['exam_schedule_id'] == 5
    assert progress['active_exam_id'] == 2
    assert progress['next_exam_string'] == "exam-2"
    assert progress['all_completed'] is False
    assert progress['schedule_ended'] is False
    assert [e['is_current'] for e in progress['sequence']] == [False, True]


async def test_resolve_declared_order(db_session, seeder, clock, user_id):
    exam_ids = await seeder.exams(30, 45, 20)
    declared = [exam_ids[1], exam_ids[2], exam_ids[0]]
    schedule_id = await seeder.schedule(declared)

    order = await resolve_exam_order(SessionStore(db_session), schedule_id, user_id, clock.now)

    assert [o.exam_id for o in order] == declared
    assert [o.duration for o in order] == [45, 20, 30]


async def test_resolve_shuffled_order_is_persisted_per_learner(db_session, seeder, clock, user_id):
    exam_ids = await seeder.exams(10, 20, 30, 40, 50)
    schedule_id = await seeder.schedule(exam_ids, is_need_order_exam=True)
    store = SessionStore(db_session)

    first = await resolve_exam_order(store, schedule_id, user_id, clock.now, rng=random.Random(1))
    await store.commit()
    # a different shuffle source must not change an already stored order
    second = await resolve_exam_order(store, schedule_id, user_id, clock.now, rng=random.Random(2))

    assert sorted(o.exam_id for o in first) == sorted(exam_ids)
    assert [o.exam_id for o in second] == [o.exam_id for o in first]


async def test_resolve_unknown_schedule(db_session, clock, user_id):
    with pytest.raises(NotFoundError):
        await resolve_exam_order(SessionStore(db_session), 404, user_id, clock.now)
