from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime

from sqlmodel import Session, select

from meeting_manager.errors import MeetingNotFoundError, PersistenceError
from meeting_manager.models.meeting import Meeting
from meeting_manager.repositories.meetings import MeetingsRepository
from meeting_manager.repositories.points import PointsRepository
from meeting_manager.services.meeting_cloner import MeetingCloner
from meeting_manager.services.recurrence_scheduler import RecurrenceScheduler, SchedulerRunner

from conftest import CREATOR

AS_OF = date(2024, 5, 1)


def _get(engine, meeting_id) -> Meeting:
    with Session(engine) as s:
        return s.get(Meeting, meeting_id)


def test_end_to_end_daily_meeting(engine, store_factory, meeting_factory, point_factory):
    m = meeting_factory(next_schedule=date(2024, 5, 1))
    p = point_factory(m)

    summary = RecurrenceScheduler(store_factory).run_scheduler_tick(as_of=AS_OF)

    assert (summary.due, summary.succeeded, summary.failed) == (1, 1, 0)
    [(source, new_id)] = summary.created
    assert source == m

    clone = _get(engine, new_id)
    assert clone.start_time == datetime(2024, 5, 1, 10, 0)
    assert clone.end_time == datetime(2024, 5, 1, 11, 0)
    assert _get(engine, m).next_schedule == date(2024, 5, 2)

    with Session(engine) as s:
        carried = PointsRepository(s).list_by_meeting(new_id)
        assert [x.forwarded_from_point_id for x in carried] == [p]
        assert PointsRepository(s).get_decision(p, CREATOR).add_point_meeting is True
        assert len(MeetingsRepository(s).list_history(new_id)) == 1


def test_one_failure_does_not_block_the_batch(engine, store_factory, meeting_factory, monkeypatch):
    ids = [meeting_factory(name=f"m{i}", next_schedule=date(2024, 4, 28 + i)) for i in range(3)]
    cloner = MeetingCloner(store_factory)
    real_clone_into = cloner.clone_into

    def flaky(store, meeting_id, next_schedule):
        if meeting_id == ids[1]:
            raise MeetingNotFoundError(meeting_id)
        return real_clone_into(store, meeting_id, next_schedule)

    monkeypatch.setattr(cloner, "clone_into", flaky)
    summary = RecurrenceScheduler(store_factory, cloner=cloner).run_scheduler_tick(as_of=AS_OF)

    assert (summary.due, summary.succeeded, summary.failed) == (3, 2, 1)
    assert summary.failed_meeting_ids == [ids[1]]
    assert [source for source, _ in summary.created] == [ids[0], ids[2]]
    assert _get(engine, ids[0]).next_schedule == date(2024, 4, 29)
    assert _get(engine, ids[1]).next_schedule == date(2024, 4, 29)
    assert _get(engine, ids[2]).next_schedule == date(2024, 5, 1)


def test_meeting_gone_at_clone_time_is_counted_as_failure(engine, store_factory, meeting_factory, monkeypatch):
    m = meeting_factory()
    cloner = MeetingCloner(store_factory)
    monkeypatch.setattr(cloner, "clone_into", lambda store, meeting_id, when: None)

    summary = RecurrenceScheduler(store_factory, cloner=cloner).run_scheduler_tick(as_of=AS_OF)

    assert (summary.succeeded, summary.failed) == (0, 1)
    assert _get(engine, m).next_schedule == AS_OF


def test_persistence_failure_in_one_meeting_is_isolated(engine, store_factory, meeting_factory, monkeypatch):
    first = meeting_factory(next_schedule=date(2024, 4, 30))
    second = meeting_factory(next_schedule=date(2024, 5, 1))
    cloner = MeetingCloner(store_factory)
    real_clone_into = cloner.clone_into

    def flaky(store, meeting_id, next_schedule):
        new_id = real_clone_into(store, meeting_id, next_schedule)
        if meeting_id == first:
            raise PersistenceError("database is locked")
        return new_id

    monkeypatch.setattr(cloner, "clone_into", flaky)
    summary = RecurrenceScheduler(store_factory, cloner=cloner).run_scheduler_tick(as_of=AS_OF)

    assert summary.failed_meeting_ids == [first]
    # the failed unit of work left nothing behind
    with Session(engine) as s:
        assert len(list(s.exec(select(Meeting)))) == 3
    assert _get(engine, first).next_schedule == date(2024, 4, 30)
    assert _get(engine, second).next_schedule == date(2024, 5, 2)


def test_only_completed_recurring_due_meetings_are_picked(engine, store_factory, meeting_factory):
    due = meeting_factory(repeat_type="weekly")
    meeting_factory(status="in_progress")
    meeting_factory(status="not_started")
    meeting_factory(repeat_type="none")
    meeting_factory(next_schedule=date(2024, 5, 2))
    meeting_factory(next_schedule=None)

    summary = RecurrenceScheduler(store_factory).run_scheduler_tick(as_of=AS_OF)

    assert [source for source, _ in summary.created] == [due]
    assert _get(engine, due).next_schedule == date(2024, 5, 8)


def test_backlog_drains_oldest_first_and_advances_from_next_schedule(engine, store_factory, meeting_factory):
    late = meeting_factory(name="late", next_schedule=date(2024, 4, 20), repeat_type="custom_day", custom_days=3)
    later = meeting_factory(name="later", next_schedule=date(2024, 4, 25), repeat_type="monthly")
    oldest = meeting_factory(name="oldest", next_schedule=date(2024, 1, 31), repeat_type="monthly")

    summary = RecurrenceScheduler(store_factory).run_scheduler_tick(as_of=AS_OF)

    assert [source for source, _ in summary.created] == [oldest, late, later]
    assert _get(engine, oldest).next_schedule == date(2024, 2, 29)
    assert _get(engine, late).next_schedule == date(2024, 4, 23)
    assert _get(engine, later).next_schedule == date(2024, 5, 25)


def test_second_tick_same_day_does_not_reclone(engine, store_factory, meeting_factory):
    m = meeting_factory()
    scheduler = RecurrenceScheduler(store_factory)

    first = scheduler.run_scheduler_tick(as_of=AS_OF)
    second = scheduler.run_scheduler_tick(as_of=AS_OF)

    assert first.succeeded == 1
    assert second.due == 0
    assert _get(engine, m).next_schedule == date(2024, 5, 2)


def test_empty_tick_is_a_noop(store_factory):
    summary = RecurrenceScheduler(store_factory).run_scheduler_tick(as_of=AS_OF)
    assert (summary.due, summary.succeeded, summary.failed, summary.aborted) == (0, 0, 0, False)


def test_overlapping_tick_is_skipped(store_factory, meeting_factory):
    meeting_factory()
    scheduler = RecurrenceScheduler(store_factory)

    scheduler._run_lock.acquire()
    try:
        summary = scheduler.run_scheduler_tick(as_of=AS_OF)
    finally:
        scheduler._run_lock.release()

    assert summary.skipped_overlap is True
    assert summary.due == 0
    assert scheduler.run_scheduler_tick(as_of=AS_OF).succeeded == 1


def test_query_failure_aborts_tick():
    @contextmanager
    def broken():
        raise PersistenceError("no such table: meeting")
        yield  # pragma: no cover

    summary = RecurrenceScheduler(broken).run_scheduler_tick(as_of=AS_OF)
    assert summary.aborted is True
    assert summary.due == 0


def test_stop_request_finishes_current_meeting_only(engine, store_factory, meeting_factory, monkeypatch):
    ids = [meeting_factory(name=f"m{i}") for i in range(3)]
    scheduler = RecurrenceScheduler(store_factory)
    real_clone_into = scheduler.cloner.clone_into

    def stop_after_first(store, meeting_id, next_schedule):
        scheduler.request_stop()
        return real_clone_into(store, meeting_id, next_schedule)

    monkeypatch.setattr(scheduler.cloner, "clone_into", stop_after_first)
    summary = scheduler.run_scheduler_tick(as_of=AS_OF)

    assert (summary.succeeded, summary.skipped) == (1, 2)
    assert _get(engine, ids[0]).next_schedule == date(2024, 5, 2)
    assert _get(engine, ids[1]).next_schedule == AS_OF


def test_today_uses_configured_timezone(store_factory):
    scheduler = RecurrenceScheduler(store_factory, timezone="Asia/Kolkata")
    assert isinstance(scheduler.today(), date)


def test_runner_registers_single_instance_interval_job(store_factory):
    runner = SchedulerRunner(RecurrenceScheduler(store_factory), interval_seconds=3600, timezone="Asia/Kolkata")
    runner.start()
    try:
        assert runner.running
        job = runner._background.get_job(SchedulerRunner.JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        runner.stop()
    assert not runner.running


def test_redeciding_a_carried_point_does_not_carry_it_again(engine, store_factory, meeting_factory, point_factory):
    m = meeting_factory()
    p = point_factory(m)
    scheduler = RecurrenceScheduler(store_factory)

    first = scheduler.run_scheduler_tick(as_of=date(2024, 5, 1))
    with Session(engine) as s:
        PointsRepository(s).upsert_decision(p, CREATOR, "NEXT", "AGREE")
    second = scheduler.run_scheduler_tick(as_of=date(2024, 5, 2))

    new_ids = [new_id for _, new_id in first.created + second.created]
    assert len(new_ids) == 2
    with Session(engine) as s:
        points = PointsRepository(s)
        carried = [[x.forwarded_from_point_id for x in points.list_by_meeting(i)] for i in new_ids]
        assert carried == [[p], []]
        assert points.get_decision(p, CREATOR).add_point_meeting is True


def test_restarted_runner_processes_the_whole_batch(engine, store_factory, meeting_factory):
    m = meeting_factory()
    scheduler = RecurrenceScheduler(store_factory)
    runner = SchedulerRunner(scheduler, interval_seconds=3600)

    runner.start()
    runner.stop()
    runner.start()
    try:
        summary = scheduler.run_scheduler_tick(as_of=AS_OF)
    finally:
        runner.stop()

    assert (summary.due, summary.succeeded, summary.skipped) == (1, 1, 0)
    assert _get(engine, m).next_schedule == date(2024, 5, 2)


def test_resume_clears_a_stop_request(store_factory, meeting_factory):
    meeting_factory()
    scheduler = RecurrenceScheduler(store_factory)

    scheduler.request_stop()
    assert scheduler.run_scheduler_tick(as_of=AS_OF).skipped == 1
    scheduler.resume()
    assert scheduler.run_scheduler_tick(as_of=AS_OF).succeeded == 1
