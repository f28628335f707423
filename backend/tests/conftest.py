"""Shared fixtures: a throwaway SQLite database per test and row builders."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterator, Optional

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import Session

from meeting_manager.models.base import build_engine, init_db
from meeting_manager.models.meeting import Meeting
from meeting_manager.models.member import MeetingMember
from meeting_manager.models.point import MeetingPoint
from meeting_manager.models.point_forward import PointForwardDecision
from meeting_manager.repositories.scheduling import session_store_scope

CREATOR = 7


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    eng = build_engine(f"sqlite:///{tmp_path / 'meetings.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store_factory(engine):
    return session_store_scope(engine)


def add_meeting(
    engine: Engine,
    *,
    name: str = "Weekly sync",
    repeat_type: str = "daily",
    custom_days: Optional[int] = None,
    next_schedule: Optional[date] = date(2024, 5, 1),
    status: str = "completed",
    start: Optional[datetime] = datetime(2024, 4, 30, 10, 0),
    end: Optional[datetime] = datetime(2024, 4, 30, 11, 0),
    created_by: int = CREATOR,
    members: tuple = ((CREATOR, "host"), (11, "member")),
) -> int:
    with Session(engine) as s:
        meeting = Meeting(
            template_id=3,
            meeting_name=name,
            meeting_description="Status round",
            priority="high",
            venue_id=4,
            start_time=start,
            end_time=end,
            created_by=created_by,
            repeat_type=repeat_type,
            custom_days=custom_days,
            next_schedule=next_schedule,
            meeting_status=status,
        )
        s.add(meeting)
        s.flush()
        for user_id, role in members:
            s.add(MeetingMember(meeting_id=meeting.id, user_id=user_id, role=role))
        s.commit()
        return meeting.id


def add_point(
    engine: Engine,
    meeting_id: int,
    *,
    name: str = "Budget review",
    forward_type: Optional[str] = "NEXT",
    decision: Optional[str] = "FORWARD",
    processed: Optional[bool] = False,
    user_id: int = CREATOR,
    target_meeting_id: Optional[int] = None,
    forwarded_from: Optional[int] = None,
) -> int:
    with Session(engine) as s:
        point = MeetingPoint(
            meeting_id=meeting_id,
            point_name=name,
            point_responsibility="Finance",
            point_deadline=date(2024, 5, 10),
            remarks="Pending numbers",
            forwarded_from_point_id=forwarded_from,
        )
        s.add(point)
        s.flush()
        if forward_type is not None:
            s.add(
                PointForwardDecision(
                    point_id=point.id,
                    user_id=user_id,
                    forward_type=forward_type,
                    forward_decision=decision,
                    target_meeting_id=target_meeting_id,
                    add_point_meeting=processed,
                )
            )
        s.commit()
        return point.id


@pytest.fixture
def meeting_factory(engine):
    def _make(**kwargs) -> int:
        return add_meeting(engine, **kwargs)

    return _make


@pytest.fixture
def point_factory(engine):
    def _make(meeting_id: int, **kwargs) -> int:
        return add_point(engine, meeting_id, **kwargs)

    return _make
