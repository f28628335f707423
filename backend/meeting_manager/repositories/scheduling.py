from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, TypeVar

from sqlalchemy import or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from meeting_manager.errors import DataIntegrityError, PersistenceError
from meeting_manager.models.history import MeetingHistory
from meeting_manager.models.meeting import Meeting, RECURRING_KINDS
from meeting_manager.models.member import MeetingMember
from meeting_manager.models.point import MeetingPoint
from meeting_manager.models.point_forward import PointForwardDecision
from meeting_manager.services.store import PointPayload

logger = logging.getLogger("meeting_manager.store")

T = TypeVar("T")


def _db_operation(fn: Callable[..., T]) -> Callable[..., T]:
    """Re-raise SQLAlchemy failures as PersistenceError tagged with the operation name."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except IntegrityError as exc:
            raise DataIntegrityError(str(exc.orig), operation=fn.__name__) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc), operation=fn.__name__) from exc

    return wrapper


class SqlSchedulerStore:
    """SchedulerStore backed by a single SQLModel session.

    Writes are flushed, never committed; the owner of the session decides
    whether the unit of work commits.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    @_db_operation
    def find_completed_due_meetings(self, as_of: date) -> List[Meeting]:
        statement = (
            select(Meeting)
            .where(Meeting.meeting_status == "completed")
            .where(Meeting.repeat_type.in_(RECURRING_KINDS))  # type: ignore[attr-defined]
            .where(Meeting.next_schedule.is_not(None))  # type: ignore[union-attr]
            .where(Meeting.next_schedule <= as_of)  # type: ignore[operator]
            .order_by(Meeting.next_schedule.asc(), Meeting.id.asc())  # type: ignore[union-attr]
        )
        return list(self.session.exec(statement))

    @_db_operation
    def get_meeting(self, meeting_id: int) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    @_db_operation
    def insert_meeting(self, fields: Dict[str, Any]) -> int:
        meeting = Meeting(**fields)
        self.session.add(meeting)
        self.session.flush()
        return meeting.id  # type: ignore[return-value]

    @_db_operation
    def get_members(self, meeting_id: int) -> List[MeetingMember]:
        statement = (
            select(MeetingMember).where(MeetingMember.meeting_id == meeting_id).order_by(MeetingMember.id.asc())  # type: ignore[union-attr]
        )
        return list(self.session.exec(statement))

    @_db_operation
    def insert_members(self, meeting_id: int, members: Sequence[MeetingMember]) -> None:
        for m in members:
            self.session.add(MeetingMember(meeting_id=meeting_id, user_id=m.user_id, role=m.role))
        self.session.flush()

    @_db_operation
    def get_forwarded_points(self, meeting_id: int, creator_id: int) -> List[PointPayload]:
        statement = (
            select(PointForwardDecision, MeetingPoint)
            .join(MeetingPoint, MeetingPoint.id == PointForwardDecision.point_id)  # type: ignore[arg-type]
            .where(PointForwardDecision.user_id == creator_id)
            .where(PointForwardDecision.forward_type == "NEXT")
            .where(
                or_(
                    PointForwardDecision.add_point_meeting.is_(None),  # type: ignore[union-attr]
                    PointForwardDecision.add_point_meeting == False,  # noqa: E712
                )
            )
            .where(MeetingPoint.meeting_id == meeting_id)
            .order_by(MeetingPoint.id.asc())  # type: ignore[union-attr]
        )
        return [
            PointPayload(
                origin_point_id=point.id,  # type: ignore[arg-type]
                point_name=point.point_name,
                point_responsibility=point.point_responsibility,
                point_deadline=point.point_deadline,
                todo=point.todo,
                remarks=point.remarks,
                forward_type=decision.forward_type,
                forward_decision=decision.forward_decision,
            )
            for decision, point in self.session.exec(statement)
        ]

    @_db_operation
    def insert_point(self, meeting_id: int, fields: Dict[str, Any]) -> int:
        # Savepoint so one bad point does not poison the surrounding clone
        with self.session.begin_nested():
            point = MeetingPoint(meeting_id=meeting_id, **fields)
            self.session.add(point)
            self.session.flush()
        return point.id  # type: ignore[return-value]

    @_db_operation
    def mark_points_processed(self, point_ids: Sequence[int], creator_id: int) -> int:
        if not point_ids:
            return 0
        statement = (
            select(PointForwardDecision)
            .where(PointForwardDecision.user_id == creator_id)
            .where(PointForwardDecision.point_id.in_(list(point_ids)))  # type: ignore[attr-defined]
        )
        rows = list(self.session.exec(statement))
        for row in rows:
            row.add_point_meeting = True
            self.session.add(row)
        self.session.flush()
        return len(rows)

    @_db_operation
    def append_history(self, meeting_id: int, schedule_date: date) -> int:
        entry = MeetingHistory(meeting_id=meeting_id, schedule_date=schedule_date, status="scheduled")
        self.session.add(entry)
        self.session.flush()
        return entry.id  # type: ignore[return-value]

    @_db_operation
    def update_next_schedule(self, meeting_id: int, next_schedule: date) -> None:
        meeting = self.session.get(Meeting, meeting_id)
        if meeting is None:
            raise PersistenceError(f"Meeting {meeting_id} vanished before its schedule could advance", "update_next_schedule")
        meeting.next_schedule = next_schedule
        self.session.add(meeting)
        self.session.flush()


def session_store_scope(engine: Engine) -> Callable[[], Any]:
    """Build a store factory: each call opens one session and one transaction."""

    @contextmanager
    def scope() -> Iterator[SqlSchedulerStore]:
        with Session(engine) as session:
            try:
                yield SqlSchedulerStore(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(str(exc), operation="commit") from exc
            except BaseException:
                session.rollback()
                raise

    return scope
