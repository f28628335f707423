"""Selection and on-demand carrying of forwarded discussion points."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlmodel import Session

from meeting_manager.errors import MeetingNotFoundError
from meeting_manager.models.point import MeetingPoint
from meeting_manager.models.point_forward import PointForwardDecision, normalize_flag
from meeting_manager.repositories.meetings import MeetingsRepository
from meeting_manager.repositories.points import PointsRepository
from meeting_manager.services.store import PointPayload, SchedulerStore

logger = logging.getLogger("meeting_manager.forwarding")

# Longest forwarding chain we follow before assuming a cycle in bad data
MAX_HISTORY_DEPTH = 500


def resolve_forwarded_points(store: SchedulerStore, meeting_id: int, creator_id: int) -> List[PointPayload]:
    """Points of ``meeting_id`` that the creator forwarded to the next occurrence.

    Only NEXT decisions that have not been carried yet qualify; the decision
    outcome (AGREE, DISAGREE, FORWARD) does not matter.
    """
    payloads = store.get_forwarded_points(meeting_id, creator_id)
    return [p for p in payloads if p.forward_type == "NEXT"]


class PointNotFoundError(LookupError):
    pass


class ForwardingStateError(ValueError):
    pass


def forward_to_specific_meeting(session: Session, point_id: int, user_id: int) -> MeetingPoint:
    """Carry one SPECIFIC_MEETING point into its target meeting right away.

    This is the on-demand path; the periodic scheduler never carries these.
    """
    points = PointsRepository(session)
    origin = points.get(point_id)
    if origin is None:
        raise PointNotFoundError(f"Point {point_id} not found")
    decision = points.get_decision(point_id, user_id)
    if decision is None or decision.forward_type != "SPECIFIC_MEETING":
        raise ForwardingStateError(f"Point {point_id} is not forwarded to a specific meeting by user {user_id}")
    if normalize_flag(decision.add_point_meeting):
        raise ForwardingStateError(f"Point {point_id} was already carried")
    if decision.target_meeting_id is None:
        raise ForwardingStateError(f"Point {point_id} has no target meeting")
    target = MeetingsRepository(session).get(decision.target_meeting_id)
    if target is None:
        raise MeetingNotFoundError(decision.target_meeting_id)

    carried = MeetingPoint(
        meeting_id=target.id,  # type: ignore[arg-type]
        point_name=origin.point_name,
        point_responsibility=origin.point_responsibility,
        point_deadline=origin.point_deadline,
        todo=origin.todo,
        remarks=origin.remarks,
        forwarded_from_point_id=origin.id,
    )
    session.add(carried)
    decision.add_point_meeting = True
    session.add(decision)
    session.commit()
    session.refresh(carried)
    logger.info("Forwarded point %s to meeting %s as point %s", point_id, target.id, carried.id)
    return carried


@dataclass
class PointHistoryEntry:
    point_id: int
    meeting_id: int
    meeting_name: Optional[str]
    meeting_date: Optional[str]
    point_name: str
    point_responsibility: Optional[str]
    point_deadline: Optional[str]
    remarks: Optional[str]
    forward_type: Optional[str]
    forward_decision: Optional[str]


def point_history(session: Session, point_id: int) -> List[PointHistoryEntry]:
    """Follow ``forwarded_from_point_id`` back to the origin, oldest hop first."""
    points = PointsRepository(session)
    meetings = MeetingsRepository(session)

    start = points.get(point_id)
    if start is None:
        raise PointNotFoundError(f"Point {point_id} not found")

    chain: List[PointHistoryEntry] = []
    seen: set[int] = set()
    current: Optional[MeetingPoint] = start
    while current is not None and current.id not in seen and len(chain) < MAX_HISTORY_DEPTH:
        seen.add(current.id)  # type: ignore[arg-type]
        meeting = meetings.get(current.meeting_id)
        decision: Optional[PointForwardDecision] = points.latest_decision(current.id)  # type: ignore[arg-type]
        chain.append(
            PointHistoryEntry(
                point_id=current.id,  # type: ignore[arg-type]
                meeting_id=current.meeting_id,
                meeting_name=meeting.meeting_name if meeting else None,
                meeting_date=meeting.start_time.isoformat() if meeting and meeting.start_time else None,
                point_name=current.point_name,
                point_responsibility=current.point_responsibility,
                point_deadline=current.point_deadline.isoformat() if current.point_deadline else None,
                remarks=current.remarks,
                forward_type=decision.forward_type if decision else None,
                forward_decision=decision.forward_decision if decision else None,
            )
        )
        if current.forwarded_from_point_id is None:
            break
        parent = points.get(current.forwarded_from_point_id)
        if parent is None:
            logger.warning(
                "Point %s references missing origin point %s; history truncated",
                current.id,
                current.forwarded_from_point_id,
            )
        current = parent

    chain.reverse()
    return chain
