from __future__ import annotations

from typing import Iterable, List, Optional
from sqlmodel import Session, select

from meeting_manager.models.point import MeetingPoint
from meeting_manager.models.point_forward import PointForwardDecision


class PointsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add_points(self, meeting_id: int, points: Iterable[MeetingPoint]) -> List[MeetingPoint]:
        saved: List[MeetingPoint] = []
        for point in points:
            point.meeting_id = meeting_id
            self.session.add(point)
            saved.append(point)
        self.session.commit()
        for point in saved:
            self.session.refresh(point)
        return saved

    def get(self, point_id: int) -> Optional[MeetingPoint]:
        return self.session.get(MeetingPoint, point_id)

    def list_by_meeting(self, meeting_id: int) -> List[MeetingPoint]:
        statement = (
            select(MeetingPoint).where(MeetingPoint.meeting_id == meeting_id).order_by(MeetingPoint.id.asc())  # type: ignore[union-attr]
        )
        return list(self.session.exec(statement))

    def get_decision(self, point_id: int, user_id: int) -> Optional[PointForwardDecision]:
        statement = (
            select(PointForwardDecision)
            .where(PointForwardDecision.point_id == point_id)
            .where(PointForwardDecision.user_id == user_id)
        )
        return self.session.exec(statement).first()

    def latest_decision(self, point_id: int) -> Optional[PointForwardDecision]:
        statement = (
            select(PointForwardDecision)
            .where(PointForwardDecision.point_id == point_id)
            .order_by(PointForwardDecision.created_at.desc(), PointForwardDecision.id.desc())  # type: ignore[union-attr]
        )
        return self.session.exec(statement).first()

    def upsert_decision(
        self,
        point_id: int,
        user_id: int,
        forward_type: str,
        forward_decision: Optional[str],
        target_meeting_id: Optional[int] = None,
    ) -> PointForwardDecision:
        row = self.get_decision(point_id, user_id)
        if row is None:
            row = PointForwardDecision(point_id=point_id, user_id=user_id, add_point_meeting=False)
        row.forward_type = forward_type
        row.forward_decision = forward_decision
        row.target_meeting_id = target_meeting_id if forward_type == "SPECIFIC_MEETING" else None
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row
