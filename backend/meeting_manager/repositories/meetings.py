from __future__ import annotations

from typing import Iterable, List, Optional
from sqlmodel import Session, select

from meeting_manager.models.history import MeetingHistory
from meeting_manager.models.meeting import Meeting
from meeting_manager.models.member import MeetingMember


class MeetingsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, meeting: Meeting, members: Iterable[MeetingMember] = ()) -> Meeting:
        self.session.add(meeting)
        self.session.flush()
        for member in members:
            member.meeting_id = meeting.id  # type: ignore[assignment]
            self.session.add(member)
        self.session.commit()
        self.session.refresh(meeting)
        return meeting

    def get(self, meeting_id: int) -> Optional[Meeting]:
        return self.session.get(Meeting, meeting_id)

    def list(self, limit: int = 50, offset: int = 0, status: Optional[str] = None) -> List[Meeting]:
        statement = select(Meeting)
        if status is not None:
            statement = statement.where(Meeting.meeting_status == status)
        statement = statement.order_by(Meeting.start_time.desc(), Meeting.id.desc()).limit(limit).offset(offset)  # type: ignore[union-attr]
        return list(self.session.exec(statement))

    def update(self, meeting: Meeting) -> Meeting:
        self.session.add(meeting)
        self.session.commit()
        self.session.refresh(meeting)
        return meeting

    def list_members(self, meeting_id: int) -> List[MeetingMember]:
        statement = select(MeetingMember).where(MeetingMember.meeting_id == meeting_id)
        return list(self.session.exec(statement))

    def list_history(self, meeting_id: int) -> List[MeetingHistory]:
        statement = (
            select(MeetingHistory)
            .where(MeetingHistory.meeting_id == meeting_id)
            .order_by(MeetingHistory.created_date.asc())  # type: ignore[union-attr]
        )
        return list(self.session.exec(statement))
