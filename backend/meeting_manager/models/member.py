from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class MeetingMember(SQLModel, table=True):
    __tablename__ = "meeting_members"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(index=True, foreign_key="meeting.id")
    user_id: int = Field(index=True)
    role: str = Field(default="member")  # host|secretary|member|...
