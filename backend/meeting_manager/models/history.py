from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from sqlmodel import SQLModel, Field


class MeetingHistory(SQLModel, table=True):
    """Append-only record of each occurrence the scheduler created."""

    __tablename__ = "meeting_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(index=True, foreign_key="meeting.id")
    schedule_date: date
    status: str = Field(default="scheduled")
    created_date: datetime = Field(default_factory=datetime.utcnow)
