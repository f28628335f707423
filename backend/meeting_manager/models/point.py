from __future__ import annotations

from datetime import date
from typing import Optional
from sqlmodel import SQLModel, Field


class MeetingPoint(SQLModel, table=True):
    __tablename__ = "meeting_points"

    id: Optional[int] = Field(default=None, primary_key=True)
    meeting_id: int = Field(index=True, foreign_key="meeting.id")
    point_name: str
    point_responsibility: Optional[str] = None
    point_deadline: Optional[date] = None
    todo: Optional[str] = None
    remarks: Optional[str] = None
    # Weak back-reference to the point this one was carried from (no FK)
    forwarded_from_point_id: Optional[int] = Field(default=None, index=True)
