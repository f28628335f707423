from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from sqlmodel import SQLModel, Field


RECURRING_KINDS = ("daily", "weekly", "monthly", "custom_day")


class Meeting(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    template_id: Optional[int] = Field(default=None, index=True)
    meeting_name: str = Field(default="Untitled Meeting")
    meeting_description: Optional[str] = None
    priority: Optional[str] = None  # low|medium|high
    venue_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_by: int = Field(index=True)
    repeat_type: str = Field(default="none")  # none|daily|weekly|monthly|custom_day
    custom_days: Optional[int] = None  # only used with custom_day
    next_schedule: Optional[date] = Field(default=None, index=True)
    meeting_status: str = Field(default="not_started", index=True)  # not_started|in_progress|completed
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_recurring(self) -> bool:
        return self.repeat_type in RECURRING_KINDS
