from __future__ import annotations

from typing import Iterator

from fastapi import HTTPException, Request
from sqlmodel import Session

from meeting_manager.services.recurrence_scheduler import RecurrenceScheduler


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session


def get_recurrence_scheduler(request: Request) -> RecurrenceScheduler:
    scheduler = getattr(request.app.state, "recurrence_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not configured")
    return scheduler
