from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from meeting_manager.deps import get_recurrence_scheduler
from meeting_manager.services.recurrence_scheduler import RecurrenceScheduler


router = APIRouter(prefix="/scheduler", tags=["scheduler"])


class RunRequest(BaseModel):
    as_of: Optional[date] = None


class CloneRequest(BaseModel):
    next_schedule: date


@router.post("/run")
def run_tick(body: RunRequest | None = None, scheduler: RecurrenceScheduler = Depends(get_recurrence_scheduler)) -> Dict[str, Any]:
    summary = scheduler.run_scheduler_tick(as_of=body.as_of if body else None)
    if summary.skipped_overlap:
        raise HTTPException(status_code=409, detail="Scheduler tick already running")
    return asdict(summary)


@router.post("/meetings/{meeting_id}/clone")
def clone_meeting(
    meeting_id: int, body: CloneRequest, scheduler: RecurrenceScheduler = Depends(get_recurrence_scheduler)
) -> Dict[str, int]:
    # Manual re-trigger: clones without touching the source meeting's schedule
    new_id = scheduler.cloner.clone_for_next_occurrence(meeting_id, body.next_schedule)
    if new_id is None:
        raise HTTPException(status_code=404, detail="Meeting not found or clone failed")
    return {"meeting_id": new_id}
