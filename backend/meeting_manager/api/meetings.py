from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlmodel import Session

from meeting_manager.deps import get_session
from meeting_manager.errors import MeetingNotFoundError
from meeting_manager.models.meeting import Meeting
from meeting_manager.models.member import MeetingMember
from meeting_manager.models.point import MeetingPoint
from meeting_manager.models.point_forward import PointForwardDecision
from meeting_manager.repositories.meetings import MeetingsRepository
from meeting_manager.repositories.points import PointsRepository
from meeting_manager.services.point_forwarding import (
    ForwardingStateError,
    PointNotFoundError,
    forward_to_specific_meeting,
    point_history,
)
from meeting_manager.services.recurrence import next_occurrence

logger = logging.getLogger("meeting_manager.api")


router = APIRouter(prefix="/meetings", tags=["meetings"])

RepeatKind = Literal["none", "daily", "weekly", "monthly", "custom_day"]
MeetingStatus = Literal["not_started", "in_progress", "completed"]


class MemberIn(BaseModel):
    user_id: int
    role: str = "member"


class PointIn(BaseModel):
    point_name: str
    point_responsibility: Optional[str] = None
    point_deadline: Optional[date] = None
    todo: Optional[str] = None
    remarks: Optional[str] = None


class CreateMeetingRequest(BaseModel):
    meeting_name: str = "Untitled Meeting"
    meeting_description: Optional[str] = None
    template_id: Optional[int] = None
    priority: Optional[str] = None
    venue_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_by: int
    repeat_type: RepeatKind = "none"
    custom_days: Optional[int] = Field(default=None, ge=1)
    next_schedule: Optional[date] = None
    members: List[MemberIn] = Field(default_factory=list)
    points: List[PointIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _custom_days_required(self) -> "CreateMeetingRequest":
        if self.repeat_type == "custom_day" and not self.custom_days:
            raise ValueError("custom_days is required when repeat_type is custom_day")
        return self


class UpdateStatusRequest(BaseModel):
    status: MeetingStatus


class ForwardPointRequest(BaseModel):
    point_id: int
    user_id: int
    forward_type: Literal["NIL", "NEXT", "SPECIFIC_MEETING"]
    forward_decision: Optional[Literal["AGREE", "DISAGREE", "FORWARD"]] = None
    target_meeting_id: Optional[int] = None

    @model_validator(mode="after")
    def _target_for_specific(self) -> "ForwardPointRequest":
        if self.forward_type == "SPECIFIC_MEETING" and self.target_meeting_id is None:
            raise ValueError("target_meeting_id is required for SPECIFIC_MEETING")
        return self


class ForwardSpecificRequest(BaseModel):
    user_id: int


def _seed_next_schedule(meeting: Meeting) -> Optional[date]:
    if not meeting.is_recurring:
        return None
    base = meeting.start_time.date() if meeting.start_time else date.today()
    return next_occurrence(base, meeting.repeat_type, meeting.custom_days)


@router.post("")
def create_meeting(body: CreateMeetingRequest, session: Session = Depends(get_session)) -> Dict[str, int]:
    meeting = Meeting(
        **body.model_dump(exclude={"members", "points"}),
        meeting_status="not_started",
    )
    if meeting.next_schedule is None:
        meeting.next_schedule = _seed_next_schedule(meeting)
    members = [MeetingMember(user_id=m.user_id, role=m.role) for m in body.members]
    meeting = MeetingsRepository(session).create(meeting, members)
    if body.points:
        PointsRepository(session).add_points(
            meeting.id,  # type: ignore[arg-type]
            [MeetingPoint(meeting_id=meeting.id, **p.model_dump()) for p in body.points],  # type: ignore[arg-type]
        )
    logger.info("Created meeting %s (%s)", meeting.id, meeting.repeat_type)
    return {"meeting_id": meeting.id}  # type: ignore[dict-item]


@router.get("")
def list_meetings(
    limit: int = 50, offset: int = 0, status: Optional[MeetingStatus] = None, session: Session = Depends(get_session)
) -> List[Meeting]:
    return MeetingsRepository(session).list(limit=limit, offset=offset, status=status)


@router.post("/forward-point")
def forward_point(body: ForwardPointRequest, session: Session = Depends(get_session)) -> PointForwardDecision:
    points = PointsRepository(session)
    if points.get(body.point_id) is None:
        raise HTTPException(status_code=404, detail="Point not found")
    if body.target_meeting_id is not None and MeetingsRepository(session).get(body.target_meeting_id) is None:
        raise HTTPException(status_code=404, detail="Target meeting not found")
    return points.upsert_decision(
        point_id=body.point_id,
        user_id=body.user_id,
        forward_type=body.forward_type,
        forward_decision=body.forward_decision,
        target_meeting_id=body.target_meeting_id,
    )


@router.post("/points/{point_id}/forward-specific")
def forward_point_to_specific_meeting(
    point_id: int, body: ForwardSpecificRequest, session: Session = Depends(get_session)
) -> MeetingPoint:
    try:
        return forward_to_specific_meeting(session, point_id, body.user_id)
    except (PointNotFoundError, MeetingNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ForwardingStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.get("/points/{point_id}/history")
def get_point_history(point_id: int, session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    try:
        return [asdict(entry) for entry in point_history(session, point_id)]
    except PointNotFoundError:
        raise HTTPException(status_code=404, detail="Point not found")


@router.get("/{meeting_id}")
def get_meeting_detail(meeting_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    repo_m = MeetingsRepository(session)
    meeting = repo_m.get(meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return {
        "meeting": meeting,
        "members": repo_m.list_members(meeting_id),
        "points": PointsRepository(session).list_by_meeting(meeting_id),
        "history": repo_m.list_history(meeting_id),
    }


@router.put("/{meeting_id}/status")
def update_meeting_status(
    meeting_id: int, body: UpdateStatusRequest, session: Session = Depends(get_session)
) -> Meeting:
    repo_m = MeetingsRepository(session)
    meeting = repo_m.get(meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Meeting not found")

    meeting.meeting_status = body.status
    if body.status == "completed" and meeting.next_schedule is None:
        meeting.next_schedule = _seed_next_schedule(meeting)
    return repo_m.update(meeting)
