from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


FORWARD_TYPES = ("NIL", "NEXT", "SPECIFIC_MEETING")
FORWARD_DECISIONS = ("AGREE", "DISAGREE", "FORWARD")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


def normalize_flag(value: Any) -> bool:
    """Coerce a legacy processed-flag value to a real boolean.

    ``None``, ``False``, ``0``, ``'false'`` and ``'0'`` all mean "not yet carried".
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Unrecognised flag value: {value!r}")


class PointForwardDecision(SQLModel, table=True):
    """Per-point, per-user forwarding outcome (one row per point and user)."""

    __tablename__ = "meeting_point_future"
    __table_args__ = (UniqueConstraint("point_id", "user_id", name="uq_point_future_point_user"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    point_id: int = Field(index=True, foreign_key="meeting_points.id")
    user_id: int = Field(index=True)
    forward_type: str = Field(default="NIL")  # NIL|NEXT|SPECIFIC_MEETING
    forward_decision: Optional[str] = None  # AGREE|DISAGREE|FORWARD
    target_meeting_id: Optional[int] = None  # SPECIFIC_MEETING only
    add_point_meeting: Optional[bool] = Field(default=False)  # processed flag
    created_at: datetime = Field(default_factory=datetime.utcnow)
