"""Persistence contract consumed by the recurring-meeting scheduler.

The scheduler never talks to the database directly; it receives a
``SchedulerStore`` bound to one unit of work. A store factory is a callable
returning a context manager that yields such a store, commits when the block
exits cleanly and rolls back when it raises.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from meeting_manager.models.meeting import Meeting
from meeting_manager.models.member import MeetingMember


@dataclass(frozen=True)
class PointPayload:
    """A point selected for carrying into the next occurrence."""

    origin_point_id: int
    point_name: str
    point_responsibility: Optional[str] = None
    point_deadline: Optional[date] = None
    todo: Optional[str] = None
    remarks: Optional[str] = None
    forward_type: str = "NEXT"
    forward_decision: Optional[str] = None

    def point_fields(self) -> Dict[str, Any]:
        return {
            "point_name": self.point_name,
            "point_responsibility": self.point_responsibility,
            "point_deadline": self.point_deadline,
            "todo": self.todo,
            "remarks": self.remarks,
            "forwarded_from_point_id": self.origin_point_id,
        }


class SchedulerStore(Protocol):
    def find_completed_due_meetings(self, as_of: date) -> List[Meeting]: ...

    def get_meeting(self, meeting_id: int) -> Optional[Meeting]: ...

    def insert_meeting(self, fields: Dict[str, Any]) -> int: ...

    def get_members(self, meeting_id: int) -> List[MeetingMember]: ...

    def insert_members(self, meeting_id: int, members: Sequence[MeetingMember]) -> None: ...

    def get_forwarded_points(self, meeting_id: int, creator_id: int) -> List[PointPayload]: ...

    def insert_point(self, meeting_id: int, fields: Dict[str, Any]) -> int: ...

    def mark_points_processed(self, point_ids: Sequence[int], creator_id: int) -> int: ...

    def append_history(self, meeting_id: int, schedule_date: date) -> int: ...

    def update_next_schedule(self, meeting_id: int, next_schedule: date) -> None: ...


StoreFactory = Callable[[], AbstractContextManager[SchedulerStore]]
