"""Creates the next occurrence of a completed recurring meeting."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from meeting_manager.errors import DataIntegrityError, SchedulerError
from meeting_manager.models.meeting import Meeting
from meeting_manager.services.point_forwarding import resolve_forwarded_points
from meeting_manager.services.store import SchedulerStore, StoreFactory

logger = logging.getLogger("meeting_manager.cloner")

DEFAULT_START = time(9, 0)
DEFAULT_END = time(17, 0)


def rebase_times(original: Meeting, on: date) -> Tuple[datetime, datetime]:
    """Keep the original time of day, moved onto ``on``."""
    start_t = original.start_time.time() if original.start_time else DEFAULT_START
    end_t = original.end_time.time() if original.end_time else DEFAULT_END
    return datetime.combine(on, start_t), datetime.combine(on, end_t)


class MeetingCloner:
    def __init__(self, store_factory: StoreFactory) -> None:
        self._store_factory = store_factory

    def clone_for_next_occurrence(self, meeting_id: int, next_schedule: date) -> Optional[int]:
        """Clone in its own unit of work; returns the new meeting id or None on failure."""
        try:
            with self._store_factory() as store:
                return self.clone_into(store, meeting_id, next_schedule)
        except SchedulerError as exc:
            logger.error("Error cloning meeting %s: %s", meeting_id, exc)
            return None
        except Exception:
            logger.exception("Unexpected error cloning meeting %s", meeting_id)
            return None

    def clone_into(self, store: SchedulerStore, meeting_id: int, next_schedule: date) -> Optional[int]:
        """Clone using the caller's unit of work. Returns None if the meeting is gone.

        Persistence errors propagate so the caller can roll the whole unit back.
        """
        original = store.get_meeting(meeting_id)
        if original is None:
            logger.error("Meeting %s not found", meeting_id)
            return None

        start_time, end_time = rebase_times(original, next_schedule)
        new_id = store.insert_meeting(
            {
                "template_id": original.template_id,
                "meeting_name": original.meeting_name,
                "meeting_description": original.meeting_description,
                "priority": original.priority,
                "venue_id": original.venue_id,
                "start_time": start_time,
                "end_time": end_time,
                "created_by": original.created_by,
                "repeat_type": original.repeat_type,
                "custom_days": original.custom_days,
                "next_schedule": next_schedule,
                "meeting_status": "not_started",
            }
        )

        members = store.get_members(meeting_id)
        if members:
            store.insert_members(new_id, members)

        carried: List[int] = []
        for payload in resolve_forwarded_points(store, meeting_id, original.created_by):
            try:
                store.insert_point(new_id, payload.point_fields())
            except DataIntegrityError as exc:
                logger.warning(
                    "Skipping point %s while cloning meeting %s: %s",
                    payload.origin_point_id,
                    meeting_id,
                    exc,
                )
                continue
            carried.append(payload.origin_point_id)

        if carried:
            store.mark_points_processed(carried, original.created_by)
            logger.info("Cloned meeting %s -> %s with %d forwarded points", meeting_id, new_id, len(carried))
        else:
            logger.info("Cloned meeting %s -> %s (no forwarded points)", meeting_id, new_id)

        store.append_history(new_id, next_schedule)
        return new_id
