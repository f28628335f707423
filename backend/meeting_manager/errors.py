"""Errors raised by the recurring-meeting scheduler and its persistence layer."""

from __future__ import annotations

from typing import Optional


class SchedulerError(Exception):
    """Base class for scheduler failures."""


class MeetingNotFoundError(SchedulerError):
    def __init__(self, meeting_id: int) -> None:
        super().__init__(f"Meeting {meeting_id} not found")
        self.meeting_id = meeting_id


class PersistenceError(SchedulerError):
    """A read or write against the store failed."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation


class DataIntegrityError(PersistenceError):
    """A single row could not be written because it conflicts with stored data."""
