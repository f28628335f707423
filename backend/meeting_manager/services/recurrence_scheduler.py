"""Periodic driver that turns due recurring meetings into new occurrences.

Each tick queries completed recurring meetings whose ``next_schedule`` has
arrived, clones each one and advances its pointer in a single unit of work
per meeting. One meeting failing never affects the others. Ticks are
non-reentrant: an overlapping call returns immediately.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from meeting_manager.errors import MeetingNotFoundError, PersistenceError
from meeting_manager.models.meeting import Meeting
from meeting_manager.services.meeting_cloner import MeetingCloner
from meeting_manager.services.recurrence import next_occurrence
from meeting_manager.services.store import StoreFactory

logger = logging.getLogger("meeting_manager.scheduler")


@dataclass
class TickSummary:
    as_of: date
    due: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    created: List[Tuple[int, int]] = field(default_factory=list)  # (source, new)
    failed_meeting_ids: List[int] = field(default_factory=list)
    aborted: bool = False
    skipped_overlap: bool = False


@dataclass(frozen=True)
class _DueMeeting:
    # Detached snapshot so sessions never leak across units of work
    id: int
    repeat_type: str
    custom_days: Optional[int]
    next_schedule: date


class RecurrenceScheduler:
    def __init__(
        self,
        store_factory: StoreFactory,
        cloner: Optional[MeetingCloner] = None,
        timezone: str = "UTC",
    ) -> None:
        self._store_factory = store_factory
        self._cloner = cloner or MeetingCloner(store_factory)
        self._tz = ZoneInfo(timezone)
        self._run_lock = threading.Lock()
        self._stop = threading.Event()

    @property
    def cloner(self) -> MeetingCloner:
        return self._cloner

    def today(self) -> date:
        return datetime.now(self._tz).date()

    def request_stop(self) -> None:
        """Let the current meeting finish, then skip the rest of the batch."""
        self._stop.set()

    def resume(self) -> None:
        self._stop.clear()

    def run_scheduler_tick(self, as_of: Optional[date] = None) -> TickSummary:
        as_of = as_of or self.today()
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Scheduler tick already running; skipping overlapping trigger")
            return TickSummary(as_of=as_of, skipped_overlap=True)
        try:
            return self._run(as_of)
        finally:
            self._run_lock.release()

    def _run(self, as_of: date) -> TickSummary:
        summary = TickSummary(as_of=as_of)
        logger.info("Running meeting scheduler for %s", as_of.isoformat())

        try:
            due = self._load_due(as_of)
        except PersistenceError as exc:
            logger.error("Scheduler tick aborted, due-meeting query failed: %s", exc)
            summary.aborted = True
            return summary

        summary.due = len(due)
        if not due:
            logger.info("No meetings to schedule")
            return summary

        logger.info("Found %d meeting(s) to reschedule", len(due))
        for index, meeting in enumerate(due):
            if self._stop.is_set():
                summary.skipped = len(due) - index
                logger.info("Scheduler stopping; %d meeting(s) left for the next run", summary.skipped)
                break
            new_id = self._process(meeting)
            if new_id is None:
                summary.failed += 1
                summary.failed_meeting_ids.append(meeting.id)
            else:
                summary.succeeded += 1
                summary.created.append((meeting.id, new_id))

        logger.info(
            "Scheduler tick finished: due=%d succeeded=%d failed=%d skipped=%d",
            summary.due,
            summary.succeeded,
            summary.failed,
            summary.skipped,
        )
        return summary

    def _load_due(self, as_of: date) -> List[_DueMeeting]:
        with self._store_factory() as store:
            rows: List[Meeting] = store.find_completed_due_meetings(as_of)
            return [
                _DueMeeting(
                    id=m.id,  # type: ignore[arg-type]
                    repeat_type=m.repeat_type,
                    custom_days=m.custom_days,
                    next_schedule=m.next_schedule,  # type: ignore[arg-type]
                )
                for m in rows
            ]

    def _process(self, meeting: _DueMeeting) -> Optional[int]:
        try:
            with self._store_factory() as store:
                new_id = self._cloner.clone_into(store, meeting.id, meeting.next_schedule)
                if new_id is None:
                    raise MeetingNotFoundError(meeting.id)
                following = next_occurrence(meeting.next_schedule, meeting.repeat_type, meeting.custom_days)
                store.update_next_schedule(meeting.id, following)
        except MeetingNotFoundError:
            logger.warning("Skipping meeting %s: not found at clone time", meeting.id)
            return None
        except PersistenceError as exc:
            logger.error("Persistence failure while rescheduling meeting %s: %s", meeting.id, exc)
            return None
        except Exception:
            logger.exception("Unexpected error while rescheduling meeting %s", meeting.id)
            return None
        logger.info("Meeting %s next occurrence advanced to %s", meeting.id, following.isoformat())
        return new_id


class SchedulerRunner:
    """Runs ``RecurrenceScheduler.run_scheduler_tick`` on a fixed interval."""

    JOB_ID = "recurring_meetings"

    def __init__(
        self,
        scheduler: RecurrenceScheduler,
        interval_seconds: int,
        timezone: str = "UTC",
        run_on_start: bool = False,
    ) -> None:
        self._scheduler = scheduler
        self._interval_seconds = interval_seconds
        self._timezone = timezone
        self._run_on_start = run_on_start
        self._background: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._background is not None and self._background.running

    def start(self) -> None:
        if self.running:
            return
        self._scheduler.resume()
        self._background = BackgroundScheduler(timezone=self._timezone)
        trigger_kwargs = {}
        if self._run_on_start:
            trigger_kwargs["next_run_time"] = datetime.now(ZoneInfo(self._timezone))
        self._background.add_job(
            self._tick,
            trigger=IntervalTrigger(seconds=self._interval_seconds, timezone=self._timezone),
            id=self.JOB_ID,
            name="Clone due recurring meetings",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **trigger_kwargs,
        )
        self._background.start()
        logger.info(
            "Meeting scheduler initialized (every %ss, timezone %s)",
            self._interval_seconds,
            self._timezone,
        )

    def _tick(self) -> None:
        try:
            self._scheduler.run_scheduler_tick()
        except Exception:
            logger.exception("Scheduler tick error")

    def stop(self) -> None:
        if self._background is None:
            return
        self._scheduler.request_stop()
        if self._background.running:
            self._background.shutdown(wait=True)
        self._background = None
        logger.info("Meeting scheduler stopped")
