"""Reminder sweeps: scan persisted state and emit notifications.

Each sweep depends only on the clock and the database. Emissions carry a
dedupe key so running a sweep twice never duplicates a notification.
"""

from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.clock import Clock, SystemClock, as_utc
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.models import FEEDBACK_MILESTONES, Event, NotificationType, Role, User
from onboarding_engine.repositories import CalendarRepository, UserRepository
from onboarding_engine.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def months_between(start: date, today: date) -> int:
    """Calendar months between two dates, ignoring the day of month."""
    return (today.year - start.year) * 12 + (today.month - start.month)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def minutes_until(start: datetime, now: datetime) -> int:
    """Whole minutes from ``now`` to ``start``, rounded half up."""
    return math.floor((start - now).total_seconds() / 60 + 0.5)


@dataclass(frozen=True)
class DailySweepResult:
    """Number of notifications created by each part of the daily sweep."""

    feedback: int
    trial: int
    event_day: int

    @property
    def total(self) -> int:
        return self.feedback + self.trial + self.event_day


class ReminderService:
    """Time-triggered notification scans."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.tz = ZoneInfo(self.settings.scheduler_timezone)
        self.clock = clock or SystemClock(self.settings.scheduler_timezone)
        self.users = UserRepository(session)
        self.calendar = CalendarRepository(session)
        self.notifications = NotificationService(session)

    def _local_now(self) -> datetime:
        return self.clock.now().astimezone(self.tz)

    def _format_time(self, value: datetime) -> str:
        local = as_utc(value).astimezone(self.tz)
        return local.strftime("%H:%M")

    async def run_daily(self) -> DailySweepResult:
        """Feedback, trial and event-day reminders."""
        result = DailySweepResult(
            feedback=await self.send_feedback_reminders(),
            trial=await self.send_trial_reminders(),
            event_day=await self.send_event_day_reminders(),
        )
        logger.info(
            "Daily sweep: %d feedback, %d trial, %d event-day notification(s)",
            result.feedback,
            result.trial,
            result.event_day,
        )
        return result

    async def send_feedback_reminders(self) -> int:
        """Remind employees whose 3, 6 or 12 month feedback is due and missing."""
        today = self._local_now().date()
        sent = 0
        for user in await self.users.list_by_role(Role.EMPLOYEE):
            if user.start_date is None:
                continue
            due = FEEDBACK_MILESTONES.get(months_between(user.start_date, today))
            if due is None:
                continue
            if await self.calendar.feedback_exists(user.id, due.value):
                continue
            result = await self.notifications.send(
                user.id,
                NotificationType.FEEDBACK,
                "Feedback Reminder",
                f"Please complete your {due.value} feedback survey.",
                metadata={"feedbackType": due.value},
                dedupe_key=f"feedback:{due.value}:{today.isoformat()}",
            )
            sent += result.is_new
        return sent

    async def send_trial_reminders(self) -> int:
        """Warn HR and the manager one week before an employee's trial ends."""
        now = self._local_now()
        sent = 0
        hr_users: Sequence[User] | None = None
        for user in await self.users.list_by_role(Role.EMPLOYEE):
            if user.start_date is None:
                continue
            trial_end = add_months(user.start_date, self.settings.trial_period_months)
            trial_end_at = datetime.combine(trial_end, time.min, tzinfo=self.tz)
            days_left = math.ceil((trial_end_at - now) / timedelta(days=1))
            if days_left != self.settings.trial_reminder_days:
                continue

            if hr_users is None:
                hr_users = await self.users.list_by_role(Role.HR)
            recipients = [hr.id for hr in hr_users]
            if user.manager_id is not None:
                recipients.append(user.manager_id)
            results = await self.notifications.send_many(
                recipients,
                NotificationType.PROBATION_DEADLINE,
                "Trial Period Ending",
                f"Trial period for {user.name} ends in 1 week.",
                metadata={"employeeId": str(user.id), "trialEndDate": trial_end.isoformat()},
                dedupe_key=f"trial:{user.id}:{trial_end.isoformat()}",
            )
            sent += sum(r.is_new for r in results)
        return sent

    def _event_metadata(self, event: Event) -> dict:
        return {
            "eventId": str(event.id),
            "eventTitle": event.title,
            "eventStartDate": as_utc(event.start_date).isoformat(),
            "eventLocation": event.location,
        }

    async def send_event_day_reminders(self) -> int:
        """Tell every user about events starting today."""
        now = self._local_now()
        day_start = datetime.combine(now.date(), time.min, tzinfo=self.tz)
        day_end = datetime.combine(now.date(), time(23, 59, 59), tzinfo=self.tz)
        events = await self.calendar.events_between(
            day_start.astimezone(timezone.utc), day_end.astimezone(timezone.utc)
        )
        if not events:
            return 0

        users = await self.users.list_all()
        sent = 0
        for event in events:
            results = await self.notifications.send_many(
                (u.id for u in users),
                NotificationType.REMINDER,
                "Event Today",
                f'There is an event "{event.title}" today at '
                f"{self._format_time(event.start_date)}. "
                f"Location: {event.location or 'TBD'}",
                metadata=self._event_metadata(event),
                dedupe_key=f"event-day:{event.id}:{now.date().isoformat()}",
            )
            sent += sum(r.is_new for r in results)
        logger.info("Event day notifications sent for %d event(s)", len(events))
        return sent

    async def send_event_soon_reminders(self) -> int:
        """Tell every user about events starting within the look-ahead window."""
        now = self.clock.now().astimezone(timezone.utc)
        window_end = now + timedelta(minutes=self.settings.event_soon_window_minutes)
        events = await self.calendar.events_between(now, window_end)
        if not events:
            return 0

        users = await self.users.list_all()
        sent = 0
        for event in events:
            start = as_utc(event.start_date)
            minutes = minutes_until(start, now)
            results = await self.notifications.send_many(
                (u.id for u in users),
                NotificationType.REMINDER,
                "Event Starting Soon",
                f'Event "{event.title}" starts in {minutes} minutes at '
                f"{self._format_time(start)}. Location: {event.location or 'TBD'}",
                metadata={**self._event_metadata(event), "minutesUntilStart": minutes},
                dedupe_key=f"event-soon:{event.id}:{start.isoformat()}",
            )
            sent += sum(r.is_new for r in results)
        logger.info("Event starting soon notifications sent for %d event(s)", len(events))
        return sent
