"""Reminder scheduler: owns the two sweep timers.

The scheduler is an explicit service started and stopped by its owner (the
API lifespan or the CLI). Each sweep runs in its own session; a failing sweep
is logged and rolled back, and the timer keeps going.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from onboarding_engine.clock import Clock, SystemClock
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.services.reminder_service import DailySweepResult, ReminderService

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ReminderScheduler:
    """Runs the daily sweep and the event-starting-soon sweep."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.scheduler_timezone)
        self.tz = ZoneInfo(self.settings.scheduler_timezone)
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def seconds_until_daily_sweep(self, now: datetime | None = None) -> float:
        """Seconds from ``now`` to the next daily sweep time in the scheduler timezone."""
        local = (now or self.clock.now()).astimezone(self.tz)
        target = datetime.combine(local.date(), self.settings.daily_sweep_time, tzinfo=self.tz)
        if target <= local:
            target = datetime.combine(
                local.date() + timedelta(days=1),
                self.settings.daily_sweep_time,
                tzinfo=self.tz,
            )
        # Aware datetimes sharing a tzinfo subtract as wall-clock times
        return (target.astimezone(timezone.utc) - local.astimezone(timezone.utc)).total_seconds()

    async def run_daily_sweep(self) -> DailySweepResult | None:
        """Run one daily sweep. Returns None if it failed."""
        async with self.session_factory() as session:
            try:
                result = await ReminderService(session, self.clock, self.settings).run_daily()
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                logger.exception("Daily reminder sweep failed")
                return None

    async def run_event_soon_sweep(self) -> int | None:
        """Run one event-starting-soon sweep. Returns None if it failed."""
        async with self.session_factory() as session:
            try:
                sent = await ReminderService(
                    session, self.clock, self.settings
                ).send_event_soon_reminders()
                await session.commit()
                return sent
            except Exception:
                await session.rollback()
                logger.exception("Event starting soon sweep failed")
                return None

    async def _daily_loop(self) -> None:
        while True:
            await self._sleep(self.seconds_until_daily_sweep())
            await self.run_daily_sweep()

    async def _event_loop(self) -> None:
        interval = self.settings.event_sweep_interval_minutes * 60
        while True:
            await self._sleep(interval)
            await self.run_event_soon_sweep()

    def start(self) -> None:
        """Start both timers on the running event loop."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._daily_loop(), name="reminders-daily"),
            asyncio.create_task(self._event_loop(), name="reminders-event-soon"),
        ]
        logger.info(
            "Reminder scheduler started: daily at %s %s, events every %d min",
            self.settings.daily_sweep_time.strftime("%H:%M"),
            self.settings.scheduler_timezone,
            self.settings.event_sweep_interval_minutes,
        )

    async def stop(self) -> None:
        """Cancel both timers and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Reminder loop %s had failed", task.get_name())
        self._tasks = []
        logger.info("Reminder scheduler stopped")
