"""Onboarding engine command line interface.

Provides operational tools for:
- Schema creation
- Task catalogue seeding
- Journey bootstrap and assessment backfill
- One-off reminder sweeps and the long-running scheduler

Usage:
    python -m onboarding_engine.cli init-db
    python -m onboarding_engine.cli seed-tasks
    python -m onboarding_engine.cli bootstrap-journeys
    python -m onboarding_engine.cli backfill-assessments
    python -m onboarding_engine.cli sweep daily
    python -m onboarding_engine.cli sweep events
    python -m onboarding_engine.cli scheduler
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable

from onboarding_engine.config import Settings, get_settings
from onboarding_engine.database import create_schema, dispose_db, get_session, init_db
from onboarding_engine.logging_config import configure_logging
from onboarding_engine.registry import seed_tasks
from onboarding_engine.scheduler import ReminderScheduler
from onboarding_engine.services import AssessmentService, ProgressService

logger = logging.getLogger(__name__)


class OnboardingCli:
    """Onboarding engine command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m onboarding_engine.cli",
            description="Onboarding engine operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create database tables")
        subparsers.add_parser("seed-tasks", help="Insert or refresh the task catalogue")
        subparsers.add_parser(
            "bootstrap-journeys",
            help="Create onboarding journeys for employees without one",
        )
        subparsers.add_parser(
            "backfill-assessments",
            help="Create missing supervisor assessments for employees past phase 1",
        )

        sweep = subparsers.add_parser("sweep", help="Run one reminder sweep now")
        sweep.add_argument(
            "kind",
            choices=["daily", "events"],
            help="daily: feedback, trial and event-day reminders; "
            "events: event-starting-soon reminders",
        )

        subparsers.add_parser("scheduler", help="Run the reminder scheduler until interrupted")
        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(self.settings.log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
            "init-db": self._cmd_init_db,
            "seed-tasks": self._cmd_seed_tasks,
            "bootstrap-journeys": self._cmd_bootstrap_journeys,
            "backfill-assessments": self._cmd_backfill_assessments,
            "sweep": self._cmd_sweep,
            "scheduler": self._cmd_scheduler,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1
        return asyncio.run(self._run_handler(handler, parsed))

    async def _run_handler(
        self,
        handler: Callable[[argparse.Namespace], Awaitable[int]],
        args: argparse.Namespace,
    ) -> int:
        init_db(self.settings.database_url)
        try:
            return await handler(args)
        finally:
            await dispose_db()

    async def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create tables."""
        engine, _ = init_db()
        await create_schema(engine)
        print("Database schema created")
        return 0

    async def _cmd_seed_tasks(self, args: argparse.Namespace) -> int:
        """Seed the task catalogue."""
        async with get_session() as session:
            created = await seed_tasks(session)
        print(f"Task catalogue seeded ({created} new)")
        return 0

    async def _cmd_bootstrap_journeys(self, args: argparse.Namespace) -> int:
        """Create missing journeys."""
        async with get_session() as session:
            created = await ProgressService(session, settings=self.settings).bootstrap_journeys()
        print(f"Created {created} onboarding journey(s)")
        return 0

    async def _cmd_backfill_assessments(self, args: argparse.Namespace) -> int:
        """Create missing supervisor assessments."""
        async with get_session() as session:
            created = await AssessmentService(
                session, settings=self.settings
            ).backfill_assessments()
        print(f"Created {created} supervisor assessment(s)")
        return 0

    async def _cmd_sweep(self, args: argparse.Namespace) -> int:
        """Run one sweep."""
        _, session_factory = init_db()
        scheduler = ReminderScheduler(session_factory, settings=self.settings)
        if args.kind == "daily":
            result = await scheduler.run_daily_sweep()
            if result is None:
                print("ERROR: daily sweep failed, see log", file=sys.stderr)
                return 1
            print(
                f"Daily sweep: {result.feedback} feedback, {result.trial} trial, "
                f"{result.event_day} event-day notification(s)"
            )
            return 0

        sent = await scheduler.run_event_soon_sweep()
        if sent is None:
            print("ERROR: event sweep failed, see log", file=sys.stderr)
            return 1
        print(f"Event sweep: {sent} notification(s)")
        return 0

    async def _cmd_scheduler(self, args: argparse.Namespace) -> int:
        """Run the scheduler in the foreground."""
        _, session_factory = init_db()
        scheduler = ReminderScheduler(session_factory, settings=self.settings)
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()
        return 0


def main() -> int:
    """CLI entry point."""
    cli = OnboardingCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
