"""Progress ledger: journeys, per-task completion and HR validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.authorization import (
    Actor,
    Capability,
    is_direct_supervisor,
    require_capability,
    require_hierarchy,
    require_role,
    require_view,
)
from onboarding_engine.clock import Clock, SystemClock
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from onboarding_engine.models import (
    PHASE_TWO_STAGES,
    STAGE_ORDER,
    OnboardingProgress,
    Role,
    Stage,
    SupervisorAssessment,
    User,
    UserTaskProgress,
    next_stage,
)
from onboarding_engine.registry import TaskDefinition, get_task, journey_tasks, list_tasks_for_stage
from onboarding_engine.repositories import (
    ProgressRepository,
    TaskProgressRepository,
    UserRepository,
)
from onboarding_engine.services.assessment_service import AssessmentService
from onboarding_engine.services.journey import in_assessment_track, move_to_stage, percentage

logger = logging.getLogger(__name__)

STAGE_LABELS: dict[Stage, tuple[str, str]] = {
    Stage.PREPARE: ("PREPARE", "Pre-boarding and preparation"),
    Stage.ORIENT: ("ORIENT", "Orientation and initial training"),
    Stage.LAND: ("LAND", "Integration into the role"),
    Stage.INTEGRATE: ("INTEGRATE", "Team integration and process familiarity"),
    Stage.EXCEL: ("EXCEL", "Advanced training and development"),
}


def journey_snapshot(journey: OnboardingProgress) -> dict:
    """Current state of a journey for error context."""
    return {
        "user_id": str(journey.user_id),
        "stage": journey.stage,
        "progress": journey.progress,
    }


def task_snapshot(row: UserTaskProgress | None, task_id: UUID, user_id: UUID) -> dict:
    return {
        "task_id": str(task_id),
        "user_id": str(user_id),
        "is_completed": bool(row and row.is_completed),
        "hr_validated": bool(row and row.hr_validated),
    }


@dataclass
class TaskUpdate:
    """Outcome of a completion or validation change."""

    task_progress: UserTaskProgress
    journey: OnboardingProgress
    changed: bool
    assessment: SupervisorAssessment | None = None


@dataclass
class TaskView:
    """A catalogue task merged with the user's record."""

    task: TaskDefinition
    record: UserTaskProgress | None

    @property
    def is_completed(self) -> bool:
        return bool(self.record and self.record.is_completed)


@dataclass
class StageView:
    stage: Stage
    label: str
    description: str
    percent: int
    locked: bool
    tasks: list[TaskView] = field(default_factory=list)


@dataclass
class JourneyEntry:
    """A journey paired with the user it belongs to."""

    user: User
    journey: OnboardingProgress


@dataclass
class ProgressOverview:
    """Journey, per-stage breakdown and assessment summary for one user."""

    user: User
    journey: OnboardingProgress
    stages: list[StageView]
    assessment: SupervisorAssessment | None


class ProgressService:
    """Service for onboarding journeys and task progress."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.scheduler_timezone)
        self.users = UserRepository(session)
        self.journeys = ProgressRepository(session)
        self.task_progress = TaskProgressRepository(session)
        self.assessments = AssessmentService(session, self.clock, self.settings)

    def _now(self) -> datetime:
        return self.clock.now().astimezone(timezone.utc)

    def _require_target(self, user_id: UUID | None) -> UUID:
        if user_id is None:
            raise ValidationError("userId is required", {"field": "userId"})
        return user_id

    def _load_task(self, task_id: UUID) -> TaskDefinition:
        task = get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", {"task_id": str(task_id)})
        return task

    # ------------------------------------------------------------------
    # Journeys
    # ------------------------------------------------------------------

    async def get_progress(self, user_id: UUID) -> OnboardingProgress:
        """Get a user's journey, raising NotFoundError if none exists."""
        return await self.journeys.load_for_user(user_id)

    async def list_journeys(self, actor: Actor) -> list[JourneyEntry]:
        """Journeys the actor oversees.

        HR sees every journey, managers the employees of their department and
        supervisors their direct reports.
        """
        require_role(actor, Role.HR, Role.MANAGER, Role.SUPERVISOR)
        if actor.is_hr:
            users = await self.users.list_all()
        elif actor.role == Role.MANAGER:
            manager = await self.users.load(actor.user_id)
            if manager.department is None:
                return []
            users = await self.users.list_department(manager.department, Role.EMPLOYEE)
        else:
            users = await self.users.list_reports(actor.user_id)

        journeys = {
            j.user_id: j for j in await self.journeys.list_for_users(u.id for u in users)
        }
        return [
            JourneyEntry(user=u, journey=journeys[u.id]) for u in users if u.id in journeys
        ]

    async def _open_journey(self, user: User) -> OnboardingProgress:
        now = self._now()
        journey = OnboardingProgress(
            user_id=user.id,
            stage=Stage.PREPARE.value,
            progress=0,
            stage_start_date=now,
            estimated_completion_date=now + timedelta(days=self.settings.stage_window_days),
        )
        await self.journeys.save(journey)
        for task in journey_tasks(user.program_type):
            await self.task_progress.save(UserTaskProgress(user_id=user.id, task_id=task.id))
        logger.info("Onboarding journey created for user %s", user.id)
        return journey

    async def create_journey(
        self, actor: Actor, user_id: UUID, program_type: str | None = None
    ) -> OnboardingProgress:
        """Start a journey for an employee at ``prepare``."""
        require_capability(actor, Capability.CREATE_JOURNEYS)
        user = await self.users.load(user_id)
        if actor.role == Role.SUPERVISOR and not is_direct_supervisor(actor, user):
            raise ForbiddenError(
                "Supervisors can only start journeys for their direct reports",
                {"user_id": str(user_id)},
            )
        if user.role != Role.EMPLOYEE:
            raise ValidationError(
                "Onboarding journeys are only for employees",
                {"user_id": str(user_id), "role": user.role},
            )
        if program_type is not None:
            if program_type not in {"SFP", "CC"}:
                raise ValidationError(
                    "Program type must be SFP or CC", {"program_type": program_type}
                )
            user.program_type = program_type

        existing = await self.journeys.get_for_user(user_id)
        if existing is not None:
            raise InvalidStateError(
                "Onboarding journey already exists", journey_snapshot(existing)
            )
        return await self._open_journey(user)

    async def bootstrap_journeys(self) -> int:
        """Create journeys for every employee who does not have one yet."""
        created = 0
        for user in await self.users.list_by_role(Role.EMPLOYEE):
            if await self.journeys.get_for_user(user.id) is None:
                await self._open_journey(user)
                created += 1
        logger.info("Bootstrapped %d onboarding journey(s)", created)
        return created

    async def reset_journey(
        self,
        actor: Actor,
        user_id: UUID,
        reset_to_stage: Stage | str = Stage.PREPARE,
        keep_completed_tasks: bool = False,
    ) -> OnboardingProgress:
        """Administrative reset of a journey back to an earlier stage.

        Without ``keep_completed_tasks`` all task records are cleared and the
        supervisor assessment is removed so the track can restart.
        """
        require_capability(actor, Capability.RESET_JOURNEYS)
        await self.users.load(user_id)
        journey = await self.journeys.load_for_user(user_id)
        try:
            stage = Stage(reset_to_stage)
        except ValueError:
            raise ValidationError(
                "Invalid stage", {"reset_to_stage": str(reset_to_stage)}
            ) from None

        if not keep_completed_tasks:
            removed = await self.task_progress.delete_for_user(user_id)
            assessment = await self.assessments.get_for_employee(user_id)
            if assessment is not None:
                await self.assessments.assessments.delete(assessment)
            logger.info("Cleared %d task record(s) for user %s", removed, user_id)

        move_to_stage(journey, stage, self._now(), self.settings.stage_window_days)
        await self.journeys.save(journey)
        await self.recompute_overall_progress(user_id)
        logger.info("Journey for user %s reset to %s by %s", user_id, stage.value, actor.user_id)
        return journey

    async def advance_phase(self, actor: Actor, user_id: UUID) -> OnboardingProgress:
        """Move a journey to the next stage.

        Entering phase two requires an HR-approved supervisor assessment for
        employees in the assessment track.
        """
        require_capability(actor, Capability.ADVANCE_PHASES)
        user = await self.users.load(user_id)
        require_hierarchy(actor, user)
        journey = await self.journeys.load_for_user(user_id)

        target = next_stage(journey.stage)
        if target is None:
            raise InvalidStateError(
                "Journey is already at the final stage", journey_snapshot(journey)
            )
        if (
            target in PHASE_TWO_STAGES
            and in_assessment_track(user, self.settings)
            and not await self.assessments.phase_two_unlocked(user_id)
        ):
            raise InvalidStateError(
                "Phase 2 requires an HR-approved supervisor assessment",
                journey_snapshot(journey),
            )

        previous = journey.stage
        move_to_stage(journey, target, self._now(), self.settings.stage_window_days)
        await self.journeys.save(journey)
        logger.info("Journey for user %s advanced %s -> %s", user_id, previous, target.value)
        return journey

    async def recompute_overall_progress(self, user_id: UUID) -> int:
        """Recompute the journey percentage from completed default tasks."""
        user = await self.users.load(user_id)
        journey = await self.journeys.load_for_user(user_id)
        tasks = journey_tasks(user.program_type)
        completed = await self.task_progress.completed_task_ids(user_id, (t.id for t in tasks))
        value = percentage(len(completed), len(tasks))
        if journey.progress != value:
            journey.progress = value
            await self.journeys.save(journey)
        return value

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def _find_or_create(self, user_id: UUID, task_id: UUID) -> tuple[UserTaskProgress, bool]:
        row = await self.task_progress.find(user_id, task_id)
        if row is not None:
            return row, False
        row = UserTaskProgress(
            user_id=user_id, task_id=task_id, is_completed=False, hr_validated=False
        )
        await self.task_progress.save(row)
        return row, True

    def _set_completed(self, row: UserTaskProgress, completed: bool, actor: Actor) -> None:
        if completed:
            row.is_completed = True
            row.completed_at = self._now()
            row.completed_by = actor.user_id
        else:
            row.is_completed = False
            row.completed_at = None
            row.completed_by = None
            row.hr_validated = False
            row.hr_validated_at = None
            row.hr_validated_by = None

    async def toggle_task_completion(
        self,
        actor: Actor,
        task_id: UUID,
        completed: bool,
        target_user_id: UUID | None = None,
        supervisor_notes: str | None = None,
    ) -> TaskUpdate:
        """Mark a task completed or not completed for a user.

        Repeating a call with the same ``completed`` value changes nothing.
        Progress is recomputed in the same transaction as the task write.
        """
        require_capability(actor, Capability.EDIT_TASKS)
        user_id = self._require_target(target_user_id)
        user = await self.users.load(user_id)
        require_hierarchy(actor, user)
        self._load_task(task_id)
        journey = await self.journeys.load_for_user(user_id)

        row, created = await self._find_or_create(user_id, task_id)
        if supervisor_notes is not None:
            row.supervisor_notes = supervisor_notes
        if row.is_completed == completed:
            if supervisor_notes is not None:
                await self.task_progress.save(row)
            return TaskUpdate(task_progress=row, journey=journey, changed=created)

        self._set_completed(row, completed, actor)
        await self.task_progress.save(row)
        await self.recompute_overall_progress(user_id)

        assessment = None
        if completed:
            assessment = await self.assessments.start_if_phase_one_complete(user, journey)
        logger.info(
            "Task %s for user %s marked %s by %s",
            task_id,
            user_id,
            "completed" if completed else "not completed",
            actor.user_id,
        )
        return TaskUpdate(task_progress=row, journey=journey, changed=True, assessment=assessment)

    async def validate_task(
        self,
        actor: Actor,
        task_id: UUID,
        user_id: UUID | None = None,
        comments: str | None = None,
    ) -> TaskUpdate:
        """HR confirmation of a completed task. Validating twice is a no-op."""
        require_capability(actor, Capability.VALIDATE_TASKS)
        user_id = self._require_target(user_id)
        await self.users.load(user_id)
        self._load_task(task_id)
        journey = await self.journeys.load_for_user(user_id)

        row = await self.task_progress.find(user_id, task_id)
        if row is None or not row.is_completed:
            raise InvalidStateError(
                "Task must be completed before it can be validated",
                task_snapshot(row, task_id, user_id),
            )
        if row.hr_validated:
            return TaskUpdate(task_progress=row, journey=journey, changed=False)

        row.hr_validated = True
        row.hr_validated_at = self._now()
        row.hr_validated_by = actor.user_id
        if comments is not None:
            row.hr_comments = comments
        await self.task_progress.save(row)
        logger.info("Task %s for user %s validated by %s", task_id, user_id, actor.user_id)
        return TaskUpdate(task_progress=row, journey=journey, changed=True)

    async def update_task_status(
        self,
        actor: Actor,
        task_id: UUID,
        user_id: UUID | None = None,
        completed: bool | None = None,
        hr_validated: bool | None = None,
        comments: str | None = None,
    ) -> TaskUpdate:
        """Combined completion and validation update.

        Each part is checked against its own capability before anything is
        written. Validation cannot be set on a task that ends up incomplete.
        """
        if completed is None and hr_validated is None:
            raise ValidationError("Nothing to update: provide completed or hrValidated")
        if completed is not None:
            require_capability(actor, Capability.EDIT_TASKS)
        if hr_validated is not None:
            require_capability(actor, Capability.VALIDATE_TASKS)

        user_id = self._require_target(user_id)
        user = await self.users.load(user_id)
        require_hierarchy(actor, user)
        self._load_task(task_id)
        journey = await self.journeys.load_for_user(user_id)

        current = await self.task_progress.find(user_id, task_id)
        will_be_completed = (
            completed if completed is not None else bool(current and current.is_completed)
        )
        if hr_validated and not will_be_completed:
            raise InvalidStateError(
                "Task must be completed before it can be validated",
                task_snapshot(current, task_id, user_id),
            )

        changed = False
        assessment = None
        if completed is not None:
            completion = await self.toggle_task_completion(actor, task_id, completed, user_id)
            changed, assessment = completion.changed, completion.assessment
        if hr_validated:
            validation = await self.validate_task(actor, task_id, user_id, comments)
            changed = changed or validation.changed
        elif hr_validated is False:
            changed = await self._clear_validation(user_id, task_id, comments) or changed

        row, _ = await self._find_or_create(user_id, task_id)
        return TaskUpdate(
            task_progress=row, journey=journey, changed=changed, assessment=assessment
        )

    async def _clear_validation(
        self, user_id: UUID, task_id: UUID, comments: str | None
    ) -> bool:
        row, _ = await self._find_or_create(user_id, task_id)
        changed = row.hr_validated
        row.hr_validated = False
        row.hr_validated_at = None
        row.hr_validated_by = None
        if comments is not None:
            row.hr_comments = comments
        await self.task_progress.save(row)
        return changed

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def get_overview(
        self, actor: Actor, user_id: UUID | None = None, hr_view: bool = False
    ) -> ProgressOverview:
        """Journey with per-stage task breakdown, as seen by ``actor``."""
        if hr_view:
            require_role(actor, Role.HR)
        user_id = user_id or actor.user_id
        user = await self.users.load(user_id)
        if user_id != actor.user_id and not hr_view:
            viewer = await self.users.get(actor.user_id)
            require_view(actor, user, viewer.department if viewer else None)
        journey = await self.journeys.load_for_user(user_id)

        records = {
            row.task_id: row for row in await self.task_progress.list_for_user(user_id)
        }
        assessment = await self.assessments.get_for_employee(user_id)
        phase_two_locked = (
            actor.role == Role.EMPLOYEE
            and in_assessment_track(user, self.settings)
            and not await self.assessments.phase_two_unlocked(user_id)
        )

        stages = []
        for stage in STAGE_ORDER:
            tasks = list_tasks_for_stage(stage, user.program_type or "both")
            views = [TaskView(task=t, record=records.get(t.id)) for t in tasks]
            default_views = [v for v in views if v.task.is_default]
            label, description = STAGE_LABELS[stage]
            stages.append(
                StageView(
                    stage=stage,
                    label=label,
                    description=description,
                    percent=percentage(
                        sum(v.is_completed for v in default_views), len(default_views)
                    ),
                    locked=phase_two_locked and stage in PHASE_TWO_STAGES,
                    tasks=views,
                )
            )
        return ProgressOverview(user=user, journey=journey, stages=stages, assessment=assessment)
