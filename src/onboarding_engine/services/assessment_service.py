"""Assessment pipeline: certificate, supervisor assessment, decisions.

Every write follows the same order of checks: the assessment must exist, the
actor must be allowed to write this step, the input must be well formed, and
the current status must accept the operation. Only then are fields written
and the status re-derived.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.authorization import (
    Actor,
    Capability,
    is_direct_supervisor,
    require_capability,
    require_role,
)
from onboarding_engine.clock import Clock, SystemClock
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.errors import ForbiddenError, InvalidStateError, ValidationError
from onboarding_engine.models import (
    PHASE_ONE_STAGES,
    AssessmentStatus,
    HrDecision,
    NotificationType,
    OnboardingProgress,
    Role,
    Stage,
    SupervisorAssessment,
    SupervisorDecision,
    User,
)
from onboarding_engine.registry import journey_tasks
from onboarding_engine.repositories import (
    AssessmentRepository,
    ProgressRepository,
    TaskProgressRepository,
    UserRepository,
)
from onboarding_engine.services.assessment_state import (
    AssessmentOperation,
    AssessmentStateMachine,
    InvalidTransitionError,
    derive_status,
)
from onboarding_engine.services.journey import in_assessment_track, move_to_stage
from onboarding_engine.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def assessment_snapshot(assessment: SupervisorAssessment) -> dict:
    """Current state of an assessment for error context."""
    return {
        "id": str(assessment.id),
        "status": assessment.status,
        "supervisor_decision": assessment.supervisor_decision,
        "hr_decision": assessment.hr_decision,
    }


class AssessmentService:
    """Service for the supervisor assessment pipeline."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.scheduler_timezone)
        self.assessments = AssessmentRepository(session)
        self.users = UserRepository(session)
        self.journeys = ProgressRepository(session)
        self.task_progress = TaskProgressRepository(session)
        self.notifications = NotificationService(session)

    def _now(self) -> datetime:
        return self.clock.now().astimezone(timezone.utc)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load(self, assessment_id: UUID) -> SupervisorAssessment:
        assessment = await self.assessments.load(assessment_id)
        self._reconcile(assessment)
        return assessment

    def _reconcile(self, assessment: SupervisorAssessment) -> None:
        derived = derive_status(assessment)
        if assessment.status != derived:
            logger.warning(
                "Assessment %s stored status '%s' disagrees with fields, using '%s'",
                assessment.id,
                assessment.status,
                derived.value,
            )
            assessment.status = derived.value

    def _apply_status(self, assessment: SupervisorAssessment) -> None:
        previous = assessment.status
        derived = derive_status(assessment)
        if not AssessmentStateMachine.can_transition(previous, derived):
            raise InvalidStateError(
                f"Assessment cannot move from '{previous}' to '{derived.value}'",
                assessment_snapshot(assessment),
            )
        assessment.status = derived.value
        if previous != derived:
            logger.info("Assessment %s: %s -> %s", assessment.id, previous, derived.value)

    def _require_supervisor(self, actor: Actor, assessment: SupervisorAssessment) -> None:
        if actor.role != Role.SUPERVISOR or actor.user_id != assessment.supervisor_id:
            raise ForbiddenError(
                "Only the assigned supervisor can perform this step",
                assessment_snapshot(assessment),
            )

    def _validate(self, operation: AssessmentOperation, assessment: SupervisorAssessment) -> None:
        try:
            AssessmentStateMachine.validate_operation(operation, assessment.status)
        except InvalidTransitionError as e:
            e.context.update(assessment_snapshot(assessment))
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_assessment(self, actor: Actor, assessment_id: UUID) -> SupervisorAssessment:
        """Get an assessment visible to the employee, their supervisor or HR."""
        assessment = await self._load(assessment_id)
        if not (
            actor.is_hr
            or actor.user_id == assessment.employee_id
            or actor.user_id == assessment.supervisor_id
        ):
            raise ForbiddenError("Not allowed to view this assessment", {"id": str(assessment_id)})
        return assessment

    async def get_for_employee(self, employee_id: UUID) -> SupervisorAssessment | None:
        assessment = await self.assessments.get_for_employee(employee_id)
        if assessment is not None:
            self._reconcile(assessment)
        return assessment

    async def list_for_supervisor(self, actor: Actor) -> Sequence[SupervisorAssessment]:
        """Assessments assigned to the acting supervisor."""
        require_role(actor, Role.SUPERVISOR, Role.HR)
        assessments = await self.assessments.list_for_supervisor(actor.user_id)
        for assessment in assessments:
            self._reconcile(assessment)
        return assessments

    async def list_for_hr(
        self, actor: Actor, status: AssessmentStatus | None = None
    ) -> Sequence[SupervisorAssessment]:
        """HR queue, optionally filtered by status."""
        require_role(actor, Role.HR)
        assessments = await self.assessments.list_all(status.value if status else None)
        for assessment in assessments:
            self._reconcile(assessment)
        return assessments

    async def phase_two_unlocked(self, user_id: UUID) -> bool:
        """Check if HR approved the assessment and phase two was opened."""
        assessment = await self.get_for_employee(user_id)
        return (
            assessment is not None
            and assessment.status == AssessmentStatus.COMPLETED
            and assessment.hr_decision == HrDecision.APPROVE
        )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def phase_one_complete(self, user: User) -> bool:
        """Check if every phase-one task of the user's journey is completed."""
        tasks = journey_tasks(user.program_type, PHASE_ONE_STAGES)
        if not tasks:
            return False
        completed = await self.task_progress.completed_task_ids(
            user.id, (t.id for t in tasks)
        )
        return len(completed) == len(tasks)

    async def _create(
        self, user: User, journey: OnboardingProgress
    ) -> SupervisorAssessment:
        if user.supervisor_id is None:
            raise ValidationError("User has no supervisor assigned", {"user_id": str(user.id)})
        now = self._now()
        assessment = SupervisorAssessment(
            onboarding_progress_id=journey.id,
            employee_id=user.id,
            supervisor_id=user.supervisor_id,
            status=AssessmentStatus.PENDING_CERTIFICATE.value,
            phase1_completed_date=now,
        )
        await self.assessments.save(assessment)
        logger.info("Supervisor assessment %s created for user %s", assessment.id, user.id)

        await self.notifications.send(
            user.supervisor_id,
            NotificationType.SUPERVISOR_ASSESSMENT_REQUIRED,
            "Supervisor Assessment Required",
            f"{user.name} has completed Phase 1 of onboarding and requires your "
            "assessment. Please review their progress and complete the assessment.",
            metadata={
                "assessmentId": str(assessment.id),
                "employeeId": str(user.id),
                "employeeName": user.name,
            },
            dedupe_key=f"assessment-required:{assessment.id}",
        )
        await self.notifications.send(
            user.id,
            NotificationType.SUPERVISOR_ASSESSMENT_PENDING,
            "Assessment Pending",
            "You have completed Phase 1! Your supervisor will now assess your "
            "progress before you can proceed to Phase 2.",
            metadata={"assessmentId": str(assessment.id)},
            dedupe_key=f"assessment-pending:{assessment.id}",
        )
        return assessment

    async def start_if_phase_one_complete(
        self, user: User, journey: OnboardingProgress
    ) -> SupervisorAssessment | None:
        """Open the assessment once phase one is done. Returns it if newly created."""
        if not in_assessment_track(user, self.settings):
            return None
        if await self.assessments.get_for_employee(user.id) is not None:
            return None
        if not await self.phase_one_complete(user):
            return None
        return await self._create(user, journey)

    async def initialize_assessment(self, actor: Actor, user_id: UUID) -> SupervisorAssessment:
        """Explicitly open an assessment for an employee who finished phase one."""
        require_role(actor, Role.HR, Role.SUPERVISOR)
        user = await self.users.load(user_id)
        if not actor.is_hr and not is_direct_supervisor(actor, user):
            raise ForbiddenError(
                "Only HR or the employee's supervisor can start an assessment",
                {"user_id": str(user_id)},
            )
        journey = await self.journeys.load_for_user(user_id)
        if user.supervisor_id is None:
            raise ValidationError(
                "User has no supervisor assigned", {"user_id": str(user_id)}
            )
        if not in_assessment_track(user, self.settings):
            raise ValidationError(
                "User is not in the assessment track",
                {"user_id": str(user_id), "program_type": user.program_type},
            )

        existing = await self.get_for_employee(user_id)
        if existing is not None:
            raise InvalidStateError(
                "Supervisor assessment already exists",
                assessment_snapshot(existing),
            )
        if not await self.phase_one_complete(user):
            raise InvalidStateError(
                "Phase 1 tasks are not all completed",
                {"user_id": str(user_id), "stage": journey.stage},
            )
        return await self._create(user, journey)

    async def backfill_assessments(self) -> int:
        """Create missing assessments for every eligible employee."""
        created = 0
        for user in await self.users.list_by_role(Role.EMPLOYEE):
            journey = await self.journeys.get_for_user(user.id)
            if journey is None:
                continue
            if await self.start_if_phase_one_complete(user, journey) is not None:
                created += 1
        logger.info("Backfilled %d supervisor assessment(s)", created)
        return created

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def upload_certificate(
        self, actor: Actor, assessment_id: UUID, certificate_file: str
    ) -> SupervisorAssessment:
        """Attach the certificate. An employee upload notifies the supervisor."""
        assessment = await self._load(assessment_id)
        is_owner = actor.role == Role.EMPLOYEE and actor.user_id == assessment.employee_id
        is_supervisor = (
            actor.role == Role.SUPERVISOR and actor.user_id == assessment.supervisor_id
        )
        if not (is_owner or is_supervisor):
            raise ForbiddenError(
                "Only the employee or the assigned supervisor can upload the certificate",
                assessment_snapshot(assessment),
            )
        if not certificate_file or not certificate_file.strip():
            raise ValidationError("Certificate file is required", assessment_snapshot(assessment))
        self._validate(AssessmentOperation.UPLOAD_CERTIFICATE, assessment)

        now = self._now()
        assessment.certificate_file = certificate_file.strip()
        assessment.certificate_upload_date = now
        if is_owner and assessment.assessment_requested_date is None:
            assessment.assessment_requested_date = now
            employee = await self.users.load(assessment.employee_id)
            await self.notifications.send(
                assessment.supervisor_id,
                NotificationType.ASSESSMENT_PENDING,
                "Assessment Pending",
                f"{employee.name} uploaded their certificate. "
                "Please complete the supervisor assessment.",
                metadata={
                    "assessmentId": str(assessment.id),
                    "employeeId": str(employee.id),
                },
                dedupe_key=f"assessment-requested:{assessment.id}",
            )
        self._apply_status(assessment)
        await self.assessments.save(assessment)
        return assessment

    async def submit_assessment(
        self,
        actor: Actor,
        assessment_id: UUID,
        notes: str,
        score: int | None = None,
    ) -> SupervisorAssessment:
        """Record the supervisor's assessment notes and optional score."""
        assessment = await self._load(assessment_id)
        self._require_supervisor(actor, assessment)
        if not notes or not notes.strip():
            raise ValidationError("Assessment notes are required", assessment_snapshot(assessment))
        if score is not None and not 0 <= score <= 100:
            raise ValidationError(
                "Assessment score must be between 0 and 100",
                {**assessment_snapshot(assessment), "score": score},
            )
        self._validate(AssessmentOperation.SUBMIT_ASSESSMENT, assessment)

        assessment.assessment_date = self._now()
        assessment.assessment_notes = notes.strip()
        assessment.assessment_score = score
        self._apply_status(assessment)
        await self.assessments.save(assessment)
        return assessment

    async def make_decision(
        self,
        actor: Actor,
        assessment_id: UUID,
        decision: SupervisorDecision | str,
        comments: str,
    ) -> SupervisorAssessment:
        """Record the supervisor's decision.

        ``proceed_to_phase_2`` sends the assessment to HR, ``terminate`` closes
        it without HR review and ``put_on_hold`` parks it until the supervisor
        decides again.
        """
        assessment = await self._load(assessment_id)
        self._require_supervisor(actor, assessment)
        try:
            decision = SupervisorDecision(decision)
        except ValueError:
            raise ValidationError(
                "Valid decision is required (proceed_to_phase_2, terminate, or put_on_hold)",
                {**assessment_snapshot(assessment), "decision": str(decision)},
            ) from None
        if not comments or not comments.strip():
            raise ValidationError(
                "Comments are required for the decision", assessment_snapshot(assessment)
            )
        self._validate(AssessmentOperation.MAKE_DECISION, assessment)

        assessment.supervisor_decision = decision.value
        assessment.supervisor_comments = comments.strip()
        assessment.decision_date = self._now()
        self._apply_status(assessment)
        await self.assessments.save(assessment)

        if decision == SupervisorDecision.PROCEED_TO_PHASE_2:
            employee = await self.users.load(assessment.employee_id)
            hr_users = await self.users.list_by_role(Role.HR)
            await self.notifications.send_many(
                (u.id for u in hr_users),
                NotificationType.ASSESSMENT_PENDING,
                "HR Approval Required",
                f"{employee.name}'s supervisor recommends proceeding to Phase 2. "
                "Your decision is required.",
                metadata={
                    "assessmentId": str(assessment.id),
                    "employeeId": str(employee.id),
                },
                dedupe_key=f"hr-approval:{assessment.id}:{assessment.decision_date.isoformat()}",
            )
        return assessment

    async def hr_decide(
        self,
        actor: Actor,
        assessment_id: UUID,
        decision: HrDecision | str,
        comments: str,
    ) -> SupervisorAssessment:
        """Record HR's decision on a proceed recommendation.

        Approval also unlocks phase two: a journey sitting at ``land`` moves on
        to ``integrate``.
        """
        assessment = await self._load(assessment_id)
        require_capability(actor, Capability.DECIDE_ASSESSMENTS)
        try:
            decision = HrDecision(decision)
        except ValueError:
            raise ValidationError(
                "Valid HR decision is required (approve, reject, or request_changes)",
                {**assessment_snapshot(assessment), "decision": str(decision)},
            ) from None
        if not comments or not comments.strip():
            raise ValidationError(
                "HR decision comments are required", assessment_snapshot(assessment)
            )
        self._validate(AssessmentOperation.HR_DECIDE, assessment)

        now = self._now()
        assessment.hr_decision = decision.value
        assessment.hr_decision_comments = comments.strip()
        assessment.hr_decision_date = now

        if decision == HrDecision.APPROVE:
            assessment.hr_validated = True
            assessment.hr_validator_id = actor.user_id
            assessment.hr_validation_date = now
            assessment.hr_validation_comments = comments.strip()
            await self._unlock_phase_two(assessment, now)
        elif decision == HrDecision.REQUEST_CHANGES:
            assessment.supervisor_decision = None
            assessment.supervisor_comments = None
            assessment.decision_date = None
            await self.notifications.send(
                assessment.supervisor_id,
                NotificationType.SUPERVISOR_ASSESSMENT_REQUIRED,
                "Changes Requested",
                f"HR requested changes to your decision: {comments.strip()}",
                metadata={"assessmentId": str(assessment.id)},
            )

        self._apply_status(assessment)
        await self.assessments.save(assessment)
        return assessment

    async def _unlock_phase_two(self, assessment: SupervisorAssessment, now: datetime) -> None:
        journey = await self.journeys.load(assessment.onboarding_progress_id)
        if journey.stage == Stage.LAND:
            move_to_stage(journey, Stage.INTEGRATE, now, self.settings.stage_window_days)
            await self.journeys.save(journey)
            logger.info("Journey %s advanced to integrate after HR approval", journey.id)
        assessment.phase_two_unlocked_date = now
        await self.notifications.send(
            assessment.employee_id,
            NotificationType.SYSTEM,
            "Phase 2 Unlocked",
            "HR approved your assessment. You can now continue with Phase 2 of onboarding.",
            metadata={"assessmentId": str(assessment.id)},
            dedupe_key=f"phase-two:{assessment.id}",
        )

