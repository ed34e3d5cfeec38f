"""Business logic services for the onboarding engine."""

from onboarding_engine.services.assessment_service import AssessmentService
from onboarding_engine.services.assessment_state import (
    AssessmentOperation,
    AssessmentStateMachine,
    InvalidTransitionError,
    derive_status,
)
from onboarding_engine.services.notification_service import NotificationService, SendResult
from onboarding_engine.services.progress_service import (
    JourneyEntry,
    ProgressOverview,
    ProgressService,
    TaskUpdate,
)
from onboarding_engine.services.reminder_service import DailySweepResult, ReminderService

__all__ = [
    "AssessmentOperation",
    "AssessmentService",
    "AssessmentStateMachine",
    "DailySweepResult",
    "InvalidTransitionError",
    "JourneyEntry",
    "NotificationService",
    "ProgressOverview",
    "ProgressService",
    "ReminderService",
    "SendResult",
    "TaskUpdate",
    "derive_status",
]
