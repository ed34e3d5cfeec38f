"""ORM models."""

from onboarding_engine.models.assessment import (
    AssessmentStatus,
    HrDecision,
    SupervisorAssessment,
    SupervisorDecision,
)
from onboarding_engine.models.base import Base, TimestampMixin
from onboarding_engine.models.calendar import (
    FEEDBACK_MILESTONES,
    Event,
    Feedback,
    FeedbackType,
)
from onboarding_engine.models.notification import Notification, NotificationType
from onboarding_engine.models.onboarding import (
    PHASE_ONE_STAGES,
    PHASE_TWO_STAGES,
    STAGE_ORDER,
    ControlledBy,
    OnboardingProgress,
    OnboardingTask,
    Stage,
    TaskProgram,
    UserTaskProgress,
    next_stage,
    stage_index,
)
from onboarding_engine.models.user import ProgramType, Role, User

__all__ = [
    "AssessmentStatus",
    "Base",
    "ControlledBy",
    "Event",
    "FEEDBACK_MILESTONES",
    "Feedback",
    "FeedbackType",
    "HrDecision",
    "Notification",
    "NotificationType",
    "OnboardingProgress",
    "OnboardingTask",
    "PHASE_ONE_STAGES",
    "PHASE_TWO_STAGES",
    "ProgramType",
    "Role",
    "STAGE_ORDER",
    "Stage",
    "SupervisorAssessment",
    "SupervisorDecision",
    "TaskProgram",
    "TimestampMixin",
    "User",
    "UserTaskProgress",
    "next_stage",
    "stage_index",
]
