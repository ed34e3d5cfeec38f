"""Journey arithmetic shared by the progress and assessment services."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from onboarding_engine.models import Role, Stage

if TYPE_CHECKING:
    from onboarding_engine.config import Settings
    from onboarding_engine.models import OnboardingProgress, User


def percentage(completed: int, total: int) -> int:
    """Whole-number percentage rounded half up, clamped to [0, 100]."""
    if total <= 0 or completed <= 0:
        return 0
    return min(100, (200 * completed + total) // (2 * total))


def move_to_stage(
    progress: OnboardingProgress,
    stage: Stage,
    now: datetime,
    window_days: int,
) -> None:
    """Put a journey at ``stage`` and restart the stage window."""
    progress.stage = stage.value
    progress.stage_start_date = now
    progress.estimated_completion_date = now + timedelta(days=window_days)


def in_assessment_track(user: User, settings: Settings) -> bool:
    """Check if the user's journey is gated by a supervisor assessment."""
    return (
        user.role == Role.EMPLOYEE
        and user.supervisor_id is not None
        and user.program_type in settings.assessment_program_types
    )
