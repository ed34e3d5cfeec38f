"""Onboarding journey models: stages, tasks, per-user progress."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_engine.models.base import Base, TimestampMixin, check_in


class Stage(str, Enum):
    """Top-level onboarding stages, in journey order."""

    PREPARE = "prepare"
    ORIENT = "orient"
    LAND = "land"
    INTEGRATE = "integrate"
    EXCEL = "excel"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)

# Stages whose tasks make up phase one (gates the assessment) and phase two.
PHASE_ONE_STAGES: tuple[Stage, ...] = (Stage.ORIENT, Stage.LAND)
PHASE_TWO_STAGES: tuple[Stage, ...] = (Stage.INTEGRATE, Stage.EXCEL)


def next_stage(stage: str) -> Stage | None:
    """Stage following ``stage``, or None at the terminal stage."""
    index = STAGE_ORDER.index(Stage(stage))
    if index + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[index + 1]


def stage_index(stage: str) -> int:
    return STAGE_ORDER.index(Stage(stage))


class TaskProgram(str, Enum):
    """Which program types a task applies to."""

    SFP = "SFP"
    CC = "CC"
    BOTH = "both"


class ControlledBy(str, Enum):
    """Who is expected to carry out a task."""

    HR = "hr"
    EMPLOYEE = "employee"
    BOTH = "both"


class OnboardingTask(Base, TimestampMixin):
    """Reference task definition, seeded from the task registry."""

    __tablename__ = "onboarding_tasks"
    __table_args__ = (
        CheckConstraint(check_in("stage", Stage), name="onboarding_tasks_stage_check"),
        CheckConstraint(
            check_in("program_type", TaskProgram),
            name="onboarding_tasks_program_type_check",
        ),
        CheckConstraint(
            check_in("controlled_by", ControlledBy),
            name="onboarding_tasks_controlled_by_check",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    stage: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    program_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TaskProgram.BOTH.value
    )
    controlled_by: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ControlledBy.BOTH.value
    )


class OnboardingProgress(Base, TimestampMixin):
    """Per-user journey aggregate: current stage and overall percentage."""

    __tablename__ = "onboarding_progress"
    __table_args__ = (
        CheckConstraint(check_in("stage", Stage), name="onboarding_progress_stage_check"),
        CheckConstraint(
            "progress >= 0 AND progress <= 100",
            name="onboarding_progress_progress_range",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    stage: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Stage.PREPARE.value
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stage_start_date: Mapped[datetime] = mapped_column(nullable=False)
    estimated_completion_date: Mapped[datetime] = mapped_column(nullable=False)


class UserTaskProgress(Base, TimestampMixin):
    """Completion and HR validation record for one (user, task) pair."""

    __tablename__ = "user_task_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="user_task_progress_user_task_key"),
        CheckConstraint(
            "NOT hr_validated OR is_completed",
            name="user_task_progress_validated_requires_completed",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: Mapped[UUID] = mapped_column(
        ForeignKey("onboarding_tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_by: Mapped[UUID | None] = mapped_column(nullable=True)
    hr_validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_validated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    hr_validated_by: Mapped[UUID | None] = mapped_column(nullable=True)
    hr_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
