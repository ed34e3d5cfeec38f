"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from onboarding_engine.models import (
    AssessmentStatus,
    ControlledBy,
    Stage,
    TaskProgram,
)
from onboarding_engine.services.progress_service import JourneyEntry, ProgressOverview, TaskUpdate


class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# Errors
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Journey schemas
# ============================================================================


class JourneyCreate(ApiModel):
    """Schema for starting an onboarding journey."""

    user_id: UUID
    program_type: str | None = None


class JourneyReset(ApiModel):
    """Schema for an administrative journey reset."""

    reset_to_stage: Stage = Stage.PREPARE
    keep_completed_tasks: bool = False


class OnboardingProgressResponse(ApiModel):
    """Schema for a user's journey aggregate."""

    id: UUID
    user_id: UUID
    stage: Stage
    progress: int
    stage_start_date: datetime
    estimated_completion_date: datetime


class JourneyListItem(ApiModel):
    """A journey in an overseer's list, with the employee's details."""

    user_id: UUID
    name: str
    email: str
    department: str | None = None
    program_type: str | None = None
    journey: OnboardingProgressResponse

    @classmethod
    def from_entry(cls, entry: JourneyEntry) -> JourneyListItem:
        return cls(
            user_id=entry.user.id,
            name=entry.user.name,
            email=entry.user.email,
            department=entry.user.department,
            program_type=entry.user.program_type,
            journey=OnboardingProgressResponse.model_validate(entry.journey),
        )


# ============================================================================
# Task schemas
# ============================================================================


class TaskResponse(ApiModel):
    """Schema for a catalogue task."""

    id: UUID
    title: str
    description: str | None = None
    stage: Stage
    order: int
    is_default: bool
    program_type: TaskProgram
    controlled_by: ControlledBy


class TaskProgressResponse(ApiModel):
    """Schema for a user's record on one task."""

    task_id: UUID
    user_id: UUID
    is_completed: bool
    completed_at: datetime | None = None
    hr_validated: bool
    hr_validated_at: datetime | None = None
    hr_comments: str | None = None
    notes: str | None = None
    supervisor_notes: str | None = None


class TaskCompletionRequest(ApiModel):
    """Schema for toggling task completion."""

    completed: bool
    user_id: UUID | None = None
    supervisor_notes: str | None = None


class TaskStatusRequest(ApiModel):
    """Schema for the combined completion/validation update."""

    completed: bool | None = None
    hr_validated: bool | None = None
    comments: str | None = None
    user_id: UUID | None = None


class StageTaskResponse(TaskResponse):
    """Catalogue task merged with the user's record."""

    is_completed: bool = False
    completed_at: datetime | None = None
    hr_validated: bool = False
    hr_validated_at: datetime | None = None
    hr_comments: str | None = None
    supervisor_notes: str | None = None


class StageResponse(ApiModel):
    """Per-stage breakdown of a journey."""

    stage: Stage
    label: str
    description: str
    progress: int
    locked: bool
    tasks: list[StageTaskResponse]


# ============================================================================
# Assessment schemas
# ============================================================================


class AssessmentResponse(ApiModel):
    """Schema for a supervisor assessment."""

    id: UUID
    onboarding_progress_id: UUID
    employee_id: UUID
    supervisor_id: UUID
    status: AssessmentStatus
    phase1_completed_date: datetime | None = None
    certificate_file: str | None = None
    certificate_upload_date: datetime | None = None
    assessment_requested_date: datetime | None = None
    assessment_date: datetime | None = None
    assessment_notes: str | None = None
    assessment_score: int | None = None
    supervisor_decision: str | None = None
    supervisor_comments: str | None = None
    decision_date: datetime | None = None
    hr_validated: bool = False
    hr_validator_id: UUID | None = None
    hr_validation_date: datetime | None = None
    hr_validation_comments: str | None = None
    hr_decision: str | None = None
    hr_decision_comments: str | None = None
    hr_decision_date: datetime | None = None
    phase_two_unlocked_date: datetime | None = None


class AssessmentInitialize(ApiModel):
    """Schema for explicitly opening an assessment."""

    user_id: UUID


class CertificateUpload(ApiModel):
    """Schema for attaching the certificate."""

    certificate_file: str


class AssessmentSubmit(ApiModel):
    """Schema for the supervisor's assessment."""

    notes: str
    score: int | None = None


class DecisionRequest(ApiModel):
    """Schema for a supervisor or HR decision."""

    decision: str
    comments: str


# ============================================================================
# Composite responses
# ============================================================================


class TaskUpdateResponse(ApiModel):
    """Result of a task completion or validation change."""

    task_progress: TaskProgressResponse
    journey: OnboardingProgressResponse
    changed: bool
    assessment: AssessmentResponse | None = None

    @classmethod
    def from_update(cls, update: TaskUpdate) -> TaskUpdateResponse:
        return cls(
            task_progress=TaskProgressResponse.model_validate(update.task_progress),
            journey=OnboardingProgressResponse.model_validate(update.journey),
            changed=update.changed,
            assessment=(
                AssessmentResponse.model_validate(update.assessment)
                if update.assessment
                else None
            ),
        )


class ProgressOverviewResponse(ApiModel):
    """Journey with per-stage task breakdown."""

    user_id: UUID
    name: str
    department: str | None = None
    start_date: date | None = None
    program_type: str | None = None
    journey: OnboardingProgressResponse
    stages: list[StageResponse]
    assessment: AssessmentResponse | None = None

    @classmethod
    def from_overview(cls, overview: ProgressOverview) -> ProgressOverviewResponse:
        stages = []
        for stage in overview.stages:
            tasks = []
            for view in stage.tasks:
                record = view.record
                tasks.append(
                    StageTaskResponse(
                        id=view.task.id,
                        title=view.task.title,
                        description=view.task.description,
                        stage=view.task.stage,
                        order=view.task.order,
                        is_default=view.task.is_default,
                        program_type=view.task.program_type,
                        controlled_by=view.task.controlled_by,
                        is_completed=view.is_completed,
                        completed_at=record.completed_at if record else None,
                        hr_validated=bool(record and record.hr_validated),
                        hr_validated_at=record.hr_validated_at if record else None,
                        hr_comments=record.hr_comments if record else None,
                        supervisor_notes=record.supervisor_notes if record else None,
                    )
                )
            stages.append(
                StageResponse(
                    stage=stage.stage,
                    label=stage.label,
                    description=stage.description,
                    progress=stage.percent,
                    locked=stage.locked,
                    tasks=tasks,
                )
            )
        return cls(
            user_id=overview.user.id,
            name=overview.user.name,
            department=overview.user.department,
            start_date=overview.user.start_date,
            program_type=overview.user.program_type,
            journey=OnboardingProgressResponse.model_validate(overview.journey),
            stages=stages,
            assessment=(
                AssessmentResponse.model_validate(overview.assessment)
                if overview.assessment
                else None
            ),
        )
