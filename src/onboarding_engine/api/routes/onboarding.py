"""Onboarding journey and task endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from onboarding_engine.api.dependencies import CurrentActor, DbSession, ProgressServiceDep
from onboarding_engine.api.schemas import (
    ErrorResponse,
    JourneyCreate,
    JourneyListItem,
    JourneyReset,
    OnboardingProgressResponse,
    ProgressOverviewResponse,
    TaskCompletionRequest,
    TaskResponse,
    TaskStatusRequest,
    TaskUpdateResponse,
)
from onboarding_engine.authorization import require_role
from onboarding_engine.models import Role
from onboarding_engine.registry import list_tasks_for_stage

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Journeys
# ============================================================================


@router.post(
    "/journeys",
    response_model=OnboardingProgressResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def create_journey(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    payload: JourneyCreate,
) -> OnboardingProgressResponse:
    """Start an onboarding journey for an employee."""
    journey = await service.create_journey(actor, payload.user_id, payload.program_type)
    await db.commit()
    return OnboardingProgressResponse.model_validate(journey)


@router.get("/progress", response_model=list[JourneyListItem], responses=ERRORS)
async def list_journeys(
    actor: CurrentActor,
    service: ProgressServiceDep,
) -> list[JourneyListItem]:
    """Journeys the caller oversees (HR: all, manager: department, supervisor: reports)."""
    entries = await service.list_journeys(actor)
    return [JourneyListItem.from_entry(entry) for entry in entries]


@router.get("/progress/me", response_model=ProgressOverviewResponse, responses=ERRORS)
async def get_my_progress(
    actor: CurrentActor,
    service: ProgressServiceDep,
) -> ProgressOverviewResponse:
    """Own journey with per-stage task breakdown."""
    overview = await service.get_overview(actor)
    return ProgressOverviewResponse.from_overview(overview)


@router.get("/progress/{user_id}", response_model=ProgressOverviewResponse, responses=ERRORS)
async def get_user_progress(
    actor: CurrentActor,
    service: ProgressServiceDep,
    user_id: Annotated[UUID, Path()],
) -> ProgressOverviewResponse:
    """Journey of a direct report (or a department member for managers)."""
    overview = await service.get_overview(actor, user_id)
    return ProgressOverviewResponse.from_overview(overview)


@router.get(
    "/progress/{user_id}/hr",
    response_model=ProgressOverviewResponse,
    responses=ERRORS,
)
async def get_user_progress_hr(
    actor: CurrentActor,
    service: ProgressServiceDep,
    user_id: Annotated[UUID, Path()],
) -> ProgressOverviewResponse:
    """Journey of any user, HR only."""
    overview = await service.get_overview(actor, user_id, hr_view=True)
    return ProgressOverviewResponse.from_overview(overview)


@router.put(
    "/progress/{user_id}/advance",
    response_model=OnboardingProgressResponse,
    responses=ERRORS,
)
async def advance_phase(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    user_id: Annotated[UUID, Path()],
) -> OnboardingProgressResponse:
    """Supervisor moves a direct report to the next stage."""
    require_role(actor, Role.SUPERVISOR)
    journey = await service.advance_phase(actor, user_id)
    await db.commit()
    return OnboardingProgressResponse.model_validate(journey)


@router.put(
    "/progress/{user_id}/advance/hr",
    response_model=OnboardingProgressResponse,
    responses=ERRORS,
)
async def advance_phase_hr(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    user_id: Annotated[UUID, Path()],
) -> OnboardingProgressResponse:
    """HR moves any journey to the next stage."""
    require_role(actor, Role.HR)
    journey = await service.advance_phase(actor, user_id)
    await db.commit()
    return OnboardingProgressResponse.model_validate(journey)


@router.post(
    "/{user_id}/reset",
    response_model=OnboardingProgressResponse,
    responses=ERRORS,
)
async def reset_journey(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    user_id: Annotated[UUID, Path()],
    payload: JourneyReset,
) -> OnboardingProgressResponse:
    """Reset a journey to an earlier stage, HR only."""
    journey = await service.reset_journey(
        actor,
        user_id,
        reset_to_stage=payload.reset_to_stage,
        keep_completed_tasks=payload.keep_completed_tasks,
    )
    await db.commit()
    return OnboardingProgressResponse.model_validate(journey)


# ============================================================================
# Tasks
# ============================================================================


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(
    actor: CurrentActor,
    stage: str,
    program_type: Annotated[str | None, Query(alias="programType")] = None,
) -> list[TaskResponse]:
    """Catalogue tasks for a stage. Unknown stages return an empty list."""
    return [
        TaskResponse.model_validate(task)
        for task in list_tasks_for_stage(stage, program_type)
    ]


@router.put(
    "/tasks/{task_id}/complete",
    response_model=TaskUpdateResponse,
    responses=ERRORS,
)
async def complete_task(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    task_id: Annotated[UUID, Path()],
    payload: TaskCompletionRequest,
) -> TaskUpdateResponse:
    """Mark a task completed or not completed."""
    update = await service.toggle_task_completion(
        actor,
        task_id,
        payload.completed,
        target_user_id=payload.user_id,
        supervisor_notes=payload.supervisor_notes,
    )
    await db.commit()
    return TaskUpdateResponse.from_update(update)


@router.put(
    "/tasks/{task_id}/validate",
    response_model=TaskUpdateResponse,
    responses=ERRORS,
)
async def validate_task(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    task_id: Annotated[UUID, Path()],
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    comments: str | None = None,
) -> TaskUpdateResponse:
    """HR validation of a completed task."""
    update = await service.validate_task(actor, task_id, user_id, comments)
    await db.commit()
    return TaskUpdateResponse.from_update(update)


@router.put(
    "/tasks/{task_id}/status",
    response_model=TaskUpdateResponse,
    responses=ERRORS,
)
async def update_task_status(
    db: DbSession,
    actor: CurrentActor,
    service: ProgressServiceDep,
    task_id: Annotated[UUID, Path()],
    payload: TaskStatusRequest,
) -> TaskUpdateResponse:
    """Set completion and HR validation in one call."""
    update = await service.update_task_status(
        actor,
        task_id,
        user_id=payload.user_id,
        completed=payload.completed,
        hr_validated=payload.hr_validated,
        comments=payload.comments,
    )
    await db.commit()
    return TaskUpdateResponse.from_update(update)
