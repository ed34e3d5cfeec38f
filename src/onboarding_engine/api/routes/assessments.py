"""Supervisor assessment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from onboarding_engine.api.dependencies import AssessmentServiceDep, CurrentActor, DbSession
from onboarding_engine.api.schemas import (
    AssessmentInitialize,
    AssessmentResponse,
    AssessmentSubmit,
    CertificateUpload,
    DecisionRequest,
    ErrorResponse,
)
from onboarding_engine.models import AssessmentStatus

router = APIRouter(prefix="/assessments", tags=["assessments"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=AssessmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def initialize_assessment(
    db: DbSession,
    actor: CurrentActor,
    service: AssessmentServiceDep,
    payload: AssessmentInitialize,
) -> AssessmentResponse:
    """Open an assessment for an employee who completed phase 1."""
    assessment = await service.initialize_assessment(actor, payload.user_id)
    await db.commit()
    return AssessmentResponse.model_validate(assessment)


@router.get("/supervisor", response_model=list[AssessmentResponse], responses=ERRORS)
async def list_supervisor_assessments(
    actor: CurrentActor,
    service: AssessmentServiceDep,
) -> list[AssessmentResponse]:
    """Assessments assigned to the calling supervisor."""
    assessments = await service.list_for_supervisor(actor)
    return [AssessmentResponse.model_validate(a) for a in assessments]


@router.get("/hr", response_model=list[AssessmentResponse], responses=ERRORS)
async def list_hr_assessments(
    actor: CurrentActor,
    service: AssessmentServiceDep,
    status_filter: Annotated[AssessmentStatus | None, Query(alias="status")] = None,
) -> list[AssessmentResponse]:
    """HR queue of all assessments."""
    assessments = await service.list_for_hr(actor, status_filter)
    return [AssessmentResponse.model_validate(a) for a in assessments]


@router.get("/{assessment_id}", response_model=AssessmentResponse, responses=ERRORS)
async def get_assessment(
    actor: CurrentActor,
    service: AssessmentServiceDep,
    assessment_id: Annotated[UUID, Path()],
) -> AssessmentResponse:
    """Get one assessment."""
    assessment = await service.get_assessment(actor, assessment_id)
    return AssessmentResponse.model_validate(assessment)


@router.put(
    "/{assessment_id}/certificate",
    response_model=AssessmentResponse,
    responses=ERRORS,
)
async def upload_certificate(
    db: DbSession,
    actor: CurrentActor,
    service: AssessmentServiceDep,
    assessment_id: Annotated[UUID, Path()],
    payload: CertificateUpload,
) -> AssessmentResponse:
    """Attach the certificate (employee or assigned supervisor)."""
    assessment = await service.upload_certificate(
        actor, assessment_id, payload.certificate_file
    )
    await db.commit()
    return AssessmentResponse.model_validate(assessment)


@router.put(
    "/{assessment_id}/assessment",
    response_model=AssessmentResponse,
    responses=ERRORS,
)
async def submit_assessment(
    db: DbSession,
    actor: CurrentActor,
    service: AssessmentServiceDep,
    assessment_id: Annotated[UUID, Path()],
    payload: AssessmentSubmit,
) -> AssessmentResponse:
    """Record the supervisor's assessment."""
    assessment = await service.submit_assessment(
        actor, assessment_id, payload.notes, payload.score
    )
    await db.commit()
    return AssessmentResponse.model_validate(assessment)


@router.put(
    "/{assessment_id}/decision",
    response_model=AssessmentResponse,
    responses=ERRORS,
)
async def make_decision(
    db: DbSession,
    actor: CurrentActor,
    service: AssessmentServiceDep,
    assessment_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AssessmentResponse:
    """Record the supervisor's decision."""
    assessment = await service.make_decision(
        actor, assessment_id, payload.decision, payload.comments
    )
    await db.commit()
    return AssessmentResponse.model_validate(assessment)


@router.put(
    "/{assessment_id}/hr-decision",
    response_model=AssessmentResponse,
    responses=ERRORS,
)
async def hr_decision(
    db: DbSession,
    actor: CurrentActor,
    service: AssessmentServiceDep,
    assessment_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AssessmentResponse:
    """Record HR's decision on a proceed recommendation."""
    assessment = await service.hr_decide(
        actor, assessment_id, payload.decision, payload.comments
    )
    await db.commit()
    return AssessmentResponse.model_validate(assessment)
