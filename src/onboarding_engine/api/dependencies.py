"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.authorization import Actor
from onboarding_engine.clock import Clock, SystemClock
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.database import init_db
from onboarding_engine.models import Role
from onboarding_engine.services import AssessmentService, ProgressService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency. Routes commit; errors roll back."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_clock(settings: Annotated[Settings, Depends(get_app_settings)]) -> Clock:
    return SystemClock(settings.scheduler_timezone)


async def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the principal from the headers set by the auth gateway."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id and X-User-Role headers are required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-Id format",
        )
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-Role value",
        )
    return Actor(user_id=user_id, role=role)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
AppClock = Annotated[Clock, Depends(get_clock)]


def get_progress_service(
    db: DbSession, clock: AppClock, settings: AppSettings
) -> ProgressService:
    return ProgressService(db, clock, settings)


def get_assessment_service(
    db: DbSession, clock: AppClock, settings: AppSettings
) -> AssessmentService:
    return AssessmentService(db, clock, settings)


ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]
AssessmentServiceDep = Annotated[AssessmentService, Depends(get_assessment_service)]
