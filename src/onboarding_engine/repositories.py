"""Storage access for the onboarding services.

Services load and save entities through these repositories so state-machine
checks stay in the service layer and never depend on query details.
"""

from __future__ import annotations

from typing import Generic, Iterable, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.errors import InvalidStateError, NotFoundError
from onboarding_engine.models import (
    Base,
    Event,
    Feedback,
    Notification,
    OnboardingProgress,
    Role,
    SupervisorAssessment,
    User,
    UserTaskProgress,
)

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """Load-by-id and save for one model class."""

    model: type[ModelT]
    label: str = "Entity"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, entity_id: UUID) -> ModelT | None:
        return await self.session.get(self.model, entity_id)

    async def load(self, entity_id: UUID) -> ModelT:
        """Get by id, raising NotFoundError when absent."""
        entity = await self.get(entity_id)
        if entity is None:
            raise NotFoundError(
                f"{self.label} not found",
                {"id": str(entity_id)},
            )
        return entity

    async def save(self, entity: ModelT) -> ModelT:
        """Add and flush, turning a uniqueness conflict into InvalidStateError."""
        self.session.add(entity)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise InvalidStateError(
                f"Conflicting write on {self.label}",
                {"entity": self.label},
            ) from e
        return entity


class UserRepository(Repository[User]):
    model = User
    label = "User"

    async def list_by_role(self, role: Role) -> Sequence[User]:
        result = await self.session.execute(
            select(User).where(User.role == role.value).order_by(User.name)
        )
        return result.scalars().all()

    async def list_all(self) -> Sequence[User]:
        result = await self.session.execute(select(User).order_by(User.name))
        return result.scalars().all()

    async def list_reports(self, supervisor_id: UUID) -> Sequence[User]:
        result = await self.session.execute(
            select(User).where(User.supervisor_id == supervisor_id).order_by(User.name)
        )
        return result.scalars().all()

    async def list_department(self, department: str, role: Role) -> Sequence[User]:
        result = await self.session.execute(
            select(User)
            .where(User.department == department, User.role == role.value)
            .order_by(User.name)
        )
        return result.scalars().all()


class ProgressRepository(Repository[OnboardingProgress]):
    model = OnboardingProgress
    label = "Onboarding journey"

    async def get_for_user(self, user_id: UUID) -> OnboardingProgress | None:
        result = await self.session.execute(
            select(OnboardingProgress).where(OnboardingProgress.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def load_for_user(self, user_id: UUID) -> OnboardingProgress:
        progress = await self.get_for_user(user_id)
        if progress is None:
            raise NotFoundError(
                "Onboarding journey not found",
                {"user_id": str(user_id)},
            )
        return progress

    async def list_for_users(self, user_ids: Iterable[UUID]) -> Sequence[OnboardingProgress]:
        ids = list(user_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(OnboardingProgress).where(OnboardingProgress.user_id.in_(ids))
        )
        return result.scalars().all()


class TaskProgressRepository(Repository[UserTaskProgress]):
    model = UserTaskProgress
    label = "Task progress"

    async def find(self, user_id: UUID, task_id: UUID) -> UserTaskProgress | None:
        result = await self.session.execute(
            select(UserTaskProgress).where(
                UserTaskProgress.user_id == user_id,
                UserTaskProgress.task_id == task_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> Sequence[UserTaskProgress]:
        result = await self.session.execute(
            select(UserTaskProgress).where(UserTaskProgress.user_id == user_id)
        )
        return result.scalars().all()

    async def completed_task_ids(
        self, user_id: UUID, task_ids: Iterable[UUID]
    ) -> set[UUID]:
        ids = list(task_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(UserTaskProgress.task_id).where(
                UserTaskProgress.user_id == user_id,
                UserTaskProgress.task_id.in_(ids),
                UserTaskProgress.is_completed.is_(True),
            )
        )
        return set(result.scalars().all())

    async def delete_for_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            delete(UserTaskProgress).where(UserTaskProgress.user_id == user_id)
        )
        return result.rowcount or 0


class AssessmentRepository(Repository[SupervisorAssessment]):
    model = SupervisorAssessment
    label = "Supervisor assessment"

    async def get_for_employee(self, employee_id: UUID) -> SupervisorAssessment | None:
        result = await self.session.execute(
            select(SupervisorAssessment).where(
                SupervisorAssessment.employee_id == employee_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_supervisor(self, supervisor_id: UUID) -> Sequence[SupervisorAssessment]:
        result = await self.session.execute(
            select(SupervisorAssessment)
            .where(SupervisorAssessment.supervisor_id == supervisor_id)
            .order_by(SupervisorAssessment.created_at.desc())
        )
        return result.scalars().all()

    async def list_all(self, status: str | None = None) -> Sequence[SupervisorAssessment]:
        query = select(SupervisorAssessment)
        if status:
            query = query.where(SupervisorAssessment.status == status)
        result = await self.session.execute(
            query.order_by(SupervisorAssessment.created_at.desc())
        )
        return result.scalars().all()

    async def delete(self, assessment: SupervisorAssessment) -> None:
        await self.session.delete(assessment)
        await self.session.flush()


class NotificationRepository(Repository[Notification]):
    model = Notification
    label = "Notification"

    async def find_by_dedupe_key(self, user_id: UUID, dedupe_key: str) -> Notification | None:
        result = await self.session.execute(
            select(Notification).where(
                Notification.user_id == user_id,
                Notification.dedupe_key == dedupe_key,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> Sequence[Notification]:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        return result.scalars().all()


class CalendarRepository:
    """Read access to feedback and events for the reminder sweeps."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def feedback_exists(self, employee_id: UUID, feedback_type: str) -> bool:
        result = await self.session.execute(
            select(Feedback.id)
            .where(Feedback.employee_id == employee_id, Feedback.type == feedback_type)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def events_between(self, start, end) -> Sequence[Event]:
        """Events whose start falls in the closed interval [start, end]."""
        result = await self.session.execute(
            select(Event)
            .where(Event.start_date >= start, Event.start_date <= end)
            .order_by(Event.start_date)
        )
        return result.scalars().all()
