"""User model and the closed role/program enumerations."""

from __future__ import annotations

from datetime import date
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_engine.models.base import Base, TimestampMixin, check_in


class Role(str, Enum):
    """User roles."""

    EMPLOYEE = "employee"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    HR = "hr"


class ProgramType(str, Enum):
    """Employee program a journey is tailored to."""

    SFP = "SFP"
    CC = "CC"


class User(Base, TimestampMixin):
    """Account identity as provisioned by the user directory."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(check_in("role", Role), name="users_role_check"),
        CheckConstraint(
            "program_type IS NULL OR " + check_in("program_type", ProgramType),
            name="users_program_type_check",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    supervisor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    manager_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    program_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
