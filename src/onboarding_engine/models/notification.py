"""Notification inbox rows."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_engine.models.base import Base, utcnow, check_in


class NotificationType(str, Enum):
    """Closed set of notification types understood by the inbox."""

    TASK = "task"
    EVENT = "event"
    EVALUATION = "evaluation"
    FEEDBACK = "feedback"
    SYSTEM = "system"
    WEEKLY_REPORT = "weekly_report"
    REMINDER = "reminder"
    DOCUMENT = "document"
    TRAINING = "training"
    COACHING_SESSION = "coaching_session"
    TEAM_PROGRESS = "team_progress"
    TEAM_FOLLOWUP = "team_followup"
    PROBATION_DEADLINE = "probation_deadline"
    SYSTEM_ALERT = "system_alert"
    NEW_EMPLOYEE = "new_employee"
    COMPLIANCE_ALERT = "compliance_alert"
    FEEDBACK_AVAILABLE = "feedback_available"
    FEEDBACK_SUBMISSION = "feedback_submission"
    EVALUATION_REMINDER = "evaluation_reminder"
    EVALUATION_OVERDUE = "evaluation_overdue"
    SUPERVISOR_ASSESSMENT_REQUIRED = "supervisor_assessment_required"
    ASSESSMENT_PENDING = "assessment_pending"
    SUPERVISOR_ASSESSMENT_PENDING = "supervisor_assessment_pending"


class Notification(Base):
    """A message in one user's inbox.

    ``dedupe_key`` is optional; when set, ``(user_id, dedupe_key)`` is unique so
    a repeated sweep or retried request cannot emit the same message twice.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(check_in("type", NotificationType), name="notifications_type_check"),
        UniqueConstraint("user_id", "dedupe_key", name="notifications_user_dedupe_key"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )
    dedupe_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
