"""Feedback and event records read by the reminder sweeps."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_engine.models.base import Base, TimestampMixin, check_in


class FeedbackType(str, Enum):
    """Milestone feedback an employee owes after joining."""

    THREE_MONTH = "3-month"
    SIX_MONTH = "6-month"
    TWELVE_MONTH = "12-month"


# Whole calendar months since start date at which each feedback falls due.
FEEDBACK_MILESTONES: dict[int, FeedbackType] = {
    3: FeedbackType.THREE_MONTH,
    6: FeedbackType.SIX_MONTH,
    12: FeedbackType.TWELVE_MONTH,
}


class Feedback(Base, TimestampMixin):
    """Submitted milestone feedback."""

    __tablename__ = "feedback"
    __table_args__ = (
        CheckConstraint(check_in("type", FeedbackType), name="feedback_type_check"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)


class Event(Base, TimestampMixin):
    """Company calendar event."""

    __tablename__ = "events"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(nullable=False, index=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
