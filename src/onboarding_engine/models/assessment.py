"""Supervisor assessment model for the phase-two gate."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_engine.models.base import Base, TimestampMixin, check_in


class AssessmentStatus(str, Enum):
    """Canonical assessment states, in pipeline order."""

    PENDING_CERTIFICATE = "pending_certificate"
    CERTIFICATE_UPLOADED = "certificate_uploaded"
    ASSESSMENT_PENDING = "assessment_pending"
    ASSESSMENT_COMPLETED = "assessment_completed"
    DECISION_PENDING = "decision_pending"
    DECISION_MADE = "decision_made"
    HR_APPROVAL_PENDING = "hr_approval_pending"
    HR_APPROVED = "hr_approved"
    HR_REJECTED = "hr_rejected"
    COMPLETED = "completed"


class SupervisorDecision(str, Enum):
    """Outcomes a supervisor can choose after assessing."""

    PROCEED_TO_PHASE_2 = "proceed_to_phase_2"
    TERMINATE = "terminate"
    PUT_ON_HOLD = "put_on_hold"


class HrDecision(str, Enum):
    """Outcomes HR can choose on a proceed recommendation."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"


class SupervisorAssessment(Base, TimestampMixin):
    """Certificate, assessment and decision record for one employee's journey."""

    __tablename__ = "supervisor_assessments"
    __table_args__ = (
        CheckConstraint(
            check_in("status", AssessmentStatus),
            name="supervisor_assessments_status_check",
        ),
        CheckConstraint(
            "supervisor_decision IS NULL OR "
            + check_in("supervisor_decision", SupervisorDecision),
            name="supervisor_assessments_supervisor_decision_check",
        ),
        CheckConstraint(
            "hr_decision IS NULL OR " + check_in("hr_decision", HrDecision),
            name="supervisor_assessments_hr_decision_check",
        ),
        CheckConstraint(
            "assessment_score IS NULL OR "
            "(assessment_score >= 0 AND assessment_score <= 100)",
            name="supervisor_assessments_score_range",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    onboarding_progress_id: Mapped[UUID] = mapped_column(
        ForeignKey("onboarding_progress.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supervisor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=AssessmentStatus.PENDING_CERTIFICATE.value,
    )
    phase1_completed_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Certificate
    certificate_file: Mapped[str | None] = mapped_column(String(500), nullable=True)
    certificate_upload_date: Mapped[datetime | None] = mapped_column(nullable=True)
    assessment_requested_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Supervisor assessment
    assessment_date: Mapped[datetime | None] = mapped_column(nullable=True)
    assessment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assessment_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Supervisor decision
    supervisor_decision: Mapped[str | None] = mapped_column(String(30), nullable=True)
    supervisor_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_date: Mapped[datetime | None] = mapped_column(nullable=True)

    # Legacy HR validation fields, kept in sync with an approving HR decision
    hr_validated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_validator_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    hr_validation_date: Mapped[datetime | None] = mapped_column(nullable=True)
    hr_validation_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    # HR decision
    hr_decision: Mapped[str | None] = mapped_column(String(30), nullable=True)
    hr_decision_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    hr_decision_date: Mapped[datetime | None] = mapped_column(nullable=True)

    phase_two_unlocked_date: Mapped[datetime | None] = mapped_column(nullable=True)
