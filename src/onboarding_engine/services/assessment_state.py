"""Supervisor assessment state machine.

The stored ``status`` column is never written directly. It is recomputed by
``derive_status`` from the fields an operation fills in, so status and fields
cannot drift apart.

Pipeline:
- pending_certificate → certificate_uploaded → assessment_pending
- → assessment_completed → (supervisor decision)
    - proceed_to_phase_2 → hr_approval_pending
    - put_on_hold → decision_made (supervisor may decide again)
    - terminate → completed (no HR review, phase two stays locked)
- hr_approval_pending → (HR decision)
    - approve → hr_approved → completed once phase two is unlocked
    - reject → hr_rejected
    - request_changes → decision_pending (supervisor decides again)
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from onboarding_engine.errors import InvalidStateError
from onboarding_engine.models import AssessmentStatus, HrDecision, SupervisorDecision

if TYPE_CHECKING:
    from onboarding_engine.models import SupervisorAssessment


class AssessmentOperation(str, Enum):
    """Writes an assessment accepts."""

    UPLOAD_CERTIFICATE = "upload_certificate"
    SUBMIT_ASSESSMENT = "submit_assessment"
    MAKE_DECISION = "make_decision"
    HR_DECIDE = "hr_decide"


class InvalidTransitionError(InvalidStateError):
    """Raised when an operation does not fit the assessment's current status."""

    def __init__(self, operation: str, from_status: str, reason: str | None = None):
        self.operation = operation
        self.from_status = from_status
        self.reason = reason
        msg = f"Cannot {operation.replace('_', ' ')} while assessment is '{from_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"status": from_status, "operation": operation})


def derive_status(assessment: SupervisorAssessment) -> AssessmentStatus:
    """Canonical status implied by the populated fields."""
    if assessment.hr_decision == HrDecision.APPROVE:
        if assessment.phase_two_unlocked_date is not None:
            return AssessmentStatus.COMPLETED
        return AssessmentStatus.HR_APPROVED
    if assessment.hr_decision == HrDecision.REJECT:
        return AssessmentStatus.HR_REJECTED

    if assessment.supervisor_decision == SupervisorDecision.TERMINATE:
        return AssessmentStatus.COMPLETED
    if assessment.supervisor_decision == SupervisorDecision.PROCEED_TO_PHASE_2:
        return AssessmentStatus.HR_APPROVAL_PENDING
    if assessment.supervisor_decision == SupervisorDecision.PUT_ON_HOLD:
        return AssessmentStatus.DECISION_MADE

    if assessment.assessment_date is not None:
        if assessment.hr_decision == HrDecision.REQUEST_CHANGES:
            return AssessmentStatus.DECISION_PENDING
        return AssessmentStatus.ASSESSMENT_COMPLETED
    if assessment.assessment_requested_date is not None:
        return AssessmentStatus.ASSESSMENT_PENDING
    if assessment.certificate_file:
        return AssessmentStatus.CERTIFICATE_UPLOADED
    return AssessmentStatus.PENDING_CERTIFICATE


class AssessmentStateMachine:
    """Allowed status transitions and the statuses each operation accepts."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AssessmentStatus.PENDING_CERTIFICATE: [
            AssessmentStatus.CERTIFICATE_UPLOADED,
            AssessmentStatus.ASSESSMENT_PENDING,
        ],
        AssessmentStatus.CERTIFICATE_UPLOADED: [
            AssessmentStatus.ASSESSMENT_PENDING,
            AssessmentStatus.ASSESSMENT_COMPLETED,
        ],
        AssessmentStatus.ASSESSMENT_PENDING: [AssessmentStatus.ASSESSMENT_COMPLETED],
        AssessmentStatus.ASSESSMENT_COMPLETED: [
            AssessmentStatus.HR_APPROVAL_PENDING,
            AssessmentStatus.DECISION_MADE,
            AssessmentStatus.COMPLETED,
        ],
        AssessmentStatus.DECISION_PENDING: [
            AssessmentStatus.HR_APPROVAL_PENDING,
            AssessmentStatus.DECISION_MADE,
            AssessmentStatus.COMPLETED,
        ],
        AssessmentStatus.DECISION_MADE: [
            AssessmentStatus.HR_APPROVAL_PENDING,
            AssessmentStatus.COMPLETED,
        ],
        AssessmentStatus.HR_APPROVAL_PENDING: [
            AssessmentStatus.HR_APPROVED,
            AssessmentStatus.HR_REJECTED,
            AssessmentStatus.DECISION_PENDING,
            AssessmentStatus.COMPLETED,
        ],
        AssessmentStatus.HR_APPROVED: [AssessmentStatus.COMPLETED],
        AssessmentStatus.HR_REJECTED: [],  # Terminal state
        AssessmentStatus.COMPLETED: [],  # Terminal state
    }

    # Statuses in which each operation may be applied
    ACCEPTS: dict[AssessmentOperation, frozenset[str]] = {
        AssessmentOperation.UPLOAD_CERTIFICATE: frozenset({
            AssessmentStatus.PENDING_CERTIFICATE,
            AssessmentStatus.CERTIFICATE_UPLOADED,
            AssessmentStatus.ASSESSMENT_PENDING,
        }),
        AssessmentOperation.SUBMIT_ASSESSMENT: frozenset({
            AssessmentStatus.CERTIFICATE_UPLOADED,
            AssessmentStatus.ASSESSMENT_PENDING,
        }),
        AssessmentOperation.MAKE_DECISION: frozenset({
            AssessmentStatus.ASSESSMENT_COMPLETED,
            AssessmentStatus.DECISION_PENDING,
            AssessmentStatus.DECISION_MADE,
        }),
        AssessmentOperation.HR_DECIDE: frozenset({
            AssessmentStatus.HR_APPROVAL_PENDING,
        }),
    }

    TERMINAL = frozenset({AssessmentStatus.COMPLETED, AssessmentStatus.HR_REJECTED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a status change is valid. Staying put is always valid."""
        if from_status == to_status:
            return True
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def accepts(cls, operation: AssessmentOperation, status: str) -> bool:
        """Check if ``operation`` may be applied in ``status``."""
        return status in cls.ACCEPTS[operation]

    @classmethod
    def validate_operation(cls, operation: AssessmentOperation, status: str) -> None:
        """Raise InvalidTransitionError if ``operation`` is not allowed in ``status``."""
        if not cls.accepts(operation, status):
            reason = "assessment is closed" if status in cls.TERMINAL else None
            raise InvalidTransitionError(operation.value, str(getattr(status, "value", status)), reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
