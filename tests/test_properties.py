"""Property-based tests for progress arithmetic and status derivation."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from hypothesis import given, strategies as st

from onboarding_engine.models import (
    STAGE_ORDER,
    AssessmentStatus,
    HrDecision,
    Stage,
    SupervisorAssessment,
    SupervisorDecision,
    next_stage,
    stage_index,
)
from onboarding_engine.services import AssessmentStateMachine, derive_status
from onboarding_engine.services.journey import percentage

WHEN = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)

totals = st.integers(min_value=1, max_value=500)


@given(total=totals, data=st.data())
def test_percentage_matches_half_up_rounding(total, data):
    completed = data.draw(st.integers(min_value=0, max_value=total))
    expected = (Decimal(100 * completed) / Decimal(total)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    assert percentage(completed, total) == int(expected)


@given(completed=st.integers(min_value=-10, max_value=1000), total=st.integers(-5, 500))
def test_percentage_stays_in_bounds(completed, total):
    assert 0 <= percentage(completed, total) <= 100


@given(total=totals)
def test_percentage_endpoints(total):
    assert percentage(0, total) == 0
    assert percentage(total, total) == 100


@given(stage=st.sampled_from(list(Stage)))
def test_next_stage_moves_forward_one_step(stage):
    following = next_stage(stage)
    if stage == STAGE_ORDER[-1]:
        assert following is None
    else:
        assert stage_index(following) == stage_index(stage) + 1


optional_when = st.one_of(st.none(), st.just(WHEN))


@given(
    certificate=optional_when,
    requested=optional_when,
    assessed=optional_when,
    supervisor_decision=st.one_of(st.none(), st.sampled_from(list(SupervisorDecision))),
    hr_decision=st.one_of(st.none(), st.sampled_from(list(HrDecision))),
    unlocked=optional_when,
)
def test_derived_status_follows_decisions(
    certificate, requested, assessed, supervisor_decision, hr_decision, unlocked
):
    assessment = SupervisorAssessment(
        status=AssessmentStatus.PENDING_CERTIFICATE.value,
        certificate_file="certificate.pdf" if certificate else None,
        assessment_requested_date=requested,
        assessment_date=assessed,
        supervisor_decision=supervisor_decision.value if supervisor_decision else None,
        hr_decision=hr_decision.value if hr_decision else None,
        phase_two_unlocked_date=unlocked,
    )

    status = derive_status(assessment)

    assert isinstance(status, AssessmentStatus)
    if hr_decision == HrDecision.REJECT:
        assert status == AssessmentStatus.HR_REJECTED
    elif hr_decision == HrDecision.APPROVE:
        assert status in (AssessmentStatus.HR_APPROVED, AssessmentStatus.COMPLETED)
    elif supervisor_decision == SupervisorDecision.PROCEED_TO_PHASE_2:
        assert status == AssessmentStatus.HR_APPROVAL_PENDING
    elif supervisor_decision is None and assessed is None and certificate is None:
        assert status in (
            AssessmentStatus.PENDING_CERTIFICATE,
            AssessmentStatus.ASSESSMENT_PENDING,
        )


@given(status=st.sampled_from(list(AssessmentStatus)))
def test_terminal_statuses_have_no_successors(status):
    if AssessmentStateMachine.is_terminal(status):
        assert AssessmentStateMachine.get_next_statuses(status) == []
    else:
        assert AssessmentStateMachine.get_next_statuses(status)
