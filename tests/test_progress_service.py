"""Tests for the progress ledger."""

import pytest

from conftest import actor_for, add_user
from onboarding_engine.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from onboarding_engine.models import PHASE_ONE_STAGES, Stage
from onboarding_engine.registry import journey_tasks, list_tasks_for_stage
from onboarding_engine.repositories import TaskProgressRepository


async def complete_all(service, actor, user, stages):
    for task in journey_tasks(user.program_type, stages):
        await service.toggle_task_completion(actor, task.id, True, user.id)


class TestJourneys:
    """Journey creation and lookup."""

    async def test_create_journey(self, journey, employee_user, clock, session):
        assert journey.stage == Stage.PREPARE
        assert journey.progress == 0
        assert journey.stage_start_date == clock.now()
        assert (journey.estimated_completion_date - journey.stage_start_date).days == 90

        rows = await TaskProgressRepository(session).list_for_user(employee_user.id)
        assert len(rows) == len(journey_tasks("SFP"))
        assert not any(r.is_completed for r in rows)

    async def test_create_twice_fails(self, progress_service, journey, hr_user, employee_user):
        with pytest.raises(InvalidStateError) as exc_info:
            await progress_service.create_journey(actor_for(hr_user), employee_user.id)

        assert exc_info.value.context["stage"] == "prepare"

    async def test_supervisor_creates_for_direct_report_only(
        self, progress_service, employee_user, supervisor_user, other_supervisor
    ):
        with pytest.raises(ForbiddenError):
            await progress_service.create_journey(actor_for(other_supervisor), employee_user.id)

        journey = await progress_service.create_journey(
            actor_for(supervisor_user), employee_user.id
        )
        assert journey.user_id == employee_user.id

    async def test_employee_cannot_create(self, progress_service, employee_user):
        with pytest.raises(ForbiddenError):
            await progress_service.create_journey(actor_for(employee_user), employee_user.id)

    async def test_invalid_program_type(self, progress_service, hr_user, employee_user):
        with pytest.raises(ValidationError):
            await progress_service.create_journey(
                actor_for(hr_user), employee_user.id, program_type="XYZ"
            )

    async def test_only_employees_get_journeys(self, progress_service, hr_user, supervisor_user):
        with pytest.raises(ValidationError):
            await progress_service.create_journey(actor_for(hr_user), supervisor_user.id)

    async def test_get_progress_missing(self, progress_service, employee_user):
        with pytest.raises(NotFoundError):
            await progress_service.get_progress(employee_user.id)

    async def test_bootstrap_creates_missing_only(
        self, progress_service, journey, session, supervisor_user
    ):
        from onboarding_engine.models import Role

        await add_user(session, Role.EMPLOYEE, "New Hire", supervisor_id=supervisor_user.id)

        assert await progress_service.bootstrap_journeys() == 1
        assert await progress_service.bootstrap_journeys() == 0


class TestToggleTaskCompletion:
    """Completion toggles by supervisors and HR."""

    async def test_two_of_four_prepare_tasks(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        """Fresh journey, two prepare tasks done."""
        actor = actor_for(supervisor_user)
        prepare = list_tasks_for_stage(Stage.PREPARE)
        assert len(prepare) == 4

        for task in prepare[:2]:
            await progress_service.toggle_task_completion(actor, task.id, True, employee_user.id)

        total = len(journey_tasks(employee_user.program_type))
        assert journey.progress == round(100 * 2 / total)
        assert journey.progress == 12

    async def test_toggle_is_idempotent(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        actor = actor_for(supervisor_user)
        task = list_tasks_for_stage(Stage.PREPARE)[0]

        first = await progress_service.toggle_task_completion(actor, task.id, True, employee_user.id)
        completed_at = first.task_progress.completed_at
        second = await progress_service.toggle_task_completion(actor, task.id, True, employee_user.id)

        assert first.changed is True
        assert second.changed is False
        assert second.task_progress.completed_at == completed_at
        assert second.journey.progress == first.journey.progress

    async def test_creates_missing_row(
        self, progress_service, journey, session, supervisor_user, employee_user
    ):
        repo = TaskProgressRepository(session)
        await repo.delete_for_user(employee_user.id)
        task = list_tasks_for_stage(Stage.PREPARE)[0]

        update = await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        assert update.task_progress.is_completed is True
        assert await repo.find(employee_user.id, task.id) is not None

    async def test_uncomplete_clears_completion_and_validation(
        self, progress_service, journey, supervisor_user, hr_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )
        await progress_service.validate_task(actor_for(hr_user), task.id, employee_user.id)

        update = await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, False, employee_user.id
        )

        assert update.task_progress.is_completed is False
        assert update.task_progress.completed_at is None
        assert update.task_progress.hr_validated is False
        assert update.journey.progress == 0

    async def test_completion_does_not_validate(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        update = await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        assert update.task_progress.hr_validated is False

    async def test_employee_cannot_toggle(self, progress_service, journey, employee_user):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(ForbiddenError):
            await progress_service.toggle_task_completion(
                actor_for(employee_user), task.id, True
            )

    async def test_other_supervisor_cannot_toggle(
        self, progress_service, journey, other_supervisor, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(ForbiddenError):
            await progress_service.toggle_task_completion(
                actor_for(other_supervisor), task.id, True, employee_user.id
            )
        assert journey.progress == 0

    async def test_unknown_task(self, progress_service, journey, hr_user, employee_user):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await progress_service.toggle_task_completion(
                actor_for(hr_user), uuid4(), True, employee_user.id
            )

    async def test_recompute_is_idempotent(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        first = await progress_service.recompute_overall_progress(employee_user.id)
        second = await progress_service.recompute_overall_progress(employee_user.id)

        assert first == second == journey.progress


    async def test_target_user_required(self, progress_service, journey, hr_user):
        task = journey_tasks("SFP")[0]
        with pytest.raises(ValidationError) as exc_info:
            await progress_service.toggle_task_completion(actor_for(hr_user), task.id, True)

        assert exc_info.value.context["field"] == "userId"


class TestValidateTask:
    """HR validation."""

    async def test_validation_requires_completion(
        self, progress_service, journey, hr_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(InvalidStateError) as exc_info:
            await progress_service.validate_task(actor_for(hr_user), task.id, employee_user.id)

        assert exc_info.value.context["is_completed"] is False

    async def test_supervisor_cannot_validate_completed_task(
        self, progress_service, journey, session, supervisor_user, employee_user
    ):
        """Validation is HR-only even though completion is not."""
        from onboarding_engine.models import Role

        second_supervisor = await add_user(session, Role.SUPERVISOR, "Second Supervisor")
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        with pytest.raises(ForbiddenError):
            await progress_service.validate_task(
                actor_for(second_supervisor), task.id, employee_user.id
            )
        with pytest.raises(ForbiddenError):
            await progress_service.validate_task(
                actor_for(supervisor_user), task.id, employee_user.id
            )

    async def test_hr_validates(
        self, progress_service, journey, supervisor_user, hr_user, employee_user, clock
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        update = await progress_service.validate_task(
            actor_for(hr_user), task.id, employee_user.id, comments="Checked"
        )

        assert update.task_progress.hr_validated is True
        assert update.task_progress.hr_validated_at == clock.now()
        assert update.task_progress.hr_comments == "Checked"

        again = await progress_service.validate_task(actor_for(hr_user), task.id, employee_user.id)
        assert again.changed is False


    async def test_target_user_required(self, progress_service, journey, hr_user):
        task = journey_tasks("SFP")[0]
        with pytest.raises(ValidationError):
            await progress_service.validate_task(actor_for(hr_user), task.id)


class TestUpdateTaskStatus:
    """Combined completion and validation updates."""

    async def test_complete_and_validate(
        self, progress_service, journey, hr_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        update = await progress_service.update_task_status(
            actor_for(hr_user), task.id, employee_user.id, completed=True, hr_validated=True
        )

        assert update.task_progress.is_completed is True
        assert update.task_progress.hr_validated is True
        assert update.journey.progress > 0

    async def test_validated_but_incomplete_rejected(
        self, progress_service, journey, hr_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(InvalidStateError):
            await progress_service.update_task_status(
                actor_for(hr_user), task.id, employee_user.id, completed=False, hr_validated=True
            )

    async def test_supervisor_cannot_set_validation(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(ForbiddenError):
            await progress_service.update_task_status(
                actor_for(supervisor_user),
                task.id,
                employee_user.id,
                completed=True,
                hr_validated=True,
            )

    async def test_clear_validation(self, progress_service, journey, hr_user, employee_user):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        hr = actor_for(hr_user)
        await progress_service.update_task_status(
            hr, task.id, employee_user.id, completed=True, hr_validated=True
        )

        update = await progress_service.update_task_status(
            hr, task.id, employee_user.id, hr_validated=False, comments="Recheck"
        )

        assert update.changed is True
        assert update.task_progress.is_completed is True
        assert update.task_progress.hr_validated is False
        assert update.task_progress.hr_comments == "Recheck"
        assert update.journey is journey

    async def test_target_user_required(self, progress_service, journey, hr_user):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(ValidationError):
            await progress_service.update_task_status(actor_for(hr_user), task.id, completed=True)

    async def test_nothing_to_update(self, progress_service, journey, hr_user, employee_user):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        with pytest.raises(ValidationError):
            await progress_service.update_task_status(actor_for(hr_user), task.id, employee_user.id)


class TestAdvancePhase:
    """Stage progression."""

    async def test_advance_moves_forward_and_resets_window(
        self, progress_service, journey, supervisor_user, employee_user, clock
    ):
        clock.advance(days=10)
        result = await progress_service.advance_phase(actor_for(supervisor_user), employee_user.id)

        assert result.stage == Stage.ORIENT
        assert result.stage_start_date == clock.now()
        assert (result.estimated_completion_date - clock.now()).days == 90

    async def test_employee_cannot_advance(self, progress_service, journey, employee_user):
        with pytest.raises(ForbiddenError):
            await progress_service.advance_phase(actor_for(employee_user), employee_user.id)

    async def test_phase_two_requires_approved_assessment(
        self, progress_service, journey, hr_user, employee_user
    ):
        hr = actor_for(hr_user)
        await progress_service.advance_phase(hr, employee_user.id)
        await progress_service.advance_phase(hr, employee_user.id)
        assert journey.stage == Stage.LAND

        with pytest.raises(InvalidStateError):
            await progress_service.advance_phase(hr, employee_user.id)
        assert journey.stage == Stage.LAND

    async def test_cannot_advance_past_excel(
        self, progress_service, session, hr_user, supervisor_user
    ):
        from onboarding_engine.models import Role

        # No program type: not gated by an assessment
        user = await add_user(session, Role.EMPLOYEE, "Plain Hire", supervisor_id=supervisor_user.id)
        hr = actor_for(hr_user)
        await progress_service.create_journey(hr, user.id)
        for _ in range(4):
            await progress_service.advance_phase(hr, user.id)
        journey = await progress_service.get_progress(user.id)
        assert journey.stage == Stage.EXCEL

        with pytest.raises(InvalidStateError) as exc_info:
            await progress_service.advance_phase(hr, user.id)

        assert exc_info.value.context["stage"] == "excel"
        assert journey.stage == Stage.EXCEL


class TestResetJourney:
    """Administrative reset."""

    async def test_reset_clears_tasks(
        self, progress_service, journey, session, hr_user, employee_user
    ):
        hr = actor_for(hr_user)
        await complete_all(progress_service, hr, employee_user, PHASE_ONE_STAGES)
        await progress_service.advance_phase(hr, employee_user.id)
        assert journey.progress > 0

        result = await progress_service.reset_journey(hr, employee_user.id)

        assert result.stage == Stage.PREPARE
        assert result.progress == 0
        assert await TaskProgressRepository(session).list_for_user(employee_user.id) == []
        assert await progress_service.assessments.get_for_employee(employee_user.id) is None

    async def test_reset_keeps_completed_tasks(
        self, progress_service, journey, hr_user, employee_user
    ):
        hr = actor_for(hr_user)
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(hr, task.id, True, employee_user.id)
        await progress_service.advance_phase(hr, employee_user.id)
        progress = journey.progress

        result = await progress_service.reset_journey(
            hr, employee_user.id, keep_completed_tasks=True
        )

        assert result.stage == Stage.PREPARE
        assert result.progress == progress

    async def test_reset_is_hr_only(self, progress_service, journey, supervisor_user, employee_user):
        with pytest.raises(ForbiddenError):
            await progress_service.reset_journey(actor_for(supervisor_user), employee_user.id)

    async def test_reset_to_unknown_stage(self, progress_service, journey, hr_user, employee_user):
        with pytest.raises(ValidationError):
            await progress_service.reset_journey(
                actor_for(hr_user), employee_user.id, reset_to_stage="phase_9"
            )


class TestOverview:
    """Per-stage breakdown."""

    async def test_employee_sees_phase_two_locked(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        task = list_tasks_for_stage(Stage.PREPARE)[0]
        await progress_service.toggle_task_completion(
            actor_for(supervisor_user), task.id, True, employee_user.id
        )

        overview = await progress_service.get_overview(actor_for(employee_user))
        by_stage = {s.stage: s for s in overview.stages}

        assert by_stage[Stage.PREPARE].percent == 25
        assert by_stage[Stage.INTEGRATE].locked is True
        assert by_stage[Stage.ORIENT].locked is False
        assert len(by_stage[Stage.LAND].tasks) == 3

    async def test_supervisor_sees_unlocked(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        overview = await progress_service.get_overview(actor_for(supervisor_user), employee_user.id)

        assert not any(s.locked for s in overview.stages)

    async def test_other_supervisor_denied(
        self, progress_service, journey, other_supervisor, employee_user
    ):
        with pytest.raises(ForbiddenError):
            await progress_service.get_overview(actor_for(other_supervisor), employee_user.id)

    async def test_manager_same_department(
        self, progress_service, journey, manager_user, employee_user
    ):
        overview = await progress_service.get_overview(actor_for(manager_user), employee_user.id)
        assert overview.user.id == employee_user.id

    async def test_hr_view_requires_hr(
        self, progress_service, journey, supervisor_user, employee_user
    ):
        with pytest.raises(ForbiddenError):
            await progress_service.get_overview(
                actor_for(supervisor_user), employee_user.id, hr_view=True
            )


class TestListJourneys:
    """Role-scoped journey lists."""

    @pytest.fixture
    async def finance_journey(self, session, progress_service, hr_user, other_supervisor):
        from onboarding_engine.models import Role

        user = await add_user(
            session,
            Role.EMPLOYEE,
            "Fiona Finance",
            department="Finance",
            supervisor_id=other_supervisor.id,
        )
        await progress_service.create_journey(actor_for(hr_user), user.id)
        return user

    async def test_hr_sees_every_journey(
        self, progress_service, journey, finance_journey, hr_user, employee_user
    ):
        entries = await progress_service.list_journeys(actor_for(hr_user))

        assert {e.user.id for e in entries} == {employee_user.id, finance_journey.id}

    async def test_manager_sees_own_department(
        self, progress_service, journey, finance_journey, manager_user, employee_user
    ):
        entries = await progress_service.list_journeys(actor_for(manager_user))

        assert [e.user.id for e in entries] == [employee_user.id]
        assert entries[0].journey is journey

    async def test_manager_without_department(self, session, progress_service, journey):
        from onboarding_engine.models import Role

        manager = await add_user(session, Role.MANAGER, "Floating Manager")

        assert await progress_service.list_journeys(actor_for(manager)) == []

    async def test_supervisor_sees_direct_reports(
        self,
        progress_service,
        journey,
        finance_journey,
        supervisor_user,
        other_supervisor,
        employee_user,
    ):
        mine = await progress_service.list_journeys(actor_for(supervisor_user))
        theirs = await progress_service.list_journeys(actor_for(other_supervisor))

        assert [e.user.id for e in mine] == [employee_user.id]
        assert [e.user.id for e in theirs] == [finance_journey.id]

    async def test_reports_without_journey_are_skipped(
        self, session, progress_service, journey, supervisor_user, employee_user
    ):
        from onboarding_engine.models import Role

        await add_user(session, Role.EMPLOYEE, "Not Started", supervisor_id=supervisor_user.id)

        entries = await progress_service.list_journeys(actor_for(supervisor_user))

        assert [e.user.id for e in entries] == [employee_user.id]

    async def test_employee_forbidden(self, progress_service, journey, employee_user):
        with pytest.raises(ForbiddenError):
            await progress_service.list_journeys(actor_for(employee_user))
