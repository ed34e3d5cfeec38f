"""Tests for the authorization gate."""

from uuid import uuid4

import pytest

from onboarding_engine.authorization import (
    ROLE_CAPABILITIES,
    Actor,
    Capability,
    can_advance_phases,
    can_edit_tasks,
    can_validate_tasks,
    can_view_progress,
    has_capability,
    require_capability,
    require_hierarchy,
    within_hierarchy,
)
from onboarding_engine.errors import ForbiddenError
from onboarding_engine.models import Role, User


def make_user(role: Role, supervisor_id=None, department=None) -> User:
    return User(
        id=uuid4(),
        name="Test",
        email=f"{uuid4().hex}@example.com",
        role=role.value,
        supervisor_id=supervisor_id,
        department=department,
    )


class TestCapabilities:
    """Role capability table."""

    def test_every_role_has_an_entry(self):
        """Adding a role without capabilities fails at import time."""
        assert set(ROLE_CAPABILITIES) == set(Role)

    @pytest.mark.parametrize(
        "role,expected",
        [
            (Role.EMPLOYEE, False),
            (Role.SUPERVISOR, True),
            (Role.MANAGER, False),
            (Role.HR, True),
        ],
    )
    def test_can_edit_tasks(self, role, expected):
        assert can_edit_tasks(role) is expected

    @pytest.mark.parametrize(
        "role,expected",
        [
            (Role.EMPLOYEE, False),
            (Role.SUPERVISOR, True),
            (Role.MANAGER, False),
            (Role.HR, True),
        ],
    )
    def test_can_advance_phases(self, role, expected):
        assert can_advance_phases(role) is expected

    @pytest.mark.parametrize("role", list(Role))
    def test_only_hr_validates(self, role):
        assert can_validate_tasks(role) is (role == Role.HR)

    @pytest.mark.parametrize("role", list(Role))
    def test_only_hr_decides_assessments(self, role):
        assert has_capability(role, Capability.DECIDE_ASSESSMENTS) is (role == Role.HR)

    def test_accepts_plain_role_strings(self):
        assert can_edit_tasks("supervisor") is True
        assert can_validate_tasks("supervisor") is False

    def test_require_capability_raises_forbidden(self):
        actor = Actor(user_id=uuid4(), role=Role.EMPLOYEE)
        with pytest.raises(ForbiddenError) as exc_info:
            require_capability(actor, Capability.EDIT_TASKS)

        assert exc_info.value.context["role"] == "employee"
        assert exc_info.value.status_code == 403


class TestHierarchy:
    """Reporting line checks."""

    def test_direct_supervisor_allowed(self):
        supervisor = make_user(Role.SUPERVISOR)
        employee = make_user(Role.EMPLOYEE, supervisor_id=supervisor.id)
        actor = Actor(user_id=supervisor.id, role=Role.SUPERVISOR)

        assert within_hierarchy(actor, employee) is True
        require_hierarchy(actor, employee)

    def test_other_supervisor_denied(self):
        employee = make_user(Role.EMPLOYEE, supervisor_id=uuid4())
        actor = Actor(user_id=uuid4(), role=Role.SUPERVISOR)

        assert within_hierarchy(actor, employee) is False
        with pytest.raises(ForbiddenError):
            require_hierarchy(actor, employee)

    def test_hr_bypasses_hierarchy(self):
        employee = make_user(Role.EMPLOYEE, supervisor_id=uuid4())
        actor = Actor(user_id=uuid4(), role=Role.HR)

        assert within_hierarchy(actor, employee) is True

    def test_own_record_allowed(self):
        employee = make_user(Role.EMPLOYEE)
        actor = Actor(user_id=employee.id, role=Role.EMPLOYEE)

        assert within_hierarchy(actor, employee) is True

    def test_employee_without_supervisor_not_matched_by_anyone(self):
        employee = make_user(Role.EMPLOYEE)
        actor = Actor(user_id=uuid4(), role=Role.SUPERVISOR)

        assert within_hierarchy(actor, employee) is False

    def test_manager_reads_own_department_only(self):
        employee = make_user(Role.EMPLOYEE, department="Operations")
        manager = Actor(user_id=uuid4(), role=Role.MANAGER)

        assert can_view_progress(manager, employee, "Operations") is True
        assert can_view_progress(manager, employee, "Finance") is False
        assert can_view_progress(manager, employee, None) is False
