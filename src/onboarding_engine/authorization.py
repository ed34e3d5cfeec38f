"""Authorization gate consulted before every onboarding mutation.

Capability checks are pure functions of the role; hierarchy checks compare
the acting user with the target user's record. Every failure raises
``ForbiddenError`` before any write happens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from onboarding_engine.errors import ForbiddenError
from onboarding_engine.models import Role

if TYPE_CHECKING:
    from onboarding_engine.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated principal performing an operation."""

    user_id: UUID
    role: Role

    @property
    def is_hr(self) -> bool:
        return self.role == Role.HR


class Capability(str, Enum):
    """Role-level permissions."""

    EDIT_TASKS = "edit_tasks"
    ADVANCE_PHASES = "advance_phases"
    VALIDATE_TASKS = "validate_tasks"
    CREATE_JOURNEYS = "create_journeys"
    RESET_JOURNEYS = "reset_journeys"
    DECIDE_ASSESSMENTS = "decide_assessments"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.EMPLOYEE: frozenset(),
    Role.SUPERVISOR: frozenset(
        {Capability.EDIT_TASKS, Capability.ADVANCE_PHASES, Capability.CREATE_JOURNEYS}
    ),
    Role.MANAGER: frozenset({Capability.CREATE_JOURNEYS}),
    Role.HR: frozenset(Capability),
}

if set(ROLE_CAPABILITIES) != set(Role):
    raise RuntimeError(
        f"Roles without a capability entry: {set(Role) - set(ROLE_CAPABILITIES)}"
    )


def has_capability(role: Role | str, capability: Capability) -> bool:
    """Check a role-level permission."""
    return capability in ROLE_CAPABILITIES[Role(role)]


def can_edit_tasks(role: Role | str) -> bool:
    return has_capability(role, Capability.EDIT_TASKS)


def can_advance_phases(role: Role | str) -> bool:
    return has_capability(role, Capability.ADVANCE_PHASES)


def can_validate_tasks(role: Role | str) -> bool:
    return has_capability(role, Capability.VALIDATE_TASKS)


def is_direct_supervisor(actor: Actor, target: User) -> bool:
    return target.supervisor_id is not None and target.supervisor_id == actor.user_id


def within_hierarchy(actor: Actor, target: User) -> bool:
    """HR bypasses the hierarchy; otherwise self or the direct supervisor."""
    return actor.is_hr or actor.user_id == target.id or is_direct_supervisor(actor, target)


def can_view_progress(actor: Actor, target: User, actor_department: str | None = None) -> bool:
    """Read access: the hierarchy, plus managers of the same department."""
    if within_hierarchy(actor, target):
        return True
    return (
        actor.role == Role.MANAGER
        and actor_department is not None
        and actor_department == target.department
    )


def _deny(actor: Actor, message: str, context: dict[str, Any] | None = None) -> ForbiddenError:
    logger.info("Denied %s (%s): %s", actor.user_id, actor.role.value, message)
    return ForbiddenError(message, context)


def require_capability(actor: Actor, capability: Capability) -> None:
    """Raise ForbiddenError unless the actor's role grants ``capability``."""
    if not has_capability(actor.role, capability):
        raise _deny(
            actor,
            f"Role '{actor.role.value}' is not allowed to {capability.value.replace('_', ' ')}",
            {"role": actor.role.value, "capability": capability.value},
        )


def require_role(actor: Actor, *roles: Role) -> None:
    """Raise ForbiddenError unless the actor holds one of ``roles``."""
    if actor.role not in roles:
        raise _deny(
            actor,
            f"Role '{actor.role.value}' is not allowed to perform this operation",
            {"role": actor.role.value, "allowed_roles": [r.value for r in roles]},
        )


def require_hierarchy(actor: Actor, target: User) -> None:
    """Raise ForbiddenError unless ``target`` is within the actor's hierarchy."""
    if not within_hierarchy(actor, target):
        raise _deny(
            actor,
            "User is not within your reporting line",
            {"target_user_id": str(target.id)},
        )


def require_view(actor: Actor, target: User, actor_department: str | None = None) -> None:
    """Raise ForbiddenError unless the actor may read ``target``'s journey."""
    if not can_view_progress(actor, target, actor_department):
        raise _deny(
            actor,
            "Not allowed to view this user's onboarding",
            {"target_user_id": str(target.id)},
        )
