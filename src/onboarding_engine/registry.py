"""Task registry: the fixed catalogue of onboarding tasks per stage.

The catalogue is defined in code and seeded into ``onboarding_tasks`` at
deploy time so per-user progress rows have a foreign key target. At runtime
it is read-only; services consult it directly instead of querying the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID, uuid5

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding_engine.models import (
    STAGE_ORDER,
    ControlledBy,
    OnboardingTask,
    Stage,
    TaskProgram,
)

logger = logging.getLogger(__name__)

_TASK_NAMESPACE = UUID("6f1c2b9e-3d4a-5e8f-9a0b-1c2d3e4f5a6b")


@dataclass(frozen=True)
class TaskDefinition:
    """One catalogue entry."""

    slug: str
    stage: Stage
    order: int
    title: str
    description: str
    program_type: TaskProgram = TaskProgram.BOTH
    controlled_by: ControlledBy = ControlledBy.BOTH
    is_default: bool = True

    @property
    def id(self) -> UUID:
        """Stable id derived from the slug, identical across deployments."""
        return uuid5(_TASK_NAMESPACE, self.slug)

    def applies_to(self, program_type: str | None) -> bool:
        """Check if the task is part of a journey for ``program_type``.

        Users without a program type only get tasks shared by every program.
        """
        return self.program_type == TaskProgram.BOTH or self.program_type == program_type


def _task(
    slug: str,
    stage: Stage,
    order: int,
    title: str,
    description: str,
    program_type: TaskProgram = TaskProgram.BOTH,
    controlled_by: ControlledBy = ControlledBy.BOTH,
    is_default: bool = True,
) -> TaskDefinition:
    return TaskDefinition(
        slug=slug,
        stage=stage,
        order=order,
        title=title,
        description=description,
        program_type=program_type,
        controlled_by=controlled_by,
        is_default=is_default,
    )


TASK_CATALOGUE: tuple[TaskDefinition, ...] = (
    # Prepare: pre-boarding and preparation
    _task("prepare-contract", Stage.PREPARE, 1, "Sign employment contract",
          "Review and sign the employment contract.", controlled_by=ControlledBy.HR),
    _task("prepare-documents", Stage.PREPARE, 2, "Submit administrative documents",
          "Send ID, bank details and social security documents to HR.",
          controlled_by=ControlledBy.EMPLOYEE),
    _task("prepare-workstation", Stage.PREPARE, 3, "Prepare workstation and accounts",
          "Equipment, badge and system accounts are ready for day one.",
          controlled_by=ControlledBy.HR),
    _task("prepare-welcome-booklet", Stage.PREPARE, 4, "Read the welcome booklet",
          "Company history, values and practical information.",
          controlled_by=ControlledBy.EMPLOYEE),
    # Orient: orientation and initial training
    _task("orient-welcome-day", Stage.ORIENT, 1, "Attend welcome day",
          "Company presentation and site tour."),
    _task("orient-meet-team", Stage.ORIENT, 2, "Meet your supervisor and team",
          "Introductory meeting with the supervisor and team members."),
    _task("orient-compliance", Stage.ORIENT, 3, "Complete safety and compliance training",
          "Mandatory safety, data protection and code of conduct modules.",
          controlled_by=ControlledBy.EMPLOYEE),
    _task("orient-sfp-induction", Stage.ORIENT, 4, "Complete program induction module",
          "Induction module specific to the SFP program.",
          program_type=TaskProgram.SFP, controlled_by=ControlledBy.EMPLOYEE),
    _task("orient-cc-shadowing", Stage.ORIENT, 4, "Shadow a customer care agent",
          "Half-day shadowing session with an experienced agent.",
          program_type=TaskProgram.CC, controlled_by=ControlledBy.EMPLOYEE),
    # Land: integration into the role
    _task("land-objectives", Stage.LAND, 1, "Agree on first objectives with supervisor",
          "Set objectives for the first months in the role."),
    _task("land-role-training", Stage.LAND, 2, "Complete role-specific training",
          "Tools and procedures used day to day in the role.",
          controlled_by=ControlledBy.EMPLOYEE),
    _task("land-sfp-certification", Stage.LAND, 3, "Obtain program certification",
          "Pass the SFP certification exam.",
          program_type=TaskProgram.SFP, controlled_by=ControlledBy.EMPLOYEE),
    _task("land-cc-first-cases", Stage.LAND, 3, "Handle first supervised customer cases",
          "Handle live customer cases under supervision.",
          program_type=TaskProgram.CC, controlled_by=ControlledBy.EMPLOYEE),
    # Integrate: team integration and process familiarity
    _task("integrate-cross-team", Stage.INTEGRATE, 1, "Take part in a cross-team project",
          "Contribute to a project with another department."),
    _task("integrate-process-review", Stage.INTEGRATE, 2,
          "Present process improvements to the team",
          "Share observations and improvement ideas from the first months.",
          controlled_by=ControlledBy.EMPLOYEE),
    _task("integrate-check-in", Stage.INTEGRATE, 3, "Complete mid-journey check-in",
          "Check-in meeting with HR.", controlled_by=ControlledBy.HR),
    # Excel: advanced training and development
    _task("excel-development-plan", Stage.EXCEL, 1, "Define personal development plan",
          "Agree on development goals for the coming year."),
    _task("excel-advanced-training", Stage.EXCEL, 2, "Complete advanced training path",
          "Advanced modules for the role.", controlled_by=ControlledBy.EMPLOYEE),
    _task("excel-final-review", Stage.EXCEL, 3, "Final onboarding review",
          "Closing review of the onboarding journey with HR.",
          controlled_by=ControlledBy.HR),
    _task("excel-resource-group", Stage.EXCEL, 4, "Join an employee resource group",
          "Optional: get involved in a community inside the company.",
          controlled_by=ControlledBy.EMPLOYEE, is_default=False),
)

_BY_ID: dict[UUID, TaskDefinition] = {task.id: task for task in TASK_CATALOGUE}


def _as_stage(stage: str | Stage) -> Stage | None:
    try:
        return Stage(stage)
    except ValueError:
        return None


def list_tasks_for_stage(
    stage: str | Stage, program_type: str | None = None
) -> tuple[TaskDefinition, ...]:
    """Ordered tasks for a stage.

    An unknown stage yields an empty tuple. Without ``program_type`` every
    task of the stage is returned; with one, only the tasks that apply to it.
    """
    resolved = _as_stage(stage)
    if resolved is None:
        return ()
    tasks = [
        task
        for task in TASK_CATALOGUE
        if task.stage == resolved
        and (program_type is None or task.applies_to(program_type))
    ]
    return tuple(sorted(tasks, key=lambda t: (t.order, t.slug)))


def get_task(task_id: UUID) -> TaskDefinition | None:
    """Look up a catalogue entry by id."""
    return _BY_ID.get(task_id)


def journey_tasks(
    program_type: str | None,
    stages: tuple[Stage, ...] = STAGE_ORDER,
    default_only: bool = True,
) -> tuple[TaskDefinition, ...]:
    """Tasks that make up a user's journey across ``stages``, in stage order."""
    return tuple(
        task
        for stage in stages
        for task in list_tasks_for_stage(stage)
        if task.applies_to(program_type) and (task.is_default or not default_only)
    )


async def seed_tasks(session: AsyncSession) -> int:
    """Insert or refresh the catalogue rows. Returns the number of new rows."""
    created = 0
    for task in TASK_CATALOGUE:
        row = await session.get(OnboardingTask, task.id)
        if row is None:
            row = OnboardingTask(id=task.id)
            session.add(row)
            created += 1
        row.title = task.title
        row.description = task.description
        row.stage = task.stage.value
        row.order = task.order
        row.is_default = task.is_default
        row.program_type = task.program_type.value
        row.controlled_by = task.controlled_by.value
    await session.flush()
    logger.info("Seeded task catalogue: %d new, %d total", created, len(TASK_CATALOGUE))
    return created
