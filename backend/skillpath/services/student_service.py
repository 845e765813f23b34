"""Student read views over the catalog and their own progress."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.exceptions import NotFoundError
from skillpath.models.enums import DIFFICULTY_RANK, DifficultyLevel, RoadmapStatus, StepStatus
from skillpath.models.progress import StudentRoadmapProgress, StudentStepProgress
from skillpath.models.roadmap import Roadmap, RoadmapStep
from skillpath.schemas.common import PageParams
from skillpath.schemas.progress import (
    ActiveRoadmapSummary,
    AvailableRoadmap,
    CompletedRoadmapSummary,
    MyProgressResponse,
    RoadmapProgressResponse,
    StepDetailResponse,
    StepInfo,
    StudentStatistics,
    StudentStep,
)
from skillpath.services import profile_service, progression_service


def _role_name(roadmap: Roadmap) -> str:
    return roadmap.target_role.name if roadmap.target_role else profile_service.UNKNOWN_ROLE_NAME


def _hardest_difficulty(roadmap: Roadmap) -> DifficultyLevel:
    if not roadmap.steps:
        return DifficultyLevel.BEGINNER
    return max((step.difficulty_level for step in roadmap.steps), key=DIFFICULTY_RANK.__getitem__)


def _student_step(step: RoadmapStep, status: StepStatus, row: StudentStepProgress | None = None) -> StudentStep:
    """Project a catalog step plus the student's row into the student view."""
    return StudentStep(
        id=step.id,
        step_order=step.step_order,
        title=step.title,
        description=step.description,
        learning_objectives=step.learning_objectives,
        submission_guidelines=step.submission_guidelines,
        resource_links=step.resource_links,
        estimated_duration=step.estimated_duration,
        difficulty_level=step.difficulty_level,
        status=status,
        evidence_link=row.evidence_link if row else None,
        evidence_type=row.evidence_type.value if row and row.evidence_type else None,
        submission_notes=row.submission_notes if row else None,
        validation_notes=row.validation_notes if row else None,
        validation_score=row.validation_score if row else None,
        started_at=row.started_at if row else None,
        submitted_at=row.submitted_at if row else None,
        completed_at=row.completed_at if row else None,
        can_start=status == StepStatus.UNLOCKED,
        can_submit=status in (StepStatus.IN_PROGRESS, StepStatus.REJECTED),
        is_locked=status == StepStatus.LOCKED,
    )


def _step_info(step: RoadmapStep, status: StepStatus) -> StepInfo:
    return StepInfo(
        id=step.id,
        order=step.step_order,
        title=step.title,
        status=status,
        difficulty_level=step.difficulty_level,
    )


def _rows_by_step(progress: StudentRoadmapProgress) -> dict[int, StudentStepProgress]:
    return {row.roadmap_step_id: row for row in progress.step_progress}


def _status_of(rows: dict[int, StudentStepProgress], step: RoadmapStep) -> StepStatus:
    row = rows.get(step.id)
    return row.status if row else StepStatus.LOCKED


async def get_available_roadmaps(
    db: AsyncSession,
    student_profile_id: int,
    params: PageParams,
    recommended_only: bool = False,
) -> tuple[list[AvailableRoadmap], int]:
    """Active roadmaps, flagged with the student's recommendation and progress.

    With ``recommended_only`` the list is narrowed to the role recommended by
    the student's latest questionnaire, and is empty when there is none.
    """
    recommended_role_id = await profile_service.get_recommended_role_id(db, student_profile_id)
    if recommended_only and recommended_role_id is None:
        return [], 0

    query = select(Roadmap).where(Roadmap.status == RoadmapStatus.ACTIVE)
    if recommended_only:
        query = query.where(Roadmap.target_role_id == recommended_role_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(
        query.order_by(Roadmap.name.asc(), Roadmap.id.asc()).offset(params.offset).limit(params.limit)
    )
    roadmaps = list(result.scalars().all())

    progress_by_roadmap: dict[int, StudentRoadmapProgress] = {}
    if roadmaps:
        progress_result = await db.execute(
            select(StudentRoadmapProgress).where(
                StudentRoadmapProgress.student_profile_id == student_profile_id,
                StudentRoadmapProgress.roadmap_id.in_([r.id for r in roadmaps]),
            )
        )
        progress_by_roadmap = {p.roadmap_id: p for p in progress_result.scalars().all()}

    items = []
    for roadmap in roadmaps:
        progress = progress_by_roadmap.get(roadmap.id)
        items.append(
            AvailableRoadmap(
                id=roadmap.id,
                name=roadmap.name,
                description=roadmap.description,
                role_name=_role_name(roadmap),
                total_steps=roadmap.total_steps,
                estimated_duration=roadmap.total_duration,
                difficulty_level=_hardest_difficulty(roadmap),
                is_recommended=roadmap.target_role_id == recommended_role_id,
                is_started=progress is not None,
                progress_percent=progress.progress_percent if progress else 0.0,
            )
        )
    return items, total


async def get_roadmap_progress(
    db: AsyncSession, student_profile_id: int, roadmap_id: int
) -> RoadmapProgressResponse:
    """Every step of a roadmap as the student sees it.

    An active roadmap the student has not started yet is returned as a
    preview: first step ``unlocked``, the rest ``locked``, and no aggregate id.
    """
    roadmap = await db.get(Roadmap, roadmap_id)
    if not roadmap:
        raise NotFoundError("Roadmap not found")

    progress = await progression_service.get_progress(db, roadmap_id, student_profile_id)
    if progress is None:
        if roadmap.status != RoadmapStatus.ACTIVE:
            raise NotFoundError("Roadmap not found")
        steps = [
            _student_step(step, StepStatus.UNLOCKED if index == 0 else StepStatus.LOCKED)
            for index, step in enumerate(roadmap.steps)
        ]
        return RoadmapProgressResponse(
            id=None,
            roadmap_id=roadmap.id,
            roadmap_name=roadmap.name,
            roadmap_description=roadmap.description,
            role_name=_role_name(roadmap),
            total_steps=roadmap.total_steps,
            completed_steps=0,
            progress_percent=0.0,
            is_finished=False,
            started_at=None,
            last_activity_at=None,
            completed_at=None,
            steps=steps,
        )

    rows = _rows_by_step(progress)
    return RoadmapProgressResponse(
        id=progress.id,
        roadmap_id=roadmap.id,
        roadmap_name=roadmap.name,
        roadmap_description=roadmap.description,
        role_name=_role_name(roadmap),
        total_steps=progress.total_steps,
        completed_steps=progress.completed_steps,
        progress_percent=progress.progress_percent,
        is_finished=progress.is_finished,
        started_at=progress.started_at,
        last_activity_at=progress.last_activity_at,
        completed_at=progress.completed_at,
        steps=[_student_step(step, _status_of(rows, step), rows.get(step.id)) for step in roadmap.steps],
    )


async def get_step_progress(
    db: AsyncSession, student_profile_id: int, step_id: int
) -> StepDetailResponse:
    """One step with its neighbours, for the step detail page."""
    step = await db.get(RoadmapStep, step_id)
    if not step:
        raise NotFoundError("Step not found")

    roadmap = await db.get(Roadmap, step.roadmap_id)
    if roadmap is None:
        raise NotFoundError("Roadmap not found")

    progress = await progression_service.get_progress(db, roadmap.id, student_profile_id)
    if not progress:
        raise NotFoundError("Roadmap not started")

    rows = _rows_by_step(progress)
    previous = roadmap.step_before(step)
    following = roadmap.step_after(step)

    return StepDetailResponse(
        step=_student_step(step, _status_of(rows, step), rows.get(step.id)),
        roadmap_id=roadmap.id,
        roadmap_name=roadmap.name,
        total_steps=roadmap.total_steps,
        previous_step=_step_info(previous, _status_of(rows, previous)) if previous else None,
        next_step=_step_info(following, _status_of(rows, following)) if following else None,
        steps_left=sum(1 for s in roadmap.steps if _status_of(rows, s) != StepStatus.APPROVED),
    )


async def get_my_progress(db: AsyncSession, student_profile_id: int) -> MyProgressResponse:
    """Dashboard: active and completed roadmaps plus overall statistics."""
    result = await db.execute(
        select(StudentRoadmapProgress)
        .where(StudentRoadmapProgress.student_profile_id == student_profile_id)
        .order_by(StudentRoadmapProgress.last_activity_at.desc(), StudentRoadmapProgress.id.desc())
    )
    aggregates = list(result.scalars().all())

    active: list[ActiveRoadmapSummary] = []
    completed: list[CompletedRoadmapSummary] = []
    hours_spent = 0

    for progress in aggregates:
        roadmap = await db.get(Roadmap, progress.roadmap_id)
        if roadmap is None:
            raise NotFoundError("Roadmap not found")
        rows = _rows_by_step(progress)
        hours_spent += sum(
            step.estimated_duration
            for step in roadmap.steps
            if _status_of(rows, step) == StepStatus.APPROVED
        )

        if progress.completed_at is not None:
            scores = [row.validation_score for row in rows.values() if row.validation_score is not None]
            completed.append(
                CompletedRoadmapSummary(
                    id=progress.id,
                    roadmap_id=roadmap.id,
                    roadmap_name=roadmap.name,
                    role_name=_role_name(roadmap),
                    total_steps=progress.total_steps,
                    completed_at=progress.completed_at,
                    total_duration=roadmap.total_duration,
                    average_score=round(sum(scores) / len(scores), 2) if scores else None,
                )
            )
            continue

        current = next(
            (step for step in roadmap.steps if _status_of(rows, step) != StepStatus.APPROVED),
            None,
        )
        active.append(
            ActiveRoadmapSummary(
                id=progress.id,
                roadmap_id=roadmap.id,
                roadmap_name=roadmap.name,
                role_name=_role_name(roadmap),
                total_steps=progress.total_steps,
                completed_steps=progress.completed_steps,
                progress_percent=progress.progress_percent,
                current_step=_step_info(current, _status_of(rows, current)) if current else None,
                started_at=progress.started_at,
                last_activity_at=progress.last_activity_at,
            )
        )

    rates = [p.progress_percent for p in aggregates]
    return MyProgressResponse(
        active_roadmaps=active,
        completed_roadmaps=completed,
        overall_stats=StudentStatistics(
            total_roadmaps_started=len(aggregates),
            total_roadmaps_completed=len(completed),
            total_steps_completed=sum(p.completed_steps for p in aggregates),
            total_hours_spent=hours_spent,
            average_completion_rate=round(sum(rates) / len(rates), 2) if rates else 0.0,
        ),
    )
