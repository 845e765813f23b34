"""Roadmap catalog service: admin CRUD over roadmaps and their ordered steps."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.auth import Caller
from skillpath.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from skillpath.core.logging import get_logger
from skillpath.models.enums import RoadmapStatus, StepStatus
from skillpath.models.profile import StudentProfile, TargetRole, TeacherProfile
from skillpath.models.progress import StudentRoadmapProgress, StudentStepProgress
from skillpath.models.roadmap import Roadmap, RoadmapReviewer, RoadmapStep
from skillpath.schemas.common import PageParams
from skillpath.schemas.roadmap import (
    CompletionStatistics,
    ProgressSummary,
    ResourceLink,
    RoadmapCreate,
    RoadmapStatistics,
    RoadmapUpdate,
    RoleStatistics,
    StepCreate,
    StepProgressDetail,
    StepUpdate,
    StudentInfo,
    StudentProgressDetail,
    ValidatorInfo,
)
from skillpath.services import profile_service, progression_service

logger = get_logger(__name__)


# ============================================================================
# Roadmaps
# ============================================================================


async def create_roadmap(db: AsyncSession, caller: Caller, data: RoadmapCreate) -> Roadmap:
    """Create a roadmap in ``draft``; steps are added separately."""
    role = await profile_service.get_target_role(db, data.target_role_id)
    if not role:
        raise NotFoundError("Target role not found")

    roadmap = Roadmap(
        target_role=role,
        name=data.name,
        description=data.description,
        visibility=data.visibility,
        status=RoadmapStatus.DRAFT,
        created_by=caller.user_id,
        generation_metadata=data.generation_metadata,
        steps=[],
    )
    db.add(roadmap)
    await db.flush()

    logger.info("Roadmap created", roadmap_id=roadmap.id, name=roadmap.name, created_by=caller.user_id)
    return roadmap


async def list_roadmaps(
    db: AsyncSession,
    params: PageParams,
    search: str | None = None,
    target_role_id: int | None = None,
    status: RoadmapStatus | None = None,
) -> tuple[list[Roadmap], int]:
    """List roadmaps newest first.

    Returns:
        (page of roadmaps, total matching count)
    """
    query = select(Roadmap)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Roadmap.name.ilike(pattern), Roadmap.description.ilike(pattern)))
    if target_role_id is not None:
        query = query.where(Roadmap.target_role_id == target_role_id)
    if status is not None:
        query = query.where(Roadmap.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

    result = await db.execute(
        query.order_by(Roadmap.created_at.desc(), Roadmap.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(result.scalars().all()), total


async def get_roadmap(db: AsyncSession, roadmap_id: int) -> Roadmap:
    """Get a roadmap with its ordered steps.

    Raises:
        NotFoundError: if the roadmap does not exist
    """
    roadmap = await db.get(Roadmap, roadmap_id)
    if not roadmap:
        raise NotFoundError("Roadmap not found")
    return roadmap


async def update_roadmap(db: AsyncSession, roadmap_id: int, data: RoadmapUpdate) -> Roadmap:
    roadmap = await get_roadmap(db, roadmap_id)

    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        if value is None and key != "description":
            continue
        setattr(roadmap, key, value)

    await db.flush()
    logger.info("Roadmap updated", roadmap_id=roadmap.id, fields=sorted(update_data))
    return roadmap


async def delete_roadmap(db: AsyncSession, roadmap_id: int) -> None:
    """Delete a roadmap with its steps and reviewer assignments.

    Raises:
        ConflictError: while any student has progress on the roadmap
    """
    roadmap = await get_roadmap(db, roadmap_id)

    enrolled = (
        await db.execute(
            select(func.count())
            .select_from(StudentRoadmapProgress)
            .where(StudentRoadmapProgress.roadmap_id == roadmap.id)
        )
    ).scalar_one()
    if enrolled:
        raise ConflictError("Roadmap has student progress and cannot be deleted; archive it instead")

    await db.delete(roadmap)
    await db.flush()
    logger.info("Roadmap deleted", roadmap_id=roadmap_id)


# ============================================================================
# Steps
# ============================================================================


def _dump_links(links: list[ResourceLink] | None) -> list[dict] | None:
    if links is None:
        return None
    return [link.model_dump(mode="json") for link in links]


def _apply_order(roadmap: Roadmap, ordered: list[RoadmapStep]) -> None:
    """Rearrange ``roadmap.steps`` in place and renumber them 1..n."""
    position = {id(step): index for index, step in enumerate(ordered)}
    roadmap.steps.sort(key=lambda step: position[id(step)])
    roadmap.steps.reorder()


async def get_step(db: AsyncSession, step_id: int) -> RoadmapStep:
    step = await db.get(RoadmapStep, step_id)
    if not step:
        raise NotFoundError("Step not found")
    return step


async def create_step(db: AsyncSession, roadmap_id: int, data: StepCreate) -> RoadmapStep:
    """Append a step, or insert it at ``data.step_order`` shifting later steps down."""
    roadmap = await get_roadmap(db, roadmap_id)

    position = data.step_order
    if position is not None and position > len(roadmap.steps) + 1:
        raise InvalidRequestError(f"Step order must be between 1 and {len(roadmap.steps) + 1}")

    step = RoadmapStep(
        title=data.title,
        description=data.description,
        learning_objectives=data.learning_objectives,
        submission_guidelines=data.submission_guidelines,
        resource_links=_dump_links(data.resource_links),
        estimated_duration=data.estimated_duration,
        difficulty_level=data.difficulty_level,
    )
    if position is None:
        roadmap.steps.append(step)
    else:
        roadmap.steps.insert(position - 1, step)

    await progression_service.resync_roadmap_progress(db, roadmap)
    await db.flush()

    logger.info(
        "Step created",
        roadmap_id=roadmap.id,
        step_id=step.id,
        step_order=step.step_order,
        total_steps=len(roadmap.steps),
    )
    return step


async def update_step(db: AsyncSession, step_id: int, data: StepUpdate) -> RoadmapStep:
    """Update step fields; a new ``step_order`` moves the step within its roadmap."""
    step = await get_step(db, step_id)
    roadmap = await get_roadmap(db, step.roadmap_id)

    update_data = data.model_dump(exclude_unset=True)
    new_order = update_data.pop("step_order", None)
    if "resource_links" in update_data:
        update_data["resource_links"] = _dump_links(data.resource_links)

    for key, value in update_data.items():
        if value is None and key != "resource_links":
            continue
        setattr(step, key, value)

    moved = new_order is not None and new_order != step.step_order
    if moved:
        if new_order > len(roadmap.steps):
            raise InvalidRequestError(f"Step order must be between 1 and {len(roadmap.steps)}")
        ordered = [s for s in roadmap.steps if s is not step]
        ordered.insert(new_order - 1, step)
        _apply_order(roadmap, ordered)
        await progression_service.resync_roadmap_progress(db, roadmap)

    await db.flush()
    logger.info("Step updated", step_id=step.id, roadmap_id=roadmap.id, moved=moved)
    return step


async def delete_step(db: AsyncSession, step_id: int) -> None:
    """Remove a step, renumber the rest and drop the students' rows for it."""
    step = await get_step(db, step_id)
    roadmap = await get_roadmap(db, step.roadmap_id)

    result = await db.execute(
        select(StudentStepProgress).where(StudentStepProgress.roadmap_step_id == step.id)
    )
    for row in result.scalars().all():
        await db.delete(row)

    roadmap.steps.remove(step)
    await progression_service.resync_roadmap_progress(db, roadmap)
    await db.flush()

    logger.info("Step deleted", step_id=step_id, roadmap_id=roadmap.id, total_steps=len(roadmap.steps))


async def reorder_steps(db: AsyncSession, roadmap_id: int, step_ids: list[int]) -> Roadmap:
    """Apply a new step order given as the full list of the roadmap's step ids.

    Raises:
        InvalidRequestError: unless ``step_ids`` is a permutation of the roadmap's steps
    """
    roadmap = await get_roadmap(db, roadmap_id)

    steps_by_id = {step.id: step for step in roadmap.steps}
    if len(step_ids) != len(steps_by_id) or set(step_ids) != set(steps_by_id):
        raise InvalidRequestError("step_ids must list every step of the roadmap exactly once")

    _apply_order(roadmap, [steps_by_id[step_id] for step_id in step_ids])
    await progression_service.resync_roadmap_progress(db, roadmap)
    await db.flush()

    logger.info("Steps reordered", roadmap_id=roadmap.id, step_ids=step_ids)
    return roadmap


# ============================================================================
# Reviewers
# ============================================================================


async def get_reviewer_ids(db: AsyncSession, roadmap_id: int) -> list[int]:
    result = await db.execute(
        select(RoadmapReviewer.teacher_profile_id)
        .where(RoadmapReviewer.roadmap_id == roadmap_id)
        .order_by(RoadmapReviewer.teacher_profile_id)
    )
    return list(result.scalars().all())


async def assign_reviewer(db: AsyncSession, roadmap_id: int, teacher_profile_id: int) -> RoadmapReviewer:
    await get_roadmap(db, roadmap_id)
    if not await db.get(TeacherProfile, teacher_profile_id):
        raise NotFoundError("Teacher not found")
    if await db.get(RoadmapReviewer, (roadmap_id, teacher_profile_id)):
        raise ConflictError("Teacher is already a reviewer of this roadmap")

    reviewer = RoadmapReviewer(roadmap_id=roadmap_id, teacher_profile_id=teacher_profile_id)
    db.add(reviewer)
    await db.flush()

    logger.info("Reviewer assigned", roadmap_id=roadmap_id, teacher_profile_id=teacher_profile_id)
    return reviewer


async def unassign_reviewer(db: AsyncSession, roadmap_id: int, teacher_profile_id: int) -> None:
    reviewer = await db.get(RoadmapReviewer, (roadmap_id, teacher_profile_id))
    if not reviewer:
        raise NotFoundError("Reviewer assignment not found")

    await db.delete(reviewer)
    await db.flush()
    logger.info("Reviewer unassigned", roadmap_id=roadmap_id, teacher_profile_id=teacher_profile_id)


# ============================================================================
# Progress monitoring
# ============================================================================


def student_info(profile: StudentProfile) -> StudentInfo:
    return StudentInfo(
        id=profile.id,
        name=profile.fullname,
        email=profile.user.email,
        nis=profile.nis,
        student_class=profile.student_class,
    )


def _summary(progress: StudentRoadmapProgress, profile: StudentProfile) -> ProgressSummary:
    return ProgressSummary(
        progress_id=progress.id,
        student=student_info(profile),
        total_steps=progress.total_steps,
        completed_steps=progress.completed_steps,
        progress_percent=progress.progress_percent,
        started_at=progress.started_at,
        last_activity_at=progress.last_activity_at,
        completed_at=progress.completed_at,
    )


async def list_student_progress(
    db: AsyncSession, roadmap_id: int, params: PageParams
) -> tuple[list[ProgressSummary], int]:
    """Progress of every student on a roadmap, most recently active first."""
    await get_roadmap(db, roadmap_id)

    query = (
        select(StudentRoadmapProgress, StudentProfile)
        .join(StudentProfile, StudentProfile.id == StudentRoadmapProgress.student_profile_id)
        .where(StudentRoadmapProgress.roadmap_id == roadmap_id)
    )
    total = (
        await db.execute(
            select(func.count())
            .select_from(StudentRoadmapProgress)
            .where(StudentRoadmapProgress.roadmap_id == roadmap_id)
        )
    ).scalar_one()

    result = await db.execute(
        query.order_by(
            StudentRoadmapProgress.last_activity_at.desc(),
            StudentRoadmapProgress.id.desc(),
        )
        .offset(params.offset)
        .limit(params.limit)
    )
    return [_summary(progress, profile) for progress, profile in result.all()], total


async def get_student_progress_detail(
    db: AsyncSession, roadmap_id: int, student_profile_id: int
) -> StudentProgressDetail:
    """One student's aggregate plus every step with its review trail."""
    await get_roadmap(db, roadmap_id)

    progress = await progression_service.get_progress(db, roadmap_id, student_profile_id)
    if not progress:
        raise NotFoundError("Student has not started this roadmap")

    profile = await db.get(StudentProfile, student_profile_id)
    if profile is None:
        raise NotFoundError("Student not found")
    teachers = await profile_service.get_teacher_profiles(
        db, (row.validated_by_teacher_id for row in progress.step_progress if row.validated_by_teacher_id)
    )

    steps = []
    for row in sorted(progress.step_progress, key=lambda r: r.step.step_order):
        teacher = teachers.get(row.validated_by_teacher_id) if row.validated_by_teacher_id else None
        steps.append(
            StepProgressDetail(
                step_id=row.roadmap_step_id,
                step_order=row.step.step_order,
                title=row.step.title,
                status=row.status.value,
                evidence_link=row.evidence_link,
                evidence_type=row.evidence_type.value if row.evidence_type else None,
                submission_notes=row.submission_notes,
                validated_by=(
                    ValidatorInfo(
                        teacher_profile_id=teacher.id,
                        name=teacher.fullname,
                        email=teacher.user.email,
                    )
                    if teacher
                    else None
                ),
                validation_notes=row.validation_notes,
                validation_score=row.validation_score,
                started_at=row.started_at,
                submitted_at=row.submitted_at,
                reviewed_at=row.reviewed_at,
                completed_at=row.completed_at,
            )
        )

    return StudentProgressDetail(overall=_summary(progress, profile), steps=steps)


async def get_statistics(db: AsyncSession) -> RoadmapStatistics:
    """Platform-wide catalog and completion figures for the admin dashboard."""
    status_counts = dict(
        (await db.execute(select(Roadmap.status, func.count()).group_by(Roadmap.status))).all()
    )

    async def count(query) -> int:
        return (await db.execute(query)).scalar_one()

    total_steps = await count(select(func.count()).select_from(RoadmapStep))
    students_enrolled = await count(
        select(func.count(func.distinct(StudentRoadmapProgress.student_profile_id)))
    )
    pending_submissions = await count(
        select(func.count())
        .select_from(StudentStepProgress)
        .where(StudentStepProgress.status == StepStatus.SUBMITTED)
    )
    average_completion = (
        await db.execute(select(func.avg(StudentRoadmapProgress.progress_percent)))
    ).scalar_one()
    students_completed = await count(
        select(func.count(func.distinct(StudentRoadmapProgress.student_profile_id))).where(
            StudentRoadmapProgress.completed_at.is_not(None)
        )
    )
    students_in_progress = await count(
        select(func.count(func.distinct(StudentRoadmapProgress.student_profile_id))).where(
            StudentRoadmapProgress.completed_at.is_(None)
        )
    )
    total_students = await count(select(func.count()).select_from(StudentProfile))

    role_rows = await db.execute(
        select(
            TargetRole.id,
            TargetRole.name,
            func.count(func.distinct(Roadmap.id)),
            func.count(func.distinct(StudentRoadmapProgress.student_profile_id)),
        )
        .join(Roadmap, Roadmap.target_role_id == TargetRole.id)
        .outerjoin(StudentRoadmapProgress, StudentRoadmapProgress.roadmap_id == Roadmap.id)
        .group_by(TargetRole.id, TargetRole.name)
        .order_by(TargetRole.name)
    )

    return RoadmapStatistics(
        total_roadmaps=sum(status_counts.values()),
        active_roadmaps=status_counts.get(RoadmapStatus.ACTIVE, 0),
        draft_roadmaps=status_counts.get(RoadmapStatus.DRAFT, 0),
        archived_roadmaps=status_counts.get(RoadmapStatus.ARCHIVED, 0),
        total_steps=total_steps,
        students_enrolled=students_enrolled,
        pending_submissions=pending_submissions,
        completion_stats=CompletionStatistics(
            average_completion=round(average_completion or 0.0, 2),
            students_completed=students_completed,
            students_in_progress=students_in_progress,
            students_not_started=max(total_students - students_enrolled, 0),
        ),
        roadmaps_by_role=[
            RoleStatistics(role_id=role_id, role_name=name, roadmap_count=roadmaps, student_count=students)
            for role_id, name, roadmaps, students in role_rows.all()
        ],
    )
