"""Progression engine: roadmap start, step transitions and the approval cascade.

Step state machine::

    locked -> unlocked -> in_progress -> submitted -> approved
                                            |   ^
                                            v   |
                                          rejected

A rejected step goes straight back to ``submitted`` when the student
resubmits; ``start_step`` is only valid from ``unlocked``.

Every transition on a step row is a conditional UPDATE guarded by the
expected current status. When two requests race, the loser matches zero rows
and gets a ConflictError instead of applying the transition (and its cascade)
twice. None of these functions commit; the request-scoped session commits or
rolls back the whole unit of work.
"""

from datetime import datetime
from urllib.parse import urlparse

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PreconditionFailedError,
)
from skillpath.core.logging import get_logger
from skillpath.models.enums import EvidenceType, RoadmapStatus, StepStatus
from skillpath.models.progress import StudentRoadmapProgress, StudentStepProgress
from skillpath.models.roadmap import Roadmap, RoadmapStep

logger = get_logger(__name__)

MAX_NOTES_LENGTH = 1000


# ============================================================================
# Lookups
# ============================================================================


async def get_progress(
    db: AsyncSession,
    roadmap_id: int,
    student_profile_id: int,
) -> StudentRoadmapProgress | None:
    """Get a student's aggregate for one roadmap, if they started it."""
    result = await db.execute(
        select(StudentRoadmapProgress).where(
            StudentRoadmapProgress.roadmap_id == roadmap_id,
            StudentRoadmapProgress.student_profile_id == student_profile_id,
        )
    )
    return result.scalar_one_or_none()


def find_step_row(
    progress: StudentRoadmapProgress, step_id: int
) -> StudentStepProgress | None:
    return next((sp for sp in progress.step_progress if sp.roadmap_step_id == step_id), None)


async def _locate_step(
    db: AsyncSession,
    student_profile_id: int,
    step_id: int,
) -> tuple[Roadmap, StudentRoadmapProgress, StudentStepProgress]:
    step = await db.get(RoadmapStep, step_id)
    if not step:
        raise NotFoundError("Step not found")

    progress = await get_progress(db, step.roadmap_id, student_profile_id)
    if not progress:
        raise NotFoundError("Roadmap not started")

    row = find_step_row(progress, step.id)
    if not row:
        raise NotFoundError("Step progress not found")

    roadmap = await db.get(Roadmap, step.roadmap_id)
    if roadmap is None:
        raise NotFoundError("Roadmap not found")
    return roadmap, progress, row


async def _lock_progress(db: AsyncSession, progress_id: int) -> StudentRoadmapProgress:
    """Load the aggregate row with a row lock; it serializes one student's roadmap."""
    result = await db.execute(
        select(StudentRoadmapProgress)
        .where(StudentRoadmapProgress.id == progress_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _count_approved(db: AsyncSession, progress_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(StudentStepProgress)
        .where(
            StudentStepProgress.student_roadmap_progress_id == progress_id,
            StudentStepProgress.status == StepStatus.APPROVED,
        )
    )
    return result.scalar_one()


def _apply_counts(
    progress: StudentRoadmapProgress,
    completed: int,
    now: datetime,
    touch_activity: bool = True,
) -> None:
    """Recompute the derived aggregate fields from the approved-step count."""
    total = progress.total_steps
    progress.completed_steps = completed
    progress.progress_percent = (completed / total) * 100 if total > 0 else 0.0
    if touch_activity:
        progress.last_activity_at = now

    if total > 0 and completed == total:
        if progress.completed_at is None:
            progress.completed_at = now
    else:
        progress.completed_at = None


def _unlock_frontier(
    roadmap: Roadmap, progress: StudentRoadmapProgress
) -> StudentStepProgress | None:
    """Unlock the first non-approved step if it is still locked.

    Catalog edits can leave approved steps after the one just approved;
    the walk skips them.
    """
    for step in roadmap.steps:
        row = find_step_row(progress, step.id)
        if row is None or row.status == StepStatus.APPROVED:
            continue
        if row.status == StepStatus.LOCKED:
            row.status = StepStatus.UNLOCKED
            return row
        return None
    return None


async def _transition(
    db: AsyncSession,
    row: StudentStepProgress,
    allowed_from: tuple[StepStatus, ...],
    **values: object,
) -> bool:
    """Conditionally move ``row`` out of one of ``allowed_from``.

    Returns False when another request changed the row first.
    """
    result = await db.execute(
        update(StudentStepProgress)
        .where(
            StudentStepProgress.id == row.id,
            StudentStepProgress.status.in_(allowed_from),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(row)
    return result.rowcount == 1


# ============================================================================
# Student transitions
# ============================================================================


async def start_roadmap(
    db: AsyncSession,
    student_profile_id: int,
    roadmap_id: int,
) -> StudentRoadmapProgress:
    """Create the aggregate and one step row per step, all or nothing.

    The first step starts ``unlocked``; every other step ``locked``.

    Raises:
        NotFoundError: roadmap missing or not active
        PreconditionFailedError: roadmap has no steps
        ConflictError: the student already started this roadmap
    """
    roadmap = await db.get(Roadmap, roadmap_id)
    if not roadmap or roadmap.status != RoadmapStatus.ACTIVE:
        raise NotFoundError("Roadmap not found")
    if not roadmap.steps:
        raise PreconditionFailedError("Roadmap has no steps yet")

    if await get_progress(db, roadmap_id, student_profile_id):
        raise ConflictError("Roadmap already started")

    now = datetime.utcnow()
    try:
        async with db.begin_nested():
            progress = StudentRoadmapProgress(
                roadmap_id=roadmap.id,
                student_profile_id=student_profile_id,
                total_steps=len(roadmap.steps),
                completed_steps=0,
                progress_percent=0.0,
                started_at=now,
                last_activity_at=now,
            )
            progress.step_progress = [
                StudentStepProgress(
                    step=step,
                    status=StepStatus.UNLOCKED if index == 0 else StepStatus.LOCKED,
                )
                for index, step in enumerate(roadmap.steps)
            ]
            db.add(progress)
            await db.flush()
    except IntegrityError as e:
        # A concurrent start won the unique (roadmap, student) constraint
        raise ConflictError("Roadmap already started") from e

    logger.info(
        "Roadmap started",
        roadmap_id=roadmap.id,
        student_profile_id=student_profile_id,
        progress_id=progress.id,
        total_steps=progress.total_steps,
    )
    return progress


async def start_step(
    db: AsyncSession,
    student_profile_id: int,
    step_id: int,
) -> StudentStepProgress:
    """Move an unlocked step to ``in_progress``.

    The previous step's approval is re-checked here even though the unlock
    cascade already implies it.
    """
    roadmap, progress, row = await _locate_step(db, student_profile_id, step_id)

    previous = roadmap.step_before(row.step)
    if previous is not None:
        previous_row = find_step_row(progress, previous.id)
        if previous_row is None or previous_row.status != StepStatus.APPROVED:
            raise PreconditionFailedError("Previous step must be approved by a teacher first")

    if row.status in (StepStatus.IN_PROGRESS, StepStatus.SUBMITTED):
        raise ConflictError("Step already started")
    if row.status == StepStatus.APPROVED:
        raise ConflictError("Step already approved")
    if row.status == StepStatus.REJECTED:
        raise PreconditionFailedError("Rejected steps are resubmitted directly")
    if row.status != StepStatus.UNLOCKED:
        raise PreconditionFailedError("Step is locked")

    now = datetime.utcnow()
    if not await _transition(
        db,
        row,
        (StepStatus.UNLOCKED,),
        status=StepStatus.IN_PROGRESS,
        started_at=now,
    ):
        raise ConflictError("Step was modified by another request")

    progress.last_activity_at = now
    await db.flush()

    logger.info("Step started", step_progress_id=row.id, step_id=step_id)
    return row


def validate_evidence_link(evidence_link: str) -> str:
    """Require an absolute http(s) URL."""
    link = (evidence_link or "").strip()
    parsed = urlparse(link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequestError("Evidence link must be a valid http(s) URL")
    return link


def _validate_notes(notes: str | None, field: str) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise InvalidRequestError(f"{field} must be at most {MAX_NOTES_LENGTH} characters")


async def submit_evidence(
    db: AsyncSession,
    student_profile_id: int,
    step_id: int,
    evidence_link: str,
    evidence_type: str = EvidenceType.URL.value,
    submission_notes: str | None = None,
) -> StudentStepProgress:
    """Submit evidence for a step that is in progress or was rejected."""
    link = validate_evidence_link(evidence_link)
    try:
        kind = EvidenceType(evidence_type)
    except ValueError as e:
        raise InvalidRequestError("Only URL evidence is supported") from e
    _validate_notes(submission_notes, "Submission notes")

    _, progress, row = await _locate_step(db, student_profile_id, step_id)

    if row.status == StepStatus.SUBMITTED:
        raise ConflictError("Evidence already submitted and waiting for review")
    if row.status == StepStatus.APPROVED:
        raise ConflictError("Step already approved")
    if row.status not in (StepStatus.IN_PROGRESS, StepStatus.REJECTED):
        raise PreconditionFailedError("Step must be started before submitting evidence")

    now = datetime.utcnow()
    if not await _transition(
        db,
        row,
        (StepStatus.IN_PROGRESS, StepStatus.REJECTED),
        status=StepStatus.SUBMITTED,
        evidence_link=link,
        evidence_type=kind,
        submission_notes=submission_notes,
        submitted_at=now,
        # A resubmission starts a fresh review
        validated_by_teacher_id=None,
        validation_score=None,
        validation_notes=None,
        reviewed_at=None,
    ):
        raise ConflictError("Step was modified by another request")

    progress.last_activity_at = now
    await db.flush()

    logger.info("Evidence submitted", step_progress_id=row.id, step_id=step_id)
    return row


# ============================================================================
# Teacher transitions
# ============================================================================


def _already_reviewed(row: StudentStepProgress) -> Exception:
    if row.status in (StepStatus.APPROVED, StepStatus.REJECTED):
        return ConflictError("Submission already reviewed")
    return PreconditionFailedError("Step has no pending submission")


async def approve_step(
    db: AsyncSession,
    teacher_profile_id: int,
    step_progress_id: int,
    validation_score: int | None = None,
    validation_notes: str | None = None,
) -> tuple[StudentStepProgress, StudentRoadmapProgress]:
    """Approve a submission and run the cascade.

    In one unit of work: mark the step approved, recompute the aggregate
    (setting ``completed_at`` once every step is approved) and unlock the
    first step that is not approved yet, if it is still locked.
    """
    if validation_score is not None and not 0 <= validation_score <= 100:
        raise InvalidRequestError("Validation score must be between 0 and 100")
    _validate_notes(validation_notes, "Validation notes")

    row = await db.get(StudentStepProgress, step_progress_id)
    if not row:
        raise NotFoundError("Submission not found")

    now = datetime.utcnow()
    if not await _transition(
        db,
        row,
        (StepStatus.SUBMITTED,),
        status=StepStatus.APPROVED,
        validated_by_teacher_id=teacher_profile_id,
        validation_score=validation_score,
        validation_notes=validation_notes,
        reviewed_at=now,
        completed_at=now,
    ):
        raise _already_reviewed(row)

    progress = await _lock_progress(db, row.student_roadmap_progress_id)
    _apply_counts(progress, await _count_approved(db, progress.id), now)

    roadmap = await db.get(Roadmap, progress.roadmap_id)
    if roadmap is None:
        raise NotFoundError("Roadmap not found")
    unlocked = _unlock_frontier(roadmap, progress)

    await db.flush()

    logger.info(
        "Step approved",
        step_progress_id=row.id,
        teacher_profile_id=teacher_profile_id,
        completed_steps=progress.completed_steps,
        total_steps=progress.total_steps,
        unlocked_step_id=unlocked.roadmap_step_id if unlocked else None,
        roadmap_completed=progress.is_finished,
    )
    return row, progress


async def reject_step(
    db: AsyncSession,
    teacher_profile_id: int,
    step_progress_id: int,
    validation_notes: str | None = None,
) -> StudentStepProgress:
    """Reject a submission. No cascade: the student has to resubmit."""
    _validate_notes(validation_notes, "Validation notes")

    row = await db.get(StudentStepProgress, step_progress_id)
    if not row:
        raise NotFoundError("Submission not found")

    now = datetime.utcnow()
    if not await _transition(
        db,
        row,
        (StepStatus.SUBMITTED,),
        status=StepStatus.REJECTED,
        validated_by_teacher_id=teacher_profile_id,
        validation_score=None,
        validation_notes=validation_notes,
        reviewed_at=now,
    ):
        raise _already_reviewed(row)

    progress = await db.get(StudentRoadmapProgress, row.student_roadmap_progress_id)
    if progress is not None:
        progress.last_activity_at = now
        await db.flush()

    logger.info(
        "Step rejected",
        step_progress_id=row.id,
        teacher_profile_id=teacher_profile_id,
    )
    return row


# ============================================================================
# Catalog synchronization
# ============================================================================


async def resync_roadmap_progress(db: AsyncSession, roadmap: Roadmap) -> int:
    """Bring every aggregate of ``roadmap`` in line with its current steps.

    Called after steps are added, removed or reordered. For each aggregate:
    rows for removed steps are dropped, new steps get ``locked`` rows,
    ``total_steps`` and the derived counts are recomputed, and the unlock
    frontier is re-established: the first non-approved step is unlocked and
    any later step that was merely unlocked is locked again. Steps a student
    is actively working on are never touched.

    Returns:
        Number of aggregates updated
    """
    # Catalog edits must reach the DB before the aggregates are reloaded
    await db.flush()

    result = await db.execute(
        select(StudentRoadmapProgress)
        .where(StudentRoadmapProgress.roadmap_id == roadmap.id)
        .execution_options(populate_existing=True)
    )
    aggregates = list(result.scalars().all())
    if not aggregates:
        return 0

    now = datetime.utcnow()
    step_ids = {step.id for step in roadmap.steps}

    for progress in aggregates:
        for row in list(progress.step_progress):
            if row.roadmap_step_id not in step_ids:
                progress.step_progress.remove(row)

        rows = {row.roadmap_step_id: row for row in progress.step_progress}
        for step in roadmap.steps:
            if step.id not in rows:
                row = StudentStepProgress(step=step, status=StepStatus.LOCKED)
                progress.step_progress.append(row)
                rows[step.id] = row

        frontier_reached = False
        for step in roadmap.steps:
            row = rows[step.id]
            if not frontier_reached:
                if row.status == StepStatus.APPROVED:
                    continue
                frontier_reached = True
                if row.status == StepStatus.LOCKED:
                    row.status = StepStatus.UNLOCKED
            elif row.status == StepStatus.UNLOCKED:
                row.status = StepStatus.LOCKED

        progress.total_steps = len(roadmap.steps)
        completed = sum(1 for row in rows.values() if row.status == StepStatus.APPROVED)
        _apply_counts(progress, completed, now, touch_activity=False)

    await db.flush()

    logger.info(
        "Roadmap progress resynchronized",
        roadmap_id=roadmap.id,
        aggregates=len(aggregates),
        total_steps=len(roadmap.steps),
    )
    return len(aggregates)
