"""Teacher review workflow: the pending-submission queue and review decisions."""

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.auth import Caller
from skillpath.core.exceptions import ForbiddenError, NotFoundError
from skillpath.core.logging import get_logger
from skillpath.models.enums import ReviewAction, StepStatus
from skillpath.models.profile import StudentProfile, User
from skillpath.models.progress import StudentRoadmapProgress, StudentStepProgress
from skillpath.models.roadmap import Roadmap, RoadmapReviewer, RoadmapStep
from skillpath.schemas.common import PageParams
from skillpath.schemas.review import PendingSubmission, ReviewResponse
from skillpath.services import profile_service, progression_service, roadmap_service

logger = get_logger(__name__)


async def can_review(db: AsyncSession, teacher_profile_id: int, roadmap_id: int) -> bool:
    """A roadmap without assigned reviewers is open to every teacher."""
    reviewer_ids = await roadmap_service.get_reviewer_ids(db, roadmap_id)
    return not reviewer_ids or teacher_profile_id in reviewer_ids


def _pending_query(query, teacher_profile_id: int | None, search: str | None):
    query = (
        query.join(
            StudentRoadmapProgress,
            StudentRoadmapProgress.id == StudentStepProgress.student_roadmap_progress_id,
        )
        .join(Roadmap, Roadmap.id == StudentRoadmapProgress.roadmap_id)
        .join(RoadmapStep, RoadmapStep.id == StudentStepProgress.roadmap_step_id)
        .join(StudentProfile, StudentProfile.id == StudentRoadmapProgress.student_profile_id)
        .join(User, User.id == StudentProfile.user_id)
        .where(StudentStepProgress.status == StepStatus.SUBMITTED)
    )

    if teacher_profile_id is not None:
        query = query.where(
            or_(
                ~exists().where(RoadmapReviewer.roadmap_id == Roadmap.id),
                exists().where(
                    RoadmapReviewer.roadmap_id == Roadmap.id,
                    RoadmapReviewer.teacher_profile_id == teacher_profile_id,
                ),
            )
        )

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                StudentProfile.fullname.ilike(pattern),
                User.email.ilike(pattern),
                Roadmap.name.ilike(pattern),
                RoadmapStep.title.ilike(pattern),
            )
        )
    return query


async def list_pending_submissions(
    db: AsyncSession,
    params: PageParams,
    teacher_profile_id: int | None = None,
    search: str | None = None,
) -> tuple[list[PendingSubmission], int]:
    """Submissions waiting for review, oldest first.

    Args:
        db: Database session
        params: Page to return
        teacher_profile_id: Only submissions this teacher may review; None for all
        search: Matches student name or email, roadmap name or step title

    Returns:
        (page of submissions, total matching count)
    """
    count_query = _pending_query(
        select(func.count(StudentStepProgress.id)), teacher_profile_id, search
    )
    total = (await db.execute(count_query)).scalar_one()

    query = _pending_query(
        select(StudentStepProgress, Roadmap, RoadmapStep, StudentProfile),
        teacher_profile_id,
        search,
    )
    result = await db.execute(
        query.order_by(StudentStepProgress.submitted_at.asc(), StudentStepProgress.id.asc())
        .offset(params.offset)
        .limit(params.limit)
    )

    submissions = [
        PendingSubmission(
            id=row.id,
            student=roadmap_service.student_info(profile),
            roadmap_id=roadmap.id,
            roadmap_name=roadmap.name,
            step_id=step.id,
            step_order=step.step_order,
            step_title=step.title,
            learning_objectives=step.learning_objectives,
            submission_guidelines=step.submission_guidelines,
            evidence_link=row.evidence_link,
            evidence_type=row.evidence_type.value if row.evidence_type else None,
            submission_notes=row.submission_notes,
            submitted_at=row.submitted_at,
        )
        for row, roadmap, step, profile in result.all()
    ]
    return submissions, total


async def review_submission(
    db: AsyncSession,
    caller: Caller,
    submission_id: int,
    action: ReviewAction,
    validation_score: int | None = None,
    validation_notes: str | None = None,
) -> ReviewResponse:
    """Approve or reject a submission on behalf of the calling teacher.

    Raises:
        ForbiddenError: caller has no teacher profile or is not a reviewer of the roadmap
        NotFoundError: unknown submission
    """
    teacher = await profile_service.get_teacher_profile(db, caller)

    row = await db.get(StudentStepProgress, submission_id)
    if not row:
        raise NotFoundError("Submission not found")

    progress = await db.get(StudentRoadmapProgress, row.student_roadmap_progress_id)
    if progress is None:
        raise NotFoundError("Submission not found")
    if not await can_review(db, teacher.id, progress.roadmap_id):
        logger.warning(
            "Review refused: teacher is not assigned to roadmap",
            teacher_profile_id=teacher.id,
            roadmap_id=progress.roadmap_id,
        )
        raise ForbiddenError("You are not a reviewer of this roadmap")

    if action == ReviewAction.APPROVE:
        row, progress = await progression_service.approve_step(
            db,
            teacher.id,
            submission_id,
            validation_score=validation_score,
            validation_notes=validation_notes,
        )
        message = "Submission approved"
    else:
        row = await progression_service.reject_step(
            db,
            teacher.id,
            submission_id,
            validation_notes=validation_notes,
        )
        message = "Submission rejected"

    return ReviewResponse(
        message=message,
        submission_id=row.id,
        step_status=row.status,
        reviewed_at=row.reviewed_at,
        roadmap_completed=progress.is_finished,
    )
