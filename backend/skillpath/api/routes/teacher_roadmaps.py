"""Teacher roadmap API routes: the review queue."""

from typing import Annotated

from fastapi import APIRouter, Query

from skillpath.api.deps import DBSession, Pagination
from skillpath.core.auth import TeacherCaller
from skillpath.core.logging import get_logger
from skillpath.schemas.common import Paginated
from skillpath.schemas.review import PendingSubmission, ReviewRequest, ReviewResponse
from skillpath.services import profile_service, review_service

logger = get_logger(__name__)
router = APIRouter(prefix="/teacher/roadmaps", tags=["teacher-roadmaps"])


@router.get("/submissions", response_model=Paginated[PendingSubmission])
async def list_pending_submissions(
    caller: TeacherCaller,
    db: DBSession,
    params: Pagination,
    search: Annotated[str | None, Query(max_length=100)] = None,
    mine_only: bool = True,
) -> dict:
    """Submissions waiting for review, oldest first.

    With ``mine_only`` (the default) only roadmaps this teacher may review are
    included.
    """
    teacher = await profile_service.get_teacher_profile(db, caller)
    submissions, total = await review_service.list_pending_submissions(
        db,
        params,
        teacher_profile_id=teacher.id if mine_only else None,
        search=search,
    )
    return Paginated[PendingSubmission].build(submissions, total, params).model_dump(mode="json")


@router.post("/submissions/{submission_id}/review", response_model=ReviewResponse)
async def review_submission(
    submission_id: int,
    data: ReviewRequest,
    caller: TeacherCaller,
    db: DBSession,
) -> dict:
    """Approve or reject a submission.

    Approving unlocks the student's next step and may complete the roadmap.
    """
    response = await review_service.review_submission(
        db,
        caller,
        submission_id,
        data.action,
        validation_score=data.validation_score,
        validation_notes=data.validation_notes,
    )
    logger.info(
        "Submission reviewed",
        submission_id=submission_id,
        action=data.action.value,
        user_id=caller.user_id,
    )
    return response.model_dump(mode="json")
