"""Admin roadmap API routes: catalog management and progress monitoring."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from skillpath.api.deps import DBSession, Pagination
from skillpath.core.auth import AdminCaller
from skillpath.core.logging import get_logger
from skillpath.models.enums import RoadmapStatus
from skillpath.schemas.common import MessageResponse, Paginated
from skillpath.schemas.review import PendingSubmission
from skillpath.schemas.roadmap import (
    ProgressSummary,
    RoadmapCreate,
    RoadmapDetailResponse,
    RoadmapResponse,
    RoadmapStatistics,
    RoadmapUpdate,
    StepCreate,
    StepReorder,
    StepResponse,
    StepUpdate,
    StudentProgressDetail,
)
from skillpath.services import review_service, roadmap_service

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/roadmaps", tags=["admin-roadmaps"])


async def _detail(db, roadmap) -> dict:
    detail = RoadmapDetailResponse.model_validate(roadmap)
    detail.reviewer_ids = await roadmap_service.get_reviewer_ids(db, roadmap.id)
    return detail.model_dump(mode="json")


@router.post("", response_model=RoadmapResponse, status_code=status.HTTP_201_CREATED)
async def create_roadmap(data: RoadmapCreate, caller: AdminCaller, db: DBSession) -> dict:
    """Create a draft roadmap."""
    roadmap = await roadmap_service.create_roadmap(db, caller, data)
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.get("", response_model=Paginated[RoadmapResponse])
async def list_roadmaps(
    _: AdminCaller,
    db: DBSession,
    params: Pagination,
    search: Annotated[str | None, Query(max_length=100)] = None,
    target_role_id: int | None = None,
    roadmap_status: Annotated[RoadmapStatus | None, Query(alias="status")] = None,
) -> dict:
    roadmaps, total = await roadmap_service.list_roadmaps(
        db, params, search=search, target_role_id=target_role_id, status=roadmap_status
    )
    data = [RoadmapResponse.model_validate(r) for r in roadmaps]
    return Paginated[RoadmapResponse].build(data, total, params).model_dump(mode="json")


@router.get("/statistics", response_model=RoadmapStatistics)
async def get_statistics(_: AdminCaller, db: DBSession) -> dict:
    stats = await roadmap_service.get_statistics(db)
    return stats.model_dump(mode="json")


@router.get("/submissions", response_model=Paginated[PendingSubmission])
async def list_pending_submissions(
    _: AdminCaller,
    db: DBSession,
    params: Pagination,
    search: Annotated[str | None, Query(max_length=100)] = None,
    teacher_profile_id: int | None = None,
) -> dict:
    """Pending submissions across all roadmaps, optionally as one teacher would see them."""
    submissions, total = await review_service.list_pending_submissions(
        db, params, teacher_profile_id=teacher_profile_id, search=search
    )
    return Paginated[PendingSubmission].build(submissions, total, params).model_dump(mode="json")


@router.get("/{roadmap_id}", response_model=RoadmapDetailResponse)
async def get_roadmap(roadmap_id: int, _: AdminCaller, db: DBSession) -> dict:
    """Get a roadmap with its ordered steps and assigned reviewers."""
    roadmap = await roadmap_service.get_roadmap(db, roadmap_id)
    return await _detail(db, roadmap)


@router.patch("/{roadmap_id}", response_model=RoadmapResponse)
async def update_roadmap(roadmap_id: int, data: RoadmapUpdate, _: AdminCaller, db: DBSession) -> dict:
    roadmap = await roadmap_service.update_roadmap(db, roadmap_id, data)
    return RoadmapResponse.model_validate(roadmap).model_dump(mode="json")


@router.delete("/{roadmap_id}", response_model=MessageResponse)
async def delete_roadmap(roadmap_id: int, caller: AdminCaller, db: DBSession) -> dict:
    await roadmap_service.delete_roadmap(db, roadmap_id)
    logger.info("Roadmap deleted via API", roadmap_id=roadmap_id, user_id=caller.user_id)
    return {"message": "Roadmap deleted"}


@router.post(
    "/{roadmap_id}/steps",
    response_model=StepResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_step(roadmap_id: int, data: StepCreate, _: AdminCaller, db: DBSession) -> dict:
    """Add a step; students already on the roadmap get it as a locked step."""
    step = await roadmap_service.create_step(db, roadmap_id, data)
    return StepResponse.model_validate(step).model_dump(mode="json")


@router.put("/{roadmap_id}/steps/order", response_model=RoadmapDetailResponse)
async def reorder_steps(roadmap_id: int, data: StepReorder, _: AdminCaller, db: DBSession) -> dict:
    roadmap = await roadmap_service.reorder_steps(db, roadmap_id, data.step_ids)
    return await _detail(db, roadmap)


@router.patch("/steps/{step_id}", response_model=StepResponse)
async def update_step(step_id: int, data: StepUpdate, _: AdminCaller, db: DBSession) -> dict:
    step = await roadmap_service.update_step(db, step_id, data)
    return StepResponse.model_validate(step).model_dump(mode="json")


@router.delete("/steps/{step_id}", response_model=MessageResponse)
async def delete_step(step_id: int, caller: AdminCaller, db: DBSession) -> dict:
    await roadmap_service.delete_step(db, step_id)
    logger.info("Step deleted via API", step_id=step_id, user_id=caller.user_id)
    return {"message": "Step deleted"}


@router.get("/{roadmap_id}/progress", response_model=Paginated[ProgressSummary])
async def list_student_progress(
    roadmap_id: int,
    _: AdminCaller,
    db: DBSession,
    params: Pagination,
) -> dict:
    summaries, total = await roadmap_service.list_student_progress(db, roadmap_id, params)
    return Paginated[ProgressSummary].build(summaries, total, params).model_dump(mode="json")


@router.get("/{roadmap_id}/progress/{student_profile_id}", response_model=StudentProgressDetail)
async def get_student_progress(
    roadmap_id: int,
    student_profile_id: int,
    _: AdminCaller,
    db: DBSession,
) -> dict:
    detail = await roadmap_service.get_student_progress_detail(db, roadmap_id, student_profile_id)
    return detail.model_dump(mode="json")


@router.post(
    "/{roadmap_id}/reviewers/{teacher_profile_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_reviewer(
    roadmap_id: int,
    teacher_profile_id: int,
    _: AdminCaller,
    db: DBSession,
) -> dict:
    """Restrict reviews of this roadmap to assigned teachers (this one included)."""
    await roadmap_service.assign_reviewer(db, roadmap_id, teacher_profile_id)
    return {"message": "Reviewer assigned"}


@router.delete("/{roadmap_id}/reviewers/{teacher_profile_id}", response_model=MessageResponse)
async def unassign_reviewer(
    roadmap_id: int,
    teacher_profile_id: int,
    _: AdminCaller,
    db: DBSession,
) -> dict:
    await roadmap_service.unassign_reviewer(db, roadmap_id, teacher_profile_id)
    return {"message": "Reviewer unassigned"}
