"""Student roadmap API routes: browsing, starting and working through steps."""

from fastapi import APIRouter, status

from skillpath.api.deps import DBSession, Pagination
from skillpath.core.auth import StudentCaller
from skillpath.core.logging import get_logger
from skillpath.schemas.common import Paginated
from skillpath.schemas.progress import (
    AvailableRoadmap,
    MyProgressResponse,
    RoadmapProgressResponse,
    StartRoadmapRequest,
    StartStepRequest,
    StepDetailResponse,
    StepTransitionResponse,
    SubmitEvidenceRequest,
)
from skillpath.services import profile_service, progression_service, student_service

logger = get_logger(__name__)
router = APIRouter(prefix="/student/roadmaps", tags=["student-roadmaps"])


@router.get("", response_model=Paginated[AvailableRoadmap])
async def list_available_roadmaps(
    caller: StudentCaller,
    db: DBSession,
    params: Pagination,
    recommended_only: bool = False,
) -> dict:
    """Active roadmaps, optionally only those for the student's recommended role."""
    student = await profile_service.get_student_profile(db, caller)
    roadmaps, total = await student_service.get_available_roadmaps(
        db, student.id, params, recommended_only=recommended_only
    )
    return Paginated[AvailableRoadmap].build(roadmaps, total, params).model_dump(mode="json")


@router.post("/start", response_model=RoadmapProgressResponse, status_code=status.HTTP_201_CREATED)
async def start_roadmap(data: StartRoadmapRequest, caller: StudentCaller, db: DBSession) -> dict:
    student = await profile_service.get_student_profile(db, caller)
    await progression_service.start_roadmap(db, student.id, data.roadmap_id)
    logger.info("Roadmap started via API", roadmap_id=data.roadmap_id, user_id=caller.user_id)
    view = await student_service.get_roadmap_progress(db, student.id, data.roadmap_id)
    return view.model_dump(mode="json")


@router.get("/me/progress", response_model=MyProgressResponse)
async def get_my_progress(caller: StudentCaller, db: DBSession) -> dict:
    student = await profile_service.get_student_profile(db, caller)
    overview = await student_service.get_my_progress(db, student.id)
    return overview.model_dump(mode="json")


@router.get("/{roadmap_id}/progress", response_model=RoadmapProgressResponse)
async def get_roadmap_progress(roadmap_id: int, caller: StudentCaller, db: DBSession) -> dict:
    """Step-by-step progress; a preview when the roadmap is not started yet."""
    student = await profile_service.get_student_profile(db, caller)
    view = await student_service.get_roadmap_progress(db, student.id, roadmap_id)
    return view.model_dump(mode="json")


@router.get("/steps/{step_id}", response_model=StepDetailResponse)
async def get_step_progress(step_id: int, caller: StudentCaller, db: DBSession) -> dict:
    student = await profile_service.get_student_profile(db, caller)
    detail = await student_service.get_step_progress(db, student.id, step_id)
    return detail.model_dump(mode="json")


@router.post("/steps/start", response_model=StepTransitionResponse)
async def start_step(data: StartStepRequest, caller: StudentCaller, db: DBSession) -> dict:
    student = await profile_service.get_student_profile(db, caller)
    row = await progression_service.start_step(db, student.id, data.step_id)
    return StepTransitionResponse(
        message="Step started",
        step_status=row.status,
        at=row.started_at,
    ).model_dump(mode="json")


@router.post("/steps/submit", response_model=StepTransitionResponse)
async def submit_evidence(data: SubmitEvidenceRequest, caller: StudentCaller, db: DBSession) -> dict:
    """Submit evidence for review; also used to resubmit a rejected step."""
    student = await profile_service.get_student_profile(db, caller)
    row = await progression_service.submit_evidence(
        db,
        student.id,
        data.step_id,
        evidence_link=str(data.evidence_link),
        evidence_type=data.evidence_type,
        submission_notes=data.submission_notes,
    )
    logger.info("Evidence submitted via API", step_id=data.step_id, user_id=caller.user_id)
    return StepTransitionResponse(
        message="Evidence submitted, waiting for teacher review",
        step_status=row.status,
        at=row.submitted_at,
    ).model_dump(mode="json")
