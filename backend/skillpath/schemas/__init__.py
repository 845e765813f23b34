"""Pydantic schemas."""

from skillpath.schemas.common import MessageResponse, PageParams, Paginated
from skillpath.schemas.progress import (
    AvailableRoadmap,
    MyProgressResponse,
    RoadmapProgressResponse,
    StartRoadmapRequest,
    StartStepRequest,
    StepDetailResponse,
    StepTransitionResponse,
    StudentStep,
    SubmitEvidenceRequest,
)
from skillpath.schemas.review import PendingSubmission, ReviewRequest, ReviewResponse
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

__all__ = [
    "PageParams",
    "Paginated",
    "MessageResponse",
    "RoadmapCreate",
    "RoadmapUpdate",
    "RoadmapResponse",
    "RoadmapDetailResponse",
    "RoadmapStatistics",
    "StepCreate",
    "StepUpdate",
    "StepReorder",
    "StepResponse",
    "ProgressSummary",
    "StudentProgressDetail",
    "StartRoadmapRequest",
    "StartStepRequest",
    "SubmitEvidenceRequest",
    "StepTransitionResponse",
    "AvailableRoadmap",
    "StudentStep",
    "RoadmapProgressResponse",
    "StepDetailResponse",
    "MyProgressResponse",
    "ReviewRequest",
    "ReviewResponse",
    "PendingSubmission",
]
