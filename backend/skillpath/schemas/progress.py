"""Student-facing progress schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl

from skillpath.models.enums import DifficultyLevel, StepStatus
from skillpath.schemas.roadmap import ResourceLink


class StartRoadmapRequest(BaseModel):
    roadmap_id: int


class StartStepRequest(BaseModel):
    step_id: int


class SubmitEvidenceRequest(BaseModel):
    step_id: int
    evidence_link: HttpUrl
    evidence_type: Literal["url"] = "url"  # file uploads are handled elsewhere
    submission_notes: str | None = Field(default=None, max_length=1000)


class AvailableRoadmap(BaseModel):
    id: int
    name: str
    description: str | None
    role_name: str
    total_steps: int
    estimated_duration: int  # hours
    difficulty_level: DifficultyLevel
    is_recommended: bool
    is_started: bool
    progress_percent: float


class StudentStep(BaseModel):
    """A step as one student sees it, with UI hints derived from its status."""

    id: int
    step_order: int
    title: str
    description: str
    learning_objectives: str
    submission_guidelines: str
    resource_links: list[ResourceLink] | None
    estimated_duration: int
    difficulty_level: DifficultyLevel
    status: StepStatus

    evidence_link: str | None = None
    evidence_type: str | None = None
    submission_notes: str | None = None
    validation_notes: str | None = None
    validation_score: int | None = None
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    completed_at: datetime | None = None

    can_start: bool
    can_submit: bool
    is_locked: bool


class RoadmapProgressResponse(BaseModel):
    id: int | None  # None until the student starts the roadmap
    roadmap_id: int
    roadmap_name: str
    roadmap_description: str | None
    role_name: str
    total_steps: int
    completed_steps: int
    progress_percent: float
    is_finished: bool
    started_at: datetime | None
    last_activity_at: datetime | None
    completed_at: datetime | None
    steps: list[StudentStep]


class StepTransitionResponse(BaseModel):
    message: str
    step_status: StepStatus
    at: datetime


class StepInfo(BaseModel):
    id: int
    order: int
    title: str
    status: StepStatus
    difficulty_level: DifficultyLevel


class StepDetailResponse(BaseModel):
    step: StudentStep
    roadmap_id: int
    roadmap_name: str
    total_steps: int
    previous_step: StepInfo | None
    next_step: StepInfo | None
    steps_left: int


class ActiveRoadmapSummary(BaseModel):
    id: int
    roadmap_id: int
    roadmap_name: str
    role_name: str
    total_steps: int
    completed_steps: int
    progress_percent: float
    current_step: StepInfo | None
    started_at: datetime | None
    last_activity_at: datetime | None


class CompletedRoadmapSummary(BaseModel):
    id: int
    roadmap_id: int
    roadmap_name: str
    role_name: str
    total_steps: int
    completed_at: datetime
    total_duration: int  # hours
    average_score: float | None


class StudentStatistics(BaseModel):
    total_roadmaps_started: int
    total_roadmaps_completed: int
    total_steps_completed: int
    total_hours_spent: int
    average_completion_rate: float


class MyProgressResponse(BaseModel):
    active_roadmaps: list[ActiveRoadmapSummary]
    completed_roadmaps: list[CompletedRoadmapSummary]
    overall_stats: StudentStatistics
