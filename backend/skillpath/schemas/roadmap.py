"""Roadmap catalog schemas (admin-facing)."""

from datetime import datetime

from pydantic import BaseModel, Field, HttpUrl

from skillpath.models.enums import DifficultyLevel, RoadmapStatus, RoadmapVisibility


class ResourceLink(BaseModel):
    """A learning resource attached to a step."""

    title: str
    url: HttpUrl
    type: str = "article"  # video, article, tool, ...
    description: str = ""


class RoleInfo(BaseModel):
    id: int
    name: str
    description: str | None = None

    class Config:
        from_attributes = True


class RoadmapCreate(BaseModel):
    """Create a new roadmap (always starts as a draft)."""

    target_role_id: int
    name: str = Field(min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    visibility: RoadmapVisibility = RoadmapVisibility.SCHOOL
    generation_metadata: dict | None = None


class RoadmapUpdate(BaseModel):
    """Update roadmap fields; omitted fields are left untouched."""

    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    visibility: RoadmapVisibility | None = None
    status: RoadmapStatus | None = None


class StepCreate(BaseModel):
    """Create a step; appended to the end unless `step_order` is given."""

    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10)
    learning_objectives: str = Field(min_length=10)
    submission_guidelines: str = Field(min_length=10)
    resource_links: list[ResourceLink] | None = None
    estimated_duration: int = Field(ge=1, le=500)
    difficulty_level: DifficultyLevel
    step_order: int | None = Field(default=None, ge=1)


class StepUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=10)
    learning_objectives: str | None = Field(default=None, min_length=10)
    submission_guidelines: str | None = Field(default=None, min_length=10)
    resource_links: list[ResourceLink] | None = None
    estimated_duration: int | None = Field(default=None, ge=1, le=500)
    difficulty_level: DifficultyLevel | None = None
    step_order: int | None = Field(default=None, ge=1)


class StepReorder(BaseModel):
    """New step order, given as the full list of step ids."""

    step_ids: list[int] = Field(min_length=1)


class StepResponse(BaseModel):
    id: int
    roadmap_id: int
    step_order: int
    title: str
    description: str
    learning_objectives: str
    submission_guidelines: str
    resource_links: list[ResourceLink] | None
    estimated_duration: int
    difficulty_level: DifficultyLevel
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RoadmapResponse(BaseModel):
    id: int
    target_role_id: int
    name: str
    description: str | None
    visibility: RoadmapVisibility
    status: RoadmapStatus
    created_by: int
    total_steps: int
    target_role: RoleInfo | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RoadmapDetailResponse(RoadmapResponse):
    steps: list[StepResponse]
    reviewer_ids: list[int] = []


class StudentInfo(BaseModel):
    id: int
    name: str
    email: str
    nis: str | None = None
    student_class: str | None = None


class ProgressSummary(BaseModel):
    """One student's aggregate progress on a roadmap."""

    progress_id: int
    student: StudentInfo
    total_steps: int
    completed_steps: int
    progress_percent: float
    started_at: datetime | None
    last_activity_at: datetime | None
    completed_at: datetime | None


class ValidatorInfo(BaseModel):
    teacher_profile_id: int
    name: str
    email: str


class StepProgressDetail(BaseModel):
    step_id: int
    step_order: int
    title: str
    status: str
    evidence_link: str | None
    evidence_type: str | None
    submission_notes: str | None
    validated_by: ValidatorInfo | None
    validation_notes: str | None
    validation_score: int | None
    started_at: datetime | None
    submitted_at: datetime | None
    reviewed_at: datetime | None
    completed_at: datetime | None


class StudentProgressDetail(BaseModel):
    overall: ProgressSummary
    steps: list[StepProgressDetail]


class CompletionStatistics(BaseModel):
    average_completion: float
    students_completed: int
    students_in_progress: int
    students_not_started: int


class RoleStatistics(BaseModel):
    role_id: int
    role_name: str
    roadmap_count: int
    student_count: int


class RoadmapStatistics(BaseModel):
    total_roadmaps: int
    active_roadmaps: int
    draft_roadmaps: int
    archived_roadmaps: int
    total_steps: int
    students_enrolled: int
    pending_submissions: int
    completion_stats: CompletionStatistics
    roadmaps_by_role: list[RoleStatistics]
