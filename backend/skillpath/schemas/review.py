"""Teacher review schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from skillpath.models.enums import ReviewAction, StepStatus
from skillpath.schemas.roadmap import StudentInfo


class ReviewRequest(BaseModel):
    action: ReviewAction
    validation_score: int | None = Field(default=None, ge=0, le=100)
    validation_notes: str | None = Field(default=None, max_length=1000)


class ReviewResponse(BaseModel):
    message: str
    submission_id: int
    step_status: StepStatus
    reviewed_at: datetime
    roadmap_completed: bool = False


class PendingSubmission(BaseModel):
    id: int
    student: StudentInfo
    roadmap_id: int
    roadmap_name: str
    step_id: int
    step_order: int
    step_title: str
    learning_objectives: str
    submission_guidelines: str
    evidence_link: str | None
    evidence_type: str | None
    submission_notes: str | None
    submitted_at: datetime | None
