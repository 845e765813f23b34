"""Database models."""

from skillpath.models.profile import (
    QuestionnaireResponse,
    StudentProfile,
    TargetRole,
    TeacherProfile,
    User,
)
from skillpath.models.progress import StudentRoadmapProgress, StudentStepProgress
from skillpath.models.roadmap import Roadmap, RoadmapReviewer, RoadmapStep

__all__ = [
    "User",
    "StudentProfile",
    "TeacherProfile",
    "TargetRole",
    "QuestionnaireResponse",
    "Roadmap",
    "RoadmapStep",
    "RoadmapReviewer",
    "StudentRoadmapProgress",
    "StudentStepProgress",
]
