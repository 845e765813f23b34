"""Status and level enums shared by models and schemas."""

from enum import Enum

from sqlalchemy import Enum as SAEnum


class RoadmapStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class RoadmapVisibility(str, Enum):
    PRIVATE = "private"
    SCHOOL = "school"
    PUBLIC = "public"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


DIFFICULTY_RANK = {
    DifficultyLevel.BEGINNER: 0,
    DifficultyLevel.INTERMEDIATE: 1,
    DifficultyLevel.ADVANCED: 2,
}


class StepStatus(str, Enum):
    """Lifecycle of one student's work on one roadmap step."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class EvidenceType(str, Enum):
    URL = "url"


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


def enum_type(enum_cls: type[Enum]) -> SAEnum:
    """Store an enum as its string value in a VARCHAR column."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
