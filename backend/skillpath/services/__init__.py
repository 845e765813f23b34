"""Service layer modules."""

from skillpath.services import (
    profile_service,
    progression_service,
    roadmap_service,
    review_service,
    student_service,
)

__all__ = [
    "profile_service",
    "progression_service",
    "roadmap_service",
    "review_service",
    "student_service",
]
