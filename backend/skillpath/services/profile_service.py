"""Lookups into the identity and questionnaire subsystems."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.auth import Caller
from skillpath.core.exceptions import ForbiddenError
from skillpath.core.logging import get_logger
from skillpath.models.profile import (
    QuestionnaireResponse,
    StudentProfile,
    TargetRole,
    TeacherProfile,
)

logger = get_logger(__name__)

UNKNOWN_ROLE_NAME = "Unknown role"


async def get_student_profile(db: AsyncSession, caller: Caller) -> StudentProfile:
    """Resolve the calling user to their student profile.

    Raises:
        ForbiddenError: if the user has no student profile
    """
    result = await db.execute(select(StudentProfile).where(StudentProfile.user_id == caller.user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        logger.warning("Student profile not found", user_id=caller.user_id)
        raise ForbiddenError("Student profile not found")
    return profile


async def get_teacher_profile(db: AsyncSession, caller: Caller) -> TeacherProfile:
    """Resolve the calling user to their teacher profile.

    Raises:
        ForbiddenError: if the user has no teacher profile
    """
    result = await db.execute(select(TeacherProfile).where(TeacherProfile.user_id == caller.user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        logger.warning("Teacher profile not found", user_id=caller.user_id)
        raise ForbiddenError("Teacher profile not found")
    return profile


async def get_target_role(db: AsyncSession, role_id: int) -> TargetRole | None:
    return await db.get(TargetRole, role_id)


async def get_recommended_role_id(db: AsyncSession, student_profile_id: int) -> int | None:
    """Role recommended by the student's latest questionnaire, if any."""
    result = await db.execute(
        select(QuestionnaireResponse.recommended_role_id)
        .where(
            QuestionnaireResponse.student_profile_id == student_profile_id,
            QuestionnaireResponse.recommended_role_id.is_not(None),
        )
        .order_by(QuestionnaireResponse.submitted_at.desc(), QuestionnaireResponse.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_student_profiles(
    db: AsyncSession, profile_ids: Iterable[int]
) -> dict[int, StudentProfile]:
    ids = set(profile_ids)
    if not ids:
        return {}
    result = await db.execute(select(StudentProfile).where(StudentProfile.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


async def get_teacher_profiles(
    db: AsyncSession, profile_ids: Iterable[int]
) -> dict[int, TeacherProfile]:
    ids = set(profile_ids)
    if not ids:
        return {}
    result = await db.execute(select(TeacherProfile).where(TeacherProfile.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}
