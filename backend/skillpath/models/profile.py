"""User, profile and career-role models.

These tables belong to the identity and questionnaire subsystems. The roadmap
core only reads them to resolve callers to profiles, label roadmaps with a
role name and find a student's latest recommended role.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.core.database import Base


class TargetRole(Base):
    """Career role a roadmap prepares students for."""

    __tablename__ = "target_roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True)
    role: Mapped[str] = mapped_column(String(20))  # student, teacher, admin, alumni, company

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)
    fullname: Mapped[str] = mapped_column(String)
    nis: Mapped[str | None] = mapped_column(String(32))
    student_class: Mapped[str | None] = mapped_column(String(32))

    user: Mapped[User] = relationship(lazy="joined")


class TeacherProfile(Base):
    __tablename__ = "teacher_profiles"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True)
    fullname: Mapped[str] = mapped_column(String)

    user: Mapped[User] = relationship(lazy="joined")


class QuestionnaireResponse(Base):
    """Career questionnaire result; only the recommendation is used here."""

    __tablename__ = "questionnaire_responses"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_profile_id: Mapped[int] = mapped_column(ForeignKey("student_profiles.id"))
    recommended_role_id: Mapped[int | None] = mapped_column(ForeignKey("target_roles.id"))
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
