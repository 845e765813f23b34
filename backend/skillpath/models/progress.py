"""Student progress models: one aggregate per (roadmap, student) and one
state-machine row per (aggregate, step)."""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillpath.core.database import Base
from skillpath.models.enums import EvidenceType, StepStatus, enum_type
from skillpath.models.roadmap import RoadmapStep


class StudentRoadmapProgress(Base):
    """Per-student rollup of progress across all steps of one roadmap."""

    __tablename__ = "student_roadmap_progress"
    __table_args__ = (
        UniqueConstraint("roadmap_id", "student_profile_id", name="unique_student_roadmap"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    roadmap_id: Mapped[int] = mapped_column(ForeignKey("roadmaps.id"))
    student_profile_id: Mapped[int] = mapped_column(ForeignKey("student_profiles.id"))

    # Progress tracking
    total_steps: Mapped[int] = mapped_column(Integer)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)
    progress_percent: Mapped[float] = mapped_column(Float, default=0.0)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    step_progress: Mapped[list["StudentStepProgress"]] = relationship(
        back_populates="roadmap_progress",
        order_by="StudentStepProgress.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_finished(self) -> bool:
        return self.completed_at is not None


class StudentStepProgress(Base):
    """One student's work on one roadmap step."""

    __tablename__ = "student_step_progress"
    __table_args__ = (
        UniqueConstraint(
            "student_roadmap_progress_id", "roadmap_step_id", name="unique_progress_step"
        ),
        Index("ix_student_step_progress_status_submitted", "status", "submitted_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_roadmap_progress_id: Mapped[int] = mapped_column(
        ForeignKey("student_roadmap_progress.id", ondelete="CASCADE")
    )
    roadmap_step_id: Mapped[int] = mapped_column(
        ForeignKey("roadmap_steps.id", ondelete="CASCADE")
    )
    status: Mapped[StepStatus] = mapped_column(enum_type(StepStatus), default=StepStatus.LOCKED)

    # Submission
    evidence_link: Mapped[str | None] = mapped_column(Text)
    evidence_type: Mapped[EvidenceType | None] = mapped_column(enum_type(EvidenceType))
    submission_notes: Mapped[str | None] = mapped_column(Text)

    # Teacher validation
    validated_by_teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher_profiles.id"))
    validation_notes: Mapped[str | None] = mapped_column(Text)
    validation_score: Mapped[int | None] = mapped_column(Integer)  # 0-100

    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    roadmap_progress: Mapped[StudentRoadmapProgress] = relationship(back_populates="step_progress")
    step: Mapped[RoadmapStep] = relationship(lazy="joined")
